"""Building DesiredState values from plain mappings."""

from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Mapping

from .models import (
    DesiredState,
    Ensure,
    NamedSources,
    PerRemoteProxy,
    ProxySpec,
    SingleProxy,
    SingleSource,
    SourceSpec,
)

_FIELDS = {f.name for f in fields(DesiredState)}

_BOOLEAN_FIELDS = {"submodules", "keep_local_changes", "trust_server_cert", "safe_directory", "force"}


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def parse_source(value: Any) -> SourceSpec:
    """A URL string becomes a single source; a mapping names its remotes."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return SingleSource(value)
    if isinstance(value, Mapping):
        return NamedSources({str(name): str(url) for name, url in value.items()})
    raise ValueError(f"source must be a URL or a mapping of remote names to URLs, got {value!r}")


def parse_proxy(value: Any) -> ProxySpec:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return SingleProxy(value)
    if isinstance(value, Mapping):
        return PerRemoteProxy({str(name): str(url) for name, url in value.items()})
    raise ValueError(f"http_proxy must be a URL or a mapping of remote names to URLs, got {value!r}")


def desired_state_from_dict(data: Mapping[str, Any]) -> DesiredState:
    """
    Build a DesiredState from a JSON-style mapping.

    Args:
        data: Mapping with a required ``path`` and any other DesiredState field

    Returns:
        The validated DesiredState

    Raises:
        ValueError: On unknown keys or malformed values
    """
    unknown = set(data) - _FIELDS
    if unknown:
        raise ValueError(f"Unknown desired state settings: {', '.join(sorted(unknown))}")
    if not data.get("path"):
        raise ValueError("path is required")

    values: Dict[str, Any] = {}
    for name, value in data.items():
        if value is None:
            continue
        if name == "path":
            values[name] = Path(value)
        elif name == "ensure":
            try:
                values[name] = value if isinstance(value, Ensure) else Ensure(str(value).lower())
            except ValueError:
                choices = ", ".join(e.value for e in Ensure)
                raise ValueError(f"ensure must be one of {choices}, got {value!r}")
        elif name == "source":
            values[name] = parse_source(value)
        elif name == "http_proxy":
            values[name] = parse_proxy(value)
        elif name == "excludes":
            values[name] = (value,) if isinstance(value, str) else tuple(str(v) for v in value)
        elif name == "depth":
            values[name] = int(value)
        elif name == "umask":
            values[name] = int(value, 8) if isinstance(value, str) else int(value)
        elif name == "skip_hooks" or name in _BOOLEAN_FIELDS:
            values[name] = _parse_bool(name, value)
        else:
            values[name] = str(value)
    return DesiredState(**values)
