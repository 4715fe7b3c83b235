"""Desired and actual repository state data structures."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Mapping, Optional, Tuple, Union

from ..errors import ConfigConflict
from ..platform import normalize_path


class Ensure(Enum):
    """Desired existence and layout of the repository."""
    PRESENT = "present"
    ABSENT = "absent"
    BARE = "bare"
    MIRROR = "mirror"
    LATEST = "latest"      # present, and kept at the newest upstream revision


class Layout(Enum):
    """Layout of a repository as found on disk."""
    MISSING = "missing"
    WORKING_COPY = "working_copy"
    BARE = "bare"


@dataclass(frozen=True)
class SingleSource:
    """One URL for the configured remote."""
    url: str


@dataclass(frozen=True)
class NamedSources:
    """Map of remote name to URL."""
    remotes: Mapping[str, str] = field(default_factory=dict)

    def names(self) -> Tuple[str, ...]:
        return tuple(sorted(self.remotes))


# None means no source is configured
SourceSpec = Optional[Union[SingleSource, NamedSources]]


@dataclass(frozen=True)
class SingleProxy:
    """One proxy for every HTTP remote action."""
    url: str


@dataclass(frozen=True)
class PerRemoteProxy:
    """Proxy URL per remote name."""
    proxies: Mapping[str, str] = field(default_factory=dict)


ProxySpec = Optional[Union[SingleProxy, PerRemoteProxy]]


@dataclass(frozen=True)
class DesiredState:
    """Declared configuration a repository is converged towards."""
    path: Path
    ensure: Ensure = Ensure.PRESENT
    source: SourceSpec = None
    revision: Optional[str] = None
    remote: str = "origin"
    branch: Optional[str] = None
    depth: Optional[int] = None
    submodules: bool = True
    keep_local_changes: bool = False
    excludes: Optional[Tuple[str, ...]] = None
    owner: Optional[str] = None
    group: Optional[str] = None
    user: Optional[str] = None
    identity: Optional[Path] = None
    trust_server_cert: bool = False
    http_proxy: ProxySpec = None
    skip_hooks: Optional[bool] = None
    safe_directory: bool = False
    force: bool = False
    umask: Optional[int] = None

    def __post_init__(self):
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, 'path', normalize_path(self.path))
        if self.identity is not None:
            object.__setattr__(self, 'identity', Path(self.identity))
        if self.excludes is not None:
            if isinstance(self.excludes, str):
                object.__setattr__(self, 'excludes', (self.excludes,))
            else:
                object.__setattr__(self, 'excludes', tuple(self.excludes))

        if not self.remote:
            raise ValueError("remote must not be empty")
        if self.depth is not None and self.depth <= 0:
            raise ValueError("depth must be a positive integer")

    @property
    def is_bare_or_mirror(self) -> bool:
        return self.ensure in (Ensure.BARE, Ensure.MIRROR)

    def default_url(self) -> Optional[str]:
        """
        URL the repository is cloned from.

        For a named-remote map this is the entry for ``remote``; a map without
        that entry cannot be cloned.
        """
        if self.source is None:
            return None
        if isinstance(self.source, SingleSource):
            return self.source.url
        if self.remote in self.source.remotes:
            return self.source.remotes[self.remote]
        raise ConfigConflict(
            f"You must specify the URL for remote '{self.remote}' in the source map"
        )

    def source_remote_names(self) -> Tuple[str, ...]:
        """Remote names the source declares."""
        if self.source is None:
            return ()
        if isinstance(self.source, SingleSource):
            return (self.remote,)
        return self.source.names()


@dataclass
class ActualState:
    """Snapshot of a repository on disk; recomputed for every operation."""
    path: Path
    layout: Layout
    remotes: Dict[str, str] = field(default_factory=dict)
    current_branch: Optional[str] = None
    current_commit: Optional[str] = None
    local_branches: FrozenSet[str] = frozenset()
    remote_branches: FrozenSet[str] = frozenset()
    tags: FrozenSet[str] = frozenset()
    mirror_remotes: FrozenSet[str] = frozenset()
    hooks_path: Optional[str] = None
    safe_directories: FrozenSet[str] = frozenset()

    def to_dict(self) -> Dict[str, object]:
        return {
            'path': str(self.path),
            'layout': self.layout.value,
            'remotes': dict(self.remotes),
            'current_branch': self.current_branch,
            'current_commit': self.current_commit,
            'local_branches': sorted(self.local_branches),
            'remote_branches': sorted(self.remote_branches),
            'tags': sorted(self.tags),
            'mirror_remotes': sorted(self.mirror_remotes),
            'hooks_path': self.hooks_path,
            'safe_directory': str(self.path) in self.safe_directories,
        }


@dataclass(frozen=True)
class TagTarget:
    name: str
    commit: str


@dataclass(frozen=True)
class LocalBranchTarget:
    name: str
    commit: str


@dataclass(frozen=True)
class RemoteBranchTarget:
    name: str
    commit: str


@dataclass(frozen=True)
class RawCommitTarget:
    commit: str


RevisionTarget = Union[TagTarget, LocalBranchTarget, RemoteBranchTarget, RawCommitTarget]
