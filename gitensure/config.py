"""Configuration management for gitensure."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .platform import get_git_executable, normalize_path

load_dotenv()  # Load .env file if it exists


VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@dataclass
class Config:
    """Process-level settings for running reconciliations."""

    # Git binary used for every invocation
    git_executable: str = field(default_factory=get_git_executable)

    # Repository paths handed to the MCP server must live below this directory
    base_dir: Optional[Path] = None

    # Logging
    log_level: str = "INFO"
    enable_performance_logging: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.base_dir, str):
            self.base_dir = Path(self.base_dir)
        if self.base_dir is not None:
            self.base_dir = normalize_path(self.base_dir)

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}")
        self.log_level = self.log_level.upper()

        if not self.git_executable:
            raise ValueError("git_executable must not be empty")

    def allows_path(self, path: Path) -> bool:
        """Whether ``path`` may be managed under this configuration."""
        if self.base_dir is None:
            return True
        path = normalize_path(path)
        return path == self.base_dir or self.base_dir in path.parents


def load_configuration() -> Config:
    """Load configuration from GITENSURE_* environment variables."""
    try:
        base_dir = os.getenv("GITENSURE_BASE_DIR")
        return Config(
            git_executable=os.getenv("GITENSURE_GIT_EXECUTABLE", get_git_executable()),
            base_dir=Path(base_dir) if base_dir else None,
            log_level=os.getenv("GITENSURE_LOG_LEVEL", "INFO").upper(),
            enable_performance_logging=os.getenv("GITENSURE_PERFORMANCE_LOGGING", "true").lower() == "true",
        )
    except (ValueError, TypeError) as e:
        raise ValueError(f"Configuration error: {e}")


def validate_configuration(config: Config) -> List[str]:
    """Validate configuration and return any errors or warnings."""
    from .platform import get_platform_info
    import shutil

    errors = []

    if shutil.which(config.git_executable) is None:
        errors.append(f"ERROR: Git executable not found on PATH: {config.git_executable}")

    if config.base_dir is None:
        errors.append("WARNING: GITENSURE_BASE_DIR is not set; any path may be managed")
    elif not config.base_dir.exists():
        errors.append(f"WARNING: Base directory does not exist yet: {config.base_dir}")

    if get_platform_info().is_windows:
        logging.getLogger('gitensure.config').debug("Ownership and umask settings are ignored on Windows")

    return errors
