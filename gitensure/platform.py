"""Cross-platform helpers for locating git and user home directories."""

import getpass
import os
import platform
from enum import Enum
from pathlib import Path
from typing import Optional, Union

try:
    import pwd
except ImportError:
    # Windows has no passwd database
    pwd = None


class PlatformType(Enum):
    """Supported platform types."""
    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"
    UNKNOWN = "unknown"


class PlatformInfo:
    """Platform information and utilities."""

    def __init__(self):
        """Initialize platform detection."""
        self._platform_type = self._detect_platform()

    def _detect_platform(self) -> PlatformType:
        """Detect the current platform."""
        system = platform.system().lower()

        if system == "windows":
            return PlatformType.WINDOWS
        elif system == "darwin":
            return PlatformType.MACOS
        elif system == "linux":
            return PlatformType.LINUX
        else:
            return PlatformType.UNKNOWN

    @property
    def platform_type(self) -> PlatformType:
        """Get the detected platform type."""
        return self._platform_type

    @property
    def is_windows(self) -> bool:
        """Check if running on Windows."""
        return self._platform_type == PlatformType.WINDOWS

    @property
    def is_unix(self) -> bool:
        """Check if running on Unix-like system (Linux/macOS)."""
        return self._platform_type in (PlatformType.LINUX, PlatformType.MACOS)


# Global platform info instance
_platform_info: Optional[PlatformInfo] = None


def get_platform_info() -> PlatformInfo:
    """Get the global platform info instance."""
    global _platform_info
    if _platform_info is None:
        _platform_info = PlatformInfo()
    return _platform_info


def normalize_path(path: Union[str, Path]) -> Path:
    """
    Normalize a path for the current platform.

    Args:
        path: Path to normalize

    Returns:
        Normalized absolute Path object
    """
    if isinstance(path, str):
        path = Path(path)

    # Expand user home directory (~) first, then make absolute without
    # following symlinks, so the managed path keeps the name it was given
    return Path(os.path.abspath(path.expanduser()))


def get_git_executable() -> str:
    """
    Get the Git executable name for the current platform.

    Returns:
        Git executable name
    """
    if get_platform_info().is_windows:
        return "git.exe"
    return "git"


def current_user() -> str:
    """Name of the identity executing this process."""
    return getpass.getuser()


def home_directory_for(user: Optional[str] = None) -> Path:
    """
    Home directory of ``user``, or of the executing identity when omitted.

    Falls back to ``Path.home()`` where no passwd database exists.
    """
    if pwd is None:
        return Path.home()

    if user:
        return Path(pwd.getpwnam(user).pw_dir)
    return Path(pwd.getpwuid(os.getuid()).pw_dir)
