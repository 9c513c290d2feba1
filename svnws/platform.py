"""Cross-platform compatibility utilities for SVNWS."""

import platform
import subprocess
from pathlib import Path
from typing import Optional, Dict, Any, Union
from enum import Enum


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
        self._is_windows = self._platform_type == PlatformType.WINDOWS
        self._is_unix = self._platform_type in (PlatformType.LINUX, PlatformType.MACOS)

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
        return self._is_windows

    @property
    def is_unix(self) -> bool:
        """Check if running on Unix-like system (Linux/macOS)."""
        return self._is_unix


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
        Normalized Path object
    """
    if isinstance(path, str):
        path = Path(path)

    # Expand user home directory (~) first, then resolve to absolute path
    return path.expanduser().resolve()


def get_platform_specific_defaults() -> Dict[str, Any]:
    """
    Get platform-specific configuration defaults.

    Returns:
        Dictionary of platform-specific defaults
    """
    platform_info = get_platform_info()

    defaults = {
        'store_dir': Path.home() / ".ws_store",
        'repo_dir': Path.home() / ".svnws" / "repos",
        'default_repo_name': "repo",
        'log_level': "INFO",
        'conflict_policy': "ask",
    }

    if platform_info.is_windows:
        # Checkouts live at the drive root so every workspace on the drive shares them
        defaults.update({
            'store_dir': Path(Path.home().anchor) / ".ws_store",
        })

    return defaults


def get_svn_executable(name: str = "svn") -> str:
    """
    Get the executable name of a Subversion tool for the current platform.

    Args:
        name: Tool name (svn, svnadmin, svndumpfilter, svnmucc)

    Returns:
        Executable name
    """
    if get_platform_info().is_windows and not name.lower().endswith(".exe"):
        return f"{name}.exe"
    return name


def validate_svn_availability(executable: str) -> tuple[bool, Optional[str]]:
    """
    Validate that a Subversion tool is available on the current platform.

    Returns:
        Tuple of (is_available, error_message)
    """
    try:
        result = subprocess.run(
            [executable, "--version", "--quiet"],
            capture_output=True,
            text=True,
            timeout=10
        )

        if result.returncode == 0:
            return True, None
        else:
            return False, f"{executable} --version failed: {result.stderr.strip()}"

    except FileNotFoundError:
        return False, f"Executable '{executable}' not found"
    except subprocess.TimeoutExpired:
        return False, f"{executable} --version timed out"
    except OSError as e:
        return False, f"Error checking {executable} availability: {e}"
