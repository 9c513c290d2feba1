"""Configuration management for SVNWS."""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

from .platform import (
    get_platform_specific_defaults,
    get_svn_executable,
    normalize_path,
    validate_svn_availability,
)

load_dotenv()  # Load .env file if it exists

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_CONFLICT_POLICIES = ["ask", "mine", "theirs"]


@dataclass
class Config:
    """Configuration class for SVNWS with validation and defaults."""

    # Backend executables
    svn_executable: str = field(default_factory=lambda: get_svn_executable("svn"))
    svnadmin_executable: str = field(default_factory=lambda: get_svn_executable("svnadmin"))
    svndumpfilter_executable: str = field(default_factory=lambda: get_svn_executable("svndumpfilter"))
    svnmucc_executable: str = field(default_factory=lambda: get_svn_executable("svnmucc"))

    # Storage
    store_dir: Path = field(default_factory=lambda: Path.home() / ".ws_store")  # Project checkouts and counters
    repo_dir: Path = field(default_factory=lambda: Path.home() / ".svnws" / "repos")
    default_repo_name: str = "repo"

    # Working copy
    ignore_file_name: str = ".gitignore"
    conflict_policy: str = "ask"

    # Logging
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.store_dir = normalize_path(self.store_dir)
        self.repo_dir = normalize_path(self.repo_dir)

        self.log_level = self.log_level.upper()
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}")

        self.conflict_policy = self.conflict_policy.lower()
        if self.conflict_policy not in VALID_CONFLICT_POLICIES:
            raise ValueError(
                f"Invalid conflict policy: {self.conflict_policy}. Must be one of {VALID_CONFLICT_POLICIES}"
            )

        if not self.ignore_file_name or "/" in self.ignore_file_name or "\\" in self.ignore_file_name:
            raise ValueError(f"Invalid ignore file name: {self.ignore_file_name!r}")

        if not self.default_repo_name.strip():
            raise ValueError("default_repo_name must not be empty")

    @property
    def lock_dir(self) -> Path:
        """Directory for reference-count files."""
        return self.store_dir / "locks"

    @property
    def executables(self) -> List[str]:
        """All backend executables this configuration invokes."""
        return [
            self.svn_executable,
            self.svnadmin_executable,
            self.svndumpfilter_executable,
            self.svnmucc_executable,
        ]


def load_configuration() -> Config:
    """Load configuration from environment variables with platform-specific defaults."""
    try:
        platform_defaults = get_platform_specific_defaults()

        return Config(
            svn_executable=os.getenv("SVNWS_SVN", get_svn_executable("svn")),
            svnadmin_executable=os.getenv("SVNWS_SVNADMIN", get_svn_executable("svnadmin")),
            svndumpfilter_executable=os.getenv("SVNWS_SVNDUMPFILTER", get_svn_executable("svndumpfilter")),
            svnmucc_executable=os.getenv("SVNWS_SVNMUCC", get_svn_executable("svnmucc")),
            store_dir=Path(os.getenv("SVNWS_STORE_DIR", str(platform_defaults['store_dir']))),
            repo_dir=Path(os.getenv("SVNWS_REPO_DIR", str(platform_defaults['repo_dir']))),
            default_repo_name=os.getenv("SVNWS_DEFAULT_REPO", platform_defaults['default_repo_name']),
            ignore_file_name=os.getenv("SVNWS_IGNORE_FILE", ".gitignore"),
            conflict_policy=os.getenv("SVNWS_CONFLICT_POLICY", platform_defaults['conflict_policy']),
            log_level=os.getenv("SVNWS_LOG_LEVEL", platform_defaults['log_level']),
        )
    except (ValueError, TypeError) as e:
        raise ValueError(f"Configuration error: {e}")


def validate_configuration(config: Config) -> List[str]:
    """Validate configuration and return any errors or warnings."""
    errors = []

    for executable in config.executables:
        available, error = validate_svn_availability(executable)
        if not available:
            errors.append(f"ERROR: {error}")

    # Check store directory permissions
    try:
        config.store_dir.mkdir(parents=True, exist_ok=True)
        test_file = config.store_dir / ".test_write"
        test_file.write_text("test")
        test_file.unlink()
    except PermissionError:
        errors.append(f"ERROR: No write permission for store directory: {config.store_dir}")
    except OSError as e:
        errors.append(f"ERROR: Cannot access store directory {config.store_dir}: {e}")

    if not config.repo_dir.exists():
        errors.append(f"WARNING: Repository directory does not exist yet: {config.repo_dir}")

    if config.conflict_policy == "ask":
        logging.getLogger('svnws.config').debug(
            "Conflict policy 'ask' requires an interactive prompter"
        )

    return errors
