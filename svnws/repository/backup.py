"""
Backup-and-swap of repository directories.

Replacing a repository is two renames: original -> backup, replacement ->
original. If the second rename fails the backup is renamed back, so the
repository is never left half swapped.
"""

import logging
import os
import shutil
from pathlib import Path

from ..errors import WorkspaceIOError


class RepositorySwapper:
    """Swaps a rewritten repository into place, keeping the old one as a backup."""

    def __init__(self, repo_path: Path, backup_path: Path):
        """
        Initialize RepositorySwapper.

        Args:
            repo_path: Live repository directory
            backup_path: Where the previous repository is kept after a swap
        """
        self.repo_path = repo_path
        self.backup_path = backup_path
        self.logger = logging.getLogger('svnws.repository.backup')

    def remove_stale_backup(self) -> None:
        if self.backup_path.exists():
            self.logger.debug(f"Removing previous backup: {self.backup_path}")
            try:
                shutil.rmtree(self.backup_path)
            except OSError as e:
                raise WorkspaceIOError(
                    f"Cannot remove previous backup {self.backup_path}: {e}",
                    {"path": str(self.backup_path)},
                ) from e

    def swap_in(self, replacement_path: Path) -> Path:
        """
        Replace the live repository with ``replacement_path``.

        Returns:
            Path of the backup holding the previous repository

        Raises:
            WorkspaceIOError: a rename failed; if it was the second one the
                original has been restored before raising
        """
        self.remove_stale_backup()

        try:
            os.rename(self.repo_path, self.backup_path)
        except OSError as e:
            raise WorkspaceIOError(
                f"Cannot move {self.repo_path} to backup {self.backup_path}: {e}",
                {"path": str(self.repo_path)},
            ) from e

        try:
            os.rename(replacement_path, self.repo_path)
        except OSError as e:
            self.logger.error(
                f"Failed to replace repository with {replacement_path}: {e}. Restoring backup..."
            )
            self.restore_from_backup()
            raise WorkspaceIOError(
                f"Cannot move {replacement_path} into {self.repo_path}: {e}. "
                "Backup restored; the repository is unchanged.",
                {"path": str(self.repo_path), "replacement": str(replacement_path)},
            ) from e

        self.logger.info(f"Repository replaced; previous version kept at {self.backup_path}")
        return self.backup_path

    def restore_from_backup(self) -> None:
        """Move the backup back to the live path."""
        try:
            os.rename(self.backup_path, self.repo_path)
        except OSError as e:
            self.logger.critical(
                f"Could not restore {self.repo_path} from {self.backup_path}: {e}"
            )
            raise WorkspaceIOError(
                f"Repository left at backup path {self.backup_path}: {e}",
                {"path": str(self.repo_path), "backup": str(self.backup_path)},
            ) from e
        self.logger.info(f"Restored {self.repo_path} from backup {self.backup_path}")
