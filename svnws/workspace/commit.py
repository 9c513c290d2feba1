"""
Multi-phase commit protocol.

stage -> reconcile -> resolve -> commit -> reconcile -> resolve -> cleanup.
Every phase blocks; a failure short-circuits to the caller with the working
copy left as the backend left it. Cleanup always runs once the protocol has
started.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import List

from ..backend import SvnClient
from ..errors import SvnwsError
from ..ui import Prompter
from .conflicts import ConflictResolver
from .ignore_rules import IgnoreRuleSet
from .ignore_sync import ensure_ignore_rules_current, repoint_drifted_ignore_link
from .status import IGNORABLE_KINDS, ItemKind, classify_status


class CommitResult(Enum):
    SUCCESS = "success"
    NO_CHANGES = "no_changes"


class CommitOrchestrator:
    """Commit the working copy of one project, resolving conflicts on the way."""

    def __init__(
        self,
        svn: SvnClient,
        prompter: Prompter,
        root: Path,
        project_name: str,
        ignore_file_name: str = ".gitignore",
    ):
        self.svn = svn
        self.prompter = prompter
        self.root = root
        self.project_name = project_name
        self.ignore_file_name = ignore_file_name
        self.resolver = ConflictResolver(svn, prompter, root)
        self.logger = logging.getLogger('svnws.workspace.commit')

    def commit_with_conflict_resolution(self, message: str) -> CommitResult:
        """
        Run the full protocol and commit with ``message``.

        Returns:
            SUCCESS if a change set was transmitted, NO_CHANGES otherwise
        """
        try:
            self.stage()
            self.reconcile()
            output = self.svn.commit(message)
            self.reconcile()
        except BaseException:
            self._housekeeping(propagate=False)
            raise

        self._housekeeping(propagate=True)

        if not output.strip():
            self.logger.info("Nothing to commit")
            return CommitResult.NO_CHANGES

        self.logger.info(f"Committed: {message}")
        return CommitResult.SUCCESS

    def stage(self) -> List[str]:
        """
        Schedule additions and deletions; returns the staged paths.

        Unversioned content not covered by ignore rules is added (only the
        files of a directory, never the directory entry itself); missing
        entries are deleted.
        """
        ensure_ignore_rules_current(self.svn, self.project_name, self.ignore_file_name)
        rules = IgnoreRuleSet.from_root(self.root, self.ignore_file_name)

        additions: List[str] = []
        deletions: List[str] = []
        for entry in classify_status(self.svn, no_ignore=True):
            if entry.item_kind in IGNORABLE_KINDS:
                full_path = self.root / entry.path
                if full_path.is_dir():
                    additions.extend(
                        str(path.relative_to(self.root)) for path in rules.unignored_files(full_path)
                    )
                elif not rules.matches(entry.posix_path, is_dir=False):
                    additions.append(entry.path)
            elif entry.item_kind == ItemKind.MISSING:
                deletions.append(entry.path)

        if additions:
            self.logger.debug(f"Adding {len(additions)} path(s)")
            self.svn.add(additions)
        if deletions:
            self.logger.debug(f"Deleting {len(deletions)} missing path(s)")
            self.svn.delete(deletions)

        repoint_drifted_ignore_link(
            self.svn,
            self.project_name,
            classify_status(self.svn, no_ignore=False),
            self.ignore_file_name,
        )

        return additions + deletions

    def reconcile(self) -> None:
        """Bring in upstream changes without overwriting local edits, then resolve."""
        self.svn.update(["--accept", "postpone"])
        self.resolver.resolve_conflicts()

    def _housekeeping(self, propagate: bool) -> None:
        try:
            self.svn.cleanup()
        except SvnwsError as e:
            if propagate:
                raise
            self.logger.warning(f"Cleanup after failed commit also failed: {e}")


def discard_changes(svn: SvnClient) -> None:
    """Revert every local change and clear stale working-copy locks."""
    logging.getLogger('svnws.workspace.commit').info("Discarding local changes")
    svn.revert(["."], recursive=True)
    svn.cleanup()
