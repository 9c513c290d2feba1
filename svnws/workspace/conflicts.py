"""
Interactive conflict resolution.

Every conflicted path is classified into one of four kinds, each with its own
"keep mine" and "discard mine" transition. Incomplete working copies cannot be
resolved here and abort the whole pass.
"""

import logging
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..backend import SvnClient
from ..errors import IncompleteWorkingCopyError, WorkspaceIOError
from ..ui import CONFLICT_CHOICES, KEEP_MINE, Prompter
from .status import ItemKind, StatusEntry, classify_status


class ConflictKind(Enum):
    STANDARD = "standard"
    TREE_CONFLICT = "tree_conflict"
    OBSTRUCTED = "obstructed"
    INCOMPLETE = "incomplete"


@dataclass(frozen=True)
class ConflictItem:
    path: str
    kind: ConflictKind


def conflict_kind_of(entry: StatusEntry) -> Optional[ConflictKind]:
    """Conflict kind of a status entry, or None if it is not conflicted."""
    if entry.item_kind == ItemKind.INCOMPLETE:
        return ConflictKind.INCOMPLETE
    if entry.tree_conflicted or entry.item_kind == ItemKind.TREE_CONFLICTED:
        return ConflictKind.TREE_CONFLICT
    if entry.item_kind == ItemKind.OBSTRUCTED:
        return ConflictKind.OBSTRUCTED
    if entry.item_kind == ItemKind.CONFLICTED or entry.props_conflicted:
        return ConflictKind.STANDARD
    return None


def enumerate_conflicts(svn: SvnClient) -> List[ConflictItem]:
    """Conflicted paths of the working copy in discovery order."""
    conflicts = []
    for entry in classify_status(svn, no_ignore=False):
        kind = conflict_kind_of(entry)
        if kind is not None:
            conflicts.append(ConflictItem(path=entry.path, kind=kind))
    return conflicts


class ConflictResolver:
    """Drive the keep-mine / discard-mine protocol over all conflicted paths."""

    def __init__(self, svn: SvnClient, prompter: Prompter, root: Path):
        self.svn = svn
        self.prompter = prompter
        self.root = root
        self.logger = logging.getLogger('svnws.workspace.conflicts')
        self._handlers: Dict[ConflictKind, Callable[[ConflictItem, bool], None]] = {
            ConflictKind.STANDARD: self._resolve_standard,
            ConflictKind.TREE_CONFLICT: self._resolve_tree_conflict,
            ConflictKind.OBSTRUCTED: self._resolve_obstructed,
            ConflictKind.INCOMPLETE: self._resolve_incomplete,
        }
        missing = set(ConflictKind) - set(self._handlers)
        if missing:
            raise TypeError(f"No conflict handler for: {sorted(k.value for k in missing)}")

    def resolve_conflicts(self) -> int:
        """
        Resolve conflicts until none remain; returns how many items were resolved.

        Items resolved before a failure stay resolved; a later call picks up
        whatever is still conflicted.

        Raises:
            IncompleteWorkingCopyError: some path is incomplete; nothing was prompted
            OperationCancelled: the operator declined a prompt
        """
        resolved = 0
        conflicts = enumerate_conflicts(self.svn)

        while conflicts:
            for item in conflicts:
                if item.kind == ConflictKind.INCOMPLETE:
                    raise IncompleteWorkingCopyError(item.path)

            self.prompter.warn(f"Conflict detected in {len(conflicts)} file(s). Need to resolve them")
            for item in conflicts:
                selection = self.prompter.select(f"Conflict in file: {item.path}", CONFLICT_CHOICES)
                self.resolve_item(item, keep_mine=selection == KEEP_MINE)
                resolved += 1

            conflicts = enumerate_conflicts(self.svn)

        return resolved

    def resolve_item(self, item: ConflictItem, keep_mine: bool) -> None:
        choice = "keep mine" if keep_mine else "discard mine"
        self.logger.info(f"Resolving {item.kind.value} conflict on {item.path}: {choice}")
        self._handlers[item.kind](item, keep_mine)

    def _resolve_standard(self, item: ConflictItem, keep_mine: bool) -> None:
        self.svn.resolve("mine-full" if keep_mine else "theirs-full", item.path)

    def _resolve_tree_conflict(self, item: ConflictItem, keep_mine: bool) -> None:
        self.svn.resolve("working", item.path)
        if keep_mine:
            self.svn.add([item.path])
        else:
            self.svn.revert([item.path], recursive=True)
            self.svn.update([item.path])

    def _resolve_obstructed(self, item: ConflictItem, keep_mine: bool) -> None:
        if keep_mine:
            self.svn.delete(["--keep-local", "--force", item.path])
            self.svn.add([item.path])
            return

        local_path = self.root / item.path
        try:
            if local_path.is_dir() and not local_path.is_symlink():
                shutil.rmtree(local_path)
            elif local_path.exists() or local_path.is_symlink():
                local_path.unlink()
        except OSError as e:
            raise WorkspaceIOError(f"Could not remove obstructing {local_path}: {e}", {"path": item.path}) from e

        self.svn.revert([item.path])
        self.svn.update([item.path])

    def _resolve_incomplete(self, item: ConflictItem, keep_mine: bool) -> None:
        raise IncompleteWorkingCopyError(item.path)
