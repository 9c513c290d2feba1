"""
Working-copy status classification.

Parses ``svn status --xml`` into :class:`StatusEntry` records and decides
whether the working copy holds changes that still need committing.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List

from ..backend import SvnClient
from ..errors import StatusParseError
from .ignore_rules import IgnoreRuleSet


class ItemKind(Enum):
    """Kinds reported in the ``item`` attribute of ``wc-status``."""
    NORMAL = "normal"
    NONE = "none"
    EXTERNAL = "external"
    UNVERSIONED = "unversioned"
    IGNORED = "ignored"
    MISSING = "missing"
    CONFLICTED = "conflicted"
    TREE_CONFLICTED = "tree-conflicted"
    OBSTRUCTED = "obstructed"
    INCOMPLETE = "incomplete"
    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    REPLACED = "replaced"
    MERGED = "merged"


CLEAN_KINDS = frozenset({ItemKind.NORMAL, ItemKind.NONE, ItemKind.EXTERNAL})
IGNORABLE_KINDS = frozenset({ItemKind.UNVERSIONED, ItemKind.IGNORED})


@dataclass(frozen=True)
class StatusEntry:
    """One path reported by a status pass."""
    path: str
    item_kind: ItemKind
    props_conflicted: bool = False
    switched: bool = False
    tree_conflicted: bool = False
    props_modified: bool = False

    @property
    def posix_path(self) -> str:
        return self.path.replace("\\", "/")


def parse_status_xml(xml_text: str) -> List[StatusEntry]:
    """
    Parse the output of ``svn status --xml``.

    A tree conflict takes precedence over the item kind unless the entry is
    incomplete, matching how conflicts are classified for resolution.

    Raises:
        StatusParseError: the document is malformed or an entry is unusable
    """
    if not xml_text.strip():
        return []

    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise StatusParseError(f"Malformed status output: {e}") from e

    entries = []
    for entry in root.iter("entry"):
        path = entry.get("path")
        wc_status = entry.find("wc-status")
        if path is None or wc_status is None:
            raise StatusParseError("Status entry without path or wc-status", {"path": path})

        item = wc_status.get("item", "none")
        try:
            item_kind = ItemKind(item)
        except ValueError:
            raise StatusParseError(f"Unknown status item '{item}' for {path}", {"path": path})

        props = wc_status.get("props", "none")
        tree_conflicted = wc_status.get("tree-conflicted") == "true"
        if tree_conflicted and item_kind != ItemKind.INCOMPLETE:
            item_kind = ItemKind.TREE_CONFLICTED

        entries.append(StatusEntry(
            path=path,
            item_kind=item_kind,
            props_conflicted=props == "conflicted",
            switched=wc_status.get("switched") == "true",
            tree_conflicted=tree_conflicted,
            props_modified=props == "modified",
        ))

    return entries


def classify_status(svn: SvnClient, no_ignore: bool = True) -> List[StatusEntry]:
    """Run a status pass over the working copy and parse it."""
    return parse_status_xml(svn.status(xml=True, no_ignore=no_ignore))


def entry_is_dirty(entry: StatusEntry, rules: IgnoreRuleSet) -> bool:
    """Whether a single entry represents uncommitted relevant content."""
    if entry.props_conflicted or entry.props_modified:
        return True
    if entry.item_kind in CLEAN_KINDS:
        return False
    if entry.item_kind in IGNORABLE_KINDS:
        return not rules.is_fully_ignored(entry.posix_path)
    return True


def is_dirty(svn: SvnClient, root: Path, ignore_file_name: str = ".gitignore") -> bool:
    """
    True unless every status entry is clean or fully ignore-matched.

    Raises:
        IgnoreRulesMissingError: the ignore file is absent from ``root``
    """
    logger = logging.getLogger('svnws.workspace.status')
    rules = IgnoreRuleSet.from_root(root, ignore_file_name)

    for entry in classify_status(svn):
        if entry_is_dirty(entry, rules):
            logger.debug(f"Dirty entry: {entry.path} ({entry.item_kind.value})")
            return True

    return False
