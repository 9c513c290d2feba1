"""
Keep the project's ignore file linked, current and under version control.

Each project stores its canonical ignore file at ``^/<project>/<file>``; a
working copy of any branch links it in through an ``svn:externals`` file
external on the working-copy root.
"""

import logging
from typing import Iterable, Optional

from ..backend import SvnClient
from .status import ItemKind, StatusEntry, parse_status_xml

EXTERNALS_PROPERTY = "svn:externals"


def ignore_link_definition(project_name: str, file_name: str = ".gitignore") -> str:
    """The ``svn:externals`` value linking the project's ignore file."""
    return f"^/{project_name}/{file_name} {file_name}"


def find_ignore_entry(entries: Iterable[StatusEntry], file_name: str) -> Optional[StatusEntry]:
    for entry in entries:
        if entry.posix_path == file_name:
            return entry
    return None


def relink_ignore_file(svn: SvnClient, project_name: str, file_name: str = ".gitignore") -> None:
    """Drop and re-establish the ignore-file external after its target drifted."""
    logger = logging.getLogger('svnws.workspace.ignore_sync')
    logger.info(f"Re-pointing {file_name} link to ^/{project_name}/{file_name}")

    svn.propdel(EXTERNALS_PROPERTY, ".")
    svn.update(["."])
    svn.propset(EXTERNALS_PROPERTY, ignore_link_definition(project_name, file_name), ".")
    svn.update(["."])


def ensure_ignore_rules_current(svn: SvnClient, project_name: str, file_name: str = ".gitignore") -> None:
    """
    Make the local ignore file the version the repository has.

    * No status entry: the link does not exist yet. Set it, commit the
      property change and update so the file appears.
    * Entry switched: the link points somewhere else. Re-establish it.
    * Otherwise: update the file keeping the working version, and commit it
      if it was modified locally.

    Safe to call repeatedly.
    """
    logger = logging.getLogger('svnws.workspace.ignore_sync')
    entry = find_ignore_entry(parse_status_xml(svn.status([file_name])), file_name)

    if entry is None:
        logger.info(f"Linking {file_name} from project root of {project_name}")
        svn.propset(EXTERNALS_PROPERTY, ignore_link_definition(project_name, file_name), ".")
        svn.commit(f"Update svn:externals for {file_name}", ["."])
        svn.update(["."])
        return

    if entry.switched:
        relink_ignore_file(svn, project_name, file_name)
        return

    svn.update([file_name, "--accept", "working"])
    if entry.item_kind == ItemKind.MODIFIED:
        logger.info(f"Committing local changes to {file_name}")
        svn.commit(f"Auto update {file_name}", [file_name])


def repoint_drifted_ignore_link(
    svn: SvnClient,
    project_name: str,
    entries: Iterable[StatusEntry],
    file_name: str = ".gitignore",
) -> bool:
    """Re-establish the ignore link if ``entries`` report it switched. Returns True if it did."""
    entry = find_ignore_entry(entries, file_name)
    if entry is not None and entry.switched:
        relink_ignore_file(svn, project_name, file_name)
        return True
    return False
