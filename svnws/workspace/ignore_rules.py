"""
Ignore-rule matching for working-copy classification.

The project-local ignore file uses gitignore syntax, matched with
``pathspec``. A rule set is compiled from the file on disk for every
classification pass and never cached, since an update may have changed it.
"""

import logging
import os
from pathlib import Path
from typing import Iterator, List, Union

import pathspec

from ..errors import IgnoreRulesMissingError, WorkspaceIOError

SKIPPED_DIRECTORIES = {".svn", ".git"}


def to_relative_posix(path: Union[str, Path], root: Path) -> str:
    """Express ``path`` relative to ``root`` with forward slashes."""
    candidate = Path(path)
    if candidate.is_absolute():
        try:
            candidate = candidate.relative_to(root)
        except ValueError:
            pass
    text = str(candidate).replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    return text


class IgnoreRuleSet:
    """Compiled gitignore-style matcher rooted at a working-copy directory."""

    def __init__(self, root: Path, patterns: List[str]):
        self.root = root
        self.patterns = patterns
        self._spec = pathspec.GitIgnoreSpec.from_lines(patterns)
        self.logger = logging.getLogger('svnws.workspace.ignore_rules')

    @classmethod
    def from_root(cls, root: Path, file_name: str = ".gitignore") -> "IgnoreRuleSet":
        """
        Build the matcher from ``root / file_name``.

        Raises:
            IgnoreRulesMissingError: the ignore file does not exist
            WorkspaceIOError: the ignore file could not be read
        """
        ignore_file = root / file_name
        if not ignore_file.is_file():
            raise IgnoreRulesMissingError(
                f"No {file_name} file found in {root}",
                {"path": str(ignore_file)},
            )

        try:
            content = ignore_file.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise WorkspaceIOError(f"Could not read {ignore_file}: {e}", {"path": str(ignore_file)}) from e

        return cls(root, content.splitlines())

    def matches(self, path: Union[str, Path], is_dir: bool = False) -> bool:
        """True if ``path`` (relative to the root, or absolute beneath it) is ignored."""
        relative = to_relative_posix(path, self.root)
        if not relative or relative == ".":
            return False
        if is_dir and not relative.endswith("/"):
            relative += "/"
        return self._spec.match_file(relative)

    def unignored_files(self, directory: Union[str, Path]) -> Iterator[Path]:
        """Yield every file below ``directory`` that no rule ignores."""
        start = Path(directory)
        if not start.is_absolute():
            start = self.root / start

        for current, dirnames, filenames in os.walk(start):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRECTORIES)
            for filename in sorted(filenames):
                file_path = Path(current) / filename
                if not self.matches(file_path, is_dir=False):
                    yield file_path

    def is_fully_ignored(self, path: Union[str, Path]) -> bool:
        """
        True if ``path`` is ignored and, for a directory, so is every file in it.

        A directory can match a rule while a negated pattern re-includes one
        of its files; such a directory still holds relevant content.
        """
        full_path = Path(path)
        if not full_path.is_absolute():
            full_path = self.root / full_path

        is_dir = full_path.is_dir()
        if not self.matches(full_path, is_dir=is_dir):
            return False
        if is_dir:
            for file_path in self.unignored_files(full_path):
                self.logger.debug(f"Ignored directory {path} contains unignored file {file_path}")
                return False
        return True
