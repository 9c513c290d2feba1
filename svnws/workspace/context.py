"""
Facts about the current working copy and the repository behind it.

URL layout: ``<repo>/<project>/trunk``, ``<repo>/<project>/branches/<name>``
and ``<repo>/<project>/tags/<name>``; the project's ignore file lives at
``<repo>/<project>/<ignore file>``.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

from ..backend import SvnClient
from ..errors import ValidationError, WorkspaceIOError
from ..repository.default_repo import file_url_to_path
from ..ui import Prompter
from .commit import CommitOrchestrator
from .ignore_sync import ensure_ignore_rules_current
from .revision import Revision, RevisionState, parse_revision
from .status import is_dirty


class SvnContext:
    """Working-copy root, repository URL, project and revision state."""

    def __init__(
        self,
        svn: SvnClient,
        root: Path,
        repo_root_url: str,
        project_name: str,
        revisions: RevisionState,
        ignore_file_name: str = ".gitignore",
    ):
        self.svn = svn
        self.root = root
        self.repo_root_url = repo_root_url.rstrip("/")
        self.project_name = project_name
        self.revisions = revisions
        self.ignore_file_name = ignore_file_name
        self.logger = logging.getLogger('svnws.workspace.context')

    @classmethod
    def load(cls, svn: SvnClient, root: Path, ignore_file_name: str = ".gitignore") -> "SvnContext":
        """Read the context of the working copy at ``root``."""
        repo_root_url = unquote(svn.info(item="repos-root-url"))

        relative_url = svn.info(item="relative-url")
        project_part = relative_url.lstrip("^").lstrip("/").split("/")[0]
        if not project_part:
            raise ValidationError("Could not determine project name from relative URL", {"url": relative_url})

        return cls(
            svn=svn,
            root=root,
            repo_root_url=repo_root_url,
            project_name=unquote(project_part),
            revisions=cls.read_revisions(svn),
            ignore_file_name=ignore_file_name,
        )

    @staticmethod
    def read_revisions(svn: SvnClient) -> RevisionState:
        return RevisionState(
            current=parse_revision(svn.info(item="last-changed-revision")),
            latest=parse_revision(svn.info(item="last-changed-revision", revision="HEAD")),
        )

    def refresh_revisions(self) -> RevisionState:
        self.revisions = self.read_revisions(self.svn)
        return self.revisions

    @property
    def current_revision(self) -> Revision:
        return self.revisions.current

    @property
    def latest_revision(self) -> Revision:
        return self.revisions.latest

    @property
    def review_state(self) -> bool:
        return self.revisions.review_state

    @property
    def repo_fs_path(self) -> Path:
        """Repository directory on disk, decoded from the ``file://`` root URL."""
        return file_url_to_path(self.repo_root_url)

    @property
    def repo_name(self) -> str:
        return self.repo_fs_path.name

    def project_root_url(self, project_name: Optional[str] = None) -> str:
        return f"{self.repo_root_url}/{project_name or self.project_name}"

    def trunk_url(self, project_name: Optional[str] = None) -> str:
        return f"{self.project_root_url(project_name)}/trunk"

    def branches_url(self, project_name: Optional[str] = None) -> str:
        return f"{self.project_root_url(project_name)}/branches"

    def branch_url(self, branch_name: str) -> str:
        if branch_name == "trunk":
            return self.trunk_url()
        return f"{self.branches_url()}/{branch_name}"

    def current_work_copy_url(self) -> str:
        return unquote(self.svn.info(item="url"))

    def current_branch_name(self) -> str:
        """``trunk``, the branch name, or ``unknown`` for any other location."""
        prefix = f"{self.project_root_url()}/"
        url = self.current_work_copy_url()
        relative = url[len(prefix):] if url.startswith(prefix) else url

        if relative == "trunk" or relative.startswith("trunk/"):
            return "trunk"
        if relative.startswith("branches/"):
            return relative[len("branches/"):].split("/")[0]
        return "unknown"

    def is_dirty(self) -> bool:
        """Sync the ignore file, then classify the working copy."""
        ensure_ignore_rules_current(self.svn, self.project_name, self.ignore_file_name)
        return is_dirty(self.svn, self.root, self.ignore_file_name)

    def commit_orchestrator(self, prompter: Prompter) -> CommitOrchestrator:
        return CommitOrchestrator(self.svn, prompter, self.root, self.project_name, self.ignore_file_name)

    def check_and_repair_workspace(self) -> bool:
        """
        Re-checkout the working copy if it belongs to a different repository UUID.

        Happens after the repository was rewritten and swapped. Returns True if
        a repair was done.
        """
        local_uuid = self.svn.info(item="repos-uuid")
        remote_uuid = self.svn.info(item="repos-uuid", target=self.repo_root_url)
        if local_uuid == remote_uuid:
            return False

        self.logger.warning(f"Working copy UUID {local_uuid} does not match repository {remote_uuid}; re-checking out")
        work_copy_url = self.current_work_copy_url()

        metadata_dir = self.root / ".svn"
        if metadata_dir.exists():
            try:
                shutil.rmtree(metadata_dir)
            except OSError as e:
                raise WorkspaceIOError(f"Cannot remove {metadata_dir}: {e}", {"path": str(metadata_dir)}) from e

        self.svn.checkout([work_copy_url, ".", "--force"])
        return True
