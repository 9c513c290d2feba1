"""
Project-level operations on the current repository.

Every operation that mutates the working copy first makes sure it is clean
(or asks how to get it there), and every commit made while the working copy
lags behind the latest revision passes through the review gate.
"""

import logging
import os
import xml.etree.ElementTree as ET
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from .backend import RepositoryAdmin, SubprocessBackend, SvnClient
from .config import Config
from .errors import BackendCommandError, OperationCancelled, RevisionParseError, StatusParseError, ValidationError
from .refcount import ReferenceCounter
from .repository import RepositoryPruner
from .ui import Prompter
from .validation import validate_folder_name
from .workspace import (
    CommitResult,
    ConflictResolver,
    ReviewDecision,
    SvnContext,
    gate_history_mutation,
    parse_revision,
)
from .workspace.branches import create_and_commit_to_branch, create_and_switch_to_branch
from .workspace.clean import ensure_clean_workspace
from .workspace.ignore_sync import EXTERNALS_PROPERTY, ignore_link_definition

INIT_MESSAGE_PREFIX = "[WS-INIT]"
ROLLBACK_MESSAGE_PREFIX = "[WS-ROLLBACK]"
REVERT_ANCHOR_PREFIX = "[WS-REVERT]"
BRANCH_DELETE_MESSAGE_PREFIX = "[WS-BRANCH-DELETE]"


class ProjectStatus(Enum):
    ACTIVE = "active"
    DELETED = "deleted"
    NON_EXISTENT = "non_existent"


def parse_log_xml(xml_text: str) -> ET.Element:
    """Parse ``svn log --xml`` output."""
    try:
        return ET.fromstring(xml_text.strip() or "<log/>")
    except ET.ParseError as e:
        raise StatusParseError(f"Malformed log output: {e}") from e


def _top_level_name(repo_path: str) -> str:
    return repo_path.lstrip("/").split("/")[0]


def _find_deletion(log: ET.Element, matches: Callable[[str], bool]) -> Optional[int]:
    # svn log lists newest entries first
    for entry in log.iter("logentry"):
        paths = entry.find("paths")
        if paths is None:
            continue
        for path in paths.iter("path"):
            if path.get("action") == "D" and matches(path.text or ""):
                try:
                    return int(entry.get("revision", ""))
                except ValueError:
                    raise StatusParseError(f"Invalid revision in log entry: {entry.get('revision')!r}")
    return None


def find_deletion_revision(log: ET.Element, project_name: str) -> Optional[int]:
    """Most recent revision in ``log`` that deleted the top-level ``project_name``."""
    return _find_deletion(log, lambda path: _top_level_name(path) == project_name)


def find_branch_deletion_revision(log: ET.Element, project_name: str, branch_name: str) -> Optional[int]:
    """Most recent revision in ``log`` that deleted ``branches/<branch_name>`` of ``project_name``."""
    branch_path = f"/{project_name}/branches/{branch_name}"
    return _find_deletion(log, lambda path: path.rstrip("/") == branch_path)


def open_workspace(config: Config, root: Path, prompter: Prompter) -> "ProjectManager":
    """Wire the real backend to the working copy at ``root``."""
    backend = SubprocessBackend(config, cwd=root)
    ctx = SvnContext.load(SvnClient(backend), root, config.ignore_file_name)
    return ProjectManager(config, ctx, prompter, RepositoryAdmin(backend))


class ProjectManager:
    """Operations on the projects of the repository behind one working copy."""

    def __init__(
        self,
        config: Config,
        ctx: SvnContext,
        prompter: Prompter,
        admin: RepositoryAdmin,
    ):
        self.config = config
        self.ctx = ctx
        self.svn = ctx.svn
        self.prompter = prompter
        self.admin = admin
        self.logger = logging.getLogger('svnws.projects')

    def counter_for(self, project_name: str) -> ReferenceCounter:
        return ReferenceCounter.for_project(self.config.lock_dir, project_name)

    def local_checkout_path(self, project_name: str) -> Path:
        return self.config.store_dir / self.ctx.repo_name / project_name

    # Commit and synchronization

    def commit(self, commit_message: Optional[str] = None) -> CommitResult:
        """Commit the working copy, branching off instead if the operator prefers."""
        if not self.ctx.is_dirty():
            self.prompter.success("No changes need to commit")
            return CommitResult.NO_CHANGES

        decision = gate_history_mutation(self.prompter, self.ctx.revisions)

        if commit_message and commit_message.strip():
            message = commit_message
        else:
            message = self.prompter.input_commit_message()

        if decision == ReviewDecision.BRANCH_OFF:
            _, result = create_and_commit_to_branch(self.ctx, self.prompter, message)
            return result

        result = self.ctx.commit_orchestrator(self.prompter).commit_with_conflict_resolution(message)
        if result == CommitResult.NO_CHANGES:
            self.prompter.success("No changes to commit")
        else:
            self.prompter.success(f"Changes committed successfully. Commit message: {message}")
        self.ctx.refresh_revisions()
        return result

    def resolve_conflicts(self) -> int:
        return ConflictResolver(self.svn, self.prompter, self.ctx.root).resolve_conflicts()

    def pull(self, source: Optional[str] = None) -> None:
        """Update to the latest revision, or merge ``source`` into the current branch."""
        resolver = ConflictResolver(self.svn, self.prompter, self.ctx.root)

        if source and source.strip() and source != self.ctx.current_branch_name():
            source_name = validate_folder_name(source, allow_reserved=True)
            source_url = self.ctx.branch_url(source_name)
            if not self.svn.url_exists(source_url):
                raise ValidationError(f"Source branch {source_name} does not exist", {"branch": source_name})

            ensure_clean_workspace(self.ctx, self.prompter)
            if gate_history_mutation(self.prompter, self.ctx.revisions) == ReviewDecision.BRANCH_OFF:
                create_and_switch_to_branch(self.ctx, self.prompter.input("Input New Branch Name:"))
            self.svn.merge(["--accept", "postpone", source_url, "."])
            resolver.resolve_conflicts()
            self.prompter.success(f"Successfully pulled from {source_name}")
        else:
            self.svn.update(["--accept", "postpone"])
            resolver.resolve_conflicts()
            self.prompter.success("Successfully updated to latest revision")

        self.ctx.refresh_revisions()

    def push(self, target: Optional[str] = None, commit_message: Optional[str] = None) -> str:
        """
        Carry the current branch over into ``target``.

        The working copy is switched to ``target`` and the branch it was on is
        merged in, leaving the merge result uncommitted for review. Without a
        target, or with the current branch as target, this is a plain commit.

        Returns:
            Name of the branch the working copy is on afterwards
        """
        current_branch = self.ctx.current_branch_name()
        if not (target and target.strip() and target != current_branch):
            self.commit(commit_message)
            return current_branch

        target_name = validate_folder_name(target, allow_reserved=True)
        target_url = self.ctx.branch_url(target_name)
        if not self.svn.url_exists(target_url):
            raise ValidationError(f"Target branch {target_name} does not exist", {"branch": target_name})

        ensure_clean_workspace(self.ctx, self.prompter)

        source_url = self.ctx.current_work_copy_url()
        self.svn.switch(target_url)
        self.svn.merge(["--accept", "postpone", source_url, "."])
        ConflictResolver(self.svn, self.prompter, self.ctx.root).resolve_conflicts()
        self.ctx.refresh_revisions()

        self.prompter.success(f"Successfully pushed to {target_name}")
        self.prompter.info(f"Now on branch {target_name}")
        return target_name

    # History

    def review(self, revision_text: str) -> bool:
        """Move the working copy to an older revision for inspection."""
        target = parse_revision(revision_text)
        if target > self.ctx.latest_revision:
            raise RevisionParseError(
                f"Target revision {target} is newer than latest revision {self.ctx.latest_revision}",
                {"revision": revision_text},
            )

        ensure_clean_workspace(self.ctx, self.prompter)
        try:
            self.svn.update(["-r", target.arg])
        except BackendCommandError:
            self.prompter.warn(
                "SVN update failed, maybe the target revision is too small and the project did not exist at that time"
            )
            return False

        self.ctx.refresh_revisions()
        self.prompter.success(f"Review history for revision {target}")
        return True

    def revert(self, revision_text: str) -> CommitResult:
        """
        Make the current branch's content equal to an older revision.

        The old state is anchored under ``tags/`` first, then merged back in
        reverse and committed.
        """
        target = parse_revision(revision_text)
        if target >= self.ctx.latest_revision:
            raise RevisionParseError(
                f"Target revision {target} is not older than latest revision {self.ctx.latest_revision}",
                {"revision": revision_text},
            )

        ensure_clean_workspace(self.ctx, self.prompter)
        # A new branch does not exist at the target revision, so anchor from the line it was cut from.
        history_url = self.ctx.current_work_copy_url()
        if gate_history_mutation(self.prompter, self.ctx.revisions) == ReviewDecision.BRANCH_OFF:
            create_and_switch_to_branch(self.ctx, self.prompter.input("Input New Branch Name:"))

        tag_name = f"rollback-{datetime.now().strftime('%Y%m%d-%H%M%S')}"
        tag_url = f"{self.ctx.project_root_url()}/tags/{tag_name}"
        source_url = f"{history_url}@{target.arg}"
        self.svn.copy(source_url, tag_url, f"{REVERT_ANCHOR_PREFIX} Anchor for revert: {tag_name}", parents=True)

        try:
            self.svn.merge(["-r", f"HEAD:{target.arg}", "."])
        except BackendCommandError:
            self.prompter.warn("Merge failed, restoring local state")
            self.svn.revert(["."], recursive=True)
            raise

        result = self.ctx.commit_orchestrator(self.prompter).commit_with_conflict_resolution(
            f"{ROLLBACK_MESSAGE_PREFIX} tags/{tag_name}"
        )
        self.ctx.refresh_revisions()
        self.prompter.success(f"Reverted to revision {target}")
        return result

    # Branches

    def create_branch(self, branch_name: str) -> str:
        name = create_and_switch_to_branch(self.ctx, branch_name)
        self.prompter.success(f"Now on branch {name}")
        return name

    def delete_branch(self, branch_name: str) -> None:
        name = validate_folder_name(branch_name, allow_reserved=True)
        if name == "trunk":
            raise ValidationError("Cannot delete trunk branch")
        if name == self.ctx.current_branch_name():
            raise ValidationError("Cannot delete current branch")

        branch_url = self.ctx.branch_url(name)
        if not self.svn.url_exists(branch_url):
            raise ValidationError(f"Branch {name} does not exist", {"branch": name})

        self.svn.delete([branch_url, "-m", f"{BRANCH_DELETE_MESSAGE_PREFIX} Delete {name}"])
        self.prompter.success(f"Branch {name} deleted successfully")

    def restore_branch(self, branch_name: str) -> bool:
        """
        Copy a deleted branch back from the revision before its deletion.

        Offers to switch to it afterwards. Returns False if the branch
        already exists.
        """
        name = validate_folder_name(branch_name)
        branch_url = self.ctx.branch_url(name)
        if self.svn.url_exists(branch_url):
            self.prompter.warn(f"Branch {name} already exists")
            return False

        log = parse_log_xml(self.svn.log(["-v", "-q", "--xml", self.ctx.branches_url()]))
        deleted_rev = find_branch_deletion_revision(log, self.ctx.project_name, name)
        if not deleted_rev:
            raise ValidationError(f"No deleted branch named {name} found in history", {"branch": name})

        self.svn.copy(f"{branch_url}@{deleted_rev - 1}", branch_url, f"Restore branch {name}")
        self.prompter.success(f"Branch {name} restored successfully")

        if self.prompter.confirm("Switch to the restored branch?"):
            self.switch(branch=name)
        return True

    def switch(self, project_name: Optional[str] = None, branch: Optional[str] = None) -> bool:
        """
        Move the working copy to the latest revision of a project's branch.

        ``project_name`` defaults to the current project and ``branch`` to
        trunk, so a bare call leaves review state. Returns False when already
        there.
        """
        target_project = validate_folder_name(project_name or self.ctx.project_name, allow_reserved=True)
        target_branch = validate_folder_name(branch or "trunk", allow_reserved=True)
        subpath = "trunk" if target_branch == "trunk" else f"branches/{target_branch}"
        target_url = f"{self.ctx.project_root_url(target_project)}/{subpath}"

        if not self.svn.url_exists(target_url):
            raise ValidationError(
                f"Project {target_project} or its {subpath} does not exist",
                {"project": target_project, "branch": target_branch},
            )

        if target_url == self.ctx.current_work_copy_url() and not self.ctx.review_state:
            self.prompter.success(f"Already on the latest revision of project {target_project}, branch {subpath}")
            return False

        ensure_clean_workspace(self.ctx, self.prompter)
        self.svn.cleanup()
        self.svn.switch(target_url)
        self.svn.cleanup()

        if target_project != self.ctx.project_name:
            self.logger.info(f"Working copy moved from project {self.ctx.project_name} to {target_project}")
            self.ctx.project_name = target_project
        self.ctx.refresh_revisions()

        self.prompter.success(f"Switched to the latest revision of project {target_project}, branch: {subpath}")
        return True

    # Projects

    def check_project_exists(self, project_name: str, only_active: bool = False) -> ProjectStatus:
        if self.svn.url_exists(self.ctx.project_root_url(project_name)):
            return ProjectStatus.ACTIVE
        if only_active:
            return ProjectStatus.NON_EXISTENT

        log = parse_log_xml(self.svn.log(["-v", "-q", "--xml", self.ctx.repo_root_url]))
        for path in log.iter("path"):
            if _top_level_name(path.text or "") == project_name:
                return ProjectStatus.DELETED
        return ProjectStatus.NON_EXISTENT

    def new_project(self, project_name: str) -> str:
        """Create trunk/branches/tags and the project ignore file; returns the trunk URL."""
        name = validate_folder_name(project_name)
        project_url = self.ctx.project_root_url(name)
        trunk_url = f"{project_url}/trunk"

        if self.svn.url_exists(project_url):
            self.prompter.success(f"Project {name} already exists, nothing to do.")
            return trunk_url

        self.svn.mkdir(
            [trunk_url, f"{project_url}/branches", f"{project_url}/tags"],
            f"{INIT_MESSAGE_PREFIX} {name}",
            parents=True,
        )
        self.svn.svnmucc([
            "put", os.devnull, f"{project_url}/{self.ctx.ignore_file_name}",
            "-m", f"{INIT_MESSAGE_PREFIX} Add default {self.ctx.ignore_file_name} file",
        ])
        self.prompter.success(f"Project {name} created successfully")
        return trunk_url

    def checkout_project(self, project_name: str) -> Path:
        """Check a project's trunk out into the store and link its ignore file."""
        name = validate_folder_name(project_name)
        target = self.local_checkout_path(name)
        target.parent.mkdir(parents=True, exist_ok=True)

        self.svn.checkout([self.ctx.trunk_url(name), str(target)])
        self.svn.propset(EXTERNALS_PROPERTY, ignore_link_definition(name, self.ctx.ignore_file_name), str(target))
        self.svn.update([str(target)])
        self.svn.commit(f"Update svn:externals for {self.ctx.ignore_file_name}", [str(target)])
        return target

    def delete_project(self, project_name: str, force: bool = False) -> ProjectStatus:
        """
        Soft-delete a project, or erase its history entirely with ``force``.

        Returns the project's status before the call.
        """
        if project_name == self.ctx.project_name:
            raise ValidationError("Cannot delete the current project. Please switch to another project first")
        name = validate_folder_name(project_name)

        status = self.check_project_exists(name)
        if status == ProjectStatus.NON_EXISTENT:
            self.prompter.info(f"The project {name} does not exist")
        elif force:
            self.force_delete_project(name)
        elif status == ProjectStatus.ACTIVE:
            self.prompter.info("This will remove the project in the latest revision, but history will be preserved.")
            self.svn.delete([self.ctx.project_root_url(name), "-m", f"Delete project {name}"])
            self.prompter.success(f"Project {name} is marked as deleted")
        else:
            self.prompter.success(f"Project {name} is already deleted")
        return status

    def force_delete_project(self, project_name: str) -> Path:
        """Rewrite the repository without ``project_name``; returns the backup path."""
        if self.ctx.review_state:
            self.prompter.warn("Not at the latest revision. Need to update to the latest revision first.")
            if not self.prompter.confirm("Continue to update?"):
                raise OperationCancelled()
            ensure_clean_workspace(self.ctx, self.prompter)
            self.svn.update(["--accept", "postpone"])
            ConflictResolver(self.svn, self.prompter, self.ctx.root).resolve_conflicts()
            self.ctx.refresh_revisions()

        if not self.counter_for(project_name).can_delete():
            raise ValidationError(
                f"Project {project_name} is still in use by another session",
                {"project": project_name},
            )

        self.prompter.warn("This operation will rewrite the entire repository history")
        self.prompter.warn(f"Project {project_name} will be permanently removed and cannot be restored")
        if not self.prompter.confirm(f"Confirm to PERMANENTLY delete project {project_name}"):
            raise OperationCancelled()

        pruner = RepositoryPruner(self.admin, self.prompter)
        return pruner.force_delete(
            self.ctx.repo_fs_path,
            project_name,
            repair_workspace=self.ctx.check_and_repair_workspace,
            local_checkout=self.local_checkout_path(project_name),
        )

    def restore_project(self, project_name: str) -> bool:
        """Copy a soft-deleted project back from the revision before its deletion."""
        name = validate_folder_name(project_name)
        if self.check_project_exists(name, only_active=True) == ProjectStatus.ACTIVE:
            self.prompter.success(f"Project {name} is not deleted, no need to restore")
            return False

        log = parse_log_xml(self.svn.log(["-v", "-q", "--xml", self.ctx.repo_root_url]))
        deleted_rev = find_deletion_revision(log, name)
        if not deleted_rev:
            raise ValidationError(f"Could not find deletion record for project {name}", {"project": name})

        project_url = self.ctx.project_root_url(name)
        self.svn.copy(f"{project_url}@{deleted_rev - 1}", project_url, f"Restore project {name}")
        self.prompter.success(f"Project {name} has been restored successfully")
        return True
