"""Branch creation and listing for the current project."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..errors import BackendCommandError, OperationCancelled, ValidationError
from ..ui import Prompter
from ..validation import validate_folder_name
from .commit import CommitResult
from .context import SvnContext

BRANCH_MESSAGE_PREFIX = "[WS-BRANCH]"


@dataclass
class BranchInfo:
    branch_name: str
    is_current_branch: bool


def create_and_switch_to_branch(ctx: SvnContext, branch_name: str) -> str:
    """
    Branch the working copy's URL at its current revision and switch to it.

    Branching from ``current`` rather than HEAD means local changes apply
    without conflicts.

    Raises:
        ValidationError: invalid name, or the branch already exists
    """
    name = validate_folder_name(branch_name)
    new_branch_url = ctx.branch_url(name)

    if ctx.svn.url_exists(new_branch_url):
        raise ValidationError(f"Branch {name} already exists", {"branch": name})

    source_url = f"{ctx.current_work_copy_url()}@{ctx.current_revision.arg}"
    ctx.svn.copy(source_url, new_branch_url, f"{BRANCH_MESSAGE_PREFIX} Create {name}", parents=True)
    ctx.svn.switch(new_branch_url)
    ctx.refresh_revisions()

    logging.getLogger('svnws.workspace.branches').info(f"Created and switched to branch {name}")
    return name


def create_and_commit_to_branch(
    ctx: SvnContext,
    prompter: Prompter,
    commit_message: Optional[str] = None,
) -> Tuple[str, CommitResult]:
    """
    Ask for a new branch name, move the pending changes there and commit them.

    Keeps asking while the operator wants to try another name.
    """
    while True:
        branch_name = prompter.input("Input New Branch Name:")
        try:
            branch_name = create_and_switch_to_branch(ctx, branch_name)
            break
        except (ValidationError, BackendCommandError) as e:
            prompter.warn(f"Failed to create branch: {e}")
            if not prompter.confirm("Try a different branch name?"):
                raise OperationCancelled()

    prompter.info(f"Now on branch {branch_name}")

    message = commit_message if commit_message and commit_message.strip() else prompter.input_commit_message()
    result = ctx.commit_orchestrator(prompter).commit_with_conflict_resolution(message)
    prompter.info("Local changes committed successfully")
    return branch_name, result


def get_project_branches(ctx: SvnContext, project_name: Optional[str] = None) -> List[BranchInfo]:
    """Trunk followed by every branch of ``project_name`` (the current project by default)."""
    project = project_name or ctx.project_name
    is_current_project = project == ctx.project_name
    current_branch = ctx.current_branch_name() if is_current_project else ""

    branches = [BranchInfo("trunk", is_current_project and current_branch == "trunk")]
    for line in ctx.svn.list(ctx.branches_url(project)):
        if line.endswith("/"):
            name = line.rstrip("/")
            branches.append(BranchInfo(name, is_current_project and name == current_branch))
    return branches
