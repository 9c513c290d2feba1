"""Getting a dirty working copy out of the way before an operation."""

import logging

from ..errors import OperationCancelled
from ..ui import Prompter
from .branches import create_and_commit_to_branch
from .commit import discard_changes
from .context import SvnContext

COMMIT, SAVE_TO_BRANCH, DISCARD, CANCEL = range(4)

CLEAN_CHOICES = (
    "Commit changes and Continue in current branch",
    "Save changes to a new branch (Create a new branch and commit changes there)",
    "Discard changes and Continue (Delete all changes!)",
    "Cancel operation",
)


def ensure_clean_workspace(ctx: SvnContext, prompter: Prompter) -> None:
    """
    Return once the working copy is clean.

    A dirty working copy is committed, saved to a new branch or discarded,
    as the operator picks. Committing in place is not offered in review
    state.

    Raises:
        OperationCancelled: the operator chose to cancel
    """
    if not ctx.is_dirty():
        return

    prompter.warn("Workspace contains uncommitted changes")

    offset = 0
    choices = CLEAN_CHOICES
    if ctx.review_state:
        prompter.warn("Not at the latest revision, can not commit directly to current branch")
        offset = 1
        choices = CLEAN_CHOICES[1:]

    selection = prompter.select("Select an option to handle the dirty workspace:", choices) + offset
    logging.getLogger('svnws.workspace.clean').debug(f"Dirty workspace handling: {CLEAN_CHOICES[selection]}")

    if selection == COMMIT:
        message = prompter.input_commit_message()
        ctx.commit_orchestrator(prompter).commit_with_conflict_resolution(message)
        prompter.info("Local changes committed successfully")
    elif selection == SAVE_TO_BRANCH:
        create_and_commit_to_branch(ctx, prompter)
    elif selection == DISCARD:
        discard_changes(ctx.svn)
        prompter.info("Local changes discarded")
    else:
        raise OperationCancelled()
