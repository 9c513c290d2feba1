"""MCP server exposing SVNWS working-copy operations."""

import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from mcp.server.fastmcp import FastMCP

from .backend import RepositoryAdmin, SubprocessBackend, SvnClient
from .config import Config, load_configuration, validate_configuration
from .errors import ValidationError, error_handler
from .projects import open_workspace
from .refcount import LockDelta, ReferenceCounter
from .repository import get_repo_url
from .ui import PolicyPrompter
from .validation import validate_folder_name
from .workspace import enumerate_conflicts
from .workspace.branches import get_project_branches
from .workspace.revision import ReviewDecision

REVIEW_ACTIONS = {
    "proceed": ReviewDecision.PROCEED.value,
    "branch": ReviewDecision.BRANCH_OFF.value,
    "abort": ReviewDecision.ABORT.value,
}


def setup_logging(config: Config) -> None:
    """Setup logging configuration with structured operation prefixes."""
    class StructuredFormatter(logging.Formatter):
        def format(self, record):
            if hasattr(record, 'operation'):
                record.msg = f"[{record.operation}] {record.msg}"
            return super().format(record)

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    loggers = [
        'svnws.init',
        'svnws.backend',
        'svnws.workspace',
        'svnws.refcount',
        'svnws.repository',
        'svnws.projects',
        'svnws.error_handler',
    ]

    formatter = StructuredFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    for logger_name in loggers:
        logger = logging.getLogger(logger_name)
        logger.setLevel(getattr(logging, config.log_level))

        # MCP owns stdout on the stdio transport, so everything goes to stderr.
        if not logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.propagate = False


def run_tool(operation: str, prompter: Optional[PolicyPrompter], action: Callable[[], Dict[str, Any]]) -> dict:
    """Run one tool body, turning any failure into an error payload."""
    try:
        data = action()
    except Exception as e:
        response = error_handler.handle_error(e, operation).to_dict()
        if prompter is not None:
            response["messages"] = [message for _, message in prompter.messages]
        return response

    if prompter is not None:
        data["messages"] = [message for _, message in prompter.messages]
    return error_handler.create_success_response(operation, data)


def register_tools(server: FastMCP, server_config: Config) -> None:
    """Register MCP tools with the server instance."""

    def prompter_for(**kwargs) -> PolicyPrompter:
        kwargs.setdefault("conflict_policy", server_config.conflict_policy)
        return PolicyPrompter(**kwargs)

    @server.tool()
    def workspace_status(workspace: str) -> dict:
        """
        Report the state of a working copy.

        Args:
            workspace: Path of the working-copy root

        Returns:
            Project, branch, revisions, review state, dirtiness and conflicts
        """
        prompter = prompter_for()

        def action():
            manager = open_workspace(server_config, Path(workspace), prompter)
            ctx = manager.ctx
            return {
                "project": ctx.project_name,
                "branch": ctx.current_branch_name(),
                "current_revision": str(ctx.current_revision),
                "latest_revision": str(ctx.latest_revision),
                "review_state": ctx.review_state,
                "dirty": ctx.is_dirty(),
                "conflicts": [
                    {"path": item.path, "kind": item.kind.value} for item in enumerate_conflicts(ctx.svn)
                ],
            }

        return run_tool("workspace_status", prompter, action)

    @server.tool()
    def commit_changes(
        workspace: str,
        message: str,
        on_review: str = "abort",
        branch_name: Optional[str] = None,
    ) -> dict:
        """
        Commit all relevant changes of a working copy, resolving conflicts by policy.

        Args:
            workspace: Path of the working-copy root
            message: Commit message
            on_review: What to do when behind the latest revision: "proceed", "branch" or "abort"
            branch_name: New branch to commit to when on_review is "branch"

        Returns:
            The commit result ("success" or "no_changes")
        """
        answers = [branch_name] if branch_name else []
        prompter = prompter_for(default_selection=REVIEW_ACTIONS.get(on_review), answers=answers)

        def action():
            if on_review not in REVIEW_ACTIONS:
                raise ValidationError(f"on_review must be one of {sorted(REVIEW_ACTIONS)}")
            result = open_workspace(server_config, Path(workspace), prompter).commit(message)
            return {"result": result.value}

        return run_tool("commit_changes", prompter, action)

    @server.tool()
    def resolve_conflicts(workspace: str, policy: Optional[str] = None) -> dict:
        """
        Resolve every conflict in a working copy.

        Args:
            workspace: Path of the working-copy root
            policy: "mine" keeps local changes, "theirs" takes the repository version

        Returns:
            Number of resolved items
        """
        prompter = prompter_for(conflict_policy=policy or server_config.conflict_policy)

        def action():
            resolved = open_workspace(server_config, Path(workspace), prompter).resolve_conflicts()
            return {"resolved": resolved}

        return run_tool("resolve_conflicts", prompter, action)

    @server.tool()
    def create_branch(workspace: str, branch_name: str) -> dict:
        """
        Branch the working copy at its current revision and switch to the branch.

        Args:
            workspace: Path of the working-copy root
            branch_name: Name of the new branch
        """
        prompter = prompter_for()

        def action():
            name = open_workspace(server_config, Path(workspace), prompter).create_branch(branch_name)
            return {"branch": name}

        return run_tool("create_branch", prompter, action)

    @server.tool()
    def pull(
        workspace: str,
        source: Optional[str] = None,
        on_review: str = "abort",
        branch_name: Optional[str] = None,
    ) -> dict:
        """
        Update to the latest revision, or merge another branch into the current one.

        Args:
            workspace: Path of the working-copy root
            source: Branch to merge from; omit to update the current branch
            on_review: What to do before a merge when behind the latest revision: "proceed", "branch" or "abort"
            branch_name: New branch to merge into when on_review is "branch"
        """
        answers = [branch_name] if branch_name else []
        prompter = prompter_for(default_selection=REVIEW_ACTIONS.get(on_review), answers=answers)

        def action():
            if on_review not in REVIEW_ACTIONS:
                raise ValidationError(f"on_review must be one of {sorted(REVIEW_ACTIONS)}")
            manager = open_workspace(server_config, Path(workspace), prompter)
            if source and manager.ctx.is_dirty():
                raise ValidationError("Working copy has uncommitted changes; commit or discard them first")
            manager.pull(source)
            return {"current_revision": str(manager.ctx.current_revision)}

        return run_tool("pull", prompter, action)

    @server.tool()
    def push(
        workspace: str,
        target: Optional[str] = None,
        message: Optional[str] = None,
        on_review: str = "abort",
        branch_name: Optional[str] = None,
    ) -> dict:
        """
        Switch to another branch and merge the current one into it, or commit in place.

        The merge result is left uncommitted in the working copy.

        Args:
            workspace: Path of the working-copy root
            target: Branch to carry the current branch into; omit to commit instead
            message: Commit message when committing in place
            on_review: Review-state choice when committing in place: "proceed", "branch" or "abort"
            branch_name: New branch to commit to when on_review is "branch"

        Returns:
            The branch the working copy is on afterwards
        """
        answers = [branch_name] if branch_name else []
        prompter = prompter_for(default_selection=REVIEW_ACTIONS.get(on_review), answers=answers)

        def action():
            if on_review not in REVIEW_ACTIONS:
                raise ValidationError(f"on_review must be one of {sorted(REVIEW_ACTIONS)}")
            manager = open_workspace(server_config, Path(workspace), prompter)
            if target and target != manager.ctx.current_branch_name() and manager.ctx.is_dirty():
                raise ValidationError("Working copy has uncommitted changes; commit or discard them first")
            return {"branch": manager.push(target, message)}

        return run_tool("push", prompter, action)

    @server.tool()
    def switch(workspace: str, project_name: Optional[str] = None, branch: Optional[str] = None) -> dict:
        """
        Move a clean working copy to the latest revision of a project's branch.

        Args:
            workspace: Path of the working-copy root
            project_name: Project to move to; defaults to the current one
            branch: Branch to move to; defaults to trunk
        """
        prompter = prompter_for()

        def action():
            manager = open_workspace(server_config, Path(workspace), prompter)
            if manager.ctx.is_dirty():
                raise ValidationError("Working copy has uncommitted changes; commit or discard them first")
            switched = manager.switch(project_name, branch)
            return {"switched": switched, "project": manager.ctx.project_name}

        return run_tool("switch", prompter, action)

    @server.tool()
    def delete_project(workspace: str, project_name: str, force: bool = False, confirm: bool = False) -> dict:
        """
        Delete a project from the repository.

        Without force the project is removed from the latest revision and its
        history is kept. With force its entire history is erased; this also
        requires confirm=True.

        Args:
            workspace: Path of a working copy of another project in the same repository
            project_name: Project to delete
            force: Permanently erase the project's history
            confirm: Confirm a permanent deletion
        """
        prompter = prompter_for(confirm_answer=confirm)

        def action():
            status = open_workspace(server_config, Path(workspace), prompter).delete_project(project_name, force)
            return {"previous_status": status.value}

        return run_tool("delete_project", prompter, action)

    @server.tool()
    def restore_project(workspace: str, project_name: str) -> dict:
        """
        Restore a soft-deleted project from the revision before its deletion.

        Args:
            workspace: Path of a working copy in the same repository
            project_name: Project to restore
        """
        prompter = prompter_for()

        def action():
            restored = open_workspace(server_config, Path(workspace), prompter).restore_project(project_name)
            return {"restored": restored}

        return run_tool("restore_project", prompter, action)

    @server.tool()
    def list_branches(workspace: str, project_name: Optional[str] = None) -> dict:
        """
        List trunk and the branches of a project.

        Args:
            workspace: Path of a working copy in the repository
            project_name: Project to list; defaults to the working copy's project
        """
        prompter = prompter_for()

        def action():
            manager = open_workspace(server_config, Path(workspace), prompter)
            branches = get_project_branches(manager.ctx, project_name)
            return {"branches": [{"name": b.branch_name, "current": b.is_current_branch} for b in branches]}

        return run_tool("list_branches", prompter, action)

    @server.tool()
    def delete_branch(workspace: str, branch_name: str) -> dict:
        """
        Delete a branch of the working copy's project. Trunk and the current branch are protected.

        Args:
            workspace: Path of the working-copy root
            branch_name: Branch to delete
        """
        prompter = prompter_for()

        def action():
            open_workspace(server_config, Path(workspace), prompter).delete_branch(branch_name)
            return {"branch": branch_name}

        return run_tool("delete_branch", prompter, action)

    @server.tool()
    def restore_branch(workspace: str, branch_name: str, switch_to: bool = False) -> dict:
        """
        Restore a deleted branch from the revision before its deletion.

        Args:
            workspace: Path of the working-copy root
            branch_name: Branch to restore
            switch_to: Move the working copy to the restored branch
        """
        prompter = prompter_for(confirm_answer=switch_to)

        def action():
            restored = open_workspace(server_config, Path(workspace), prompter).restore_branch(branch_name)
            return {"restored": restored}

        return run_tool("restore_branch", prompter, action)

    @server.tool()
    def review_revision(workspace: str, revision: str) -> dict:
        """
        Move a clean working copy to an older revision for inspection.

        Args:
            workspace: Path of the working-copy root
            revision: Revision number ("12", "r12") or "HEAD"
        """
        prompter = prompter_for()

        def action():
            manager = open_workspace(server_config, Path(workspace), prompter)
            if manager.ctx.is_dirty():
                raise ValidationError("Working copy has uncommitted changes; commit or discard them first")
            moved = manager.review(revision)
            return {"moved": moved, "current_revision": str(manager.ctx.current_revision)}

        return run_tool("review_revision", prompter, action)

    @server.tool()
    def revert_to_revision(
        workspace: str,
        revision: str,
        on_review: str = "abort",
        branch_name: Optional[str] = None,
    ) -> dict:
        """
        Make the current branch's content equal to an older revision and commit it.

        Args:
            workspace: Path of the working-copy root
            revision: Revision to go back to
            on_review: What to do when behind the latest revision: "proceed", "branch" or "abort"
            branch_name: New branch to revert on when on_review is "branch"
        """
        answers = [branch_name] if branch_name else []
        prompter = prompter_for(default_selection=REVIEW_ACTIONS.get(on_review), answers=answers)

        def action():
            if on_review not in REVIEW_ACTIONS:
                raise ValidationError(f"on_review must be one of {sorted(REVIEW_ACTIONS)}")
            manager = open_workspace(server_config, Path(workspace), prompter)
            if manager.ctx.is_dirty():
                raise ValidationError("Working copy has uncommitted changes; commit or discard them first")
            return {"result": manager.revert(revision).value}

        return run_tool("revert_to_revision", prompter, action)

    @server.tool()
    def new_project(workspace: str, project_name: str) -> dict:
        """
        Create a project (trunk, branches, tags and its ignore file) in the working copy's repository.

        Args:
            workspace: Path of a working copy in the repository
            project_name: Name of the new project
        """
        prompter = prompter_for()

        def action():
            trunk_url = open_workspace(server_config, Path(workspace), prompter).new_project(project_name)
            return {"trunk_url": trunk_url}

        return run_tool("new_project", prompter, action)

    @server.tool()
    def checkout_project(workspace: str, project_name: str) -> dict:
        """
        Check a project's trunk out into the local store.

        Args:
            workspace: Path of a working copy in the repository
            project_name: Project to check out
        """
        prompter = prompter_for()

        def action():
            path = open_workspace(server_config, Path(workspace), prompter).checkout_project(project_name)
            return {"path": str(path)}

        return run_tool("checkout_project", prompter, action)

    @server.tool()
    def init_repository(repo_name: Optional[str] = None) -> dict:
        """
        Return the URL of a local repository, creating it on first use.

        Args:
            repo_name: Repository name; defaults to the configured default repository
        """
        def action():
            backend = SubprocessBackend(server_config)
            url = get_repo_url(server_config, SvnClient(backend), RepositoryAdmin(backend), repo_name)
            return {"url": url}

        return run_tool("init_repository", None, action)

    @server.tool()
    def adjust_project_reference(project_name: str, delta: str) -> dict:
        """
        Adjust the reference count guarding a project's local checkout.

        Args:
            project_name: Project whose counter to adjust
            delta: "increment", "decrement" or "delete_if_zero"

        Returns:
            The new count and whether the checkout may be deleted
        """
        def action():
            name = validate_folder_name(project_name)
            try:
                lock_delta = LockDelta(delta)
            except ValueError:
                raise ValidationError(f"delta must be one of {[d.value for d in LockDelta]}")
            value = ReferenceCounter.for_project(server_config.lock_dir, name).adjust(lock_delta)
            return {"project": name, "count": value, "can_delete": value == 0}

        return run_tool("adjust_project_reference", None, action)

    init_logger = logging.getLogger('svnws.init')
    init_logger.info("MCP tools registered successfully")


def initialize_server() -> FastMCP:
    """Initialize MCP server with stdio transport."""
    try:
        server_config = load_configuration()
        validation_issues = validate_configuration(server_config)

        setup_logging(server_config)
        init_logger = logging.getLogger('svnws.init')

        if validation_issues:
            for issue in validation_issues:
                if issue.startswith("ERROR:"):
                    init_logger.error(issue[7:])
                elif issue.startswith("WARNING:"):
                    init_logger.warning(issue[9:])

            error_count = sum(1 for issue in validation_issues if issue.startswith("ERROR:"))
            if error_count > 0:
                init_logger.critical(f"Server startup failed due to {error_count} configuration error(s)")
                sys.exit(1)

        init_logger.info("Configuration loaded successfully")

        server = FastMCP("SVN Workspace", log_level=server_config.log_level)

        init_logger.info("Registering MCP tools")
        register_tools(server, server_config)

        init_logger.info("SVNWS MCP server initialized successfully")
        return server

    except Exception as e:
        if 'init_logger' not in locals():
            logging.basicConfig(level=logging.ERROR)
            init_logger = logging.getLogger('svnws.init')

        init_logger.critical(f"Server initialization failed: {e}", exc_info=True)
        raise


def main():
    """Main entry point for the SVNWS server with stdio transport."""
    startup_logger = None

    try:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        startup_logger = logging.getLogger('svnws.startup')

        startup_logger.info("=" * 60)
        startup_logger.info("SVN Workspace (SVNWS) MCP Server")
        startup_logger.info("=" * 60)

        python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
        if sys.version_info < (3, 10):
            startup_logger.error(f"Python 3.10+ required, found {python_version}")
            sys.exit(1)

        server = initialize_server()

        startup_logger.info("Starting server with stdio transport")
        server.run(transport="stdio")

    except KeyboardInterrupt:
        if startup_logger:
            startup_logger.info("Server stopped by user (Ctrl+C)")
    except SystemExit:
        raise
    except Exception as e:
        if startup_logger:
            startup_logger.critical(f"Server failed to start: {e}", exc_info=True)
        sys.exit(1)
