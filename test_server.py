#!/usr/bin/env python3
"""
Tests for the MCP tool layer.

Tools are registered on a recording stand-in for FastMCP and called
directly; the working copy behind them is mocked out.
"""

import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from svnws.config import Config
from svnws.errors import BackendCommandError, IncompleteWorkingCopyError
from svnws.projects import ProjectStatus
from svnws.server import register_tools
from svnws.workspace import CommitResult, ConflictItem, ConflictKind, Revision
from svnws.workspace.branches import BranchInfo


class RecordingServer:
    """Collects the functions registered through ``@server.tool()``."""

    def __init__(self):
        self.tools = {}

    def tool(self):
        def decorator(func):
            self.tools[func.__name__] = func
            return func
        return decorator


class TestServerTools(unittest.TestCase):
    """Test cases for the registered MCP tools."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config = Config(
            store_dir=self.temp_dir / "store",
            repo_dir=self.temp_dir / "repos",
            conflict_policy="mine",
        )
        self.server = RecordingServer()
        register_tools(self.server, self.config)
        self.tools = self.server.tools

        patcher = patch("svnws.server.open_workspace")
        self.open_workspace = patcher.start()
        self.addCleanup(patcher.stop)
        self.manager = MagicMock()
        self.open_workspace.return_value = self.manager

    def tearDown(self):
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def _prompter(self):
        return self.open_workspace.call_args[0][2]

    def test_all_tools_registered(self):
        self.assertEqual(
            set(self.tools),
            {
                "workspace_status",
                "commit_changes",
                "resolve_conflicts",
                "create_branch",
                "pull",
                "push",
                "switch",
                "restore_branch",
                "delete_project",
                "restore_project",
                "list_branches",
                "delete_branch",
                "review_revision",
                "revert_to_revision",
                "new_project",
                "checkout_project",
                "init_repository",
                "adjust_project_reference",
            },
        )

    def test_workspace_status(self):
        ctx = self.manager.ctx
        ctx.project_name = "alpha"
        ctx.current_branch_name.return_value = "trunk"
        ctx.current_revision = Revision(5)
        ctx.latest_revision = Revision(9)
        ctx.review_state = True
        ctx.is_dirty.return_value = False

        with patch("svnws.server.enumerate_conflicts", return_value=[ConflictItem("a.txt", ConflictKind.STANDARD)]):
            response = self.tools["workspace_status"]("/work/alpha")

        self.assertTrue(response["success"])
        data = response["data"]
        self.assertEqual(data["project"], "alpha")
        self.assertEqual(data["current_revision"], "r5")
        self.assertTrue(data["review_state"])
        self.assertEqual(data["conflicts"], [{"path": "a.txt", "kind": "standard"}])
        self.assertEqual(self.open_workspace.call_args[0][1], Path("/work/alpha"))

    def test_commit_changes(self):
        self.manager.commit.return_value = CommitResult.SUCCESS

        response = self.tools["commit_changes"]("/work/alpha", "fix typo", on_review="branch", branch_name="fix")

        self.assertEqual(response["data"]["result"], "success")
        self.manager.commit.assert_called_once_with("fix typo")
        prompter = self._prompter()
        self.assertEqual(prompter.default_selection, 1)
        self.assertEqual(list(prompter.answers), ["fix"])

    def test_commit_changes_rejects_unknown_review_action(self):
        response = self.tools["commit_changes"]("/work/alpha", "msg", on_review="maybe")

        self.assertEqual(response["error_code"], "VALIDATION_ERROR")
        self.open_workspace.assert_not_called()

    def test_resolve_conflicts_uses_requested_policy(self):
        self.manager.resolve_conflicts.return_value = 3

        response = self.tools["resolve_conflicts"]("/work/alpha", policy="theirs")

        self.assertEqual(response["data"]["resolved"], 3)
        self.assertEqual(self._prompter().conflict_policy, "theirs")

    def test_incomplete_working_copy_is_reported(self):
        self.manager.resolve_conflicts.side_effect = IncompleteWorkingCopyError("sub")

        response = self.tools["resolve_conflicts"]("/work/alpha")

        self.assertEqual(response["error_code"], "WORKING_COPY_INCOMPLETE")
        self.assertEqual(response["category"], "incomplete")
        self.assertEqual(response["context"]["path"], "sub")

    def test_backend_failure_is_reported(self):
        self.open_workspace.side_effect = BackendCommandError(["svn", "info"], 1, "", "not a working copy")

        response = self.tools["pull"]("/tmp/nowhere")

        self.assertEqual(response["error_code"], "BACKEND_COMMAND_FAILED")
        self.assertEqual(response["category"], "backend")

    def test_pull_merge_passes_review_choice(self):
        self.manager.ctx.is_dirty.return_value = False

        response = self.tools["pull"]("/work/alpha", source="feature", on_review="branch", branch_name="side")

        self.assertTrue(response["success"])
        self.manager.pull.assert_called_once_with("feature")
        prompter = self._prompter()
        self.assertEqual(prompter.default_selection, 1)
        self.assertEqual(list(prompter.answers), ["side"])

    def test_pull_merge_requires_clean_working_copy(self):
        self.manager.ctx.is_dirty.return_value = True

        response = self.tools["pull"]("/work/alpha", source="feature")

        self.assertEqual(response["error_code"], "VALIDATION_ERROR")
        self.manager.pull.assert_not_called()

    def test_push_to_branch(self):
        self.manager.ctx.current_branch_name.return_value = "trunk"
        self.manager.ctx.is_dirty.return_value = False
        self.manager.push.return_value = "release"

        response = self.tools["push"]("/work/alpha", target="release")

        self.assertEqual(response["data"]["branch"], "release")
        self.manager.push.assert_called_once_with("release", None)

    def test_push_without_target_commits_dirty_working_copy(self):
        self.manager.ctx.is_dirty.return_value = True
        self.manager.push.return_value = "trunk"

        response = self.tools["push"]("/work/alpha", message="work")

        self.assertTrue(response["success"])
        self.manager.push.assert_called_once_with(None, "work")

    def test_switch(self):
        self.manager.ctx.is_dirty.return_value = False
        self.manager.ctx.project_name = "beta"
        self.manager.switch.return_value = True

        response = self.tools["switch"]("/work/alpha", project_name="beta")

        self.assertEqual(response["data"], {"switched": True, "project": "beta", "messages": []})
        self.manager.switch.assert_called_once_with("beta", None)

    def test_switch_requires_clean_working_copy(self):
        self.manager.ctx.is_dirty.return_value = True

        response = self.tools["switch"]("/work/alpha", branch="feature")

        self.assertEqual(response["error_code"], "VALIDATION_ERROR")
        self.manager.switch.assert_not_called()

    def test_restore_branch(self):
        self.manager.restore_branch.return_value = True

        response = self.tools["restore_branch"]("/work/alpha", "old", switch_to=True)

        self.assertTrue(response["data"]["restored"])
        self.manager.restore_branch.assert_called_once_with("old")
        self.assertTrue(self._prompter().confirm_answer)

    def test_delete_project_passes_confirmation(self):
        self.manager.delete_project.return_value = ProjectStatus.ACTIVE

        response = self.tools["delete_project"]("/work/alpha", "beta", force=True, confirm=True)

        self.assertEqual(response["data"]["previous_status"], "active")
        self.manager.delete_project.assert_called_once_with("beta", True)
        self.assertTrue(self._prompter().confirm_answer)

    def test_restore_project(self):
        self.manager.restore_project.return_value = True

        response = self.tools["restore_project"]("/work/alpha", "beta")

        self.assertTrue(response["data"]["restored"])

    def test_list_branches(self):
        with patch("svnws.server.get_project_branches") as branches:
            branches.return_value = [BranchInfo("trunk", True), BranchInfo("feature", False)]
            response = self.tools["list_branches"]("/work/alpha")

        self.assertEqual(
            response["data"]["branches"],
            [{"name": "trunk", "current": True}, {"name": "feature", "current": False}],
        )
        branches.assert_called_once_with(self.manager.ctx, None)

    def test_review_revision_requires_clean_working_copy(self):
        self.manager.ctx.is_dirty.return_value = True

        response = self.tools["review_revision"]("/work/alpha", "3")

        self.assertEqual(response["error_code"], "VALIDATION_ERROR")
        self.manager.review.assert_not_called()

    def test_revert_to_revision(self):
        self.manager.ctx.is_dirty.return_value = False
        self.manager.revert.return_value = CommitResult.SUCCESS

        response = self.tools["revert_to_revision"]("/work/alpha", "3", on_review="proceed")

        self.assertEqual(response["data"]["result"], "success")
        self.manager.revert.assert_called_once_with("3")
        self.assertEqual(self._prompter().default_selection, 0)

    def test_new_and_checkout_project(self):
        self.manager.new_project.return_value = "file:///srv/repo/gamma/trunk"
        self.manager.checkout_project.return_value = Path("/store/repo/gamma")

        self.assertEqual(
            self.tools["new_project"]("/work/alpha", "gamma")["data"]["trunk_url"],
            "file:///srv/repo/gamma/trunk",
        )
        self.assertEqual(self.tools["checkout_project"]("/work/alpha", "gamma")["data"]["path"], str(Path("/store/repo/gamma")))

    def test_init_repository(self):
        with patch("svnws.server.get_repo_url", return_value="file:///srv/repo") as get_url:
            response = self.tools["init_repository"]()

        self.assertEqual(response["data"]["url"], "file:///srv/repo")
        self.assertIs(get_url.call_args[0][0], self.config)
        self.assertIsNone(get_url.call_args[0][3])

    def test_adjust_project_reference(self):
        adjust = self.tools["adjust_project_reference"]

        self.assertEqual(adjust("beta", "increment")["data"]["count"], 1)
        response = adjust("beta", "delete_if_zero")
        self.assertEqual(response["data"]["count"], 1)
        self.assertFalse(response["data"]["can_delete"])
        self.assertTrue(adjust("beta", "decrement")["data"]["can_delete"])
        self.assertTrue((self.config.lock_dir / "beta.lock").exists())

    def test_adjust_project_reference_validation(self):
        self.assertEqual(self.tools["adjust_project_reference"]("beta", "double")["error_code"], "VALIDATION_ERROR")
        self.assertEqual(self.tools["adjust_project_reference"]("../x", "increment")["error_code"], "VALIDATION_ERROR")


if __name__ == "__main__":
    unittest.main()
