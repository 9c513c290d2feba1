#!/usr/bin/env python3
"""
Unit tests for interactive conflict resolution.

The backend is scripted so the first status pass reports conflicts and the
following passes report what is left after each transition.
"""

import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock

from svn_fakes import CLEAN_STATUS, make_svn, status_xml

from svnws.errors import IncompleteWorkingCopyError, OperationCancelled
from svnws.ui import KEEP_MINE, PolicyPrompter, Prompter
from svnws.workspace.conflicts import (
    ConflictItem,
    ConflictKind,
    ConflictResolver,
    conflict_kind_of,
    enumerate_conflicts,
)
from svnws.workspace.status import parse_status_xml

ADD = ["add", "--parents", "--depth", "empty", "--force"]


class TestConflictResolution(unittest.TestCase):
    """Test cases for ConflictResolver."""

    def setUp(self):
        self.root = Path(tempfile.mkdtemp())
        self.backend, self.svn = make_svn()

    def tearDown(self):
        if self.root.exists():
            shutil.rmtree(self.root)

    def _status_sequence(self, *documents):
        self.backend.on("status", "--xml", stdout=list(documents))

    def _resolver(self, prompter):
        return ConflictResolver(self.svn, prompter, self.root)

    def test_nothing_to_resolve(self):
        self._status_sequence(CLEAN_STATUS)
        prompter = PolicyPrompter()

        self.assertEqual(self._resolver(prompter).resolve_conflicts(), 0)
        self.assertEqual(prompter.prompts, [])
        self.assertEqual(self.backend.svn_calls("resolve"), [])

    def test_enumeration_skips_ignore_pass(self):
        self._status_sequence(status_xml(("a.txt", "conflicted"), ("b.txt", "modified")))

        conflicts = enumerate_conflicts(self.svn)

        self.assertEqual(conflicts, [ConflictItem("a.txt", ConflictKind.STANDARD)])
        self.assertEqual(self.backend.svn_calls("status"), [["status", "--xml"]])

    def test_conflict_kinds(self):
        entries = parse_status_xml(status_xml(
            ("a", "conflicted"),
            ("b", "normal", {"props": "conflicted"}),
            ("c", "deleted", {"tree-conflicted": "true"}),
            ("d", "obstructed"),
            ("e", "incomplete"),
            ("f", "modified"),
        ))
        self.assertEqual(
            [conflict_kind_of(e) for e in entries],
            [
                ConflictKind.STANDARD,
                ConflictKind.STANDARD,
                ConflictKind.TREE_CONFLICT,
                ConflictKind.OBSTRUCTED,
                ConflictKind.INCOMPLETE,
                None,
            ],
        )

    def test_standard_keep_and_discard(self):
        self._status_sequence(status_xml(("a.txt", "conflicted")), CLEAN_STATUS)
        self.assertEqual(self._resolver(PolicyPrompter("mine")).resolve_conflicts(), 1)
        self.assertEqual(self.backend.svn_calls("resolve"), [["resolve", "--accept", "mine-full", "a.txt"]])

        self.backend, self.svn = make_svn()
        self._status_sequence(status_xml(("a.txt", "conflicted")), CLEAN_STATUS)
        self._resolver(PolicyPrompter("theirs")).resolve_conflicts()
        self.assertEqual(self.backend.svn_calls("resolve"), [["resolve", "--accept", "theirs-full", "a.txt"]])

    def test_standard_resolution_content(self):
        target = self.root / "a.txt"
        target.write_text("<<<<<<< .mine\nmine\n=======\ntheirs\n>>>>>>> .r6\n")

        def resolve(args):
            target.write_text("mine\n" if args[2] == "mine-full" else "theirs\n")

        self.backend.on("resolve", effect=resolve)
        self._status_sequence(status_xml(("a.txt", "conflicted")), CLEAN_STATUS)
        self._resolver(PolicyPrompter("mine")).resolve_conflicts()
        self.assertEqual(target.read_text(), "mine\n")

        self._status_sequence(status_xml(("a.txt", "conflicted")), CLEAN_STATUS)
        self._resolver(PolicyPrompter("theirs")).resolve_conflicts()
        self.assertEqual(target.read_text(), "theirs\n")

    def test_tree_conflict_keep(self):
        self._status_sequence(status_xml(("docs", "deleted", {"tree-conflicted": "true"})), CLEAN_STATUS)

        self._resolver(PolicyPrompter("mine")).resolve_conflicts()

        self.assertEqual(self.backend.svn_command_names()[1:3], ["resolve", "add"])
        self.assertEqual(self.backend.svn_calls("resolve"), [["resolve", "--accept", "working", "docs"]])
        self.assertEqual(self.backend.svn_calls("add"), [ADD + ["docs"]])

    def test_tree_conflict_discard(self):
        self._status_sequence(status_xml(("docs", "deleted", {"tree-conflicted": "true"})), CLEAN_STATUS)

        self._resolver(PolicyPrompter("theirs")).resolve_conflicts()

        self.assertEqual(self.backend.svn_command_names()[1:4], ["resolve", "revert", "update"])
        self.assertEqual(self.backend.svn_calls("revert"), [["revert", "-R", "docs"]])
        self.assertEqual(self.backend.svn_calls("update"), [["update", "docs"]])

    def test_obstructed_keep(self):
        self._status_sequence(status_xml(("lib", "obstructed")), CLEAN_STATUS)

        self._resolver(PolicyPrompter("mine")).resolve_conflicts()

        self.assertEqual(self.backend.svn_calls("delete"), [["delete", "--keep-local", "--force", "lib"]])
        self.assertEqual(self.backend.svn_calls("add"), [ADD + ["lib"]])

    def test_obstructed_discard_removes_local_item(self):
        obstruction = self.root / "lib"
        obstruction.mkdir()
        (obstruction / "stray.txt").write_text("local")
        self._status_sequence(status_xml(("lib", "obstructed")), CLEAN_STATUS)

        self._resolver(PolicyPrompter("theirs")).resolve_conflicts()

        self.assertFalse(obstruction.exists())
        self.assertEqual(self.backend.svn_calls("revert"), [["revert", "lib"]])
        self.assertEqual(self.backend.svn_calls("update"), [["update", "lib"]])

    def test_incomplete_aborts_before_any_prompt(self):
        self._status_sequence(status_xml(("a.txt", "conflicted"), ("sub", "incomplete")))
        prompter = PolicyPrompter("mine")

        with self.assertRaises(IncompleteWorkingCopyError) as caught:
            self._resolver(prompter).resolve_conflicts()

        self.assertEqual(caught.exception.path, "sub")
        self.assertEqual(prompter.prompts, [])
        self.assertEqual(self.backend.svn_calls("resolve"), [])

    def test_new_conflicts_are_picked_up(self):
        self._status_sequence(
            status_xml(("a.txt", "conflicted")),
            status_xml(("b.txt", "conflicted")),
            CLEAN_STATUS,
        )
        prompter = PolicyPrompter("mine")

        self.assertEqual(self._resolver(prompter).resolve_conflicts(), 2)
        self.assertEqual(prompter.prompts, ["Conflict in file: a.txt", "Conflict in file: b.txt"])

    def test_second_pass_is_a_no_op(self):
        self._status_sequence(status_xml(("a.txt", "conflicted")), CLEAN_STATUS)
        resolver = self._resolver(PolicyPrompter("mine"))

        self.assertEqual(resolver.resolve_conflicts(), 1)
        calls_after_first_pass = len(self.backend.calls)

        self.assertEqual(resolver.resolve_conflicts(), 0)
        self.assertEqual(self.backend.svn_command_names()[calls_after_first_pass:], ["status"])

    def test_cancel_keeps_earlier_resolutions(self):
        self._status_sequence(status_xml(("a.txt", "conflicted"), ("b.txt", "conflicted")))
        prompter = Mock(spec=Prompter)
        prompter.select.side_effect = [KEEP_MINE, OperationCancelled()]

        with self.assertRaises(OperationCancelled):
            self._resolver(prompter).resolve_conflicts()

        self.assertEqual(self.backend.svn_calls("resolve"), [["resolve", "--accept", "mine-full", "a.txt"]])

    def test_ask_policy_cancels(self):
        self._status_sequence(status_xml(("a.txt", "conflicted")))
        with self.assertRaises(OperationCancelled):
            self._resolver(PolicyPrompter("ask")).resolve_conflicts()

    def test_resolve_item_directly(self):
        resolver = self._resolver(PolicyPrompter())
        resolver.resolve_item(ConflictItem("x.txt", ConflictKind.STANDARD), keep_mine=False)
        self.assertEqual(self.backend.svn_calls("resolve"), [["resolve", "--accept", "theirs-full", "x.txt"]])

        with self.assertRaises(IncompleteWorkingCopyError):
            resolver.resolve_item(ConflictItem("y", ConflictKind.INCOMPLETE), keep_mine=True)


if __name__ == "__main__":
    unittest.main()
