#!/usr/bin/env python3
"""
Unit tests for permanently removing a project from repository history.

The dump/filter/load pipeline is simulated with fake processes; the
backup-and-swap runs against real temporary directories.
"""

import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

from svn_fakes import FakeBackend

from svnws.backend import RepositoryAdmin
from svnws.backend.performance import get_performance_logger
from svnws.backend.runner import SVNADMIN, SVNDUMPFILTER
from svnws.errors import BackendCommandError, WorkspaceIOError
from svnws.repository import PruneJob, RepositoryPruner, RepositorySwapper


class TestRepositoryPruner(unittest.TestCase):
    """Test cases for RepositoryPruner.force_delete."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.repo = self.temp_dir / "repo"
        self.repo.mkdir()
        (self.repo / "format").write_text("original")

        self.backend = FakeBackend()
        self.backend.on("create", tool=SVNADMIN, effect=self._create_repo)
        self.admin = RepositoryAdmin(self.backend)
        self.pruner = RepositoryPruner(self.admin)
        self.job = PruneJob.for_repository(self.repo, "beta")

    def tearDown(self):
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    @staticmethod
    def _create_repo(args):
        path = Path(args[1])
        path.mkdir()
        (path / "format").write_text("rewritten")

    def test_job_paths(self):
        self.assertEqual(self.job.temp_repo_path, self.temp_dir / "repo_gc")
        self.assertEqual(self.job.backup_path, self.temp_dir / "repo_backup")
        self.assertEqual(self.job.excluded_project_name, "beta")

    def test_successful_rewrite_swaps_and_keeps_backup(self):
        checkout = self.temp_dir / "store" / "repo" / "beta"
        checkout.mkdir(parents=True)
        repair = Mock()

        backup = self.pruner.force_delete(self.repo, "beta", repair_workspace=repair, local_checkout=checkout)

        self.assertEqual(backup, self.job.backup_path)
        self.assertEqual((self.repo / "format").read_text(), "rewritten")
        self.assertEqual((backup / "format").read_text(), "original")
        self.assertFalse(self.job.temp_repo_path.exists())
        self.assertFalse(checkout.exists())
        repair.assert_called_once_with()
        self.assertTrue(get_performance_logger().get_metrics("repository_rewrite").success)

    def test_pipeline_wiring(self):
        self.pruner.force_delete(self.repo, "beta")

        dump, filter_proc, load = self.backend.spawned
        self.assertEqual(dump.args, [SVNADMIN, "dump", str(self.repo), "--quiet"])
        self.assertEqual(
            filter_proc.args,
            [SVNDUMPFILTER, "exclude", "beta", "--drop-empty-revs", "--renumber-revs", "--quiet"],
        )
        self.assertEqual(load.args, [SVNADMIN, "load", str(self.job.temp_repo_path), "--quiet", "--ignore-uuid"])
        self.assertIs(filter_proc.stdin, dump.stdout)
        self.assertIs(load.stdin, filter_proc.stdout)
        self.assertTrue(dump.stdout.closed)
        self.assertTrue(filter_proc.stdout.closed)
        self.assertTrue(all(proc.waited for proc in self.backend.spawned))

    def test_load_failure_leaves_original_untouched(self):
        self.backend.on("load", tool=SVNADMIN, returncode=1)
        repair = Mock()

        with patch("svnws.repository.backup.os.rename") as rename:
            with self.assertRaises(BackendCommandError):
                self.pruner.force_delete(self.repo, "beta", repair_workspace=repair)

        rename.assert_not_called()
        repair.assert_not_called()
        self.assertEqual((self.repo / "format").read_text(), "original")
        self.assertFalse(self.job.temp_repo_path.exists())
        self.assertFalse(self.job.backup_path.exists())

    def test_filter_failure_fails_the_job(self):
        self.backend.on("exclude", tool=SVNDUMPFILTER, returncode=2)

        with self.assertRaises(BackendCommandError) as caught:
            self.pruner.force_delete(self.repo, "beta")

        self.assertEqual(caught.exception.returncode, 2)
        self.assertEqual((self.repo / "format").read_text(), "original")

    def test_stale_temp_repository_is_replaced(self):
        self.job.temp_repo_path.mkdir()
        (self.job.temp_repo_path / "junk").write_text("left over")

        self.pruner.force_delete(self.repo, "beta")

        self.assertEqual((self.repo / "format").read_text(), "rewritten")
        self.assertFalse((self.repo / "junk").exists())

    def test_failed_second_rename_restores_original(self):
        real_rename = os.rename
        temp_repo = self.job.temp_repo_path

        def flaky_rename(src, dst):
            if Path(src) == temp_repo:
                raise OSError("disk full")
            return real_rename(src, dst)

        with patch("svnws.repository.backup.os.rename", side_effect=flaky_rename):
            with self.assertRaises(WorkspaceIOError):
                self.pruner.force_delete(self.repo, "beta")

        self.assertEqual((self.repo / "format").read_text(), "original")
        self.assertFalse(self.job.backup_path.exists())
        self.assertFalse(temp_repo.exists())

class TestRepositorySwapper(unittest.TestCase):
    """Test cases for the backup-and-swap step on its own."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.repo = self.temp_dir / "repo"
        self.replacement = self.temp_dir / "repo_gc"
        self.backup = self.temp_dir / "repo_backup"
        for path, content in ((self.repo, "old"), (self.replacement, "new"), (self.backup, "stale")):
            path.mkdir()
            (path / "format").write_text(content)

    def tearDown(self):
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def test_previous_backup_is_replaced(self):
        RepositorySwapper(self.repo, self.backup).swap_in(self.replacement)

        self.assertEqual((self.repo / "format").read_text(), "new")
        self.assertEqual((self.backup / "format").read_text(), "old")
        self.assertFalse(self.replacement.exists())


if __name__ == "__main__":
    unittest.main()
