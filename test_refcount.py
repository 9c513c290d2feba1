#!/usr/bin/env python3
"""
Unit tests for the cross-process reference counter.

Concurrency is exercised with threads that each open their own counter
handle; the advisory lock belongs to the open file, so they exclude each
other exactly as separate processes would.
"""

import shutil
import tempfile
import threading
import unittest
from pathlib import Path

from svnws.refcount import CounterFileLock, LockDelta, ReferenceCounter, lock_file_path


class TestReferenceCounter(unittest.TestCase):
    """Test cases for ReferenceCounter."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.lock_path = lock_file_path(self.temp_dir / "locks", "alpha")
        self.counter = ReferenceCounter(self.lock_path)

    def tearDown(self):
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def test_lock_file_path(self):
        self.assertEqual(self.lock_path, self.temp_dir / "locks" / "alpha.lock")
        self.assertEqual(ReferenceCounter.for_project(self.temp_dir, "beta").lock_path, self.temp_dir / "beta.lock")

    def test_increment_and_decrement(self):
        self.assertEqual(self.counter.acquire(), 1)
        self.assertEqual(self.counter.acquire(), 2)
        self.assertEqual(self.counter.release(), 1)
        self.assertEqual(self.lock_path.read_text(), "1")

    def test_never_negative(self):
        self.assertEqual(self.counter.release(), 0)
        self.assertEqual(self.counter.release(), 0)
        self.assertEqual(self.lock_path.read_text(), "0")

    def test_delete_if_zero_reports_without_changing(self):
        self.assertTrue(self.counter.can_delete())
        self.counter.acquire()
        self.assertFalse(self.counter.can_delete())
        self.assertEqual(self.counter.adjust(LockDelta.DELETE_IF_ZERO), 1)
        self.counter.release()
        self.assertTrue(self.counter.can_delete())

    def test_unreadable_content_counts_as_zero(self):
        self.lock_path.parent.mkdir(parents=True)
        self.lock_path.write_text("not a number")
        self.assertEqual(self.counter.acquire(), 1)

        self.lock_path.write_text("-3")
        self.assertEqual(self.counter.adjust(LockDelta.DELETE_IF_ZERO), 0)

    def test_context_manager_holds_a_reference(self):
        with ReferenceCounter(self.lock_path) as held:
            self.assertEqual(held.lock_path, self.lock_path)
            self.assertFalse(self.counter.can_delete())
        self.assertTrue(self.counter.can_delete())

    def test_reference_released_on_error(self):
        with self.assertRaises(RuntimeError):
            with ReferenceCounter(self.lock_path):
                raise RuntimeError("boom")
        self.assertTrue(self.counter.can_delete())

    def test_concurrent_updates_are_not_lost(self):
        threads_count = 8
        per_thread = 50

        def worker(delta):
            counter = ReferenceCounter(self.lock_path)
            for _ in range(per_thread):
                counter.adjust(delta)

        threads = [threading.Thread(target=worker, args=(LockDelta.INCREMENT,)) for _ in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(self.counter.adjust(LockDelta.DELETE_IF_ZERO), threads_count * per_thread)

        threads = [threading.Thread(target=worker, args=(LockDelta.DECREMENT,)) for _ in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertTrue(self.counter.can_delete())

    def test_lock_released_after_use(self):
        lock = CounterFileLock(self.lock_path)
        with lock:
            self.assertIsInstance(lock.fd, int)
        with self.assertRaises(RuntimeError):
            lock.fd

        # A second handle can take the lock again once released.
        with CounterFileLock(self.lock_path):
            pass


if __name__ == "__main__":
    unittest.main()
