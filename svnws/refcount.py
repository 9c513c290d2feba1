"""
Cross-process reference counting for project checkouts.

Each checked-out project has a counter file holding one decimal integer.
Every read-modify-write happens while holding an exclusive OS advisory lock
on that file, so independent tool invocations (two terminals on the same
project) never lose an update. Acquiring the lock blocks without timeout.
"""

import errno
import logging
import os
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Iterator

from .errors import WorkspaceIOError
from .platform import get_platform_info

if os.name == "nt":
    import msvcrt
else:
    import fcntl


class LockDelta(Enum):
    INCREMENT = "increment"
    DECREMENT = "decrement"
    DELETE_IF_ZERO = "delete_if_zero"


def lock_file_path(base_dir: Path, project_name: str) -> Path:
    """Counter file of ``project_name`` inside ``base_dir``."""
    return base_dir / f"{project_name}.lock"


class CounterFileLock:
    """
    Exclusive advisory lock on an open counter file.

    Uses ``fcntl.flock`` on Unix-like systems and ``msvcrt.locking`` on
    Windows. The lock belongs to this open handle, so two instances on the
    same path exclude each other even inside one process.
    """

    def __init__(self, lock_file_path: Path):
        self.lock_file_path = lock_file_path
        self.logger = logging.getLogger('svnws.refcount')
        self.platform_info = get_platform_info()
        self._fd = None

    @property
    def fd(self) -> int:
        if self._fd is None:
            raise RuntimeError(f"Lock on {self.lock_file_path} is not held")
        return self._fd

    def acquire(self) -> None:
        try:
            self.lock_file_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.lock_file_path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise WorkspaceIOError(
                f"Cannot open counter file {self.lock_file_path}: {e}",
                {"path": str(self.lock_file_path)},
            ) from e

        try:
            if self.platform_info.is_windows:
                self._acquire_windows_lock(fd)
            else:
                fcntl.flock(fd, fcntl.LOCK_EX)
        except OSError as e:
            os.close(fd)
            raise WorkspaceIOError(
                f"Cannot lock counter file {self.lock_file_path}: {e}",
                {"path": str(self.lock_file_path)},
            ) from e

        self._fd = fd
        self.logger.debug(f"Acquired lock: {self.lock_file_path}")

    def _acquire_windows_lock(self, fd: int) -> None:
        # LK_LOCK gives up after ten one-second retries; keep waiting.
        while True:
            os.lseek(fd, 0, os.SEEK_SET)
            try:
                msvcrt.locking(fd, msvcrt.LK_LOCK, 1)
                return
            except OSError as e:
                if e.errno not in (errno.EDEADLOCK, errno.EACCES):
                    raise
                self.logger.debug(f"Still waiting for lock: {self.lock_file_path}")

    def release(self) -> None:
        if self._fd is None:
            return

        fd, self._fd = self._fd, None
        try:
            if self.platform_info.is_windows:
                os.lseek(fd, 0, os.SEEK_SET)
                msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
            self.logger.debug(f"Released lock: {self.lock_file_path}")

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


def _read_count(fd: int) -> int:
    os.lseek(fd, 0, os.SEEK_SET)
    chunks = []
    while True:
        chunk = os.read(fd, 4096)
        if not chunk:
            break
        chunks.append(chunk)

    try:
        value = int(b"".join(chunks).decode("utf-8", errors="replace").strip())
    except ValueError:
        return 0
    return max(value, 0)


def _write_count(fd: int, value: int) -> None:
    os.lseek(fd, 0, os.SEEK_SET)
    os.ftruncate(fd, 0)
    os.write(fd, str(value).encode("ascii"))


@contextmanager
def locked_counter_file(lock_path: Path) -> Iterator[int]:
    """Hold the exclusive lock on ``lock_path`` and yield its file descriptor."""
    lock = CounterFileLock(lock_path)
    lock.acquire()
    try:
        yield lock.fd
    finally:
        lock.release()


class ReferenceCounter:
    """Durable, lock-protected count of live handles on one project checkout."""

    def __init__(self, lock_path: Path):
        self.lock_path = lock_path
        self.logger = logging.getLogger('svnws.refcount')

    @classmethod
    def for_project(cls, base_dir: Path, project_name: str) -> "ReferenceCounter":
        return cls(lock_file_path(base_dir, project_name))

    def adjust(self, delta: LockDelta) -> int:
        """
        Apply ``delta`` in one critical section and return the new value.

        Unreadable or missing content counts as 0. DECREMENT floors at 0.
        DELETE_IF_ZERO leaves the value unchanged and only reports it.
        """
        with locked_counter_file(self.lock_path) as fd:
            try:
                current = _read_count(fd)
                if delta == LockDelta.INCREMENT:
                    new_value = current + 1
                elif delta == LockDelta.DECREMENT:
                    new_value = max(current - 1, 0)
                else:
                    new_value = current
                _write_count(fd, new_value)
            except OSError as e:
                raise WorkspaceIOError(
                    f"Cannot update counter file {self.lock_path}: {e}",
                    {"path": str(self.lock_path)},
                ) from e

        self.logger.debug(f"{self.lock_path.name}: {delta.value} -> {new_value}")
        return new_value

    def acquire(self) -> int:
        return self.adjust(LockDelta.INCREMENT)

    def release(self) -> int:
        return self.adjust(LockDelta.DECREMENT)

    def can_delete(self) -> bool:
        """True only if no handle references the checkout right now."""
        return self.adjust(LockDelta.DELETE_IF_ZERO) == 0

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
