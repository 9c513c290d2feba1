"""Backend command execution.

Every backend operation is an argument vector handed to an external tool and
judged by its exit status. :class:`Backend` is the narrow capability the rest
of the package depends on; :class:`SubprocessBackend` is the implementation
that actually spawns ``svn``/``svnadmin``/``svndumpfilter``/``svnmucc``.
"""

import locale
import logging
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import IO, List, Optional, Sequence, Union

from ..config import Config
from ..errors import BackendCommandError, WorkspaceIOError
from .performance import get_performance_logger

SVN = "svn"
SVNADMIN = "svnadmin"
SVNDUMPFILTER = "svndumpfilter"
SVNMUCC = "svnmucc"

StreamArg = Optional[Union[int, IO]]


@dataclass
class CommandResult:
    """Outcome of one backend command."""
    args: List[str]
    returncode: int
    stdout: str
    stderr: str = ""


def decode_output(data: bytes) -> str:
    """
    Decode captured output, trying UTF-8 before the platform encoding.

    svn on Windows consoles emits the ANSI code page; everywhere else it is
    UTF-8.
    """
    try:
        return data.decode("utf-8").strip()
    except UnicodeDecodeError:
        pass

    preferred = locale.getpreferredencoding(False)
    try:
        return data.decode(preferred).strip()
    except (UnicodeDecodeError, LookupError):
        return data.decode("utf-8", errors="replace").strip()


class Backend(ABC):
    """Run a named backend tool with arguments."""

    @abstractmethod
    def run(self, tool: str, args: Sequence[str], cwd: Optional[Path] = None) -> CommandResult:
        """
        Run a tool to completion.

        Raises:
            BackendCommandError: the tool exited non-zero
            WorkspaceIOError: the tool could not be started
        """

    @abstractmethod
    def spawn(
        self,
        tool: str,
        args: Sequence[str],
        stdin: StreamArg = None,
        stdout: StreamArg = subprocess.PIPE,
        stderr: StreamArg = None,
    ) -> subprocess.Popen:
        """Start a tool as one stage of a pipeline without waiting for it."""


class SubprocessBackend(Backend):
    """Backend that spawns the configured Subversion executables."""

    def __init__(self, config: Config, cwd: Optional[Path] = None):
        self.config = config
        self.cwd = cwd
        self.logger = logging.getLogger('svnws.backend')
        self.perf_logger = get_performance_logger()
        self._executables = {
            SVN: config.svn_executable,
            SVNADMIN: config.svnadmin_executable,
            SVNDUMPFILTER: config.svndumpfilter_executable,
            SVNMUCC: config.svnmucc_executable,
        }

    def _command(self, tool: str, args: Sequence[str]) -> List[str]:
        try:
            executable = self._executables[tool]
        except KeyError:
            raise ValueError(f"Unknown backend tool: {tool}")
        return [executable] + [str(arg) for arg in args]

    def run(self, tool: str, args: Sequence[str], cwd: Optional[Path] = None) -> CommandResult:
        command = self._command(tool, args)
        work_dir = cwd or self.cwd
        self.logger.debug(f"Running: {' '.join(command)}")

        start_time = time.time()
        try:
            completed = subprocess.run(
                command,
                cwd=str(work_dir) if work_dir else None,
                stdin=subprocess.DEVNULL,
                capture_output=True,
            )
        except OSError as e:
            raise WorkspaceIOError(f"Could not start {command[0]}: {e}", {"command": command}) from e

        success = completed.returncode == 0
        self.perf_logger.log_command_performance(command, time.time() - start_time, success)

        result = CommandResult(
            args=command,
            returncode=completed.returncode,
            stdout=decode_output(completed.stdout),
            stderr=decode_output(completed.stderr),
        )

        if not success:
            self.logger.debug(f"Command failed ({result.returncode}): {result.stderr}")
            raise BackendCommandError(command, result.returncode, result.stdout, result.stderr)

        return result

    def spawn(
        self,
        tool: str,
        args: Sequence[str],
        stdin: StreamArg = None,
        stdout: StreamArg = subprocess.PIPE,
        stderr: StreamArg = None,
    ) -> subprocess.Popen:
        command = self._command(tool, args)
        self.logger.debug(f"Spawning: {' '.join(command)}")
        try:
            return subprocess.Popen(
                command,
                cwd=str(self.cwd) if self.cwd else None,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
            )
        except OSError as e:
            raise WorkspaceIOError(f"Could not start {command[0]}: {e}", {"command": command}) from e
