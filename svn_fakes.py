"""
Scripted stand-ins for the Subversion backend used by the test suite.

``FakeBackend`` answers each command from the most specific registered
argument prefix and records every call, so tests can assert on the exact
command sequence an operation produced without a real ``svn`` binary.
"""

import io
import subprocess
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence

# Add the project root to the path so we can import svnws modules
sys.path.insert(0, str(Path(__file__).parent))

from svnws.backend import SvnClient
from svnws.backend.runner import SVN, Backend, CommandResult
from svnws.errors import BackendCommandError


class _Rule:
    def __init__(self, tool, prefix, outputs, fail, effect, returncode):
        self.tool = tool
        self.prefix = prefix
        self.outputs = outputs
        self.fail = fail
        self.effect = effect
        self.returncode = returncode

    def next_output(self) -> str:
        if len(self.outputs) > 1:
            return self.outputs.pop(0)
        return self.outputs[0]


class FakeProcess:
    """Popen look-alike returned by :meth:`FakeBackend.spawn`."""

    def __init__(self, args: List[str], returncode: int, stdin=None):
        self.args = args
        self.returncode = returncode
        self.stdin = stdin
        self.stdout = io.BytesIO(b"SVN-fs-dump-format-version: 2\n")
        self.killed = False
        self.waited = False

    def wait(self) -> int:
        self.waited = True
        return self.returncode

    def kill(self) -> None:
        self.killed = True


class FakeBackend(Backend):
    """Backend answering from scripted rules instead of running processes."""

    def __init__(self):
        self.rules: List[_Rule] = []
        self.calls: List[tuple] = []
        self.spawned: List[FakeProcess] = []

    def on(
        self,
        *prefix: str,
        tool: str = SVN,
        stdout=None,
        fail: bool = False,
        effect: Optional[Callable[[List[str]], None]] = None,
        returncode: int = 0,
    ) -> "FakeBackend":
        """
        Script the answer for commands starting with ``prefix``.

        ``stdout`` may be a list; its items are returned in turn and the
        last one repeats. ``effect`` runs before answering and may raise.
        """
        if isinstance(stdout, (list, tuple)):
            outputs = list(stdout)
        else:
            outputs = [stdout or ""]
        self.rules.append(_Rule(tool, tuple(prefix), outputs, fail, effect, returncode))
        return self

    def _match(self, tool: str, args: List[str]) -> Optional[_Rule]:
        best = None
        for rule in self.rules:
            if rule.tool == tool and tuple(args[:len(rule.prefix)]) == rule.prefix:
                if best is None or len(rule.prefix) >= len(best.prefix):
                    best = rule
        return best

    def run(self, tool: str, args: Sequence[str], cwd: Optional[Path] = None) -> CommandResult:
        args = [str(arg) for arg in args]
        self.calls.append((tool, args))
        rule = self._match(tool, args)
        if rule is None:
            return CommandResult([tool] + args, 0, "")
        if rule.effect is not None:
            rule.effect(args)
        if rule.fail:
            raise BackendCommandError([tool] + args, 1, "", "simulated failure")
        return CommandResult([tool] + args, 0, rule.next_output())

    def spawn(self, tool, args, stdin=None, stdout=subprocess.PIPE, stderr=None) -> FakeProcess:
        args = [str(arg) for arg in args]
        self.calls.append((tool, args))
        rule = self._match(tool, args)
        process = FakeProcess([tool] + args, rule.returncode if rule else 0, stdin)
        self.spawned.append(process)
        return process

    def svn_calls(self, *prefix: str) -> List[List[str]]:
        """Recorded svn argument lists starting with ``prefix``."""
        return [
            args for tool, args in self.calls
            if tool == SVN and tuple(args[:len(prefix)]) == prefix
        ]

    def svn_command_names(self) -> List[str]:
        return [args[0] for tool, args in self.calls if tool == SVN]


def make_svn():
    """A fresh ``(FakeBackend, SvnClient)`` pair."""
    backend = FakeBackend()
    return backend, SvnClient(backend)


def status_xml(*entries) -> str:
    """
    Build ``svn status --xml`` output.

    Each entry is ``(path, item)`` or ``(path, item, {extra wc-status attributes})``.
    """
    lines = ['<?xml version="1.0" encoding="UTF-8"?>', "<status>", '<target path=".">']
    for entry in entries:
        path, item = entry[0], entry[1]
        attributes = {"item": item, "props": "none"}
        if len(entry) > 2:
            attributes.update(entry[2])
        rendered = " ".join(f'{name}="{value}"' for name, value in attributes.items())
        lines.append(f'<entry path="{path}"><wc-status {rendered} revision="5"/></entry>')
    lines.extend(["</target>", "</status>"])
    return "\n".join(lines)


CLEAN_STATUS = status_xml()
