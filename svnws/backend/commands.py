"""Typed wrappers around the svn and svnadmin command lines."""

import logging
import subprocess
from pathlib import Path
from typing import IO, List, Optional, Sequence, Union

from ..errors import BackendCommandError
from .runner import SVN, SVNADMIN, SVNDUMPFILTER, SVNMUCC, Backend, CommandResult

PathArg = Union[str, Path]


class SvnClient:
    """
    One method per svn operation the working-copy layer performs.

    Methods return captured stdout (or the full :class:`CommandResult`) and
    let :class:`BackendCommandError` propagate, except :meth:`url_exists`
    which treats a failed ``info`` as "does not exist".
    """

    def __init__(self, backend: Backend):
        self.backend = backend
        self.logger = logging.getLogger('svnws.backend.svn')

    def run(self, *args: PathArg) -> CommandResult:
        return self.backend.run(SVN, [str(arg) for arg in args])

    def status(self, targets: Sequence[PathArg] = (), xml: bool = True, no_ignore: bool = False) -> str:
        args = ["status"]
        if xml:
            args.append("--xml")
        if no_ignore:
            args.append("--no-ignore")
        args.extend(str(t) for t in targets)
        return self.run(*args).stdout

    def update(self, args: Sequence[PathArg] = ()) -> str:
        return self.run("update", *args).stdout

    def add(self, paths: Sequence[PathArg]) -> str:
        if not paths:
            return ""
        return self.run("add", "--parents", "--depth", "empty", "--force", *paths).stdout

    def delete(self, args: Sequence[PathArg]) -> str:
        return self.run("delete", *args).stdout

    def commit(self, message: str, targets: Sequence[PathArg] = ()) -> str:
        """Commit ``targets`` (the whole working copy if empty); returns stdout."""
        return self.run("commit", *targets, "-m", message).stdout

    def resolve(self, accept: str, path: PathArg) -> str:
        return self.run("resolve", "--accept", accept, path).stdout

    def revert(self, paths: Sequence[PathArg], recursive: bool = False) -> str:
        args = ["revert"]
        if recursive:
            args.append("-R")
        return self.run(*args, *paths).stdout

    def propget(self, name: str, target: PathArg = ".") -> str:
        return self.run("propget", name, target).stdout

    def propset(self, name: str, value: str, target: PathArg = ".") -> str:
        return self.run("propset", name, value, target).stdout

    def propdel(self, name: str, target: PathArg = ".") -> str:
        return self.run("propdel", name, target).stdout

    def info(
        self,
        item: Optional[str] = None,
        target: Optional[PathArg] = None,
        revision: Optional[str] = None,
    ) -> str:
        args = ["info"]
        if item:
            args.extend(["--show-item", item])
        if revision:
            args.extend(["-r", revision])
        if target is not None:
            args.append(str(target))
        return self.run(*args).stdout

    def list(self, url: str) -> List[str]:
        """Names of the entries directly below ``url``; directories keep their trailing slash."""
        output = self.run("list", url).stdout
        return [line.strip() for line in output.splitlines() if line.strip()]

    def log(self, args: Sequence[PathArg]) -> str:
        return self.run("log", *args).stdout

    def copy(self, source: str, destination: str, message: str, parents: bool = False) -> str:
        args = ["copy", source, destination, "-m", message]
        if parents:
            args.append("--parents")
        return self.run(*args).stdout

    def mkdir(self, urls: Sequence[str], message: str, parents: bool = False) -> str:
        args = ["mkdir"]
        if parents:
            args.append("--parents")
        return self.run(*args, *urls, "-m", message).stdout

    def switch(self, url: str) -> str:
        return self.run("switch", url, ".", "--ignore-ancestry").stdout

    def merge(self, args: Sequence[PathArg]) -> str:
        return self.run("merge", *args).stdout

    def checkout(self, args: Sequence[PathArg]) -> str:
        return self.run("checkout", *args).stdout

    def cleanup(self) -> str:
        return self.run("cleanup", ".").stdout

    def svnmucc(self, args: Sequence[PathArg]) -> str:
        return self.backend.run(SVNMUCC, [str(arg) for arg in args]).stdout

    def url_exists(self, url: str) -> bool:
        try:
            return bool(self.info(target=url))
        except BackendCommandError:
            self.logger.debug(f"URL does not exist: {url}")
            return False


class RepositoryAdmin:
    """svnadmin / svndumpfilter operations on repositories on disk."""

    def __init__(self, backend: Backend):
        self.backend = backend

    def create(self, repo_path: PathArg) -> None:
        self.backend.run(SVNADMIN, ["create", str(repo_path)])

    def dump(self, repo_path: PathArg) -> subprocess.Popen:
        """Start ``svnadmin dump`` writing the dump stream to a pipe."""
        return self.backend.spawn(SVNADMIN, ["dump", str(repo_path), "--quiet"], stdout=subprocess.PIPE)

    def dumpfilter_exclude(self, project_name: str, stdin: IO) -> subprocess.Popen:
        """Start ``svndumpfilter exclude`` reading from ``stdin`` and writing to a pipe."""
        return self.backend.spawn(
            SVNDUMPFILTER,
            ["exclude", project_name, "--drop-empty-revs", "--renumber-revs", "--quiet"],
            stdin=stdin,
            stdout=subprocess.PIPE,
        )

    def load(self, repo_path: PathArg, stdin: IO) -> subprocess.Popen:
        """Start ``svnadmin load`` reading from ``stdin``; its own output is discarded."""
        return self.backend.spawn(
            SVNADMIN,
            ["load", str(repo_path), "--quiet", "--ignore-uuid"],
            stdin=stdin,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
