"""
Permanent removal of a project's history.

The repository is streamed ``svnadmin dump | svndumpfilter exclude |
svnadmin load`` into a fresh sibling repository, which is then swapped in
for the original. The dump stream is relayed between the processes
untouched.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from ..backend import RepositoryAdmin
from ..backend.performance import get_performance_logger
from ..errors import BackendCommandError, WorkspaceIOError
from ..ui import Prompter
from .backup import RepositorySwapper


@dataclass
class PruneJob:
    """One repository-rewrite attempt."""
    source_repo_path: Path
    excluded_project_name: str
    temp_repo_path: Path
    backup_path: Path

    @classmethod
    def for_repository(cls, repo_path: Path, project_name: str) -> "PruneJob":
        return cls(
            source_repo_path=repo_path,
            excluded_project_name=project_name,
            temp_repo_path=repo_path.parent / f"{repo_path.name}_gc",
            backup_path=repo_path.parent / f"{repo_path.name}_backup",
        )


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except OSError as e:
        raise WorkspaceIOError(f"Cannot remove {path}: {e}", {"path": str(path)}) from e


class RepositoryPruner:
    """Erase a project from a repository's entire history."""

    def __init__(self, admin: RepositoryAdmin, prompter: Optional[Prompter] = None):
        self.admin = admin
        self.prompter = prompter
        self.logger = logging.getLogger('svnws.repository.pruner')
        self.perf_logger = get_performance_logger()

    def _report(self, message: str, warning: bool = False) -> None:
        if self.prompter is None:
            if warning:
                self.logger.warning(message)
            else:
                self.logger.info(message)
        elif warning:
            self.prompter.warn(message)
        else:
            self.prompter.info(message)

    def force_delete(
        self,
        repo_path: Path,
        project_name: str,
        repair_workspace: Optional[Callable[[], None]] = None,
        local_checkout: Optional[Path] = None,
    ) -> Path:
        """
        Rewrite ``repo_path`` without ``project_name`` and swap it in.

        Args:
            repo_path: Repository directory on disk
            project_name: Top-level project to exclude
            repair_workspace: Re-points the working copy at the rewritten repository
            local_checkout: Checkout of the erased project to remove afterwards

        Returns:
            Path of the backup holding the original repository
        """
        job = PruneJob.for_repository(repo_path, project_name)
        self.logger.info(f"Rewriting {repo_path} without project {project_name}")

        if job.temp_repo_path.exists():
            _remove_tree(job.temp_repo_path)
        self.admin.create(job.temp_repo_path)

        try:
            with self.perf_logger.time_operation(
                "repository_rewrite",
                {"repository": str(repo_path), "project": project_name},
                log_level=logging.INFO,
            ):
                self.run_pipeline(job)
        except BaseException:
            self._discard_temp_repo(job)
            raise

        try:
            backup_path = RepositorySwapper(job.source_repo_path, job.backup_path).swap_in(job.temp_repo_path)
        except BaseException:
            self._discard_temp_repo(job)
            raise

        self._report(f"Repository cleaned successfully. Original repository backed up at: {backup_path}")

        if repair_workspace is not None:
            repair_workspace()

        if local_checkout is not None and local_checkout.exists():
            try:
                shutil.rmtree(local_checkout)
            except OSError as e:
                self._report(f"Failed to delete local project folder: {e}", warning=True)
                self._report(f"Need to delete it manually. Local project folder path: {local_checkout}", warning=True)

        return backup_path

    def run_pipeline(self, job: PruneJob) -> None:
        """
        Stream dump -> filter -> load and wait for all three.

        Any stage exiting non-zero (including a stage killed by a broken
        pipe when a neighbour died) fails the job.
        """
        started: List[subprocess.Popen] = []
        try:
            dump = self.admin.dump(job.source_repo_path)
            started.append(dump)
            dump_out = dump.stdout

            filter_proc = self.admin.dumpfilter_exclude(job.excluded_project_name, stdin=dump_out)
            started.append(filter_proc)
            filter_out = filter_proc.stdout
            # Only the filter reads the dump now; closing our copy lets a dead filter stop the dump.
            dump_out.close()

            load = self.admin.load(job.temp_repo_path, stdin=filter_out)
            started.append(load)
            filter_out.close()
        except BaseException:
            for proc in started:
                proc.kill()
                proc.wait()
            raise

        load_code = load.wait()
        filter_code = filter_proc.wait()
        dump_code = dump.wait()

        for proc, code in ((load, load_code), (filter_proc, filter_code), (dump, dump_code)):
            if code != 0:
                args = proc.args if isinstance(proc.args, list) else [str(proc.args)]
                self.logger.error(f"Repository rewrite stage failed ({code}): {' '.join(map(str, args))}")
                raise BackendCommandError(args, code)

    def _discard_temp_repo(self, job: PruneJob) -> None:
        if job.temp_repo_path.exists():
            try:
                shutil.rmtree(job.temp_repo_path)
            except OSError as e:
                self.logger.warning(f"Could not remove temporary repository {job.temp_repo_path}: {e}")
