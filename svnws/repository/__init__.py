"""Repository-level operations for SVNWS."""

from .backup import RepositorySwapper
from .default_repo import file_url_to_path, get_repo_path, get_repo_url, path_to_file_url
from .pruner import PruneJob, RepositoryPruner

__all__ = [
    'PruneJob',
    'RepositoryPruner',
    'RepositorySwapper',
    'get_repo_path',
    'get_repo_url',
    'path_to_file_url',
    'file_url_to_path',
]
