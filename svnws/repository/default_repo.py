"""Locating, and on first use creating, local default repositories."""

import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from ..backend import RepositoryAdmin, SvnClient
from ..config import Config
from ..validation import validate_folder_name


def path_to_file_url(path: Path) -> str:
    """``file://`` URL of a local repository directory."""
    return path.absolute().as_uri()


def file_url_to_path(url: str) -> Path:
    """Local path of a ``file://`` repository URL."""
    parsed = urlparse(url)
    if parsed.scheme != "file":
        raise ValueError(f"Not a file:// URL: {url}")

    path = unquote(parsed.path)
    # file:///C:/repo -> C:/repo
    if len(path) > 2 and path[0] == "/" and path[2] == ":":
        path = path[1:]
    return Path(path)


def get_repo_path(config: Config, repo_name: Optional[str] = None) -> Path:
    """Directory of the named (or default) repository under ``config.repo_dir``."""
    if repo_name:
        return config.repo_dir / validate_folder_name(repo_name, allow_reserved=True)
    return config.repo_dir / config.default_repo_name


def get_repo_url(
    config: Config,
    svn: SvnClient,
    admin: RepositoryAdmin,
    repo_name: Optional[str] = None,
) -> str:
    """
    URL of the named (or default) repository, creating it when missing.

    A new repository is seeded with an empty ignore file at its root.
    """
    path = get_repo_path(config, repo_name)
    url = path_to_file_url(path)

    if path.exists():
        return url

    logging.getLogger('svnws.repository.default_repo').info(f"Creating repository at {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    admin.create(path)
    svn.svnmucc([
        "put", os.devnull, f"{url}/{config.ignore_file_name}",
        "-m", f"Add default {config.ignore_file_name} file",
    ])
    return url
