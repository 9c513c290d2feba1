"""Subversion backend access for SVNWS."""

from .commands import RepositoryAdmin, SvnClient
from .runner import (
    SVN,
    SVNADMIN,
    SVNDUMPFILTER,
    SVNMUCC,
    Backend,
    CommandResult,
    SubprocessBackend,
    decode_output,
)

__all__ = [
    'Backend',
    'CommandResult',
    'SubprocessBackend',
    'SvnClient',
    'RepositoryAdmin',
    'decode_output',
    'SVN',
    'SVNADMIN',
    'SVNDUMPFILTER',
    'SVNMUCC',
]
