"""
SVN Workspace (SVNWS) - working-copy reconciliation on top of Subversion.

Keeps a Subversion working copy committable: classifies status against a
gitignore-style rule file, resolves conflicts, commits in a multi-phase
protocol, guards history edits made from old revisions, and can erase a
project from a repository's history. Exposed through the Model Context
Protocol (MCP).
"""

__version__ = "1.0.0"
__author__ = "SVNWS Team"
__description__ = "SVN Workspace - working-copy reconciliation for Subversion"

from .server import main

__all__ = ["main"]
