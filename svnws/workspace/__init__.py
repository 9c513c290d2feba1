"""Working-copy reconciliation for SVNWS."""

from .commit import CommitOrchestrator, CommitResult, discard_changes
from .conflicts import ConflictItem, ConflictKind, ConflictResolver, enumerate_conflicts
from .context import SvnContext
from .ignore_rules import IgnoreRuleSet
from .ignore_sync import ensure_ignore_rules_current
from .revision import Revision, RevisionState, ReviewDecision, gate_history_mutation, parse_revision
from .status import ItemKind, StatusEntry, classify_status, is_dirty, parse_status_xml

__all__ = [
    'CommitOrchestrator',
    'CommitResult',
    'discard_changes',
    'ConflictItem',
    'ConflictKind',
    'ConflictResolver',
    'enumerate_conflicts',
    'SvnContext',
    'IgnoreRuleSet',
    'ensure_ignore_rules_current',
    'Revision',
    'RevisionState',
    'ReviewDecision',
    'gate_history_mutation',
    'parse_revision',
    'ItemKind',
    'StatusEntry',
    'classify_status',
    'is_dirty',
    'parse_status_xml',
]
