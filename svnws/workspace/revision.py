"""Revisions, review state and the gate in front of history mutations."""

import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import OperationCancelled, RevisionParseError
from ..ui import Prompter

REVIEW_CHOICES = (
    "Continue to commit (may get conflicts!)",
    "Create a new branch and commit there (no conflicts)",
    "No, cancel operation",
)


@functools.total_ordering
class Revision:
    """A revision number, or the symbolic HEAD which sorts after every number."""

    __slots__ = ("number",)

    def __init__(self, number: Optional[int]):
        if number is not None and number < 0:
            raise RevisionParseError(f"Revision must not be negative: {number}")
        self.number = number

    @classmethod
    def head(cls) -> "Revision":
        return cls(None)

    @property
    def is_head(self) -> bool:
        return self.number is None

    @property
    def arg(self) -> str:
        """Form accepted by ``svn -r`` and ``URL@REV``."""
        return "HEAD" if self.is_head else str(self.number)

    def _key(self):
        return (1, 0) if self.is_head else (0, self.number)

    def __eq__(self, other):
        if not isinstance(other, Revision):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other):
        if not isinstance(other, Revision):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self):
        return hash(self._key())

    def __str__(self):
        return "HEAD" if self.is_head else f"r{self.number}"

    def __repr__(self):
        return f"Revision({self.number!r})"


def parse_revision(text: str) -> Revision:
    """
    Parse ``HEAD`` (any case), ``r12``/``R12`` or ``12``.

    Raises:
        RevisionParseError: the text is not a revision
    """
    value = text.strip()
    if value.upper() == "HEAD":
        return Revision.head()

    digits = value.lstrip("rR")
    if not (digits.isascii() and digits.isdigit()):
        raise RevisionParseError(f"Invalid revision: {text!r}", {"revision": text})
    return Revision(int(digits))


@dataclass
class RevisionState:
    """The working copy's revision against the repository's latest one."""
    current: Revision
    latest: Revision

    @property
    def review_state(self) -> bool:
        """True while the working copy lags behind the latest revision."""
        return self.current < self.latest


class ReviewDecision(Enum):
    PROCEED = 0
    BRANCH_OFF = 1
    ABORT = 2


def gate_history_mutation(prompter: Prompter, state: RevisionState) -> ReviewDecision:
    """
    Ask how to proceed when a mutation would be based on a stale revision.

    Returns PROCEED immediately when not in review state; otherwise the
    operator chooses to proceed anyway or branch off.

    Raises:
        OperationCancelled: the operator chose to abort
    """
    if not state.review_state:
        return ReviewDecision.PROCEED

    logging.getLogger('svnws.workspace.revision').debug(
        f"Review state: current {state.current} behind latest {state.latest}"
    )
    prompter.warn("Current project is not at the latest revision.")
    decision = ReviewDecision(prompter.select("Continue to commit?", REVIEW_CHOICES))
    if decision == ReviewDecision.ABORT:
        raise OperationCancelled()
    return decision
