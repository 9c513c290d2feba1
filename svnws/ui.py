"""Operator interaction seam.

The reconciliation logic only ever asks a question and gets an answer, or
reports a message. Rendering (spinners, tables, colours) is left to whatever
front end implements :class:`Prompter`.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import OperationCancelled

KEEP_MINE = 0
DISCARD_MINE = 1
CONFLICT_CHOICES = (
    "Keep My Version (Keep Local Changes)",
    "Discard My Version (Delete Local Changes)",
)


class Prompter(ABC):
    """Ask-a-question / report-a-message interface."""

    @abstractmethod
    def select(self, prompt: str, choices: Sequence[str]) -> int:
        """Return the index of the chosen entry in ``choices``."""

    @abstractmethod
    def confirm(self, prompt: str) -> bool:
        """Ask a yes/no question."""

    @abstractmethod
    def input(self, prompt: str) -> str:
        """Ask for a line of text."""

    def input_commit_message(self) -> str:
        message = self.input("Commit message:").strip()
        if not message:
            raise OperationCancelled("Empty commit message")
        return message

    def info(self, message: str) -> None:
        logging.getLogger('svnws.ui').info(message)

    def warn(self, message: str) -> None:
        logging.getLogger('svnws.ui').warning(message)

    def success(self, message: str) -> None:
        logging.getLogger('svnws.ui').info(message)


class PolicyPrompter(Prompter):
    """
    Non-interactive prompter answering from fixed policies.

    Conflict prompts (offering ``CONFLICT_CHOICES``) are answered from
    ``conflict_policy``; other selections take ``default_selection``; yes/no
    questions take ``confirm_answer``; text prompts pop from ``answers``.
    A policy of ``"ask"`` cannot be answered and cancels the operation.
    Every reported message is recorded in ``messages``.
    """

    def __init__(
        self,
        conflict_policy: str = "mine",
        confirm_answer: bool = False,
        default_selection: Optional[int] = None,
        answers: Optional[Iterable[str]] = None,
    ):
        self.conflict_policy = conflict_policy
        self.confirm_answer = confirm_answer
        self.default_selection = default_selection
        self.answers = deque(answers or [])
        self.messages: List[Tuple[str, str]] = []
        self.prompts: List[str] = []

    def select(self, prompt: str, choices: Sequence[str]) -> int:
        self.prompts.append(prompt)
        if tuple(choices) == CONFLICT_CHOICES:
            if self.conflict_policy == "mine":
                return KEEP_MINE
            if self.conflict_policy == "theirs":
                return DISCARD_MINE
            raise OperationCancelled(f"No answer available for: {prompt}")

        if self.default_selection is None or not 0 <= self.default_selection < len(choices):
            raise OperationCancelled(f"No answer available for: {prompt}")
        return self.default_selection

    def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.confirm_answer

    def input(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.answers:
            raise OperationCancelled(f"No answer available for: {prompt}")
        return self.answers.popleft()

    def info(self, message: str) -> None:
        self.messages.append(("info", message))
        super().info(message)

    def warn(self, message: str) -> None:
        self.messages.append(("warn", message))
        super().warn(message)

    def success(self, message: str) -> None:
        self.messages.append(("success", message))
        super().success(message)
