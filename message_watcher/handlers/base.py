"""Handler contract for messages picked up by the watcher."""
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List

from message_watcher.queue.models import MessageHeader


class Outcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class HandlerResult:
    """What a handler did with a message."""

    outcome: Outcome
    detail: str = ""
    errors: List[Any] = field(default_factory=list)

    @classmethod
    def success(cls) -> "HandlerResult":
        return cls(Outcome.SUCCESS)

    @classmethod
    def failure(cls, detail: str = "", errors: List[Any] = None) -> "HandlerResult":
        return cls(Outcome.FAILURE, detail, list(errors or []))

    @classmethod
    def indeterminate(cls, detail: str = "") -> "HandlerResult":
        return cls(Outcome.INDETERMINATE, detail)

    def describe(self) -> str:
        """Detail text written next to a quarantined header."""
        lines = []
        if self.detail:
            lines.append(self.detail)
        if self.errors:
            lines.append(json.dumps(self.errors, indent=2, default=str))
        return "\n".join(lines)


class MessageHandler(ABC):
    """Processes one kind of message.

    The watcher asks every registered handler ``can_handle``; exactly one
    must say yes for the message to be dispatched.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def can_handle(self, header: MessageHeader) -> bool:
        """Return True if this handler processes messages like header."""

    @abstractmethod
    def handle(self, header: MessageHeader, data_file: Path) -> HandlerResult:
        """Process a message. data_file may not exist."""

    def quiesce(self) -> None:
        """Called once the watcher has run out of eligible messages."""
