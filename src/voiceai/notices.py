"""User-visible notices raised by the voice pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .errors import ErrorKind, VoiceAIError


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    title: str
    message: str
    kind: Optional[ErrorKind] = None

    @classmethod
    def info(cls, title: str, message: str) -> "Notice":
        return cls(NoticeLevel.INFO, title, message)

    @classmethod
    def warning(cls, title: str, message: str) -> "Notice":
        return cls(NoticeLevel.WARNING, title, message)

    @classmethod
    def from_error(cls, title: str, error: VoiceAIError) -> "Notice":
        message = error.message.rstrip(".") + "."
        if error.recoverable:
            message += " Please try again."
        return cls(NoticeLevel.ERROR, title, message, error.kind)


Notifier = Callable[[Notice], None]


def discard_notice(notice: Notice) -> None:
    """Default notifier for hosts without a UI."""


__all__ = ["Notice", "NoticeLevel", "Notifier", "discard_notice"]
