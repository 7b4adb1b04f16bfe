"""In-memory conversation transcript."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterator, Optional

from .audio.cache import PlayableAudioCache

logger = logging.getLogger(__name__)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class Turn:
    role: Role
    text_content: str
    audio_ref: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not isinstance(self.text_content, str):
            raise TypeError("text_content must be a string")
        object.__setattr__(self, "role", Role(self.role))

    def to_message(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.text_content}


class Conversation:
    """Ordered turns, appended one at a time and cleared wholesale."""

    def __init__(self, cache: PlayableAudioCache) -> None:
        self._cache = cache
        self._turns: list[Turn] = []

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self.turns)

    def append_turn(self, turn: Turn) -> None:
        self._turns.append(turn)
        logger.debug("Appended %s turn (%d total)", turn.role.value, len(self._turns))

    def clear(self) -> int:
        """Drop every turn and ask the cache to release the audio they point at."""

        refs = {turn.audio_ref for turn in self._turns if turn.audio_ref}
        count = len(self._turns)
        self._turns.clear()
        released = sum(1 for key in refs if self._cache.release(key))
        logger.info("Conversation cleared: %d turn(s), %d audio ref(s) released", count, released)
        return count


__all__ = ["Conversation", "Role", "Turn"]
