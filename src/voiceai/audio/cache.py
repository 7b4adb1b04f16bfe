"""Bounded cache of ready-to-play audio handles."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from contextlib import suppress
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, Optional, Union

logger = logging.getLogger(__name__)

HandleFactory = Callable[[], Union["AudioHandle", Awaitable["AudioHandle"]]]


class AudioHandle:
    """Owns the byte buffer behind one playable audio resource."""

    def __init__(self, key: str, data: bytes, mime_type: str = "audio/mpeg") -> None:
        self.key = key
        self.mime_type = mime_type
        self.position = 0.0
        self._buffer: Optional[bytes] = data

    @property
    def released(self) -> bool:
        return self._buffer is None

    @property
    def data(self) -> bytes:
        if self._buffer is None:
            raise RuntimeError(f"Audio handle {self.key!r} has been released")
        return self._buffer

    @property
    def size(self) -> int:
        return 0 if self._buffer is None else len(self._buffer)

    def release(self) -> bool:
        if self._buffer is None:
            return False
        self._buffer = None
        self.position = 0.0
        return True

    def __repr__(self) -> str:
        state = "released" if self.released else f"{self.size} bytes"
        return f"AudioHandle({self.key!r}, {self.mime_type}, {state})"


@dataclass
class _Entry:
    handle: AudioHandle
    created_at: float
    last_accessed_at: float


class PlayableAudioCache:
    """Map cache keys to audio handles with age and count bounds.

    Owned explicitly by whoever hosts the pipeline: call `start()` to begin the
    periodic sweep and `aclose()` on teardown.
    """

    def __init__(
        self,
        *,
        max_entries: int = 20,
        max_age: float = 3600.0,
        sweep_interval: float = 1800.0,
        enforce_capacity: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.max_age = max_age
        self.sweep_interval = sweep_interval
        self.enforce_capacity = enforce_capacity
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._pending: dict[str, asyncio.Task[AudioHandle]] = {}
        self._sweep_task: Optional[asyncio.Task[None]] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def peek(self, key: str) -> Optional[AudioHandle]:
        """Return the live handle for `key` without refreshing it."""

        entry = self._entries.get(key)
        if entry is None or self._expired(entry, self._clock()):
            return None
        return entry.handle

    def last_accessed(self, key: str) -> Optional[float]:
        entry = self._entries.get(key)
        return None if entry is None else entry.last_accessed_at

    async def get_or_create(self, key: str, factory: HandleFactory) -> AudioHandle:
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None:
            if not self._expired(entry, now):
                entry.last_accessed_at = now
                return entry.handle
            self._remove(key, reason="expired")

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._create(key, factory))
            self._pending[key] = task
        return await asyncio.shield(task)

    async def _create(self, key: str, factory: HandleFactory) -> AudioHandle:
        try:
            result = factory()
            if inspect.isawaitable(result):
                result = await result
        finally:
            self._pending.pop(key, None)

        handle: AudioHandle = result
        now = self._clock()
        previous = self._entries.get(key)
        if previous is not None and previous.handle is not handle:
            self._remove(key, reason="replaced")
        self._entries[key] = _Entry(handle=handle, created_at=now, last_accessed_at=now)
        logger.debug("Cached audio %s (%d bytes)", key, handle.size)
        self.evict_if_over_capacity(now)
        return handle

    def sweep(self, now: Optional[float] = None) -> int:
        """Release every entry idle for longer than `max_age`."""

        reference = self._clock() if now is None else now
        expired = [
            key
            for key, entry in self._entries.items()
            if self._expired(entry, reference)
        ]
        for key in expired:
            self._remove(key, reason="expired")
        if expired:
            logger.info("Audio cache sweep released %d entr(ies)", len(expired))
        return len(expired)

    def evict_if_over_capacity(self, now: Optional[float] = None) -> int:
        if len(self._entries) <= self.max_entries:
            return 0

        reference = self._clock() if now is None else now
        by_age = sorted(self._entries.items(), key=lambda item: item[1].last_accessed_at)
        removed = 0
        for key, entry in by_age:
            if len(self._entries) <= self.max_entries:
                break
            if self._expired(entry, reference):
                self._remove(key, reason="capacity")
                removed += 1

        if len(self._entries) > self.max_entries:
            if not self.enforce_capacity:
                logger.warning(
                    "Audio cache holds %d entries (max %d) and none are past max age",
                    len(self._entries),
                    self.max_entries,
                )
                return removed
            for key, _ in by_age:
                if len(self._entries) <= self.max_entries:
                    break
                if key in self._entries:
                    self._remove(key, reason="capacity")
                    removed += 1
        return removed

    def release(self, key: str) -> bool:
        """Release and drop a single entry."""

        if key not in self._entries:
            return False
        self._remove(key, reason="released")
        return True

    def clear(self) -> int:
        keys = list(self._entries)
        for key in keys:
            self._remove(key, reason="cleared")
        if keys:
            logger.info("Audio cache cleared (%d entries released)", len(keys))
        return len(keys)

    def start(self) -> None:
        """Begin the periodic sweep on the running loop."""

        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def aclose(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        for pending in list(self._pending.values()):
            pending.cancel()
        self.clear()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.sweep()
            except Exception as exc:
                logger.warning("Audio cache sweep failed: %s", exc)

    def _expired(self, entry: _Entry, now: float) -> bool:
        return now - entry.last_accessed_at > self.max_age

    def _remove(self, key: str, *, reason: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        entry.handle.release()
        logger.debug("Released cached audio %s (%s)", key, reason)


__all__ = ["AudioHandle", "HandleFactory", "PlayableAudioCache"]
