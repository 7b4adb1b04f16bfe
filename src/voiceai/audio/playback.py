"""Single-active-playback rule per surface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import UnsupportedAudioError
from ..notices import Notice, Notifier, discard_notice
from .cache import AudioHandle
from .devices import AudioSink, AutoplayRejectedError

logger = logging.getLogger(__name__)


class Surface(str, Enum):
    ASSISTANT_RESPONSE = "assistant_response"
    USER_PREVIEW = "user_preview"


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass
class PlaybackStatus:
    state: PlaybackState = PlaybackState.IDLE
    handle: Optional[AudioHandle] = None


class PlaybackCoordinator:
    """Keep at most one handle playing on each surface."""

    def __init__(self, sink: AudioSink, *, notify: Notifier = discard_notice) -> None:
        self._sink = sink
        self._notify = notify
        self._slots: dict[Surface, PlaybackStatus] = {
            surface: PlaybackStatus() for surface in Surface
        }

    def state(self, surface: Surface = Surface.ASSISTANT_RESPONSE) -> PlaybackStatus:
        slot = self._slots[surface]
        return PlaybackStatus(state=slot.state, handle=slot.handle)

    def is_playing(self, handle: AudioHandle) -> bool:
        return any(
            slot.handle is handle and slot.state is PlaybackState.PLAYING
            for slot in self._slots.values()
        )

    def play(
        self,
        handle: AudioHandle,
        surface: Surface = Surface.ASSISTANT_RESPONSE,
    ) -> None:
        """Start `handle` from its current position, pausing whatever else is active here.

        Raises `AutoplayRejectedError` when the sink refuses to start.
        """

        slot = self._slots[surface]
        if slot.handle is not None and slot.handle is not handle:
            if slot.state is PlaybackState.PLAYING:
                self._pause_slot(slot)
        elif slot.handle is handle and slot.state is PlaybackState.PLAYING:
            return

        slot.handle = handle
        slot.state = PlaybackState.IDLE
        self._sink.play(handle, handle.position, lambda: self.on_ended(handle))
        slot.state = PlaybackState.PLAYING

    def autoplay(
        self,
        handle: AudioHandle,
        surface: Surface = Surface.ASSISTANT_RESPONSE,
    ) -> bool:
        try:
            self.play(handle, surface)
        except AutoplayRejectedError as exc:
            logger.warning("Autoplay rejected for %s: %s", handle.key, exc)
            self._notify(
                Notice.warning(
                    "Auto-Play Failed",
                    "Playback was blocked. Press play to listen to the response.",
                )
            )
            return False
        except UnsupportedAudioError as exc:
            logger.warning("Cannot play %s: %s", handle.key, exc.message)
            self._notify(Notice.from_error("Playback Failed", exc))
            return False
        return True

    def pause(self, handle: AudioHandle) -> None:
        for slot in self._slots.values():
            if slot.handle is handle and slot.state is PlaybackState.PLAYING:
                self._pause_slot(slot)

    def on_ended(self, handle: AudioHandle) -> None:
        for slot in self._slots.values():
            if slot.handle is handle:
                slot.state = PlaybackState.IDLE
                handle.position = 0.0

    def seek(self, handle: AudioHandle, seconds: float) -> None:
        handle.position = max(0.0, seconds)
        for surface, slot in self._slots.items():
            if slot.handle is handle and slot.state is PlaybackState.PLAYING:
                self._sink.stop(handle)
                slot.state = PlaybackState.IDLE
                self.play(handle, surface)

    def stop_all(self) -> None:
        """Stop every surface and rewind to the start."""

        for slot in self._slots.values():
            handle = slot.handle
            if handle is None:
                continue
            if slot.state is not PlaybackState.IDLE:
                self._sink.stop(handle)
            handle.position = 0.0
            slot.state = PlaybackState.IDLE
            slot.handle = None

    def _pause_slot(self, slot: PlaybackStatus) -> None:
        handle = slot.handle
        if handle is None:
            return
        handle.position = self._sink.pause(handle)
        slot.state = PlaybackState.PAUSED


__all__ = ["PlaybackCoordinator", "PlaybackState", "PlaybackStatus", "Surface"]
