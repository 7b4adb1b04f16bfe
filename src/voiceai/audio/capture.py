"""Microphone session lifecycle: start, buffer, stop, hand off."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from ..errors import DeviceUnavailableError, UnsupportedAudioError, VoiceAIError
from .devices import AudioInputDevice, CaptureParams
from .encoding import WAV_MIME_TYPE, AudioResource, encode_wav

logger = logging.getLogger(__name__)


class RecordingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"
    COMPLETED = "completed"
    FAILED = "failed"


_ACTIVE_STATES = (RecordingState.RECORDING, RecordingState.STOPPING)


@dataclass
class RecordingSession:
    """One capture attempt. Never reused once it leaves Recording."""

    params: CaptureParams = field(default_factory=CaptureParams)
    mime_type: str = WAV_MIME_TYPE
    state: RecordingState = RecordingState.IDLE
    started_at: Optional[datetime] = None
    elapsed_seconds: int = 0
    chunks: list[bytes] = field(default_factory=list)
    result: Optional[AudioResource] = None
    error: Optional[VoiceAIError] = None
    released: bool = field(default=False, repr=False)
    pending_error: Optional[Exception] = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self.state in _ACTIVE_STATES


class AudioCaptureController:
    """Drive a `RecordingSession` against an input device on the event loop.

    Device callbacks arrive on a driver thread and are marshalled back onto the
    loop, so every session mutation happens on a single thread of control.
    """

    def __init__(
        self,
        device: AudioInputDevice,
        *,
        params: Optional[CaptureParams] = None,
        on_complete: Optional[Callable[[AudioResource], None]] = None,
        on_error: Optional[Callable[[VoiceAIError], None]] = None,
        tick_seconds: float = 1.0,
    ) -> None:
        self._device = device
        self._params = params or CaptureParams()
        self._on_complete = on_complete
        self._on_error = on_error
        self._tick_seconds = tick_seconds
        self._session: Optional[RecordingSession] = None
        self._ticker: Optional[asyncio.Task[None]] = None
        self._release_task: Optional[asyncio.Task[None]] = None
        self._starting = False

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    @property
    def is_recording(self) -> bool:
        return self._session is not None and self._session.state is RecordingState.RECORDING

    async def start(self) -> RecordingSession:
        if self._starting or (self._session is not None and self._session.active):
            raise DeviceUnavailableError("A recording is already in progress")

        loop = asyncio.get_running_loop()
        session = RecordingSession(params=self._params)
        self._session = session

        def _on_chunk(data: bytes) -> None:
            loop.call_soon_threadsafe(self._append_chunk, session, data)

        def _on_device_error(exc: Exception) -> None:
            loop.call_soon_threadsafe(self._handle_device_error, session, exc)

        self._starting = True
        try:
            await loop.run_in_executor(
                None, self._device.acquire, self._params, _on_chunk, _on_device_error
            )
        except DeviceUnavailableError as exc:
            session.state = RecordingState.FAILED
            session.error = exc
            logger.warning("Recording could not start: %s", exc)
            raise
        except Exception as exc:
            session.state = RecordingState.FAILED
            error = DeviceUnavailableError(f"Could not acquire microphone: {exc}")
            session.error = error
            logger.warning("Recording could not start: %s", exc)
            raise error from exc
        finally:
            self._starting = False

        session.state = RecordingState.RECORDING
        session.started_at = datetime.now(timezone.utc)
        if session.pending_error is not None:
            # The stream died while the device was still being acquired.
            self._handle_device_error(session, session.pending_error)
            return session
        self._ticker = asyncio.create_task(self._tick(session))
        logger.info("Recording started")
        return session

    async def stop(self) -> Optional[AudioResource]:
        """Finish the current recording. A no-op unless a session is Recording."""

        session = self._session
        if session is None or session.state is not RecordingState.RECORDING:
            return None

        session.state = RecordingState.STOPPING
        await self._cancel_ticker()
        await self._release(session)

        # A device error may have failed the session while the release was pending.
        if session.state is not RecordingState.STOPPING:
            return None

        if not session.chunks:
            self._fail(session, UnsupportedAudioError("Recording captured no audio"))
            return None

        pcm = b"".join(session.chunks)
        resource = AudioResource(
            data=encode_wav(
                pcm,
                sample_rate=session.params.sample_rate,
                channels=session.params.channels,
                sample_width=session.params.sample_width,
            ),
            mime_type=session.mime_type,
            filename="recording.wav",
        )
        session.result = resource
        session.state = RecordingState.COMPLETED
        logger.info(
            "Recording completed: %d s, %d chunk(s), %d bytes",
            session.elapsed_seconds,
            len(session.chunks),
            resource.size,
        )
        if self._on_complete is not None:
            self._on_complete(resource)
        return resource

    async def aclose(self) -> None:
        """Teardown: finish any in-flight recording and release the device."""

        if self.is_recording:
            await self.stop()
        await self._cancel_ticker()
        if self._release_task is not None:
            await self._release_task

    def _append_chunk(self, session: RecordingSession, data: bytes) -> None:
        if session.active and data:
            session.chunks.append(data)

    def _handle_device_error(self, session: RecordingSession, exc: Exception) -> None:
        if session.state is RecordingState.IDLE:
            session.pending_error = session.pending_error or exc
            return
        if not session.active:
            return
        if isinstance(exc, VoiceAIError):
            error = exc
        else:
            error = DeviceUnavailableError(f"Microphone failed: {exc}")
        self._fail(session, error)
        if self._ticker is not None:
            self._ticker.cancel()
        self._release_task = asyncio.ensure_future(self._release(session))

    def _fail(self, session: RecordingSession, error: VoiceAIError) -> None:
        session.chunks.clear()
        session.state = RecordingState.FAILED
        session.error = error
        logger.error("Recording failed: %s", error)
        if self._on_error is not None:
            self._on_error(error)

    async def _release(self, session: RecordingSession) -> None:
        if session.released:
            return
        session.released = True
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._device.release)
        except Exception:
            logger.warning("Microphone release reported an error", exc_info=True)

    async def _tick(self, session: RecordingSession) -> None:
        while session.state is RecordingState.RECORDING:
            await asyncio.sleep(self._tick_seconds)
            if session.state is RecordingState.RECORDING:
                session.elapsed_seconds += 1

    async def _cancel_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is None or ticker.done():
            return
        ticker.cancel()
        with suppress(asyncio.CancelledError):
            await ticker


__all__ = ["AudioCaptureController", "RecordingSession", "RecordingState"]
