"""Microphone and speaker adapters.

The pipeline only talks to the `AudioInputDevice` and `AudioSink` protocols.
The sounddevice-backed implementations import their native libraries lazily
so that the rest of the package works on hosts without PortAudio.
"""

from __future__ import annotations

import asyncio
import io
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol

from ..errors import DeviceUnavailableError, UnsupportedAudioError

if TYPE_CHECKING:
    from .cache import AudioHandle

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[bytes], None]
ErrorCallback = Callable[[Exception], None]


class AutoplayRejectedError(Exception):
    """Raised by a sink when the host refuses to start playback."""


@dataclass(frozen=True)
class CaptureParams:
    """Fixed capture parameters for speech input."""

    sample_rate: int = 16000
    channels: int = 1
    sample_width: int = 2
    block_ms: int = 100
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True

    @property
    def blocksize(self) -> int:
        return int(self.sample_rate * (self.block_ms / 1000.0))


class AudioInputDevice(Protocol):
    def acquire(
        self,
        params: CaptureParams,
        on_chunk: ChunkCallback,
        on_error: ErrorCallback,
    ) -> None:
        """Take exclusive ownership of the device and start delivering chunks."""
        ...

    def release(self) -> None:
        """Stop the input track. Returns once the hardware has let go."""
        ...


class AudioSink(Protocol):
    def play(
        self,
        handle: "AudioHandle",
        position: float,
        on_ended: Callable[[], None],
    ) -> None: ...

    def pause(self, handle: "AudioHandle") -> float: ...

    def stop(self, handle: "AudioHandle") -> None: ...


class SoundDeviceInput:
    """Raw int16 microphone capture through `sounddevice.RawInputStream`."""

    def __init__(self, device: Optional[int | str] = None) -> None:
        self._device = device
        self._stream: Any = None
        self._lock = threading.Lock()
        self._releasing = False

    @property
    def held(self) -> bool:
        return self._stream is not None

    def acquire(
        self,
        params: CaptureParams,
        on_chunk: ChunkCallback,
        on_error: ErrorCallback,
    ) -> None:
        import sounddevice as sd

        with self._lock:
            if self._stream is not None:
                raise DeviceUnavailableError("Microphone is already in use")

            # PortAudio has no switches for echo cancellation or noise
            # suppression; the OS input chain applies them when enabled.
            def _callback(indata: Any, frames: int, time_info: Any, status: Any) -> None:
                if status:
                    logger.debug("Input stream status: %s", status)
                on_chunk(bytes(indata))

            def _finished() -> None:
                if not self._releasing:
                    on_error(DeviceUnavailableError("Input stream ended unexpectedly"))

            try:
                stream = sd.RawInputStream(
                    samplerate=params.sample_rate,
                    channels=params.channels,
                    dtype="int16",
                    blocksize=params.blocksize,
                    device=self._device,
                    callback=_callback,
                    finished_callback=_finished,
                )
                stream.start()
            except sd.PortAudioError as exc:
                raise DeviceUnavailableError(
                    f"Could not open microphone: {exc}"
                ) from exc

            self._releasing = False
            self._stream = stream
            logger.info(
                "Microphone acquired (%d Hz, %d channel(s))",
                params.sample_rate,
                params.channels,
            )

    def release(self) -> None:
        with self._lock:
            stream = self._stream
            if stream is None:
                return
            self._releasing = True
            try:
                stream.stop()
                stream.close()
            finally:
                self._stream = None
            logger.info("Microphone released")


class _OutputTrack:
    def __init__(self, stream: Any, sample_rate: int, start_frame: int) -> None:
        self.stream = stream
        self.sample_rate = sample_rate
        self.frame = start_frame
        self.stopped_by_caller = False


class SoundDeviceSink:
    """Plays decoded audio handles on the default output device."""

    def __init__(self, device: Optional[int | str] = None) -> None:
        self._device = device
        self._tracks: dict[str, _OutputTrack] = {}

    def play(
        self,
        handle: "AudioHandle",
        position: float,
        on_ended: Callable[[], None],
    ) -> None:
        import sounddevice as sd
        import soundfile as sf

        try:
            samples, sample_rate = sf.read(
                io.BytesIO(handle.data), dtype="float32", always_2d=True
            )
        except (RuntimeError, TypeError, ValueError) as exc:
            raise UnsupportedAudioError(f"Cannot decode audio for playback: {exc}") from exc

        self.stop(handle)
        try:
            loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        track: _OutputTrack

        def _callback(outdata: Any, frames: int, time_info: Any, status: Any) -> None:
            start = track.frame
            chunk = samples[start : start + frames]
            outdata[: len(chunk)] = chunk
            if len(chunk) < frames:
                outdata[len(chunk) :] = 0
                track.frame = len(samples)
                raise sd.CallbackStop()
            track.frame = start + frames

        def _finished() -> None:
            if track.stopped_by_caller:
                return
            if loop is not None:
                loop.call_soon_threadsafe(on_ended)
            else:
                on_ended()

        try:
            stream = sd.OutputStream(
                samplerate=sample_rate,
                channels=samples.shape[1],
                dtype="float32",
                device=self._device,
                callback=_callback,
                finished_callback=_finished,
            )
            track = _OutputTrack(stream, sample_rate, int(position * sample_rate))
            stream.start()
        except sd.PortAudioError as exc:
            raise AutoplayRejectedError(f"Output device refused playback: {exc}") from exc

        self._tracks[handle.key] = track

    def pause(self, handle: "AudioHandle") -> float:
        track = self._tracks.pop(handle.key, None)
        if track is None:
            return handle.position
        track.stopped_by_caller = True
        track.stream.stop()
        track.stream.close()
        return track.frame / track.sample_rate

    def stop(self, handle: "AudioHandle") -> None:
        self.pause(handle)


__all__ = [
    "AudioInputDevice",
    "AudioSink",
    "AutoplayRejectedError",
    "CaptureParams",
    "SoundDeviceInput",
    "SoundDeviceSink",
]
