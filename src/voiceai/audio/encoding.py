"""Prepare captured or uploaded audio for the transcription providers."""

from __future__ import annotations

import io
import logging
import wave
from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional

import numpy as np
import soundfile as sf

from ..errors import UnsupportedAudioError

logger = logging.getLogger(__name__)

WAV_MIME_TYPE = "audio/wav"
DEFAULT_MAX_BYTES = 25 * 1024 * 1024
DEFAULT_TARGET_SAMPLE_RATE = 16000


@dataclass(frozen=True)
class AudioResource:
    """A binary audio payload with its MIME type."""

    data: bytes
    mime_type: str
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    def upload_name(self) -> str:
        if self.filename:
            return self.filename
        subtype = self.mime_type.split("/", 1)[-1].split(";", 1)[0] or "bin"
        extension = {"mpeg": "mp3", "x-wav": "wav", "wave": "wav"}.get(subtype, subtype)
        return f"recording.{extension}"


@dataclass(frozen=True)
class WavInfo:
    channels: int
    sample_rate: int
    sample_width: int
    frame_count: int


def encode_wav(
    pcm: bytes,
    *,
    sample_rate: int,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    """Wrap raw little-endian PCM in a RIFF/WAVE container."""

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(sample_width)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm)
    return buffer.getvalue()


def read_wav_info(data: bytes) -> WavInfo:
    try:
        with wave.open(io.BytesIO(data), "rb") as wav_file:
            return WavInfo(
                channels=wav_file.getnchannels(),
                sample_rate=wav_file.getframerate(),
                sample_width=wav_file.getsampwidth(),
                frame_count=wav_file.getnframes(),
            )
    except (wave.Error, EOFError) as exc:
        raise UnsupportedAudioError(f"Not a PCM WAV container: {exc}") from exc


def mix_to_mono(samples: np.ndarray) -> np.ndarray:
    """Average all channels of a (frames, channels) array into one."""

    if samples.ndim == 1:
        return samples.astype(np.float32, copy=False)
    return samples.mean(axis=1, dtype=np.float32)


def resample(samples: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    """Linear-interpolation resampling of a mono float signal."""

    if from_rate == to_rate or len(samples) == 0:
        return samples
    new_len = int(round(len(samples) * to_rate / from_rate))
    if new_len <= 0:
        return np.zeros(0, dtype=np.float32)
    new_positions = np.linspace(0, len(samples) - 1, new_len)
    return np.interp(new_positions, np.arange(len(samples)), samples).astype(np.float32)


def float_to_pcm16(samples: np.ndarray) -> bytes:
    clipped = np.clip(samples, -1.0, 1.0)
    return (clipped * 32767.0).round().astype("<i2").tobytes()


class EncodingAdapter:
    """Pass small payloads through; re-encode large ones to mono 16 kHz WAV."""

    def __init__(
        self,
        *,
        max_bytes: int = DEFAULT_MAX_BYTES,
        target_sample_rate: int = DEFAULT_TARGET_SAMPLE_RATE,
    ) -> None:
        self.max_bytes = max_bytes
        self.target_sample_rate = target_sample_rate

    def prepare_for_transcription(self, resource: AudioResource) -> AudioResource:
        if resource.size < self.max_bytes:
            return resource

        samples, sample_rate = self._decode(resource)
        mono = mix_to_mono(samples)
        converted = resample(mono, sample_rate, self.target_sample_rate)
        payload = encode_wav(
            float_to_pcm16(converted),
            sample_rate=self.target_sample_rate,
            channels=1,
        )
        logger.info(
            "Re-encoded %d byte %s upload (%d ch @ %d Hz) to %d byte mono WAV",
            resource.size,
            resource.mime_type,
            samples.shape[1] if samples.ndim > 1 else 1,
            sample_rate,
            len(payload),
        )
        return AudioResource(
            data=payload,
            mime_type=WAV_MIME_TYPE,
            filename=self._wav_name(resource),
        )

    @staticmethod
    def _decode(resource: AudioResource) -> tuple[np.ndarray, int]:
        if not resource.data:
            raise UnsupportedAudioError("Audio payload is empty")
        try:
            samples, sample_rate = sf.read(
                io.BytesIO(resource.data), dtype="float32", always_2d=True
            )
        except (RuntimeError, TypeError, ValueError) as exc:
            raise UnsupportedAudioError(
                f"Could not decode {resource.mime_type} audio: {exc}"
            ) from exc
        if samples.size == 0:
            raise UnsupportedAudioError("Decoded audio contains no samples")
        return samples, int(sample_rate)

    @staticmethod
    def _wav_name(resource: AudioResource) -> str:
        stem = PurePath(resource.filename).stem if resource.filename else "recording"
        return f"{stem or 'recording'}.wav"


__all__ = [
    "AudioResource",
    "EncodingAdapter",
    "WAV_MIME_TYPE",
    "WavInfo",
    "encode_wav",
    "float_to_pcm16",
    "mix_to_mono",
    "read_wav_info",
    "resample",
]
