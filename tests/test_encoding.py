from __future__ import annotations

import numpy as np
import pytest

from voiceai.audio.encoding import (
    AudioResource,
    EncodingAdapter,
    encode_wav,
    mix_to_mono,
    read_wav_info,
    resample,
)
from voiceai.errors import UnsupportedAudioError


def _stereo_wav(frames: int, sample_rate: int) -> bytes:
    t = np.arange(frames, dtype=np.float32) / sample_rate
    left = (0.25 * np.sin(2 * np.pi * 440 * t) * 32767).astype("<i2")
    right = (0.25 * np.sin(2 * np.pi * 660 * t) * 32767).astype("<i2")
    interleaved = np.column_stack([left, right]).ravel()
    return encode_wav(interleaved.tobytes(), sample_rate=sample_rate, channels=2)


def test_small_payload_passes_through_unchanged() -> None:
    resource = AudioResource(data=b"ID3" + b"\x00" * 1024, mime_type="audio/mpeg")
    adapter = EncodingAdapter()

    assert adapter.prepare_for_transcription(resource) is resource


def test_oversized_stereo_upload_becomes_mono_16k_wav() -> None:
    sample_rate = 44100
    frames = (30 * 1024 * 1024) // 4
    resource = AudioResource(
        data=_stereo_wav(frames, sample_rate),
        mime_type="audio/wav",
        filename="meeting.wav",
    )
    assert resource.size > 25 * 1024 * 1024

    prepared = EncodingAdapter().prepare_for_transcription(resource)

    info = read_wav_info(prepared.data)
    assert prepared.mime_type == "audio/wav"
    assert prepared.filename == "meeting.wav"
    assert info.channels == 1
    assert info.sample_rate == 16000
    assert info.sample_width == 2
    expected = frames * 16000 / sample_rate
    assert abs(info.frame_count - expected) <= 1
    assert prepared.size < resource.size


def test_threshold_is_configurable() -> None:
    resource = AudioResource(
        data=_stereo_wav(4800, 48000), mime_type="audio/x-wav", filename="clip.webm"
    )
    prepared = EncodingAdapter(max_bytes=1024).prepare_for_transcription(resource)

    info = read_wav_info(prepared.data)
    assert info.channels == 1
    assert info.frame_count == 1600
    assert prepared.filename == "clip.wav"


def test_undecodable_payload_is_unsupported_audio() -> None:
    resource = AudioResource(data=b"not audio at all" * 200, mime_type="audio/webm")

    with pytest.raises(UnsupportedAudioError):
        EncodingAdapter(max_bytes=10).prepare_for_transcription(resource)


def test_mix_to_mono_averages_channels() -> None:
    samples = np.array([[1.0, 0.0], [0.5, 0.5], [-1.0, 1.0]], dtype=np.float32)

    assert mix_to_mono(samples).tolist() == [0.5, 0.5, 0.0]


def test_resample_identity_and_length() -> None:
    samples = np.linspace(-1, 1, 441, dtype=np.float32)

    assert resample(samples, 16000, 16000) is samples
    assert len(resample(samples, 44100, 16000)) == 160


def test_upload_name_uses_mime_extension() -> None:
    assert AudioResource(b"x", "audio/mpeg").upload_name() == "recording.mp3"
    assert AudioResource(b"x", "audio/webm;codecs=opus").upload_name() == "recording.webm"
    assert AudioResource(b"x", "audio/wav", filename="a.wav").upload_name() == "a.wav"


def test_reencoding_mono_16k_preserves_frames_and_channels() -> None:
    frames = 16000
    t = np.arange(frames, dtype=np.float32) / 16000
    samples = (0.25 * np.sin(2 * np.pi * 440 * t) * 32767).astype("<i2")
    resource = AudioResource(
        data=encode_wav(samples.tobytes(), sample_rate=16000, channels=1),
        mime_type="audio/wav",
    )
    adapter = EncodingAdapter(max_bytes=1024)

    once = adapter.prepare_for_transcription(resource)
    twice = adapter.prepare_for_transcription(once)

    first, second = read_wav_info(once.data), read_wav_info(twice.data)
    assert first.frame_count == second.frame_count == frames
    assert first.channels == second.channels == 1
    assert second.sample_rate == 16000
