from __future__ import annotations

import asyncio

import pytest

from conftest import FakeInputDevice
from voiceai.audio.capture import AudioCaptureController, RecordingState
from voiceai.audio.encoding import read_wav_info
from voiceai.errors import DeviceUnavailableError, UnsupportedAudioError

# 100 ms of 16 kHz mono int16 silence
CHUNK = b"\x00\x00" * 1600


async def _drain() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_recording_produces_wav_and_releases_device_once() -> None:
    device = FakeInputDevice()
    completed = []
    controller = AudioCaptureController(
        device, on_complete=completed.append, tick_seconds=60
    )

    session = await controller.start()
    assert session.state is RecordingState.RECORDING
    assert device.params is not None
    assert device.params.channels == 1
    assert device.params.sample_rate == 16000
    assert device.params.echo_cancellation

    for _ in range(30):
        device.emit(CHUNK)
    await _drain()

    resource = await controller.stop()

    assert resource is not None
    assert resource.mime_type == "audio/wav"
    info = read_wav_info(resource.data)
    assert info.channels == 1
    assert info.sample_rate == 16000
    assert info.frame_count == 30 * 1600
    assert session.state is RecordingState.COMPLETED
    assert completed == [resource]
    assert device.acquire_count == 1
    assert device.release_count == 1


@pytest.mark.asyncio
async def test_stop_is_idempotent() -> None:
    device = FakeInputDevice()
    controller = AudioCaptureController(device, tick_seconds=60)

    await controller.start()
    device.emit(CHUNK)
    await _drain()

    first = await controller.stop()
    second = await controller.stop()

    assert first is not None
    assert second is None
    assert device.release_count == 1


@pytest.mark.asyncio
async def test_stop_without_session_is_noop() -> None:
    device = FakeInputDevice()
    controller = AudioCaptureController(device)

    assert await controller.stop() is None
    assert device.release_count == 0


@pytest.mark.asyncio
async def test_start_while_recording_fails_without_stealing_device() -> None:
    device = FakeInputDevice()
    controller = AudioCaptureController(device, tick_seconds=60)

    await controller.start()
    with pytest.raises(DeviceUnavailableError):
        await controller.start()

    assert device.acquire_count == 1
    assert controller.is_recording
    await controller.aclose()
    assert device.release_count == 1


@pytest.mark.asyncio
async def test_denied_microphone_fails_session() -> None:
    device = FakeInputDevice(fail_acquire=PermissionError("denied"))
    controller = AudioCaptureController(device)

    with pytest.raises(DeviceUnavailableError):
        await controller.start()

    assert controller.session is not None
    assert controller.session.state is RecordingState.FAILED
    assert device.release_count == 0


@pytest.mark.asyncio
async def test_device_error_discards_buffer_and_releases() -> None:
    device = FakeInputDevice()
    errors = []
    controller = AudioCaptureController(device, on_error=errors.append, tick_seconds=60)

    session = await controller.start()
    device.emit(CHUNK)
    device.fail(OSError("device unplugged"))
    await _drain()

    assert session.state is RecordingState.FAILED
    assert session.chunks == []
    assert len(errors) == 1
    assert isinstance(errors[0], DeviceUnavailableError)

    assert await controller.stop() is None
    await controller.aclose()
    assert device.release_count == 1


@pytest.mark.asyncio
async def test_empty_recording_fails_as_unsupported_audio() -> None:
    device = FakeInputDevice()
    errors = []
    controller = AudioCaptureController(device, on_error=errors.append, tick_seconds=60)

    session = await controller.start()
    result = await controller.stop()

    assert result is None
    assert session.state is RecordingState.FAILED
    assert isinstance(session.error, UnsupportedAudioError)
    assert len(errors) == 1
    assert device.release_count == 1


@pytest.mark.asyncio
async def test_new_session_allowed_after_completion() -> None:
    device = FakeInputDevice()
    controller = AudioCaptureController(device, tick_seconds=60)

    await controller.start()
    device.emit(CHUNK)
    await _drain()
    await controller.stop()

    await controller.start()
    await controller.aclose()

    assert device.acquire_count == 2
    assert device.release_count == 2


@pytest.mark.asyncio
async def test_overlapping_starts_keep_a_single_device_owner() -> None:
    device = FakeInputDevice(acquire_delay=0.05)
    controller = AudioCaptureController(device, tick_seconds=60)

    first, second = await asyncio.gather(
        controller.start(), controller.start(), return_exceptions=True
    )

    assert first.state is RecordingState.RECORDING
    assert isinstance(second, DeviceUnavailableError)
    assert controller.session is first

    device.emit(CHUNK)
    await _drain()
    assert await controller.stop() is not None
    await controller.aclose()

    assert device.acquire_count == 1
    assert device.release_count == 1
    assert not device.held


@pytest.mark.asyncio
async def test_device_error_during_acquire_fails_session() -> None:
    device = FakeInputDevice(error_on_acquire=OSError("stream closed"))
    errors = []
    controller = AudioCaptureController(device, on_error=errors.append, tick_seconds=60)

    session = await controller.start()
    await _drain()

    assert session.state is RecordingState.FAILED
    assert len(errors) == 1
    assert isinstance(errors[0], DeviceUnavailableError)
    assert not controller.is_recording

    await controller.aclose()
    assert device.release_count == 1
