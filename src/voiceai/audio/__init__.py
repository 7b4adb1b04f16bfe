"""Audio capture, encoding, caching and playback."""

from .cache import AudioHandle, PlayableAudioCache
from .capture import AudioCaptureController, RecordingSession, RecordingState
from .devices import (
    AudioInputDevice,
    AudioSink,
    AutoplayRejectedError,
    CaptureParams,
    SoundDeviceInput,
    SoundDeviceSink,
)
from .encoding import AudioResource, EncodingAdapter
from .playback import PlaybackCoordinator, PlaybackState, Surface

__all__ = [
    "AudioCaptureController",
    "AudioHandle",
    "AudioInputDevice",
    "AudioResource",
    "AudioSink",
    "AutoplayRejectedError",
    "CaptureParams",
    "EncodingAdapter",
    "PlayableAudioCache",
    "PlaybackCoordinator",
    "PlaybackState",
    "RecordingSession",
    "RecordingState",
    "SoundDeviceInput",
    "SoundDeviceSink",
    "Surface",
]
