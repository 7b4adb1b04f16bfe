import asyncio
import pathlib
import sys
import time
from typing import Any, Callable, Optional

import pytest
from pydantic import SecretStr

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from voiceai.audio.devices import AutoplayRejectedError, CaptureParams  # noqa: E402
from voiceai.audio.encoding import AudioResource  # noqa: E402
from voiceai.config import Settings  # noqa: E402
from voiceai.errors import DeviceUnavailableError, InvalidInputError  # noqa: E402
from voiceai.providers.base import Backend, ProsodyParams, VoiceInfo  # noqa: E402


class FakeInputDevice:
    """Microphone double that records acquire/release pairing."""

    def __init__(
        self,
        *,
        fail_acquire: Optional[Exception] = None,
        acquire_delay: float = 0.0,
        error_on_acquire: Optional[Exception] = None,
    ) -> None:
        self.fail_acquire = fail_acquire
        self.acquire_delay = acquire_delay
        self.error_on_acquire = error_on_acquire
        self.held = False
        self.acquire_count = 0
        self.release_count = 0
        self.params: Optional[CaptureParams] = None
        self._on_chunk: Optional[Callable[[bytes], None]] = None
        self._on_error: Optional[Callable[[Exception], None]] = None

    def acquire(self, params, on_chunk, on_error) -> None:
        if self.fail_acquire is not None:
            raise self.fail_acquire
        if self.held:
            raise DeviceUnavailableError("Microphone is already in use")
        time.sleep(self.acquire_delay)
        self.held = True
        self.acquire_count += 1
        self.params = params
        self._on_chunk = on_chunk
        self._on_error = on_error
        if self.error_on_acquire is not None:
            on_error(self.error_on_acquire)

    def release(self) -> None:
        self.held = False
        self.release_count += 1

    def emit(self, data: bytes) -> None:
        assert self._on_chunk is not None
        self._on_chunk(data)

    def fail(self, exc: Exception) -> None:
        assert self._on_error is not None
        self._on_error(exc)


class FakeSink:
    """Speaker double: `reject` simulates a host refusing autoplay."""

    def __init__(self, *, reject: bool = False, paused_at: float = 1.5) -> None:
        self.reject = reject
        self.paused_at = paused_at
        self.played: list[tuple[str, float]] = []
        self.paused: list[str] = []
        self.stopped: list[str] = []
        self.ended: dict[str, Callable[[], None]] = {}

    def play(self, handle, position: float, on_ended) -> None:
        if self.reject:
            raise AutoplayRejectedError("playback requires a user gesture")
        self.played.append((handle.key, position))
        self.ended[handle.key] = on_ended

    def pause(self, handle) -> float:
        self.paused.append(handle.key)
        return self.paused_at

    def stop(self, handle) -> None:
        self.stopped.append(handle.key)


class ManualClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class NoticeRecorder:
    def __init__(self) -> None:
        self.notices: list[Any] = []

    def __call__(self, notice: Any) -> None:
        self.notices.append(notice)


async def no_sleep(delay: float) -> None:
    no_sleep.delays.append(delay)  # type: ignore[attr-defined]


no_sleep.delays = []  # type: ignore[attr-defined]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key=SecretStr("sk-test"),
        elevenlabs_api_key=SecretStr("el-test"),
        openai_base_url="https://openai.test/v1",
        elevenlabs_base_url="https://elevenlabs.test/v1",
        provider_backoff_seconds=0.0,
    )


@pytest.fixture
def sleeps() -> list[float]:
    no_sleep.delays = []  # type: ignore[attr-defined]
    return no_sleep.delays  # type: ignore[attr-defined]


class ScriptedProvider:
    """In-memory backend; `delays` maps segment text to a sleep before replying."""

    def __init__(self, backend: Backend = Backend.OPENAI) -> None:
        self.backend = backend
        self.calls: list[tuple[str, object]] = []
        self.delays: dict[str, float] = {}
        self.transcribe_delay = 0.0
        self.completed: list[str] = []
        self.transcript = "hello world"
        self.reply = "hi there"
        self.chat_error: Optional[Exception] = None

    def validate_voice(self, voice: str) -> None:
        if voice not in ("alloy", "nova"):
            raise InvalidInputError("Invalid voice")

    def validate_prosody(self, prosody: ProsodyParams) -> None:
        if prosody.stability is not None:
            raise InvalidInputError("stability unsupported")

    async def transcribe(self, audio: AudioResource, *, language: Optional[str] = None) -> str:
        self.calls.append(("transcribe", audio))
        await asyncio.sleep(self.transcribe_delay)
        return self.transcript

    async def synthesize(self, text: str, voice: str, prosody: ProsodyParams) -> bytes:
        self.calls.append(("synthesize", text))
        await asyncio.sleep(self.delays.get(text, 0))
        self.completed.append(text)
        return text.encode()

    async def chat_complete(self, messages: list[dict[str, str]]) -> str:
        self.calls.append(("chat", messages))
        if self.chat_error is not None:
            raise self.chat_error
        return self.reply

    async def list_voices(self) -> list[VoiceInfo]:
        return [VoiceInfo(id="alloy", name="Alloy", provider=self.backend)]

    async def aclose(self) -> None:
        self.calls.append(("aclose", None))
