from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from conftest import ScriptedProvider
from voiceai.app import create_app
from voiceai.config import Settings
from voiceai.errors import InvalidInputError, RateLimitedError
from voiceai.providers.base import Backend, ProsodyParams, VoiceInfo
from voiceai.providers.gateway import ProviderGateway


class FakeElevenLabs(ScriptedProvider):
    def __init__(self) -> None:
        super().__init__(Backend.ELEVENLABS)
        self.prosody: list[ProsodyParams] = []

    def validate_voice(self, voice: str) -> None:
        if not voice:
            raise InvalidInputError("A voice id is required")

    def validate_prosody(self, prosody: ProsodyParams) -> None:
        self.prosody.append(prosody)

    async def list_voices(self) -> list[VoiceInfo]:
        return [
            VoiceInfo(id="abc", name="Rachel", provider=Backend.ELEVENLABS, gender="female")
        ]


@pytest.fixture
def providers() -> dict[Backend, ScriptedProvider]:
    return {Backend.OPENAI: ScriptedProvider(), Backend.ELEVENLABS: FakeElevenLabs()}


@pytest.fixture
def client(settings: Settings, providers) -> Iterator[TestClient]:
    app = create_app(settings, gateway=ProviderGateway(providers, timeout=0.5))
    with TestClient(app) as test_client:
        yield test_client


def test_openai_speech_returns_cacheable_mp3(client: TestClient, providers) -> None:
    response = client.post("/api/openai/speech", json={"text": "hi there", "voice": "nova"})
    again = client.post("/api/openai/speech", json={"text": "hi there", "voice": "nova"})

    assert response.status_code == 200
    assert response.content == b"hi there"
    assert response.headers["content-type"] == "audio/mpeg"
    assert response.headers["cache-control"] == "public, max-age=31536000"
    assert again.content == response.content
    synth_calls = [c for c in providers[Backend.OPENAI].calls if c[0] == "synthesize"]
    assert len(synth_calls) == 1


def test_openai_speech_invalid_voice_is_400(client: TestClient, providers) -> None:
    response = client.post("/api/openai/speech", json={"text": "hi", "voice": "robot"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid voice"}
    assert providers[Backend.OPENAI].calls == []


def test_request_validation_errors_use_error_shape(client: TestClient) -> None:
    response = client.post("/api/openai/speech", json={"voice": "alloy"})

    assert response.status_code == 400
    assert set(response.json()) == {"error"}


def test_openai_chat_wraps_reply(client: TestClient, providers) -> None:
    response = client.post(
        "/api/openai/chat", json={"messages": [{"role": "user", "content": "hello"}]}
    )

    assert response.status_code == 200
    assert response.json() == {"data": {"message": "hi there"}}


def test_openai_chat_without_user_message_is_400(client: TestClient) -> None:
    response = client.post("/api/openai/chat", json={"messages": []})

    assert response.status_code == 400
    assert "user message" in response.json()["error"]


def test_rate_limit_maps_to_429(client: TestClient, providers) -> None:
    providers[Backend.OPENAI].chat_error = RateLimitedError("Too many requests", status_code=429)

    response = client.post(
        "/api/openai/chat", json={"messages": [{"role": "user", "content": "hello"}]}
    )

    assert response.status_code == 429
    assert response.json() == {"error": "Too many requests"}


def test_timeout_maps_to_504(client: TestClient, providers) -> None:
    providers[Backend.OPENAI].delays = {"slow": 5.0}

    response = client.post("/api/openai/speech", json={"text": "slow"})

    assert response.status_code == 504


def test_openai_transcribe_accepts_multipart(client: TestClient) -> None:
    response = client.post(
        "/api/openai/transcribe",
        files={"file": ("clip.webm", b"webm-bytes", "audio/webm")},
        data={"language": "en"},
    )

    assert response.status_code == 200
    assert response.json() == {"text": "hello world"}


def test_transcribe_without_file_is_400(client: TestClient) -> None:
    response = client.post("/api/openai/transcribe", data={"language": "en"})

    assert response.status_code == 400
    assert "error" in response.json()


def test_elevenlabs_speech_accepts_camel_case(client: TestClient, providers) -> None:
    response = client.post(
        "/api/elevenlabs/speech",
        json={"text": "hola", "voiceId": "abc", "stability": 30, "speakerBoost": False},
    )

    assert response.status_code == 200
    assert response.content == b"hola"
    prosody = providers[Backend.ELEVENLABS].prosody[0]
    assert prosody.stability == 30
    assert prosody.similarity == 75
    assert prosody.style == 0
    assert prosody.speaker_boost is False


def test_elevenlabs_transcribe_and_voices(client: TestClient) -> None:
    transcribed = client.post(
        "/api/elevenlabs/transcribe",
        files={"file": ("clip.mp3", b"ID3", "audio/mpeg")},
    )
    voices = client.get("/api/elevenlabs/voices")

    assert transcribed.json() == {"text": "hello world"}
    assert voices.status_code == 200
    (voice,) = voices.json()["voices"]
    assert voice["id"] == "abc"
    assert voice["provider"] == "elevenlabs"


def test_health_reports_configuration(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["openai_configured"] is True
    assert body["default_backend"] == "openai"


def test_missing_api_key_is_503() -> None:
    app = create_app(Settings(openai_api_key=None, elevenlabs_api_key=None))

    with TestClient(app) as client:
        response = client.post("/api/openai/speech", json={"text": "hi"})

    assert response.status_code == 503
    assert response.json() == {"error": "OpenAI API key not configured"}
