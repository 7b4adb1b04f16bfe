"""ElevenLabs backend: text-to-speech, Scribe transcription and voice catalog."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

import httpx

from ..audio.encoding import AudioResource
from ..config import Settings
from ..errors import EmptyResponseError, InvalidInputError, ProviderError
from .base import Backend, ProsodyParams, VoiceInfo
from .http import RetryPolicy, Sleep, send_with_retry

logger = logging.getLogger(__name__)

VENDOR = "ElevenLabs"
OUTPUT_FORMAT = "mp3_44100_128"

PERCENT_MIN = 0.0
PERCENT_MAX = 100.0


class ElevenLabsProvider:
    """Request/response client for ElevenLabs speech endpoints."""

    backend = Backend.ELEVENLABS

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.provider_timeout, connect=10.0)
        )
        self._retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.provider_max_retries,
            backoff_seconds=settings.provider_backoff_seconds,
        )
        self._sleep = sleep

    @property
    def _base_url(self) -> str:
        return str(self._settings.elevenlabs_base_url).rstrip("/")

    def _auth_headers(self) -> dict[str, str]:
        api_key = self._settings.elevenlabs_api_key
        if api_key is None or not api_key.get_secret_value():
            raise ProviderError(
                "ElevenLabs API key not configured", status_code=503, transient=False
            )
        return {"xi-api-key": api_key.get_secret_value()}

    def validate_voice(self, voice: str) -> None:
        # The catalog is open-ended; only reject ids that cannot form a URL.
        if not voice or not voice.strip() or "/" in voice:
            raise InvalidInputError("A voice id is required")

    def validate_prosody(self, prosody: ProsodyParams) -> None:
        if prosody.speed is not None:
            raise InvalidInputError("ElevenLabs speech does not support: speed")
        for name in ("stability", "similarity", "style"):
            value = getattr(prosody, name)
            if value is not None and not PERCENT_MIN <= value <= PERCENT_MAX:
                raise InvalidInputError(
                    f"{name.capitalize()} must be between 0 and 100"
                )

    async def synthesize(self, text: str, voice: str, prosody: ProsodyParams) -> bytes:
        headers = self._auth_headers()
        headers["Accept"] = "audio/mpeg"
        defaults = ProsodyParams.defaults_for(Backend.ELEVENLABS)

        def _fraction(value: Optional[float], fallback: Optional[float]) -> float:
            return float(value if value is not None else fallback or 0.0) / 100.0

        payload = {
            "text": text,
            "model_id": self._settings.elevenlabs_tts_model,
            "voice_settings": {
                "stability": _fraction(prosody.stability, defaults.stability),
                "similarity_boost": _fraction(prosody.similarity, defaults.similarity),
                "style": _fraction(prosody.style, defaults.style),
                "use_speaker_boost": prosody.speaker_boost,
            },
        }
        response = await send_with_retry(
            lambda: self._client.post(
                f"{self._base_url}/text-to-speech/{voice}",
                params={"output_format": OUTPUT_FORMAT},
                headers=headers,
                json=payload,
            ),
            vendor=VENDOR,
            policy=self._retry_policy,
            sleep=self._sleep,
        )
        audio = response.content
        if not audio:
            raise EmptyResponseError("Received empty audio buffer from ElevenLabs")
        logger.info(
            "ElevenLabs TTS synthesized %d bytes for text: %s...", len(audio), text[:50]
        )
        return audio

    async def transcribe(
        self, audio: AudioResource, *, language: Optional[str] = None
    ) -> str:
        headers = self._auth_headers()
        data = {"model_id": self._settings.elevenlabs_stt_model}
        if language:
            data["language_code"] = language
        files = {"file": (audio.upload_name(), audio.data, audio.mime_type)}

        response = await send_with_retry(
            lambda: self._client.post(
                f"{self._base_url}/speech-to-text",
                headers=headers,
                data=data,
                files=files,
            ),
            vendor=VENDOR,
            policy=self._retry_policy,
            sleep=self._sleep,
        )
        body = self._json(response)
        text = body.get("text") if isinstance(body, Mapping) else None
        if not isinstance(text, str) or not text.strip():
            raise EmptyResponseError("ElevenLabs returned an empty transcription")
        logger.info(
            "ElevenLabs transcribed %d bytes into %d chars", audio.size, len(text)
        )
        return text.strip()

    async def chat_complete(self, messages: list[dict[str, str]]) -> str:
        raise InvalidInputError("ElevenLabs does not provide chat completion")

    async def list_voices(self) -> list[VoiceInfo]:
        headers = self._auth_headers()
        headers["Accept"] = "application/json"
        response = await send_with_retry(
            lambda: self._client.get(f"{self._base_url}/voices", headers=headers),
            vendor=VENDOR,
            policy=self._retry_policy,
            sleep=self._sleep,
        )
        body = self._json(response)
        raw_voices = body.get("voices") if isinstance(body, Mapping) else None
        if not isinstance(raw_voices, list):
            raise EmptyResponseError("ElevenLabs returned no voice catalog")
        voices = [self._voice_from_payload(item) for item in raw_voices if isinstance(item, Mapping)]
        logger.info("Fetched %d ElevenLabs voices", len(voices))
        return voices

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def _voice_from_payload(item: Mapping[str, Any]) -> VoiceInfo:
        labels = item.get("labels") if isinstance(item.get("labels"), Mapping) else {}
        languages = labels.get("languages") or ["English"]
        if isinstance(languages, str):
            languages = [languages]
        name = str(item.get("name") or item.get("voice_id") or "")
        return VoiceInfo(
            id=str(item.get("voice_id") or ""),
            name=name,
            provider=Backend.ELEVENLABS,
            category=str(item.get("category") or "General"),
            description=str(labels.get("description") or name),
            preview_url=item.get("preview_url"),
            gender=labels.get("gender") or "neutral",
            accent=labels.get("accent"),
            languages=tuple(str(language) for language in languages),
        )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                f"ElevenLabs returned invalid JSON: {exc}",
                status_code=502,
                transient=False,
            ) from exc


__all__ = ["ElevenLabsProvider", "OUTPUT_FORMAT", "PERCENT_MAX", "PERCENT_MIN"]
