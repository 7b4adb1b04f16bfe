"""OpenAI backend: Whisper transcription, TTS and chat completions."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional, Sequence

import httpx

from ..audio.encoding import AudioResource
from ..config import Settings
from ..errors import EmptyResponseError, InvalidInputError, ProviderError
from .base import Backend, ProsodyParams, VoiceInfo
from .http import RetryPolicy, Sleep, send_with_retry

logger = logging.getLogger(__name__)

VENDOR = "OpenAI"

# Voices accepted by the speech endpoint
OPENAI_VOICES = ("alloy", "echo", "fable", "nova", "onyx", "shimmer")

SPEED_MIN = 0.5
SPEED_MAX = 2.0


class OpenAIProvider:
    """Request/response client for the three OpenAI capabilities."""

    backend = Backend.OPENAI

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
        return str(self._settings.openai_base_url).rstrip("/")

    def _auth_headers(self) -> dict[str, str]:
        api_key = self._settings.openai_api_key
        if api_key is None or not api_key.get_secret_value():
            raise ProviderError(
                "OpenAI API key not configured", status_code=503, transient=False
            )
        return {"Authorization": f"Bearer {api_key.get_secret_value()}"}

    def validate_voice(self, voice: str) -> None:
        if voice not in OPENAI_VOICES:
            raise InvalidInputError(
                f"Invalid voice. Must be one of: {', '.join(OPENAI_VOICES)}"
            )

    def validate_prosody(self, prosody: ProsodyParams) -> None:
        unsupported = [
            name
            for name in ("stability", "similarity", "style")
            if getattr(prosody, name) is not None
        ]
        if unsupported:
            raise InvalidInputError(
                f"OpenAI speech does not support: {', '.join(unsupported)}"
            )
        if prosody.speed is not None and not SPEED_MIN <= prosody.speed <= SPEED_MAX:
            raise InvalidInputError(
                f"Speed must be between {SPEED_MIN} and {SPEED_MAX}"
            )

    async def transcribe(
        self, audio: AudioResource, *, language: Optional[str] = None
    ) -> str:
        headers = self._auth_headers()
        data = {
            "model": self._settings.openai_stt_model,
            "response_format": "json",
            "temperature": "0.2",
        }
        if language:
            data["language"] = language
        files = {"file": (audio.upload_name(), audio.data, audio.mime_type)}

        response = await send_with_retry(
            lambda: self._client.post(
                f"{self._base_url}/audio/transcriptions",
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
            raise EmptyResponseError("OpenAI returned an empty transcription")
        logger.info("OpenAI transcribed %d bytes into %d chars", audio.size, len(text))
        return text.strip()

    async def synthesize(self, text: str, voice: str, prosody: ProsodyParams) -> bytes:
        headers = self._auth_headers()
        payload = {
            "model": self._settings.openai_tts_model,
            "input": text,
            "voice": voice,
            "speed": prosody.speed if prosody.speed is not None else 1.0,
            "response_format": "mp3",
        }
        response = await send_with_retry(
            lambda: self._client.post(
                f"{self._base_url}/audio/speech", headers=headers, json=payload
            ),
            vendor=VENDOR,
            policy=self._retry_policy,
            sleep=self._sleep,
        )
        audio = response.content
        if not audio:
            raise EmptyResponseError("Received empty audio buffer from OpenAI")
        logger.info(
            "OpenAI TTS synthesized %d bytes for text: %s...", len(audio), text[:50]
        )
        return audio

    async def chat_complete(self, messages: list[dict[str, str]]) -> str:
        headers = self._auth_headers()
        payload = {
            "model": self._settings.openai_chat_model,
            "messages": messages,
            "temperature": 0.7,
            "max_tokens": 1000,
        }
        response = await send_with_retry(
            lambda: self._client.post(
                f"{self._base_url}/chat/completions", headers=headers, json=payload
            ),
            vendor=VENDOR,
            policy=self._retry_policy,
            sleep=self._sleep,
        )
        reply = self._extract_reply(self._json(response))
        logger.info("OpenAI chat completion returned %d chars", len(reply))
        return reply

    async def list_voices(self) -> list[VoiceInfo]:
        return [
            VoiceInfo(id=voice, name=voice.capitalize(), provider=Backend.OPENAI)
            for voice in OPENAI_VOICES
        ]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                f"OpenAI returned invalid JSON: {exc}", status_code=502, transient=False
            ) from exc

    @staticmethod
    def _extract_reply(payload: Any) -> str:
        choices = payload.get("choices") if isinstance(payload, Mapping) else None
        if not isinstance(choices, Sequence) or not choices:
            raise EmptyResponseError("No response generated")
        first = choices[0]
        message = first.get("message") if isinstance(first, Mapping) else None
        content = message.get("content") if isinstance(message, Mapping) else None
        if isinstance(content, str):
            text = content.strip()
        elif isinstance(content, Sequence):
            fragments = [
                item["text"]
                for item in content
                if isinstance(item, Mapping)
                and item.get("type") == "text"
                and isinstance(item.get("text"), str)
            ]
            text = "".join(fragments).strip()
        else:
            text = ""
        if not text:
            raise EmptyResponseError("No response generated")
        return text


__all__ = ["OPENAI_VOICES", "OpenAIProvider", "SPEED_MAX", "SPEED_MIN"]
