"""Uniform entry point for transcription, synthesis and chat completion."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, TypeVar

import httpx

from ..audio.encoding import AudioResource
from ..config import Settings
from ..conversation import Role, Turn
from ..errors import InvalidInputError, ProviderTimeoutError, VoiceAIError
from ..text_segmenter import split_for_synthesis
from .base import (
    Backend,
    OperationKind,
    ProsodyParams,
    ProviderRequest,
    ProviderResult,
    SpeechProvider,
    VoiceInfo,
)
from .elevenlabs import ElevenLabsProvider
from .openai import OpenAIProvider

logger = logging.getLogger(__name__)

SPEECH_MIME_TYPE = "audio/mpeg"

T = TypeVar("T")


class ProviderGateway:
    """Validate, route and time-box calls to the configured backends."""

    def __init__(
        self,
        providers: Mapping[Backend, SpeechProvider],
        *,
        timeout: float = 30.0,
        segment_max_chars: int = 4000,
        segment_concurrency: int = 3,
        system_prompt: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._providers = dict(providers)
        self.timeout = timeout
        self.segment_max_chars = segment_max_chars
        self.segment_concurrency = max(1, segment_concurrency)
        self.system_prompt = system_prompt
        self._http_client = http_client

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "ProviderGateway":
        owned_client = None
        if client is None:
            owned_client = client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.provider_timeout, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
            )
        providers: dict[Backend, SpeechProvider] = {
            Backend.OPENAI: OpenAIProvider(settings, client=client),
            Backend.ELEVENLABS: ElevenLabsProvider(settings, client=client),
        }
        return cls(
            providers,
            timeout=settings.provider_timeout,
            segment_max_chars=settings.tts_segment_max_chars,
            segment_concurrency=settings.tts_segment_concurrency,
            system_prompt=settings.chat_system_prompt,
            http_client=owned_client,
        )

    def provider(self, backend: Backend | str) -> SpeechProvider:
        try:
            selected = Backend(backend)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown backend: {backend}") from exc
        provider = self._providers.get(selected)
        if provider is None:
            raise InvalidInputError(f"Backend not configured: {selected.value}")
        return provider

    async def transcribe(
        self,
        audio: AudioResource,
        backend: Backend | str,
        *,
        language: Optional[str] = None,
    ) -> str:
        if audio is None or not audio.data:
            raise InvalidInputError("Audio file is required")
        provider = self.provider(backend)
        return await self._run(
            OperationKind.TRANSCRIBE,
            provider.backend,
            lambda: provider.transcribe(audio, language=language),
        )

    async def synthesize(
        self,
        text: str,
        voice: str,
        prosody: Optional[ProsodyParams] = None,
        backend: Backend | str = Backend.OPENAI,
    ) -> AudioResource:
        if not isinstance(text, str) or not text.strip():
            raise InvalidInputError("Text is required and cannot be empty")
        provider = self.provider(backend)
        provider.validate_voice(voice)
        params = prosody or ProsodyParams.defaults_for(provider.backend)
        provider.validate_prosody(params)

        segments = split_for_synthesis(text, self.segment_max_chars)
        audio = await self._run(
            OperationKind.SYNTHESIZE,
            provider.backend,
            lambda: self._synthesize_segments(provider, segments, voice, params),
        )
        return AudioResource(data=audio, mime_type=SPEECH_MIME_TYPE)

    async def chat_complete(
        self,
        turns: Sequence[Turn],
        backend: Backend | str = Backend.OPENAI,
    ) -> str:
        if not any(turn.role is Role.USER for turn in turns):
            raise InvalidInputError("At least one user message is required")
        provider = self.provider(backend)
        messages = [turn.to_message() for turn in turns]
        if self.system_prompt and not any(turn.role is Role.SYSTEM for turn in turns):
            messages.insert(0, {"role": Role.SYSTEM.value, "content": self.system_prompt})
        return await self._run(
            OperationKind.CHAT_COMPLETE,
            provider.backend,
            lambda: provider.chat_complete(messages),
        )

    async def list_voices(self, backend: Backend | str) -> list[VoiceInfo]:
        provider = self.provider(backend)
        try:
            return await asyncio.wait_for(provider.list_voices(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderTimeoutError(
                f"{provider.backend.value} voice catalog timed out", status_code=504
            ) from exc

    async def execute(self, request: ProviderRequest) -> ProviderResult:
        """Run a request and return its outcome envelope instead of raising."""

        payload = request.payload
        try:
            value: Any
            if request.kind is OperationKind.TRANSCRIBE:
                value = await self.transcribe(
                    payload["audio"], request.backend, language=payload.get("language")
                )
            elif request.kind is OperationKind.SYNTHESIZE:
                value = await self.synthesize(
                    payload["text"],
                    payload["voice"],
                    payload.get("prosody"),
                    request.backend,
                )
            else:
                value = await self.chat_complete(payload["turns"], request.backend)
        except VoiceAIError as exc:
            return ProviderResult(request.kind, request.backend, error=exc)
        return ProviderResult(request.kind, request.backend, value=value)

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
        if self._http_client is not None:
            await self._http_client.aclose()

    async def _synthesize_segments(
        self,
        provider: SpeechProvider,
        segments: list[str],
        voice: str,
        prosody: ProsodyParams,
    ) -> bytes:
        if len(segments) == 1:
            return await provider.synthesize(segments[0], voice, prosody)

        semaphore = asyncio.Semaphore(self.segment_concurrency)

        async def _one(segment: str) -> bytes:
            async with semaphore:
                return await provider.synthesize(segment, voice, prosody)

        logger.info("Synthesizing %d segments", len(segments))
        # gather keeps argument order regardless of completion order
        parts = await asyncio.gather(*(_one(segment) for segment in segments))
        return b"".join(parts)

    async def _run(
        self,
        kind: OperationKind,
        backend: Backend,
        call: Callable[[], Awaitable[T]],
    ) -> T:
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(call(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error(
                "%s via %s timed out after %.1fs", kind.value, backend.value, self.timeout
            )
            raise ProviderTimeoutError(
                f"{backend.value} did not respond within {self.timeout:g}s",
                status_code=504,
            ) from exc
        except VoiceAIError as exc:
            logger.error("%s via %s failed: %s", kind.value, backend.value, exc.message)
            raise
        logger.info(
            "%s via %s completed in %.2fs",
            kind.value,
            backend.value,
            time.perf_counter() - started,
        )
        return result


__all__ = ["ProviderGateway", "SPEECH_MIME_TYPE"]
