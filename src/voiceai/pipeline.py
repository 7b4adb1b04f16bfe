"""Voice-chat orchestration: recording -> transcript -> reply -> speech -> playback."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from .audio.cache import AudioHandle, PlayableAudioCache
from .audio.encoding import AudioResource, EncodingAdapter
from .audio.playback import PlaybackCoordinator, Surface
from .conversation import Conversation, Role, Turn
from .errors import InvalidInputError, VoiceAIError
from .notices import Notice, Notifier, discard_notice
from .providers.base import Backend, ProsodyParams
from .providers.gateway import ProviderGateway

logger = logging.getLogger(__name__)

ACCEPTED_UPLOAD_TYPES = frozenset(
    {"audio/mpeg", "audio/mp3", "audio/wav", "audio/x-wav", "audio/webm"}
)


@dataclass(frozen=True)
class VoiceSelection:
    backend: Backend = Backend.OPENAI
    voice: str = "alloy"
    prosody: ProsodyParams = field(default_factory=ProsodyParams)


def speech_cache_key(text: str, backend: Backend, voice: str, prosody: ProsodyParams) -> str:
    digest = hashlib.sha1(f"{text}\x00{prosody.cache_token()}".encode("utf-8")).hexdigest()
    return f"speech:{backend.value}:{voice}:{digest}"


def recording_cache_key() -> str:
    return f"recording:{uuid.uuid4().hex}"


class VoicePipeline:
    """Run one voice-chat turn at a time against a shared conversation.

    Every public coroutine reports failures through `notify` exactly once and
    returns None instead of raising.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        conversation: Conversation,
        cache: PlayableAudioCache,
        playback: PlaybackCoordinator,
        *,
        encoder: Optional[EncodingAdapter] = None,
        notify: Notifier = discard_notice,
        selection: Optional[VoiceSelection] = None,
        transcribe_backend: Backend = Backend.OPENAI,
        chat_backend: Backend = Backend.OPENAI,
    ) -> None:
        self.gateway = gateway
        self.conversation = conversation
        self.cache = cache
        self.playback = playback
        self.encoder = encoder or EncodingAdapter()
        self._notify = notify
        self.selection = selection or VoiceSelection()
        self.transcribe_backend = transcribe_backend
        self.chat_backend = chat_backend

    async def handle_recording(self, resource: AudioResource) -> Optional[AudioHandle]:
        """Transcribe, reply, synthesize and autoplay one recorded utterance."""

        try:
            text = await self._transcribe(resource)
            self.conversation.append_turn(Turn(Role.USER, text))

            reply = await self.gateway.chat_complete(
                self.conversation.turns, self.chat_backend
            )
            selection = self.selection
            key = speech_cache_key(
                reply, selection.backend, selection.voice, selection.prosody
            )
            self.conversation.append_turn(Turn(Role.ASSISTANT, reply, audio_ref=key))
            handle = await self._speech_handle(reply, selection)
        except VoiceAIError as exc:
            self._report("Voice Chat Failed", exc)
            return None

        self.playback.autoplay(handle, Surface.ASSISTANT_RESPONSE)
        return handle

    async def transcribe_upload(self, resource: AudioResource) -> Optional[str]:
        """Transcribe an uploaded file and record it as a user turn."""

        try:
            if resource.mime_type not in ACCEPTED_UPLOAD_TYPES:
                raise InvalidInputError(
                    "Invalid file type. Please upload an MP3, WAV, or WebM file"
                )
            text = await self._transcribe(resource)
            handle = await self._cache_recording(resource)
        except VoiceAIError as exc:
            self._report("Transcription Failed", exc)
            return None

        self.conversation.append_turn(Turn(Role.USER, text, audio_ref=handle.key))
        return text

    async def speak(self, text: str) -> Optional[AudioHandle]:
        try:
            handle = await self._speech_handle(text)
        except VoiceAIError as exc:
            self._report("Speech Generation Failed", exc)
            return None
        self.playback.autoplay(handle, Surface.ASSISTANT_RESPONSE)
        return handle

    async def preview_recording(self, resource: AudioResource) -> Optional[AudioHandle]:
        try:
            handle = await self._cache_recording(resource)
        except VoiceAIError as exc:
            self._report("Preview Failed", exc)
            return None
        self.playback.autoplay(handle, Surface.USER_PREVIEW)
        return handle

    def select_voice(
        self,
        voice: str,
        backend: Backend | str = Backend.OPENAI,
        prosody: Optional[ProsodyParams] = None,
    ) -> VoiceSelection:
        selected = Backend(backend)
        self.playback.stop_all()
        self.selection = VoiceSelection(
            backend=selected,
            voice=voice,
            prosody=prosody or ProsodyParams.defaults_for(selected),
        )
        logger.info("Voice selection changed to %s/%s", selected.value, voice)
        return self.selection

    def reset(self) -> int:
        """Stop playback, drop the transcript and release every cached buffer."""

        self.playback.stop_all()
        turns = self.conversation.clear()
        self.cache.clear()
        return turns

    async def _transcribe(self, resource: AudioResource) -> str:
        prepared = await asyncio.to_thread(self.encoder.prepare_for_transcription, resource)
        return await self.gateway.transcribe(prepared, self.transcribe_backend)

    async def _speech_handle(
        self, text: str, selection: Optional[VoiceSelection] = None
    ) -> AudioHandle:
        selection = selection or self.selection
        key = speech_cache_key(text, selection.backend, selection.voice, selection.prosody)

        async def _factory() -> AudioHandle:
            audio = await self.gateway.synthesize(
                text, selection.voice, selection.prosody, selection.backend
            )
            return AudioHandle(key, audio.data, audio.mime_type)

        return await self.cache.get_or_create(key, _factory)

    async def _cache_recording(self, resource: AudioResource) -> AudioHandle:
        if not resource.data:
            raise InvalidInputError("Recording is empty")
        key = recording_cache_key()
        return await self.cache.get_or_create(
            key, lambda: AudioHandle(key, resource.data, resource.mime_type)
        )

    def _report(self, title: str, error: VoiceAIError) -> None:
        logger.error("%s: %s", title, error.message)
        self._notify(Notice.from_error(title, error))


__all__ = [
    "ACCEPTED_UPLOAD_TYPES",
    "VoicePipeline",
    "VoiceSelection",
    "recording_cache_key",
    "speech_cache_key",
]
