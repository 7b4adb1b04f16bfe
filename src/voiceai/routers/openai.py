"""OpenAI proxy routes: transcription, speech and chat."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from ..audio.cache import AudioHandle, PlayableAudioCache
from ..audio.encoding import EncodingAdapter
from ..conversation import Turn
from ..dependencies import get_audio_cache, get_encoder, get_gateway, read_upload
from ..pipeline import speech_cache_key
from ..providers.base import Backend, ProsodyParams
from ..providers.gateway import ProviderGateway
from ..schemas.speech import (
    ChatReply,
    ChatRequest,
    ChatResponse,
    OpenAISpeechRequest,
    TranscriptionResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/openai", tags=["openai"])

SPEECH_CACHE_CONTROL = "public, max-age=31536000"


@router.post("/transcribe", response_model=TranscriptionResponse)
async def transcribe(
    file: UploadFile = File(...),
    language: Optional[str] = Form(None),
    gateway: ProviderGateway = Depends(get_gateway),
    encoder: EncodingAdapter = Depends(get_encoder),
) -> TranscriptionResponse:
    resource = await read_upload(file)
    logger.info("Transcription request: %s (%d bytes)", resource.mime_type, resource.size)
    prepared = await run_in_threadpool(encoder.prepare_for_transcription, resource)
    text = await gateway.transcribe(prepared, Backend.OPENAI, language=language)
    return TranscriptionResponse(text=text)


@router.post("/speech", response_class=Response)
async def speech(
    payload: OpenAISpeechRequest,
    gateway: ProviderGateway = Depends(get_gateway),
    cache: PlayableAudioCache = Depends(get_audio_cache),
) -> Response:
    prosody = ProsodyParams(speed=payload.speed)
    key = speech_cache_key(payload.text, Backend.OPENAI, payload.voice, prosody)

    async def _factory() -> AudioHandle:
        audio = await gateway.synthesize(
            payload.text, payload.voice, prosody, Backend.OPENAI
        )
        return AudioHandle(key, audio.data, audio.mime_type)

    handle = await cache.get_or_create(key, _factory)
    return Response(
        content=handle.data,
        media_type=handle.mime_type,
        headers={"Cache-Control": SPEECH_CACHE_CONTROL},
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    gateway: ProviderGateway = Depends(get_gateway),
) -> ChatResponse:
    turns = [Turn(message.role, message.content) for message in payload.messages]
    reply = await gateway.chat_complete(turns, Backend.OPENAI)
    return ChatResponse(data=ChatReply(message=reply))


__all__ = ["router", "SPEECH_CACHE_CONTROL"]
