"""ElevenLabs proxy routes: speech, transcription and the voice catalog."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from ..audio.cache import AudioHandle, PlayableAudioCache
from ..audio.encoding import EncodingAdapter
from ..dependencies import get_audio_cache, get_encoder, get_gateway, read_upload
from ..pipeline import speech_cache_key
from ..providers.base import Backend, ProsodyParams
from ..providers.gateway import ProviderGateway
from ..schemas.speech import (
    ElevenLabsSpeechRequest,
    TranscriptionResponse,
    VoiceListResponse,
)
from .openai import SPEECH_CACHE_CONTROL

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/elevenlabs", tags=["elevenlabs"])


@router.post("/speech", response_class=Response)
async def speech(
    payload: ElevenLabsSpeechRequest,
    gateway: ProviderGateway = Depends(get_gateway),
    cache: PlayableAudioCache = Depends(get_audio_cache),
) -> Response:
    prosody = ProsodyParams(
        stability=payload.stability,
        similarity=payload.similarity,
        style=payload.style,
        speaker_boost=payload.speaker_boost,
    )
    key = speech_cache_key(payload.text, Backend.ELEVENLABS, payload.voice_id, prosody)

    async def _factory() -> AudioHandle:
        audio = await gateway.synthesize(
            payload.text, payload.voice_id, prosody, Backend.ELEVENLABS
        )
        return AudioHandle(key, audio.data, audio.mime_type)

    handle = await cache.get_or_create(key, _factory)
    return Response(
        content=handle.data,
        media_type=handle.mime_type,
        headers={"Cache-Control": SPEECH_CACHE_CONTROL},
    )


@router.post("/transcribe", response_model=TranscriptionResponse)
async def transcribe(
    file: UploadFile = File(...),
    language: Optional[str] = Form(None),
    gateway: ProviderGateway = Depends(get_gateway),
    encoder: EncodingAdapter = Depends(get_encoder),
) -> TranscriptionResponse:
    resource = await read_upload(file)
    prepared = await run_in_threadpool(encoder.prepare_for_transcription, resource)
    text = await gateway.transcribe(prepared, Backend.ELEVENLABS, language=language)
    return TranscriptionResponse(text=text)


@router.get("/voices", response_model=VoiceListResponse)
async def voices(gateway: ProviderGateway = Depends(get_gateway)) -> VoiceListResponse:
    catalog = await gateway.list_voices(Backend.ELEVENLABS)
    return VoiceListResponse(voices=[voice.asdict() for voice in catalog])


__all__ = ["router"]
