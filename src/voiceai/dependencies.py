"""FastAPI dependency providers reading services off `app.state`."""

from __future__ import annotations

from fastapi import HTTPException, Request, UploadFile

from .audio.cache import PlayableAudioCache
from .audio.encoding import AudioResource, EncodingAdapter
from .providers.gateway import ProviderGateway


def get_gateway(request: Request) -> ProviderGateway:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=500, detail="Provider gateway unavailable")
    return gateway


def get_encoder(request: Request) -> EncodingAdapter:
    encoder = getattr(request.app.state, "encoder", None)
    if encoder is None:
        raise HTTPException(status_code=500, detail="Encoding adapter unavailable")
    return encoder


def get_audio_cache(request: Request) -> PlayableAudioCache:
    cache = getattr(request.app.state, "audio_cache", None)
    if cache is None:
        raise HTTPException(status_code=500, detail="Audio cache unavailable")
    return cache


async def read_upload(upload: UploadFile) -> AudioResource:
    data = await upload.read()
    return AudioResource(
        data=data,
        mime_type=upload.content_type or "application/octet-stream",
        filename=upload.filename,
    )


__all__ = ["get_audio_cache", "get_encoder", "get_gateway", "read_upload"]
