"""Application factory for the voice proxy service."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .audio.cache import PlayableAudioCache
from .audio.encoding import EncodingAdapter
from .config import Settings, get_settings
from .http_errors import install_exception_handlers
from .providers.gateway import ProviderGateway
from .routers.elevenlabs import router as elevenlabs_router
from .routers.openai import router as openai_router
from .schemas.speech import HealthResponse

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    handlers: list[logging.Handler] = []
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger("voiceai").setLevel(log_level)
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).setLevel(log_level)

    # Vendor request bodies are only useful at DEBUG
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def _configured(secret) -> bool:
    return secret is not None and bool(secret.get_secret_value())


def create_app(
    settings: Optional[Settings] = None,
    *,
    gateway: Optional[ProviderGateway] = None,
) -> FastAPI:
    _configure_logging()

    settings = settings or get_settings()
    gateway = gateway or ProviderGateway.from_settings(settings)
    encoder = EncodingAdapter(
        max_bytes=settings.transcription_max_bytes,
        target_sample_rate=settings.target_sample_rate,
    )
    audio_cache = PlayableAudioCache(
        max_entries=settings.audio_cache_max_entries,
        max_age=settings.audio_cache_max_age_seconds,
        sweep_interval=settings.audio_cache_sweep_interval_seconds,
        enforce_capacity=settings.audio_cache_enforce_capacity,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        audio_cache.start()
        try:
            yield
        finally:
            await audio_cache.aclose()
            try:
                await gateway.aclose()
            except Exception as exc:
                logging.warning("Error closing provider gateway: %s", exc)

    app = FastAPI(
        title="Voice AI Proxy",
        version="0.1.0",
        description="Speech-to-text, text-to-speech and chat proxy for OpenAI and ElevenLabs.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.gateway = gateway
    app.state.encoder = encoder
    app.state.audio_cache = audio_cache

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_exception_handlers(app)
    app.include_router(openai_router)
    app.include_router(elevenlabs_router)

    @app.get("/health", tags=["health"], response_model=HealthResponse)
    async def healthcheck() -> HealthResponse:
        return HealthResponse(
            status="ok",
            default_backend=settings.default_backend,
            cached_audio=len(audio_cache),
            openai_configured=_configured(settings.openai_api_key),
            elevenlabs_configured=_configured(settings.elevenlabs_api_key),
        )

    return app


__all__ = ["create_app"]
