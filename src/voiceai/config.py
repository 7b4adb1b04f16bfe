"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # OpenAI (backend A)
    openai_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    openai_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.openai.com/v1"),
        validation_alias=AliasChoices("OPENAI_BASE_URL", "openai_base_url"),
    )
    openai_chat_model: str = Field(
        default="gpt-4",
        validation_alias=AliasChoices("OPENAI_CHAT_MODEL", "openai_chat_model"),
    )
    openai_tts_model: str = Field(
        default="tts-1-hd",
        validation_alias=AliasChoices("OPENAI_TTS_MODEL", "openai_tts_model"),
    )
    openai_stt_model: str = Field(
        default="whisper-1",
        validation_alias=AliasChoices("OPENAI_STT_MODEL", "openai_stt_model"),
    )
    chat_system_prompt: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CHAT_SYSTEM_PROMPT", "chat_system_prompt"),
    )

    # ElevenLabs (backend B)
    elevenlabs_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("ELEVENLABS_API_KEY", "elevenlabs_api_key"),
    )
    elevenlabs_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.elevenlabs.io/v1"),
        validation_alias=AliasChoices("ELEVENLABS_BASE_URL", "elevenlabs_base_url"),
    )
    elevenlabs_tts_model: str = Field(
        default="eleven_multilingual_v2",
        validation_alias=AliasChoices(
            "ELEVENLABS_TTS_MODEL", "elevenlabs_tts_model"
        ),
    )
    elevenlabs_stt_model: str = Field(
        default="scribe_v1",
        validation_alias=AliasChoices(
            "ELEVENLABS_STT_MODEL", "elevenlabs_stt_model"
        ),
    )

    default_backend: Literal["openai", "elevenlabs"] = Field(
        default="openai",
        validation_alias=AliasChoices("DEFAULT_BACKEND", "default_backend"),
    )

    # Gateway policy
    provider_timeout: float = Field(
        default=30.0,
        ge=1,
        validation_alias=AliasChoices("PROVIDER_TIMEOUT", "provider_timeout"),
    )
    provider_max_retries: int = Field(
        default=2,
        ge=0,
        le=5,
        validation_alias=AliasChoices(
            "PROVIDER_MAX_RETRIES", "provider_max_retries"
        ),
    )
    provider_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        validation_alias=AliasChoices(
            "PROVIDER_BACKOFF_SECONDS", "provider_backoff_seconds"
        ),
    )

    # Encoding
    transcription_max_bytes: int = Field(
        default=25 * 1024 * 1024,
        ge=1,
        validation_alias=AliasChoices(
            "TRANSCRIPTION_MAX_BYTES", "transcription_max_bytes"
        ),
    )
    target_sample_rate: int = Field(
        default=16000,
        ge=8000,
        le=48000,
        validation_alias=AliasChoices("TARGET_SAMPLE_RATE", "target_sample_rate"),
    )

    # Segmented synthesis
    tts_segment_max_chars: int = Field(
        default=4000,
        ge=50,
        validation_alias=AliasChoices(
            "TTS_SEGMENT_MAX_CHARS", "tts_segment_max_chars"
        ),
    )
    tts_segment_concurrency: int = Field(
        default=3,
        ge=1,
        validation_alias=AliasChoices(
            "TTS_SEGMENT_CONCURRENCY", "tts_segment_concurrency"
        ),
    )

    # Playable audio cache
    audio_cache_max_entries: int = Field(
        default=20,
        ge=1,
        validation_alias=AliasChoices(
            "AUDIO_CACHE_MAX_ENTRIES", "audio_cache_max_entries"
        ),
    )
    audio_cache_max_age_seconds: float = Field(
        default=3600.0,
        gt=0,
        validation_alias=AliasChoices(
            "AUDIO_CACHE_MAX_AGE_SECONDS", "audio_cache_max_age_seconds"
        ),
    )
    audio_cache_sweep_interval_seconds: float = Field(
        default=1800.0,
        gt=0,
        validation_alias=AliasChoices(
            "AUDIO_CACHE_SWEEP_INTERVAL_SECONDS",
            "audio_cache_sweep_interval_seconds",
        ),
    )
    audio_cache_enforce_capacity: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "AUDIO_CACHE_ENFORCE_CAPACITY", "audio_cache_enforce_capacity"
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
