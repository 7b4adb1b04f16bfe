"""Pydantic models for the speech proxy routes."""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class OpenAISpeechRequest(BaseModel):
    text: str
    voice: str = "alloy"
    speed: float = 1.0


class ElevenLabsSpeechRequest(BaseModel):
    """ElevenLabs synthesis payload; tuning values are percentages."""

    model_config = ConfigDict(populate_by_name=True)

    text: str
    voice_id: str = Field(alias="voiceId")
    stability: float = 50.0
    similarity: float = 75.0
    style: float = 0.0
    speaker_boost: bool = Field(default=True, alias="speakerBoost")


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    messages: List[ChatMessage]


class ChatReply(BaseModel):
    message: str


class ChatResponse(BaseModel):
    data: ChatReply


class TranscriptionResponse(BaseModel):
    text: str


class VoiceListResponse(BaseModel):
    voices: List[dict[str, Any]]


class HealthResponse(BaseModel):
    status: str
    default_backend: str
    cached_audio: int
    openai_configured: bool
    elevenlabs_configured: bool
    detail: Optional[str] = None
