"""Capability interface shared by the speech/chat backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol, Sequence

from ..audio.encoding import AudioResource
from ..errors import VoiceAIError


class Backend(str, Enum):
    OPENAI = "openai"
    ELEVENLABS = "elevenlabs"


class OperationKind(str, Enum):
    TRANSCRIBE = "transcribe"
    SYNTHESIZE = "synthesize"
    CHAT_COMPLETE = "chat_complete"


@dataclass(frozen=True)
class ProsodyParams:
    """Synthesis tuning values.

    `speed` applies to OpenAI only; `stability`, `similarity` and `style` are
    percentages (0-100) and apply to ElevenLabs only.
    """

    speed: Optional[float] = None
    stability: Optional[float] = None
    similarity: Optional[float] = None
    style: Optional[float] = None
    speaker_boost: bool = True

    @classmethod
    def defaults_for(cls, backend: Backend) -> "ProsodyParams":
        if backend is Backend.OPENAI:
            return cls(speed=1.0)
        return cls(stability=50.0, similarity=75.0, style=0.0)

    def cache_token(self) -> str:
        return (
            f"{self.speed}|{self.stability}|{self.similarity}|"
            f"{self.style}|{int(self.speaker_boost)}"
        )


@dataclass(frozen=True)
class VoiceInfo:
    id: str
    name: str
    provider: Backend
    category: str = "General"
    description: str = ""
    preview_url: Optional[str] = None
    gender: Optional[str] = None
    accent: Optional[str] = None
    languages: tuple[str, ...] = ()

    def asdict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider.value,
            "category": self.category,
            "description": self.description,
            "preview_url": self.preview_url,
            "gender": self.gender,
            "accent": self.accent,
            "languages": list(self.languages),
        }


@dataclass(frozen=True)
class ProviderRequest:
    kind: OperationKind
    backend: Backend
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def transcribe(
        cls,
        audio: AudioResource,
        backend: Backend,
        *,
        language: Optional[str] = None,
    ) -> "ProviderRequest":
        return cls(
            OperationKind.TRANSCRIBE,
            backend,
            {"audio": audio, "language": language},
        )

    @classmethod
    def synthesize(
        cls,
        text: str,
        voice: str,
        backend: Backend,
        prosody: Optional[ProsodyParams] = None,
    ) -> "ProviderRequest":
        return cls(
            OperationKind.SYNTHESIZE,
            backend,
            {"text": text, "voice": voice, "prosody": prosody},
        )

    @classmethod
    def chat(cls, turns: Sequence[Any], backend: Backend) -> "ProviderRequest":
        return cls(OperationKind.CHAT_COMPLETE, backend, {"turns": list(turns)})


@dataclass(frozen=True)
class ProviderResult:
    """Outcome envelope: exactly one of `value` / `error` is populated."""

    kind: OperationKind
    backend: Backend
    value: Any = None
    error: Optional[VoiceAIError] = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("ProviderResult needs exactly one of value or error")

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value


class SpeechProvider(Protocol):
    backend: Backend

    def validate_voice(self, voice: str) -> None: ...

    def validate_prosody(self, prosody: ProsodyParams) -> None: ...

    async def transcribe(
        self, audio: AudioResource, *, language: Optional[str] = None
    ) -> str: ...

    async def synthesize(self, text: str, voice: str, prosody: ProsodyParams) -> bytes: ...

    async def chat_complete(self, messages: list[dict[str, str]]) -> str: ...

    async def list_voices(self) -> list[VoiceInfo]: ...

    async def aclose(self) -> None: ...


__all__ = [
    "Backend",
    "OperationKind",
    "ProsodyParams",
    "ProviderRequest",
    "ProviderResult",
    "SpeechProvider",
    "VoiceInfo",
]
