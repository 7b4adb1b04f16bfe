"""Speech, transcription and chat backends behind one gateway."""

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
from .gateway import ProviderGateway
from .http import RetryPolicy
from .openai import OPENAI_VOICES, OpenAIProvider

__all__ = [
    "Backend",
    "ElevenLabsProvider",
    "OPENAI_VOICES",
    "OpenAIProvider",
    "OperationKind",
    "ProsodyParams",
    "ProviderGateway",
    "ProviderRequest",
    "ProviderResult",
    "RetryPolicy",
    "SpeechProvider",
    "VoiceInfo",
]
