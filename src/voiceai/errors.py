"""Error taxonomy shared by the audio pipeline and the provider gateway."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    DEVICE_UNAVAILABLE = "device_unavailable"
    UNSUPPORTED_AUDIO = "unsupported_audio"
    INVALID_INPUT = "invalid_input"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    PROVIDER_ERROR = "provider_error"
    EMPTY_RESPONSE = "empty_response"


class VoiceAIError(Exception):
    """Base failure carrying a normalized kind plus the vendor detail, if any."""

    kind: ErrorKind = ErrorKind.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail

    @property
    def retryable(self) -> bool:
        return False

    @property
    def recoverable(self) -> bool:
        return self.kind not in (ErrorKind.INVALID_INPUT, ErrorKind.UNSUPPORTED_AUDIO)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code})"


class DeviceUnavailableError(VoiceAIError):
    kind = ErrorKind.DEVICE_UNAVAILABLE


class UnsupportedAudioError(VoiceAIError):
    kind = ErrorKind.UNSUPPORTED_AUDIO


class InvalidInputError(VoiceAIError):
    kind = ErrorKind.INVALID_INPUT


class ProviderTimeoutError(VoiceAIError):
    kind = ErrorKind.TIMEOUT


class RateLimitedError(VoiceAIError):
    kind = ErrorKind.RATE_LIMITED

    @property
    def retryable(self) -> bool:
        return True


class ProviderError(VoiceAIError):
    kind = ErrorKind.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: Any = None,
        transient: bool | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, detail=detail)
        if transient is None:
            transient = status_code is not None and status_code >= 500
        self.transient = transient

    @property
    def retryable(self) -> bool:
        return self.transient


class EmptyResponseError(VoiceAIError):
    kind = ErrorKind.EMPTY_RESPONSE


__all__ = [
    "DeviceUnavailableError",
    "EmptyResponseError",
    "ErrorKind",
    "InvalidInputError",
    "ProviderError",
    "ProviderTimeoutError",
    "RateLimitedError",
    "UnsupportedAudioError",
    "VoiceAIError",
]
