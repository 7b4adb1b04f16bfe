"""Translate pipeline errors into `{"error": ...}` JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import ErrorKind, ProviderError, VoiceAIError
from .providers.http import detail_message

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.UNSUPPORTED_AUDIO: 415,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.EMPTY_RESPONSE: 502,
    ErrorKind.PROVIDER_ERROR: 502,
    ErrorKind.DEVICE_UNAVAILABLE: 503,
}


def status_for_error(error: VoiceAIError) -> int:
    # Configuration failures (missing keys) carry their own 503.
    if (
        isinstance(error, ProviderError)
        and not error.transient
        and error.status_code == 503
    ):
        return 503
    return _STATUS_BY_KIND.get(error.kind, 500)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(VoiceAIError)
    async def _voiceai_error(request: Request, exc: VoiceAIError) -> JSONResponse:
        status_code = status_for_error(exc)
        log = logger.warning if status_code < 500 else logger.error
        log("%s %s failed (%d): %s", request.method, request.url.path, status_code, exc.message)
        return error_response(status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        message = detail_message(errors[0]) if errors else "Invalid request"
        return error_response(400, message)


__all__ = ["error_response", "install_exception_handlers", "status_for_error"]
