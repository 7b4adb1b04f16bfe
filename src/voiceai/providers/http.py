"""Transport helpers shared by the vendor clients: error mapping and retries."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

import httpx

from ..errors import (
    InvalidInputError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitedError,
    VoiceAIError,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

_INVALID_INPUT_STATUSES = {400, 404, 413, 415, 422}


@dataclass(frozen=True)
class RetryPolicy:
    """Retry 429 and 5xx responses with linearly increasing backoff."""

    max_retries: int = 2
    backoff_seconds: float = 1.0

    def delay_for(self, attempt: int) -> float:
        return self.backoff_seconds * attempt


def extract_error_detail(raw: bytes, vendor: str) -> Any:
    if not raw:
        return f"{vendor} returned an empty error response."
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        text = raw.decode("utf-8", errors="ignore")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(payload, dict):
        return payload.get("error") or payload.get("detail") or payload
    return payload


def detail_message(detail: Any) -> str:
    if isinstance(detail, str):
        return detail
    if isinstance(detail, Mapping):
        for key in ("message", "msg", "error", "detail"):
            value = detail.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, Mapping):
                return detail_message(value)
    if isinstance(detail, list) and detail:
        return detail_message(detail[0])
    return json.dumps(detail, default=repr)


def error_for_status(status_code: int, detail: Any, vendor: str) -> VoiceAIError:
    message = f"{vendor} request failed ({status_code}): {detail_message(detail)}"
    if status_code == 429:
        return RateLimitedError(message, status_code=status_code, detail=detail)
    if status_code in _INVALID_INPUT_STATUSES:
        return InvalidInputError(message, status_code=status_code, detail=detail)
    return ProviderError(message, status_code=status_code, detail=detail)


async def send_with_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    *,
    vendor: str,
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
) -> httpx.Response:
    """Issue `send()` until it succeeds, is not retryable, or retries run out."""

    attempt = 0
    while True:
        try:
            response = await send()
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(
                f"{vendor} did not respond in time", status_code=504
            ) from exc
        except httpx.HTTPError as exc:
            error: VoiceAIError = ProviderError(
                f"Network error contacting {vendor}: {exc}",
                status_code=502,
                transient=True,
            )
        else:
            if response.status_code < 400:
                return response
            detail = extract_error_detail(response.content, vendor)
            error = error_for_status(response.status_code, detail, vendor)

        if not error.retryable or attempt >= policy.max_retries:
            raise error

        attempt += 1
        delay = policy.delay_for(attempt)
        logger.warning(
            "%s request failed (%s); retrying in %.1fs (retry %d of %d)",
            vendor,
            error.status_code,
            delay,
            attempt,
            policy.max_retries,
        )
        await sleep(delay)


__all__ = [
    "RetryPolicy",
    "Sleep",
    "detail_message",
    "error_for_status",
    "extract_error_detail",
    "send_with_retry",
]
