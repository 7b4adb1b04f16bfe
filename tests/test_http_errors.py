import pytest

from voiceai.errors import (
    DeviceUnavailableError,
    EmptyResponseError,
    InvalidInputError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitedError,
    UnsupportedAudioError,
)
from voiceai.http_errors import status_for_error
from voiceai.notices import Notice


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (InvalidInputError("bad"), 400),
        (UnsupportedAudioError("bad"), 415),
        (RateLimitedError("slow"), 429),
        (ProviderTimeoutError("late"), 504),
        (EmptyResponseError("empty"), 502),
        (ProviderError("vendor", status_code=500), 502),
        (ProviderError("vendor busy", status_code=503), 502),
        (ProviderError("no key", status_code=503, transient=False), 503),
        (DeviceUnavailableError("mic"), 503),
    ],
)
def test_status_for_error(error, status) -> None:
    assert status_for_error(error) == status


def test_notice_wording_depends_on_recoverability() -> None:
    retryable = Notice.from_error("Speech Generation Failed", ProviderTimeoutError("Timed out."))
    permanent = Notice.from_error("Transcription Failed", InvalidInputError("Audio file is required"))

    assert retryable.message == "Timed out. Please try again."
    assert permanent.message == "Audio file is required."
