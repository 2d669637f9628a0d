"""Error classification — the only place that inspects raw provider failures."""

from __future__ import annotations

import asyncio

import httpx

from tripwise.config import MissingAPIKeyError
from tripwise.models import ErrorKind, GenerationTrace

_RATE_LIMIT_CODES = {429}
_UNAVAILABLE_CODES = {500, 502, 503, 504}

_RATE_LIMIT_MARKERS = ("rate limit", "rate_limit", "status code 429", "too many requests")
_UNAVAILABLE_MARKERS = ("service unavailable", "internal server error", "status code 503")

USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.CONFIGURATION_MISSING: (
        "Travel planning service is not properly configured. Please contact support."
    ),
    ErrorKind.RATE_LIMITED: (
        "Our travel planning service is currently busy. Please try again in a minute."
    ),
    ErrorKind.SERVICE_UNAVAILABLE: (
        "Our travel planning service is temporarily busy. Please try again in a few minutes."
    ),
    ErrorKind.TIMEOUT: "Generating your itinerary took too long. Please try again.",
    ErrorKind.CONTENT_REJECTED: (
        "We couldn't create your itinerary at this time. Please try again later."
    ),
    ErrorKind.UNKNOWN_PROVIDER: (
        "We couldn't create your itinerary at this time. Please try again later."
    ),
}

_HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.CONFIGURATION_MISSING: 503,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.SERVICE_UNAVAILABLE: 503,
    ErrorKind.TIMEOUT: 503,
}


class SinkError(Exception):
    """Raised when a caller-supplied stream callback fails.

    Never classified: the cascade stops at once and the callback's own
    exception is the ``__cause__``.
    """


class ContentRejectedError(Exception):
    """Raised when a call succeeded but its output is empty or too short."""

    def __init__(self, length: int, min_length: int) -> None:
        self.length = length
        self.min_length = min_length
        super().__init__(f"Generated content too short: {length} <= {min_length} characters")


class GenerationError(Exception):
    """Terminal, classified failure of one generation invocation.

    ``message`` is always one of the pre-written ``USER_MESSAGES`` and is safe
    to show to end users. Raw provider detail stays in ``detail`` and in the
    trace.
    """

    def __init__(
        self,
        kind: ErrorKind,
        trace: GenerationTrace | None = None,
        detail: str | None = None,
    ) -> None:
        self.kind = kind
        self.message = USER_MESSAGES[kind]
        self.trace = trace
        self.detail = detail
        super().__init__(self.message)

    @property
    def http_status(self) -> int:
        return http_status_for(self.kind)


def check_content(content: str | None, min_length: int) -> str:
    """Return *content* if it is long enough, else raise ContentRejectedError."""
    text = content or ""
    if len(text) <= min_length:
        raise ContentRejectedError(len(text), min_length)
    return text


def status_code_of(failure: BaseException) -> int | None:
    """Extract an HTTP-like status code from a provider exception, if any."""
    if isinstance(failure, httpx.HTTPStatusError):
        return failure.response.status_code
    status = getattr(failure, "status_code", None) or getattr(failure, "status", None)
    return status if isinstance(status, int) else None


def classify(failure: BaseException) -> ErrorKind:
    """Map a raw failure onto the closed ``ErrorKind`` taxonomy."""
    if isinstance(failure, MissingAPIKeyError):
        return ErrorKind.CONFIGURATION_MISSING

    status = status_code_of(failure)
    message = str(failure).lower()

    if status in _RATE_LIMIT_CODES or any(m in message for m in _RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMITED
    if status in _UNAVAILABLE_CODES or any(m in message for m in _UNAVAILABLE_MARKERS):
        return ErrorKind.SERVICE_UNAVAILABLE
    # Per-request transport timeouts are transient; only the caller deadline is TIMEOUT
    if isinstance(failure, httpx.TransportError):
        return ErrorKind.SERVICE_UNAVAILABLE
    if isinstance(failure, ContentRejectedError):
        return ErrorKind.CONTENT_REJECTED
    if isinstance(failure, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    return ErrorKind.UNKNOWN_PROVIDER


def describe(failure: BaseException) -> str:
    """One-line raw description of a failure for logs and traces."""
    status = status_code_of(failure)
    name = type(failure).__name__
    text = str(failure) or name
    if status is not None:
        return f"{name} (HTTP {status}): {text}"
    return f"{name}: {text}"


def http_status_for(kind: ErrorKind) -> int:
    """Transport status an HTTP handler should use for *kind*."""
    return _HTTP_STATUS.get(kind, 500)
