"""
Error classification for CourtListener API calls.

Maps every transport outcome (HTTP status, network exception, timeout) to
exactly one Outcome. Classification is a pure function of its input.
"""

from __future__ import annotations

import asyncio
import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Union

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping

    from courtlistener_client.transport.http import RawResponse


DEFAULT_RATE_LIMIT_FALLBACK_SECONDS = 60.0

CIRCUIT_OPEN_MESSAGE = "Circuit breaker is open; CourtListener API calls are suspended"


class ErrorKind(str, Enum):
    """Closed set of error kinds crossing the client boundary.

    Values are the stable string tokens reported to callers.
    """

    UNAUTHORIZED = "Unauthorized"
    """Missing or invalid API key (401)."""

    RATE_LIMITED = "RateLimited"
    """Throttled by the API (429); retried after the server's hint."""

    VALIDATION_ERROR = "ValidationError"
    """Caller-side invalid input; never retried."""

    SERVER_ERROR = "ServerError"
    """Server-side failure (5xx, 408) or an open circuit."""

    NETWORK_FAILURE = "NetworkFailure"
    """Connection-level failure (DNS, refused, reset)."""

    TIMEOUT = "Timeout"
    """The per-attempt time budget elapsed."""

    API_ERROR = "ApiError"
    """Any other 4xx or unexpected condition."""

    @property
    def is_transient(self) -> bool:
        """Whether retrying can plausibly resolve this kind."""
        return self in _TRANSIENT_KINDS


_TRANSIENT_KINDS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.RATE_LIMITED,
        ErrorKind.SERVER_ERROR,
        ErrorKind.NETWORK_FAILURE,
        ErrorKind.TIMEOUT,
    }
)


@dataclass(frozen=True)
class RateLimitHint:
    """Server-supplied signal of how long to wait before retrying.

    Holds either a relative delay or an absolute instant (the two forms
    of the Retry-After header).
    """

    delay_seconds: float | None = None
    retry_at: datetime | None = None
    is_fallback: bool = False

    @classmethod
    def fallback(
        cls, seconds: float = DEFAULT_RATE_LIMIT_FALLBACK_SECONDS
    ) -> RateLimitHint:
        """Hint used when the server sent no usable header."""
        return cls(delay_seconds=seconds, is_fallback=True)

    def seconds(self, now: datetime | None = None) -> float | None:
        """Resolve the hint to a delay in seconds.

        Args:
            now: Reference instant for absolute hints (default: current UTC)

        Returns:
            Delay in seconds (may be <= 0 for instants in the past), or None
        """
        if self.delay_seconds is not None:
            return self.delay_seconds
        if self.retry_at is not None:
            reference = now or datetime.now(timezone.utc)
            return (self.retry_at - reference).total_seconds()
        return None


@dataclass(frozen=True)
class Success:
    """2xx response with its raw payload."""

    status_code: int
    content: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NotFound:
    """404 response. Absence is valid data, not an error."""

    status_code: int = 404


@dataclass(frozen=True)
class TransientFailure:
    """Failure that retrying may resolve."""

    kind: ErrorKind
    message: str
    status_code: int | None = None
    retry_after: RateLimitHint | None = None
    short_circuited: bool = False


@dataclass(frozen=True)
class PermanentFailure:
    """Failure that retrying cannot fix."""

    kind: ErrorKind
    message: str
    status_code: int | None = None


Outcome = Union[Success, NotFound, TransientFailure, PermanentFailure]
Failure = Union[TransientFailure, PermanentFailure]


_SUGGESTIONS: dict[ErrorKind, str] = {
    ErrorKind.UNAUTHORIZED: "Check COURTLISTENER_API_KEY configuration",
    ErrorKind.RATE_LIMITED: "Retry after 60 seconds",
    ErrorKind.VALIDATION_ERROR: "Check the request parameters",
    ErrorKind.SERVER_ERROR: "The CourtListener API is unavailable; try again later",
    ErrorKind.NETWORK_FAILURE: "Check network connectivity to the CourtListener API",
    ErrorKind.TIMEOUT: "Retry later or raise COURTLISTENER_TIMEOUT_SECONDS",
    ErrorKind.API_ERROR: "Check logs for details",
}


def suggestion_for(kind: ErrorKind, retry_after: RateLimitHint | None = None) -> str:
    """Remediation suggestion for an error kind."""
    if kind is ErrorKind.RATE_LIMITED and retry_after is not None:
        seconds = retry_after.seconds()
        if seconds is not None and seconds > 0:
            return f"Retry after {math.ceil(seconds)} seconds"
    return _SUGGESTIONS[kind]


@dataclass(frozen=True)
class ClassifiedError:
    """Terminal failure of a logical call as reported to callers.

    Attributes:
        kind: Error kind (stable token via kind.value)
        message: Human-readable message
        suggestion: Optional remediation hint
        status_code: HTTP status of the last attempt, if any
    """

    kind: ErrorKind
    message: str
    suggestion: str | None = None
    status_code: int | None = None

    @classmethod
    def from_outcome(cls, outcome: Failure) -> ClassifiedError:
        """Build the caller-facing error from a terminal failure outcome."""
        retry_after = (
            outcome.retry_after if isinstance(outcome, TransientFailure) else None
        )
        return cls(
            kind=outcome.kind,
            message=outcome.message,
            suggestion=suggestion_for(outcome.kind, retry_after),
            status_code=outcome.status_code,
        )

    @classmethod
    def validation(cls, message: str, suggestion: str | None = None) -> ClassifiedError:
        """Caller-side validation failure."""
        return cls(
            kind=ErrorKind.VALIDATION_ERROR,
            message=message,
            suggestion=suggestion or _SUGGESTIONS[ErrorKind.VALIDATION_ERROR],
        )


def _header(headers: Mapping[str, str] | None, name: str) -> str | None:
    """Case-insensitive header lookup."""
    if not headers:
        return None
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, val in headers.items():
        if key.lower() == lowered:
            return val
    return None


def parse_retry_after(
    headers: Mapping[str, str] | None,
    *,
    fallback_seconds: float = DEFAULT_RATE_LIMIT_FALLBACK_SECONDS,
) -> RateLimitHint:
    """Parse the Retry-After header into a rate-limit hint.

    The relative (delta-seconds) form is preferred over the absolute
    (HTTP-date) form. A missing or malformed header yields the fallback.

    Args:
        headers: Response headers
        fallback_seconds: Delay used when no usable header is present

    Returns:
        RateLimitHint (never None)
    """
    raw = _header(headers, "Retry-After")
    if raw is None or not raw.strip():
        return RateLimitHint.fallback(fallback_seconds)

    raw = raw.strip()
    try:
        delay = float(raw)
    except ValueError:
        delay = None
    if delay is not None:
        if math.isfinite(delay) and delay > 0:
            return RateLimitHint(delay_seconds=delay)
        return RateLimitHint.fallback(fallback_seconds)

    try:
        retry_at = parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        return RateLimitHint.fallback(fallback_seconds)
    if retry_at is None:
        return RateLimitHint.fallback(fallback_seconds)
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    if retry_at <= datetime.now(timezone.utc):
        return RateLimitHint.fallback(fallback_seconds)
    return RateLimitHint(retry_at=retry_at)


def extract_error_message(content: bytes | str | None) -> str | None:
    """Extract an error message from a response body.

    Supports the envelopes the CourtListener API (Django REST framework)
    returns:
    - {"detail": "..."}
    - {"message": "..."}
    - {"error": "..."} or {"error": {"message": "..."}}

    Args:
        content: Raw response body

    Returns:
        Error message if found, None otherwise
    """
    if not content:
        return None
    try:
        body: Any = json.loads(content)
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(body, dict):
        return None

    detail = body.get("detail")
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list) and detail:
        return str(detail[0])

    message = body.get("message")
    if isinstance(message, str):
        return message

    error = body.get("error")
    if isinstance(error, dict):
        msg = error.get("message")
        if isinstance(msg, str):
            return msg
    elif isinstance(error, str):
        return error

    return None


def classify_status(
    status_code: int,
    headers: Mapping[str, str] | None = None,
    content: bytes = b"",
    *,
    rate_limit_fallback: float = DEFAULT_RATE_LIMIT_FALLBACK_SECONDS,
) -> Outcome:
    """Classify an HTTP response by status code.

    Args:
        status_code: HTTP status code
        headers: Response headers (for Retry-After)
        content: Response body
        rate_limit_fallback: Fallback delay for 429 without a usable header

    Returns:
        Exactly one Outcome
    """
    if 200 <= status_code < 300:
        return Success(status_code=status_code, content=content, headers=headers or {})

    if status_code == 404:
        return NotFound(status_code=status_code)

    message = extract_error_message(content) or f"HTTP {status_code}"

    if status_code == 401:
        return PermanentFailure(
            kind=ErrorKind.UNAUTHORIZED,
            message=message,
            status_code=status_code,
        )

    if status_code == 429:
        return TransientFailure(
            kind=ErrorKind.RATE_LIMITED,
            message=message,
            status_code=status_code,
            retry_after=parse_retry_after(headers, fallback_seconds=rate_limit_fallback),
        )

    if status_code == 408 or 500 <= status_code < 600:
        return TransientFailure(
            kind=ErrorKind.SERVER_ERROR,
            message=message,
            status_code=status_code,
        )

    return PermanentFailure(
        kind=ErrorKind.API_ERROR,
        message=message,
        status_code=status_code,
    )


def classify_exception(exc: BaseException) -> Outcome:
    """Classify an exception raised by a transport attempt.

    Caller-initiated cancellation is not classified here; the executor
    handles it before classification.

    Args:
        exc: Exception raised by the attempt

    Returns:
        Exactly one Outcome
    """
    # TimeoutError is an OSError subclass, so timeouts are checked first
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return TransientFailure(
            kind=ErrorKind.TIMEOUT,
            message=f"Request timed out: {exc}" if str(exc) else "Request timed out",
        )

    if isinstance(exc, (httpx.NetworkError, httpx.RemoteProtocolError, httpx.ProxyError, OSError)):
        return TransientFailure(
            kind=ErrorKind.NETWORK_FAILURE,
            message=f"Connection failed: {exc}",
        )

    return PermanentFailure(
        kind=ErrorKind.API_ERROR,
        message=f"Unexpected error: {type(exc).__name__}: {exc}",
    )


def classify(
    result: RawResponse | BaseException,
    *,
    rate_limit_fallback: float = DEFAULT_RATE_LIMIT_FALLBACK_SECONDS,
) -> Outcome:
    """Classify a raw transport result.

    Args:
        result: RawResponse from the transport, or the exception it raised
        rate_limit_fallback: Fallback delay for 429 without a usable header

    Returns:
        Exactly one Outcome
    """
    if isinstance(result, BaseException):
        return classify_exception(result)
    return classify_status(
        result.status_code,
        result.headers,
        result.content,
        rate_limit_fallback=rate_limit_fallback,
    )


def circuit_open_outcome() -> TransientFailure:
    """Synthetic outcome for a call rejected by an open circuit."""
    return TransientFailure(
        kind=ErrorKind.SERVER_ERROR,
        message=CIRCUIT_OPEN_MESSAGE,
        short_circuited=True,
    )


def is_failure(outcome: Outcome) -> bool:
    """Check whether an outcome carries an error kind."""
    return isinstance(outcome, (TransientFailure, PermanentFailure))


def outcome_label(outcome: Outcome) -> str:
    """Short label for logs and attempt events."""
    if isinstance(outcome, Success):
        return "success"
    if isinstance(outcome, NotFound):
        return "not_found"
    if isinstance(outcome, TransientFailure) and outcome.short_circuited:
        return "short_circuited"
    return outcome.kind.value
