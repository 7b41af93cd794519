"""
Error taxonomy for courtlistener-client.

Provides the closed ErrorKind set, the Outcome union produced by the
classifier, and the structured ToolError shape reported to callers.
"""

from courtlistener_client.errors.base import (
    ConfigError,
    CourtListenerError,
    ErrorContext,
    TransportError,
    ValidationError,
)
from courtlistener_client.errors.boundary import tool_errors
from courtlistener_client.errors.classification import (
    DEFAULT_RATE_LIMIT_FALLBACK_SECONDS,
    ClassifiedError,
    ErrorKind,
    Failure,
    NotFound,
    Outcome,
    PermanentFailure,
    RateLimitHint,
    Success,
    TransientFailure,
    circuit_open_outcome,
    classify,
    classify_exception,
    classify_status,
    extract_error_message,
    is_failure,
    parse_retry_after,
    suggestion_for,
)
from courtlistener_client.errors.tool_error import NOT_FOUND_TOKEN, ToolError

__all__ = [
    # Base errors
    "ConfigError",
    "CourtListenerError",
    "ErrorContext",
    "TransportError",
    "ValidationError",
    # Classification
    "DEFAULT_RATE_LIMIT_FALLBACK_SECONDS",
    "ClassifiedError",
    "ErrorKind",
    "Failure",
    "NotFound",
    "Outcome",
    "PermanentFailure",
    "RateLimitHint",
    "Success",
    "TransientFailure",
    "circuit_open_outcome",
    "classify",
    "classify_exception",
    "classify_status",
    "extract_error_message",
    "is_failure",
    "parse_retry_after",
    "suggestion_for",
    # Tool surface
    "NOT_FOUND_TOKEN",
    "ToolError",
    "tool_errors",
]
