"""
Base error classes for courtlistener-client.

Provides a layered error hierarchy:
- CourtListenerError: Base class for all library errors
- TransportError: HTTP/network errors raised outside the retry loop
- ValidationError: Caller-side input errors (never retried)
- ConfigError: Invalid configuration values

Failures of remote calls do not surface as exceptions: the resilient
executor turns them into classified results. These exceptions cover
programmer and configuration mistakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ErrorContext:
    """Structured error context for diagnostics.

    Provides actionable information for debugging and error handling.
    """

    field_path: str | None = None
    """Path to the problematic field (e.g., 'endpoint')"""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'transport', 'validation', 'config')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.field_path:
            parts.append(f"at '{self.field_path}'")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class CourtListenerError(Exception):
    """Base class for all courtlistener-client errors.

    Attributes:
        message: Human-readable error message
        context: Optional structured error context
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> CourtListenerError:
        """Add a hint to this error."""
        self.context.hint = hint
        return self


class TransportError(CourtListenerError):
    """Error while setting up or using the HTTP transport.

    Raised when:
    - The transport is used after it was closed
    - A request cannot be built (bad URL, unserializable body)
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        url: str | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="transport")
        if url:
            ctx.details["url"] = url
        super().__init__(message, ctx)
        self.url = url


class ValidationError(CourtListenerError):
    """Caller-side validation error.

    Raised when:
    - An endpoint or identifier is empty
    - A parameter has an invalid value
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        field: str | None = None,
        expected: Any = None,
        actual: Any = None,
    ) -> None:
        ctx = context or ErrorContext(source="validation")
        if field:
            ctx.field_path = field
        if expected is not None:
            ctx.details["expected"] = expected
        if actual is not None:
            ctx.details["actual"] = actual
        super().__init__(message, ctx)
        self.field = field
        self.expected = expected
        self.actual = actual


class ConfigError(CourtListenerError):
    """Invalid configuration value (environment or explicit)."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        setting: str | None = None,
        value: Any = None,
    ) -> None:
        ctx = context or ErrorContext(source="config")
        if setting:
            ctx.field_path = setting
        if value is not None:
            ctx.details["value"] = value
        super().__init__(message, ctx)
        self.setting = setting
        self.value = value
