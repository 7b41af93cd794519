"""
Result types for client operations.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from courtlistener_client.errors.base import CourtListenerError
from courtlistener_client.errors.classification import (
    Failure,
    TransientFailure,
    is_failure,
    outcome_label,
)
from courtlistener_client.errors.tool_error import ToolError

if TYPE_CHECKING:
    from courtlistener_client.client.cancel import CancelReason
    from courtlistener_client.errors.classification import ClassifiedError, Outcome

T = TypeVar("T")


class CallStatus(str, Enum):
    """Terminal status of a logical call."""

    OK = "ok"
    ABSENT = "absent"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RequestAttempt:
    """One physical try within a logical call.

    Attributes:
        target: Logical endpoint the call was made to
        number: Attempt number (1-based)
        started_at: Wall-clock start time (epoch seconds)
        elapsed: Duration of the attempt in seconds
        outcome: Classified outcome of the attempt
    """

    target: str
    number: int
    started_at: float
    elapsed: float
    outcome: Outcome

    @property
    def label(self) -> str:
        return outcome_label(self.outcome)

    @property
    def short_circuited(self) -> bool:
        """Whether the breaker rejected this attempt without a transport call."""
        return isinstance(self.outcome, TransientFailure) and self.outcome.short_circuited

    @property
    def status_code(self) -> int | None:
        return self.outcome.status_code

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "number": self.number,
            "started_at": self.started_at,
            "elapsed_ms": round(self.elapsed * 1000, 3),
            "outcome": self.label,
            "status_code": self.status_code,
        }


@dataclass
class CallResult(Generic[T]):
    """Result of one logical call.

    Exactly one of the following holds:
    - status OK: `value` holds the decoded payload
    - status ABSENT: the resource does not exist (404)
    - status FAILED: `error` holds the classified terminal error
    - status CANCELLED: `cancel_reason` says why the caller stopped the call

    Attributes:
        target: Logical endpoint
        status: Terminal status
        value: Decoded value (OK only)
        error: Classified error (FAILED only)
        cancel_reason: Reason for cancellation (CANCELLED only)
        attempts: Every attempt made, in order
        elapsed: Total wall time of the call in seconds, including backoff
        request_id: Client-generated ID for correlating log lines
    """

    target: str
    status: CallStatus
    value: T | None = None
    error: ClassifiedError | None = None
    cancel_reason: CancelReason | None = None
    attempts: list[RequestAttempt] = field(default_factory=list)
    elapsed: float = 0.0
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def is_ok(self) -> bool:
        return self.status is CallStatus.OK

    @property
    def is_absent(self) -> bool:
        return self.status is CallStatus.ABSENT

    @property
    def is_failed(self) -> bool:
        return self.status is CallStatus.FAILED

    @property
    def is_cancelled(self) -> bool:
        return self.status is CallStatus.CANCELLED

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def retry_count(self) -> int:
        """Number of retries performed (attempts after the first)."""
        return max(0, len(self.attempts) - 1)

    @property
    def last_outcome(self) -> Outcome | None:
        return self.attempts[-1].outcome if self.attempts else None

    @property
    def failures(self) -> list[Failure]:
        """Failure outcomes of every attempt, in order."""
        return [a.outcome for a in self.attempts if is_failure(a.outcome)]  # type: ignore[misc]

    def value_or(self, default: T) -> T:
        """Return the decoded value, or `default` for any non-OK status."""
        if self.status is CallStatus.OK and self.value is not None:
            return self.value
        return default

    def to_tool_error(self, resource: str, identifier: str | None = None) -> ToolError | None:
        """Build the structured error a tool reports for this result.

        Args:
            resource: Resource name for absence messages (e.g. "Opinion")
            identifier: Identifier that was looked up

        Returns:
            ToolError for ABSENT, FAILED and CANCELLED results; None for OK
        """
        if self.status is CallStatus.OK:
            return None
        if self.status is CallStatus.ABSENT:
            return ToolError.not_found(resource, identifier)
        if self.status is CallStatus.CANCELLED:
            reason = self.cancel_reason.value if self.cancel_reason else "user_request"
            return ToolError.api_error(
                f"Request to {self.target} was cancelled ({reason})",
                suggestion=None,
            )
        if self.error is None:
            raise CourtListenerError(f"Failed result for {self.target} carries no error")
        return ToolError.from_classified(self.error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "target": self.target,
            "status": self.status.value,
            "error": self.error.kind.value if self.error else None,
            "cancel_reason": self.cancel_reason.value if self.cancel_reason else None,
            "attempts": [a.to_dict() for a in self.attempts],
            "elapsed_ms": round(self.elapsed * 1000, 3),
        }
