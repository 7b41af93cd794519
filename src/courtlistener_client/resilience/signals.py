"""
Resilience signals.

Point-in-time snapshots of the circuit breaker and retry settings, used by
the client's status and health reports.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from courtlistener_client.resilience.circuit_breaker import CircuitBreaker
    from courtlistener_client.resilience.retry import RetryPolicy


@dataclass
class CircuitBreakerSnapshot:
    """Snapshot of circuit breaker state.

    Attributes:
        name: Name of the protected dependency
        state: Current state (closed, open, half_open)
        failure_count: Consecutive failures counted while closed
        failure_threshold: Threshold for opening
        break_seconds: Open-state duration before a trial call
        trial_in_flight: Whether the half-open trial call is running
        cooldown_remaining_ms: Remaining open time in milliseconds
        rejected_requests: Calls short-circuited so far
    """

    name: str
    state: str
    failure_count: int
    failure_threshold: int
    break_seconds: float
    trial_in_flight: bool = False
    cooldown_remaining_ms: float | None = None
    rejected_requests: int = 0

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"

    @property
    def is_half_open(self) -> bool:
        return self.state == "half_open"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "state": self.state,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "break_seconds": self.break_seconds,
            "trial_in_flight": self.trial_in_flight,
            "cooldown_remaining_ms": self.cooldown_remaining_ms,
            "rejected_requests": self.rejected_requests,
            "is_open": self.is_open,
        }

    @classmethod
    def from_breaker(cls, breaker: CircuitBreaker) -> CircuitBreakerSnapshot:
        """Capture the current state of a breaker."""
        state = breaker.snapshot()
        remaining = breaker.get_time_until_retry()
        return cls(
            name=breaker.name,
            state=state.state.value,
            failure_count=state.consecutive_failures,
            failure_threshold=breaker.config.failure_threshold,
            break_seconds=breaker.config.break_seconds,
            trial_in_flight=state.trial_in_flight,
            cooldown_remaining_ms=remaining * 1000 if remaining is not None else None,
            rejected_requests=breaker.get_stats().rejected_requests,
        )


@dataclass
class SignalsSnapshot:
    """Unified snapshot of the resilience layer.

    Attributes:
        circuit_breaker: Circuit breaker state
        max_retries: Configured retry limit
        rate_limit_fallback_seconds: Delay used for 429 without a usable hint
        timestamp: Snapshot timestamp
    """

    circuit_breaker: CircuitBreakerSnapshot | None = None
    max_retries: int | None = None
    rate_limit_fallback_seconds: float | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def is_healthy(self) -> bool:
        """Healthy unless the circuit is open."""
        return not (self.circuit_breaker and self.circuit_breaker.is_open)

    @property
    def health_score(self) -> float:
        """Health score from 0.0 to 1.0 (closed 1.0, half-open 0.5, open 0.0)."""
        if self.circuit_breaker is None or self.circuit_breaker.is_closed:
            return 1.0
        if self.circuit_breaker.is_half_open:
            return 0.5
        return 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "circuit_breaker": (
                self.circuit_breaker.to_dict() if self.circuit_breaker else None
            ),
            "max_retries": self.max_retries,
            "rate_limit_fallback_seconds": self.rate_limit_fallback_seconds,
            "timestamp": self.timestamp,
            "is_healthy": self.is_healthy,
            "health_score": self.health_score,
        }

    @classmethod
    def from_components(
        cls,
        circuit_breaker: CircuitBreaker | None = None,
        retry: RetryPolicy | None = None,
    ) -> SignalsSnapshot:
        """Create snapshot from resilience components."""
        return cls(
            circuit_breaker=(
                CircuitBreakerSnapshot.from_breaker(circuit_breaker) if circuit_breaker else None
            ),
            max_retries=retry.config.max_retries if retry else None,
            rate_limit_fallback_seconds=(
                retry.config.rate_limit_fallback_seconds if retry else None
            ),
        )
