"""
Resilience layer - Retry policy and circuit breaker.

This module provides:
- RetryPolicy: Exponential backoff with rate-limit awareness
- CircuitBreaker: Closed/Open/Half-Open state machine over pure transitions
- SignalsSnapshot: Point-in-time resilience state for status reports
"""

from courtlistener_client.resilience.circuit_breaker import (
    Admission,
    BreakerSignal,
    BreakerState,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitEvent,
    CircuitEventKind,
    CircuitState,
    CircuitStats,
    Permit,
    admit,
    breaker_signal,
    record,
    release,
    time_until_trial,
)
from courtlistener_client.resilience.retry import (
    JitterStrategy,
    RetryConfig,
    RetryDecision,
    RetryPolicy,
)
from courtlistener_client.resilience.signals import (
    CircuitBreakerSnapshot,
    SignalsSnapshot,
)

__all__ = [
    # Circuit breaker
    "Admission",
    "BreakerSignal",
    "BreakerState",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitEvent",
    "CircuitEventKind",
    "CircuitState",
    "CircuitStats",
    "Permit",
    "admit",
    "breaker_signal",
    "record",
    "release",
    "time_until_trial",
    # Retry
    "JitterStrategy",
    "RetryConfig",
    "RetryDecision",
    "RetryPolicy",
    # Signals
    "CircuitBreakerSnapshot",
    "SignalsSnapshot",
]
