"""
courtlistener-client: resilient async client for the CourtListener REST API.

Every call goes through an error classifier, a retry policy with
rate-limit awareness and a shared circuit breaker, and returns a
CallResult: a decoded value, an explicit absence, a classified error or
a caller cancellation.
"""
from __future__ import annotations

from courtlistener_client.client import (
    CallResult,
    CallStatus,
    CancelHandle,
    CancelReason,
    CancelToken,
    ClientConfig,
    CourtListenerClient,
    CourtListenerClientBuilder,
    RequestAttempt,
    ResilientExecutor,
    create_cancel_pair,
)
from courtlistener_client.errors import (
    ClassifiedError,
    ConfigError,
    CourtListenerError,
    ErrorKind,
    ToolError,
    TransportError,
    ValidationError,
    tool_errors,
)
from courtlistener_client.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    RetryConfig,
    RetryPolicy,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "CourtListenerClient",
    "CourtListenerClientBuilder",
    "ClientConfig",
    "ResilientExecutor",
    # Results
    "CallResult",
    "CallStatus",
    "RequestAttempt",
    # Cancellation
    "CancelHandle",
    "CancelReason",
    "CancelToken",
    "create_cancel_pair",
    # Errors
    "ClassifiedError",
    "ConfigError",
    "CourtListenerError",
    "ErrorKind",
    "ToolError",
    "TransportError",
    "ValidationError",
    "tool_errors",
    # Resilience
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "RetryConfig",
    "RetryPolicy",
    # Version
    "__version__",
]
