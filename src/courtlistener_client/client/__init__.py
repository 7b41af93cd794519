"""
Client layer - User-facing API.

This module provides:
- CourtListenerClient: Main entry point for CourtListener API calls
- CourtListenerClientBuilder: Fluent configuration
- ResilientExecutor: The per-call retry loop behind every request
- Result types and cancellation control
"""

from courtlistener_client.client.builder import CourtListenerClientBuilder
from courtlistener_client.client.cancel import (
    CancelHandle,
    CancelReason,
    CancelState,
    CancelToken,
    create_cancel_pair,
)
from courtlistener_client.client.config import ClientConfig
from courtlistener_client.client.core import CourtListenerClient
from courtlistener_client.client.executor import ResilientExecutor
from courtlistener_client.client.response import CallResult, CallStatus, RequestAttempt

__all__ = [
    "CallResult",
    "CallStatus",
    "CancelHandle",
    "CancelReason",
    "CancelState",
    "CancelToken",
    "ClientConfig",
    "CourtListenerClient",
    "CourtListenerClientBuilder",
    "RequestAttempt",
    "ResilientExecutor",
    "create_cancel_pair",
]
