"""
Transport layer - HTTP client for CourtListener API communication.

Provides httpx-based transport with:
- One raw HTTP exchange per call (no status interpretation)
- Per-request timeout overrides
- Token authentication header
"""

from courtlistener_client.transport.auth import get_auth_header, resolve_api_key
from courtlistener_client.transport.http import DEFAULT_BASE_URL, HttpTransport, RawResponse

__all__ = [
    "DEFAULT_BASE_URL",
    "HttpTransport",
    "RawResponse",
    "get_auth_header",
    "resolve_api_key",
]
