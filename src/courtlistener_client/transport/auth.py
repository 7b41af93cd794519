"""
API key resolution utilities.

Resolves the CourtListener API key from:
1. Explicit value
2. Environment variable (COURTLISTENER_API_KEY)
"""

from __future__ import annotations

import os

API_KEY_ENV = "COURTLISTENER_API_KEY"


def resolve_api_key(explicit_key: str | None = None, env_var: str = API_KEY_ENV) -> str | None:
    """Resolve the API key.

    Args:
        explicit_key: Explicitly provided API key
        env_var: Environment variable to fall back to

    Returns:
        Resolved API key or None if not found
    """
    if explicit_key:
        return explicit_key

    key = os.getenv(env_var)
    if key and key.strip():
        return key.strip()

    return None


def get_auth_header(api_key: str | None) -> dict[str, str]:
    """Build the Authorization header.

    CourtListener expects "Authorization: Token <key>".

    Args:
        api_key: API key, or None for anonymous access

    Returns:
        Header dict (empty if no key)
    """
    if not api_key:
        return {}
    return {"Authorization": f"Token {api_key}"}


def key_suffix(api_key: str | None, visible: int = 4) -> str | None:
    """Last characters of the key, safe to log."""
    if not api_key:
        return None
    return api_key[-visible:]
