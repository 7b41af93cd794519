"""
Client configuration.

Every knob can be set in code or read from COURTLISTENER_* environment
variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from courtlistener_client.errors.base import ConfigError
from courtlistener_client.resilience.circuit_breaker import CircuitBreakerConfig
from courtlistener_client.resilience.retry import RetryConfig
from courtlistener_client.transport.auth import API_KEY_ENV, key_suffix, resolve_api_key
from courtlistener_client.transport.http import DEFAULT_BASE_URL

BASE_URL_ENV = "COURTLISTENER_BASE_URL"
TIMEOUT_ENV = "COURTLISTENER_TIMEOUT_SECONDS"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class ClientConfig:
    """Configuration for CourtListenerClient.

    Attributes:
        base_url: API root; relative endpoints are resolved against it
        api_key: API token (anonymous access if None)
        timeout_seconds: Per-attempt timeout
        retry: Retry policy settings
        breaker: Circuit breaker settings
    """

    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retry: RetryConfig = field(default_factory=RetryConfig)
    breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ConfigError("base_url must not be empty", setting="base_url")
        if not self.base_url.endswith("/"):
            # httpx joins relative paths onto the last path segment
            self.base_url = self.base_url + "/"
        if self.timeout_seconds <= 0:
            raise ConfigError(
                "timeout_seconds must be positive",
                setting="timeout_seconds",
                value=self.timeout_seconds,
            )

    @classmethod
    def from_env(cls) -> ClientConfig:
        """Create configuration from environment variables.

        Reads COURTLISTENER_BASE_URL, COURTLISTENER_API_KEY,
        COURTLISTENER_TIMEOUT_SECONDS plus the retry and breaker variables.

        Raises:
            ConfigError: If a variable holds an invalid value
        """
        timeout = os.getenv(TIMEOUT_ENV, str(DEFAULT_TIMEOUT_SECONDS))
        try:
            timeout_seconds = float(timeout)
        except ValueError as e:
            raise ConfigError(
                f"Invalid {TIMEOUT_ENV}: {timeout!r}",
                setting=TIMEOUT_ENV,
                value=timeout,
            ) from e

        return cls(
            base_url=os.getenv(BASE_URL_ENV) or DEFAULT_BASE_URL,
            api_key=resolve_api_key(env_var=API_KEY_ENV),
            timeout_seconds=timeout_seconds,
            retry=RetryConfig.from_env(),
            breaker=CircuitBreakerConfig.from_env(),
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def summary(self) -> dict[str, Any]:
        """Configuration summary, safe to log or report (the key is masked)."""
        suffix = key_suffix(self.api_key)
        return {
            "base_url": self.base_url,
            "api_key_configured": self.has_api_key,
            "api_key": f"...{suffix}" if suffix else None,
            "timeout_seconds": self.timeout_seconds,
            "max_retries": self.retry.max_retries,
            "rate_limit_fallback_seconds": self.retry.rate_limit_fallback_seconds,
            "breaker_failure_threshold": self.breaker.failure_threshold,
            "breaker_break_seconds": self.breaker.break_seconds,
        }
