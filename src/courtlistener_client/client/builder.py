"""
Builder for fluent client construction.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from courtlistener_client.client.config import DEFAULT_TIMEOUT_SECONDS, ClientConfig
from courtlistener_client.resilience.circuit_breaker import CircuitBreakerConfig
from courtlistener_client.resilience.retry import JitterStrategy, RetryConfig
from courtlistener_client.transport.http import DEFAULT_BASE_URL

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from courtlistener_client.client.core import CourtListenerClient
    from courtlistener_client.resilience.circuit_breaker import CircuitBreaker


class CourtListenerClientBuilder:
    """Builder for creating CourtListenerClient instances.

    Starts from library defaults; call `from_env()` first to start from
    the environment instead.

    Example:
        >>> client = (
        ...     CourtListenerClientBuilder()
        ...     .api_key("...")
        ...     .timeout(10)
        ...     .max_retries(2)
        ...     .circuit_breaker(failure_threshold=3, break_seconds=30)
        ...     .build()
        ... )
    """

    def __init__(self) -> None:
        self._base_url: str = DEFAULT_BASE_URL
        self._api_key: str | None = None
        self._timeout: float = DEFAULT_TIMEOUT_SECONDS
        self._retry = RetryConfig()
        self._breaker_config = CircuitBreakerConfig()
        self._breaker: CircuitBreaker | None = None
        self._http_client: httpx.AsyncClient | None = None
        self._sleep: Callable[[float], Awaitable[None]] | None = None
        self._clock: Callable[[], float] = time.monotonic

    def from_env(self) -> CourtListenerClientBuilder:
        """Load every setting from COURTLISTENER_* environment variables.

        Returns:
            Self for chaining
        """
        config = ClientConfig.from_env()
        self._base_url = config.base_url
        self._api_key = config.api_key
        self._timeout = config.timeout_seconds
        self._retry = config.retry
        self._breaker_config = config.breaker
        return self

    def base_url(self, url: str) -> CourtListenerClientBuilder:
        """Override the API root.

        Args:
            url: Base URL for API requests

        Returns:
            Self for chaining
        """
        self._base_url = url
        return self

    def api_key(self, key: str | None) -> CourtListenerClientBuilder:
        """Set explicit API key.

        Returns:
            Self for chaining
        """
        self._api_key = key
        return self

    def timeout(self, seconds: float) -> CourtListenerClientBuilder:
        """Set per-attempt timeout.

        Returns:
            Self for chaining
        """
        self._timeout = seconds
        return self

    def max_retries(self, n: int) -> CourtListenerClientBuilder:
        """Set the maximum number of retries (0 disables retrying).

        Returns:
            Self for chaining
        """
        self._retry = RetryConfig(
            max_retries=n,
            backoff_base=self._retry.backoff_base,
            rate_limit_fallback_seconds=self._retry.rate_limit_fallback_seconds,
            max_delay_seconds=self._retry.max_delay_seconds,
            jitter=self._retry.jitter,
        )
        return self

    def retry(self, config: RetryConfig) -> CourtListenerClientBuilder:
        """Replace the whole retry configuration."""
        self._retry = config
        return self

    def jitter(self, strategy: JitterStrategy | str) -> CourtListenerClientBuilder:
        """Add jitter to backoff delays (none by default)."""
        self._retry = RetryConfig(
            max_retries=self._retry.max_retries,
            backoff_base=self._retry.backoff_base,
            rate_limit_fallback_seconds=self._retry.rate_limit_fallback_seconds,
            max_delay_seconds=self._retry.max_delay_seconds,
            jitter=JitterStrategy(strategy),
        )
        return self

    def circuit_breaker(
        self,
        failure_threshold: int | None = None,
        break_seconds: float | None = None,
    ) -> CourtListenerClientBuilder:
        """Configure the circuit breaker.

        Args:
            failure_threshold: Consecutive failures that open the circuit
            break_seconds: Time the circuit stays open before a trial call

        Returns:
            Self for chaining
        """
        self._breaker_config = CircuitBreakerConfig(
            failure_threshold=(
                failure_threshold
                if failure_threshold is not None
                else self._breaker_config.failure_threshold
            ),
            break_seconds=(
                break_seconds if break_seconds is not None else self._breaker_config.break_seconds
            ),
        )
        return self

    def shared_breaker(self, breaker: CircuitBreaker) -> CourtListenerClientBuilder:
        """Use an existing breaker, shared with other clients of the same API.

        Breaker settings from `circuit_breaker()` are then ignored.
        """
        self._breaker = breaker
        return self

    def http_client(self, client: httpx.AsyncClient) -> CourtListenerClientBuilder:
        """Use a pre-built httpx client (it is not closed by the client)."""
        self._http_client = client
        return self

    def sleep(self, sleep: Callable[[float], Awaitable[None]]) -> CourtListenerClientBuilder:
        """Override the backoff sleep (tests use a fake clock)."""
        self._sleep = sleep
        return self

    def clock(self, clock: Callable[[], float]) -> CourtListenerClientBuilder:
        """Override the monotonic clock used by the breaker and timings."""
        self._clock = clock
        return self

    def build_config(self) -> ClientConfig:
        """Build only the configuration.

        Raises:
            ConfigError: If a setting is invalid
        """
        return ClientConfig(
            base_url=self._base_url,
            api_key=self._api_key,
            timeout_seconds=self._timeout,
            retry=self._retry,
            breaker=self._breaker_config,
        )

    def build(self) -> CourtListenerClient:
        """Build the CourtListenerClient instance.

        Raises:
            ConfigError: If a setting is invalid
        """
        from courtlistener_client.client.core import CourtListenerClient

        kwargs: dict[str, Any] = {
            "http_client": self._http_client,
            "breaker": self._breaker,
            "sleep": self._sleep,
            "clock": self._clock,
        }
        return CourtListenerClient(self.build_config(), **kwargs)
