"""
Core CourtListenerClient implementation.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter

from courtlistener_client.client.builder import CourtListenerClientBuilder
from courtlistener_client.client.config import ClientConfig
from courtlistener_client.client.executor import ResilientExecutor
from courtlistener_client.resilience.circuit_breaker import CircuitBreaker, CircuitState
from courtlistener_client.resilience.retry import RetryPolicy
from courtlistener_client.resilience.signals import CircuitBreakerSnapshot, SignalsSnapshot
from courtlistener_client.telemetry.logger import ClientLogger, get_logger
from courtlistener_client.transport.http import HttpTransport, package_version

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from courtlistener_client.client.cancel import CancelToken
    from courtlistener_client.client.response import CallResult
    from courtlistener_client.transport.http import RawResponse

logger = get_logger("courtlistener_client.client.core")

API_ROOT = "/"


@lru_cache(maxsize=256)
def _adapter(decode_as: Any) -> TypeAdapter[Any]:
    return TypeAdapter(decode_as)


def _decoder_for(decode_as: Any) -> Callable[[bytes], Any]:
    """JSON decoder validating into `decode_as` (plain JSON when None).

    An empty body (e.g. 204) decodes to None.
    """
    adapter = _adapter(Any if decode_as is None else decode_as)

    def decode(content: bytes) -> Any:
        if not content:
            return None
        return adapter.validate_json(content)

    return decode


def _format_uptime(seconds: float) -> str:
    total = int(seconds)
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{days}d {hours}h {minutes}m {secs}s"


class CourtListenerClient:
    """Resilient client for the CourtListener REST API.

    Every call runs through one shared circuit breaker and its own retry
    loop, and returns a CallResult instead of raising on remote failures.

    Example:
        >>> async with CourtListenerClient.from_env() as client:
        ...     result = await client.get("opinions/123/", Opinion)
        ...     if result.is_ok:
        ...         print(result.value.plain_text)
        ...     elif result.is_absent:
        ...         print("no such opinion")
        ...     else:
        ...         print(result.to_tool_error("Opinion", "123"))

        >>> client = (
        ...     CourtListenerClient.builder()
        ...     .api_key("...")
        ...     .max_retries(2)
        ...     .build()
        ... )
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: HttpTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
        breaker: CircuitBreaker | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the client.

        Args:
            config: Client configuration (defaults, without environment lookup)
            transport: Pre-built transport (config.base_url/api_key are then unused)
            http_client: httpx client for the default transport
            breaker: Shared circuit breaker (one per downstream dependency)
            sleep: Async sleep for backoff, injectable for tests
            clock: Monotonic clock for the breaker and durations
        """
        self._config = config or ClientConfig()
        self._clock = clock
        self._started_at = clock()
        self._transport = transport or HttpTransport(
            self._config.base_url,
            api_key=self._config.api_key,
            timeout=self._config.timeout_seconds,
            client=http_client,
        )
        self._breaker = breaker or CircuitBreaker(self._config.breaker, clock=clock)
        self._executor = ResilientExecutor(
            self._breaker,
            RetryPolicy(self._config.retry),
            timeout=self._config.timeout_seconds,
            sleep=sleep,
            clock=clock,
        )

        logger.info(
            "CourtListener client initialized",
            base_url=self._config.base_url,
            api_key_configured=self._config.has_api_key,
            timeout_seconds=self._config.timeout_seconds,
            max_retries=self._config.retry.max_retries,
        )

    @classmethod
    def from_env(cls, **kwargs: Any) -> CourtListenerClient:
        """Create a client configured from COURTLISTENER_* environment variables.

        Also applies COURTLISTENER_LOG_LEVEL and COURTLISTENER_LOG_FORMAT to
        the library loggers.

        Args:
            **kwargs: Extra constructor arguments (transport, breaker, sleep, ...)
        """
        config = ClientConfig.from_env()
        ClientLogger.configure_from_env()
        return cls(config, **kwargs)

    @classmethod
    def builder(cls) -> CourtListenerClientBuilder:
        """Create a builder for custom configuration."""
        return CourtListenerClientBuilder()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def executor(self) -> ResilientExecutor:
        return self._executor

    @property
    def circuit_state(self) -> str:
        """Get current circuit breaker state."""
        return self._breaker.state.value

    async def get(
        self,
        endpoint: str,
        decode_as: Any = None,
        *,
        params: dict[str, Any] | None = None,
        cancel_token: CancelToken | None = None,
        timeout: float | None = None,
    ) -> CallResult[Any]:
        """GET an endpoint and decode the JSON body.

        Args:
            endpoint: Path relative to the API root (e.g. "opinions/123/")
            decode_as: Type to validate the body into (pydantic model, list[...], ...);
                plain JSON when None
            params: Query parameters
            cancel_token: Caller's cancellation token
            timeout: Per-attempt timeout override in seconds

        Returns:
            CallResult: ok with the value, absent on 404, failed or cancelled
        """
        return await self._call(
            "GET",
            endpoint,
            lambda: self._transport.get(endpoint, params=params, timeout=timeout),
            _decoder_for(decode_as),
            cancel_token=cancel_token,
            timeout=timeout,
        )

    async def post_json(
        self,
        endpoint: str,
        body: Any,
        decode_as: Any = None,
        *,
        cancel_token: CancelToken | None = None,
        timeout: float | None = None,
    ) -> CallResult[Any]:
        """POST a JSON body and decode the JSON response."""
        return await self._call(
            "POST",
            endpoint,
            lambda: self._transport.post_json(endpoint, body, timeout=timeout),
            _decoder_for(decode_as),
            cancel_token=cancel_token,
            timeout=timeout,
        )

    async def post_form(
        self,
        endpoint: str,
        form: dict[str, str],
        decode_as: Any = None,
        *,
        cancel_token: CancelToken | None = None,
        timeout: float | None = None,
    ) -> CallResult[Any]:
        """POST a form-encoded body and decode the JSON response.

        The citation-lookup endpoint takes its text this way.
        """
        return await self._call(
            "POST",
            endpoint,
            lambda: self._transport.post_form(endpoint, form, timeout=timeout),
            _decoder_for(decode_as),
            cancel_token=cancel_token,
            timeout=timeout,
        )

    async def _call(
        self,
        method: str,
        endpoint: str,
        attempt_fn: Callable[[], Awaitable[RawResponse]],
        decode: Callable[[bytes], Any] | None,
        *,
        cancel_token: CancelToken | None,
        timeout: float | None,
    ) -> CallResult[Any]:
        result = await self._executor.execute(
            endpoint,
            attempt_fn,
            decode=decode,
            cancel_token=cancel_token,
            timeout=timeout,
        )
        logger.info(
            "API call completed",
            method=method,
            endpoint=endpoint,
            status=result.status.value,
            attempts=result.attempt_count,
            elapsed_ms=round(result.elapsed * 1000, 1),
            request_id=result.request_id,
        )
        return result

    async def api_status(self, *, cancel_token: CancelToken | None = None) -> dict[str, Any]:
        """Check CourtListener API health and connectivity.

        Makes one logical GET to the API root.

        Returns:
            Report with status ("healthy"/"unhealthy"), response time and,
            on failure, the structured error
        """
        logger.info("Checking CourtListener API status")
        result = await self._call(
            "GET",
            API_ROOT,
            lambda: self._transport.get(API_ROOT),
            None,
            cancel_token=cancel_token,
            timeout=None,
        )

        report: dict[str, Any] = {
            "api_url": self._config.base_url,
            "status": "healthy" if result.is_ok else "unhealthy",
            "response_time_ms": round(result.elapsed * 1000, 1),
            "attempts": result.attempt_count,
            "circuit_breaker": CircuitBreakerSnapshot.from_breaker(self._breaker).to_dict(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if result.is_ok:
            logger.info("API status check successful", response_time_ms=report["response_time_ms"])
        else:
            error = result.to_tool_error("API root")
            report["error"] = error.to_dict() if error else None
            logger.warning("API health check failed", status=result.status.value)
        return report

    async def health_check(self, *, cancel_token: CancelToken | None = None) -> dict[str, Any]:
        """Combined health of the client, the API and the circuit breaker.

        Returns:
            Report with an overall status ("healthy", "degraded" or
            "unhealthy") and one entry per check
        """
        logger.info("Performing comprehensive health check")
        checks: dict[str, dict[str, Any]] = {}

        checks["client"] = {
            "status": "healthy",
            "message": "Client is running",
            "uptime_seconds": round(self._clock() - self._started_at, 3),
        }

        api = await self.api_status(cancel_token=cancel_token)
        checks["courtlistener_api"] = {
            "status": api["status"],
            "message": (
                "API is accessible"
                if api["status"] == "healthy"
                else f"API check failed: {api['error']['message'] if api.get('error') else 'unknown'}"
            ),
            "response_time_ms": api["response_time_ms"],
        }

        breaker_state = self._breaker.state
        checks["circuit_breaker"] = {
            "status": {
                CircuitState.CLOSED: "healthy",
                CircuitState.HALF_OPEN: "degraded",
                CircuitState.OPEN: "unhealthy",
            }[breaker_state],
            "state": breaker_state.value,
            "time_until_retry_seconds": self._breaker.get_time_until_retry(),
        }

        checks["authentication"] = {
            "status": "healthy" if self._config.has_api_key else "degraded",
            "message": (
                "API key configured"
                if self._config.has_api_key
                else "No API key; requests are anonymous and heavily rate limited"
            ),
        }

        statuses = {check["status"] for check in checks.values()}
        if "unhealthy" in statuses:
            overall = "unhealthy"
        elif "degraded" in statuses:
            overall = "degraded"
        else:
            overall = "healthy"

        logger.info("Health check completed", status=overall)
        return {
            "status": overall,
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def status(self) -> dict[str, Any]:
        """Client status, configuration and resilience state."""
        uptime = self._clock() - self._started_at
        return {
            "client": "courtlistener-client",
            "version": package_version(),
            "status": "running",
            "uptime": _format_uptime(uptime),
            "uptime_seconds": round(uptime, 3),
            "configuration": self._config.summary(),
            "resilience": SignalsSnapshot.from_components(
                self._breaker, self._executor.retry_policy
            ).to_dict(),
        }

    def get_resilience_stats(self) -> dict[str, Any]:
        """Get circuit breaker statistics."""
        stats = self._breaker.get_stats()
        return {
            "circuit_breaker": {
                "state": self._breaker.state.value,
                "total_requests": stats.total_requests,
                "successful_requests": stats.successful_requests,
                "failed_requests": stats.failed_requests,
                "rejected_requests": stats.rejected_requests,
                "state_changes": stats.state_changes,
            },
        }

    def reset_resilience(self) -> None:
        """Reset the circuit breaker to closed."""
        self._breaker.reset()

    async def close(self) -> None:
        """Close the client and release resources."""
        await self._transport.close()

    async def __aenter__(self) -> CourtListenerClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
