"""Root pytest fixtures for courtlistener-client tests."""

from __future__ import annotations

import asyncio
import os
from unittest.mock import patch

import pytest

from courtlistener_client.transport.http import RawResponse

ENV_VARS = (
    "COURTLISTENER_BASE_URL",
    "COURTLISTENER_API_KEY",
    "COURTLISTENER_TIMEOUT_SECONDS",
    "COURTLISTENER_MAX_RETRIES",
    "COURTLISTENER_BREAKER_FAILURE_THRESHOLD",
    "COURTLISTENER_BREAKER_BREAK_SECONDS",
    "COURTLISTENER_RATE_LIMIT_FALLBACK_SECONDS",
    "COURTLISTENER_LOG_LEVEL",
    "COURTLISTENER_LOG_FORMAT",
)


class FakeClock:
    """Manually advanced monotonic clock.

    `sleep` advances the clock instead of waiting, so backoff sequences
    run instantly and every delay is recorded.
    """

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class ScriptedTransport:
    """Attempt function replaying a script of responses and exceptions.

    Each item is a RawResponse, an int status code, or an exception to raise.
    The last item repeats once the script is exhausted.
    """

    def __init__(
        self,
        *script: RawResponse | int | BaseException,
        latency: float = 0.0,
        clock: FakeClock | None = None,
    ) -> None:
        self._script = list(script)
        self._latency = latency
        self._clock = clock
        self.calls = 0

    async def __call__(self) -> RawResponse:
        item = self._script[min(self.calls, len(self._script) - 1)]
        self.calls += 1
        if self._clock is not None and self._latency:
            self._clock.advance(self._latency)
        await asyncio.sleep(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, int):
            return RawResponse(status_code=item, content=b'{"ok": true}' if item < 300 else b"")
        return item


@pytest.fixture
def clock() -> FakeClock:
    """Fake monotonic clock with an advancing async sleep."""
    return FakeClock()


@pytest.fixture
def scripted(clock: FakeClock):
    """Factory for scripted attempt functions sharing the fake clock."""

    def factory(*script: RawResponse | int | BaseException, latency: float = 0.0) -> ScriptedTransport:
        return ScriptedTransport(*script, latency=latency, clock=clock)

    return factory


@pytest.fixture
def clean_env():
    """Run with no COURTLISTENER_* variables set."""
    env = {k: v for k, v in os.environ.items() if k not in ENV_VARS}
    with patch.dict(os.environ, env, clear=True):
        yield


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: tests that drive the full client over a mocked HTTP transport",
    )
