"""
Retry policy with exponential backoff and rate-limit awareness.

Decides, per attempt, whether to retry an outcome and how long to wait.
"""

from __future__ import annotations

import os
import random
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from courtlistener_client.errors.base import ConfigError
from courtlistener_client.errors.classification import (
    DEFAULT_RATE_LIMIT_FALLBACK_SECONDS,
    ErrorKind,
    TransientFailure,
)

if TYPE_CHECKING:
    from courtlistener_client.errors.classification import Outcome


class JitterStrategy(str, Enum):
    """Jitter strategy for retry delays."""

    NONE = "none"
    FULL = "full"
    EQUAL = "equal"


@dataclass
class RetryConfig:
    """Configuration for retry policy.

    Attributes:
        max_retries: Maximum number of retries (0 = no retries)
        backoff_base: Base of the exponential backoff; delay = base ** attempt
        rate_limit_fallback_seconds: Delay for 429 without a usable hint
        max_delay_seconds: Optional cap on backoff delays (rate-limit hints are not capped)
        jitter: Jitter strategy (none, full, equal)
    """

    max_retries: int = 3
    backoff_base: float = 2.0
    rate_limit_fallback_seconds: float = DEFAULT_RATE_LIMIT_FALLBACK_SECONDS
    max_delay_seconds: float | None = None
    jitter: JitterStrategy = JitterStrategy.NONE

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigError(
                "max_retries must not be negative",
                setting="max_retries",
                value=self.max_retries,
            )
        if self.backoff_base < 0:
            raise ConfigError(
                "backoff_base must not be negative",
                setting="backoff_base",
                value=self.backoff_base,
            )

    @property
    def max_attempts(self) -> int:
        """Total attempts for one logical call."""
        return self.max_retries + 1

    @classmethod
    def from_env(cls) -> RetryConfig:
        """Create configuration from environment variables."""
        max_retries = os.getenv("COURTLISTENER_MAX_RETRIES", "3")
        fallback = os.getenv(
            "COURTLISTENER_RATE_LIMIT_FALLBACK_SECONDS",
            str(DEFAULT_RATE_LIMIT_FALLBACK_SECONDS),
        )
        try:
            return cls(
                max_retries=int(max_retries),
                rate_limit_fallback_seconds=float(fallback),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid retry setting: {e}") from e

    @classmethod
    def no_retry(cls) -> RetryConfig:
        """Create a config that disables retries."""
        return cls(max_retries=0)


@dataclass(frozen=True)
class RetryDecision:
    """Whether to retry and after how long.

    Attributes:
        should_retry: Whether another attempt should be made
        delay: Seconds to wait before the next attempt
    """

    should_retry: bool
    delay: float = 0.0

    @classmethod
    def stop(cls) -> RetryDecision:
        return cls(should_retry=False)


class RetryPolicy:
    """Retry policy with exponential backoff.

    Transient failures are retried with delays of base ** attempt seconds
    (2s, 4s, 8s by default). Rate-limited failures wait for the server's
    hint instead. Permanent failures, absences and successes are never
    retried.

    Example:
        >>> policy = RetryPolicy(RetryConfig(max_retries=3))
        >>> decision = policy.decide(1, outcome)
        >>> if decision.should_retry:
        ...     await asyncio.sleep(decision.delay)
    """

    def __init__(self, config: RetryConfig | None = None) -> None:
        self._config = config or RetryConfig()

    @property
    def config(self) -> RetryConfig:
        return self._config

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    def backoff_delay(self, attempt: int) -> float:
        """Exponential backoff delay for a 1-based attempt number."""
        base_delay = self._config.backoff_base ** attempt
        if self._config.max_delay_seconds is not None:
            base_delay = min(base_delay, self._config.max_delay_seconds)

        if self._config.jitter == JitterStrategy.FULL:
            return random.uniform(0, base_delay)
        if self._config.jitter == JitterStrategy.EQUAL:
            return base_delay / 2 + random.uniform(0, base_delay / 2)
        return base_delay

    def rate_limit_delay(self, outcome: TransientFailure) -> float:
        """Delay for a rate-limited outcome: the server hint if positive, else the fallback."""
        if outcome.retry_after is not None:
            seconds = outcome.retry_after.seconds()
            if seconds is not None and seconds > 0:
                return seconds
        return self._config.rate_limit_fallback_seconds

    def decide(self, attempt: int, outcome: Outcome) -> RetryDecision:
        """Decide whether to retry after an attempt.

        Args:
            attempt: The attempt that just completed (1-based)
            outcome: Its classified outcome

        Returns:
            RetryDecision
        """
        if not isinstance(outcome, TransientFailure):
            return RetryDecision.stop()

        if attempt > self._config.max_retries:
            return RetryDecision.stop()

        if outcome.kind == ErrorKind.RATE_LIMITED:
            return RetryDecision(should_retry=True, delay=self.rate_limit_delay(outcome))

        return RetryDecision(should_retry=True, delay=self.backoff_delay(attempt))
