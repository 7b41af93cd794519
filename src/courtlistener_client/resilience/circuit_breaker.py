"""
Circuit breaker for fault isolation.

Implements the circuit breaker pattern with three states:
- Closed: Normal operation, requests pass through
- Open: Circuit tripped, requests are short-circuited without a transport call
- Half-Open: Exactly one trial request checks whether the API recovered

The state machine is a set of pure functions over an immutable BreakerState
that return the next state plus the events the transition produced.
CircuitBreaker holds one BreakerState per downstream dependency and swaps it
under a single lock.
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

from courtlistener_client.errors.base import ConfigError
from courtlistener_client.errors.classification import (
    ErrorKind,
    NotFound,
    PermanentFailure,
    Success,
    TransientFailure,
)
from courtlistener_client.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from courtlistener_client.errors.classification import Outcome

logger = get_logger("courtlistener_client.resilience.circuit_breaker")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class BreakerSignal(str, Enum):
    """How an attempt's outcome feeds the breaker."""

    SUCCESS = "success"
    FAILURE = "failure"
    NEUTRAL = "neutral"


class CircuitEventKind(str, Enum):
    """Observable breaker events."""

    OPENED = "opened"
    HALF_OPENED = "half_opened"
    CLOSED = "closed"
    REOPENED = "reopened"
    SHORT_CIRCUITED = "short_circuited"
    RESET = "reset"


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker.

    Attributes:
        failure_threshold: Consecutive failures that trip the circuit
        break_seconds: Time the circuit stays open before a trial call
    """

    failure_threshold: int = 5
    break_seconds: float = 60.0

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ConfigError(
                "failure_threshold must be at least 1",
                setting="failure_threshold",
                value=self.failure_threshold,
            )
        if self.break_seconds < 0:
            raise ConfigError(
                "break_seconds must not be negative",
                setting="break_seconds",
                value=self.break_seconds,
            )

    @classmethod
    def default(cls) -> CircuitBreakerConfig:
        """Create default configuration."""
        return cls()

    @classmethod
    def from_env(cls) -> CircuitBreakerConfig:
        """Create configuration from environment variables."""
        failure_threshold = os.getenv("COURTLISTENER_BREAKER_FAILURE_THRESHOLD", "5")
        break_seconds = os.getenv("COURTLISTENER_BREAKER_BREAK_SECONDS", "60")
        try:
            return cls(
                failure_threshold=int(failure_threshold),
                break_seconds=float(break_seconds),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid circuit breaker setting: {e}") from e


@dataclass(frozen=True)
class BreakerState:
    """Complete mutable state of one breaker, as an immutable value."""

    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    opened_at: float | None = None
    trial_in_flight: bool = False


@dataclass(frozen=True)
class CircuitEvent:
    """A breaker state transition or rejection.

    Attributes:
        kind: What happened
        from_state: State before the event
        to_state: State after the event
        failures: Consecutive failure count that led here
        at: Clock reading when the event happened
        retry_in: Seconds until a trial call is allowed (rejections only)
    """

    kind: CircuitEventKind
    from_state: CircuitState
    to_state: CircuitState
    failures: int = 0
    at: float = 0.0
    retry_in: float | None = None


@dataclass(frozen=True)
class Admission:
    """Result of asking the breaker whether a call may proceed."""

    state: BreakerState
    allowed: bool
    is_trial: bool = False
    events: tuple[CircuitEvent, ...] = ()


def breaker_signal(outcome: Outcome) -> BreakerSignal:
    """Map an attempt outcome to a breaker signal.

    Any response from the API (success, absence, or a permanent failure)
    shows the dependency is reachable. Transient failures count against it.
    Short-circuited outcomes and local errors raised before a request was
    sent never reached the API.
    """
    if isinstance(outcome, TransientFailure):
        if outcome.short_circuited:
            return BreakerSignal.NEUTRAL
        return BreakerSignal.FAILURE
    if (
        isinstance(outcome, PermanentFailure)
        and outcome.kind == ErrorKind.API_ERROR
        and outcome.status_code is None
    ):
        return BreakerSignal.NEUTRAL
    if isinstance(outcome, (Success, NotFound, PermanentFailure)):
        return BreakerSignal.SUCCESS
    return BreakerSignal.NEUTRAL


def time_until_trial(
    state: BreakerState, now: float, config: CircuitBreakerConfig
) -> float | None:
    """Seconds until an open circuit allows a trial call, or None if not open."""
    if state.state != CircuitState.OPEN or state.opened_at is None:
        return None
    return max(0.0, config.break_seconds - (now - state.opened_at))


def admit(state: BreakerState, now: float, config: CircuitBreakerConfig) -> Admission:
    """Decide whether a call may reach the transport.

    Args:
        state: Current breaker state
        now: Clock reading
        config: Breaker configuration

    Returns:
        Admission with the next state and any events
    """
    if state.state == CircuitState.CLOSED:
        return Admission(state=state, allowed=True)

    if state.state == CircuitState.OPEN:
        remaining = time_until_trial(state, now, config)
        if remaining is not None and remaining > 0:
            event = CircuitEvent(
                kind=CircuitEventKind.SHORT_CIRCUITED,
                from_state=CircuitState.OPEN,
                to_state=CircuitState.OPEN,
                at=now,
                retry_in=remaining,
            )
            return Admission(state=state, allowed=False, events=(event,))

        next_state = replace(state, state=CircuitState.HALF_OPEN, trial_in_flight=True)
        event = CircuitEvent(
            kind=CircuitEventKind.HALF_OPENED,
            from_state=CircuitState.OPEN,
            to_state=CircuitState.HALF_OPEN,
            at=now,
        )
        return Admission(state=next_state, allowed=True, is_trial=True, events=(event,))

    # Half-open: exactly one trial at a time
    if state.trial_in_flight:
        event = CircuitEvent(
            kind=CircuitEventKind.SHORT_CIRCUITED,
            from_state=CircuitState.HALF_OPEN,
            to_state=CircuitState.HALF_OPEN,
            at=now,
        )
        return Admission(state=state, allowed=False, events=(event,))

    return Admission(
        state=replace(state, trial_in_flight=True),
        allowed=True,
        is_trial=True,
    )


def record(
    state: BreakerState,
    signal: BreakerSignal,
    now: float,
    config: CircuitBreakerConfig,
    *,
    trial: bool = False,
) -> tuple[BreakerState, tuple[CircuitEvent, ...]]:
    """Apply an attempt's result to the breaker.

    Args:
        state: Current breaker state
        signal: Signal derived from the attempt outcome
        now: Clock reading
        config: Breaker configuration
        trial: Whether the attempt was the half-open trial call

    Returns:
        Tuple of (next state, events)
    """
    if state.state == CircuitState.CLOSED:
        if signal == BreakerSignal.SUCCESS:
            if state.consecutive_failures == 0:
                return state, ()
            return replace(state, consecutive_failures=0), ()

        if signal == BreakerSignal.FAILURE:
            failures = state.consecutive_failures + 1
            if failures < config.failure_threshold:
                return replace(state, consecutive_failures=failures), ()
            opened = BreakerState(state=CircuitState.OPEN, consecutive_failures=0, opened_at=now)
            event = CircuitEvent(
                kind=CircuitEventKind.OPENED,
                from_state=CircuitState.CLOSED,
                to_state=CircuitState.OPEN,
                failures=failures,
                at=now,
            )
            return opened, (event,)

        return state, ()

    if state.state == CircuitState.HALF_OPEN and trial:
        if signal == BreakerSignal.SUCCESS:
            event = CircuitEvent(
                kind=CircuitEventKind.CLOSED,
                from_state=CircuitState.HALF_OPEN,
                to_state=CircuitState.CLOSED,
                at=now,
            )
            return BreakerState(), (event,)

        if signal == BreakerSignal.FAILURE:
            event = CircuitEvent(
                kind=CircuitEventKind.REOPENED,
                from_state=CircuitState.HALF_OPEN,
                to_state=CircuitState.OPEN,
                failures=1,
                at=now,
            )
            return BreakerState(state=CircuitState.OPEN, opened_at=now), (event,)

        return replace(state, trial_in_flight=False), ()

    # Open, or a late result from a call admitted before the circuit opened
    return state, ()


def release(state: BreakerState) -> BreakerState:
    """Free the half-open trial slot after a trial ended without a result."""
    if state.state == CircuitState.HALF_OPEN and state.trial_in_flight:
        return replace(state, trial_in_flight=False)
    return state


@dataclass
class CircuitStats:
    """Statistics for circuit breaker."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    rejected_requests: int = 0
    state_changes: int = 0
    last_failure_time: float | None = None
    last_success_time: float | None = None
    last_event: CircuitEventKind | None = None


@dataclass(frozen=True)
class Permit:
    """Ticket handed to a call admitted by the breaker."""

    allowed: bool
    is_trial: bool = False
    retry_in: float | None = None


_EVENT_LOG_LEVEL: dict[CircuitEventKind, str] = {
    CircuitEventKind.OPENED: "warning",
    CircuitEventKind.REOPENED: "warning",
    CircuitEventKind.HALF_OPENED: "info",
    CircuitEventKind.CLOSED: "info",
    CircuitEventKind.RESET: "info",
    CircuitEventKind.SHORT_CIRCUITED: "debug",
}

_EVENT_MESSAGE: dict[CircuitEventKind, str] = {
    CircuitEventKind.OPENED: "Circuit OPENED after consecutive failures",
    CircuitEventKind.REOPENED: "Circuit re-OPENED: trial call failed",
    CircuitEventKind.HALF_OPENED: "Circuit HALF-OPEN: testing if service recovered",
    CircuitEventKind.CLOSED: "Circuit CLOSED: resuming normal operations",
    CircuitEventKind.RESET: "Circuit reset to CLOSED",
    CircuitEventKind.SHORT_CIRCUITED: "Call short-circuited by open circuit",
}


class CircuitBreaker:
    """Circuit breaker for one downstream dependency.

    Every read-modify-write of the breaker state goes through one lock, so
    concurrent calls never corrupt the failure counter. Events are logged
    and forwarded to listeners outside the lock.

    Example:
        >>> breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=3))
        >>> permit = breaker.acquire()
        >>> if permit.allowed:
        ...     outcome = await do_call()
        ...     breaker.record_outcome(outcome, trial=permit.is_trial)
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        *,
        name: str = "courtlistener",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize circuit breaker.

        Args:
            config: Circuit breaker configuration
            name: Name of the protected dependency (for logs)
            clock: Monotonic clock, injectable for tests
        """
        self._config = config or CircuitBreakerConfig()
        self._name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._state = BreakerState()
        self._stats = CircuitStats()
        self._listeners: list[Callable[[CircuitEvent], None]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        with self._lock:
            return self._state.state

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._state.consecutive_failures

    @property
    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def is_half_open(self) -> bool:
        return self.state == CircuitState.HALF_OPEN

    def snapshot(self) -> BreakerState:
        """Get a consistent copy of the full breaker state."""
        with self._lock:
            return self._state

    def get_time_until_retry(self) -> float | None:
        """Seconds until the open circuit allows a trial call, or None if not open."""
        with self._lock:
            return time_until_trial(self._state, self._clock(), self._config)

    def add_listener(self, listener: Callable[[CircuitEvent], None]) -> CircuitBreaker:
        """Register a callback invoked for every breaker event.

        Returns:
            Self for chaining
        """
        self._listeners.append(listener)
        return self

    def acquire(self) -> Permit:
        """Ask whether a call may reach the transport now."""
        with self._lock:
            admission = admit(self._state, self._clock(), self._config)
            self._state = admission.state
            if admission.allowed:
                self._stats.total_requests += 1
            else:
                self._stats.rejected_requests += 1
            self._count_events(admission.events)
            retry_in = next(
                (e.retry_in for e in admission.events if e.retry_in is not None), None
            )

        self._emit(admission.events)
        return Permit(allowed=admission.allowed, is_trial=admission.is_trial, retry_in=retry_in)

    def record_outcome(self, outcome: Outcome, *, trial: bool = False) -> CircuitState:
        """Feed an attempt outcome into the state machine.

        Args:
            outcome: Classified outcome of an admitted attempt
            trial: Whether the attempt held the half-open trial slot

        Returns:
            Circuit state after the update
        """
        signal = breaker_signal(outcome)
        with self._lock:
            now = self._clock()
            self._state, events = record(
                self._state, signal, now, self._config, trial=trial
            )
            if signal == BreakerSignal.SUCCESS:
                self._stats.successful_requests += 1
                self._stats.last_success_time = now
            elif signal == BreakerSignal.FAILURE:
                self._stats.failed_requests += 1
                self._stats.last_failure_time = now
            self._count_events(events)
            current = self._state.state

        self._emit(events)
        return current

    def release(self, *, trial: bool) -> None:
        """Return an admitted call's slot without a result (caller cancelled)."""
        if not trial:
            return
        with self._lock:
            self._state = release(self._state)

    def reset(self) -> None:
        """Reset circuit breaker to closed state."""
        with self._lock:
            previous = self._state.state
            self._state = BreakerState()
            event = CircuitEvent(
                kind=CircuitEventKind.RESET,
                from_state=previous,
                to_state=CircuitState.CLOSED,
                at=self._clock(),
            )
            self._count_events((event,))
        self._emit((event,))

    def get_stats(self) -> CircuitStats:
        """Get a copy of the breaker statistics."""
        with self._lock:
            return replace(self._stats)

    def _count_events(self, events: tuple[CircuitEvent, ...]) -> None:
        for event in events:
            if event.from_state != event.to_state:
                self._stats.state_changes += 1
            self._stats.last_event = event.kind

    def _emit(self, events: tuple[CircuitEvent, ...]) -> None:
        for event in events:
            log = getattr(logger, _EVENT_LOG_LEVEL[event.kind])
            log(
                _EVENT_MESSAGE[event.kind],
                breaker=self._name,
                event=event.kind.value,
                from_state=event.from_state.value,
                to_state=event.to_state.value,
                failures=event.failures,
                break_seconds=self._config.break_seconds,
                retry_in=event.retry_in,
            )
            for listener in self._listeners:
                try:
                    listener(event)
                except Exception:
                    logger.exception(
                        "Circuit event listener failed",
                        breaker=self._name,
                        event=event.kind.value,
                    )

    def __repr__(self) -> str:
        state = self.snapshot()
        return (
            f"CircuitBreaker(name={self._name!r}, state={state.state.value}, "
            f"failures={state.consecutive_failures}/{self._config.failure_threshold})"
        )
