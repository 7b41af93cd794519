"""
Resilient executor: the per-call retry loop.

Runs one logical call as a sequence of attempts. Each attempt consults the
circuit breaker, calls the transport under a per-attempt timeout, classifies
the result and feeds the breaker. The retry policy decides whether to wait
and try again. The loop ends with a decoded value, an absence, a classified
error, or a caller cancellation.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import TYPE_CHECKING, Any, TypeVar

from courtlistener_client.client.response import CallResult, CallStatus, RequestAttempt
from courtlistener_client.errors.classification import (
    ClassifiedError,
    ErrorKind,
    NotFound,
    Success,
    circuit_open_outcome,
    classify,
)
from courtlistener_client.resilience.circuit_breaker import CircuitBreaker
from courtlistener_client.resilience.retry import RetryPolicy
from courtlistener_client.telemetry.logger import (
    LogContext,
    get_logger,
    reset_log_context,
    set_log_context,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from courtlistener_client.client.cancel import CancelToken
    from courtlistener_client.errors.classification import Failure, Outcome
    from courtlistener_client.transport.http import RawResponse

    AttemptFn = Callable[[], Awaitable[RawResponse]]
    Decoder = Callable[[bytes], Any]
    SleepFunc = Callable[[float], Awaitable[None]]

logger = get_logger("courtlistener_client.client.executor")

T = TypeVar("T")


class _Cancelled:
    """Marker for an await aborted by the caller's cancel token."""


_CANCELLED = _Cancelled()


class ResilientExecutor:
    """Executor combining circuit breaking and retry for one dependency.

    The breaker is shared by every call made through this executor; the
    retry loop is per call.

    Example:
        >>> executor = ResilientExecutor(CircuitBreaker(), RetryPolicy())
        >>> result = await executor.execute(
        ...     "opinions/1/", lambda: transport.get("opinions/1/"), decode=json.loads
        ... )
        >>> result.status
        <CallStatus.OK: 'ok'>
    """

    def __init__(
        self,
        breaker: CircuitBreaker | None = None,
        retry: RetryPolicy | None = None,
        *,
        timeout: float | None = None,
        sleep: SleepFunc | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize resilient executor.

        Args:
            breaker: Circuit breaker for the dependency (a fresh one if omitted)
            retry: Retry policy (defaults: 3 retries, 2 ** n backoff)
            timeout: Default per-attempt timeout in seconds (None = no limit)
            sleep: Async sleep used for backoff, injectable for tests
            clock: Monotonic clock used for durations
            wall_clock: Clock used for attempt start timestamps
        """
        self._breaker = breaker or CircuitBreaker()
        self._retry = retry or RetryPolicy()
        self._timeout = timeout
        self._sleep: SleepFunc = sleep or asyncio.sleep
        self._clock = clock
        self._wall_clock = wall_clock
        self._listeners: list[Callable[[RequestAttempt], None]] = []

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def add_attempt_listener(
        self, listener: Callable[[RequestAttempt], None]
    ) -> ResilientExecutor:
        """Register a callback invoked after every attempt.

        Returns:
            Self for chaining
        """
        self._listeners.append(listener)
        return self

    async def execute(
        self,
        target: str,
        attempt_fn: AttemptFn,
        *,
        decode: Decoder | None = None,
        cancel_token: CancelToken | None = None,
        timeout: float | None = None,
    ) -> CallResult[Any]:
        """Execute one logical call.

        Transport errors never escape this method; they end up classified
        in the returned result. Task cancellation (`task.cancel()`) is
        re-raised after the breaker's trial slot is released.

        Args:
            target: Logical endpoint, used for logs and attempt records
            attempt_fn: Performs one transport call
            decode: Turns a success payload into the value (raw bytes if None)
            cancel_token: Caller's cancellation token
            timeout: Per-attempt timeout override in seconds

        Returns:
            CallResult with status ok, absent, failed or cancelled
        """
        started = self._clock()
        attempts: list[RequestAttempt] = []
        attempt_timeout = timeout if timeout is not None else self._timeout
        request_id = str(uuid.uuid4())

        def finish(status: CallStatus, **kwargs: Any) -> CallResult[Any]:
            return CallResult(
                target=target,
                status=status,
                attempts=attempts,
                elapsed=self._clock() - started,
                request_id=request_id,
                **kwargs,
            )

        if not target or not target.strip():
            return finish(
                CallStatus.FAILED,
                error=ClassifiedError.validation(
                    "Endpoint cannot be empty", "Provide a valid API endpoint"
                ),
            )

        if cancel_token is not None and cancel_token.is_cancelled:
            return finish(CallStatus.CANCELLED, cancel_reason=cancel_token.reason)

        token = set_log_context(LogContext(request_id=request_id, endpoint=target))
        try:
            return await self._attempt_loop(
                target, attempt_fn, decode, cancel_token, attempt_timeout, attempts, finish
            )
        finally:
            reset_log_context(token)

    async def _attempt_loop(
        self,
        target: str,
        attempt_fn: AttemptFn,
        decode: Decoder | None,
        cancel_token: CancelToken | None,
        attempt_timeout: float | None,
        attempts: list[RequestAttempt],
        finish: Callable[..., CallResult[Any]],
    ) -> CallResult[Any]:
        number = 0
        while True:
            number += 1
            permit = self._breaker.acquire()
            attempt_wall = self._wall_clock()
            attempt_start = self._clock()

            outcome: Outcome
            if not permit.allowed:
                outcome = circuit_open_outcome()
            else:
                # released unless an outcome was recorded
                recorded = False
                try:
                    raw = await self._run_attempt(attempt_fn, cancel_token, attempt_timeout)
                    if raw is _CANCELLED:
                        return self._cancelled(target, number, cancel_token, finish)

                    outcome = classify(
                        raw,  # type: ignore[arg-type]
                        rate_limit_fallback=self._retry.config.rate_limit_fallback_seconds,
                    )
                    self._breaker.record_outcome(outcome, trial=permit.is_trial)
                    recorded = True
                finally:
                    if not recorded:
                        self._breaker.release(trial=permit.is_trial)

            attempt = RequestAttempt(
                target=target,
                number=number,
                started_at=attempt_wall,
                elapsed=self._clock() - attempt_start,
                outcome=outcome,
            )
            attempts.append(attempt)
            self._emit(attempt)

            if isinstance(outcome, Success):
                return self._decode(outcome, decode, finish)

            if isinstance(outcome, NotFound):
                return finish(CallStatus.ABSENT)

            # decide() stops once number reaches max_attempts
            decision = self._retry.decide(number, outcome)
            if not decision.should_retry:
                return self._fail(target, outcome, finish)

            logger.info(
                "Retrying request",
                endpoint=target,
                attempt=number,
                max_attempts=self._retry.max_attempts,
                delay_seconds=decision.delay,
                kind=outcome.kind.value,
            )
            slept = await self._guard(self._sleep(decision.delay), cancel_token)
            if slept is _CANCELLED:
                return self._cancelled(target, number, cancel_token, finish)

    async def _run_attempt(
        self,
        attempt_fn: AttemptFn,
        cancel_token: CancelToken | None,
        timeout: float | None,
    ) -> RawResponse | BaseException | _Cancelled:
        """Run one transport call; exceptions are returned for classification."""
        try:
            call: Awaitable[RawResponse] = attempt_fn()
            if timeout is not None:
                call = asyncio.wait_for(call, timeout)
            return await self._guard(call, cancel_token)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return e

    @staticmethod
    async def _guard(awaitable: Awaitable[T], cancel_token: CancelToken | None) -> T | _Cancelled:
        """Await `awaitable`, abandoning it if the cancel token fires first."""
        task = asyncio.ensure_future(awaitable)
        if cancel_token is None:
            return await task

        waiter = asyncio.ensure_future(cancel_token.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task in done:
            waiter.cancel()
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return _CANCELLED

    def _decode(
        self,
        outcome: Success,
        decode: Decoder | None,
        finish: Callable[..., CallResult[Any]],
    ) -> CallResult[Any]:
        if decode is None:
            return finish(CallStatus.OK, value=outcome.content)
        try:
            value = decode(outcome.content)
        except Exception as e:
            result = finish(
                CallStatus.FAILED,
                error=ClassifiedError(
                    kind=ErrorKind.API_ERROR,
                    message=f"Failed to decode response: {e}",
                    suggestion="Check logs for details",
                    status_code=outcome.status_code,
                ),
            )
            logger.error(
                "Response decode failed",
                endpoint=result.target,
                status_code=outcome.status_code,
                size=len(outcome.content),
                error=str(e),
            )
            return result
        return finish(CallStatus.OK, value=value)

    def _cancelled(
        self,
        target: str,
        number: int,
        cancel_token: CancelToken | None,
        finish: Callable[..., CallResult[Any]],
    ) -> CallResult[Any]:
        reason = cancel_token.reason if cancel_token is not None else None
        logger.info(
            "Request cancelled",
            endpoint=target,
            attempt=number,
            reason=reason.value if reason else None,
        )
        return finish(CallStatus.CANCELLED, cancel_reason=reason)

    def _fail(
        self,
        target: str,
        outcome: Failure,
        finish: Callable[..., CallResult[Any]],
    ) -> CallResult[Any]:
        error = ClassifiedError.from_outcome(outcome)
        result = finish(CallStatus.FAILED, error=error)
        logger.warning(
            "Request failed",
            endpoint=target,
            kind=error.kind.value,
            status_code=error.status_code,
            attempts=result.attempt_count,
            elapsed_ms=round(result.elapsed * 1000, 1),
            error=error.message,
        )
        return result

    def _emit(self, attempt: RequestAttempt) -> None:
        log = logger.info if isinstance(attempt.outcome, (Success, NotFound)) else logger.warning
        log(
            "API request attempt",
            endpoint=attempt.target,
            attempt=attempt.number,
            outcome=attempt.label,
            status_code=attempt.status_code,
            elapsed_ms=round(attempt.elapsed * 1000, 1),
        )
        for listener in self._listeners:
            try:
                listener(attempt)
            except Exception:
                logger.exception(
                    "Attempt listener failed",
                    endpoint=attempt.target,
                    attempt=attempt.number,
                )
