"""Tests for call results."""

import pytest

from courtlistener_client import CallResult, CallStatus, RequestAttempt
from courtlistener_client.client.cancel import CancelReason
from courtlistener_client.errors import (
    ClassifiedError,
    CourtListenerError,
    ErrorKind,
    NotFound,
    Success,
    TransientFailure,
    circuit_open_outcome,
)

SERVER_ERROR = TransientFailure(ErrorKind.SERVER_ERROR, "HTTP 503", status_code=503)


def attempt(number: int, outcome) -> RequestAttempt:
    return RequestAttempt(
        target="opinions/1/",
        number=number,
        started_at=1_700_000_000.0 + number,
        elapsed=0.25,
        outcome=outcome,
    )


class TestRequestAttempt:
    """Tests for RequestAttempt."""

    def test_labels(self) -> None:
        assert attempt(1, Success(status_code=200)).label == "success"
        assert attempt(1, NotFound()).label == "not_found"
        assert attempt(1, SERVER_ERROR).label == "ServerError"
        assert attempt(1, circuit_open_outcome()).label == "short_circuited"

    def test_short_circuited(self) -> None:
        assert attempt(1, circuit_open_outcome()).short_circuited
        assert not attempt(1, SERVER_ERROR).short_circuited

    def test_to_dict(self) -> None:
        assert attempt(2, SERVER_ERROR).to_dict() == {
            "target": "opinions/1/",
            "number": 2,
            "started_at": 1_700_000_002.0,
            "elapsed_ms": 250.0,
            "outcome": "ServerError",
            "status_code": 503,
        }


class TestCallResult:
    """Tests for CallResult."""

    def test_ok(self) -> None:
        result = CallResult(
            "opinions/1/",
            CallStatus.OK,
            value={"id": 1},
            attempts=[attempt(1, SERVER_ERROR), attempt(2, Success(status_code=200))],
        )
        assert result.is_ok
        assert result.attempt_count == 2
        assert result.retry_count == 1
        assert result.failures == [SERVER_ERROR]
        assert result.value_or({}) == {"id": 1}
        assert result.to_tool_error("Opinion", "1") is None

    def test_absent(self) -> None:
        result = CallResult("opinions/999/", CallStatus.ABSENT, attempts=[attempt(1, NotFound())])
        assert result.is_absent
        assert result.value_or("default") == "default"
        error = result.to_tool_error("Opinion", "999")
        assert error.to_dict() == {
            "error": "NotFound",
            "message": "Opinion not found with ID: 999",
            "suggestion": "Check if the ID is correct",
        }

    def test_failed(self) -> None:
        result = CallResult(
            "opinions/1/",
            CallStatus.FAILED,
            error=ClassifiedError.from_outcome(SERVER_ERROR),
            attempts=[attempt(n, SERVER_ERROR) for n in (1, 2, 3, 4)],
        )
        assert result.is_failed
        assert result.retry_count == 3
        assert result.last_outcome == SERVER_ERROR
        error = result.to_tool_error("Opinion", "1")
        assert error.error == "ServerError"
        assert error.suggestion is not None

    def test_failed_without_error_raises(self) -> None:
        result = CallResult("opinions/1/", CallStatus.FAILED)
        with pytest.raises(CourtListenerError):
            result.to_tool_error("Opinion", "1")

    def test_cancelled(self) -> None:
        result = CallResult("search/", CallStatus.CANCELLED, cancel_reason=CancelReason.SHUTDOWN)
        assert result.is_cancelled
        assert result.last_outcome is None
        assert result.retry_count == 0
        assert result.to_tool_error("Search").to_dict() == {
            "error": "ApiError",
            "message": "Request to search/ was cancelled (shutdown)",
        }

    def test_request_ids_are_unique(self) -> None:
        first = CallResult("a/", CallStatus.OK)
        second = CallResult("a/", CallStatus.OK)
        assert first.request_id != second.request_id

    def test_to_dict(self) -> None:
        result = CallResult(
            "opinions/1/",
            CallStatus.FAILED,
            error=ClassifiedError(ErrorKind.UNAUTHORIZED, "Invalid token."),
            attempts=[attempt(1, SERVER_ERROR)],
            elapsed=1.5,
        )
        data = result.to_dict()
        assert data["status"] == "failed"
        assert data["error"] == "Unauthorized"
        assert data["cancel_reason"] is None
        assert data["elapsed_ms"] == 1500.0
        assert len(data["attempts"]) == 1
