"""
Integration tests for CourtListenerClient.

Drives the full stack (classifier, retry loop, circuit breaker and the
httpx transport) against a mocked CourtListener API.
"""

import asyncio

import httpx
import pytest
from pydantic import BaseModel

from courtlistener_client import CancelToken, CourtListenerClient, ErrorKind
from tests.integration.conftest import (
    API_KEY,
    BASE_URL,
    make_config,
    mock_citation_lookup,
    mock_opinion,
    mock_search_results,
)

pytestmark = pytest.mark.integration

OPINION_URL = f"{BASE_URL}opinions/123/"


class Opinion(BaseModel):
    id: int
    absolute_url: str
    plain_text: str = ""


class TestRequests:
    """Tests for successful calls."""

    @pytest.mark.asyncio
    async def test_get_decodes_model(self, client, httpx_mock) -> None:
        httpx_mock.add_response(url=OPINION_URL, json=mock_opinion(123, "We hold..."))

        result = await client.get("opinions/123/", Opinion)

        assert result.is_ok
        assert isinstance(result.value, Opinion)
        assert result.value.plain_text == "We hold..."
        assert result.attempt_count == 1

    @pytest.mark.asyncio
    async def test_get_plain_json(self, client, httpx_mock) -> None:
        httpx_mock.add_response(url=OPINION_URL, json=mock_opinion(123))
        result = await client.get("opinions/123/")
        assert result.value["cluster_id"] == 1230

    @pytest.mark.asyncio
    async def test_headers(self, client, httpx_mock) -> None:
        httpx_mock.add_response(url=OPINION_URL, json=mock_opinion(123))
        await client.get("opinions/123/")

        request = httpx_mock.get_requests()[0]
        assert request.headers["Authorization"] == f"Token {API_KEY}"
        assert request.headers["User-Agent"].startswith("courtlistener-client/")

    @pytest.mark.asyncio
    async def test_search_params(self, client, httpx_mock) -> None:
        httpx_mock.add_response(
            url=f"{BASE_URL}search/?q=miranda&type=o",
            json=mock_search_results("Miranda v. Arizona"),
        )
        result = await client.get("search/", params={"q": "miranda", "type": "o"})
        assert result.value["results"][0]["caseName"] == "Miranda v. Arizona"

    @pytest.mark.asyncio
    async def test_post_form(self, client, httpx_mock) -> None:
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}citation-lookup/",
            json=mock_citation_lookup("576 U.S. 644"),
        )
        result = await client.post_form("citation-lookup/", {"text": "576 U.S. 644"})

        assert result.is_ok
        assert result.value[0]["clusters"][0]["case_name"] == "Obergefell v. Hodges"
        assert httpx_mock.get_requests()[0].content == b"text=576+U.S.+644"

    @pytest.mark.asyncio
    async def test_post_json(self, client, httpx_mock) -> None:
        httpx_mock.add_response(method="POST", url=f"{BASE_URL}alerts/", json={"id": 9})
        result = await client.post_json("alerts/", {"name": "miranda", "query": "q=miranda"})
        assert result.value == {"id": 9}

    @pytest.mark.asyncio
    async def test_empty_body(self, client, httpx_mock) -> None:
        httpx_mock.add_response(method="POST", url=f"{BASE_URL}alerts/", status_code=204)
        result = await client.post_json("alerts/", {"name": "x"})
        assert result.is_ok
        assert result.value is None

    @pytest.mark.asyncio
    async def test_concurrent_calls(self, client, httpx_mock) -> None:
        for _ in range(10):
            httpx_mock.add_response(url=OPINION_URL, json=mock_opinion(123))

        results = await asyncio.gather(*(client.get("opinions/123/") for _ in range(10)))

        assert all(r.is_ok for r in results)
        assert len({r.request_id for r in results}) == 10
        assert client.get_resilience_stats()["circuit_breaker"]["successful_requests"] == 10


class TestFailures:
    """Tests for classified failures and retries."""

    @pytest.mark.asyncio
    async def test_not_found_is_absent(self, client, httpx_mock) -> None:
        httpx_mock.add_response(
            url=f"{BASE_URL}opinions/999/", status_code=404, json={"detail": "Not found."}
        )

        result = await client.get("opinions/999/", Opinion)

        assert result.is_absent
        assert result.attempt_count == 1
        assert result.to_tool_error("Opinion", "999").to_dict() == {
            "error": "NotFound",
            "message": "Opinion not found with ID: 999",
            "suggestion": "Check if the ID is correct",
        }

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self, client, clock, httpx_mock) -> None:
        httpx_mock.add_response(url=OPINION_URL, status_code=503)
        httpx_mock.add_response(url=OPINION_URL, status_code=502)
        httpx_mock.add_response(url=OPINION_URL, json=mock_opinion(123))

        result = await client.get("opinions/123/", Opinion)

        assert result.is_ok
        assert result.retry_count == 2
        assert clock.sleeps == [2.0, 4.0]
        assert [a.status_code for a in result.attempts] == [503, 502, 200]

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, client, clock, httpx_mock) -> None:
        for _ in range(4):
            httpx_mock.add_response(url=OPINION_URL, status_code=500)

        result = await client.get("opinions/123/")

        assert result.is_failed
        assert result.error.kind == ErrorKind.SERVER_ERROR
        assert result.attempt_count == 4
        assert clock.sleeps == [2.0, 4.0, 8.0]
        assert result.elapsed == pytest.approx(14.0)

    @pytest.mark.asyncio
    async def test_rate_limit_honors_retry_after(self, client, clock, httpx_mock) -> None:
        httpx_mock.add_response(
            url=OPINION_URL,
            status_code=429,
            headers={"Retry-After": "5"},
            json={"detail": "Request was throttled."},
        )
        httpx_mock.add_response(url=OPINION_URL, json=mock_opinion(123))

        result = await client.get("opinions/123/")

        assert result.is_ok
        assert clock.sleeps == [5.0]
        assert result.failures[0].kind == ErrorKind.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_unauthorized_is_not_retried(self, client, clock, httpx_mock) -> None:
        httpx_mock.add_response(url=OPINION_URL, status_code=401, json={"detail": "Invalid token."})

        result = await client.get("opinions/123/")

        assert result.is_failed
        assert result.attempt_count == 1
        assert clock.sleeps == []
        assert result.to_tool_error("Opinion", "123").to_dict() == {
            "error": "Unauthorized",
            "message": "Invalid token.",
            "suggestion": "Check COURTLISTENER_API_KEY configuration",
        }

    @pytest.mark.asyncio
    async def test_bad_request_is_api_error(self, client, httpx_mock) -> None:
        httpx_mock.add_response(
            url=f"{BASE_URL}search/?type=zzz",
            status_code=400,
            json={"detail": "Unknown search type."},
        )
        result = await client.get("search/", params={"type": "zzz"})
        assert result.error.kind == ErrorKind.API_ERROR
        assert result.error.message == "Unknown search type."

    @pytest.mark.asyncio
    async def test_network_errors_are_retried(self, client, clock, httpx_mock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("connection refused"), url=OPINION_URL)
        httpx_mock.add_response(url=OPINION_URL, json=mock_opinion(123))

        result = await client.get("opinions/123/")

        assert result.is_ok
        assert result.failures[0].kind == ErrorKind.NETWORK_FAILURE
        assert clock.sleeps == [2.0]

    @pytest.mark.asyncio
    async def test_transport_timeout(self, fragile_client, httpx_mock) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("read timed out"), url=OPINION_URL)
        result = await fragile_client.get("opinions/123/")
        assert result.error.kind == ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_invalid_payload(self, client, httpx_mock) -> None:
        httpx_mock.add_response(url=OPINION_URL, json={"id": "not-a-number"})

        result = await client.get("opinions/123/", Opinion)

        assert result.is_failed
        assert result.error.kind == ErrorKind.API_ERROR
        assert result.attempt_count == 1

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, client, httpx_mock) -> None:
        token = CancelToken()
        token.cancel()

        result = await client.get("opinions/123/", cancel_token=token)

        assert result.is_cancelled
        assert result.attempts == []
        assert httpx_mock.get_requests() == []


class TestCircuitBreaker:
    """Tests for the shared circuit breaker."""

    @pytest.mark.asyncio
    async def test_opens_and_short_circuits(self, client, httpx_mock) -> None:
        for _ in range(5):
            httpx_mock.add_response(url=OPINION_URL, status_code=503)

        first = await client.get("opinions/123/")
        second = await client.get("opinions/123/")
        third = await client.get("opinions/123/")

        assert first.attempt_count == 4
        assert [a.short_circuited for a in second.attempts] == [False, True, True, True]
        assert all(a.short_circuited for a in third.attempts)
        assert len(httpx_mock.get_requests()) == 5
        assert client.circuit_state == "open"

        stats = client.get_resilience_stats()["circuit_breaker"]
        assert stats["failed_requests"] == 5
        assert stats["rejected_requests"] == 7

    @pytest.mark.asyncio
    async def test_recovers_after_break(self, fragile_client, clock, httpx_mock) -> None:
        httpx_mock.add_response(url=OPINION_URL, status_code=503)
        httpx_mock.add_response(url=OPINION_URL, json=mock_opinion(123))

        assert (await fragile_client.get("opinions/123/")).is_failed
        assert fragile_client.circuit_state == "open"

        clock.advance(30.0)
        result = await fragile_client.get("opinions/123/")

        assert result.is_ok
        assert fragile_client.circuit_state == "closed"

    @pytest.mark.asyncio
    async def test_not_found_does_not_open(self, fragile_client, httpx_mock) -> None:
        for _ in range(3):
            httpx_mock.add_response(url=f"{BASE_URL}opinions/999/", status_code=404)
        for _ in range(3):
            assert (await fragile_client.get("opinions/999/")).is_absent
        assert fragile_client.circuit_state == "closed"

    @pytest.mark.asyncio
    async def test_reset(self, fragile_client, httpx_mock) -> None:
        httpx_mock.add_response(url=OPINION_URL, status_code=503)
        await fragile_client.get("opinions/123/")

        fragile_client.reset_resilience()

        assert fragile_client.circuit_state == "closed"


class TestStatusReports:
    """Tests for api_status, health_check and status."""

    @pytest.mark.asyncio
    async def test_api_status_healthy(self, client, httpx_mock) -> None:
        httpx_mock.add_response(url=BASE_URL, json={"opinions": f"{BASE_URL}opinions/"})

        report = await client.api_status()

        assert report["status"] == "healthy"
        assert report["api_url"] == BASE_URL
        assert report["attempts"] == 1
        assert report["circuit_breaker"]["state"] == "closed"
        assert "error" not in report

    @pytest.mark.asyncio
    async def test_api_status_unhealthy(self, client, httpx_mock) -> None:
        httpx_mock.add_response(url=BASE_URL, status_code=401, json={"detail": "Invalid token."})

        report = await client.api_status()

        assert report["status"] == "unhealthy"
        assert report["error"]["error"] == "Unauthorized"

    @pytest.mark.asyncio
    async def test_health_check_healthy(self, client, httpx_mock) -> None:
        httpx_mock.add_response(url=BASE_URL, json={})

        report = await client.health_check()

        assert report["status"] == "healthy"
        assert set(report["checks"]) == {
            "client",
            "courtlistener_api",
            "circuit_breaker",
            "authentication",
        }
        assert report["checks"]["courtlistener_api"]["message"] == "API is accessible"

    @pytest.mark.asyncio
    async def test_health_check_without_key(self, clock, httpx_mock) -> None:
        httpx_mock.add_response(url=BASE_URL, json={})
        config = make_config(api_key=None)
        async with CourtListenerClient(config, sleep=clock.sleep, clock=clock) as client:
            report = await client.health_check()

        assert report["status"] == "degraded"
        assert report["checks"]["authentication"]["status"] == "degraded"
        assert "Authorization" not in httpx_mock.get_requests()[0].headers

    @pytest.mark.asyncio
    async def test_health_check_with_open_circuit(self, fragile_client, httpx_mock) -> None:
        httpx_mock.add_response(url=OPINION_URL, status_code=503)
        await fragile_client.get("opinions/123/")

        report = await fragile_client.health_check()

        assert report["status"] == "unhealthy"
        assert report["checks"]["circuit_breaker"]["status"] == "unhealthy"
        assert report["checks"]["courtlistener_api"]["message"].startswith("API check failed")
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_status(self, client, clock) -> None:
        clock.advance(90061)

        status = client.status()

        assert status["status"] == "running"
        assert status["uptime"] == "1d 1h 1m 1s"
        assert status["configuration"]["api_key"] == "...0001"
        assert status["resilience"]["circuit_breaker"]["state"] == "closed"
        assert status["resilience"]["max_retries"] == 3
        assert status["resilience"]["is_healthy"] is True
