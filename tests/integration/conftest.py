"""
Integration test helper utilities.

Shared fixtures and payloads for driving the full client over a mocked
HTTP transport (pytest-httpx).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest_asyncio

from courtlistener_client import CourtListenerClient
from courtlistener_client.client.config import ClientConfig
from courtlistener_client.resilience import CircuitBreakerConfig, RetryConfig

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

BASE_URL = "https://www.courtlistener.com/api/rest/v4/"
API_KEY = "test-key-0001"


def mock_opinion(opinion_id: int = 123, plain_text: str = "Opinion text") -> dict:
    """Create a mock opinion payload."""
    return {
        "id": opinion_id,
        "absolute_url": f"/opinion/{opinion_id}/roe-v-wade/",
        "type": "010combined",
        "plain_text": plain_text,
        "cluster_id": opinion_id * 10,
    }


def mock_search_results(*case_names: str) -> dict:
    """Create a mock paginated search payload."""
    return {
        "count": len(case_names),
        "next": None,
        "previous": None,
        "results": [{"caseName": name, "court": "scotus"} for name in case_names],
    }


def mock_citation_lookup(citation: str = "576 U.S. 644") -> list[dict]:
    """Create a mock citation-lookup payload."""
    return [
        {
            "citation": citation,
            "normalized_citations": [citation],
            "status": 200,
            "clusters": [{"id": 2812209, "case_name": "Obergefell v. Hodges"}],
        }
    ]


def make_config(**overrides) -> ClientConfig:
    """Client configuration pointed at the mocked API root."""
    settings = {"base_url": BASE_URL, "api_key": API_KEY}
    settings.update(overrides)
    return ClientConfig(**settings)


@pytest_asyncio.fixture
async def client(clock) -> AsyncIterator[CourtListenerClient]:
    """Client with default resilience settings and an instant backoff sleep."""
    async with CourtListenerClient(make_config(), sleep=clock.sleep, clock=clock) as c:
        yield c


@pytest_asyncio.fixture
async def fragile_client(clock) -> AsyncIterator[CourtListenerClient]:
    """Client whose circuit opens on the first failure and never retries."""
    config = make_config(
        retry=RetryConfig.no_retry(),
        breaker=CircuitBreakerConfig(failure_threshold=1, break_seconds=30.0),
    )
    async with CourtListenerClient(config, sleep=clock.sleep, clock=clock) as c:
        yield c
