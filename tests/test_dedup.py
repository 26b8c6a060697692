"""Tests for the deduplication gate."""

import httpx
import pytest

from src.crawler.dedup import DeduplicationGate
from src.crawler.existence_client import ExistenceCheckClient
from src.crawler.models import Candidate, PartialProduct
from src.crawler.url_registry import SeenUrlSet
from tests.fakes import existence_client_for

URLS = [
    "https://www.italist.com/us/women/1000001/gucci/",
    "https://www.italist.com/us/women/1000002/prada/",
    "https://www.italist.com/us/women/1000003/fendi/",
]


def _candidates():
    return [Candidate(url=url, partial=PartialProduct()) for url in URLS]


@pytest.mark.asyncio
async def test_existing_urls_are_dropped_and_marked_seen(log_sink):
    seen = SeenUrlSet()
    gate = DeduplicationGate("Italist", existence_client_for([URLS[1]]), seen, log_sink)

    fresh = await gate.filter_new(_candidates())

    assert [c.url for c in fresh] == [URLS[0], URLS[2]]
    assert URLS[1] in seen
    assert URLS[0] not in seen


@pytest.mark.asyncio
async def test_one_request_per_batch(log_sink):
    calls = []
    gate = DeduplicationGate("Italist", existence_client_for(calls=calls), SeenUrlSet(), log_sink)

    await gate.filter_new(_candidates())

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_backend_failure_fails_open(log_sink):
    """A failing existence check lets every candidate through and logs an error."""
    gate = DeduplicationGate("Italist", existence_client_for(status_code=500), SeenUrlSet(), log_sink)

    fresh = await gate.filter_new(_candidates())

    assert [c.url for c in fresh] == URLS
    errors = [e for e in log_sink.events if e["level"] == "ERROR"]
    assert len(errors) == 1
    assert errors[0]["context"]["status"] == 500
    assert errors[0]["context"]["failClosed"] is False


@pytest.mark.asyncio
async def test_backend_failure_fail_closed(log_sink):
    gate = DeduplicationGate(
        "Italist",
        existence_client_for(status_code=500),
        SeenUrlSet(),
        log_sink,
        fail_closed=True,
    )

    assert await gate.filter_new(_candidates()) == []


@pytest.mark.asyncio
async def test_empty_input_skips_the_check(log_sink):
    calls = []
    gate = DeduplicationGate("Italist", existence_client_for(calls=calls), SeenUrlSet(), log_sink)

    assert await gate.filter_new([]) == []
    assert calls == []


@pytest.mark.asyncio
async def test_malformed_backend_response_fails_open(log_sink):
    """A 2xx reply with a list body is treated like an outage: every candidate passes."""
    client = ExistenceCheckClient(
        endpoint="http://catalog.test/batch-exists",
        client=httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[URLS[0]]))
        ),
    )
    gate = DeduplicationGate("Italist", client, SeenUrlSet(), log_sink)

    fresh = await gate.filter_new(_candidates())

    assert [c.url for c in fresh] == URLS
    assert [e["level"] for e in log_sink.events].count("ERROR") == 1
