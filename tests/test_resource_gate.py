"""Tests for request filtering."""

from types import SimpleNamespace

import pytest

from src.crawler.resource_gate import ResourceGate, ResourceRules
from src.crawler.sites.italist import ITALIST
from tests.fakes import FakePage


class FakeRoute:
    def __init__(self, url, resource_type):
        self.request = SimpleNamespace(url=url, resource_type=resource_type)
        self.outcome = None

    async def continue_(self):
        self.outcome = "continue"

    async def abort(self):
        self.outcome = "abort"


@pytest.fixture
def gate():
    return ResourceGate(ITALIST.resource_rules)


@pytest.mark.parametrize(
    "url,resource_type,allowed",
    [
        ("https://www.italist.com/us/women/", "document", True),
        ("https://www.italist.com/_next/static/chunks/main.js", "script", True),
        ("https://cdn-images.italist.com/image/upload/t_medium/abc.jpg", "image", True),
        ("https://www.italist.com/static/banner.jpg", "image", False),
        ("https://www.italist.com/static/fonts/inter.woff2", "font", False),
        ("https://www.italist.com/static/site.css", "stylesheet", False),
        ("https://www.google-analytics.com/collect?v=1", "xhr", False),
        ("https://www.italist.com/analytics/event", "fetch", False),
        ("https://www.italist.com/api/products/123", "fetch", True),
        ("https://www.italist.com/api/recommendations", "fetch", False),
    ],
)
def test_should_allow(gate, url, resource_type, allowed):
    assert gate.should_allow(url, resource_type) is allowed


def test_documents_are_never_blocked():
    gate = ResourceGate(ResourceRules(blocked_domains=("italist.com",)))

    assert gate.should_allow("https://www.italist.com/us/", "document") is True
    assert gate.should_allow("https://www.italist.com/app.js", "script") is False


@pytest.mark.asyncio
async def test_install_routes_all_requests(gate):
    page = FakePage()

    await gate.install(page)

    assert [pattern for pattern, _ in page.routes] == ["**/*"]


@pytest.mark.asyncio
async def test_disabled_gate_installs_nothing():
    page = FakePage()

    await ResourceGate(enabled=False).install(page)

    assert page.routes == []


@pytest.mark.asyncio
async def test_route_handler_aborts_denied_requests(gate):
    blocked = FakeRoute("https://www.googletagmanager.com/gtm.js", "script")
    allowed = FakeRoute("https://www.italist.com/api/catalog/list", "xhr")

    await gate._handle(blocked)
    await gate._handle(allowed)

    assert blocked.outcome == "abort"
    assert allowed.outcome == "continue"
    assert (gate.blocked_count, gate.allowed_count) == (1, 1)
