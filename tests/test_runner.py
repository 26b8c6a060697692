"""Tests for the site registry and crawl entry points."""

import pytest

from src.config import settings
from src.crawler.runner import build_scheduler, default_options, scrape
from src.crawler.scheduler import CrawlConfigError, CrawlScheduler
from src.crawler.sites import SiteRegistry, get_site_adapter
from src.crawler.sites.italist import ITALIST


def test_registry_lookup_is_case_insensitive():
    assert get_site_adapter("italist") is ITALIST
    assert get_site_adapter(" ITALIST ") is ITALIST
    assert "italist" in SiteRegistry.list_sites()


def test_unknown_site_raises():
    with pytest.raises(ValueError, match="Unknown site"):
        get_site_adapter("nowhere")


def test_default_options_ignore_none_overrides():
    options = default_options(max_products=25, max_requests=None, headless=None)

    assert options.max_products == 25
    assert options.max_requests is None
    assert options.headless is settings.headless
    assert options.max_concurrency == settings.default_max_concurrency
    assert options.request_ceiling(settings.max_requests_headroom) == 25 + settings.max_requests_headroom


def test_build_scheduler_validates_options():
    scheduler = build_scheduler("Italist", default_options(max_products=3), execution_id="exec-1")

    assert scheduler.adapter is ITALIST
    assert scheduler.execution_id == "exec-1"
    assert scheduler.request_ceiling == 3 + settings.max_requests_headroom

    with pytest.raises(CrawlConfigError):
        build_scheduler("italist", default_options(max_concurrency=0))


@pytest.mark.asyncio
async def test_scrape_accepts_a_single_url(monkeypatch):
    received = []

    async def fake_run(self, seed_urls):
        received.append(seed_urls)
        return []

    monkeypatch.setattr(CrawlScheduler, "run", fake_run)

    assert await scrape("https://www.italist.com/us/women/clothing/2/") == []
    assert received == [["https://www.italist.com/us/women/clothing/2/"]]
