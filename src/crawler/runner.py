"""Crawl entry points."""

from __future__ import annotations

import logging
from typing import Optional, Union

from src.config import settings
from src.crawler.log_sink import ExecutionLogSink
from src.crawler.models import CrawlOptions, Product
from src.crawler.scheduler import CrawlScheduler
from src.crawler.sites import get_site_adapter

logger = logging.getLogger(__name__)


def default_options(**overrides) -> CrawlOptions:
    """CrawlOptions seeded from settings; ``None`` overrides are ignored."""
    options = CrawlOptions(
        max_products=settings.default_max_products,
        max_concurrency=settings.default_max_concurrency,
        headless=settings.headless,
        max_load_clicks=settings.default_max_load_clicks,
    )
    for key, value in overrides.items():
        if value is not None:
            setattr(options, key, value)
    return options


def build_scheduler(
    site: str,
    options: Optional[CrawlOptions] = None,
    execution_id: Optional[str] = None,
    log_sink: Optional[ExecutionLogSink] = None,
) -> CrawlScheduler:
    """
    Create a scheduler for a registered site.

    Raises:
        ValueError: Unknown site
        CrawlConfigError: Invalid options
    """
    adapter = get_site_adapter(site)
    return CrawlScheduler(
        adapter,
        options or default_options(),
        execution_id=execution_id,
        log_sink=log_sink,
    )


async def scrape(
    start_urls: Union[str, list[str]],
    options: Optional[CrawlOptions] = None,
    execution_id: Optional[str] = None,
    site: str = "italist",
) -> list[Product]:
    """
    Crawl a site from one or more listing URLs.

    Args:
        start_urls: One URL or a list of listing URLs
        options: Crawl options (defaults from settings)
        execution_id: Caller-supplied id correlating log events
        site: Registered site adapter name

    Returns:
        Products extracted this run
    """
    urls = [start_urls] if isinstance(start_urls, str) else list(start_urls)
    scheduler = build_scheduler(site, options, execution_id)
    logger.info(f"Starting {scheduler.site} crawl for {len(urls)} start URL(s), execution {execution_id or 'N/A'}")
    return await scheduler.run(urls)
