"""Next-page discovery on listing pages."""

from __future__ import annotations

import logging
from typing import Optional

from playwright.async_api import Page, Error as PlaywrightError

from src.config import settings
from src.crawler.list_page import scroll_by_screen
from src.crawler.log_sink import ExecutionLogSink
from src.crawler.models import CrawlTask
from src.crawler.parsing import absolute_url, page_number_from_url
from src.crawler.sites.base import SiteAdapter
from src.crawler.url_registry import SeenUrlSet

logger = logging.getLogger(__name__)


class PaginationNavigator:
    """Finds the listing's "next page" link, bounded by a maximum depth."""

    def __init__(
        self,
        adapter: SiteAdapter,
        seen_urls: SeenUrlSet,
        log_sink: ExecutionLogSink,
        max_depth: Optional[int] = None,
        scroll_steps: Optional[int] = None,
    ):
        self.adapter = adapter
        self.seen_urls = seen_urls
        self.log_sink = log_sink
        self.max_depth = max_depth or settings.default_max_load_clicks
        self.scroll_steps = settings.pagination_scroll_steps if scroll_steps is None else scroll_steps

    def page_number(self, url: str) -> int:
        return page_number_from_url(
            url,
            page_param=self.adapter.page_param,
            offset_param=self.adapter.offset_param,
            page_size=self.adapter.page_size,
        )

    async def find_next(self, page: Page, task: CrawlTask) -> Optional[str]:
        """
        Locate the next listing page.

        Args:
            page: Playwright page for the current listing
            task: The LIST task being processed

        Returns:
            Absolute URL of the next page, or None when there is none, it was
            already seen, or the maximum depth is reached
        """
        current = self.page_number(task.url)
        if current >= self.max_depth:
            await self.log_sink.info(
                f"Reached max paging depth ({self.max_depth}) for {task.url}",
                page=current,
            )
            return None

        for _ in range(self.scroll_steps):
            await scroll_by_screen(page, fraction=1.0)

        href = await self._find_next_href(page)
        if not href:
            await self.log_sink.info(f"No next page link found on {task.url}. End of PLP for this path.")
            return None

        next_url = absolute_url(href, page.url or task.url or self.adapter.base_url)
        if next_url in self.seen_urls:
            logger.info(f"[{self.adapter.name}] Next page already seen, skipping: {next_url}")
            return None

        logger.info(f"[{self.adapter.name}] Next listing page {next_url} (page {current + 1})")
        return next_url

    async def _find_next_href(self, page: Page) -> Optional[str]:
        for selector in self.adapter.next_page_selectors:
            try:
                element = await page.query_selector(selector)
                if element is None or not await element.is_visible():
                    continue
                href = await element.get_attribute("href")
                if href:
                    logger.debug(f"[{self.adapter.name}] Next page via {selector}")
                    return href
            except PlaywrightError as e:
                logger.debug(f"[{self.adapter.name}] Pagination selector {selector} failed: {e}")
        return None
