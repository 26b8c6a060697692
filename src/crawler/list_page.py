"""Listing page (PLP) processing: reveal, read cards, build candidates."""

from __future__ import annotations

import logging
import math
import random
import re
from typing import Optional

from playwright.async_api import Page, ElementHandle, Error as PlaywrightError

from src.config import settings
from src.crawler.extraction import ExtractionContext, run_chains
from src.crawler.log_sink import ExecutionLogSink
from src.crawler.models import Candidate, CrawlTask, PartialProduct
from src.crawler.parsing import absolute_url, is_on_domain
from src.crawler.sites.base import SiteAdapter
from src.crawler.url_registry import SeenUrlSet

logger = logging.getLogger(__name__)


async def scroll_by_screen(page: Page, fraction: float = 0.8) -> None:
    """Scroll down by most of a viewport and give lazy content a moment."""
    viewport = page.viewport_size or {}
    distance = int(viewport.get("height", 0) * fraction) or 500
    await page.evaluate("(dist) => window.scrollBy({ top: dist, behavior: 'smooth' })", distance)
    await page.wait_for_timeout(500 + random.randint(0, 500))


class ListPageProcessor:
    """Turns a listing page into detail-page candidates."""

    def __init__(
        self,
        adapter: SiteAdapter,
        seen_urls: SeenUrlSet,
        log_sink: ExecutionLogSink,
        max_scroll_steps: Optional[int] = None,
        container_timeout: Optional[float] = None,
    ):
        self.adapter = adapter
        self.seen_urls = seen_urls
        self.log_sink = log_sink
        self.max_scroll_steps = max_scroll_steps or settings.max_scroll_steps
        self.container_timeout = container_timeout or settings.list_container_timeout

    async def process(self, page: Page, task: CrawlTask, remaining: int) -> list[Candidate]:
        """
        Extract candidates from a listing page.

        Args:
            page: Playwright page already navigated to ``task.url``
            task: The LIST task
            remaining: Slots left in the task's seed quota

        Returns:
            Candidates not yet seen this run, at most ``remaining`` cards read
        """
        if remaining <= 0:
            logger.info(f"[{self.adapter.name}] Seed quota exhausted, skipping cards on {task.url}")
            return []

        await page.wait_for_selector(
            self.adapter.list_container_selector,
            state="visible",
            timeout=self.container_timeout * 1000,
        )

        await self.read_total_count(page)

        visible = await self.reveal(page, remaining)
        cards = await page.query_selector_all(self.adapter.card_selector)
        to_process = cards[:remaining]
        logger.info(
            f"[{self.adapter.name}] {len(cards)} cards on {task.url} "
            f"(visible after reveal: {visible}), reading {len(to_process)}"
        )

        if not cards:
            await self.log_sink.warn(
                f"No product cards found on PLP: {task.url}",
                selector=self.adapter.card_selector,
            )
            return []

        candidates: list[Candidate] = []
        for card in to_process:
            try:
                candidate = await self.read_card(card, task)
            except PlaywrightError as e:
                await self.log_sink.error(
                    f"Error processing product card on {task.url}: {e}",
                    error=str(e),
                )
                continue

            if candidate is None:
                continue
            if candidate.url in self.seen_urls:
                logger.debug(f"[{self.adapter.name}] {candidate.url} already seen this run, skipping")
                continue
            candidates.append(candidate)

        return candidates

    async def reveal(self, page: Page, needed: int) -> int:
        """
        Scroll until enough cards are visible or lazy loading stops.

        Returns:
            Number of cards visible afterwards
        """
        rows_needed = math.ceil(needed / max(self.adapter.products_per_row, 1))
        max_scrolls = min(rows_needed + 1, self.max_scroll_steps)

        previous = await self._count_cards(page)
        current = previous
        for step in range(max_scrolls):
            await scroll_by_screen(page)
            current = await self._count_cards(page)
            logger.debug(f"[{self.adapter.name}] Scroll #{step + 1}: {current} cards visible")
            if current >= needed or current == previous:
                break
            previous = current
            await page.wait_for_timeout(800)
        return current

    async def read_total_count(self, page: Page) -> Optional[int]:
        """Total result count shown on the listing, when present."""
        if not self.adapter.total_count_selector:
            return None
        try:
            element = await page.query_selector(self.adapter.total_count_selector)
            if element is None:
                logger.warning(
                    f"[{self.adapter.name}] Total count element not found: {self.adapter.total_count_selector}"
                )
                return None
            digits = re.sub(r"[^\d]", "", await element.text_content() or "")
        except PlaywrightError as e:
            logger.warning(f"[{self.adapter.name}] Failed to read total count: {e}")
            return None

        if not digits:
            return None
        total = int(digits)
        logger.info(f"[{self.adapter.name}] Listing reports {total} products")
        return total

    async def read_card(self, card: ElementHandle, task: CrawlTask) -> Optional[Candidate]:
        """Build a candidate from one card; None when the link is missing or off-site."""
        await card.scroll_into_view_if_needed()

        link = card
        if self.adapter.card_link_selector:
            link = await card.query_selector(self.adapter.card_link_selector)
            if link is None:
                return None

        href = await link.get_attribute("href")
        if not href:
            logger.warning(f"[{self.adapter.name}] Product card has no href on {task.url}")
            return None

        url = absolute_url(href, self.adapter.base_url)
        if not is_on_domain(url, self.adapter.domain):
            logger.warning(f"[{self.adapter.name}] Discarding off-site product URL {url} (href {href})")
            return None

        ctx = ExtractionContext(
            scope=card,
            url=url,
            gender=task.gender,
            default_currency=self.adapter.default_currency,
        )
        fields = await run_chains(self.adapter.card_fields, ctx)

        images = fields.get("images") or []
        if isinstance(images, str):
            images = [images]

        partial = PartialProduct(
            name=fields.get("name"),
            brand=fields.get("brand"),
            images=list(images),
            current_price=fields.get("current_price"),
            original_price=fields.get("original_price"),
            tags=list(fields.get("tags") or []),
            gender=task.gender,
        )
        partial.recompute_discount()
        return Candidate(url=url, partial=partial)

    async def _count_cards(self, page: Page) -> int:
        return len(await page.query_selector_all(self.adapter.card_selector))
