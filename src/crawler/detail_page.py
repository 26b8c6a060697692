"""Detail page (PDP) extraction into a full Product record."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from src.crawler.extraction import ExtractionContext, run_chains
from src.crawler.log_sink import ExecutionLogSink
from src.crawler.models import CrawlTask, Price, Product, compute_discount
from src.crawler.parsing import gender_from_breadcrumbs, normalize_breadcrumbs
from src.crawler.sites.base import SiteAdapter

logger = logging.getLogger(__name__)

# Fields worth a WARN event when every strategy came up empty
EXPECTED_FIELDS = ("name", "brand", "current_price", "images", "sku")


class DetailPageExtractor:
    """Runs the adapter's detail chains and assembles the Product."""

    def __init__(
        self,
        adapter: SiteAdapter,
        log_sink: ExecutionLogSink,
        ready_timeout: float = 10.0,
    ):
        self.adapter = adapter
        self.log_sink = log_sink
        self.ready_timeout = ready_timeout

    async def extract(self, page: Page, task: CrawlTask, execution_id: Optional[str] = None) -> Product:
        """
        Extract a product from a loaded detail page.

        Missing fields stay unset; they never fail the task.

        Args:
            page: Playwright page already navigated to ``task.url``
            task: The DETAIL task (carries PLP data as fallback)
            execution_id: Run identifier recorded in product metadata

        Returns:
            Product record
        """
        await self._wait_until_ready(page)

        ctx = ExtractionContext(
            scope=page,
            url=task.url,
            partial=task.partial,
            gender=task.gender,
            default_currency=self.adapter.default_currency,
        )
        fields = await run_chains(self.adapter.detail_fields, ctx)

        gender = task.gender or (task.partial.gender if task.partial else None)
        breadcrumbs = normalize_breadcrumbs(fields.get("breadcrumbs") or [], gender)
        if gender is None:
            gender = gender_from_breadcrumbs(breadcrumbs)

        current_price: Optional[Price] = fields.get("current_price")
        original_price: Optional[Price] = fields.get("original_price")
        if current_price is not None and original_price is None:
            # No strike-through price shown: the item is at full price
            original_price = Price(amount=current_price.amount, currency=current_price.currency)

        material_details = list(fields.get("material_details") or [])
        color = fields.get("color")

        product = Product(
            url=task.url,
            source=self.adapter.name,
            scraped_at=datetime.now(timezone.utc),
            name=fields.get("name"),
            brand=fields.get("brand"),
            description=fields.get("description"),
            images=tuple(fields.get("images") or ()),
            current_price=current_price,
            original_price=original_price,
            discount=compute_discount(current_price, original_price),
            tags=tuple(fields.get("tags") or ()),
            gender=gender,
            sku=fields.get("sku"),
            color=color,
            designer_color_name=color,
            material=material_details[0] if material_details else None,
            material_details=tuple(material_details),
            sizes=tuple(fields.get("sizes") or ()),
            breadcrumbs=tuple(breadcrumbs),
            metadata={"executionId": execution_id, "seedId": task.seed_id},
        )

        missing = [name for name in EXPECTED_FIELDS if not fields.get(name)]
        if missing:
            await self.log_sink.warn(
                f"Missing fields on {task.url}: {', '.join(missing)}",
                url=task.url,
                missing=missing,
            )

        logger.info(
            f"[{self.adapter.name}] Extracted {product.brand or '?'} / {product.name or product.sku or task.url}"
        )
        return product

    async def _wait_until_ready(self, page: Page) -> None:
        if not self.adapter.detail_ready_selector:
            return
        try:
            await page.wait_for_selector(
                self.adapter.detail_ready_selector,
                state="visible",
                timeout=self.ready_timeout * 1000,
            )
        except PlaywrightTimeoutError:
            logger.debug(f"[{self.adapter.name}] Detail content not ready on {page.url}, extracting anyway")
