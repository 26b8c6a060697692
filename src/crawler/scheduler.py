"""Crawl scheduler: request queue, worker pool, retries and ceilings.

Task lifecycle::

    PENDING -> RUNNING -> DONE
                       -> PENDING (attempt += 1, requeued while attempt <= retries)
                       -> FAILED  (attempt > retries; logged, never fatal)
    PENDING -> DROPPED (request ceiling reached before dispatch)
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from playwright.async_api import Page

from src.config import settings
from src.crawler.browser import BrowserSession
from src.crawler.catalog_sink import CatalogSink
from src.crawler.dedup import DeduplicationGate
from src.crawler.detail_page import DetailPageExtractor
from src.crawler.existence_client import ExistenceCheckClient
from src.crawler.interstitial import InterstitialHandler
from src.crawler.list_page import ListPageProcessor
from src.crawler.log_sink import ExecutionLogSink
from src.crawler.models import (
    Candidate,
    CrawlOptions,
    CrawlSummary,
    CrawlTask,
    Product,
    TaskKind,
    TaskStatus,
)
from src.crawler.pagination import PaginationNavigator
from src.crawler.parsing import infer_gender_from_url
from src.crawler.quota import QuotaAllocator
from src.crawler.resource_gate import ResourceGate
from src.crawler.sites.base import SiteAdapter
from src.crawler.url_registry import SeenUrlSet
from src import metrics

logger = logging.getLogger(__name__)


class CrawlConfigError(ValueError):
    """Invalid run configuration; raised before any task executes."""


class TaskTimeoutError(Exception):
    """A task exceeded its wall-clock budget."""
    def __init__(self, url: str, seconds: float):
        self.url = url
        self.seconds = seconds
        super().__init__(f"Task for {url} exceeded {seconds:.0f}s")


def validate_options(options: CrawlOptions) -> None:
    """
    Reject option combinations that cannot produce a sensible run.

    Raises:
        CrawlConfigError: On a non-positive budget, concurrency, ceiling or depth
    """
    if options.max_products <= 0:
        raise CrawlConfigError(f"max_products must be positive, got {options.max_products}")
    if options.max_concurrency <= 0:
        raise CrawlConfigError(f"max_concurrency must be positive, got {options.max_concurrency}")
    if options.max_requests is not None and options.max_requests <= 0:
        raise CrawlConfigError(f"max_requests must be positive, got {options.max_requests}")
    if options.max_load_clicks <= 0:
        raise CrawlConfigError(f"max_load_clicks must be positive, got {options.max_load_clicks}")


class CrawlScheduler:
    """Runs one crawl for one site adapter."""

    def __init__(
        self,
        adapter: SiteAdapter,
        options: Optional[CrawlOptions] = None,
        *,
        execution_id: Optional[str] = None,
        browser: Optional[BrowserSession] = None,
        existence_client: Optional[ExistenceCheckClient] = None,
        log_sink: Optional[ExecutionLogSink] = None,
        sink: Optional[CatalogSink] = None,
        max_retries: Optional[int] = None,
        task_timeout: Optional[float] = None,
        dedup_fail_closed: bool = False,
    ):
        self.options = options or CrawlOptions()
        validate_options(self.options)

        self.adapter = adapter
        self.site = adapter.name
        self.execution_id = execution_id
        self.max_retries = settings.max_request_retries if max_retries is None else max_retries
        self.task_timeout = task_timeout or settings.request_handler_timeout
        self.request_ceiling = self.options.request_ceiling(settings.max_requests_headroom)

        self._owns_existence_client = existence_client is None
        self._owns_log_sink = log_sink is None

        self.seen_urls = SeenUrlSet()
        self.quotas = QuotaAllocator()
        self.log_sink = log_sink or ExecutionLogSink(execution_id=execution_id, site=self.site)
        self.browser = browser or BrowserSession(headless=self.options.headless)
        self.existence_client = existence_client or ExistenceCheckClient()
        self.sink = sink or CatalogSink(self.site, execution_id=execution_id)

        self.resource_gate = ResourceGate(adapter.resource_rules, enabled=settings.block_resources)
        self.interstitials = InterstitialHandler(adapter.interstitial, site=self.site)
        self.list_processor = ListPageProcessor(adapter, self.seen_urls, self.log_sink)
        self.dedup_gate = DeduplicationGate(
            self.site,
            self.existence_client,
            self.seen_urls,
            self.log_sink,
            fail_closed=dedup_fail_closed,
        )
        self.paginator = PaginationNavigator(
            adapter,
            self.seen_urls,
            self.log_sink,
            max_depth=self.options.max_load_clicks,
        )
        self.detail_extractor = DetailPageExtractor(adapter, self.log_sink)

        self.summary = CrawlSummary()
        self.tasks: list[CrawlTask] = []
        self._queue: asyncio.Queue[CrawlTask] = asyncio.Queue()
        self._dispatched = 0
        self._ceiling_logged = False

    # =========================================================================
    # Run
    # =========================================================================

    async def run(self, seed_urls: list[str]) -> list[Product]:
        """
        Crawl from the seed listing URLs.

        Args:
            seed_urls: Listing URLs; a "/women" or "/men" path segment sets the
                gender attached to every product derived from that seed

        Returns:
            Products extracted this run (partial results on task failures)

        Raises:
            CrawlConfigError: If no seed URL is given
            BrowserLaunchError: If the browser cannot start
        """
        seeds = list(dict.fromkeys(url.strip() for url in seed_urls if url and url.strip()))
        if not seeds:
            raise CrawlConfigError("At least one start URL is required")

        self.quotas.allocate(seeds, self.options.max_products)
        await self.log_sink.info(
            f"{self.site} scraper started.",
            startUrls=seeds,
            options={
                "maxProducts": self.options.max_products,
                "maxConcurrency": self.options.max_concurrency,
                "maxRequests": self.request_ceiling,
                "maxLoadClicks": self.options.max_load_clicks,
                "headless": self.options.headless,
            },
            inferredGenders={seed: infer_gender_from_url(seed) for seed in seeds},
        )

        success = False
        workers: list[asyncio.Task] = []
        try:
            await self.browser.start()

            for seed in seeds:
                if await self.seen_urls.add_if_new(seed):
                    self._enqueue(CrawlTask(
                        url=seed,
                        kind=TaskKind.LIST,
                        seed_id=seed,
                        gender=infer_gender_from_url(seed),
                    ))

            workers = [
                asyncio.create_task(self._worker(i))
                for i in range(self.options.max_concurrency)
            ]
            await self._queue.join()
            success = True
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            await self.close()
            metrics.record_run(self.site, success)
            if not success and self._owns_log_sink:
                await self.log_sink.close()

        await self._emit_summary()
        if self._owns_log_sink:
            await self.log_sink.close()
        return self.sink.products

    async def close(self) -> None:
        """Release the browser and any clients this scheduler created."""
        await self.browser.close()
        if self._owns_existence_client:
            await self.existence_client.close()

    def _enqueue(self, task: CrawlTask) -> None:
        self.tasks.append(task)
        self._queue.put_nowait(task)

    async def _worker(self, worker_id: int) -> None:
        while True:
            task = await self._queue.get()
            try:
                await self._dispatch(task)
            finally:
                self._queue.task_done()

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def _dispatch(self, task: CrawlTask) -> None:
        if self._dispatched >= self.request_ceiling:
            task.status = TaskStatus.DROPPED
            self.summary.tasks_dropped += 1
            if not self._ceiling_logged:
                self._ceiling_logged = True
                await self.log_sink.warn(
                    f"Request ceiling ({self.request_ceiling}) reached; dropping remaining tasks",
                    ceiling=self.request_ceiling,
                )
            return

        self._dispatched += 1
        self.summary.tasks_dispatched += 1
        task.status = TaskStatus.RUNNING
        started = time.monotonic()

        await self.log_sink.info(
            f"Processing URL: {task.url}",
            label=task.label,
            attempt=task.attempt,
            gender=task.gender,
        )

        try:
            await asyncio.wait_for(self._handle(task), timeout=self.task_timeout)
        except asyncio.TimeoutError:
            await self._on_failure(task, TaskTimeoutError(task.url, self.task_timeout), started)
        except Exception as e:
            await self._on_failure(task, e, started)
        else:
            task.status = TaskStatus.DONE
            metrics.record_task(self.site, task.label, "success", time.monotonic() - started)
            await self.log_sink.debug(f"Finished {task.label} {task.url}")

    async def _on_failure(self, task: CrawlTask, error: Exception, started: float) -> None:
        task.attempt += 1
        task.errors.append(f"{type(error).__name__}: {error}")
        duration = time.monotonic() - started

        if task.attempt <= self.max_retries:
            task.status = TaskStatus.PENDING
            metrics.record_task(self.site, task.label, "retry", duration)
            await self.log_sink.warn(
                f"{task.label} task failed, retrying ({task.attempt}/{self.max_retries}): {task.url}",
                error=task.errors[-1],
            )
            self._queue.put_nowait(task)
            return

        task.status = TaskStatus.FAILED
        self.summary.tasks_failed += 1
        metrics.record_task(self.site, task.label, "failed", duration)
        await self.log_sink.error(
            f"{task.label} task failed after {task.attempt} attempts: {task.url}",
            errors=task.errors,
        )

    async def _handle(self, task: CrawlTask) -> None:
        async with self.browser.new_page() as page:
            await self.resource_gate.install(page)
            await self.browser.navigate(page, task.url)
            await self.interstitials.clear(page, task.gender)

            if task.kind is TaskKind.LIST:
                await self._handle_list(page, task)
            else:
                await self._handle_detail(page, task)

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _handle_list(self, page: Page, task: CrawlTask) -> None:
        remaining = self.quotas.remaining(task.seed_id)
        if remaining <= 0:
            await self.log_sink.info(f"Seed quota reached, skipping listing {task.url}")
            self.summary.list_tasks_processed += 1
            return

        candidates = await self.list_processor.process(page, task, remaining)
        fresh = await self.dedup_gate.filter_new(candidates)
        enqueued = await self._enqueue_details(task, fresh)
        if enqueued:
            await self.log_sink.info(
                f"Enqueued {enqueued} new DETAIL requests from {task.url}",
                count=enqueued,
            )

        if self.quotas.remaining(task.seed_id) > 0:
            next_url = await self.paginator.find_next(page, task)
            if next_url and await self.seen_urls.add_if_new(next_url):
                await self.log_sink.debug(f"Enqueuing next LIST page: {next_url}", fromUrl=task.url)
                self._enqueue(CrawlTask(
                    url=next_url,
                    kind=TaskKind.LIST,
                    seed_id=task.seed_id,
                    gender=task.gender,
                ))
        else:
            await self.log_sink.info(
                f"Skipping pagination for {task.url}: seed quota reached",
                seed=task.seed_id,
            )

        self.summary.list_tasks_processed += 1

    async def _enqueue_details(self, task: CrawlTask, candidates: list[Candidate]) -> int:
        """Turn candidates into DETAIL tasks while the seed has quota left."""
        count = 0
        async with self.quotas.hold(task.seed_id) as quota:
            for candidate in candidates:
                if quota.remaining <= 0:
                    break
                if not await self.seen_urls.add_if_new(candidate.url):
                    continue
                QuotaAllocator.consume(quota)
                self._enqueue(CrawlTask(
                    url=candidate.url,
                    kind=TaskKind.DETAIL,
                    seed_id=task.seed_id,
                    partial=candidate.partial,
                    gender=task.gender,
                ))
                count += 1

        self.summary.detail_tasks_enqueued += count
        return count

    async def _handle_detail(self, page: Page, task: CrawlTask) -> None:
        product = await self.detail_extractor.extract(page, task, self.execution_id)
        await self.sink.emit(product)
        await self.quotas.mark_processed(task.seed_id)
        self.summary.detail_tasks_processed += 1

    async def _emit_summary(self) -> None:
        self.summary.products_collected = len(self.sink)
        self.summary.urls_seen = len(self.seen_urls)
        self.summary.finished_at = datetime.now(timezone.utc)

        await self.log_sink.info(
            f"{self.site} scraper finished. Collected {self.summary.products_collected} products.",
            **self.summary.to_dict(),
            quotas=self.quotas.totals(),
        )
