"""Deduplication gate between listing pages and detail scraping."""

from __future__ import annotations

import logging

from src.crawler.existence_client import ExistenceCheckClient, ExistenceCheckError
from src.crawler.log_sink import ExecutionLogSink
from src.crawler.models import Candidate
from src.crawler.url_registry import SeenUrlSet
from src import metrics

logger = logging.getLogger(__name__)


class DeduplicationGate:
    """
    Drops candidates the catalog already has.

    One batched existence check per listing page. URLs reported as existing
    are marked seen so no later page re-enqueues them. When the check fails
    the gate fails open (every candidate passes) unless ``fail_closed`` is set.
    """

    def __init__(
        self,
        source: str,
        client: ExistenceCheckClient,
        seen_urls: SeenUrlSet,
        log_sink: ExecutionLogSink,
        fail_closed: bool = False,
    ):
        self.source = source
        self.client = client
        self.seen_urls = seen_urls
        self.log_sink = log_sink
        self.fail_closed = fail_closed

    async def filter_new(self, candidates: list[Candidate]) -> list[Candidate]:
        """
        Return only the candidates not yet in the catalog.

        Args:
            candidates: Candidates extracted from one listing page

        Returns:
            Candidates to turn into DETAIL tasks, in their original order
        """
        if not candidates:
            return []

        urls = [candidate.url for candidate in candidates]
        await self.log_sink.debug(
            f"Calling batch-exists API for {len(urls)} URLs",
            endpoint=self.client.endpoint,
        )

        try:
            existing = await self.client.batch_exists(urls, self.source)
            metrics.record_dedup_check(self.source, success=True)
        except ExistenceCheckError as e:
            metrics.record_dedup_check(self.source, success=False)
            await self.log_sink.error(
                f"Batch-exists API call failed: {e}",
                status=e.status_code,
                responseBodyBrief=e.body,
                failClosed=self.fail_closed,
            )
            if self.fail_closed:
                return []
            existing = set()

        fresh = []
        for candidate in candidates:
            if candidate.url in existing:
                await self.seen_urls.add(candidate.url)
                logger.debug(f"{candidate.url} already catalogued, skipping")
                continue
            fresh.append(candidate)

        await self.log_sink.debug(
            f"Batch-exists API returned {len(existing)} existing URLs; {len(fresh)} new",
        )
        return fresh
