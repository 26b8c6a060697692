"""Per-seed quota allocation.

The global product budget is split across seed URLs up front. Counters live
in a small arena keyed by seed id, each guarded by its own lock, so
concurrent list pages for the same seed can never over-enqueue.
"""

from __future__ import annotations

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

logger = logging.getLogger(__name__)


class QuotaExceededError(RuntimeError):
    """Raised when a reservation would push a seed past its limit."""

    def __init__(self, seed_id: str, limit: int):
        super().__init__(f"Seed {seed_id} is at its quota of {limit}")
        self.seed_id = seed_id
        self.limit = limit


@dataclass
class SeedQuota:
    """Counters for one seed URL."""

    seed_id: str
    quota_limit: int
    enqueued_count: int = 0
    processed_count: int = 0

    @property
    def remaining(self) -> int:
        return self.quota_limit - self.enqueued_count


class QuotaAllocator:
    """Splits a product budget across seeds and tracks usage per seed."""

    def __init__(self):
        self._quotas: dict[str, SeedQuota] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def allocate(self, seed_urls: list[str], total_budget: int) -> dict[str, SeedQuota]:
        """
        Split ``total_budget`` evenly across seeds using ceiling division.

        Every seed gets at least one slot, even when the budget is smaller
        than the number of seeds.

        Args:
            seed_urls: Seed listing URLs (used as seed ids)
            total_budget: Global product budget

        Returns:
            Mapping of seed id to its SeedQuota
        """
        seeds = list(dict.fromkeys(seed_urls))
        if not seeds:
            return {}

        per_seed = max(math.ceil(total_budget / len(seeds)), 1)
        self._quotas = {seed: SeedQuota(seed_id=seed, quota_limit=per_seed) for seed in seeds}
        self._locks = {seed: asyncio.Lock() for seed in seeds}

        logger.info(
            f"Allocated {per_seed} products per seed across {len(seeds)} seeds "
            f"(budget {total_budget})"
        )
        return dict(self._quotas)

    def get(self, seed_id: str) -> SeedQuota:
        return self._quotas[seed_id]

    def remaining(self, seed_id: str) -> int:
        """Slots left for a seed (limit minus enqueued)."""
        quota = self._quotas.get(seed_id)
        if quota is None:
            return 0
        return quota.remaining

    @asynccontextmanager
    async def hold(self, seed_id: str) -> AsyncIterator[SeedQuota]:
        """Hold the seed's lock so check-then-increment sequences are atomic."""
        async with self._locks[seed_id]:
            yield self._quotas[seed_id]

    @staticmethod
    def consume(quota: SeedQuota) -> None:
        """Take one slot from a quota already held via :meth:`hold`."""
        if quota.enqueued_count >= quota.quota_limit:
            raise QuotaExceededError(quota.seed_id, quota.quota_limit)
        quota.enqueued_count += 1

    async def mark_processed(self, seed_id: str) -> None:
        """Count a finished detail page against its seed."""
        async with self.hold(seed_id) as quota:
            if quota.processed_count < quota.enqueued_count:
                quota.processed_count += 1

    def totals(self) -> dict[str, int]:
        return {
            "quota_limit": sum(q.quota_limit for q in self._quotas.values()),
            "enqueued": sum(q.enqueued_count for q in self._quotas.values()),
            "processed": sum(q.processed_count for q in self._quotas.values()),
        }

    def __iter__(self):
        return iter(self._quotas.values())
