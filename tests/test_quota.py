"""Tests for per-seed quota allocation."""

import asyncio

import pytest

from src.crawler.quota import QuotaAllocator, QuotaExceededError


def test_allocate_uses_ceiling_division():
    """Budget 10 over 3 seeds gives every seed 4 slots."""
    allocator = QuotaAllocator()
    quotas = allocator.allocate(["a", "b", "c"], 10)

    assert [q.quota_limit for q in quotas.values()] == [4, 4, 4]
    assert allocator.totals()["quota_limit"] == 12


def test_allocate_gives_every_seed_a_slot():
    allocator = QuotaAllocator()
    quotas = allocator.allocate(["a", "b", "c"], 2)

    assert all(q.quota_limit == 1 for q in quotas.values())


def test_allocate_ignores_duplicate_seeds():
    allocator = QuotaAllocator()
    quotas = allocator.allocate(["a", "a", "b"], 10)

    assert list(quotas) == ["a", "b"]
    assert quotas["a"].quota_limit == 5


def test_remaining_for_unknown_seed_is_zero():
    allocator = QuotaAllocator()
    allocator.allocate(["a"], 5)

    assert allocator.remaining("a") == 5
    assert allocator.remaining("zzz") == 0


@pytest.mark.asyncio
async def test_consume_stops_at_limit():
    allocator = QuotaAllocator()
    allocator.allocate(["a"], 2)

    async with allocator.hold("a") as quota:
        QuotaAllocator.consume(quota)
        QuotaAllocator.consume(quota)
        with pytest.raises(QuotaExceededError):
            QuotaAllocator.consume(quota)

    assert allocator.remaining("a") == 0


@pytest.mark.asyncio
async def test_concurrent_reservations_never_overshoot():
    """Many listing pages racing for one seed enqueue exactly its limit."""
    allocator = QuotaAllocator()
    allocator.allocate(["seed"], 7)
    granted = []

    async def reserve(i):
        async with allocator.hold("seed") as quota:
            await asyncio.sleep(0)
            if quota.remaining > 0:
                QuotaAllocator.consume(quota)
                granted.append(i)

    await asyncio.gather(*(reserve(i) for i in range(50)))

    assert len(granted) == 7
    assert allocator.get("seed").enqueued_count == 7


@pytest.mark.asyncio
async def test_mark_processed_never_exceeds_enqueued():
    allocator = QuotaAllocator()
    allocator.allocate(["a"], 3)
    async with allocator.hold("a") as quota:
        QuotaAllocator.consume(quota)

    await allocator.mark_processed("a")
    await allocator.mark_processed("a")

    assert allocator.get("a").processed_count == 1
    assert allocator.totals() == {"quota_limit": 3, "enqueued": 1, "processed": 1}
