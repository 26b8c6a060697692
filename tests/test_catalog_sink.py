"""Tests for the catalog sink."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.crawler.catalog_sink import CatalogSink
from src.crawler.models import Price, Product


def _product(url="https://www.italist.com/us/women/1000001/gucci/", **kwargs):
    return Product(
        url=url,
        source="Italist",
        scraped_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_emit_appends_json_lines(tmp_path):
    sink = CatalogSink("Italist", execution_id="exec-1", storage_dir=str(tmp_path))
    product = _product(
        brand="Gucci",
        current_price=Price(Decimal("960"), "USD"),
        images=("https://cdn-images.italist.com/a.jpg",),
    )

    assert await sink.emit(product) is True

    assert sink.dataset_path == tmp_path / "Italist" / "exec-1" / "products.jsonl"
    lines = sink.dataset_path.read_text(encoding="utf-8").splitlines()
    record = json.loads(lines[0])
    assert record["brand"] == "Gucci"
    assert record["current_price"] == {"amount": 960.0, "currency": "USD"}
    assert record["images"] == ["https://cdn-images.italist.com/a.jpg"]
    assert record["scraped_at"] == "2026-01-05T00:00:00+00:00"


@pytest.mark.asyncio
async def test_duplicate_keys_are_emitted_once(tmp_path):
    sink = CatalogSink("Italist", execution_id="exec-1", storage_dir=str(tmp_path))

    assert await sink.emit(_product()) is True
    assert await sink.emit(_product(name="again")) is False

    assert len(sink) == 1
    assert len(sink.dataset_path.read_text(encoding="utf-8").splitlines()) == 1


@pytest.mark.asyncio
async def test_dataset_can_be_disabled(tmp_path):
    sink = CatalogSink("Italist", storage_dir=str(tmp_path), write_dataset=False)

    await sink.emit(_product())

    assert sink.products[0].url == "https://www.italist.com/us/women/1000001/gucci/"
    assert not sink.dataset_path.exists()
    assert sink.run_dir.name.startswith("default_run_")
