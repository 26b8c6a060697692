"""Catalog sink: collects products and appends them to a JSON-lines dataset."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Optional

from src.config import settings
from src.crawler.models import Product
from src import metrics

logger = logging.getLogger(__name__)


class CatalogSink:
    """
    Output stream of finished products keyed by ``(source, url)``.

    A key is written at most once per run; downstream storage upserts by URL.
    """

    def __init__(
        self,
        source: str,
        execution_id: Optional[str] = None,
        storage_dir: Optional[str] = None,
        write_dataset: bool = True,
    ):
        self.source = source
        self.execution_id = execution_id
        self.write_dataset = write_dataset
        run_name = execution_id or f"default_run_{int(time.time() * 1000)}"
        self.run_dir = Path(storage_dir or settings.storage_dir) / source / run_name
        self.dataset_path = self.run_dir / "products.jsonl"

        self._products: list[Product] = []
        self._keys: set[tuple[str, str]] = set()
        self._lock = asyncio.Lock()

    @property
    def products(self) -> list[Product]:
        return list(self._products)

    def __len__(self) -> int:
        return len(self._products)

    async def emit(self, product: Product) -> bool:
        """
        Append a product unless its key was already emitted.

        Returns:
            True if the product was written
        """
        async with self._lock:
            if product.key in self._keys:
                logger.debug(f"Duplicate product {product.url} not re-emitted")
                return False
            self._keys.add(product.key)
            self._products.append(product)
            if self.write_dataset:
                self._append_line(product)

        metrics.record_product_emitted(self.source)
        return True

    def _append_line(self, product: Product) -> None:
        self.run_dir.mkdir(parents=True, exist_ok=True)
        with open(self.dataset_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(product.to_dict(), ensure_ascii=False, default=str) + "\n")
