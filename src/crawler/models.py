"""Data models shared by the crawl scheduler and the page processors."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class TaskKind(str, Enum):
    """The two kinds of crawl work."""
    LIST = "LIST"
    DETAIL = "DETAIL"


class TaskStatus(str, Enum):
    """Lifecycle of a crawl task."""
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    DROPPED = "dropped"  # Never dispatched because the request ceiling was hit


@dataclass
class Price:
    """A monetary amount with its ISO 4217 currency."""

    amount: Decimal
    currency: str = "USD"

    def to_dict(self) -> dict[str, Any]:
        return {"amount": float(self.amount), "currency": self.currency}


def compute_discount(
    current_price: Optional[Price],
    original_price: Optional[Price],
) -> float:
    """
    Discount as a fraction of the original price, rounded to two places.

    Zero unless both prices are known and the original is strictly higher.
    """
    if current_price is None or original_price is None:
        return 0.0
    original = original_price.amount
    current = current_price.amount
    if original <= 0 or original <= current:
        return 0.0
    return round(float((original - current) / original), 2)


@dataclass
class PartialProduct:
    """Fields harvested cheaply from a listing card (PLP data)."""

    name: Optional[str] = None
    brand: Optional[str] = None
    images: list[str] = field(default_factory=list)
    current_price: Optional[Price] = None
    original_price: Optional[Price] = None
    discount: float = 0.0
    tags: list[str] = field(default_factory=list)
    gender: Optional[str] = None

    def recompute_discount(self) -> None:
        self.discount = compute_discount(self.current_price, self.original_price)


@dataclass
class Candidate:
    """A detail page discovered on a listing page, before dedup."""

    url: str
    partial: PartialProduct


@dataclass
class CrawlTask:
    """A unit of crawl work, unique per URL within a run."""

    url: str
    kind: TaskKind
    seed_id: str
    partial: Optional[PartialProduct] = None
    gender: Optional[str] = None
    attempt: int = 0
    status: TaskStatus = TaskStatus.PENDING
    errors: list[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class Product:
    """The final product record emitted to the catalog sink."""

    url: str
    source: str
    scraped_at: datetime
    name: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    images: tuple[str, ...] = ()
    current_price: Optional[Price] = None
    original_price: Optional[Price] = None
    discount: float = 0.0
    tags: tuple[str, ...] = ()
    gender: Optional[str] = None
    sku: Optional[str] = None
    color: Optional[str] = None
    designer_color_name: Optional[str] = None
    material: Optional[str] = None
    material_details: tuple[str, ...] = ()
    sizes: tuple[str, ...] = ()
    breadcrumbs: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        """Catalog identity: source plus URL."""
        return self.source, self.url

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serialisable dict for the catalog sink."""
        data = asdict(self)
        data["scraped_at"] = self.scraped_at.isoformat()
        data["current_price"] = self.current_price.to_dict() if self.current_price else None
        data["original_price"] = self.original_price.to_dict() if self.original_price else None
        for key in ("images", "tags", "material_details", "sizes", "breadcrumbs"):
            data[key] = list(data[key])
        return data


@dataclass
class CrawlOptions:
    """Caller-facing crawl options."""

    max_products: int = 1000
    max_concurrency: int = 5
    max_requests: Optional[int] = None
    headless: bool = True
    max_load_clicks: int = 50

    def request_ceiling(self, headroom: int) -> int:
        """Hard ceiling on dispatched tasks; generous above the product budget."""
        if self.max_requests is not None:
            return self.max_requests
        return self.max_products + headroom


@dataclass
class CrawlSummary:
    """Counters reported at the end of a run."""

    products_collected: int = 0
    list_tasks_processed: int = 0
    detail_tasks_processed: int = 0
    detail_tasks_enqueued: int = 0
    tasks_dispatched: int = 0
    tasks_failed: int = 0
    tasks_dropped: int = 0
    urls_seen: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        return data
