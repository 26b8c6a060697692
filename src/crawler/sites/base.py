"""Declarative site adapter shape."""

from dataclasses import dataclass, field
from typing import Optional

from src.crawler.extraction import FieldChain
from src.crawler.interstitial import InterstitialConfig
from src.crawler.resource_gate import ResourceRules


@dataclass
class SiteAdapter:
    """
    Everything the shared crawl engine needs to know about one retail site.

    Adapters are plain data: selector tables and per-field strategy chains.
    The scheduler, quota, dedup and pagination machinery is common code.
    """

    name: str  # Source label written on every product
    domain: str
    base_url: str

    # Listing pages
    list_container_selector: str
    card_selector: str
    card_fields: list[FieldChain]
    card_link_selector: Optional[str] = None  # None: the card element is the link
    total_count_selector: Optional[str] = None
    products_per_row: int = 4

    # Pagination
    next_page_selectors: list[str] = field(default_factory=list)
    page_param: str = "page"
    offset_param: Optional[str] = None
    page_size: int = 60

    # Detail pages
    detail_fields: list[FieldChain] = field(default_factory=list)
    detail_ready_selector: Optional[str] = None

    interstitial: InterstitialConfig = field(default_factory=InterstitialConfig)
    resource_rules: ResourceRules = field(default_factory=ResourceRules)
    default_currency: str = "USD"

    @property
    def key(self) -> str:
        return self.name.lower()
