"""Site adapter registry."""

import logging

from src.crawler.sites.base import SiteAdapter
from src.crawler.sites.italist import ITALIST

logger = logging.getLogger(__name__)


class SiteRegistry:
    """Registry of declarative site adapters keyed by lower-case name."""

    _adapters: dict[str, SiteAdapter] = {
        "italist": ITALIST,
    }

    @classmethod
    def get_adapter(cls, site: str) -> SiteAdapter:
        """
        Look up the adapter for a site.

        Args:
            site: Site name (case-insensitive)

        Returns:
            SiteAdapter

        Raises:
            ValueError: If the site is not registered
        """
        key = (site or "").strip().lower()
        if key not in cls._adapters:
            raise ValueError(
                f"Unknown site: {site}. Available: {list(cls._adapters.keys())}"
            )
        return cls._adapters[key]

    @classmethod
    def register_adapter(cls, adapter: SiteAdapter) -> None:
        """Register (or replace) an adapter under its lower-case name."""
        cls._adapters[adapter.key] = adapter
        logger.info(f"Registered site adapter: {adapter.key}")

    @classmethod
    def list_sites(cls) -> list[str]:
        return list(cls._adapters.keys())


def get_site_adapter(site: str) -> SiteAdapter:
    """Convenience wrapper around :meth:`SiteRegistry.get_adapter`."""
    return SiteRegistry.get_adapter(site)


__all__ = ["SiteAdapter", "SiteRegistry", "get_site_adapter"]
