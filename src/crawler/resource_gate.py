"""Network request filtering for crawl pages."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from urllib.parse import urlparse

from playwright.async_api import Page, Route, Error as PlaywrightError

logger = logging.getLogger(__name__)

ASSET_EXTENSION_PATTERN = re.compile(
    r"\.(png|jpe?g|gif|webp|svg|css|woff2?|eot|ttf|otf)(\?|$)",
    re.IGNORECASE,
)


@dataclass
class ResourceRules:
    """Per-site allow/deny rules for outbound browser requests."""

    blocked_resource_types: frozenset[str] = frozenset({"image", "font", "stylesheet", "media"})
    # Assets matching any of these are product imagery and always load
    allowed_asset_markers: tuple[str, ...] = ()
    blocked_path_markers: tuple[str, ...] = ("/analytics/", "/tracking/", "/telemetry/", "/stats/")
    api_marker: str = "/api/"
    allowed_api_prefixes: tuple[str, ...] = ()
    blocked_domains: tuple[str, ...] = (
        "google-analytics.com",
        "googletagmanager.com",
        "doubleclick.net",
        "hotjar.com",
        "connect.facebook.net",
        "bat.bing.com",
    )


@dataclass
class ResourceGate:
    """Installs a route handler that aborts requests the rules deny."""

    rules: ResourceRules = field(default_factory=ResourceRules)
    enabled: bool = True
    blocked_count: int = 0
    allowed_count: int = 0

    def should_allow(self, url: str, resource_type: str = "other") -> bool:
        """
        Decide whether a request may proceed.

        Args:
            url: Request URL
            resource_type: Playwright resource type ("document", "image", ...)

        Returns:
            True to continue the request, False to abort it
        """
        if resource_type == "document":
            return True

        parsed = urlparse(url)
        host = parsed.netloc.lower()
        path = parsed.path.lower()
        lowered = url.lower()

        if any(host == domain or host.endswith("." + domain) for domain in self.rules.blocked_domains):
            return False

        is_asset = resource_type in self.rules.blocked_resource_types or bool(
            ASSET_EXTENSION_PATTERN.search(path)
        )
        if is_asset:
            return any(marker in lowered for marker in self.rules.allowed_asset_markers)

        if any(marker in path for marker in self.rules.blocked_path_markers):
            return False

        if self.rules.api_marker and self.rules.api_marker in path:
            return any(prefix in path for prefix in self.rules.allowed_api_prefixes)

        return True

    async def install(self, page: Page) -> None:
        """Route every request on ``page`` through the gate."""
        if not self.enabled:
            return
        await page.route("**/*", self._handle)

    async def _handle(self, route: Route) -> None:
        request = route.request
        try:
            if self.should_allow(request.url, request.resource_type):
                self.allowed_count += 1
                await route.continue_()
            else:
                self.blocked_count += 1
                await route.abort()
        except PlaywrightError as e:
            # Page closed while the request was in flight
            logger.debug(f"Route handling failed for {request.url}: {e}")
