"""Playwright browser lifecycle with stealth context options."""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from playwright.async_api import (
    Browser,
    Page,
    Playwright,
    async_playwright,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from src.config import settings

logger = logging.getLogger(__name__)


class BrowserLaunchError(RuntimeError):
    """The browser could not be started; the run cannot proceed."""


class PageLoadError(Exception):
    """Page failed to load properly."""
    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to load {url}: {reason}")


# Realistic user agents for rotation
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
]

VIEWPORTS = [
    {"width": 1920, "height": 1080},
    {"width": 1536, "height": 864},
    {"width": 1440, "height": 900},
    {"width": 1366, "height": 768},
]

# Stealth browser launch args
STEALTH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-infobars",
    "--disable-extensions",
]

STEALTH_SCRIPTS = [
    # Hide webdriver property
    """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => false
    });
    """,
    # Mock languages
    """
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en']
    });
    """,
    # Mock plugins
    """
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });
    """,
    # Chrome runtime
    """
    window.chrome = {
        runtime: {}
    };
    """,
]


def stealth_context_options() -> dict[str, Any]:
    """Context options with a random realistic fingerprint."""
    return {
        "viewport": random.choice(VIEWPORTS),
        "user_agent": random.choice(USER_AGENTS),
        "locale": "en-US",
        "timezone_id": "America/New_York",
        "ignore_https_errors": True,
        "extra_http_headers": {"Accept-Language": "en-US,en;q=0.9"},
    }


class BrowserSession:
    """One Chromium instance per crawl run; one fresh context per task."""

    def __init__(
        self,
        headless: Optional[bool] = None,
        executable_path: Optional[str] = None,
        navigation_timeout: Optional[float] = None,
    ):
        self.headless = settings.headless if headless is None else headless
        self.executable_path = executable_path or settings.chrome_executable_path or None
        self.navigation_timeout = navigation_timeout or settings.navigation_timeout

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._init_lock = asyncio.Lock()

    async def start(self) -> None:
        """
        Launch the browser if it is not running yet.

        Raises:
            BrowserLaunchError: If Playwright or Chromium cannot start
        """
        async with self._init_lock:
            if self._browser is not None:
                return
            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=STEALTH_ARGS,
                    executable_path=self.executable_path,
                )
            except PlaywrightError as e:
                await self._stop_playwright()
                raise BrowserLaunchError(f"Could not launch Chromium: {e}") from e

            logger.info(
                f"Browser launched (headless={self.headless}, "
                f"executable={self.executable_path or 'bundled'})"
            )

    @asynccontextmanager
    async def new_page(self) -> AsyncIterator[Page]:
        """Open a page in an isolated stealth context; closed on exit."""
        if self._browser is None:
            await self.start()

        context = await self._browser.new_context(**stealth_context_options())
        try:
            for script in STEALTH_SCRIPTS:
                await context.add_init_script(script)
            page = await context.new_page()
            yield page
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.debug(f"Error closing browser context: {e}")

    async def navigate(self, page: Page, url: str) -> None:
        """
        Load ``url`` up to DOMContentLoaded.

        Raises:
            PageLoadError: On timeout or navigation error
        """
        try:
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.navigation_timeout * 1000,
            )
        except PlaywrightTimeoutError:
            raise PageLoadError(url, "Navigation timeout")
        except PlaywrightError as e:
            raise PageLoadError(url, str(e))

    async def close(self):
        """Close browser and cleanup."""
        if self._browser:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.error(f"Error closing browser: {e}")
            self._browser = None
        await self._stop_playwright()

    async def _stop_playwright(self) -> None:
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
