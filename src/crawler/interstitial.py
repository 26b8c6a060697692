"""Interstitial (popup/modal) dismissal.

Every task runs its page through :class:`InterstitialHandler` before any
extraction. The handler is a small state machine:

    UNCHECKED -> SCANNING -> DISMISSED | NOT_FOUND

Each step is time-bounded and the handler never raises; a persistent overlay
is logged as a warning and extraction proceeds anyway.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from playwright.async_api import Page, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from src.config import settings
from src import metrics

logger = logging.getLogger(__name__)

# Returns true while any element matching the selector is still rendered
OVERLAY_VISIBLE_SCRIPT = """
(selector) => {
    for (const el of document.querySelectorAll(selector)) {
        const style = window.getComputedStyle(el);
        if (style.display !== "none" && style.visibility !== "hidden" && style.opacity !== "0") {
            return true;
        }
    }
    return false;
}
"""


class InterstitialState(str, Enum):
    UNCHECKED = "unchecked"
    SCANNING = "scanning"
    DISMISSED = "dismissed"
    NOT_FOUND = "not_found"


@dataclass
class InterstitialConfig:
    """Selectors describing a site's popups."""

    close_selectors: list[str] = field(default_factory=list)
    overlay_selectors: list[str] = field(default_factory=list)
    # Preference dialogs: choice ("women", "men", "both") -> button selectors
    gender_buttons: dict[str, list[str]] = field(default_factory=dict)
    fallback_click: Optional[tuple[int, int]] = (50, 50)


@dataclass
class InterstitialOutcome:
    """What happened on one page."""

    state: InterstitialState = InterstitialState.UNCHECKED
    dismissed_by: Optional[str] = None
    escape_sent: bool = False
    overlay_remaining: bool = False
    history: list[InterstitialState] = field(default_factory=list)

    def transition(self, state: InterstitialState) -> None:
        self.history.append(self.state)
        self.state = state


class InterstitialHandler:
    """Detects and dismisses modal overlays before extraction."""

    def __init__(
        self,
        config: InterstitialConfig,
        site: str = "",
        network_idle_timeout: Optional[float] = None,
        step_timeout: Optional[float] = None,
        settle_ms: int = 1000,
    ):
        self.config = config
        self.site = site
        self.network_idle_timeout = network_idle_timeout or settings.network_idle_timeout
        self.step_timeout = step_timeout or settings.selector_timeout
        self.settle_ms = settle_ms

    async def clear(self, page: Page, gender: Optional[str] = None) -> InterstitialOutcome:
        """
        Run the dismissal pipeline on a freshly loaded page.

        Args:
            page: Playwright page
            gender: Inferred gender of the task, used for preference dialogs

        Returns:
            InterstitialOutcome describing the final state
        """
        outcome = InterstitialOutcome()
        outcome.transition(InterstitialState.SCANNING)

        try:
            await self._wait_for_network_idle(page)

            dismissed_by = await self._try_close_selectors(page)
            if dismissed_by is None:
                await page.keyboard.press("Escape")
                outcome.escape_sent = True
                logger.debug(f"[{self.site}] No close control matched, sent Escape")

            chosen = await self._choose_preference(page, gender)
            dismissed_by = dismissed_by or chosen

            outcome.overlay_remaining = await self._overlay_visible(page)
            if outcome.overlay_remaining and self.config.fallback_click:
                x, y = self.config.fallback_click
                logger.warning(f"[{self.site}] Overlay still visible on {page.url}, clicking backdrop")
                await page.mouse.click(x, y)
                await page.wait_for_timeout(self.settle_ms)
                outcome.overlay_remaining = await self._overlay_visible(page)
                if not outcome.overlay_remaining:
                    dismissed_by = dismissed_by or "backdrop"

        except PlaywrightError as e:
            logger.warning(f"[{self.site}] Interstitial handling error on {page.url}: {e}")
            dismissed_by = None

        outcome.dismissed_by = dismissed_by
        if dismissed_by:
            outcome.transition(InterstitialState.DISMISSED)
        else:
            outcome.transition(InterstitialState.NOT_FOUND)

        if outcome.overlay_remaining:
            logger.warning(f"[{self.site}] Persistent overlay on {page.url}; continuing with extraction")

        metrics.record_interstitial(
            self.site,
            "overlay_remaining" if outcome.overlay_remaining else outcome.state.value,
        )
        return outcome

    async def _wait_for_network_idle(self, page: Page) -> None:
        try:
            await page.wait_for_load_state("networkidle", timeout=self.network_idle_timeout * 1000)
        except PlaywrightTimeoutError:
            logger.debug(f"[{self.site}] Network idle wait timed out on {page.url}")

    async def _try_close_selectors(self, page: Page) -> Optional[str]:
        """Click the first close control that exists and verify it went away."""
        for selector in self.config.close_selectors:
            try:
                if await page.query_selector(selector) is None:
                    continue
                logger.debug(f"[{self.site}] Found popup close control: {selector}")
                await page.click(selector, force=True, timeout=self.step_timeout * 1000)
                await page.wait_for_timeout(self.settle_ms)
                if await page.query_selector(selector) is None:
                    logger.info(f"[{self.site}] Closed popup via {selector}")
                    return selector
            except PlaywrightError as e:
                logger.debug(f"[{self.site}] Close selector {selector} failed: {e}")
        return None

    async def _choose_preference(self, page: Page, gender: Optional[str]) -> Optional[str]:
        """Answer a gender-preference dialog when one is showing."""
        if not self.config.gender_buttons:
            return None

        choice = gender if gender in self.config.gender_buttons else "both"
        for selector in self.config.gender_buttons.get(choice, []):
            try:
                if await page.query_selector(selector) is None:
                    continue
                await page.click(selector, force=True, timeout=self.step_timeout * 1000)
                await page.wait_for_timeout(self.settle_ms)
                logger.info(f"[{self.site}] Selected '{choice}' in preference dialog")
                return selector
            except PlaywrightError as e:
                logger.debug(f"[{self.site}] Preference button {selector} failed: {e}")
        return None

    async def _overlay_visible(self, page: Page) -> bool:
        if not self.config.overlay_selectors:
            return False
        selector = ", ".join(self.config.overlay_selectors)
        return bool(await page.evaluate(OVERLAY_VISIBLE_SCRIPT, selector))
