"""Field extraction chains.

A site adapter declares, for every product attribute, an ordered list of
strategies (primary selector, alternate selectors, URL or breadcrumb
derivation, listing-card fallback). :class:`FieldChain` runs them in order and
keeps the first value that survives its :class:`FieldRule`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from playwright.async_api import Error as PlaywrightError

from src.crawler.models import PartialProduct, Price
from src.crawler.parsing import (
    PRICE_LIKE_PATTERN,
    clean_price,
    collapse_whitespace,
    dedupe_preserving_order,
    detect_currency,
)

logger = logging.getLogger(__name__)

Transform = Callable[[str], Any]


@dataclass
class ExtractionContext:
    """Everything a strategy may look at.

    ``scope`` is either a Playwright page or a card element handle; both
    expose ``query_selector`` / ``query_selector_all``.
    """

    scope: Any
    url: str
    partial: Optional[PartialProduct] = None
    gender: Optional[str] = None
    default_currency: str = "USD"
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass
class Strategy:
    """One named way of producing a raw field value."""

    name: str
    func: Callable[[ExtractionContext], Awaitable[Any]]

    async def __call__(self, ctx: ExtractionContext) -> Any:
        return await self.func(ctx)


@dataclass
class FieldRule:
    """Shape rules a candidate value must pass.

    Strings are whitespace-collapsed (or just stripped) first. Lists are validated element-wise;
    failing elements are dropped and duplicates removed.
    """

    max_length: Optional[int] = None
    min_length: int = 1
    reject_patterns: tuple[re.Pattern, ...] = ()
    reject_substrings: tuple[str, ...] = ()
    collapse: bool = True  # False keeps line breaks for label parsing

    def check_text(self, value: Optional[str]) -> Optional[str]:
        if self.collapse:
            value = collapse_whitespace(value)
        elif value is not None:
            value = value.strip()
        if not value or len(value) < self.min_length:
            return None
        if self.max_length is not None and len(value) > self.max_length:
            return None
        if any(pattern.search(value) for pattern in self.reject_patterns):
            return None
        if any(sub in value for sub in self.reject_substrings):
            return None
        return value

    def apply(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            return self.check_text(value)
        if isinstance(value, (list, tuple)):
            cleaned = [self.check_text(v) if isinstance(v, str) else v for v in value]
            cleaned = dedupe_preserving_order(v for v in cleaned if v)
            return cleaned or None
        if isinstance(value, Price) and value.amount is None:
            return None
        return value


NOT_PRICE_LIKE = FieldRule(max_length=50, reject_patterns=(PRICE_LIKE_PATTERN,))


@dataclass
class FieldChain:
    """Ordered fallback strategies for one product attribute."""

    name: str
    strategies: list[Strategy]
    rule: FieldRule = field(default_factory=FieldRule)
    # Merge list values from every strategy instead of stopping at the first
    accumulate: bool = False

    async def extract(self, ctx: ExtractionContext) -> Any:
        """
        Run the strategies against ``ctx``.

        Args:
            ctx: Extraction context

        Returns:
            The first accepted value (or merged list when accumulating), else None
        """
        collected: list[Any] = []

        for strategy in self.strategies:
            try:
                raw = await strategy(ctx)
            except (PlaywrightError, ValueError) as e:
                logger.debug(f"{self.name}: strategy {strategy.name} raised {type(e).__name__}: {e}")
                continue

            value = self.rule.apply(raw)
            if value is None:
                if raw not in (None, "", []):
                    logger.debug(f"{self.name}: rejected {raw!r} from {strategy.name}")
                continue

            if not self.accumulate:
                logger.debug(f"{self.name}: accepted value from {strategy.name}")
                return value
            collected.extend(value if isinstance(value, list) else [value])

        if self.accumulate and collected:
            return dedupe_preserving_order(collected)
        return None


async def run_chains(chains: list[FieldChain], ctx: ExtractionContext) -> dict[str, Any]:
    """Run chains in declaration order; later chains can read earlier results."""
    for chain in chains:
        ctx.fields[chain.name] = await chain.extract(ctx)
    return ctx.fields


# =============================================================================
# Strategy factories
# =============================================================================


def _apply(transform: Optional[Transform], value: Optional[str]) -> Any:
    if value is None:
        return None
    return transform(value) if transform else value


def text(selector: str, transform: Optional[Transform] = None) -> Strategy:
    """Text content of the first element matching ``selector``."""
    async def run(ctx: ExtractionContext) -> Any:
        element = await ctx.scope.query_selector(selector)
        if element is None:
            return None
        return _apply(transform, await element.text_content())
    return Strategy(f"text({selector})", run)


def texts(selector: str, transform: Optional[Transform] = None) -> Strategy:
    """Text content of every element matching ``selector``."""
    async def run(ctx: ExtractionContext) -> Any:
        values = []
        for element in await ctx.scope.query_selector_all(selector):
            value = _apply(transform, await element.text_content())
            if value:
                values.append(value)
        return values
    return Strategy(f"texts({selector})", run)


def attr(selector: Optional[str], *names: str, transform: Optional[Transform] = None) -> Strategy:
    """First non-empty attribute of the first matching element (or the scope itself)."""
    async def run(ctx: ExtractionContext) -> Any:
        element = ctx.scope if selector is None else await ctx.scope.query_selector(selector)
        if element is None:
            return None
        for name in names:
            value = await element.get_attribute(name)
            if value and value.strip():
                return _apply(transform, value)
        return None
    return Strategy(f"attr({selector}, {'|'.join(names)})", run)


def attrs(selector: str, *names: str, transform: Optional[Transform] = None) -> Strategy:
    """First non-empty attribute of every matching element."""
    async def run(ctx: ExtractionContext) -> Any:
        values = []
        for element in await ctx.scope.query_selector_all(selector):
            for name in names:
                value = await element.get_attribute(name)
                if value and value.strip():
                    transformed = _apply(transform, value)
                    if transformed:
                        values.append(transformed)
                    break
        return values
    return Strategy(f"attrs({selector}, {'|'.join(names)})", run)


def price(selector: str) -> Strategy:
    """Price parsed from the first matching element's text."""
    async def run(ctx: ExtractionContext) -> Optional[Price]:
        element = await ctx.scope.query_selector(selector)
        if element is None:
            return None
        raw = await element.text_content()
        amount = clean_price(raw)
        if amount is None:
            return None
        return Price(amount=amount, currency=detect_currency(raw, ctx.default_currency))
    return Strategy(f"price({selector})", run)


def from_url(derive: Callable[[str], Any]) -> Strategy:
    """Value derived from the context URL."""
    async def run(ctx: ExtractionContext) -> Any:
        return derive(ctx.url)
    return Strategy(f"from_url({getattr(derive, '__name__', 'derive')})", run)


def from_field(name: str, derive: Callable[[Any], Any]) -> Strategy:
    """Value derived from a field an earlier chain already extracted."""
    async def run(ctx: ExtractionContext) -> Any:
        value = ctx.fields.get(name)
        if not value:
            return None
        return derive(value)
    return Strategy(f"from_field({name})", run)


def from_partial(name: str) -> Strategy:
    """The listing-card value carried into the detail task."""
    async def run(ctx: ExtractionContext) -> Any:
        if ctx.partial is None:
            return None
        return getattr(ctx.partial, name, None)
    return Strategy(f"from_partial({name})", run)
