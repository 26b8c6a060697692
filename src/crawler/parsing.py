"""Pure text helpers used by the extraction chains.

Nothing in here touches a browser; every function takes strings and returns
plain values so the shape rules can be tested without Playwright.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional
from urllib.parse import parse_qs, urljoin, urlparse

logger = logging.getLogger(__name__)

CURRENCY_CODES = ("USD", "EUR", "GBP", "JPY", "CNY", "CHF", "AUD", "CAD", "HKD")
CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP", "¥": "JPY"}

# A string that starts like a money amount ("USD 120", "€ 99,00", "$45")
PRICE_LIKE_PATTERN = re.compile(
    r"^\s*(?:(?:%s)\s*\d|[$€£¥]\s*\d)" % "|".join(CURRENCY_CODES),
    re.IGNORECASE,
)

GENDER_ALIASES = {
    "men": "men",
    "man": "men",
    "women": "women",
    "woman": "women",
}

SIZE_PLACEHOLDERS = {"select size", "size", "select a size"}


def looks_like_price(text: Optional[str]) -> bool:
    """True if the text starts with a currency code or symbol followed by a digit."""
    if not text:
        return False
    return bool(PRICE_LIKE_PATTERN.match(text))


def collapse_whitespace(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return re.sub(r"\s+", " ", text).strip()


def clean_price(price_text: Optional[str]) -> Optional[Decimal]:
    """
    Parse a price amount from display text.

    Handles currency codes and symbols, thousands separators and ranges
    ("$10.99 - $15.99" yields the first price).

    Args:
        price_text: Raw price text from the page

    Returns:
        Decimal amount or None if nothing numeric was found
    """
    if not price_text:
        return None

    cleaned = price_text.strip()
    for sep in (" - ", " – "):
        if sep in cleaned:
            cleaned = cleaned.split(sep)[0]

    for code in CURRENCY_CODES:
        cleaned = re.sub(code, "", cleaned, flags=re.IGNORECASE)
    for symbol in CURRENCY_SYMBOLS:
        cleaned = cleaned.replace(symbol, "")

    match = re.search(r"\d[\d.,]*", cleaned)
    if not match:
        return None

    number = match.group().rstrip(".,")
    # European format "1.234,50" -> "1234.50"
    if re.fullmatch(r"\d{1,3}(?:\.\d{3})+,\d{1,2}", number) or re.fullmatch(r"\d+,\d{1,2}", number):
        number = number.replace(".", "").replace(",", ".")
    else:
        number = number.replace(",", "")

    try:
        return Decimal(number)
    except InvalidOperation as exc:
        logger.debug("Failed to parse price: %s", price_text, exc_info=exc)
        return None


def detect_currency(price_text: Optional[str], default: str = "USD") -> str:
    """Best-effort currency code from display text."""
    if not price_text:
        return default
    upper = price_text.upper()
    for code in CURRENCY_CODES:
        if code in upper:
            return code
    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in price_text:
            return code
    return default


def infer_gender_from_url(url: Optional[str]) -> Optional[str]:
    """Gender hint encoded in a listing URL path ("/women", "/men")."""
    if not url:
        return None
    lowered = url.lower()
    if "/women" in lowered:
        return "women"
    if "/men" in lowered:
        return "men"
    return None


def normalize_gender(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    return GENDER_ALIASES.get(text.strip().lower())


def title_case(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split())


def _path_segments(url: str) -> list[str]:
    return [part for part in urlparse(url).path.split("/") if part.strip()]


def brand_from_url(url: Optional[str]) -> Optional[str]:
    """
    Infer a brand from the last URL path segment.

    Detail URLs end in the designer slug, e.g. ``.../13730148/saint-laurent/``.
    """
    if not url:
        return None
    segments = _path_segments(url)
    if not segments:
        return None

    candidate = segments[-1].replace("-", " ").strip()
    if (
        len(candidate) <= 1
        or len(candidate) >= 30
        or candidate[0].isdigit()
        or "." in candidate
        or "html" in candidate.lower()
    ):
        return None
    return title_case(candidate)


def sku_from_url(url: Optional[str], min_digits: int = 7) -> Optional[str]:
    """Pick the product id out of a detail URL (a long all-digit segment)."""
    if not url:
        return None
    segments = _path_segments(url)
    pattern = re.compile(r"^\d{%d,}$" % min_digits)

    for index in (-2, -1):
        if len(segments) >= abs(index) and pattern.match(segments[index]):
            return segments[index]
    for segment in segments:
        if pattern.match(segment):
            return segment
    return None


def strip_label(text: Optional[str], labels: Iterable[str]) -> Optional[str]:
    """Remove a leading "Label:" prefix (case-insensitive)."""
    if text is None:
        return None
    stripped = text.strip()
    for label in labels:
        if stripped.lower().startswith(label.lower()):
            return stripped[len(label):].strip()
    return stripped


def extract_labeled_value(
    text: Optional[str],
    label: str,
    stop_chars: str = r"<\n\r.,;",
) -> Optional[str]:
    """Value following ``label:`` in free text, up to the first stop character."""
    if not text:
        return None
    match = re.search(r"%s:\s*([^%s]+)" % (re.escape(label), stop_chars), text, re.IGNORECASE)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def parse_composition(text: Optional[str]) -> tuple[Optional[str], list[str]]:
    """
    Split a composition line into its primary material and all parts.

    "Composition: 80% Wool, 20% Polyester" -> ("80% Wool", ["80% Wool", "20% Polyester"])
    """
    if not text:
        return None, []
    for label in ("Composition", "Material"):
        match = re.search(r"%s:\s*([^<\n\r]+)" % label, text, re.IGNORECASE)
        if match:
            details = [part.strip() for part in match.group(1).split(",") if part.strip()]
            return (details[0] if details else None), details
    return None, []


def clean_size_label(text: Optional[str], max_length: int = 20) -> Optional[str]:
    """Strip stock hints ("Only 2 left") and placeholders from a size option."""
    if not text:
        return None
    value = text
    if "Only" in value:
        value = value.split("Only")[0]
    elif "left" in value:
        value = value.split("left")[0]
    value = collapse_whitespace(value) or ""
    if not value or len(value) >= max_length or value.lower() in SIZE_PLACEHOLDERS:
        return None
    return value


def dedupe_preserving_order(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def normalize_image_src(src: Optional[str]) -> Optional[str]:
    """Reduce src/data-src/srcset values to one usable URL; drop data URIs."""
    if not src:
        return None
    value = src.strip()
    if "," in value:
        value = value.split(",")[0].strip()
    # srcset candidates carry a width descriptor ("url 800w")
    value = value.split(" ")[0].strip()
    if not value or value.startswith("data:"):
        return None
    return value


def upgrade_thumbnail(url: str) -> str:
    """Point a thumbnail URL at its large rendition."""
    return re.sub(r"_small|_thumb|_tn", "_large", url, flags=re.IGNORECASE)


def normalize_breadcrumbs(crumbs: Iterable[str], gender: Optional[str] = None) -> list[str]:
    """
    Clean a breadcrumb trail and promote the gender segment to the front.

    Empty entries and "Home" are dropped. A gender crumb anywhere in the trail
    is moved to position 0; if the trail has none and a gender is known, the
    capitalised gender is prepended.
    """
    cleaned = [
        text for text in (collapse_whitespace(c) for c in crumbs)
        if text and text.lower() != "home"
    ]
    if not cleaned:
        return []

    for index, crumb in enumerate(cleaned):
        if normalize_gender(crumb):
            if index:
                cleaned.insert(0, cleaned.pop(index))
            return cleaned

    if gender:
        cleaned.insert(0, gender[:1].upper() + gender[1:])
    return cleaned


def gender_from_breadcrumbs(crumbs: Iterable[str]) -> Optional[str]:
    crumbs = list(crumbs)
    if not crumbs:
        return None
    return normalize_gender(crumbs[0])


def absolute_url(href: Optional[str], base_url: str) -> Optional[str]:
    if not href:
        return None
    href = href.strip()
    if href.startswith("http"):
        return href
    return urljoin(base_url, href)


def is_on_domain(url: Optional[str], domain: str) -> bool:
    """True if the URL's host is the site domain or one of its subdomains."""
    if not url:
        return False
    host = urlparse(url).netloc.lower()
    domain = domain.lower()
    return host == domain or host.endswith("." + domain)


def page_number_from_url(
    url: str,
    page_param: str = "page",
    offset_param: Optional[str] = None,
    page_size: int = 60,
) -> int:
    """
    Implied listing page number.

    Offset style (``?skip=120`` with 60 per page -> 3) wins over page-index
    style (``?page=3``). Anything unparseable counts as page 1.
    """
    try:
        query = parse_qs(urlparse(url).query)
        if offset_param and query.get(offset_param):
            return int(query[offset_param][0]) // page_size + 1
        if query.get(page_param):
            return max(int(query[page_param][0]), 1)
    except (ValueError, ZeroDivisionError):
        logger.warning(f"Could not parse page number from {url}")
    return 1
