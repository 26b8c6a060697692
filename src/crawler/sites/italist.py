"""Italist (www.italist.com) site adapter."""

import re
from typing import Optional

from src.crawler.extraction import (
    NOT_PRICE_LIKE,
    FieldChain,
    FieldRule,
    attr,
    attrs,
    from_field,
    from_partial,
    from_url,
    price,
    text,
    texts,
)
from src.crawler.interstitial import InterstitialConfig
from src.crawler.parsing import (
    brand_from_url,
    clean_size_label,
    extract_labeled_value,
    normalize_image_src,
    parse_composition,
    sku_from_url,
    strip_label,
    upgrade_thumbnail,
)
from src.crawler.resource_gate import ResourceRules
from src.crawler.sites.base import SiteAdapter

SKU_LABELS = ("Product code:", "Model number:")

GALLERY = ':is(.product-gallery, div[class*="gallery"], div[class*="carousel"])'
MAIN_IMAGES = f'{GALLERY} :is(img[class*="main-image"], .product-image-main, picture img)'
THUMBNAILS = f'{GALLERY} :is(img[class*="thumbnail"], .product-thumbnail img)'


def _brand_from_breadcrumbs(crumbs: list[str]) -> Optional[str]:
    last = crumbs[-1]
    if last[:1].isdigit() or len(last) >= 30:
        return None
    return last


def _color_from_description(description: str) -> Optional[str]:
    return extract_labeled_value(description, "Color")


def _color_from_paragraph(paragraph: str) -> Optional[str]:
    return extract_labeled_value(paragraph, "Color", r":;.\n")


def _materials(block: str) -> list[str]:
    return parse_composition(block)[1]


def _size_from_description(description: str) -> list[str]:
    match = re.search(r"Size(?: and fit)?:?\s*([\w\s.]+)", description, re.IGNORECASE)
    if not match:
        return []
    size = clean_size_label(match.group(1).strip())
    return [size] if size else []


def _selected_size(placeholder: str) -> list[str]:
    if "Selected Size:" not in placeholder:
        return []
    return [strip_label(placeholder, ["Selected Size:"])]


def _thumbnail_src(src: str) -> Optional[str]:
    cleaned = normalize_image_src(src)
    return upgrade_thumbnail(cleaned) if cleaned else None


NO_DATA_URI = FieldRule(reject_patterns=(re.compile(r"^data:"),))
TAG_RULE = FieldRule(min_length=2, max_length=49, reject_patterns=(re.compile(r"^http"),))

CARD_FIELDS = [
    FieldChain(
        "brand",
        [
            text("div.brand"),
            text("div[class*='brand']:not([class*='price'])"),
            from_url(brand_from_url),
        ],
        NOT_PRICE_LIKE,
    ),
    FieldChain("name", [text("div.productName")], FieldRule(max_length=200)),
    FieldChain(
        "current_price",
        [price("span.sales-price"), price("div.price > div > span.price")],
    ),
    FieldChain("original_price", [price("span.old-price")]),
    FieldChain(
        "images",
        [attr("img.firstImage", "src", "data-src", transform=normalize_image_src)],
        NO_DATA_URI,
    ),
    FieldChain("tags", [texts("div.season")], TAG_RULE),
]

DETAIL_FIELDS = [
    FieldChain(
        "breadcrumbs",
        [
            texts('.breadcrumbs-row :is(a.breadcrumbs-link, a[data-cy^="link-breadcrumb-"])'),
            texts('div[class*="breadcrumbs"] :is(a.breadcrumbs-link, a[data-cy^="link-breadcrumb-"])'),
        ],
    ),
    FieldChain(
        "name",
        [
            text('[data-test="product-name"]'),
            text("h1.product-name"),
            text('h1[data-cy="product-name"]'),
            from_partial("name"),
        ],
        FieldRule(max_length=200),
    ),
    FieldChain(
        "brand",
        [
            text('[data-test="product-brand-name"]'),
            text(".product-info-brand"),
            text("h1 + div"),
            from_url(brand_from_url),
            from_field("breadcrumbs", _brand_from_breadcrumbs),
            from_partial("brand"),
        ],
        NOT_PRICE_LIKE,
    ),
    FieldChain(
        "current_price",
        [
            price('[data-test="product-price-final"]'),
            price(".sales-price"),
            price(".product-price"),
            from_partial("current_price"),
        ],
    ),
    FieldChain(
        "original_price",
        [
            price('[data-test="product-price-original"]'),
            price(".old-price"),
            price(".product-price-original"),
            from_partial("original_price"),
        ],
    ),
    FieldChain(
        "description",
        [
            text(".description-container"),
            text('div[class*="description"]'),
            text(".accordion-content"),
        ],
        FieldRule(collapse=False),
    ),
    FieldChain(
        "sku",
        [
            text('[data-test="product-sku"]', lambda t: strip_label(t, SKU_LABELS)),
            text('p:has-text("Product code:")', lambda t: strip_label(t, SKU_LABELS)),
            text('p:has-text("Model number:")', lambda t: strip_label(t, SKU_LABELS)),
            from_url(sku_from_url),
        ],
        FieldRule(max_length=64),
    ),
    FieldChain(
        "color",
        [
            from_field("description", _color_from_description),
            text('p:has-text("Color:") span'),
            text('p:has-text("Color:")', _color_from_paragraph),
        ],
        FieldRule(max_length=20, reject_substrings=("Size", "Model")),
    ),
    FieldChain(
        "material_details",
        [
            from_field("description", _materials),
            text('p:has-text("Composition:")', _materials),
            text('p:has-text("Material:")', _materials),
        ],
    ),
    FieldChain(
        "sizes",
        [
            texts("ul.dropdown li .size-option", clean_size_label),
            texts(".size-option", clean_size_label),
            text('div[data-testid="size-selector"] button .placeholder', _selected_size),
            from_field("description", _size_from_description),
        ],
        FieldRule(max_length=20),
    ),
    FieldChain(
        "images",
        [
            attrs(MAIN_IMAGES, "src", "data-src", "data-srcset", transform=normalize_image_src),
            attrs(THUMBNAILS, "data-large-url", "data-full-src", "src", "data-src", transform=_thumbnail_src),
            from_partial("images"),
        ],
        NO_DATA_URI,
        accumulate=True,
    ),
    FieldChain(
        "tags",
        [
            from_partial("tags"),
            texts('span[class*="tag"]'),
            texts('div[class*="label"]'),
            texts('a[href*="/sets/"]'),
        ],
        TAG_RULE,
        accumulate=True,
    ),
]

ITALIST = SiteAdapter(
    name="Italist",
    domain="italist.com",
    base_url="https://www.italist.com",
    list_container_selector="div#product-list-pagination-container",
    card_selector="div.product-grid-container > a",
    card_fields=CARD_FIELDS,
    total_count_selector="span[data-cy='total-count'] span.result-count",
    products_per_row=4,
    next_page_selectors=[
        "div.pagination-wrapper div.navigation-next > a[href]",
        "div.pagination-wrapper a[data-testid='next-pagination-arrow']",
    ],
    page_param="page",
    offset_param="skip",
    page_size=60,
    detail_fields=DETAIL_FIELDS,
    detail_ready_selector='.breadcrumbs-row, div[class*="breadcrumbs"]',
    interstitial=InterstitialConfig(
        close_selectors=[
            'button[id="el_kj1d-fdug3"][aria-label="Close"]',
            'div[id^="el_"][class*="animation"] button[aria-label="Close"]',
            'button[type="button"][aria-label="Close"]',
            'button[aria-label="Close"]',
            'button[id*="close"]',
            'div[class*="popup"] button',
            'div[class*="modal"] button',
        ],
        overlay_selectors=[
            'div[class*="modal"]',
            'div[class*="popup"]',
            'div[id^="el_"][class*="animation"]',
        ],
        gender_buttons={
            "women": ['button[id="el_7YnBwnzfFp"]', 'button:has(div:text-is("Women"))'],
            "men": ['button[id="el_MMRzN7oy2u"]', 'button:has(div:text-is("Men"))'],
            "both": ['button[id="el_84W_QqvYZAm"]', 'button:has(div:text-is("Both"))'],
        },
    ),
    resource_rules=ResourceRules(
        allowed_asset_markers=("/image/upload/", "cdn-images.italist.com"),
        allowed_api_prefixes=("/api/products", "/api/catalog"),
    ),
)
