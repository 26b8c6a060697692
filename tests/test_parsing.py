"""Tests for the text helpers behind the extraction chains."""

from decimal import Decimal

import pytest

from src.crawler.models import Price, compute_discount
from src.crawler.parsing import (
    absolute_url,
    brand_from_url,
    clean_price,
    clean_size_label,
    detect_currency,
    extract_labeled_value,
    gender_from_breadcrumbs,
    infer_gender_from_url,
    is_on_domain,
    looks_like_price,
    normalize_breadcrumbs,
    normalize_image_src,
    page_number_from_url,
    parse_composition,
    sku_from_url,
    upgrade_thumbnail,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("USD 1,200", Decimal("1200")),
        ("$45.99", Decimal("45.99")),
        ("€1.234,50", Decimal("1234.50")),
        ("£99,00", Decimal("99.00")),
        ("$10.99 - $15.99", Decimal("10.99")),
        ("Price on request", None),
        ("", None),
        (None, None),
    ],
)
def test_clean_price(text, expected):
    """Amounts are parsed from display text in both number formats."""
    assert clean_price(text) == expected


def test_detect_currency():
    assert detect_currency("USD 120") == "USD"
    assert detect_currency("€ 99") == "EUR"
    assert detect_currency("£20") == "GBP"
    assert detect_currency("120", default="CHF") == "CHF"


def test_looks_like_price():
    """Brand cells that actually hold a price are recognised."""
    assert looks_like_price("USD 120")
    assert looks_like_price("$ 45")
    assert looks_like_price("eur 9")
    assert not looks_like_price("Gucci")
    assert not looks_like_price("")


def test_brand_from_url():
    """The designer slug at the end of a detail URL becomes a brand."""
    url = "https://www.italist.com/us/women/clothing/dresses/13730148/saint-laurent/"
    assert brand_from_url(url) == "Saint Laurent"
    assert brand_from_url("https://www.italist.com/us/women/13730148/") is None
    assert brand_from_url("https://www.italist.com/item.html") is None
    assert brand_from_url(None) is None


def test_brand_from_single_segment_url():
    """A designer landing page has only the slug in its path."""
    assert brand_from_url("https://www.italist.com/saint-laurent/") == "Saint Laurent"
    assert brand_from_url("https://www.italist.com/") is None


def test_sku_from_url():
    url = "https://www.italist.com/us/women/clothing/dresses/13730148/saint-laurent/"
    assert sku_from_url(url) == "13730148"
    assert sku_from_url("https://www.italist.com/us/women/clothing/2/") is None


def test_infer_gender_from_url():
    assert infer_gender_from_url("https://www.italist.com/us/women/clothing/2/") == "women"
    assert infer_gender_from_url("https://www.italist.com/us/men/shoes/") == "men"
    assert infer_gender_from_url("https://www.italist.com/us/brands/gucci/") is None


def test_normalize_breadcrumbs_promotes_gender():
    """Home is dropped and the gender crumb moves to the front."""
    crumbs = ["Home", "Clothing", "Women", "Dresses"]
    assert normalize_breadcrumbs(crumbs) == ["Women", "Clothing", "Dresses"]


def test_normalize_breadcrumbs_prepends_known_gender():
    assert normalize_breadcrumbs(["Home", "Bags"], gender="men") == ["Men", "Bags"]
    assert normalize_breadcrumbs(["Home", "Bags"]) == ["Bags"]
    assert normalize_breadcrumbs(["Home", "  "]) == []


def test_gender_from_breadcrumbs():
    assert gender_from_breadcrumbs(["Women", "Clothing"]) == "women"
    assert gender_from_breadcrumbs(["Clothing"]) is None
    assert gender_from_breadcrumbs([]) is None


def test_page_number_from_url():
    """Offset style wins over page style; unparseable values mean page 1."""
    base = "https://www.italist.com/us/women/clothing/2/"
    assert page_number_from_url(base, offset_param="skip") == 1
    assert page_number_from_url(base + "?skip=120", offset_param="skip", page_size=60) == 3
    assert page_number_from_url(base + "?page=4") == 4
    assert page_number_from_url(base + "?page=abc") == 1


def test_clean_size_label():
    assert clean_size_label("M Only 1 left") == "M"
    assert clean_size_label("IT 40 2 left") == "IT 40 2"
    assert clean_size_label("Select Size") is None
    assert clean_size_label("x" * 25) is None


def test_extract_labeled_value():
    description = "Silk midi dress\nColor: Black\nComposition: 100% Silk"
    assert extract_labeled_value(description, "Color") == "Black"
    assert extract_labeled_value(description, "Size") is None


def test_parse_composition():
    primary, details = parse_composition("Composition: 80% Wool, 20% Polyester")
    assert primary == "80% Wool"
    assert details == ["80% Wool", "20% Polyester"]
    assert parse_composition("Made in Italy") == (None, [])


def test_image_src_helpers():
    assert normalize_image_src("https://cdn.test/a.jpg 800w, https://cdn.test/b.jpg 1600w") == "https://cdn.test/a.jpg"
    assert normalize_image_src("data:image/gif;base64,R0lGOD") is None
    assert upgrade_thumbnail("https://cdn.test/a_thumb.jpg") == "https://cdn.test/a_large.jpg"


def test_url_helpers():
    assert absolute_url("/us/item/1/", "https://www.italist.com") == "https://www.italist.com/us/item/1/"
    assert absolute_url("https://x.test/a", "https://www.italist.com") == "https://x.test/a"
    assert is_on_domain("https://www.italist.com/us/", "italist.com")
    assert not is_on_domain("https://italist.com.evil.test/", "italist.com")


def test_compute_discount():
    """Discount is zero unless the original price is strictly higher."""
    assert compute_discount(Price(Decimal("960")), Price(Decimal("1200"))) == 0.2
    assert compute_discount(Price(Decimal("100")), Price(Decimal("100"))) == 0.0
    assert compute_discount(Price(Decimal("100")), None) == 0.0
    assert compute_discount(None, Price(Decimal("100"))) == 0.0
