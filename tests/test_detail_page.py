"""Tests for detail page extraction."""

from decimal import Decimal

import pytest

from src.crawler.detail_page import DetailPageExtractor
from src.crawler.models import CrawlTask, PartialProduct, Price, TaskKind
from src.crawler.sites.italist import ITALIST, MAIN_IMAGES, THUMBNAILS
from tests.fakes import FakeElement, FakePage

SEED = "https://www.italist.com/us/women/clothing/2/"
PRODUCT_URL = "https://www.italist.com/us/women/clothing/dresses/13730148/saint-laurent/"
BREADCRUMBS = '.breadcrumbs-row :is(a.breadcrumbs-link, a[data-cy^="link-breadcrumb-"])'


def detail_elements():
    return {
        ITALIST.detail_ready_selector: [FakeElement()],
        BREADCRUMBS: [FakeElement(t) for t in ("Home", "Clothing", "Women", "Dresses")],
        '[data-test="product-name"]': [FakeElement("Silk midi dress")],
        '[data-test="product-brand-name"]': [FakeElement("Saint Laurent")],
        '[data-test="product-price-final"]': [FakeElement("USD 960")],
        '[data-test="product-price-original"]': [FakeElement("USD 1,200")],
        ".description-container": [FakeElement(
            "Silk midi dress with draped neckline.\nColor: Black\nComposition: 100% Silk\n"
        )],
        '[data-test="product-sku"]': [FakeElement("Product code: 605432Y5B21")],
        "ul.dropdown li .size-option": [FakeElement("S"), FakeElement("M Only 1 left")],
        MAIN_IMAGES: [FakeElement(attrs={"src": "https://cdn-images.italist.com/a_main.jpg"})],
        THUMBNAILS: [FakeElement(attrs={"src": "https://cdn-images.italist.com/b_thumb.jpg"})],
    }


def detail_task(partial=None, gender=None):
    return CrawlTask(
        url=PRODUCT_URL,
        kind=TaskKind.DETAIL,
        seed_id=SEED,
        partial=partial,
        gender=gender,
    )


@pytest.mark.asyncio
async def test_full_product_is_extracted(log_sink):
    page = FakePage(detail_elements(), url=PRODUCT_URL)
    partial = PartialProduct(
        images=["https://cdn-images.italist.com/c_plp.jpg"],
        tags=["FW24"],
    )

    product = await DetailPageExtractor(ITALIST, log_sink).extract(page, detail_task(partial), "exec-1")

    assert product.source == "Italist"
    assert product.name == "Silk midi dress"
    assert product.brand == "Saint Laurent"
    assert product.current_price == Price(Decimal("960"), "USD")
    assert product.original_price == Price(Decimal("1200"), "USD")
    assert product.discount == 0.2
    assert product.breadcrumbs == ("Women", "Clothing", "Dresses")
    assert product.gender == "women"
    assert product.color == "Black"
    assert product.designer_color_name == "Black"
    assert product.material == "100% Silk"
    assert product.material_details == ("100% Silk",)
    assert product.sku == "605432Y5B21"
    assert product.sizes == ("S", "M")
    assert product.images == (
        "https://cdn-images.italist.com/a_main.jpg",
        "https://cdn-images.italist.com/b_large.jpg",
        "https://cdn-images.italist.com/c_plp.jpg",
    )
    assert product.tags == ("FW24",)
    assert product.description.startswith("Silk midi dress with draped neckline.")
    assert product.metadata == {"executionId": "exec-1", "seedId": SEED}
    assert len(log_sink.events) == 0


@pytest.mark.asyncio
async def test_missing_original_price_mirrors_current(log_sink):
    elements = detail_elements()
    del elements['[data-test="product-price-original"]']
    page = FakePage(elements, url=PRODUCT_URL)

    product = await DetailPageExtractor(ITALIST, log_sink).extract(page, detail_task())

    assert product.original_price == product.current_price
    assert product.discount == 0.0


@pytest.mark.asyncio
async def test_bare_page_falls_back_to_url_and_listing_data(log_sink):
    """With nothing rendered, brand and SKU come from the URL and the rest from the card."""
    page = FakePage({}, url=PRODUCT_URL)
    partial = PartialProduct(
        name="Silk midi dress",
        current_price=Price(Decimal("960"), "USD"),
        gender="women",
    )

    product = await DetailPageExtractor(ITALIST, log_sink, ready_timeout=0.1).extract(
        page, detail_task(partial)
    )

    assert product.brand == "Saint Laurent"
    assert product.sku == "13730148"
    assert product.name == "Silk midi dress"
    assert product.current_price == Price(Decimal("960"), "USD")
    assert product.gender == "women"
    assert product.breadcrumbs == ()
    warning = log_sink.events[-1]
    assert warning["level"] == "WARN"
    assert warning["context"]["missing"] == ["images"]


@pytest.mark.asyncio
async def test_task_gender_wins_over_breadcrumbs(log_sink):
    elements = detail_elements()
    elements[BREADCRUMBS] = [FakeElement("Home"), FakeElement("Bags")]
    page = FakePage(elements, url=PRODUCT_URL)

    product = await DetailPageExtractor(ITALIST, log_sink).extract(page, detail_task(gender="men"))

    assert product.gender == "men"
    assert product.breadcrumbs == ("Men", "Bags")
