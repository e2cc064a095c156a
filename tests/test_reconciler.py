"""Tests for merging extraction results into stored records."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from detail_scraper.db.models import Product, ProductDetail
from detail_scraper.ingest.base import ExtractionResult
from detail_scraper.worker.reconciler import Reconciler

URL = "https://www.wob.com/en-gb/books/the-hobbit/9780261102217"


@pytest.fixture
def reconciler():
    return Reconciler(price_min=Decimal("0"), price_max=Decimal("2000"), source_name="wob")


def product(**fields):
    return Product(id="p1", title="The Hobbit", source_url=URL, **fields)


def result(**fields):
    fields.setdefault("probes", ["nav:200", "price:wob-conditions", "rating:none"])
    fields.setdefault("http_status", 200)
    return ExtractionResult(**fields)


def test_new_price_currency_and_image_are_written(reconciler):
    p = product(price=Decimal("9.99"), currency="GBP")

    outcome = reconciler.apply_to_product(
        p, result(price=Decimal("6.99"), currency="EUR", image="https://img/cover.jpg")
    )

    assert p.price == Decimal("6.99")
    assert p.currency == "EUR"
    assert p.image == "https://img/cover.jpg"
    assert sorted(outcome.changed_fields) == ["currency", "image", "price"]
    assert outcome.product_changed


def test_unavailable_clears_price(reconciler):
    p = product(price=Decimal("9.99"), currency="GBP")

    outcome = reconciler.apply_to_product(
        p, result(price=Decimal("5.00"), currency="GBP", unavailable=True)
    )

    assert p.price is None
    assert outcome.changed_fields == ["price"]


def test_out_of_bound_price_is_not_written(reconciler):
    p = product(price=Decimal("9.99"))

    outcome = reconciler.apply_to_product(p, result(price=Decimal("2000.00")))

    assert p.price == Decimal("9.99")
    assert not outcome.product_changed


def test_missing_price_keeps_stored_price(reconciler):
    p = product(price=Decimal("9.99"))

    reconciler.apply_to_product(p, result(price=None, currency="EUR"))

    assert p.price == Decimal("9.99")
    assert p.currency == "EUR"


def test_missing_image_does_not_clear_stored_image(reconciler):
    p = product(image="https://img/old.jpg")

    reconciler.apply_to_product(p, result(image=None))

    assert p.image == "https://img/old.jpg"


def test_reapplying_same_result_changes_nothing(reconciler):
    p = product()
    scraped = result(price=Decimal("6.99"), currency="GBP", image="https://img/cover.jpg")

    reconciler.apply_to_product(p, scraped)
    second = reconciler.apply_to_product(p, scraped)

    assert second.changed_fields == []


def test_equal_price_with_different_scale_is_unchanged(reconciler):
    p = product(price=Decimal("6.9"))

    outcome = reconciler.apply_to_product(p, result(price=Decimal("6.90")))

    assert not outcome.product_changed


def test_detail_is_overwritten_and_records_attempt(reconciler):
    detail = ProductDetail(
        product_id="p1",
        description="Old text",
        rating_average=3.0,
        specs={"pages": 310, "lastError": "TimeoutError: boom"},
    )
    now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    scraped = result(
        description="Tom &amp;amp; Jerry",
        rating_average=4.7,
        unavailable=True,
        probes=["nav:200", "desc:region", "avail:unavailable", "price:ld-json", "rating:itemprop"],
    )

    reconciler.apply_to_detail(detail, scraped, source_url=URL, now=now)

    assert detail.description == "Tom & Jerry"
    assert detail.rating_average == 4.7
    assert detail.last_scraped_at == now
    assert detail.specs == {
        "pages": 310,
        "source": "wob",
        "sourceUrl": URL,
        "lastStatus": 200,
        "unavailable": True,
        "priceProbes": ["avail:unavailable", "price:ld-json"],
        "probes": ["nav:200", "desc:region", "avail:unavailable", "price:ld-json", "rating:itemprop"],
        "lastScrapedAtISO": "2026-10-19T12:00:00+00:00",
    }


def test_detail_description_cleared_when_not_found(reconciler):
    detail = ProductDetail(product_id="p1", description="Old text", specs={})

    reconciler.apply_to_detail(detail, result(description=None), source_url=URL)

    assert detail.description is None
    assert detail.rating_average is None


def test_reconcile_updates_both_records(reconciler):
    p = product(price=Decimal("9.99"))
    detail = ProductDetail(product_id="p1", specs={})

    outcome = reconciler.reconcile(p, detail, result(price=Decimal("6.99"), description="Text"))

    assert outcome.changed_fields == ["price"]
    assert detail.description == "Text"
    assert detail.specs["sourceUrl"] == URL
    assert detail.last_scraped_at is not None
