"""Tests for the price / currency / availability cascade."""

from decimal import Decimal

import pytest

from detail_scraper.ingest.extractors.price import (
    ConditionOption,
    PriceExtractor,
    choose_condition,
)
from detail_scraper.ingest.page import HtmlPage

URL = "https://www.wob.com/en-gb/books/the-hobbit/9780261102217"

WIDGET = """
<div class="conditions">
  <h3>Select condition</h3>
  <div role="radiogroup">
    <button aria-pressed="false">Very Good £7.49</button>
    <button aria-pressed="{good}">Good £6.99</button>
    <button disabled>Well Read £4.99</button>
  </div>
</div>
"""

LD_JSON = """
<script type="application/ld+json">
{"@context": "https://schema.org", "@type": "Book", "name": "The Hobbit",
 "offers": [{"@type": "Offer", "price": "7.50", "priceCurrency": "GBP"},
            {"@type": "Offer", "price": "8.00"}]}
</script>
"""


def page(body: str, head: str = "") -> HtmlPage:
    return HtmlPage(f"<html><head>{head}</head><body><main>{body}</main></body></html>", URL)


@pytest.fixture
def extractor():
    return PriceExtractor(
        price_min=Decimal("0"),
        price_max=Decimal("2000"),
        default_currency="GBP",
        unavailable_phrases=["currently unavailable", "out of stock"],
    )


async def test_selected_condition_tile_wins(extractor):
    result = await extractor.extract(page(WIDGET.format(good="true")))

    assert result.price == Decimal("6.99")
    assert result.currency == "GBP"
    assert "price:wob-conditions" in result.probes
    assert result.unavailable is False


async def test_condition_widget_falls_back_to_cheapest_enabled_tile(extractor):
    html = WIDGET.format(good="false").replace("Good £6.99", "Good £6.49")
    result = await extractor.extract(page(html))

    # The disabled £4.99 tile is never chosen
    assert result.price == Decimal("6.49")


async def test_condition_widget_beats_structured_data(extractor):
    result = await extractor.extract(page(WIDGET.format(good="true"), head=LD_JSON))

    assert result.price == Decimal("6.99")
    assert "price:wob-conditions" in result.probes
    assert not any(p.startswith("price:ld-json") for p in result.probes)


async def test_ld_json_minimum_offer(extractor):
    result = await extractor.extract(page("<h1>The Hobbit</h1>", head=LD_JSON))

    assert result.price == Decimal("7.50")
    assert result.currency == "GBP"
    assert "price:wob-conditions:miss" in result.probes
    assert "price:ld-json" in result.probes


async def test_ld_json_without_currency_uses_default(extractor):
    head = """<script type="application/ld+json">
    {"@type": "Product", "offers": {"@type": "AggregateOffer", "lowPrice": 3.2, "highPrice": 9}}
    </script>"""
    result = await extractor.extract(page("", head=head))

    assert result.price == Decimal("3.20")
    assert result.currency == "GBP"


async def test_ld_json_in_graph_with_price_specification(extractor):
    head = """<script type="application/ld+json">
    {"@graph": [{"@type": "WebPage"},
                {"@type": ["Product", "Book"],
                 "offers": {"priceSpecification": {"price": "11.00", "priceCurrency": "EUR"}}}]}
    </script>"""
    result = await extractor.extract(page("", head=head))

    assert result.price == Decimal("11.00")
    assert result.currency == "EUR"


async def test_microdata_price(extractor):
    body = """
    <div itemscope itemtype="https://schema.org/Offer">
      <span itemprop="price" content="12.50">£12.50</span>
      <meta itemprop="priceCurrency" content="EUR">
    </div>
    """
    result = await extractor.extract(page(body))

    assert result.price == Decimal("12.50")
    assert result.currency == "EUR"
    assert "price:microdata" in result.probes


async def test_open_graph_price_meta(extractor):
    head = """
    <meta property="product:price:amount" content="4.25">
    <meta property="product:price:currency" content="GBP">
    """
    result = await extractor.extract(page("", head=head))

    assert result.price == Decimal("4.25")
    assert "price:microdata" in result.probes


async def test_dom_price_selector(extractor):
    result = await extractor.extract(page('<div class="product-price">Now only £3.20</div>'))

    assert result.price == Decimal("3.20")
    assert result.currency == "GBP"
    assert "price:dom" in result.probes


async def test_raw_html_fallback(extractor):
    body = '<script>window.__PRICE__ = "&pound;14.00";</script>'
    result = await extractor.extract(page(body))

    assert result.price == Decimal("14.00")
    assert result.probes[-1] == "price:html-regex"


async def test_out_of_bound_prices_are_rejected(extractor):
    head = """<script type="application/ld+json">
    {"@type": "Book", "offers": {"price": "2500.00", "priceCurrency": "GBP"}}
    </script>"""
    result = await extractor.extract(page("", head=head))

    assert result.price is None
    assert "price:none" in result.probes
    # Currency was still seen on its own
    assert result.currency == "GBP"


async def test_no_price_no_currency(extractor):
    result = await extractor.extract(page("<p>Nothing for sale here.</p>"))

    assert result.price is None
    assert result.currency is None
    assert result.probes[-1] == "price:none"


async def test_every_attempted_strategy_leaves_a_probe(extractor):
    result = await extractor.extract(page("<p>Nothing for sale here.</p>"))

    assert result.probes == [
        "avail:ok",
        "price:wob-conditions:miss",
        "price:ld-json:miss",
        "price:microdata:miss",
        "price:dom:miss",
        "price:html-regex:miss",
        "price:none",
    ]


async def test_unavailable_phrase_sets_flag_but_keeps_cascade(extractor):
    body = "<p>Currently   Unavailable</p>" + WIDGET.format(good="true").replace("£6.99", "£5.00")
    result = await extractor.extract(page(body))

    assert result.unavailable is True
    assert "avail:unavailable" in result.probes
    assert result.price == Decimal("5.00")


async def test_configurable_bounds():
    extractor = PriceExtractor(price_min=Decimal("0"), price_max=Decimal("5"), default_currency="EUR")
    result = await extractor.extract(page('<span class="price">€4.99</span><span class="price">€7.00</span>'))

    assert result.price == Decimal("4.99")
    assert result.currency == "EUR"


def test_choose_condition_ignores_disabled_selected():
    options = [
        ConditionOption("A", Decimal("3.00"), "GBP", selected=True, disabled=True),
        ConditionOption("B", Decimal("5.00"), "GBP"),
        ConditionOption("C", Decimal("4.00"), "GBP"),
    ]
    assert choose_condition(options).label == "C"
    assert choose_condition([options[0]]) is None


async def test_list_wrapped_tiles_ignore_disabled_price(extractor):
    body = """
    <section>
      <h3>Select condition</h3>
      <ul>
        <li><button>Very Good £7.49</button></li>
        <li><button>Good £6.99</button></li>
        <li><button disabled>Well Read £2.00</button></li>
      </ul>
    </section>
    """
    result = await extractor.extract(page(body))

    assert result.price == Decimal("6.99")
    assert result.probes[-1] == "price:wob-conditions"


async def test_label_wrapped_radios_use_checked_input(extractor):
    body = """
    <fieldset>
      <legend>Select condition</legend>
      <label><input type="radio" name="condition" checked> Very Good £7.49</label>
      <label><input type="radio" name="condition"> Good £6.99</label>
      <label><input type="radio" name="condition" disabled> Well Read £2.00</label>
    </fieldset>
    """
    result = await extractor.extract(page(body))

    assert result.price == Decimal("7.49")


async def test_label_wrapped_radios_skip_disabled_when_nothing_checked(extractor):
    body = """
    <fieldset>
      <legend>Select condition</legend>
      <label><input type="radio" name="condition"> Good £6.99</label>
      <label><input type="radio" name="condition" disabled> Well Read £2.00</label>
    </fieldset>
    """
    result = await extractor.extract(page(body))

    assert result.price == Decimal("6.99")


async def test_empty_phrase_list_disables_availability_scan():
    extractor = PriceExtractor(unavailable_phrases=[])

    result = await extractor.extract(page("<p>Currently unavailable</p>"))

    assert result.unavailable is False
    assert result.probes[0] == "avail:ok"
