"""Price, currency and availability extraction.

The price comes from the first strategy in the cascade that yields a value
inside the sanity bound:

1. ``price:wob-conditions``  the condition selector widget (selected tile,
   else the cheapest enabled tile)
2. ``price:ld-json``         JSON-LD Product/Book offers
3. ``price:microdata``       ``itemprop=price`` and ``product:price`` meta
4. ``price:dom``             common price selectors in the rendered DOM
5. ``price:html-regex``      symbol + amount anywhere in the page source

Each attempted strategy leaves a probe tag; misses are tagged ``<tag>:miss``
and failures ``<tag>:error``.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional

from selectolax.parser import HTMLParser, Node

from detail_scraper import metrics
from detail_scraper.config import settings
from detail_scraper.ingest.base import PriceResult
from detail_scraper.ingest.json_extractor import as_list, extract_products_from_json_ld
from detail_scraper.ingest.page import PageQuery
from detail_scraper.ingest.text_utils import (
    clean_text,
    currency_for_token,
    decode_entities,
    find_prices,
    in_bounds,
    parse_price,
    to_decimal,
)

logger = logging.getLogger(__name__)

CONDITION_PATTERN = re.compile(r"select\s+condition", re.IGNORECASE)
CONDITION_OPTION_SELECTOR = (
    'button, [role="radio"], [role="option"], [role="button"], label, li'
)
# Levels to climb from the "Select condition" text to the widget container
CONDITION_MAX_DEPTH = 8

SELECTED_CLASSES = {"selected", "active", "is-selected", "is-active", "checked", "current"}
SELECTED_ARIA = ("aria-pressed", "aria-checked", "aria-selected")
DISABLED_CONTROL_SELECTOR = 'button[disabled], input[disabled], [aria-disabled="true"]'

PRICE_SELECTORS = [
    '[data-testid="price"]',
    '[data-testid*="price"]',
    '[data-test*="price"]',
    ".price",
    ".Price",
    ".ProductPrice",
    ".product-price",
    '[class*="price"]',
    '[itemprop="price"]',
]

AVAILABILITY_ROOTS = ["main", "body"]

Found = Optional[tuple[Decimal, Optional[str]]]


@dataclass
class ConditionOption:
    """One tile of the condition selector widget."""

    label: str
    price: Decimal
    currency: Optional[str]
    selected: bool = False
    disabled: bool = False


def _flag(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() not in ("false", "0")


def _classes(node: Node) -> set[str]:
    return set((node.attributes.get("class") or "").lower().split())


def _descendants(node: Node, selector: str) -> list[Node]:
    # Node.css may report the node itself; only nested matches count here
    return [child for child in node.css(selector) if child.mem_id != node.mem_id]


def _is_disabled(node: Node) -> bool:
    attrs = node.attributes
    if "disabled" in attrs or _flag(attrs.get("aria-disabled")):
        return True
    if {"disabled", "is-disabled", "unavailable"} & _classes(node):
        return True
    return bool(_descendants(node, DISABLED_CONTROL_SELECTOR))


def _is_selected(node: Node) -> bool:
    attrs = node.attributes
    for name in SELECTED_ARIA:
        if (attrs.get(name) or "").lower() == "true":
            return True
    if "checked" in attrs or "selected" in attrs or _flag(attrs.get("data-selected")):
        return True
    if SELECTED_CLASSES & _classes(node):
        return True
    return bool(_descendants(node, "input[checked]"))


def _has_priced_option(node: Node, low: Decimal, high: Decimal) -> bool:
    return any(
        parse_price(clean_text(child.text(separator=" ")), low, high) is not None
        for child in _descendants(node, CONDITION_OPTION_SELECTOR)
    )


def condition_options(container: Node, low: Decimal, high: Decimal) -> list[ConditionOption]:
    """Innermost priced tiles inside a condition widget container.

    Wrappers (``li``, ``label``) around a priced button are skipped so the
    button's own disabled/selected state decides.
    """
    options = []
    for node in container.css(CONDITION_OPTION_SELECTOR):
        label = clean_text(node.text(separator=" "))
        parsed = parse_price(label, low, high)
        if parsed is None or _has_priced_option(node, low, high):
            continue
        options.append(
            ConditionOption(
                label=label,
                price=parsed[0],
                currency=parsed[1],
                selected=_is_selected(node),
                disabled=_is_disabled(node),
            )
        )
    return options


def choose_condition(options: list[ConditionOption]) -> Optional[ConditionOption]:
    """Selected enabled tile, else the cheapest enabled tile."""
    enabled = [o for o in options if not o.disabled]
    if not enabled:
        return None
    for option in enabled:
        if option.selected:
            return option
    return min(enabled, key=lambda o: o.price)


def from_condition_widget(tree: HTMLParser, low: Decimal, high: Decimal) -> Found:
    """Price from the "Select condition" widget."""
    root = tree.body or tree.root
    if root is None:
        return None
    for node in root.traverse(include_text=True):
        if node.tag != "-text" or not CONDITION_PATTERN.search(node.text() or ""):
            continue
        container = node.parent
        depth = 0
        while container is not None and depth < CONDITION_MAX_DEPTH:
            options = condition_options(container, low, high)
            if options:
                choice = choose_condition(options)
                if choice is not None:
                    logger.debug(f"Condition widget picked '{choice.label}' from {len(options)} options")
                    return choice.price, choice.currency
                break
            container = container.parent
            depth += 1
    return None


def _offer_prices(offer: Any) -> list[tuple[Any, Optional[str]]]:
    if not isinstance(offer, dict):
        return []
    currency = offer.get("priceCurrency")
    values = []
    for key in ("price", "lowPrice"):
        if offer.get(key) is not None:
            values.append((offer.get(key), currency))
    for spec in as_list(offer.get("priceSpecification")):
        if isinstance(spec, dict) and spec.get("price") is not None:
            values.append((spec.get("price"), spec.get("priceCurrency") or currency))
    # AggregateOffer may nest its individual offers
    for nested in as_list(offer.get("offers")):
        values.extend(_offer_prices(nested))
    return values


def ld_json_prices(html: str) -> list[tuple[Optional[Decimal], Optional[str]]]:
    """Every offer price (raw, unbounded) declared by Product/Book JSON-LD."""
    prices = []
    for product in extract_products_from_json_ld(html):
        for offer in as_list(product.get("offers")):
            for raw, currency in _offer_prices(offer):
                prices.append((to_decimal(raw), currency_for_token(currency)))
    return prices


def _minimum(candidates: list[tuple[Optional[Decimal], Optional[str]]], low: Decimal, high: Decimal) -> Found:
    valid = [(p, c) for p, c in candidates if in_bounds(p, low, high)]
    if not valid:
        return None
    return min(valid, key=lambda pc: pc[0])


def from_ld_json(html: str, low: Decimal, high: Decimal) -> Found:
    """Lowest valid JSON-LD offer price."""
    return _minimum(ld_json_prices(html), low, high)


def _node_value(node: Node) -> Optional[str]:
    attrs = node.attributes
    return attrs.get("content") or attrs.get("value") or node.text(separator=" ")


def microdata_currency(tree: HTMLParser) -> Optional[str]:
    """Currency declared by microdata or Open Graph product meta."""
    for selector in ('[itemprop="priceCurrency"]', 'meta[property="product:price:currency"]',
                     'meta[property="og:price:currency"]'):
        node = tree.css_first(selector)
        if node is not None:
            currency = currency_for_token(_node_value(node))
            if currency:
                return currency
    return None


def from_microdata(tree: HTMLParser, low: Decimal, high: Decimal) -> Found:
    """Lowest valid ``itemprop=price`` / ``product:price:amount`` value."""
    currency = microdata_currency(tree)
    candidates = []
    for node in tree.css('[itemprop="price"]'):
        raw = _node_value(node)
        symbol_prices = find_prices(raw)
        if symbol_prices:
            candidates.extend((p, c or currency) for p, c in symbol_prices)
        else:
            candidates.append((to_decimal(raw), currency))
    for selector in ('meta[property="product:price:amount"]', 'meta[property="og:price:amount"]'):
        for node in tree.css(selector):
            candidates.append((to_decimal(node.attributes.get("content")), currency))
    return _minimum(candidates, low, high)


def from_dom(tree: HTMLParser, low: Decimal, high: Decimal) -> Found:
    """Symbol + amount from the concatenated text of price-like elements."""
    texts = []
    for selector in PRICE_SELECTORS:
        for node in tree.css(selector):
            text = clean_text(node.text(separator=" "))
            if text:
                texts.append(text)
    return parse_price(" ".join(texts), low, high)


def from_html_regex(html: str, low: Decimal, high: Decimal) -> Found:
    """Symbol + amount anywhere in the raw page source."""
    return parse_price(decode_entities(html), low, high)


class PriceExtractor:
    """Runs the availability scan and the price cascade."""

    def __init__(
        self,
        price_min: Decimal = None,
        price_max: Decimal = None,
        default_currency: str = None,
        unavailable_phrases: list[str] = None,
    ):
        self.price_min = settings.price_min if price_min is None else price_min
        self.price_max = settings.price_max if price_max is None else price_max
        self.default_currency = default_currency or settings.default_currency
        self.unavailable_phrases = [
            p.lower()
            for p in (settings.unavailable_phrases if unavailable_phrases is None else unavailable_phrases)
        ]

    async def detect_unavailable(self, page: PageQuery) -> bool:
        """True when the main content mentions an unavailability phrase."""
        for selector in AVAILABILITY_ROOTS:
            try:
                text = await page.inner_text(selector)
            except Exception as e:
                logger.debug(f"Availability scan of {selector} failed: {e}")
                continue
            if text is None:
                continue
            text = " ".join(text.lower().split())
            return any(phrase in text for phrase in self.unavailable_phrases)
        return False

    def _strategies(self, html: str, tree: HTMLParser) -> list[tuple[str, Callable[[], Found]]]:
        low, high = self.price_min, self.price_max
        return [
            ("price:wob-conditions", lambda: from_condition_widget(tree, low, high)),
            ("price:ld-json", lambda: from_ld_json(html, low, high)),
            ("price:microdata", lambda: from_microdata(tree, low, high)),
            ("price:dom", lambda: from_dom(tree, low, high)),
            ("price:html-regex", lambda: from_html_regex(html, low, high)),
        ]

    def _independent_currency(self, html: str, tree: HTMLParser) -> Optional[str]:
        try:
            for _, currency in ld_json_prices(html):
                if currency:
                    return currency
            return microdata_currency(tree)
        except Exception as e:
            logger.debug(f"Currency detection failed: {e}")
            return None

    async def extract(self, page: PageQuery) -> PriceResult:
        result = PriceResult()

        result.unavailable = await self.detect_unavailable(page)
        result.probes.append("avail:unavailable" if result.unavailable else "avail:ok")

        try:
            html = await page.content()
        except Exception as e:
            logger.debug(f"Price extraction: no page content: {e}")
            html = ""
        tree = HTMLParser(html)

        for tag, strategy in self._strategies(html, tree):
            try:
                found = strategy()
            except Exception as e:
                logger.debug(f"Price strategy {tag} failed: {e}")
                result.probes.append(f"{tag}:error")
                continue
            if found is None:
                result.probes.append(f"{tag}:miss")
                continue

            result.price, currency = found
            result.currency = currency or self.default_currency
            result.probes.append(tag)
            metrics.price_strategy_hits_total.labels(strategy=tag).inc()
            logger.debug(f"Price {result.price} {result.currency} via {tag}")
            return result

        result.probes.append("price:none")
        result.currency = self._independent_currency(html, tree)
        return result
