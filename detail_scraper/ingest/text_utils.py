"""Text helpers shared by the field extractors."""

import html
import math
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

# Currency symbol or code followed by an amount, e.g. "£6.99", "GBP 1,299.00"
PRICE_PATTERN = re.compile(
    r"(£|€|\$|GBP|EUR|USD)\s?(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)",
    re.IGNORECASE,
)

CURRENCY_SYMBOLS = {
    "£": "GBP",
    "€": "EUR",
    "$": "USD",
}

_ENTITY_PATTERN = re.compile(r"&(#\d+|#x[0-9a-f]+|[a-z][a-z0-9]+);", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_NUMBER = re.compile(r"\d+(?:[.,]\d+)?")

TWO_PLACES = Decimal("0.01")


def decode_entities(text: Optional[str]) -> Optional[str]:
    """Decode named, decimal and hex HTML character references.

    Runs a second pass for double-encoded text such as ``&amp;pound;``.
    """
    if text is None:
        return None
    decoded = html.unescape(text)
    if decoded != text and _ENTITY_PATTERN.search(decoded):
        decoded = html.unescape(decoded)
    return decoded


def clean_text(text: Optional[str]) -> str:
    """Decode entities and collapse runs of whitespace."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", decode_entities(text)).strip()


def currency_for_token(token: Optional[str]) -> Optional[str]:
    """Map a currency symbol or code to its ISO code."""
    if not isinstance(token, str) or not token:
        return None
    token = token.strip()
    if token in CURRENCY_SYMBOLS:
        return CURRENCY_SYMBOLS[token]
    upper = token.upper()
    if re.fullmatch(r"[A-Z]{3}", upper):
        return upper
    return None


def to_decimal(value) -> Optional[Decimal]:
    """Convert a JSON/attribute value to a two-place Decimal, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        value = str(value)
    if not isinstance(value, str):
        return None
    cleaned = value.strip().replace(",", "")
    cleaned = re.sub(r"^[^\d.-]+", "", cleaned)
    match = re.match(r"-?\d+(?:\.\d+)?", cleaned)
    if not match:
        return None
    try:
        return Decimal(match.group(0)).quantize(TWO_PLACES)
    except InvalidOperation:
        return None


def in_bounds(price: Optional[Decimal], low: Decimal, high: Decimal) -> bool:
    """True when ``low < price < high`` (both ends exclusive)."""
    return price is not None and low < price < high


def find_prices(text: Optional[str]) -> list[tuple[Decimal, Optional[str]]]:
    """Every currency-symbol + amount pair in ``text``, in document order."""
    if not text:
        return []
    found = []
    for match in PRICE_PATTERN.finditer(text):
        amount = to_decimal(match.group(2))
        if amount is not None:
            found.append((amount, currency_for_token(match.group(1))))
    return found


def parse_price(
    text: Optional[str],
    low: Decimal,
    high: Decimal,
) -> Optional[tuple[Decimal, Optional[str]]]:
    """First ``<symbol><amount>`` in ``text`` whose amount is inside the bound."""
    for amount, currency in find_prices(text):
        if in_bounds(amount, low, high):
            return amount, currency
    return None


def parse_first_number(text: Optional[str]) -> Optional[float]:
    """First numeric substring as a finite float (comma decimals accepted)."""
    if not text:
        return None
    match = _NUMBER.search(text)
    if not match:
        return None
    try:
        value = float(match.group(0).replace(",", "."))
    except ValueError:
        return None
    return value if math.isfinite(value) else None
