"""Extract structured product data (JSON-LD, meta tags) from HTML pages."""

import json
import logging
import re
from typing import Any, Dict, Iterator, List, Optional

from selectolax.parser import HTMLParser

logger = logging.getLogger(__name__)

PRODUCT_TYPE_PATTERN = re.compile(r"product|book", re.IGNORECASE)


def extract_json_ld(html: str) -> List[Any]:
    """
    Extract JSON-LD structured data from script tags.

    Returns list of decoded JSON-LD blobs found in the page; blocks that do
    not parse are skipped.
    """
    results = []
    tree = HTMLParser(html)
    for script in tree.css('script[type="application/ld+json"]'):
        try:
            results.append(json.loads(script.text() or "{}"))
        except json.JSONDecodeError:
            logger.debug("Skipping malformed JSON-LD block")
            continue
    return results


def iter_ld_nodes(blob: Any) -> Iterator[Dict[str, Any]]:
    """Yield every object in a JSON-LD blob, descending into lists and ``@graph``."""
    if isinstance(blob, list):
        for item in blob:
            yield from iter_ld_nodes(item)
    elif isinstance(blob, dict):
        yield blob
        graph = blob.get("@graph")
        if isinstance(graph, list):
            yield from iter_ld_nodes(graph)


def is_product_node(node: Dict[str, Any]) -> bool:
    """True for schema.org Product / Book (or subtypes named like them)."""
    types = node.get("@type")
    if not isinstance(types, list):
        types = [types]
    return any(isinstance(t, str) and PRODUCT_TYPE_PATTERN.search(t) for t in types)


def extract_products_from_json_ld(html: str) -> List[Dict[str, Any]]:
    """
    Extract product data from JSON-LD structured data.

    Looks for Product and Book schema.org types.
    """
    products = []
    for blob in extract_json_ld(html):
        for node in iter_ld_nodes(blob):
            if is_product_node(node):
                products.append(node)
    return products


def as_list(value: Any) -> List[Any]:
    """Wrap a scalar in a list; ``None`` becomes empty."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def meta_content(tree: HTMLParser, *selectors: str) -> Optional[str]:
    """``content`` of the first matching meta tag that has a non-blank value."""
    for selector in selectors:
        node = tree.css_first(selector)
        if node is None:
            continue
        value = (node.attributes.get("content") or "").strip()
        if value:
            return value
    return None
