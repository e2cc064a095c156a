"""Product description extraction."""

import logging
import re
from typing import Optional

from selectolax.parser import HTMLParser, Node

from detail_scraper.config import settings
from detail_scraper.ingest.base import FieldResult
from detail_scraper.ingest.json_extractor import meta_content
from detail_scraper.ingest.page import PageQuery
from detail_scraper.ingest.text_utils import clean_text

logger = logging.getLogger(__name__)

# Description regions, most specific first
REGION_SELECTORS = [
    '[itemprop="description"]',
    "#description",
    "#summary",
    ".product-description",
    ".ProductDescription",
    '[data-testid="product-description"]',
    '[data-testid="summary"]',
]

HEADING_PATTERN = re.compile(r"summary|description", re.IGNORECASE)
HEADING_TAGS = ("h1", "h2", "h3", "h4")
CONTAINER_TAGS = ("section", "article", "div")


def _region_text(node: Node) -> str:
    paragraphs = [clean_text(p.text(separator=" ")) for p in node.css("p")]
    paragraphs = [p for p in paragraphs if p]
    if paragraphs:
        return "\n".join(paragraphs)
    return clean_text(node.text(separator=" "))


def from_regions(tree: HTMLParser) -> Optional[str]:
    """Text of the first populated description region."""
    for selector in REGION_SELECTORS:
        for node in tree.css(selector):
            text = _region_text(node)
            if text:
                return text
    return None


def _sibling_text(heading: Node) -> str:
    parts = []
    node = heading.next
    while node is not None:
        if node.tag in HEADING_TAGS:
            break
        if node.tag == "-text":
            text = clean_text(node.text())
        elif node.tag in ("script", "style", "_comment"):
            text = ""
        else:
            text = _region_text(node)
        if text:
            parts.append(text)
        node = node.next
    return "\n".join(parts)


def from_heading(tree: HTMLParser, min_chars: int) -> Optional[str]:
    """Text following a "Summary"/"Description" heading inside its section."""
    for heading in tree.css(", ".join(HEADING_TAGS)):
        if not HEADING_PATTERN.search(heading.text() or ""):
            continue

        text = _sibling_text(heading)
        if len(text) >= min_chars:
            return text

        # Heading may be wrapped (e.g. in a header div); widen up to its section
        heading_text = clean_text(heading.text())
        container = heading.parent
        while container is not None and container.tag not in ("body", "main", "html"):
            if container.tag in CONTAINER_TAGS:
                text = _region_text(container)
                if text.startswith(heading_text):
                    text = text[len(heading_text):].strip()
                if len(text) >= min_chars:
                    return text
            if container.tag in ("section", "article"):
                break
            container = container.parent
    return None


def from_meta(tree: HTMLParser) -> Optional[str]:
    """Page meta description."""
    value = meta_content(
        tree,
        'meta[name="description"]',
        'meta[property="og:description"]',
    )
    return clean_text(value) or None


class DescriptionExtractor:
    """Runs the description cascade: regions, heading discovery, meta."""

    def __init__(self, max_chars: int = None, min_heading_chars: int = None):
        self.max_chars = settings.description_max_chars if max_chars is None else max_chars
        self.min_heading_chars = (
            settings.description_min_heading_chars if min_heading_chars is None else min_heading_chars
        )

    async def extract(self, page: PageQuery) -> FieldResult:
        result = FieldResult()
        try:
            tree = HTMLParser(await page.content())
        except Exception as e:
            logger.debug(f"Description extraction skipped, no content: {e}")
            result.probes.append("desc:none")
            return result

        strategies = [
            ("desc:region", from_regions),
            ("desc:heading", lambda t: from_heading(t, self.min_heading_chars)),
            ("desc:meta", from_meta),
        ]
        for tag, strategy in strategies:
            try:
                text = strategy(tree)
            except Exception as e:
                logger.debug(f"Description strategy {tag} failed: {e}")
                result.probes.append(f"{tag}:error")
                continue
            if text:
                result.value = text[: self.max_chars].strip()
                result.probes.append(tag)
                return result
            result.probes.append(f"{tag}:miss")

        result.probes.append("desc:none")
        return result
