"""Average rating extraction (best effort)."""

import logging

from selectolax.parser import HTMLParser

from detail_scraper.ingest.base import FieldResult
from detail_scraper.ingest.page import PageQuery
from detail_scraper.ingest.text_utils import parse_first_number

logger = logging.getLogger(__name__)

RATING_SELECTORS = [
    ("rating:itemprop", '[itemprop="ratingValue"]'),
    ("rating:class", ".rating__value"),
]


class RatingExtractor:
    """Reads the first numeric value of the rating element."""

    async def extract(self, page: PageQuery) -> FieldResult:
        result = FieldResult()
        try:
            tree = HTMLParser(await page.content())
        except Exception as e:
            logger.debug(f"Rating extraction skipped: {e}")
            result.probes.append("rating:none")
            return result

        for tag, selector in RATING_SELECTORS:
            node = tree.css_first(selector)
            if node is None:
                continue
            raw = node.attributes.get("content") or node.text(separator=" ")
            value = parse_first_number(raw)
            if value is not None:
                result.value = value
                result.probes.append(tag)
                return result

        result.probes.append("rating:none")
        return result
