"""One extraction attempt: open the page, run every field extractor."""

import logging
import time
from typing import Callable, Optional

from detail_scraper import metrics
from detail_scraper.config import settings
from detail_scraper.ingest.base import ExtractionResult, MissingSourceUrlError, SourceRecord
from detail_scraper.ingest.browser import BrowserSession
from detail_scraper.ingest.extractors.description import DescriptionExtractor
from detail_scraper.ingest.extractors.image import ImageExtractor
from detail_scraper.ingest.extractors.price import PriceExtractor
from detail_scraper.ingest.extractors.rating import RatingExtractor
from detail_scraper.ingest.navigator import Navigator
from detail_scraper.ingest.page import PageQuery, PlaywrightPage
from detail_scraper.logging_config import get_logger

logger = logging.getLogger(__name__)


class ProductScraper:
    """Drives a fresh browser session per call and builds an ``ExtractionResult``."""

    def __init__(
        self,
        navigator: Optional[Navigator] = None,
        session_factory: Callable[[], BrowserSession] = BrowserSession,
        description: Optional[DescriptionExtractor] = None,
        image: Optional[ImageExtractor] = None,
        price: Optional[PriceExtractor] = None,
        rating: Optional[RatingExtractor] = None,
    ):
        self.navigator = navigator or Navigator()
        self.session_factory = session_factory
        self.description = description or DescriptionExtractor()
        self.image = image or ImageExtractor()
        self.price = price or PriceExtractor()
        self.rating = rating or RatingExtractor()

    async def scrape(self, source: SourceRecord) -> ExtractionResult:
        """
        Scrape the product page of ``source``.

        Raises:
            MissingSourceUrlError: the source record has no URL
        """
        if not source.source_url:
            raise MissingSourceUrlError(source.id)

        url = source.source_url
        log = get_logger(__name__, product_id=source.id, url=url)
        log.info("Scraping product page")
        started = time.monotonic()
        status = "error"
        try:
            async with self.session_factory() as page:
                navigation = await self.navigator.load(page, url)
                view = PlaywrightPage(page, url, timeout_ms=settings.field_query_timeout_ms)
                result = await self.extract(view, url, navigation.status, title=source.title)
            status = "ok" if navigation.ok else "degraded"
            log.info(f"Scrape finished ({status}, HTTP {navigation.status})")
            return result
        finally:
            metrics.extractions_total.labels(source=settings.source_name, status=status).inc()
            metrics.extraction_duration_seconds.labels(source=settings.source_name).observe(
                time.monotonic() - started
            )

    async def extract(
        self,
        page: PageQuery,
        base_url: str,
        http_status: Optional[int] = None,
        title: Optional[str] = None,
    ) -> ExtractionResult:
        """Run all field extractors against an already loaded page."""
        result = ExtractionResult(http_status=http_status)
        result.probes.append(f"nav:{http_status}" if http_status is not None else "nav:failed")

        try:
            description = await self.description.extract(page)
            result.description = description.value
            result.probes.extend(description.probes)
        except Exception as e:
            logger.warning(f"Description extraction failed for {base_url}: {e}")
            result.probes.append("desc:error")

        try:
            image = await self.image.extract(page, base_url, title=title)
            result.image = image.value
            result.probes.extend(image.probes)
        except Exception as e:
            logger.warning(f"Image extraction failed for {base_url}: {e}")
            result.probes.append("img:error")

        try:
            price = await self.price.extract(page)
            result.price = price.price
            result.currency = price.currency
            result.unavailable = price.unavailable
            result.probes.extend(price.probes)
        except Exception as e:
            logger.warning(f"Price extraction failed for {base_url}: {e}")
            result.probes.append("price:error")

        try:
            rating = await self.rating.extract(page)
            result.rating_average = rating.value
            result.probes.extend(rating.probes)
        except Exception as e:
            logger.warning(f"Rating extraction failed for {base_url}: {e}")
            result.probes.append("rating:error")

        logger.info(
            f"Extracted {base_url}: price={result.price} {result.currency} "
            f"unavailable={result.unavailable} image={'yes' if result.image else 'no'}"
        )
        return result
