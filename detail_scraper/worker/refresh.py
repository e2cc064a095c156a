"""Caller-facing refresh of a product's scraped detail."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from detail_scraper.db.models import ProductDetail
from detail_scraper.db.repository import ProductRepository
from detail_scraper.ingest.base import (
    MissingSourceUrlError,
    ProductNotFoundError,
    ScraperError,
    SourceRecord,
)
from detail_scraper.ingest.product_scraper import ProductScraper
from detail_scraper.logging_config import get_logger
from detail_scraper.worker.coordinator import ExtractionCoordinator
from detail_scraper.worker.reconciler import Reconciler

logger = logging.getLogger(__name__)


class RefreshService:
    """
    Scrape a product page and persist what was found.

    Create one instance at startup and call ``close()`` on shutdown; the
    coordinator it owns is the process-wide in-flight/cooldown state.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scraper: Optional[ProductScraper] = None,
        coordinator: Optional[ExtractionCoordinator[ProductDetail]] = None,
        reconciler: Optional[Reconciler] = None,
    ):
        self.session_factory = session_factory
        self.scraper = scraper or ProductScraper()
        self.coordinator = coordinator or ExtractionCoordinator()
        self.reconciler = reconciler or Reconciler()

    async def refresh(self, product_id: str, force: bool = False) -> ProductDetail:
        """
        Refresh the detail of ``product_id``.

        Joins an extraction already in flight for the product. During the
        cooldown window the stored detail is returned unless ``force`` is set.

        Raises:
            ProductNotFoundError: no such product
            MissingSourceUrlError: the product has no source URL
        """
        async with self.session_factory() as session:
            source = await ProductRepository(session).find_source_record(product_id)
        if source is None:
            raise ProductNotFoundError(product_id)
        if not source.source_url:
            raise MissingSourceUrlError(product_id)

        return await self.coordinator.request_extraction(
            product_id,
            lambda: self._refresh(source),
            cached=lambda: self._stored_detail(product_id),
            force=force,
        )

    async def get_detail(self, product_id: str, refresh: bool = False) -> Optional[ProductDetail]:
        """
        Stored detail, optionally refreshed first.

        A failed refresh is logged and the previously stored detail served.
        """
        if refresh:
            try:
                return await self.refresh(product_id)
            except ScraperError as e:
                logger.warning(f"Refresh of {product_id} failed, serving stored detail: {e}")
        return await self._stored_detail(product_id)

    async def close(self) -> None:
        await self.coordinator.close()

    async def _stored_detail(self, product_id: str) -> Optional[ProductDetail]:
        async with self.session_factory() as session:
            return await ProductRepository(session).find_detail(product_id)

    async def _refresh(self, source: SourceRecord) -> ProductDetail:
        log = get_logger(__name__, product_id=source.id, url=source.source_url)
        try:
            result = await self.scraper.scrape(source)
        except MissingSourceUrlError:
            raise
        except Exception as e:
            log.exception(f"Scrape failed: {type(e).__name__}: {e}")
            return await self._record_failure(source, e)

        async with self.session_factory() as session:
            repo = ProductRepository(session)
            product = await repo.load_entity(source.id)
            if product is None:
                raise ProductNotFoundError(source.id)

            detail = await repo.find_detail(source.id) or await repo.create_detail(source.id)
            outcome = self.reconciler.reconcile(product, detail, result)
            if outcome.product_changed:
                await repo.save_entity(product)
                log.info(f"Updated product {', '.join(outcome.changed_fields)}")

            await repo.save_detail(detail)
            log.info("Saved detail")
            return detail

    async def _record_failure(self, source: SourceRecord, error: Exception) -> ProductDetail:
        """Stamp the attempt on the detail without touching previously scraped fields."""
        now = datetime.now(timezone.utc)
        async with self.session_factory() as session:
            repo = ProductRepository(session)
            detail = await repo.find_detail(source.id) or await repo.create_detail(source.id)
            detail.specs = {
                **(detail.specs or {}),
                "sourceUrl": source.source_url,
                "lastStatus": None,
                "lastError": f"{type(error).__name__}: {error}",
                "lastScrapedAtISO": now.isoformat(),
            }
            detail.last_scraped_at = now
            await repo.save_detail(detail)
            return detail
