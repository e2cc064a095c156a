"""Persistence adapter for products and their scraped details."""

import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from detail_scraper.db.models import Product, ProductDetail
from detail_scraper.ingest.base import SourceRecord

logger = logging.getLogger(__name__)


class ProductRepository:
    """Reads source records and writes products/details over one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_source_record(self, product_id: str) -> Optional[SourceRecord]:
        result = await self.session.execute(
            select(Product.id, Product.source_url, Product.title).where(Product.id == product_id)
        )
        row = result.first()
        if row is None:
            return None
        return SourceRecord(id=row.id, source_url=row.source_url, title=row.title)

    async def load_entity(self, product_id: str) -> Optional[Product]:
        return await self.session.get(Product, product_id)

    async def save_entity(self, product: Product) -> None:
        self.session.add(product)
        await self.session.commit()

    async def find_detail(self, product_id: str) -> Optional[ProductDetail]:
        result = await self.session.execute(
            select(ProductDetail).where(ProductDetail.product_id == product_id)
        )
        return result.scalar_one_or_none()

    async def create_detail(self, product_id: str) -> ProductDetail:
        """New, unsaved detail for ``product_id``."""
        detail = ProductDetail(product_id=product_id, specs={})
        self.session.add(detail)
        return detail

    async def save_detail(self, detail: ProductDetail) -> None:
        self.session.add(detail)
        await self.session.commit()

    async def delete_product(self, product_id: str) -> bool:
        """Delete a product together with the detail it owns."""
        await self.session.execute(
            delete(ProductDetail).where(ProductDetail.product_id == product_id)
        )
        result = await self.session.execute(delete(Product).where(Product.id == product_id))
        await self.session.commit()
        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted product {product_id} and its detail")
        return deleted
