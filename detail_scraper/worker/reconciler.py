"""Merge an extraction result into the stored product and its detail."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from detail_scraper import metrics
from detail_scraper.config import settings
from detail_scraper.db.models import Product, ProductDetail
from detail_scraper.ingest.base import ExtractionResult
from detail_scraper.ingest.text_utils import decode_entities, in_bounds

logger = logging.getLogger(__name__)


@dataclass
class ReconcileOutcome:
    """Which product fields a reconciliation changed."""

    changed_fields: list[str] = field(default_factory=list)

    @property
    def product_changed(self) -> bool:
        return bool(self.changed_fields)


class Reconciler:
    """
    Precedence rules:

    - availability beats price: an unavailable product has no price
    - a price is only written when inside the sanity bound
    - currency and image are written whenever detected and different
    - the detail always records the attempt
    """

    def __init__(self, price_min: Decimal = None, price_max: Decimal = None, source_name: str = None):
        self.price_min = settings.price_min if price_min is None else price_min
        self.price_max = settings.price_max if price_max is None else price_max
        self.source_name = source_name or settings.source_name

    def reconcile(
        self,
        product: Product,
        detail: ProductDetail,
        result: ExtractionResult,
        now: Optional[datetime] = None,
    ) -> ReconcileOutcome:
        """Apply ``result`` to both records; the caller persists them."""
        outcome = self.apply_to_product(product, result)
        self.apply_to_detail(detail, result, source_url=product.source_url, now=now)
        return outcome

    def apply_to_product(self, product: Product, result: ExtractionResult) -> ReconcileOutcome:
        outcome = ReconcileOutcome()

        if result.image and product.image != result.image:
            product.image = result.image
            outcome.changed_fields.append("image")

        if result.unavailable:
            if product.price is not None:
                product.price = None
                outcome.changed_fields.append("price")
        elif in_bounds(result.price, self.price_min, self.price_max) and not _same_price(
            product.price, result.price
        ):
            product.price = result.price
            outcome.changed_fields.append("price")

        if result.currency and product.currency != result.currency:
            product.currency = result.currency
            outcome.changed_fields.append("currency")

        for name in outcome.changed_fields:
            metrics.entity_updates_total.labels(field=name).inc()
        return outcome

    def apply_to_detail(
        self,
        detail: ProductDetail,
        result: ExtractionResult,
        source_url: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ProductDetail:
        now = now or datetime.now(timezone.utc)
        detail.description = decode_entities(result.description) or None
        detail.rating_average = result.rating_average
        previous = {k: v for k, v in (detail.specs or {}).items() if k != "lastError"}
        detail.specs = {
            **previous,
            "source": self.source_name,
            "sourceUrl": source_url,
            "lastStatus": result.http_status,
            "unavailable": result.unavailable,
            "priceProbes": [p for p in result.probes if p.startswith(("price:", "avail:"))],
            "probes": list(result.probes),
            "lastScrapedAtISO": now.isoformat(),
        }
        detail.last_scraped_at = now
        return detail


def _same_price(current: Optional[Decimal], new: Optional[Decimal]) -> bool:
    if current is None or new is None:
        return current is new
    return Decimal(current) == Decimal(new)
