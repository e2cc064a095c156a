"""Core data types and errors for product detail extraction."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


class ScraperError(Exception):
    """Base class for scraper errors."""


class ProductNotFoundError(ScraperError):
    """No source record exists for the requested product."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class MissingSourceUrlError(ScraperError):
    """The source record has no URL to scrape. Never retried."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} has no source URL")


class NavigationError(ScraperError):
    """A single navigation attempt failed."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"Failed to load {url}: {reason}")


@dataclass(frozen=True)
class SourceRecord:
    """Identity and canonical URL of a product page."""

    id: str
    source_url: Optional[str]
    title: Optional[str] = None


@dataclass
class NavigationResult:
    """Outcome of loading a page; ``status`` is None when every attempt failed."""

    url: str
    status: Optional[int] = None
    ok: bool = False
    attempts: int = 0


@dataclass
class FieldResult:
    """Value produced by one field extractor plus the probes it recorded."""

    value: object = None
    probes: list[str] = field(default_factory=list)


@dataclass
class PriceResult:
    """Price extractor output."""

    price: Optional[Decimal] = None
    currency: Optional[str] = None
    unavailable: bool = False
    probes: list[str] = field(default_factory=list)


@dataclass
class ExtractionResult:
    """Everything one extraction attempt learned about a product page.

    Never persisted directly; the reconciler copies fields across.
    """

    description: Optional[str] = None
    image: Optional[str] = None
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    unavailable: bool = False
    rating_average: Optional[float] = None
    http_status: Optional[int] = None
    probes: list[str] = field(default_factory=list)
