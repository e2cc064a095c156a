"""Field extractors, each a cascade of strategies over a loaded page."""

from detail_scraper.ingest.extractors.description import DescriptionExtractor
from detail_scraper.ingest.extractors.image import ImageExtractor
from detail_scraper.ingest.extractors.price import PriceExtractor
from detail_scraper.ingest.extractors.rating import RatingExtractor

__all__ = [
    "DescriptionExtractor",
    "ImageExtractor",
    "PriceExtractor",
    "RatingExtractor",
]
