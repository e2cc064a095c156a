"""Cover image extraction."""

import logging
import re
from typing import Any, Optional
from urllib.parse import urljoin, urlparse

from selectolax.parser import HTMLParser

from detail_scraper.config import settings
from detail_scraper.ingest.base import FieldResult
from detail_scraper.ingest.json_extractor import (
    as_list,
    extract_products_from_json_ld,
)
from detail_scraper.ingest.page import ImageElement, PageQuery

logger = logging.getLogger(__name__)

SVG_PATTERN = re.compile(r"\.svg(\?|#|$)", re.IGNORECASE)
LOGO_URL_PATTERN = re.compile(
    r"logo|sprite|icon|favicon|trustpilot|placeholder|opengraph-default|og-image-default",
    re.IGNORECASE,
)
LOGO_ALT_PATTERN = re.compile(r"logo|trustpilot|icon|placeholder", re.IGNORECASE)

CONTENT_ROOTS = ["main", "body"]

META_IMAGE_SELECTORS = [
    'meta[property="og:image:secure_url"]',
    'meta[property="og:image"]',
    'meta[name="og:image"]',
    'meta[name="twitter:image"]',
]

# Score multiplier for images whose alt text names the cover or the product
TITLE_BOOST = 1.5


def is_logo(url: Optional[str], alt: str = "") -> bool:
    """True for URLs (or alt text) that look like branding rather than a product image."""
    if not url:
        return True
    if SVG_PATTERN.search(url) or LOGO_URL_PATTERN.search(url):
        return True
    return bool(alt and LOGO_ALT_PATTERN.search(alt))


def absolutize(url: Optional[str], base_url: str) -> Optional[str]:
    """Resolve ``url`` against ``base_url``; None unless the result is http(s)."""
    if not url:
        return None
    try:
        resolved = urljoin(base_url, url.strip())
    except ValueError:
        return None
    parsed = urlparse(resolved)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return resolved


def _image_urls(value: Any) -> list[str]:
    """URLs from a JSON-LD image value (string, list, or ImageObject)."""
    urls = []
    for item in as_list(value):
        if isinstance(item, dict):
            item = item.get("url") or item.get("contentUrl")
        if isinstance(item, str) and item.strip():
            urls.append(item.strip())
    return urls


def from_meta(tree: HTMLParser) -> list[str]:
    """Every Open Graph / Twitter image value, secure URL first."""
    candidates = []
    for selector in META_IMAGE_SELECTORS:
        for node in tree.css(selector):
            value = (node.attributes.get("content") or "").strip()
            if value:
                candidates.append(value)
    return candidates


def from_json_ld(html: str) -> list[str]:
    """``image`` then ``offers.image`` values of Product and Book nodes."""
    candidates = []
    for product in extract_products_from_json_ld(html):
        candidates.extend(_image_urls(product.get("image")))
        for offer in as_list(product.get("offers")):
            if isinstance(offer, dict):
                candidates.extend(_image_urls(offer.get("image")))
    return candidates


def _srcset_largest(srcset: Optional[str]) -> Optional[str]:
    if not srcset:
        return None
    entries = [part.strip().split(" ")[0] for part in srcset.split(",")]
    entries = [e for e in entries if e]
    return entries[-1] if entries else None


def element_source(img: ImageElement) -> Optional[str]:
    """Best source URL of an image: srcset, src, data-src, currentSrc."""
    for candidate in (_srcset_largest(img.srcset), img.src, img.data_src, img.current_src):
        if candidate and candidate.strip() and not candidate.startswith("data:"):
            return candidate.strip()
    return None


def score_element(img: ImageElement, portrait_ratio: float, title: Optional[str] = None) -> float:
    """Rendered area, doubled for cover-shaped (portrait) images.

    With a product title, an alt text mentioning "cover" or the title
    multiplies the score by ``TITLE_BOOST``.
    """
    area = img.width * img.height
    ratio = img.height / max(1.0, img.width)
    score = area * 2 if ratio >= portrait_ratio else area
    title = (title or "").strip().lower()
    alt = (img.alt or "").lower()
    if title and ("cover" in alt or title in alt):
        score *= TITLE_BOOST
    return score


def pick_dom_image(
    images: list[ImageElement],
    min_side: float,
    portrait_ratio: float,
    title: Optional[str] = None,
) -> Optional[str]:
    """Highest scoring non-logo image at least ``min_side`` on both axes."""
    best_src, best_score = None, 0.0
    for img in images:
        if img.width < min_side or img.height < min_side:
            continue
        src = element_source(img)
        if is_logo(src, img.alt):
            continue
        score = score_element(img, portrait_ratio, title)
        if score > best_score:
            best_src, best_score = src, score
    return best_src


class ImageExtractor:
    """Runs the image cascade: meta tags, JSON-LD, largest content image."""

    def __init__(self, min_side: int = None, portrait_ratio: float = None):
        self.min_side = settings.image_min_side_px if min_side is None else min_side
        self.portrait_ratio = (
            settings.image_portrait_ratio if portrait_ratio is None else portrait_ratio
        )

    def _accept(self, candidates: list[str], base_url: str) -> Optional[str]:
        for candidate in candidates:
            if is_logo(candidate):
                continue
            absolute = absolutize(candidate, base_url)
            if absolute and not is_logo(absolute):
                return absolute
        return None

    async def extract(self, page: PageQuery, base_url: str, title: Optional[str] = None) -> FieldResult:
        result = FieldResult()

        try:
            html = await page.content()
        except Exception as e:
            logger.debug(f"Image extraction: no page content: {e}")
            html = ""
        tree = HTMLParser(html)

        for tag, collect in (
            ("img:og", lambda: from_meta(tree)),
            ("img:ld-json", lambda: from_json_ld(html)),
        ):
            try:
                url = self._accept(collect(), base_url)
            except Exception as e:
                logger.debug(f"Image strategy {tag} failed: {e}")
                result.probes.append(f"{tag}:error")
                continue
            if url:
                result.value = url
                result.probes.append(tag)
                return result
            result.probes.append(f"{tag}:miss")

        try:
            images = [
                img for img in await page.image_elements(CONTENT_ROOTS)
                if absolutize(element_source(img), base_url)
            ]
            src = pick_dom_image(images, self.min_side, self.portrait_ratio, title)
            url = absolutize(src, base_url)
        except Exception as e:
            logger.debug(f"Image strategy img:dom failed: {e}")
            result.probes.append("img:dom:error")
            url = None
        else:
            if url:
                result.value = url
                result.probes.append("img:dom")
                return result
            result.probes.append("img:dom:miss")

        result.probes.append("img:none")
        return result
