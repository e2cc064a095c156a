"""Page-query capability the field extractors run against.

Extractors never touch Playwright directly. They ask a ``PageQuery`` for the
rendered HTML, the visible text of a region, or the rendered image boxes, so
the same strategies work on a live page (``PlaywrightPage``) and on static
HTML (``HtmlPage``).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from playwright.async_api import Page
from selectolax.parser import HTMLParser

logger = logging.getLogger(__name__)


@dataclass
class ImageElement:
    """An ``<img>`` with its source attributes and rendered size."""

    src: Optional[str] = None
    srcset: Optional[str] = None
    data_src: Optional[str] = None
    current_src: Optional[str] = None
    alt: str = ""
    width: float = 0.0
    height: float = 0.0


class PageQuery(ABC):
    """Read-only view of a loaded product page."""

    url: str

    @abstractmethod
    async def content(self) -> str:
        """Full HTML of the current document."""

    @abstractmethod
    async def inner_text(self, selector: str) -> Optional[str]:
        """Visible text of the first element matching ``selector``."""

    @abstractmethod
    async def image_elements(self, root_selectors: list[str]) -> list[ImageElement]:
        """Images under the first root matching one of ``root_selectors``."""


# Scripts toggle the checked/selected *properties*, which serialization ignores.
# Mirror them onto attributes so the HTML snapshot shows the live selection.
_FORM_STATE_SCRIPT = """
() => {
  for (const el of document.querySelectorAll('input[type="radio"], input[type="checkbox"]')) {
    el.toggleAttribute('checked', el.checked);
  }
  for (const el of document.querySelectorAll('option')) {
    el.toggleAttribute('selected', el.selected);
  }
}
"""

_IMAGE_SCRIPT = """
(rootSelectors) => {
  let root = null;
  for (const sel of rootSelectors) {
    root = document.querySelector(sel);
    if (root) break;
  }
  root = root || document.body;
  if (!root) return [];
  return Array.from(root.querySelectorAll('img')).map((img) => {
    const r = img.getBoundingClientRect();
    return {
      src: img.getAttribute('src'),
      srcset: img.getAttribute('srcset'),
      data_src: img.getAttribute('data-src'),
      current_src: img.currentSrc || null,
      alt: img.getAttribute('alt') || '',
      width: r.width,
      height: r.height,
    };
  });
}
"""


class PlaywrightPage(PageQuery):
    """``PageQuery`` backed by a live Playwright page."""

    def __init__(self, page: Page, url: str, timeout_ms: int = 2000):
        self.page = page
        self.url = url
        self.timeout_ms = timeout_ms

    async def content(self) -> str:
        try:
            await self.page.evaluate(_FORM_STATE_SCRIPT)
        except Exception as e:
            logger.debug(f"Could not mirror form state on {self.url}: {e}")
        return await self.page.content()

    async def inner_text(self, selector: str) -> Optional[str]:
        locator = self.page.locator(selector).first
        if await locator.count() == 0:
            return None
        return await locator.inner_text(timeout=self.timeout_ms)

    async def image_elements(self, root_selectors: list[str]) -> list[ImageElement]:
        rows = await self.page.evaluate(_IMAGE_SCRIPT, root_selectors)
        return [ImageElement(**row) for row in rows or []]


class HtmlPage(PageQuery):
    """``PageQuery`` over a static HTML string.

    There is no layout engine, so rendered image sizes come from the
    ``width``/``height`` attributes, and visible text is the node text.
    """

    def __init__(self, html: str, url: str = "about:blank"):
        self.html = html
        self.url = url
        self._tree = HTMLParser(html)

    async def content(self) -> str:
        return self.html

    async def inner_text(self, selector: str) -> Optional[str]:
        node = self._tree.css_first(selector)
        if node is None:
            return None
        return node.text(separator=" ")

    async def image_elements(self, root_selectors: list[str]) -> list[ImageElement]:
        root = None
        for selector in root_selectors:
            root = self._tree.css_first(selector)
            if root is not None:
                break
        root = root or self._tree.body
        if root is None:
            return []

        images = []
        for img in root.css("img"):
            attrs = img.attributes
            images.append(
                ImageElement(
                    src=attrs.get("src"),
                    srcset=attrs.get("srcset"),
                    data_src=attrs.get("data-src"),
                    alt=attrs.get("alt") or "",
                    width=_attr_px(attrs.get("width")),
                    height=_attr_px(attrs.get("height")),
                )
            )
        return images


def _attr_px(value: Optional[str]) -> float:
    if not value:
        return 0.0
    try:
        return float(value.strip().removesuffix("px"))
    except ValueError:
        return 0.0
