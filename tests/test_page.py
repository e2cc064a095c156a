"""Tests for the page-query adapters."""

from unittest.mock import AsyncMock, MagicMock

from detail_scraper.ingest.page import HtmlPage, PlaywrightPage

URL = "https://www.wob.com/en-gb/books/the-hobbit/9780261102217"


def live_page(html: str) -> MagicMock:
    order = []
    page = MagicMock()
    page.order = order
    page.evaluate = AsyncMock(side_effect=lambda *args: order.append("evaluate"))
    page.content = AsyncMock(side_effect=lambda: order.append("content") or html)
    return page


async def test_live_content_mirrors_form_state_first():
    page = live_page("<html></html>")

    html = await PlaywrightPage(page, URL).content()

    assert html == "<html></html>"
    assert page.order == ["evaluate", "content"]
    assert "el.checked" in page.evaluate.await_args.args[0]


async def test_live_content_survives_form_state_failure():
    page = live_page("<html><body>ok</body></html>")
    page.evaluate.side_effect = RuntimeError("execution context destroyed")

    assert await PlaywrightPage(page, URL).content() == "<html><body>ok</body></html>"


async def test_live_inner_text_missing_element():
    page = MagicMock()
    page.locator.return_value.first.count = AsyncMock(return_value=0)

    assert await PlaywrightPage(page, URL).inner_text("main") is None


async def test_static_image_elements_use_first_matching_root():
    html = """
    <body>
      <img src="/outside.jpg" width="500" height="500">
      <main><img src="/cover.jpg" alt="Cover" width="300px" height="450"></main>
    </body>
    """
    images = await HtmlPage(html, URL).image_elements(["main", "body"])

    assert [(i.src, i.alt, i.width, i.height) for i in images] == [("/cover.jpg", "Cover", 300.0, 450.0)]
