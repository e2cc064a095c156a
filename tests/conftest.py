"""Shared fixtures: sqlite database and a fake browser for the scraper seam."""

import asyncio
from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from detail_scraper.db.models import Base
from detail_scraper.ingest.base import NavigationResult

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def make_playwright_page(html: str, visible_text: str = "") -> MagicMock:
    """Mock of the Playwright page surface that ``PlaywrightPage`` uses."""
    page = MagicMock()
    page.content = AsyncMock(return_value=html)
    locator = MagicMock()
    locator.first.count = AsyncMock(return_value=1)
    locator.first.inner_text = AsyncMock(return_value=visible_text)
    page.locator.return_value = locator
    page.evaluate = AsyncMock(return_value=[])
    return page


class FakeBrowser:
    """Stands in for ``BrowserSession``; counts sessions opened and closed."""

    def __init__(self, html: str = "", visible_text: str = "", gate: Optional[asyncio.Event] = None):
        self.html = html
        self.visible_text = visible_text
        self.gate = gate
        self.error: Optional[Exception] = None
        self.sessions = 0
        self.closed = 0

    def __call__(self):
        return self

    async def __aenter__(self):
        self.sessions += 1
        if self.error is not None:
            raise self.error
        if self.gate is not None:
            await self.gate.wait()
        return make_playwright_page(self.html, self.visible_text)

    async def __aexit__(self, exc_type, exc, tb):
        self.closed += 1


class StubNavigator:
    """Navigator that always reports the given status."""

    def __init__(self, status: Optional[int] = 200):
        self.status = status
        self.urls = []

    async def load(self, page, url):
        self.urls.append(url)
        ok = self.status is not None and self.status < 400
        return NavigationResult(url=url, status=self.status, ok=ok, attempts=1)


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'details.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def wob_html() -> str:
    return load_fixture("wob_product.html")


@pytest.fixture
def fake_browser(wob_html) -> FakeBrowser:
    return FakeBrowser(html=wob_html)


@pytest.fixture
def stub_navigator() -> StubNavigator:
    return StubNavigator(200)
