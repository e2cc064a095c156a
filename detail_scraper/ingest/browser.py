"""Per-extraction browser session (fresh process and isolated context)."""

import logging
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from detail_scraper.config import settings

logger = logging.getLogger(__name__)


class BrowserSession:
    """
    Launches Chromium with a clean context on enter and tears everything
    down on exit, including when the body raised.

    Usage:
        async with BrowserSession() as page:
            await page.goto(url)
    """

    def __init__(
        self,
        headless: bool = None,
        user_agent: str = None,
        args: list[str] = None,
    ):
        self.headless = settings.headless if headless is None else headless
        self.user_agent = user_agent or settings.user_agent
        self.args = args if args is not None else list(settings.browser_args)

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def __aenter__(self) -> Page:
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=self.args,
            )
            desktop = dict(self._playwright.devices["Desktop Chrome"])
            desktop.pop("user_agent", None)
            desktop.pop("default_browser_type", None)
            self._context = await self._browser.new_context(
                **desktop,
                user_agent=self.user_agent,
            )
            return await self._context.new_page()
        except BaseException:
            await self.close()
            raise

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close context, browser and driver; errors are logged, never raised."""
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as e:
                logger.warning(f"Error closing browser context: {e}")
            self._context = None

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping playwright: {e}")
            self._playwright = None
