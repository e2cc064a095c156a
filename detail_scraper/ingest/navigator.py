"""Page navigation with retry/backoff and consent banner dismissal."""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from detail_scraper import metrics
from detail_scraper.config import settings
from detail_scraper.ingest.base import NavigationError, NavigationResult

logger = logging.getLogger(__name__)

# OneTrust (used by the target site) plus generic "accept all" buttons
CONSENT_SELECTOR = ", ".join([
    "#onetrust-accept-btn-handler",
    "button#onetrust-accept-btn-handler",
    'button:has-text("Accept all")',
    'button:has-text("Accept All")',
])

CONTENT_READY_SELECTOR = "main, body"


class Navigator:
    """Loads a product page, retrying 429s and transient failures."""

    def __init__(
        self,
        max_retries: int = None,
        backoff_base_ms: int = None,
        timeout_ms: int = None,
        consent_timeout_ms: int = None,
        settle_range_ms: tuple[int, int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_retries = settings.navigation_max_retries if max_retries is None else max_retries
        self.backoff_base_ms = settings.backoff_base_ms if backoff_base_ms is None else backoff_base_ms
        self.timeout_ms = settings.navigation_timeout_ms if timeout_ms is None else timeout_ms
        self.consent_timeout_ms = (
            settings.consent_timeout_ms if consent_timeout_ms is None else consent_timeout_ms
        )
        self.settle_range_ms = settle_range_ms if settle_range_ms is not None else (
            settings.settle_delay_min_ms,
            settings.settle_delay_max_ms,
        )
        self._sleep = sleep

    def backoff_seconds(self, attempt: int) -> float:
        """Wait before retry number ``attempt + 1``: base * 2**attempt."""
        return self.backoff_base_ms * (2 ** attempt) / 1000

    async def _goto(self, page: Page, url: str) -> Optional[int]:
        try:
            response = await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
        except PlaywrightTimeoutError:
            raise NavigationError(url, "Navigation timeout")
        except PlaywrightError as e:
            raise NavigationError(url, str(e))
        return response.status if response is not None else None

    async def load(self, page: Page, url: str) -> NavigationResult:
        """
        Navigate ``page`` to ``url``.

        Never raises: when every attempt fails the result has ``status=None``
        and extraction carries on against whatever the page shows.
        """
        low, high = self.settle_range_ms
        await self._sleep(random.uniform(low, high) / 1000)

        result = NavigationResult(url=url)
        for attempt in range(self.max_retries):
            result.attempts = attempt + 1
            try:
                status = await self._goto(page, url)
            except NavigationError as e:
                wait = self.backoff_seconds(attempt)
                logger.warning(
                    f"Navigation attempt {attempt + 1}/{self.max_retries} failed for {url}: "
                    f"{e.reason}; retrying in {wait:.2f}s"
                )
                metrics.navigation_retries_total.labels(reason="transient").inc()
                await self._sleep(wait)
                continue

            if status == 429:
                wait = self.backoff_seconds(attempt)
                logger.warning(f"HTTP 429 for {url}; retrying in {wait:.2f}s")
                metrics.navigation_retries_total.labels(reason="429").inc()
                await self._sleep(wait)
                continue

            return await self._loaded(page, result, status)

        # Retries exhausted: one last unguarded attempt
        result.attempts += 1
        try:
            status = await self._goto(page, url)
        except NavigationError as e:
            logger.error(f"Giving up on {url} after {result.attempts} attempts: {e.reason}")
            return result
        return await self._loaded(page, result, status)

    async def _loaded(self, page: Page, result: NavigationResult, status: Optional[int]) -> NavigationResult:
        result.status = status
        result.ok = status is not None and status < 400
        if status is not None and status >= 400 and status != 429:
            logger.warning(f"Non-OK response {status} for {result.url}")

        await self.dismiss_consent(page)
        try:
            await page.wait_for_selector(CONTENT_READY_SELECTOR, timeout=settings.field_query_timeout_ms)
        except Exception as e:
            logger.debug(f"Content did not settle on {result.url}: {e}")
        return result

    async def dismiss_consent(self, page: Page) -> bool:
        """Click the cookie consent button if it shows up in time. Best effort."""
        try:
            button = page.locator(CONSENT_SELECTOR).first
            await button.wait_for(state="visible", timeout=self.consent_timeout_ms)
            await button.click(timeout=self.consent_timeout_ms)
            await self._sleep(0.25)
            logger.debug("Dismissed consent banner")
            return True
        except Exception as e:
            logger.debug(f"No consent banner dismissed: {type(e).__name__}")
            return False
