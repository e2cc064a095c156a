"""In-process coordination of product extractions.

At most one extraction per product is in flight. Concurrent callers join the
running one, and a product whose last attempt started within the cooldown
window is answered from the stored detail instead of a new browser session.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Generic, Optional, TypeVar

from detail_scraper import metrics
from detail_scraper.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExtractionCoordinator(Generic[T]):
    """
    Owns the in-flight and last-attempt maps for one process.

    Both maps are only read or written while holding ``_lock``.
    """

    def __init__(
        self,
        cooldown_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cooldown_seconds = (
            settings.cooldown_seconds if cooldown_seconds is None else cooldown_seconds
        )
        self._clock = clock
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._last_started: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def last_started(self, key: str) -> Optional[float]:
        return self._last_started.get(key)

    def in_cooldown(self, key: str) -> bool:
        """True when the last attempt for ``key`` started within the window."""
        started = self._last_started.get(key)
        return started is not None and self._clock() - started < self.cooldown_seconds

    async def request_extraction(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        cached: Optional[Callable[[], Awaitable[Optional[T]]]] = None,
        force: bool = False,
    ) -> T:
        """
        Return the outcome of an extraction for ``key``.

        Args:
            key: Source identity (product id)
            factory: Starts a new extraction when one is needed
            cached: Loads the last persisted outcome; consulted during cooldown
            force: Ignore the cooldown (an in-flight extraction is still joined)

        Returns:
            The shared outcome of the in-flight extraction, the cached value,
            or the outcome of a newly started extraction. Failures of a shared
            extraction are raised to every joined caller.
        """
        serve_cached = False
        async with self._lock:
            task = self._in_flight.get(key)
            if task is not None:
                logger.debug(f"Joining in-flight extraction for {key}")
                metrics.coordinator_short_circuits_total.labels(reason="in_flight").inc()
            elif cached is not None and not force and self.in_cooldown(key):
                serve_cached = True
            else:
                task = self._start(key, factory)

        if serve_cached:
            value = await cached()
            if value is not None:
                logger.debug(f"Serving cached result for {key} (cooldown)")
                metrics.coordinator_short_circuits_total.labels(reason="cooldown").inc()
                return value
            async with self._lock:
                task = self._in_flight.get(key) or self._start(key, factory)

        # A cancelled caller must not cancel the extraction others may share
        return await asyncio.shield(task)

    def _start(self, key: str, factory: Callable[[], Awaitable[T]]) -> asyncio.Task:
        # Caller holds self._lock
        self._last_started[key] = self._clock()
        task = asyncio.create_task(self._run(key, factory), name=f"extract:{key}")
        self._in_flight[key] = task
        task.add_done_callback(_log_unretrieved)
        logger.debug(f"Started extraction for {key}")
        return task

    async def _run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            return await factory()
        finally:
            async with self._lock:
                if self._in_flight.get(key) is asyncio.current_task():
                    del self._in_flight[key]

    async def close(self) -> None:
        """Wait for outstanding extractions and forget all state."""
        async with self._lock:
            tasks = list(self._in_flight.values())
        if tasks:
            logger.info(f"Waiting for {len(tasks)} in-flight extractions")
            await asyncio.gather(*tasks, return_exceptions=True)
        async with self._lock:
            self._in_flight.clear()
            self._last_started.clear()


def _log_unretrieved(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Extraction {task.get_name()} failed: {type(error).__name__}: {error}")
