"""
Recipe Classifier — Admission Control
=======================================
Bounds the remote round trips this package issues: at most
``max_rate`` starts per fixed window of ``rate_window_ms`` milliseconds,
and at most ``max_concurrency`` in flight.

Every round trip goes through a limiter, either as a context::

    async with ee_limiter:
        document = await loader.load_recipe(recipe_id)

or, for evaluating an Earth Engine object::

    band_names = await ee_limiter.evaluate(image.bandNames())
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, TypeVar

import ee

logger = logging.getLogger("recipe_classifier.limiter")

DEFAULT_RATE_WINDOW_MS = 1000
DEFAULT_MAX_RATE = 10
DEFAULT_MAX_CONCURRENCY = 20

T = TypeVar("T")


class Limiter:
    """Fixed-window rate limit combined with a concurrency cap.

    Args:
        name: Label used in log messages.
        rate_window_ms: Length of a rate window in milliseconds.
        max_rate: Round trips allowed to start within one window.
        max_concurrency: Round trips allowed in flight at once.
    """

    def __init__(
        self,
        name: str,
        rate_window_ms: int = DEFAULT_RATE_WINDOW_MS,
        max_rate: int = DEFAULT_MAX_RATE,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if rate_window_ms <= 0 or max_rate < 1 or max_concurrency < 1:
            raise ValueError(
                "rate_window_ms, max_rate and max_concurrency must be positive"
            )
        self.name = name
        self.rate_window = rate_window_ms / 1000
        self.max_rate = max_rate
        self.max_concurrency = max_concurrency
        self._window_start = 0.0
        self._window_count = 0
        self._active = 0
        # asyncio primitives bind to a loop on first use; created lazily so
        # a module-level limiter works across asyncio.run() calls.
        self._semaphore: asyncio.Semaphore | None = None
        self._window_lock: asyncio.Lock | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def active(self) -> int:
        """Round trips currently in flight."""
        return self._active

    def _primitives(self) -> tuple[asyncio.Semaphore, asyncio.Lock]:
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            self._loop = loop
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
            self._window_lock = asyncio.Lock()
            self._active = 0
        return self._semaphore, self._window_lock  # type: ignore[return-value]

    async def _wait_for_rate_slot(self, lock: asyncio.Lock) -> None:
        async with lock:
            while True:
                now = time.monotonic()
                if now - self._window_start >= self.rate_window:
                    self._window_start = now
                    self._window_count = 0
                if self._window_count < self.max_rate:
                    self._window_count += 1
                    return
                delay = self.rate_window - (now - self._window_start)
                logger.debug("%s limiter: rate limit reached, waiting %.3fs", self.name, delay)
                await asyncio.sleep(delay)

    async def __aenter__(self) -> Limiter:
        semaphore, lock = self._primitives()
        await semaphore.acquire()
        try:
            await self._wait_for_rate_slot(lock)
        except BaseException:
            semaphore.release()
            raise
        self._active += 1
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self._active -= 1
        self._semaphore.release()  # type: ignore[union-attr]

    async def run(self, function: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking call in a worker thread under this limiter."""
        async with self:
            return await asyncio.to_thread(function, *args, **kwargs)

    async def evaluate(self, computed_object: ee.ComputedObject) -> Any:
        """Fetch the client-side value of an Earth Engine object."""
        return await self.run(computed_object.getInfo)


ee_limiter = Limiter(
    name="EE",
    rate_window_ms=DEFAULT_RATE_WINDOW_MS,
    max_rate=DEFAULT_MAX_RATE,
    max_concurrency=DEFAULT_MAX_CONCURRENCY,
)
