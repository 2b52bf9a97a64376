"""
Browser pool
Bounded set of headless browser workers with semaphore-gated acquisition,
health-checked recycling and idle pruning.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from config.settings import PoolSettings, get_pool_settings
from utils.exceptions import AcquisitionError, PoolTimeoutError

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-extensions",
    "--no-first-run",
    "--mute-audio",
]


@dataclass
class PoolWorker:
    """A pooled browser. Owned by at most one caller at a time."""

    id: str
    handle: Any
    busy: bool = False
    last_used_at: float = field(default_factory=time.monotonic)


class WorkerLauncher(ABC):
    """Creates, checks and disposes of the underlying browser handles."""

    @abstractmethod
    async def launch(self) -> Any:
        pass

    @abstractmethod
    async def close(self, handle: Any) -> None:
        pass

    async def is_healthy(self, handle: Any) -> bool:
        return True

    async def aclose(self) -> None:
        return None


class PlaywrightLauncher(WorkerLauncher):
    """Headless Chromium through Playwright; one driver process shared by all browsers."""

    def __init__(self, headless: bool = True, args: Optional[List[str]] = None):
        self.headless = headless
        self.args = list(args or CHROMIUM_ARGS)
        self._playwright = None
        self._lock = asyncio.Lock()

    async def _driver(self):
        async with self._lock:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            return self._playwright

    async def launch(self) -> Any:
        driver = await self._driver()
        return await driver.chromium.launch(headless=self.headless, args=self.args)

    async def close(self, handle: Any) -> None:
        await handle.close()

    async def is_healthy(self, handle: Any) -> bool:
        return bool(handle.is_connected())

    async def aclose(self) -> None:
        async with self._lock:
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None


class BrowserPool:
    """
    Fixed-capacity worker pool.

    Capacity is a counting semaphore: callers suspend until a slot frees or
    their timeout elapses. A slot reuses an idle healthy worker or launches a
    new one. ``lease()`` guarantees release on every exit path.
    """

    def __init__(
        self,
        launcher: Optional[WorkerLauncher] = None,
        *,
        max_size: Optional[int] = None,
        acquire_timeout: Optional[float] = None,
        idle_timeout: Optional[float] = None,
        settings: Optional[PoolSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = settings or get_pool_settings()
        self.max_size = max(1, int(max_size if max_size is not None else settings.max_size))
        self.acquire_timeout = float(acquire_timeout if acquire_timeout is not None else settings.acquire_timeout)
        self.idle_timeout = float(idle_timeout if idle_timeout is not None else settings.idle_timeout)
        self._launcher = launcher or PlaywrightLauncher(headless=settings.headless)
        self._clock = clock
        self._semaphore = asyncio.Semaphore(self.max_size)
        self._lock = asyncio.Lock()
        self._idle: List[PoolWorker] = []
        self._busy: Dict[str, PoolWorker] = {}
        self._ids = itertools.count(1)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def acquire(self, timeout: Optional[float] = None) -> PoolWorker:
        if self._closed:
            raise AcquisitionError("browser pool is closed", kind="pool-exhausted")
        wait = self.acquire_timeout if timeout is None else float(timeout)
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=wait)
        except asyncio.TimeoutError:
            logger.warning("[pool] no worker free within %.1fs (%s)", wait, self.status())
            raise PoolTimeoutError(f"no browser worker available within {wait:.1f}s", wait_seconds=wait) from None

        try:
            return await self._checkout()
        except BaseException:
            self._semaphore.release()
            raise

    async def _checkout(self) -> PoolWorker:
        async with self._lock:
            while self._idle:
                worker = self._idle.pop()
                if await self._healthy(worker):
                    worker.busy = True
                    worker.last_used_at = self._clock()
                    self._busy[worker.id] = worker
                    logger.debug("[pool] reusing %s", worker.id)
                    return worker
                logger.info("[pool] discarding unhealthy %s", worker.id)
                await self._dispose(worker)

        try:
            handle = await self._launcher.launch()
        except (PlaywrightError, OSError, RuntimeError) as exc:
            raise AcquisitionError(f"browser launch failed: {exc}", kind="network") from exc

        worker = PoolWorker(id=f"worker-{next(self._ids)}", handle=handle, busy=True, last_used_at=self._clock())
        async with self._lock:
            self._busy[worker.id] = worker
        logger.info("[pool] launched %s (%d/%d)", worker.id, len(self._busy) + len(self._idle), self.max_size)
        return worker

    async def release(self, worker: PoolWorker) -> None:
        async with self._lock:
            owned = self._busy.get(worker.id)
            if owned is not worker:
                raise ValueError(f"worker {worker.id} is not checked out from this pool")
            del self._busy[worker.id]
            worker.busy = False
            worker.last_used_at = self._clock()

        try:
            if not self._closed and await self._healthy(worker):
                async with self._lock:
                    self._idle.append(worker)
            else:
                await self._dispose(worker)
        finally:
            self._semaphore.release()
        if self._closed:
            if not self._busy:
                await self._launcher.aclose()
            return
        await self.prune_idle()

    @asynccontextmanager
    async def lease(self, timeout: Optional[float] = None) -> AsyncIterator[PoolWorker]:
        worker = await self.acquire(timeout)
        try:
            yield worker
        finally:
            await self.release(worker)

    async def prune_idle(self) -> int:
        """Close idle workers unused for longer than ``idle_timeout``."""
        now = self._clock()
        async with self._lock:
            stale = [worker for worker in self._idle if now - worker.last_used_at > self.idle_timeout]
            self._idle = [worker for worker in self._idle if worker not in stale]
        for worker in stale:
            logger.info("[pool] closing idle %s", worker.id)
            await self._dispose(worker)
        return len(stale)

    def status(self) -> Dict[str, int]:
        return {
            "total": len(self._idle) + len(self._busy),
            "in_use": len(self._busy),
            "available": len(self._idle),
            "max_size": self.max_size,
        }

    async def close(self) -> None:
        """Close idle workers now; leased workers are closed when released."""
        self._closed = True
        async with self._lock:
            workers = list(self._idle)
            self._idle = []
            leased = len(self._busy)
        for worker in workers:
            await self._dispose(worker)
        if not leased:
            await self._launcher.aclose()
        logger.info("[pool] closed %d idle workers, %d still leased", len(workers), leased)

    async def __aenter__(self) -> "BrowserPool":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _healthy(self, worker: PoolWorker) -> bool:
        try:
            return await self._launcher.is_healthy(worker.handle)
        except (PlaywrightError, OSError, RuntimeError) as exc:
            logger.debug("[pool] health check failed for %s: %s", worker.id, exc)
            return False

    async def _dispose(self, worker: PoolWorker) -> None:
        try:
            await self._launcher.close(worker.handle)
        except (PlaywrightError, OSError, RuntimeError) as exc:
            logger.warning("[pool] closing %s failed: %s", worker.id, exc)
