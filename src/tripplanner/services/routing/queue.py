"""Rate-limited queue for routing-engine requests.

Requests are processed one at a time with a minimum spacing between calls so
a public OSRM instance does not answer with 429. Each key (a day id) has at
most one pending job: submitting again for the same key replaces the waiting
job, whose future then fails with ``RouteJobSuperseded``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ...config import settings

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = 429

RouteTask = Callable[[], Awaitable[Any]]


class RouteJobCancelled(Exception):
    """The job was removed from the queue before it started."""

    def __init__(self, key: str, message: str | None = None) -> None:
        super().__init__(message or f"Route job for '{key}' was cancelled before it ran")
        self.key = key


class RouteJobSuperseded(RouteJobCancelled):
    """A newer job for the same key replaced this one while it was waiting."""

    def __init__(self, key: str) -> None:
        super().__init__(key, f"Route job for '{key}' was superseded by a newer submission")


def is_rate_limited(error: BaseException) -> bool:
    """True when ``error`` carries the routing engine's rate-limit status."""

    return getattr(error, "status_code", None) == RATE_LIMIT_STATUS


@dataclass(slots=True)
class _QueueItem:
    key: str
    execute: RouteTask
    future: asyncio.Future


def _reject(item: _QueueItem, error: BaseException) -> None:
    if not item.future.done():
        item.future.set_exception(error)
        # Mark as retrieved for callers that dropped the handle.
        item.future.add_done_callback(lambda fut: fut.cancelled() or fut.exception())


class RouteQueue:
    def __init__(
        self,
        min_delay: float | None = None,
        rate_limit_delay: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_delay = min_delay if min_delay is not None else settings.route_queue_min_delay_seconds
        self.rate_limit_delay = (
            rate_limit_delay if rate_limit_delay is not None else settings.route_queue_rate_limit_delay_seconds
        )
        self._clock = clock
        # Insertion-ordered: the first key is the oldest submission.
        self._pending: dict[str, _QueueItem] = {}
        self._processing = False
        self._worker: Optional[asyncio.Task] = None
        self._last_call_time = float("-inf")

    @property
    def pending_keys(self) -> list[str]:
        return list(self._pending)

    @property
    def is_processing(self) -> bool:
        return self._processing

    def enqueue(self, key: str, execute: RouteTask) -> asyncio.Future:
        """Queue ``execute`` under ``key`` and return a future for its result.

        Must be called from a running event loop.
        """

        loop = asyncio.get_running_loop()
        previous = self._pending.pop(key, None)
        if previous is not None:
            logger.debug("Superseding pending route job for %s", key)
            _reject(previous, RouteJobSuperseded(key))

        future = loop.create_future()
        self._pending[key] = _QueueItem(key=key, execute=execute, future=future)
        self._schedule()
        return future

    def cancel(self, key: str) -> bool:
        """Drop the pending job for ``key``. A job that is already running is not affected."""

        item = self._pending.pop(key, None)
        if item is None:
            return False
        logger.debug("Cancelled pending route job for %s", key)
        _reject(item, RouteJobCancelled(key))
        return True

    async def aclose(self) -> None:
        """Fail every pending job and stop the worker."""

        for key in list(self._pending):
            self.cancel(key)
        worker = self._worker
        if worker is not None and not worker.done():
            worker.cancel()
            await asyncio.gather(worker, return_exceptions=True)

    def _schedule(self) -> None:
        if self._processing or not self._pending:
            return
        self._processing = True
        self._worker = asyncio.get_running_loop().create_task(self._process())

    def _discard_abandoned(self) -> None:
        for key, item in list(self._pending.items()):
            if item.future.done():
                del self._pending[key]

    async def _wait_for_slot(self) -> None:
        while True:
            remaining = self._last_call_time + self.min_delay - self._clock()
            if remaining <= 0:
                return
            await asyncio.sleep(remaining)

    async def _process(self) -> None:
        try:
            while True:
                self._discard_abandoned()
                if not self._pending:
                    break
                await self._wait_for_slot()
                self._discard_abandoned()
                if not self._pending:
                    break
                key = next(iter(self._pending))
                await self._run(self._pending.pop(key))
        finally:
            self._processing = False
            self._worker = None

    async def _run(self, item: _QueueItem) -> None:
        logger.debug("Running route job for %s (%d still pending)", item.key, len(self._pending))
        try:
            result = await item.execute()
        except asyncio.CancelledError:
            _reject(item, RouteJobCancelled(item.key, f"Route job for '{item.key}' was interrupted"))
            raise
        except Exception as exc:
            finished = self._clock()
            if is_rate_limited(exc):
                logger.warning(
                    "Routing engine rate limited the request for %s; delaying the next call by %.1fs",
                    item.key,
                    self.rate_limit_delay,
                )
                self._last_call_time = finished + self.rate_limit_delay
            else:
                self._last_call_time = finished
            if not item.future.done():
                item.future.set_exception(exc)
        else:
            self._last_call_time = self._clock()
            if not item.future.done():
                item.future.set_result(result)
