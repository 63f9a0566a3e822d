"""Keep each visible day's route in sync with its stops.

The orchestrator listens to the trip store. When the effective waypoints of a
visible day change (its own stops, their durations, or the stop inherited
from the previous day) it waits for a short quiet period, submits one job per
day to the route queue and commits the resulting segments and stats back into
the store. Failures leave the previous route in place and are only logged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Hashable, Optional

from ...config import settings
from ...models.domain import Trip
from ..trip.store import TripStore, inherited_start_for
from .osrm_client import OSRMClient
from .queue import RouteJobCancelled, RouteQueue, is_rate_limited
from .segments import build_route_segments, build_waypoints, extract_legs, waypoint_coordinates

logger = logging.getLogger(__name__)


def route_fingerprint(trip: Trip, day_id: str) -> Optional[Hashable]:
    """Everything a day's route and stats depend on; ``None`` for unknown days."""

    day = trip.find_day(day_id)
    if day is None:
        return None
    waypoints = build_waypoints(day.stops, inherited_start_for(trip, day_id))
    return (
        tuple((wp.stop_id, wp.location.lat, wp.location.lng) for wp in waypoints),
        tuple(stop.duration for stop in day.stops),
    )


class RoutingOrchestrator:
    def __init__(
        self,
        store: TripStore,
        queue: RouteQueue | None = None,
        client: OSRMClient | None = None,
        debounce_seconds: float | None = None,
    ) -> None:
        self.store = store
        self.queue = queue or RouteQueue()
        self._client = client
        self.debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else settings.route_debounce_seconds
        )
        self._tasks: dict[str, asyncio.Task] = {}
        self._fingerprints: dict[str, Hashable] = {}
        self._unsubscribe = None

    @property
    def client(self) -> OSRMClient:
        if self._client is None:
            self._client = OSRMClient()
        return self._client

    @property
    def scheduled_days(self) -> list[str]:
        return [day_id for day_id, task in self._tasks.items() if not task.done()]

    def start(self) -> None:
        """Subscribe to the store and schedule every visible day. Needs a running loop."""

        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_trip_changed)
        self._on_trip_changed(self.store.trip)

    async def aclose(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        await self.queue.aclose()

    async def wait_idle(self) -> None:
        """Wait until no debounce or route job is outstanding."""

        while True:
            tasks = [task for task in self._tasks.values() if not task.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    def refresh(self, day_id: str) -> bool:
        """Recompute a day's route even if its stops did not change."""

        fingerprint = route_fingerprint(self.store.trip, day_id)
        if fingerprint is None:
            return False
        self._schedule(day_id, fingerprint)
        return True

    def _on_trip_changed(self, trip: Trip) -> None:
        live_ids = {day.id for day in trip.days}
        for day_id in set(self._fingerprints) | set(self._tasks):
            if day_id not in live_ids:
                self._forget(day_id)
                self._fingerprints.pop(day_id, None)

        for day in trip.days:
            if not day.is_visible:
                if day.id in self._tasks:
                    self._forget(day.id)
                continue
            fingerprint = route_fingerprint(trip, day.id)
            if self._fingerprints.get(day.id) == fingerprint:
                continue
            self._schedule(day.id, fingerprint)

    def _forget(self, day_id: str) -> None:
        task = self._tasks.pop(day_id, None)
        if task is not None:
            task.cancel()
            # The scheduled fingerprint was never committed.
            self._fingerprints.pop(day_id, None)
        self.queue.cancel(day_id)

    def _schedule(self, day_id: str, fingerprint: Hashable) -> None:
        self._fingerprints[day_id] = fingerprint
        previous = self._tasks.pop(day_id, None)
        if previous is not None:
            previous.cancel()
        self.queue.cancel(day_id)

        task = asyncio.get_running_loop().create_task(self._recompute(day_id))
        self._tasks[day_id] = task

        def _cleanup(done: asyncio.Task, key: str = day_id) -> None:
            if self._tasks.get(key) is done:
                del self._tasks[key]

        task.add_done_callback(_cleanup)

    async def _recompute(self, day_id: str) -> None:
        if self.debounce_seconds > 0:
            await asyncio.sleep(self.debounce_seconds)
        try:
            await self._compute_and_commit(day_id)
        except Exception:
            logger.exception("Unexpected error while computing the route for day %s", day_id)

    async def _compute_and_commit(self, day_id: str) -> None:
        trip = self.store.trip
        day = trip.find_day(day_id)
        if day is None:
            return
        fingerprint = route_fingerprint(trip, day_id)
        inherited_start = inherited_start_for(trip, day_id)
        waypoints = build_waypoints(day.stops, inherited_start)

        if len(waypoints) < 2:
            if day.route_segments or day.stats is not None:
                self.store.commit_route(day_id, (), None)
            return

        coordinates = waypoint_coordinates(waypoints)
        try:
            response = await self.queue.enqueue(day_id, lambda: self.client.route(coordinates))
            computation = build_route_segments(day.stops, extract_legs(response), inherited_start)
        except RouteJobCancelled:
            logger.debug("Route job for day %s was replaced before it ran", day_id)
            return
        except Exception as exc:
            if is_rate_limited(exc):
                logger.warning("Route computation for day %s was rate limited; keeping the previous route", day_id)
            else:
                logger.warning("Route computation for day %s failed: %s", day_id, exc)
            return

        current = self.store.trip
        if route_fingerprint(current, day_id) != fingerprint:
            logger.debug("Discarding stale route result for day %s", day_id)
            return
        self.store.commit_route(day_id, computation.segments, computation.stats)
        logger.info(
            "Updated route for day %s: %d segment(s), %.0fs driving, %.0fm",
            day_id,
            len(computation.segments),
            computation.stats.total_driving_time,
            computation.stats.total_driving_distance,
        )
