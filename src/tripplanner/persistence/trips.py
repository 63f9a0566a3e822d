"""Load and save the current trip across the file and database backends."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Optional

from ..models.domain import Trip
from ..services.trip.snapshot import SnapshotValidationError, trip_from_snapshot, trip_to_snapshot
from .database import get_trip_from_database, save_trip_to_database
from .filesystem import FileStorage

logger = logging.getLogger(__name__)


def load_saved_trip(storage: FileStorage | None = None) -> Optional[Trip]:
    """Return the persisted trip, preferring the database when it is configured."""

    storage = storage or FileStorage()
    snapshot = get_trip_from_database()
    source = "database"
    if snapshot is None:
        source = str(storage.snapshot_path)
        try:
            snapshot = storage.load_trip_snapshot()
        except (OSError, ValueError) as exc:
            logger.warning("Could not read trip snapshot from %s: %s", source, exc)
            return None
    if snapshot is None:
        return None

    try:
        trip = trip_from_snapshot(snapshot)
    except SnapshotValidationError as exc:
        logger.warning("Ignoring invalid trip snapshot from %s: %s", source, exc)
        return None
    logger.info("Loaded trip %s from %s", trip.id, source)
    return trip


class SnapshotWriter:
    """Store listener that persists every new trip value.

    Inside a running event loop the file and database writes are handed to a
    single background thread, so saves complete in commit order without
    blocking the loop. Outside a loop they run inline.
    """

    def __init__(self, storage: FileStorage | None = None) -> None:
        self.storage = storage or FileStorage()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="trip-snapshot")
        self._last_save: Optional[Future] = None

    def __call__(self, trip: Trip) -> None:
        snapshot = trip_to_snapshot(trip)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._save(snapshot)
            return
        self._last_save = self._executor.submit(self._save, snapshot)
        self._last_save.add_done_callback(_log_save_failure)

    def _save(self, snapshot: dict[str, Any]) -> None:
        try:
            self.storage.save_trip_snapshot(snapshot)
        except OSError as exc:
            logger.error("Failed to save trip snapshot to %s: %s", self.storage.snapshot_path, exc)
        save_trip_to_database(snapshot)

    def flush(self) -> None:
        """Block until every queued save has finished."""

        if self._last_save is not None:
            wait([self._last_save])

    def close(self) -> None:
        self._executor.shutdown(wait=True)


def _log_save_failure(future: Future) -> None:
    if not future.cancelled() and future.exception() is not None:
        logger.error("Trip snapshot save failed", exc_info=future.exception())
