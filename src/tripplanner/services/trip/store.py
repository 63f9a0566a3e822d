"""In-memory trip store: the single writer of the ``Trip`` aggregate.

Every command reads the current trip, builds the next value and swaps it in
one assignment, so no caller can observe a half-applied mutation. Commands
that reference an unknown day or stop return the current trip untouched;
ids come from UI events that may have been raised against a stale view.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import fields, replace
from datetime import date, timedelta
from typing import Any, Callable, Literal, Optional, Sequence

from ...config import settings
from ...models.domain import (
    Day,
    DayStats,
    InheritedStart,
    Location,
    RouteSegment,
    Stop,
    Trip,
    TripSettings,
    get_day_color,
)
from .snapshot import trip_from_snapshot, trip_to_snapshot

logger = logging.getLogger(__name__)

TripListener = Callable[[Trip], None]
Direction = Literal["up", "down"]

_UPDATABLE_STOP_FIELDS = frozenset(f.name for f in fields(Stop)) - {"id"}


def _new_id() -> str:
    return str(uuid.uuid4())


def create_empty_trip() -> Trip:
    return Trip(
        id=_new_id(),
        name="My Trip",
        days=(),
        settings=TripSettings(
            default_stop_duration=settings.default_stop_duration,
            distance_unit=settings.distance_unit,
        ),
    )


def create_empty_day(index: int, day_date: Optional[str] = None) -> Day:
    """Build an empty day dated ``index`` days from today."""

    resolved_date = day_date or (date.today() + timedelta(days=index)).isoformat()
    return Day(
        id=_new_id(),
        date=resolved_date,
        color=get_day_color(index),
        stops=(),
        is_visible=True,
        route_segments=(),
    )


def _recolor(days: Sequence[Day]) -> tuple[Day, ...]:
    return tuple(
        day if day.color == get_day_color(index) else replace(day, color=get_day_color(index))
        for index, day in enumerate(days)
    )


def inherited_start_for(trip: Trip, day_id: str) -> Optional[InheritedStart]:
    """Return the previous day's last stop, or ``None`` for the first day or an empty predecessor."""

    day_index = trip.day_index(day_id)
    if day_index <= 0:
        return None
    previous = trip.days[day_index - 1]
    if not previous.stops:
        return None
    return InheritedStart(stop=previous.stops[-1], from_day_index=day_index - 1)


class TripStore:
    """Owns exactly one trip and exposes every mutation as a command."""

    def __init__(self, trip: Trip | None = None) -> None:
        self._trip = trip or create_empty_trip()
        self.selected_day_id: Optional[str] = self._trip.days[0].id if self._trip.days else None
        self._listeners: list[TripListener] = []

    @property
    def trip(self) -> Trip:
        return self._trip

    # ------------------------------------------------------------------ #
    # Subscription
    # ------------------------------------------------------------------ #

    def subscribe(self, listener: TripListener) -> Callable[[], None]:
        """Register ``listener`` for trip changes; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, next_trip: Trip) -> Trip:
        if next_trip == self._trip:
            return self._trip
        self._trip = next_trip
        for listener in list(self._listeners):
            try:
                listener(next_trip)
            except Exception:
                logger.exception("Trip listener %r failed", listener)
        return next_trip

    def _replace_day(self, day_id: str, transform: Callable[[Day], Day]) -> Trip:
        index = self._trip.day_index(day_id)
        if index < 0:
            logger.debug("Ignoring command for unknown day %s", day_id)
            return self._trip
        days = list(self._trip.days)
        days[index] = transform(days[index])
        return self._commit(replace(self._trip, days=tuple(days)))

    def _replace_stop(self, day_id: str, stop_id: str, transform: Callable[[Stop], Stop]) -> Trip:
        def apply(day: Day) -> Day:
            index = day.stop_index(stop_id)
            if index < 0:
                logger.debug("Ignoring command for unknown stop %s in day %s", stop_id, day_id)
                return day
            stops = list(day.stops)
            stops[index] = transform(stops[index])
            return replace(day, stops=tuple(stops))

        return self._replace_day(day_id, apply)

    # ------------------------------------------------------------------ #
    # Trip-level commands
    # ------------------------------------------------------------------ #

    def load_trip(self, trip: Trip) -> Trip:
        """Replace the whole trip and select its first day."""

        self.selected_day_id = trip.days[0].id if trip.days else None
        return self._commit(trip)

    def new_trip(self) -> Trip:
        return self.load_trip(create_empty_trip())

    def import_snapshot(self, payload: Any) -> Trip:
        """Validate and load a serialized trip; raises ``SnapshotValidationError`` untouched."""

        trip = trip_from_snapshot(payload)
        logger.info("Imported trip %s with %d day(s)", trip.id, len(trip.days))
        return self.load_trip(trip)

    def export_snapshot(self) -> dict[str, Any]:
        return trip_to_snapshot(self._trip)

    def update_trip_name(self, name: str) -> Trip:
        return self._commit(replace(self._trip, name=name))

    def update_trip_description(self, description: Optional[str]) -> Trip:
        return self._commit(replace(self._trip, description=description))

    def select_day(self, day_id: Optional[str]) -> Optional[str]:
        if day_id is None or self._trip.day_index(day_id) >= 0:
            self.selected_day_id = day_id
        return self.selected_day_id

    def get_day(self, day_id: str) -> Optional[Day]:
        return self._trip.find_day(day_id)

    # ------------------------------------------------------------------ #
    # Day commands
    # ------------------------------------------------------------------ #

    def add_day(self, after_day_id: Optional[str] = None) -> Trip:
        """Insert an empty day after ``after_day_id`` (or at the end) and select it."""

        days = list(self._trip.days)
        after_index = self._trip.day_index(after_day_id) if after_day_id else -1
        insert_index = after_index + 1 if after_index >= 0 else len(days)

        new_day = create_empty_day(len(days))
        days.insert(insert_index, new_day)
        self.selected_day_id = new_day.id
        return self._commit(replace(self._trip, days=_recolor(days)))

    def remove_day(self, day_id: str) -> Trip:
        if self._trip.day_index(day_id) < 0:
            return self._trip
        days = [day for day in self._trip.days if day.id != day_id]
        if self.selected_day_id == day_id:
            self.selected_day_id = None
        return self._commit(replace(self._trip, days=_recolor(days)))

    def toggle_day_visibility(self, day_id: str) -> Trip:
        return self._replace_day(day_id, lambda day: replace(day, is_visible=not day.is_visible))

    def get_inherited_start(self, day_id: str) -> Optional[InheritedStart]:
        return inherited_start_for(self._trip, day_id)

    # ------------------------------------------------------------------ #
    # Stop commands
    # ------------------------------------------------------------------ #

    def add_stop(self, day_id: str, **stop_data: Any) -> Trip:
        """Append a stop to the day. Unspecified fields fall back to a plain unlocked waypoint at (0, 0)."""

        unknown = set(stop_data) - _UPDATABLE_STOP_FIELDS
        if unknown:
            raise ValueError(f"Unknown stop field(s): {', '.join(sorted(unknown))}")

        def append(day: Day) -> Day:
            new_stop = Stop(
                id=_new_id(),
                name=stop_data.get("name") or "New Stop",
                location=stop_data.get("location") or Location(lat=0.0, lng=0.0),
                type=stop_data.get("type") or "waypoint",
                is_locked=bool(stop_data.get("is_locked", False)),
                duration=stop_data.get("duration"),
                notes=stop_data.get("notes"),
                place_details=stop_data.get("place_details"),
            )
            return replace(day, stops=(*day.stops, new_stop))

        return self._replace_day(day_id, append)

    def update_stop(self, day_id: str, stop_id: str, **updates: Any) -> Trip:
        unknown = set(updates) - _UPDATABLE_STOP_FIELDS
        if unknown:
            raise ValueError(f"Unknown stop field(s): {', '.join(sorted(unknown))}")
        return self._replace_stop(day_id, stop_id, lambda stop: replace(stop, **updates))

    def relocate_stop(self, day_id: str, stop_id: str, location: Location) -> Trip:
        """Move a stop on the map. Locked stops keep their position."""

        def move(stop: Stop) -> Stop:
            if stop.is_locked:
                logger.debug("Stop %s is locked; ignoring relocation", stop.id)
                return stop
            return replace(stop, location=location)

        return self._replace_stop(day_id, stop_id, move)

    def remove_stop(self, day_id: str, stop_id: str) -> Trip:
        return self._replace_day(
            day_id,
            lambda day: replace(day, stops=tuple(stop for stop in day.stops if stop.id != stop_id)),
        )

    def move_stop(self, day_id: str, stop_id: str, direction: Direction) -> Trip:
        """Swap a stop with its neighbour; a move past either end is a no-op."""

        if direction not in ("up", "down"):
            raise ValueError(f"Invalid direction '{direction}', expected 'up' or 'down'")

        def swap(day: Day) -> Day:
            index = day.stop_index(stop_id)
            if index < 0:
                return day
            target = index - 1 if direction == "up" else index + 1
            if target < 0 or target >= len(day.stops):
                return day
            stops = list(day.stops)
            stops[index], stops[target] = stops[target], stops[index]
            return replace(day, stops=tuple(stops))

        return self._replace_day(day_id, swap)

    def move_stop_to_day(self, from_day_id: str, to_day_id: str, stop_id: str) -> Trip:
        """Transfer a stop to the end of another day in a single state change."""

        if from_day_id == to_day_id:
            return self._trip
        from_day = self._trip.find_day(from_day_id)
        if from_day is None or self._trip.find_day(to_day_id) is None:
            return self._trip
        stop = from_day.find_stop(stop_id)
        if stop is None:
            return self._trip

        days = []
        for day in self._trip.days:
            if day.id == from_day_id:
                day = replace(day, stops=tuple(s for s in day.stops if s.id != stop_id))
            elif day.id == to_day_id:
                day = replace(day, stops=(*day.stops, stop))
            days.append(day)
        return self._commit(replace(self._trip, days=tuple(days)))

    def toggle_lock(self, day_id: str, stop_id: str) -> Trip:
        return self._replace_stop(day_id, stop_id, lambda stop: replace(stop, is_locked=not stop.is_locked))

    # ------------------------------------------------------------------ #
    # Derived route data
    # ------------------------------------------------------------------ #

    def update_route_segments(self, day_id: str, segments: Sequence[RouteSegment]) -> Trip:
        return self._replace_day(day_id, lambda day: replace(day, route_segments=tuple(segments)))

    def update_day_stats(self, day_id: str, stats: Optional[DayStats]) -> Trip:
        return self._replace_day(day_id, lambda day: replace(day, stats=stats))

    def commit_route(self, day_id: str, segments: Sequence[RouteSegment], stats: Optional[DayStats]) -> Trip:
        """Replace a day's segments and stats together."""

        return self._replace_day(
            day_id,
            lambda day: replace(day, route_segments=tuple(segments), stats=stats),
        )
