"""Domain models for trips, days and stops.

All records are frozen; the trip store replaces values instead of mutating
them, so a ``Trip`` handed out to a caller never changes underneath it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Literal, Optional

StopType = Literal[
    "start",
    "waypoint",
    "end",
    "accommodation",
    "activity",
    "restaurant",
    "gas_station",
    "rest_stop",
]
STOP_TYPES: tuple[str, ...] = (
    "start",
    "waypoint",
    "end",
    "accommodation",
    "activity",
    "restaurant",
    "gas_station",
    "rest_stop",
)

DistanceUnit = Literal["km", "mi"]

DAY_COLORS: tuple[str, ...] = (
    "#3B82F6",  # Blue
    "#10B981",  # Emerald
    "#F59E0B",  # Amber
    "#EF4444",  # Red
    "#8B5CF6",  # Violet
    "#EC4899",  # Pink
    "#06B6D4",  # Cyan
    "#84CC16",  # Lime
)


def get_day_color(index: int) -> str:
    """Return the palette colour for the day at ``index`` in the trip."""

    return DAY_COLORS[index % len(DAY_COLORS)]


@dataclass(frozen=True, slots=True)
class Location:
    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            raise ValueError(f"Coordinates must be finite numbers, got ({self.lat}, {self.lng})")
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude {self.lat} is outside [-90, 90]")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Longitude {self.lng} is outside [-180, 180]")


@dataclass(frozen=True, slots=True)
class PlaceDetails:
    """Descriptive geocoder data attached to a stop."""

    display_name: str
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    place_type: Optional[str] = None
    osm_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Stop:
    """A single visited location with metadata."""

    id: str
    name: str
    location: Location
    type: StopType = "waypoint"
    is_locked: bool = False
    duration: Optional[int] = None  # minutes spent at the stop
    notes: Optional[str] = None
    place_details: Optional[PlaceDetails] = None

    def __post_init__(self) -> None:
        if self.type not in STOP_TYPES:
            raise ValueError(f"Unknown stop type '{self.type}'")
        if self.duration is not None and self.duration < 0:
            raise ValueError("Stop duration must be a non-negative number of minutes")


@dataclass(frozen=True, slots=True)
class RouteSegment:
    from_stop_id: str
    to_stop_id: str
    distance: float  # meters
    duration: float  # seconds


@dataclass(frozen=True, slots=True)
class DayStats:
    total_driving_time: float  # seconds
    total_driving_distance: float  # meters
    total_activity_time: int  # minutes
    stop_count: int


@dataclass(frozen=True, slots=True)
class Day:
    """An ordered itinerary segment visited on one calendar date."""

    id: str
    date: str
    color: str
    stops: tuple[Stop, ...] = ()
    is_visible: bool = True
    route_segments: tuple[RouteSegment, ...] = ()
    stats: Optional[DayStats] = None
    name: Optional[str] = None

    def stop_index(self, stop_id: str) -> int:
        for index, stop in enumerate(self.stops):
            if stop.id == stop_id:
                return index
        return -1

    def find_stop(self, stop_id: str) -> Optional[Stop]:
        index = self.stop_index(stop_id)
        return self.stops[index] if index >= 0 else None


@dataclass(frozen=True, slots=True)
class TripSettings:
    default_stop_duration: int = 60  # minutes
    distance_unit: DistanceUnit = "km"


@dataclass(frozen=True, slots=True)
class Trip:
    """Root aggregate: an ordered list of days plus display settings."""

    id: str
    name: str
    days: tuple[Day, ...] = ()
    settings: TripSettings = field(default_factory=TripSettings)
    description: Optional[str] = None

    def day_index(self, day_id: str) -> int:
        for index, day in enumerate(self.days):
            if day.id == day_id:
                return index
        return -1

    def find_day(self, day_id: str) -> Optional[Day]:
        index = self.day_index(day_id)
        return self.days[index] if index >= 0 else None

    @property
    def stop_count(self) -> int:
        return sum(len(day.stops) for day in self.days)


@dataclass(frozen=True, slots=True)
class InheritedStart:
    """Previous day's final stop, shown as the read-only start of a day."""

    stop: Stop
    from_day_index: int
