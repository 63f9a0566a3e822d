"""Turn routing-engine legs into per-day route segments and statistics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from ...models.domain import DayStats, InheritedStart, Location, RouteSegment, Stop

INHERITED_START_ID = "inherited-start"


class RouteResponseError(ValueError):
    """Raised when a routing response cannot be mapped onto a day's stops."""


@dataclass(frozen=True, slots=True)
class Waypoint:
    stop_id: str
    location: Location


@dataclass(frozen=True, slots=True)
class RouteLeg:
    duration: float  # seconds
    distance: float  # meters


@dataclass(frozen=True, slots=True)
class RouteComputation:
    segments: tuple[RouteSegment, ...]
    stats: DayStats


def build_waypoints(stops: Sequence[Stop], inherited_start: Optional[InheritedStart] = None) -> list[Waypoint]:
    """Return the effective waypoints for a day, inherited start first when present."""

    waypoints = [Waypoint(stop_id=stop.id, location=stop.location) for stop in stops]
    if inherited_start is not None:
        waypoints.insert(0, Waypoint(stop_id=INHERITED_START_ID, location=inherited_start.stop.location))
    return waypoints


def waypoint_coordinates(waypoints: Sequence[Waypoint]) -> list[tuple[float, float]]:
    """(lat, lon) pairs in visiting order, as expected by the OSRM client."""

    return [(waypoint.location.lat, waypoint.location.lng) for waypoint in waypoints]


def extract_legs(osrm_response: dict[str, Any]) -> list[RouteLeg]:
    """Read the legs of the first route in an OSRM ``route`` response."""

    routes = osrm_response.get("routes") or []
    if not routes:
        raise RouteResponseError("Routing response contains no route.")
    legs = routes[0].get("legs") or []
    if not legs:
        raise RouteResponseError("Routing response route has no legs.")
    try:
        return [RouteLeg(duration=float(leg["duration"]), distance=float(leg["distance"])) for leg in legs]
    except (KeyError, TypeError, ValueError) as exc:
        raise RouteResponseError(f"Malformed route leg: {exc}") from exc


def build_route_segments(
    stops: Sequence[Stop],
    legs: Sequence[RouteLeg],
    inherited_start: Optional[InheritedStart] = None,
) -> Optional[RouteComputation]:
    """Map ``legs`` back onto the day's stops.

    Returns ``None`` when the day has fewer than two effective waypoints; there
    is nothing to route in that case. The inherited start contributes the
    first waypoint of the route but is not counted as a stop and adds no
    activity time.
    """

    waypoints = build_waypoints(stops, inherited_start)
    if len(waypoints) < 2:
        return None
    if len(legs) != len(waypoints) - 1:
        raise RouteResponseError(
            f"Expected {len(waypoints) - 1} leg(s) for {len(waypoints)} waypoints, got {len(legs)}."
        )

    segments = tuple(
        RouteSegment(
            from_stop_id=waypoints[index].stop_id,
            to_stop_id=waypoints[index + 1].stop_id,
            distance=leg.distance,
            duration=leg.duration,
        )
        for index, leg in enumerate(legs)
    )
    stats = DayStats(
        total_driving_time=sum(leg.duration for leg in legs),
        total_driving_distance=sum(leg.distance for leg in legs),
        total_activity_time=sum(stop.duration or 0 for stop in stops),
        stop_count=len(stops),
    )
    return RouteComputation(segments=segments, stats=stats)
