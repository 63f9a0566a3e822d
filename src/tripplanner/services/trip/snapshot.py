"""Conversion between ``Trip`` values and their serialized snapshot."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError

from ...models.domain import (
    Day,
    DayStats,
    Location,
    PlaceDetails,
    RouteSegment,
    Stop,
    Trip,
    TripSettings,
    get_day_color,
)
from ...schemas.trip import (
    DayModel,
    DayStatsModel,
    LocationModel,
    PlaceDetailsModel,
    RouteSegmentModel,
    StopModel,
    TripModel,
    TripSettingsModel,
)


class SnapshotValidationError(ValueError):
    """Raised when an imported trip payload is malformed."""


def location_from_model(model: LocationModel) -> Location:
    return Location(lat=model.lat, lng=model.lng)


def place_details_from_model(model: Optional[PlaceDetailsModel]) -> Optional[PlaceDetails]:
    if model is None:
        return None
    return PlaceDetails(
        display_name=model.display_name,
        address=model.address,
        city=model.city,
        country=model.country,
        place_type=model.place_type,
        osm_id=model.osm_id,
    )


def stop_from_model(model: StopModel) -> Stop:
    return Stop(
        id=model.id,
        name=model.name,
        location=location_from_model(model.location),
        type=model.type,
        is_locked=model.is_locked,
        duration=model.duration,
        notes=model.notes,
        place_details=place_details_from_model(model.place_details),
    )


def _day_from_model(model: DayModel, index: int) -> Day:
    stats = None
    segments: tuple[RouteSegment, ...] = ()
    # Segments and stats are only meaningful together.
    if model.stats is not None:
        stats = DayStats(
            total_driving_time=model.stats.total_driving_time,
            total_driving_distance=model.stats.total_driving_distance,
            total_activity_time=model.stats.total_activity_time,
            stop_count=model.stats.stop_count,
        )
        segments = tuple(
            RouteSegment(
                from_stop_id=segment.from_stop_id,
                to_stop_id=segment.to_stop_id,
                distance=segment.distance,
                duration=segment.duration,
            )
            for segment in model.route_segments
        )
    return Day(
        id=model.id,
        date=model.date,
        name=model.name,
        color=get_day_color(index),
        stops=tuple(stop_from_model(stop) for stop in model.stops),
        is_visible=model.is_visible,
        route_segments=segments,
        stats=stats,
    )


def trip_from_snapshot(payload: Any) -> Trip:
    """Validate ``payload`` and build a ``Trip`` from it.

    Day colours are re-derived from position. Stop and day ids must be unique
    across the whole trip.
    """

    if not isinstance(payload, dict):
        raise SnapshotValidationError("Trip snapshot must be a JSON object.")
    if not payload.get("id") or not isinstance(payload.get("days"), list):
        raise SnapshotValidationError("Trip snapshot must contain an 'id' and a 'days' list.")
    try:
        model = TripModel.model_validate(payload)
    except ValidationError as exc:
        raise SnapshotValidationError(f"Invalid trip snapshot: {exc.error_count()} error(s): {exc}") from exc

    day_ids = [day.id for day in model.days]
    if len(day_ids) != len(set(day_ids)):
        raise SnapshotValidationError("Trip snapshot contains duplicate day ids.")
    stop_ids = [stop.id for day in model.days for stop in day.stops]
    if len(stop_ids) != len(set(stop_ids)):
        raise SnapshotValidationError("Trip snapshot contains duplicate stop ids.")

    return Trip(
        id=model.id,
        name=model.name,
        description=model.description,
        days=tuple(_day_from_model(day, index) for index, day in enumerate(model.days)),
        settings=TripSettings(
            default_stop_duration=model.settings.default_stop_duration,
            distance_unit=model.settings.distance_unit,
        ),
    )


def location_to_model(location: Location) -> LocationModel:
    return LocationModel(lat=location.lat, lng=location.lng)


def place_details_to_model(details: Optional[PlaceDetails]) -> Optional[PlaceDetailsModel]:
    if details is None:
        return None
    return PlaceDetailsModel(
        display_name=details.display_name,
        address=details.address,
        city=details.city,
        country=details.country,
        place_type=details.place_type,
        osm_id=details.osm_id,
    )


def stop_to_model(stop: Stop) -> StopModel:
    return StopModel(
        id=stop.id,
        name=stop.name,
        location=location_to_model(stop.location),
        type=stop.type,
        is_locked=stop.is_locked,
        duration=stop.duration,
        notes=stop.notes,
        place_details=place_details_to_model(stop.place_details),
    )


def trip_to_model(trip: Trip) -> TripModel:
    return TripModel(
        id=trip.id,
        name=trip.name,
        description=trip.description,
        settings=TripSettingsModel(
            default_stop_duration=trip.settings.default_stop_duration,
            distance_unit=trip.settings.distance_unit,
        ),
        days=[
            DayModel(
                id=day.id,
                date=day.date,
                name=day.name,
                color=day.color,
                is_visible=day.is_visible,
                stops=[stop_to_model(stop) for stop in day.stops],
                route_segments=[
                    RouteSegmentModel(
                        from_stop_id=segment.from_stop_id,
                        to_stop_id=segment.to_stop_id,
                        distance=segment.distance,
                        duration=segment.duration,
                    )
                    for segment in day.route_segments
                ],
                stats=(
                    DayStatsModel(
                        total_driving_time=day.stats.total_driving_time,
                        total_driving_distance=day.stats.total_driving_distance,
                        total_activity_time=day.stats.total_activity_time,
                        stop_count=day.stats.stop_count,
                    )
                    if day.stats is not None
                    else None
                ),
            )
            for day in trip.days
        ],
    )


def trip_to_snapshot(trip: Trip) -> dict[str, Any]:
    """Serialize ``trip`` to the camelCase JSON shape used for export and storage."""

    return trip_to_model(trip).model_dump(by_alias=True, exclude_none=True, mode="json")
