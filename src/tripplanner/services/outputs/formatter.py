"""Serializers and display helpers for trip itineraries."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass

from ...models.domain import DistanceUnit, Trip

METERS_PER_MILE = 1609.344


@dataclass(slots=True)
class TripTotals:
    stops: int = 0
    driving_time: float = 0.0  # seconds
    driving_distance: float = 0.0  # meters
    activity_time: int = 0  # minutes


def compute_trip_totals(trip: Trip) -> TripTotals:
    """Sum the stats of every day that has them."""

    totals = TripTotals()
    for day in trip.days:
        if day.stats is None:
            continue
        totals.stops += day.stats.stop_count
        totals.driving_time += day.stats.total_driving_time
        totals.driving_distance += day.stats.total_driving_distance
        totals.activity_time += day.stats.total_activity_time
    return totals


def format_duration(seconds: float) -> str:
    hours = int(seconds // 3600)
    minutes = round((seconds % 3600) / 60)
    if minutes == 60:
        hours, minutes = hours + 1, 0
    if hours == 0:
        return f"{minutes}min"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}min"


def format_distance(meters: float, unit: DistanceUnit = "km") -> str:
    if unit == "mi":
        miles = meters / METERS_PER_MILE
        return f"{round(miles)}mi" if miles >= 100 else f"{miles:.1f}mi"
    if meters < 1000:
        return f"{round(meters)}m"
    km = meters / 1000
    return f"{round(km)}km" if km >= 100 else f"{km:.1f}km"


def trip_to_summary(trip: Trip) -> dict:
    totals = compute_trip_totals(trip)
    unit = trip.settings.distance_unit
    return {
        "trip_id": trip.id,
        "name": trip.name,
        "totals": {
            "stops": totals.stops,
            "driving_time_s": totals.driving_time,
            "driving_distance_m": totals.driving_distance,
            "activity_time_min": totals.activity_time,
            "driving_time": format_duration(totals.driving_time),
            "driving_distance": format_distance(totals.driving_distance, unit),
        },
        "days": [
            {
                "day": index + 1,
                "day_id": day.id,
                "date": day.date,
                "stops": [stop.name for stop in day.stops],
                "driving_time": format_duration(day.stats.total_driving_time) if day.stats else None,
                "driving_distance": (
                    format_distance(day.stats.total_driving_distance, unit) if day.stats else None
                ),
                "activity_time_min": day.stats.total_activity_time if day.stats else None,
            }
            for index, day in enumerate(trip.days)
        ],
    }


def trip_to_csv(trip: Trip) -> str:
    """One row per stop with the leg that arrives at it, when a route is known."""

    buffer = io.StringIO()
    fieldnames = [
        "day",
        "date",
        "sequence",
        "stop_id",
        "stop_name",
        "type",
        "lat",
        "lng",
        "duration_min",
        "locked",
        "from_stop_id",
        "leg_distance_m",
        "leg_duration_s",
        "notes",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for day_index, day in enumerate(trip.days, start=1):
        inbound = {segment.to_stop_id: segment for segment in day.route_segments}
        for sequence, stop in enumerate(day.stops, start=1):
            segment = inbound.get(stop.id)
            writer.writerow(
                {
                    "day": day_index,
                    "date": day.date,
                    "sequence": sequence,
                    "stop_id": stop.id,
                    "stop_name": stop.name,
                    "type": stop.type,
                    "lat": stop.location.lat,
                    "lng": stop.location.lng,
                    "duration_min": stop.duration if stop.duration is not None else "",
                    "locked": stop.is_locked,
                    "from_stop_id": segment.from_stop_id if segment else "",
                    "leg_distance_m": segment.distance if segment else "",
                    "leg_duration_s": segment.duration if segment else "",
                    "notes": stop.notes or "",
                }
            )
    return buffer.getvalue()
