"""Trip snapshot and request/response schemas."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import StopType


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LocationModel(_CamelModel):
    lat: float = Field(..., ge=-90.0, le=90.0, allow_inf_nan=False)
    lng: float = Field(..., ge=-180.0, le=180.0, allow_inf_nan=False)


class PlaceDetailsModel(_CamelModel):
    display_name: str = Field(..., alias="displayName")
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    place_type: Optional[str] = Field(default=None, alias="placeType")
    osm_id: Optional[str] = Field(default=None, alias="osmId")


class StopModel(_CamelModel):
    id: str
    name: str
    location: LocationModel
    type: StopType = "waypoint"
    is_locked: bool = Field(default=False, alias="isLocked")
    duration: Optional[int] = Field(default=None, ge=0, description="Minutes spent at the stop.")
    notes: Optional[str] = None
    place_details: Optional[PlaceDetailsModel] = Field(default=None, alias="placeDetails")


class RouteSegmentModel(_CamelModel):
    from_stop_id: str = Field(..., alias="fromStopId")
    to_stop_id: str = Field(..., alias="toStopId")
    distance: float = Field(..., ge=0.0, description="Meters.")
    duration: float = Field(..., ge=0.0, description="Seconds.")


class DayStatsModel(_CamelModel):
    total_driving_time: float = Field(..., alias="totalDrivingTime")
    total_driving_distance: float = Field(..., alias="totalDrivingDistance")
    total_activity_time: int = Field(..., alias="totalActivityTime")
    stop_count: int = Field(..., alias="stopCount")


class DayModel(_CamelModel):
    id: str
    date: str
    name: Optional[str] = None
    stops: List[StopModel] = Field(default_factory=list)
    is_visible: bool = Field(default=True, alias="isVisible")
    color: Optional[str] = None
    route_segments: List[RouteSegmentModel] = Field(default_factory=list, alias="routeSegments")
    stats: Optional[DayStatsModel] = None


class TripSettingsModel(_CamelModel):
    default_stop_duration: int = Field(default=60, ge=0, alias="defaultStopDuration")
    distance_unit: Literal["km", "mi"] = Field(default="km", alias="distanceUnit")


class TripModel(_CamelModel):
    id: str = Field(..., min_length=1)
    name: str = "My Trip"
    description: Optional[str] = None
    days: List[DayModel]
    settings: TripSettingsModel = Field(default_factory=TripSettingsModel)


class InheritedStartModel(_CamelModel):
    stop: StopModel
    from_day_index: int = Field(..., alias="fromDayIndex")


class TripStateResponse(_CamelModel):
    trip: TripModel
    selected_day_id: Optional[str] = Field(default=None, alias="selectedDayId")


class TripTotalsModel(_CamelModel):
    stops: int
    driving_time: float = Field(..., alias="drivingTime")
    driving_distance: float = Field(..., alias="drivingDistance")
    activity_time: int = Field(..., alias="activityTime")
    driving_time_label: str = Field(..., alias="drivingTimeLabel")
    driving_distance_label: str = Field(..., alias="drivingDistanceLabel")


class TripUpdateRequest(_CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None


class AddDayRequest(_CamelModel):
    after_day_id: Optional[str] = Field(default=None, alias="afterDayId")


class StopCreateRequest(_CamelModel):
    name: Optional[str] = None
    location: LocationModel
    type: StopType = "waypoint"
    is_locked: bool = Field(default=False, alias="isLocked")
    duration: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    place_details: Optional[PlaceDetailsModel] = Field(default=None, alias="placeDetails")


class StopUpdateRequest(_CamelModel):
    name: Optional[str] = None
    location: Optional[LocationModel] = None
    type: Optional[StopType] = None
    is_locked: Optional[bool] = Field(default=None, alias="isLocked")
    duration: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    place_details: Optional[PlaceDetailsModel] = Field(default=None, alias="placeDetails")


class MoveStopRequest(_CamelModel):
    direction: Literal["up", "down"]


class TransferStopRequest(_CamelModel):
    to_day_id: str = Field(..., alias="toDayId")


class SearchResultModel(_CamelModel):
    id: str
    name: str
    display_address: str = Field(..., alias="displayAddress")
    location: LocationModel
    place_details: PlaceDetailsModel = Field(..., alias="placeDetails")
