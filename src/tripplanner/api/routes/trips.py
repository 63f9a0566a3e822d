"""Trip editing endpoints.

Handlers are coroutines so every store command runs on the event loop, one
at a time. Commands that name an unknown day or stop answer 200 with the
unchanged trip.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, HTTPException, Request, Response, status

from ...models.domain import InheritedStart
from ...persistence.filesystem import FileStorage
from ...schemas.trip import (
    AddDayRequest,
    InheritedStartModel,
    LocationModel,
    MoveStopRequest,
    StopCreateRequest,
    StopUpdateRequest,
    TransferStopRequest,
    TripStateResponse,
    TripTotalsModel,
    TripUpdateRequest,
)
from ...services.outputs.formatter import compute_trip_totals, format_distance, format_duration, trip_to_csv, trip_to_summary
from ...services.routing.orchestrator import RoutingOrchestrator
from ...services.trip.snapshot import (
    SnapshotValidationError,
    location_from_model,
    place_details_from_model,
    stop_to_model,
    trip_to_model,
)
from ...services.trip.store import TripStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trip", tags=["trip"])


def _store(request: Request) -> TripStore:
    return request.app.state.store


def _orchestrator(request: Request) -> RoutingOrchestrator:
    return request.app.state.orchestrator


def _state(store: TripStore) -> TripStateResponse:
    return TripStateResponse(trip=trip_to_model(store.trip), selected_day_id=store.selected_day_id)


def _stop_fields(payload: StopCreateRequest | StopUpdateRequest, *, exclude_unset: bool) -> dict[str, Any]:
    fields = payload.model_dump(exclude_unset=exclude_unset)
    if payload.location is not None:
        fields["location"] = location_from_model(payload.location)
    if "place_details" in fields:
        fields["place_details"] = place_details_from_model(payload.place_details)
    if exclude_unset:
        # Explicit nulls only make sense for the optional text/number fields.
        for key in ("name", "location", "type", "is_locked"):
            if key in fields and fields[key] is None:
                del fields[key]
    return fields


def _run_command(command, *args, **kwargs) -> None:
    try:
        command(*args, **kwargs)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def get_trip(request: Request) -> TripStateResponse:
    return _state(_store(request))


@router.post("/new", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def new_trip(request: Request) -> TripStateResponse:
    store = _store(request)
    store.new_trip()
    return _state(store)


@router.put("", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def update_trip(payload: TripUpdateRequest, request: Request) -> TripStateResponse:
    store = _store(request)
    if payload.name is not None:
        store.update_trip_name(payload.name)
    if "description" in payload.model_fields_set:
        store.update_trip_description(payload.description)
    return _state(store)


@router.post("/import", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def import_trip(request: Request, payload: Any = Body(...)) -> TripStateResponse:
    store = _store(request)
    try:
        store.import_snapshot(payload)
    except SnapshotValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _state(store)


@router.get("/export", status_code=status.HTTP_200_OK)
async def export_trip(request: Request) -> dict:
    return _store(request).export_snapshot()


@router.get("/export.csv", status_code=status.HTTP_200_OK)
async def export_trip_csv(request: Request) -> Response:
    trip = _store(request).trip
    return Response(
        content=trip_to_csv(trip),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="trip-{trip.id}.csv"'},
    )


@router.post("/export", status_code=status.HTTP_200_OK)
async def persist_trip_outputs(request: Request) -> dict:
    """Write the snapshot, a JSON summary and a CSV itinerary to a new run directory."""
    store = _store(request)
    try:
        storage: FileStorage = request.app.state.storage
        run_dir = storage.make_run_directory(prefix=f"trip_{store.trip.id[:8]}")
        storage.write_json(run_dir / "trip.json", store.export_snapshot())
        storage.write_json(run_dir / "summary.json", trip_to_summary(store.trip))
        storage.write_csv(run_dir / "itinerary.csv", trip_to_csv(store.trip))
    except OSError as exc:
        logger.exception("Error exporting trip outputs: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to export trip: {str(exc)}",
        ) from exc
    return {"success": True, "path": str(run_dir)}


@router.get("/overview", response_model=TripTotalsModel, status_code=status.HTTP_200_OK)
async def trip_overview(request: Request) -> TripTotalsModel:
    trip = _store(request).trip
    totals = compute_trip_totals(trip)
    return TripTotalsModel(
        stops=totals.stops,
        driving_time=totals.driving_time,
        driving_distance=totals.driving_distance,
        activity_time=totals.activity_time,
        driving_time_label=format_duration(totals.driving_time),
        driving_distance_label=format_distance(totals.driving_distance, trip.settings.distance_unit),
    )


@router.post("/days", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def add_day(request: Request, payload: AddDayRequest | None = None) -> TripStateResponse:
    store = _store(request)
    store.add_day(payload.after_day_id if payload else None)
    return _state(store)


@router.delete("/days/{day_id}", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def remove_day(day_id: str, request: Request) -> TripStateResponse:
    store = _store(request)
    store.remove_day(day_id)
    return _state(store)


@router.post("/days/{day_id}/visibility", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def toggle_day_visibility(day_id: str, request: Request) -> TripStateResponse:
    store = _store(request)
    store.toggle_day_visibility(day_id)
    return _state(store)


@router.post("/days/{day_id}/select", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def select_day(day_id: str, request: Request) -> TripStateResponse:
    store = _store(request)
    store.select_day(day_id)
    return _state(store)


@router.get(
    "/days/{day_id}/inherited-start",
    response_model=InheritedStartModel | None,
    status_code=status.HTTP_200_OK,
)
async def get_inherited_start(day_id: str, request: Request) -> InheritedStartModel | None:
    inherited: InheritedStart | None = _store(request).get_inherited_start(day_id)
    if inherited is None:
        return None
    return InheritedStartModel(stop=stop_to_model(inherited.stop), from_day_index=inherited.from_day_index)


@router.post("/days/{day_id}/route/refresh", status_code=status.HTTP_202_ACCEPTED)
async def refresh_route(day_id: str, request: Request) -> dict:
    scheduled = _orchestrator(request).refresh(day_id)
    return {"day_id": day_id, "scheduled": scheduled}


@router.post("/days/{day_id}/stops", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def add_stop(day_id: str, payload: StopCreateRequest, request: Request) -> TripStateResponse:
    store = _store(request)
    _run_command(store.add_stop, day_id, **_stop_fields(payload, exclude_unset=False))
    return _state(store)


@router.patch("/days/{day_id}/stops/{stop_id}", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def update_stop(day_id: str, stop_id: str, payload: StopUpdateRequest, request: Request) -> TripStateResponse:
    store = _store(request)
    _run_command(store.update_stop, day_id, stop_id, **_stop_fields(payload, exclude_unset=True))
    return _state(store)


@router.delete("/days/{day_id}/stops/{stop_id}", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def remove_stop(day_id: str, stop_id: str, request: Request) -> TripStateResponse:
    store = _store(request)
    store.remove_stop(day_id, stop_id)
    return _state(store)


@router.post("/days/{day_id}/stops/{stop_id}/move", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def move_stop(day_id: str, stop_id: str, payload: MoveStopRequest, request: Request) -> TripStateResponse:
    store = _store(request)
    _run_command(store.move_stop, day_id, stop_id, payload.direction)
    return _state(store)


@router.post(
    "/days/{day_id}/stops/{stop_id}/transfer",
    response_model=TripStateResponse,
    status_code=status.HTTP_200_OK,
)
async def transfer_stop(day_id: str, stop_id: str, payload: TransferStopRequest, request: Request) -> TripStateResponse:
    store = _store(request)
    store.move_stop_to_day(day_id, payload.to_day_id, stop_id)
    return _state(store)


@router.post("/days/{day_id}/stops/{stop_id}/lock", response_model=TripStateResponse, status_code=status.HTTP_200_OK)
async def toggle_lock(day_id: str, stop_id: str, request: Request) -> TripStateResponse:
    store = _store(request)
    store.toggle_lock(day_id, stop_id)
    return _state(store)


@router.post(
    "/days/{day_id}/stops/{stop_id}/relocate",
    response_model=TripStateResponse,
    status_code=status.HTTP_200_OK,
)
async def relocate_stop(day_id: str, stop_id: str, payload: LocationModel, request: Request) -> TripStateResponse:
    store = _store(request)
    store.relocate_stop(day_id, stop_id, location_from_model(payload))
    return _state(store)
