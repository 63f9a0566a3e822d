"""Place search endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, status

from ...models.domain import Location
from ...schemas.trip import PlaceDetailsModel, SearchResultModel
from ...services.geocoding.photon_client import PhotonClient, SearchResult
from ...services.trip.snapshot import location_to_model, place_details_to_model

router = APIRouter(prefix="/places", tags=["places"])


def _client(request: Request) -> PhotonClient:
    return request.app.state.places


def _to_model(result: SearchResult) -> SearchResultModel:
    return SearchResultModel(
        id=result.id,
        name=result.name,
        display_address=result.display_address,
        location=location_to_model(result.location),
        place_details=place_details_to_model(result.place_details),
    )


@router.get("/search", response_model=list[SearchResultModel], status_code=status.HTTP_200_OK)
async def search_places(
    request: Request,
    q: str = Query(..., description="Free-text query or a 'lat, lng' pair"),
    lat: float | None = Query(default=None, ge=-90, le=90, description="Bias results toward this latitude"),
    lng: float | None = Query(default=None, ge=-180, le=180, description="Bias results toward this longitude"),
    limit: int = Query(default=6, ge=1, le=20),
) -> list[SearchResultModel]:
    results = await _client(request).search(q, lat=lat, lng=lng, limit=limit)
    return [_to_model(result) for result in results]


@router.get("/reverse", response_model=PlaceDetailsModel | None, status_code=status.HTTP_200_OK)
async def reverse_geocode(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
) -> PlaceDetailsModel | None:
    details = await _client(request).reverse(Location(lat=lat, lng=lng))
    return place_details_to_model(details)
