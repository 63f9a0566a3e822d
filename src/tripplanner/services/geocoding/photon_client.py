"""Place search and reverse geocoding against a Photon geocoder."""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ...config import settings
from ...models.domain import Location, PlaceDetails

logger = logging.getLogger(__name__)

_DECIMAL_PAIR = re.compile(r"^(-?\d+\.?\d*)[,\s]+(-?\d+\.?\d*)$")
_MAPS_URL_PAIR = re.compile(r"@(-?\d+\.?\d*),(-?\d+\.?\d*)")


@dataclass(frozen=True, slots=True)
class SearchResult:
    id: str
    name: str
    display_address: str
    location: Location
    place_details: PlaceDetails


def _valid_location(lat: float, lng: float) -> Optional[Location]:
    if -90 <= lat <= 90 and -180 <= lng <= 180:
        return Location(lat=lat, lng=lng)
    return None


def parse_coordinates(text: str) -> Optional[Location]:
    """Parse "48.8566, 2.3522", "48.8566 2.3522" or a Google Maps ``@lat,lng`` URL."""

    trimmed = text.strip()
    match = _DECIMAL_PAIR.match(trimmed) or _MAPS_URL_PAIR.search(trimmed)
    if not match:
        return None
    return _valid_location(float(match.group(1)), float(match.group(2)))


def _street(props: dict[str, Any]) -> Optional[str]:
    street = props.get("street")
    if not street:
        return None
    housenumber = props.get("housenumber")
    return f"{housenumber} {street}" if housenumber else street


def format_address(props: dict[str, Any]) -> str:
    parts: list[str] = []
    street = _street(props)
    if street:
        parts.append(street)
    if props.get("city"):
        parts.append(props["city"])
    elif props.get("state"):
        parts.append(props["state"])
    if props.get("country"):
        parts.append(props["country"])
    return ", ".join(parts) or "Unknown location"


def _point(feature: dict[str, Any]) -> Location:
    geometry = feature.get("geometry") or {}
    coordinates = geometry.get("coordinates") or ()
    if len(coordinates) < 2:
        raise ValueError("Feature has no point geometry")
    lng, lat = coordinates[:2]
    return Location(lat=float(lat), lng=float(lng))


def feature_to_result(feature: dict[str, Any]) -> SearchResult:
    props = feature.get("properties") or {}
    location = _point(feature)
    address = format_address(props)
    name = props.get("name") or address
    osm_id = props.get("osm_id")
    return SearchResult(
        id=f"{props.get('osm_type') or 'place'}-{osm_id if osm_id is not None else uuid.uuid4().hex[:10]}",
        name=name,
        display_address=address,
        location=location,
        place_details=PlaceDetails(
            display_name=name,
            address=_street(props),
            city=props.get("city"),
            country=props.get("country"),
            place_type=props.get("osm_value") or props.get("type"),
            osm_id=str(osm_id) if osm_id is not None else None,
        ),
    )


def coordinates_result(location: Location) -> SearchResult:
    label = f"{location.lat:.4f}, {location.lng:.4f}"
    return SearchResult(
        id="coords",
        name=label,
        display_address="Custom coordinates",
        location=location,
        place_details=PlaceDetails(display_name=label),
    )


class PhotonClient:
    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        self.base_url = (base_url or settings.photon_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.photon_timeout_seconds

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout)

    async def _get_features(self, path: str, params: dict[str, str]) -> list[dict[str, Any]]:
        async with self._get_client() as client:
            response = await client.get(f"{self.base_url}{path}", params=params)
            response.raise_for_status()
            return response.json().get("features") or []

    async def search(
        self,
        query: str,
        lat: float | None = None,
        lng: float | None = None,
        limit: int = 5,
        lang: str = "en",
    ) -> list[SearchResult]:
        """Search places by free text, biased toward (lat, lng) when given.

        Coordinate input is answered locally. Request errors are logged and yield
        no results; features without a usable point are skipped.
        """
        if not query.strip():
            return []
        location = parse_coordinates(query)
        if location is not None:
            return [coordinates_result(location)]

        params = {"q": query, "limit": str(limit), "lang": lang}
        if lat is not None and lng is not None:
            params["lat"] = str(lat)
            params["lon"] = str(lng)
        try:
            features = await self._get_features("/api/", params)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Place search failed for '%s': %s", query, e)
            return []

        results = []
        for feature in features:
            try:
                results.append(feature_to_result(feature))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug("Skipping unusable search feature: %s", e)
        return results

    async def reverse(self, location: Location) -> Optional[PlaceDetails]:
        """Look up the place at ``location``; ``None`` when nothing is found."""
        params = {"lat": str(location.lat), "lon": str(location.lng), "lang": "en"}
        try:
            features = await self._get_features("/reverse", params)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Reverse geocode failed for (%s, %s): %s", location.lat, location.lng, e)
            return None
        if not features:
            return None
        try:
            return feature_to_result(features[0]).place_details
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Unexpected reverse geocode feature: %s", e)
            return None
