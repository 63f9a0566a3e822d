import httpx
import pytest

from tripplanner.models.domain import Location
from tripplanner.services.geocoding.photon_client import (
    PhotonClient,
    feature_to_result,
    format_address,
    parse_coordinates,
)

EIFFEL = {
    "geometry": {"type": "Point", "coordinates": [2.2945, 48.8584]},
    "properties": {
        "osm_id": 5013364,
        "osm_type": "W",
        "osm_value": "attraction",
        "name": "Eiffel Tower",
        "housenumber": "5",
        "street": "Avenue Anatole France",
        "city": "Paris",
        "country": "France",
    },
}


def _client(monkeypatch, handler) -> PhotonClient:
    client = PhotonClient(base_url="http://photon.test", timeout=1.0)
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(client, "_get_client", lambda: httpx.AsyncClient(transport=transport))
    return client


@pytest.mark.parametrize(
    "text, expected",
    [
        ("48.8566, 2.3522", Location(lat=48.8566, lng=2.3522)),
        ("  -33.86 151.21 ", Location(lat=-33.86, lng=151.21)),
        ("https://www.google.com/maps/place/x/@48.8584,2.2945,17z", Location(lat=48.8584, lng=2.2945)),
        ("95.0, 10.0", None),
        ("Eiffel Tower", None),
    ],
)
def test_parse_coordinates(text, expected):
    assert parse_coordinates(text) == expected


def test_format_address():
    assert format_address(EIFFEL["properties"]) == "5 Avenue Anatole France, Paris, France"
    assert format_address({"state": "Bavaria", "country": "Germany"}) == "Bavaria, Germany"
    assert format_address({}) == "Unknown location"


def test_feature_to_result():
    result = feature_to_result(EIFFEL)
    assert result.id == "W-5013364"
    assert result.name == "Eiffel Tower"
    assert result.location == Location(lat=48.8584, lng=2.2945)
    assert result.place_details.place_type == "attraction"
    assert result.place_details.osm_id == "5013364"
    assert result.place_details.address == "5 Avenue Anatole France"


@pytest.mark.asyncio
async def test_search_passes_bias_and_maps_features(monkeypatch):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"features": [EIFFEL]})

    client = _client(monkeypatch, handler)
    results = await client.search("eiffel", lat=48.0, lng=2.0, limit=3)

    assert [r.name for r in results] == ["Eiffel Tower"]
    params = seen[0].url.params
    assert seen[0].url.path == "/api/"
    assert params["q"] == "eiffel"
    assert params["limit"] == "3"
    assert params["lat"] == "48.0"
    assert params["lon"] == "2.0"


@pytest.mark.asyncio
async def test_search_answers_coordinates_without_network(monkeypatch):
    def handler(request):
        raise AssertionError("no request expected")

    client = _client(monkeypatch, handler)
    (result,) = await client.search("45.5, -73.56")

    assert result.id == "coords"
    assert result.display_address == "Custom coordinates"
    assert result.location == Location(lat=45.5, lng=-73.56)
    assert await client.search("   ") == []


@pytest.mark.asyncio
async def test_search_errors_yield_no_results(monkeypatch):
    client = _client(monkeypatch, lambda request: httpx.Response(503))
    assert await client.search("paris") == []

    client = _client(monkeypatch, lambda request: httpx.Response(200, text="not json"))
    assert await client.search("paris") == []


@pytest.mark.asyncio
async def test_reverse(monkeypatch):
    client = _client(monkeypatch, lambda request: httpx.Response(200, json={"features": [EIFFEL]}))
    details = await client.reverse(Location(lat=48.8584, lng=2.2945))
    assert details is not None
    assert details.city == "Paris"

    client = _client(monkeypatch, lambda request: httpx.Response(200, json={"features": []}))
    assert await client.reverse(Location(lat=0.0, lng=0.0)) is None

    client = _client(monkeypatch, lambda request: httpx.Response(500))
    assert await client.reverse(Location(lat=0.0, lng=0.0)) is None


@pytest.mark.asyncio
async def test_features_without_point_geometry_are_skipped(monkeypatch):
    broken = [
        {"properties": {"name": "No geometry"}, "geometry": None},
        {"properties": {"name": "Empty"}, "geometry": {"type": "Point", "coordinates": []}},
        {"properties": {"name": "Null coords"}, "geometry": {"type": "Point", "coordinates": [None, None]}},
    ]
    client = _client(monkeypatch, lambda request: httpx.Response(200, json={"features": [*broken, EIFFEL]}))

    results = await client.search("tower")

    assert [r.name for r in results] == ["Eiffel Tower"]

    client = _client(monkeypatch, lambda request: httpx.Response(200, json={"features": broken[:1]}))
    assert await client.search("tower") == []
    assert await client.reverse(Location(lat=0.0, lng=0.0)) is None


def test_feature_to_result_rejects_missing_geometry():
    with pytest.raises(ValueError):
        feature_to_result({"properties": {"name": "X"}, "geometry": None})
