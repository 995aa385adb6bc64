from __future__ import annotations

import httpx
import pytest

from nimbus_weather.adapters.nominatim import NominatimReverseGeocoder, place_from_address
from nimbus_weather.core.types import PlaceName


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        ({"city": "Denver", "state": "Colorado", "country": "United States"}, "Denver"),
        ({"town": "Estes Park", "county": "Larimer County"}, "Estes Park"),
        ({"city": " ", "village": "Nederland"}, "Nederland"),
        ({"county": "Park County", "state": "Colorado"}, "Park County"),
        ({"state": "Colorado"}, "Colorado"),
    ],
)
def test_most_specific_locality_wins(address: dict[str, str], expected: str) -> None:
    place = place_from_address(address)

    assert place is not None
    assert place.name == expected


def test_address_without_any_locality_has_no_name() -> None:
    assert place_from_address({"country": "Antarctica"}) is None


@pytest.mark.anyio("asyncio")
async def test_reverse_lookup_sends_user_agent_and_parses_address() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"address": {"city": "Denver", "state": "Colorado", "country": "United States"}},
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        geocoder = NominatimReverseGeocoder(client=client, user_agent="nimbus-test")
        place = await geocoder.resolve_name(39.7392, -104.9903)

    assert place == PlaceName("Denver", region="Colorado", country="United States")
    request = seen[0]
    assert request.headers["User-Agent"] == "nimbus-test"
    assert request.url.params["format"] == "jsonv2"
    assert request.url.params["lat"] == "39.7392"


@pytest.mark.anyio("asyncio")
async def test_reverse_lookup_over_open_water_is_none() -> None:
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"error": "Unable to geocode"}))
    ) as client:
        assert await NominatimReverseGeocoder(client=client).resolve_name(0.0, -30.0) is None
