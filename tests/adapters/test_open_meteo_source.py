from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from nimbus_weather.adapters._retry import RetryConfig
from nimbus_weather.adapters.open_meteo import (
    FORECAST_URL,
    GEOCODING_URL,
    OpenMeteoForecastSource,
    OpenMeteoGeocoder,
)
from nimbus_weather.core.errors import DecodeError, SourceUnavailable


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


async def _no_sleep(delay: float) -> None:
    return None


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.anyio("asyncio")
async def test_forecast_request_uses_metric_units_and_auto_timezone(forecast_payload) -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=forecast_payload())

    async with _client(_handler) as client:
        payload = await OpenMeteoForecastSource(client=client).fetch_forecast(39.7392, -104.9847)

    assert payload["current"]["temperature_2m"] == 21.5
    request = seen[0]
    assert str(request.url).startswith(FORECAST_URL)
    params = request.url.params
    assert params["latitude"] == "39.7392"
    assert params["longitude"] == "-104.9847"
    assert params["timezone"] == "auto"
    assert params["temperature_unit"] == "celsius"
    assert params["wind_speed_unit"] == "kmh"
    assert params["forecast_days"] == "16"
    assert params["forecast_hours"] == "48"
    assert "temperature_2m" in params["current"].split(",")
    assert "sunrise" in params["daily"].split(",")


@pytest.mark.anyio("asyncio")
async def test_forecast_without_current_block_is_a_decode_error() -> None:
    async with _client(lambda request: httpx.Response(200, json={"hourly": {}})) as client:
        with pytest.raises(DecodeError):
            await OpenMeteoForecastSource(client=client).fetch_forecast(1.0, 2.0)


@pytest.mark.anyio("asyncio")
async def test_forecast_non_json_body_is_a_decode_error() -> None:
    async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
        with pytest.raises(DecodeError):
            await OpenMeteoForecastSource(client=client).fetch_forecast(1.0, 2.0)


@pytest.mark.anyio("asyncio")
async def test_forecast_server_errors_become_source_unavailable() -> None:
    calls: list[int] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(503)

    async with _client(_handler) as client:
        source = OpenMeteoForecastSource(
            client=client,
            retry_config=RetryConfig(max_attempts=2),
            sleep=_no_sleep,
        )
        with pytest.raises(SourceUnavailable) as excinfo:
            await source.fetch_forecast(1.0, 2.0)

    assert excinfo.value.status_code == 503
    assert excinfo.value.source == "open_meteo"
    assert len(calls) == 2


@pytest.mark.anyio("asyncio")
async def test_forecast_transport_errors_become_source_unavailable() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with _client(_handler) as client:
        source = OpenMeteoForecastSource(client=client, retry_config=RetryConfig(max_attempts=1))
        with pytest.raises(SourceUnavailable) as excinfo:
            await source.fetch_forecast(1.0, 2.0)

    assert excinfo.value.status_code is None


_SEARCH_RESULTS: dict[str, Any] = {
    "results": [
        {
            "id": 2988507,
            "name": "Paris",
            "latitude": 48.85341,
            "longitude": 2.3488,
            "admin1": "Ile-de-France",
            "country": "France",
        },
        {"id": 1, "name": "", "latitude": 0.0, "longitude": 0.0},
        {"id": 2, "name": "Broken", "latitude": "north"},
        {"id": 4717560, "name": "Paris", "latitude": 33.66094, "longitude": -95.55551, "country": "United States"},
    ]
}


@pytest.mark.anyio("asyncio")
async def test_search_maps_results_and_skips_malformed_entries() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_SEARCH_RESULTS)

    async with _client(_handler) as client:
        results = await OpenMeteoGeocoder(client=client).search("Paris")

    assert [(item.name, item.country) for item in results] == [
        ("Paris", "France"),
        ("Paris", "United States"),
    ]
    assert results[0].region == "Ile-de-France"
    assert results[1].region == ""
    assert str(seen[0].url).startswith(GEOCODING_URL)
    assert seen[0].url.params["count"] == "10"
    assert seen[0].url.params["name"] == "Paris"


@pytest.mark.anyio("asyncio")
async def test_search_without_results_is_empty() -> None:
    async with _client(lambda request: httpx.Response(200, json={"generationtime_ms": 0.2})) as client:
        assert await OpenMeteoGeocoder(client=client).search("Atlantis") == []


@pytest.mark.anyio("asyncio")
async def test_nearest_place_queries_one_result_for_coordinates() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_SEARCH_RESULTS)

    async with _client(_handler) as client:
        place = await OpenMeteoGeocoder(client=client).nearest_place(48.8534, 2.3488)

    assert place is not None
    assert place.name == "Paris"
    assert place.country == "France"
    assert seen[0].url.params["name"] == "48.8534,2.3488"
    assert seen[0].url.params["count"] == "1"
