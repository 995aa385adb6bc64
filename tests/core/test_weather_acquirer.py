from __future__ import annotations

import json
from typing import Any, Mapping, Optional, Sequence

import pytest

from nimbus_weather.core.acquirer import UNKNOWN_LOCATION, WeatherAcquirer
from nimbus_weather.core.cache import MAX_AGE_MS, CachedSnapshot, CacheStore, now_millis
from nimbus_weather.core.errors import SourceUnavailable
from nimbus_weather.core.models import Coordinates, LocationInfo
from nimbus_weather.core.types import PlaceName

DENVER = Coordinates(39.7392, -104.9847)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _WeatherSource:
    def __init__(self, payload: Optional[Mapping[str, Any]] = None, error: Optional[Exception] = None) -> None:
        self.payload = payload
        self.error = error
        self.calls: list[tuple[float, float]] = []

    async def fetch_forecast(self, latitude: float, longitude: float) -> Mapping[str, Any]:
        self.calls.append((latitude, longitude))
        if self.error is not None:
            raise self.error
        assert self.payload is not None
        return self.payload


class _ReverseGeocoder:
    def __init__(self, place: Optional[PlaceName] = None, error: Optional[Exception] = None) -> None:
        self.place = place
        self.error = error

    async def resolve_name(self, latitude: float, longitude: float) -> Optional[PlaceName]:
        if self.error is not None:
            raise self.error
        return self.place


class _PlaceSearch:
    def __init__(
        self,
        nearest: Optional[PlaceName] = None,
        results: Sequence[LocationInfo] = (),
        error: Optional[Exception] = None,
    ) -> None:
        self.nearest = nearest
        self.results = list(results)
        self.error = error
        self.queries: list[str] = []

    async def search(self, query: str, *, count: int = 10) -> Sequence[LocationInfo]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.results

    async def nearest_place(self, latitude: float, longitude: float) -> Optional[PlaceName]:
        return self.nearest


class _BrokenCache:
    max_age_ms = MAX_AGE_MS

    async def get(self, key: str) -> Optional[CachedSnapshot]:
        return None

    async def upsert(self, entry: CachedSnapshot) -> None:
        raise OSError("disk full")


@pytest.mark.anyio("asyncio")
async def test_fresh_fetch_writes_through_to_cache(tmp_path, forecast_payload) -> None:
    cache = CacheStore(tmp_path / "cache.json")
    acquirer = WeatherAcquirer(
        _WeatherSource(forecast_payload()),
        cache,
        reverse_geocoder=_ReverseGeocoder(PlaceName("Denver", "Colorado", "United States")),
    )

    result = await acquirer.fetch(DENVER)

    assert result.ok
    assert result.is_cached_fallback is False
    assert result.error is None
    assert result.snapshot is not None
    assert result.snapshot.location.name == "Denver"
    assert result.snapshot.location.region == "Colorado"
    entry = await cache.get("39.74,-104.98")
    assert entry is not None
    assert entry.place_name == "Denver"
    assert json.loads(entry.raw_payload)["current"]["temperature_2m"] == 21.5


@pytest.mark.anyio("asyncio")
async def test_failure_serves_expired_cache_entry(tmp_path, forecast_payload) -> None:
    cache = CacheStore(tmp_path / "cache.json")
    await cache.upsert(
        CachedSnapshot(
            key="39.74,-104.98",
            raw_payload=json.dumps(forecast_payload(temperature=-2.0)),
            place_name="Denver",
            latitude=DENVER.latitude,
            longitude=DENVER.longitude,
            cached_at_epoch_millis=now_millis() - 3 * 60 * 60 * 1000,
        )
    )
    error = SourceUnavailable("open_meteo", "open_meteo returned HTTP 503", status_code=503)
    acquirer = WeatherAcquirer(_WeatherSource(error=error), cache)

    result = await acquirer.fetch(Coordinates(39.7401, -104.9812))

    assert result.ok
    assert result.is_cached_fallback is True
    assert result.error is error
    assert result.snapshot is not None
    assert result.snapshot.current.temperature == -2.0
    assert result.snapshot.location.name == "Denver"


@pytest.mark.anyio("asyncio")
async def test_failure_without_cache_returns_original_error(tmp_path) -> None:
    error = SourceUnavailable("open_meteo", "open_meteo unreachable: connection refused")
    acquirer = WeatherAcquirer(_WeatherSource(error=error), CacheStore(tmp_path / "cache.json"))

    result = await acquirer.fetch(DENVER)

    assert result.snapshot is None
    assert result.error is error
    assert result.message == "open_meteo unreachable: connection refused"


@pytest.mark.anyio("asyncio")
async def test_undecodable_payload_falls_back_like_any_failure(tmp_path) -> None:
    acquirer = WeatherAcquirer(_WeatherSource({"hourly": {}}), CacheStore(tmp_path / "cache.json"))

    result = await acquirer.fetch(DENVER)

    assert result.snapshot is None
    assert result.message == "No current weather data"


@pytest.mark.anyio("asyncio")
async def test_cache_write_failure_does_not_fail_fetch(forecast_payload, caplog) -> None:
    acquirer = WeatherAcquirer(_WeatherSource(forecast_payload()), _BrokenCache())  # type: ignore[arg-type]

    with caplog.at_level("WARNING", logger="nimbus_weather.core.acquirer"):
        result = await acquirer.fetch(DENVER, explicit_name="Home")

    assert result.ok
    assert result.snapshot is not None
    assert result.snapshot.location.name == "Home"
    assert any(getattr(record, "event", None) == "cache_write_failed" for record in caplog.records)


@pytest.mark.anyio("asyncio")
async def test_blank_reverse_geocode_falls_back_to_nearest_place(tmp_path, forecast_payload) -> None:
    acquirer = WeatherAcquirer(
        _WeatherSource(forecast_payload()),
        CacheStore(tmp_path / "cache.json"),
        reverse_geocoder=_ReverseGeocoder(PlaceName("   ")),
        place_search=_PlaceSearch(nearest=PlaceName("Lakewood", "Colorado", "United States")),
    )

    result = await acquirer.fetch(DENVER)

    assert result.snapshot is not None
    assert result.snapshot.location.name == "Lakewood"


@pytest.mark.anyio("asyncio")
async def test_naming_errors_end_at_unknown_location(tmp_path, forecast_payload) -> None:
    acquirer = WeatherAcquirer(
        _WeatherSource(forecast_payload()),
        CacheStore(tmp_path / "cache.json"),
        reverse_geocoder=_ReverseGeocoder(error=RuntimeError("geocoder down")),
        place_search=_PlaceSearch(nearest=None),
    )

    result = await acquirer.fetch(DENVER)

    assert result.snapshot is not None
    assert result.snapshot.location.name == UNKNOWN_LOCATION
    assert result.snapshot.location.latitude == DENVER.latitude


@pytest.mark.anyio("asyncio")
async def test_load_cached_ignores_corrupt_payload(tmp_path, caplog) -> None:
    cache = CacheStore(tmp_path / "cache.json")
    await cache.upsert(
        CachedSnapshot(
            key="39.74,-104.98",
            raw_payload="{broken",
            place_name="Denver",
            latitude=DENVER.latitude,
            longitude=DENVER.longitude,
        )
    )
    acquirer = WeatherAcquirer(_WeatherSource(error=RuntimeError("offline")), cache)

    with caplog.at_level("WARNING", logger="nimbus_weather.core.acquirer"):
        result = await acquirer.fetch(DENVER)

    assert result.snapshot is None
    assert any(getattr(record, "event", None) == "cache_decode_failed" for record in caplog.records)


@pytest.mark.anyio("asyncio")
async def test_search_locations_returns_matches(tmp_path) -> None:
    paris = LocationInfo("Paris", 48.8566, 2.3522, region="Ile-de-France", country="France")
    search = _PlaceSearch(results=[paris])
    acquirer = WeatherAcquirer(_WeatherSource(), CacheStore(tmp_path / "c.json"), place_search=search)

    result = await acquirer.search_locations("  Paris ")

    assert result.ok
    assert result.locations == (paris,)
    assert search.queries == ["Paris"]


@pytest.mark.anyio("asyncio")
async def test_search_locations_reports_errors_and_skips_blank_queries(tmp_path) -> None:
    error = SourceUnavailable("open_meteo_geocoding", "geocoding unreachable")
    search = _PlaceSearch(error=error)
    acquirer = WeatherAcquirer(_WeatherSource(), CacheStore(tmp_path / "c.json"), place_search=search)

    failed = await acquirer.search_locations("Paris")
    blank = await acquirer.search_locations("   ")

    assert failed.error is error
    assert failed.locations == ()
    assert blank.ok and blank.locations == ()
    assert search.queries == ["Paris"]
