from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from nimbus_weather.core.models import AlertSeverity, AqiLevel, Coordinates, RadarFrame, RadarFrameSet
from nimbus_weather.core.session import SessionStatus
from nimbus_weather.runtime.setup import build_runtime


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


_ALERTS = {
    "features": [
        {
            "id": "urn:oid:alert-1",
            "properties": {"event": "Red Flag Warning", "severity": "Severe", "urgency": "Expected"},
        }
    ]
}
_AIR_QUALITY = {"current": {"us_aqi": 35, "european_aqi": 20, "pm2_5": 6.1}, "hourly": {}}
_MANIFEST = {
    "radar": {
        "past": [{"time": 1714560000, "path": "/v2/radar/a"}, {"time": 1714560600, "path": "/v2/radar/b"}],
        "nowcast": [{"time": 1714561200, "path": "/v2/radar/c"}],
    }
}


def _router(forecast: dict[str, Any], requests: list[httpx.Request]) -> Callable[[httpx.Request], httpx.Response]:
    def _handle(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        host = request.url.host
        if host == "api.open-meteo.com":
            return httpx.Response(200, json=forecast)
        if host == "nominatim.openstreetmap.org":
            return httpx.Response(200, json={"address": {"city": "Denver", "state": "Colorado"}})
        if host == "api.weather.gov":
            return httpx.Response(200, json=_ALERTS)
        if host == "air-quality-api.open-meteo.com":
            return httpx.Response(200, json=_AIR_QUALITY)
        if host == "api.rainviewer.com":
            return httpx.Response(200, json=_MANIFEST)
        return httpx.Response(404)

    return _handle


def _settings(tmp_path: Path, **location: Any) -> dict[str, Any]:
    return {
        "cache": {"path": str(tmp_path / "cache.json")},
        "preferences": {"path": str(tmp_path / "prefs.json")},
        "location": {"retry_delay_seconds": 0, **location},
        "http": {"max_attempts": 1},
        "user_agent": "nimbus-test",
    }


@pytest.mark.anyio("asyncio")
async def test_current_location_session_end_to_end(tmp_path: Path, forecast_payload) -> None:
    requests: list[httpx.Request] = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(_router(forecast_payload(), requests))) as client:
        runtime = build_runtime(
            _settings(tmp_path, fixed={"latitude": 39.7392, "longitude": -104.9903}),
            client=client,
        )
        try:
            await runtime.controller.start()
            await runtime.controller.wait_for_secondary()
            await runtime.radar.load_frames()
        finally:
            await runtime.close()

    state = runtime.controller.state.value
    assert state.status is SessionStatus.READY
    assert state.snapshot is not None
    assert state.snapshot.location.name == "Denver"
    assert state.snapshot.current.temperature == 21.5
    assert [alert.severity for alert in state.alerts] == [AlertSeverity.SEVERE]
    assert state.air_quality is not None and state.air_quality.level is AqiLevel.GOOD
    assert state.astronomy is not None
    assert [entry.name for entry in state.saved_locations] == ["Denver"]

    last = await runtime.preferences.last_location()
    assert last is not None and last.name == "Denver"
    assert (tmp_path / "cache.json").exists()

    radar = runtime.radar.state.value
    assert radar.total_frames == 3
    assert radar.current_index == 1
    identified = [request for request in requests if request.url.host in {"api.weather.gov", "nominatim.openstreetmap.org"}]
    assert len(identified) == 2
    assert all(request.headers["User-Agent"] == "nimbus-test" for request in identified)


@pytest.mark.anyio("asyncio")
async def test_outage_falls_back_to_cached_snapshot(tmp_path: Path, forecast_payload) -> None:
    denver = Coordinates(39.7392, -104.9903)
    requests: list[httpx.Request] = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(_router(forecast_payload(), requests))) as client:
        runtime = build_runtime(_settings(tmp_path), client=client)
        await runtime.controller.load_for_coordinates(denver)
        await runtime.close()

    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(503))) as client:
        runtime = build_runtime(_settings(tmp_path), client=client)
        try:
            await runtime.controller.load_for_coordinates(denver)
        finally:
            await runtime.close()

    state = runtime.controller.state.value
    assert state.status is SessionStatus.READY_CACHED
    assert state.snapshot is not None
    assert state.snapshot.location.name == "Denver"
    assert state.alerts == ()


@pytest.mark.anyio("asyncio")
async def test_missing_permission_without_history_asks_for_permission(tmp_path: Path) -> None:
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500))) as client:
        runtime = build_runtime(_settings(tmp_path), client=client)
        try:
            await runtime.controller.load_for_current_location()
        finally:
            await runtime.close()

    state = runtime.controller.state.value
    assert state.status is SessionStatus.ERROR
    assert state.needs_permission is True
    assert state.error == "Location permission required."


def test_settings_are_validated_before_wiring(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="cache.ttl_minutes"):
        build_runtime({"cache": {"ttl_minutes": -1}})


def test_runtime_uses_configured_pacing(tmp_path: Path) -> None:
    runtime = build_runtime({**_settings(tmp_path), "radar": {"step_ms": 100, "boundary_ms": 200, "final_ms": 300}})
    frames = RadarFrameSet(
        past=(RadarFrame(1, "a"), RadarFrame(2, "b")),
        forecast=(RadarFrame(3, "c"),),
    )

    assert [runtime.radar.delay_for(frames, index) for index in range(3)] == [100, 200, 300]
    assert runtime.settings.cache.path == tmp_path / "cache.json"
