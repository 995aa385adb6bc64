from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import pytest


def _forecast_payload(
    now: Optional[datetime] = None,
    *,
    temperature: float = 21.5,
    high: float = 25.0,
    low: float = 12.0,
) -> dict[str, Any]:
    base = (now or datetime.now()).replace(minute=0, second=0, microsecond=0)
    hours = [base + timedelta(hours=offset) for offset in range(-3, 5)]
    today = base.date()
    tomorrow = today + timedelta(days=1)
    return {
        "latitude": 39.74,
        "longitude": -104.98,
        "timezone": "America/Denver",
        "current": {
            "time": base.strftime("%Y-%m-%dT%H:%M"),
            "temperature_2m": temperature,
            "relative_humidity_2m": 40,
            "apparent_temperature": temperature - 1.0,
            "is_day": 1,
            "precipitation": 0.0,
            "weather_code": 1,
            "cloud_cover": 20,
            "pressure_msl": 1015.2,
            "wind_speed_10m": 12.0,
            "wind_direction_10m": 180,
            "wind_gusts_10m": 20.0,
            "uv_index": 3.0,
            "visibility": 24000.0,
            "dew_point_2m": 8.0,
        },
        "hourly": {
            "time": [moment.strftime("%Y-%m-%dT%H:%M") for moment in hours],
            "temperature_2m": [15.0 + index for index in range(len(hours))],
            "weather_code": [1] * len(hours),
            "is_day": [1] * len(hours),
            "precipitation_probability": [10] * len(hours),
        },
        "daily": {
            "time": [today.isoformat(), tomorrow.isoformat()],
            "weather_code": [1, 61],
            "temperature_2m_max": [high, 18.0],
            "temperature_2m_min": [low, 6.0],
            "precipitation_probability_max": [10, 70],
            "sunrise": [f"{today.isoformat()}T06:00", f"{tomorrow.isoformat()}T06:01"],
            "sunset": [f"{today.isoformat()}T20:30", f"{tomorrow.isoformat()}T20:29"],
        },
    }


@pytest.fixture
def forecast_payload() -> Callable[..., dict[str, Any]]:
    return _forecast_payload
