from __future__ import annotations

from typing import Any, Final, Mapping, Sequence

from ..core.errors import DecodeError
from ..core.models import LocationInfo
from ..core.types import PlaceName
from ._client import JsonSource

FORECAST_URL: Final[str] = "https://api.open-meteo.com/v1/forecast"
GEOCODING_URL: Final[str] = "https://geocoding-api.open-meteo.com/v1/search"

CURRENT_FIELDS: Final[str] = ",".join(
    (
        "temperature_2m",
        "relative_humidity_2m",
        "apparent_temperature",
        "is_day",
        "precipitation",
        "weather_code",
        "cloud_cover",
        "pressure_msl",
        "surface_pressure",
        "wind_speed_10m",
        "wind_direction_10m",
        "wind_gusts_10m",
        "uv_index",
        "visibility",
        "dew_point_2m",
    )
)
HOURLY_FIELDS: Final[str] = ",".join(
    (
        "temperature_2m",
        "relative_humidity_2m",
        "apparent_temperature",
        "precipitation_probability",
        "precipitation",
        "weather_code",
        "cloud_cover",
        "visibility",
        "wind_speed_10m",
        "wind_direction_10m",
        "uv_index",
        "is_day",
    )
)
DAILY_FIELDS: Final[str] = ",".join(
    (
        "weather_code",
        "temperature_2m_max",
        "temperature_2m_min",
        "apparent_temperature_max",
        "apparent_temperature_min",
        "sunrise",
        "sunset",
        "uv_index_max",
        "precipitation_sum",
        "precipitation_probability_max",
        "wind_speed_10m_max",
        "wind_direction_10m_dominant",
        "precipitation_hours",
    )
)
FORECAST_DAYS: Final[int] = 16
FORECAST_HOURS: Final[int] = 48


def forecast_params(latitude: float, longitude: float) -> dict[str, Any]:
    return {
        "latitude": latitude,
        "longitude": longitude,
        "current": CURRENT_FIELDS,
        "hourly": HOURLY_FIELDS,
        "daily": DAILY_FIELDS,
        "temperature_unit": "celsius",
        "wind_speed_unit": "kmh",
        "precipitation_unit": "mm",
        "timezone": "auto",
        "forecast_days": FORECAST_DAYS,
        "forecast_hours": FORECAST_HOURS,
    }


class OpenMeteoForecastSource(JsonSource):
    """Raw Open-Meteo forecast documents; mapping happens in the core."""

    source_name = "open_meteo"

    async def fetch_forecast(self, latitude: float, longitude: float) -> Mapping[str, Any]:
        payload = await self._get_mapping(
            FORECAST_URL,
            forecast_params(latitude, longitude),
            target=f"{latitude:.2f},{longitude:.2f}",
        )
        if not isinstance(payload.get("current"), Mapping):
            raise DecodeError(self.source_name, "No current weather data")
        return payload


def _location_from_result(item: object) -> LocationInfo | None:
    if not isinstance(item, Mapping):
        return None
    name = item.get("name")
    latitude = item.get("latitude")
    longitude = item.get("longitude")
    if not isinstance(name, str) or not name.strip():
        return None
    if not isinstance(latitude, (int, float)) or not isinstance(longitude, (int, float)):
        return None
    return LocationInfo(
        name=name,
        latitude=float(latitude),
        longitude=float(longitude),
        region=str(item.get("admin1") or ""),
        country=str(item.get("country") or ""),
    )


class OpenMeteoGeocoder(JsonSource):
    source_name = "open_meteo_geocoding"

    def __init__(self, *, language: str = "en", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.language = language

    async def search(self, query: str, *, count: int = 10) -> Sequence[LocationInfo]:
        payload = await self._get_mapping(
            GEOCODING_URL,
            {"name": query, "count": count, "language": self.language, "format": "json"},
            target=query,
        )
        results = payload.get("results")
        if not isinstance(results, list):
            return []
        found: list[LocationInfo] = []
        for item in results:
            location = _location_from_result(item)
            if location is not None:
                found.append(location)
        return found

    async def nearest_place(self, latitude: float, longitude: float) -> PlaceName | None:
        matches = await self.search(f"{latitude:.4f},{longitude:.4f}", count=1)
        if not matches:
            return None
        first = matches[0]
        return PlaceName(first.name, region=first.region, country=first.country)


__all__ = [
    "FORECAST_URL",
    "GEOCODING_URL",
    "OpenMeteoForecastSource",
    "OpenMeteoGeocoder",
    "forecast_params",
]
