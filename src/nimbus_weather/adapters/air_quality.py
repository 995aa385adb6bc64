from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Final, Mapping, Optional, Sequence

from ..core.errors import DecodeError
from ..core.models import AirQualitySnapshot, AqiLevel, HourlyAqi, PollenLevel, PollenReading
from ._client import JsonSource

AIR_QUALITY_URL: Final[str] = "https://air-quality-api.open-meteo.com/v1/air-quality"
HOURLY_WINDOW: Final[int] = 24
HOURLY_LOOKBACK: Final[timedelta] = timedelta(hours=1)

_POLLEN_SPECIES: Final[tuple[str, ...]] = (
    "alder",
    "birch",
    "grass",
    "mugwort",
    "olive",
    "ragweed",
)
CURRENT_FIELDS: Final[str] = ",".join(
    (
        "us_aqi",
        "european_aqi",
        "pm10",
        "pm2_5",
        "carbon_monoxide",
        "nitrogen_dioxide",
        "sulphur_dioxide",
        "ozone",
        "dust",
        "uv_index",
        *(f"{species}_pollen" for species in _POLLEN_SPECIES),
    )
)
HOURLY_FIELDS: Final[str] = ",".join(
    (
        "us_aqi",
        "pm2_5",
        "pm10",
        "ozone",
        "nitrogen_dioxide",
        *(f"{species}_pollen" for species in _POLLEN_SPECIES),
    )
)


@dataclass(frozen=True, slots=True)
class PollenThresholds:
    """Upper bounds (grains/m3) of the low, moderate and high bands."""

    low: float
    moderate: float
    high: float


_TREE = PollenThresholds(10.0, 50.0, 200.0)
_WEED_GRASS = PollenThresholds(5.0, 20.0, 50.0)
POLLEN_THRESHOLDS: Final[Mapping[str, PollenThresholds]] = {
    "alder": _TREE,
    "birch": _TREE,
    "grass": _WEED_GRASS,
    "mugwort": _WEED_GRASS,
    "olive": _TREE,
    "ragweed": _WEED_GRASS,
}


def _number(value: object) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def pollen_reading(name: str, value: object, thresholds: PollenThresholds) -> PollenReading:
    concentration = _number(value)
    if concentration is None or concentration <= 0:
        return PollenReading(name=name, concentration=0.0, level=PollenLevel.NONE)
    if concentration < thresholds.low:
        level = PollenLevel.LOW
    elif concentration < thresholds.moderate:
        level = PollenLevel.MODERATE
    elif concentration < thresholds.high:
        level = PollenLevel.HIGH
    else:
        level = PollenLevel.VERY_HIGH
    return PollenReading(name=name, concentration=concentration, level=level)


def _hourly_aqi(hourly: object, *, now: datetime) -> tuple[HourlyAqi, ...]:
    if not isinstance(hourly, Mapping):
        return ()
    times = hourly.get("time")
    values = hourly.get("us_aqi")
    if not isinstance(times, list) or not isinstance(values, list):
        return ()
    cutoff = now - HOURLY_LOOKBACK
    entries: list[HourlyAqi] = []
    for index, raw_time in enumerate(times):
        if not isinstance(raw_time, str):
            continue
        try:
            moment = datetime.fromisoformat(raw_time).replace(tzinfo=None)
        except ValueError:
            continue
        if moment < cutoff:
            continue
        if len(entries) >= HOURLY_WINDOW:
            break
        aqi = _number(values[index]) if index < len(values) else None
        if aqi is None:
            continue
        entries.append(HourlyAqi(hour=moment, aqi=int(aqi), level=AqiLevel.from_aqi(int(aqi))))
    return tuple(entries)


def build_air_quality(payload: Mapping[str, Any], *, now: Optional[datetime] = None) -> AirQualitySnapshot:
    current = payload.get("current")
    if not isinstance(current, Mapping):
        raise DecodeError("air_quality", "No air quality data")
    us_aqi = int(_number(current.get("us_aqi")) or 0)
    pollen: Sequence[PollenReading] = [
        pollen_reading(species.capitalize(), current.get(f"{species}_pollen"), POLLEN_THRESHOLDS[species])
        for species in _POLLEN_SPECIES
    ]
    return AirQualitySnapshot(
        us_aqi=us_aqi,
        european_aqi=int(_number(current.get("european_aqi")) or 0),
        level=AqiLevel.from_aqi(us_aqi),
        pm25=_number(current.get("pm2_5")) or 0.0,
        pm10=_number(current.get("pm10")) or 0.0,
        ozone=_number(current.get("ozone")) or 0.0,
        nitrogen_dioxide=_number(current.get("nitrogen_dioxide")) or 0.0,
        sulphur_dioxide=_number(current.get("sulphur_dioxide")) or 0.0,
        carbon_monoxide=_number(current.get("carbon_monoxide")) or 0.0,
        pollen=tuple(pollen),
        hourly=_hourly_aqi(payload.get("hourly"), now=now or datetime.now()),
    )


class OpenMeteoAirQualitySource(JsonSource):
    source_name = "air_quality"

    async def fetch_air_quality(self, latitude: float, longitude: float) -> AirQualitySnapshot:
        payload = await self._get_mapping(
            AIR_QUALITY_URL,
            {
                "latitude": latitude,
                "longitude": longitude,
                "current": CURRENT_FIELDS,
                "hourly": HOURLY_FIELDS,
                "timezone": "auto",
                "forecast_days": 3,
            },
            target=f"{latitude:.2f},{longitude:.2f}",
        )
        return build_air_quality(payload)


__all__ = [
    "AIR_QUALITY_URL",
    "OpenMeteoAirQualitySource",
    "POLLEN_THRESHOLDS",
    "PollenThresholds",
    "build_air_quality",
    "pollen_reading",
]
