from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional, Sequence, cast

from .errors import DecodeError
from .models import (
    CurrentConditions,
    DailyConditions,
    ForecastSnapshot,
    HourlyConditions,
    LocationInfo,
)

# Hourly entries older than this at construction time are dropped.
HOURLY_LOOKBACK = timedelta(hours=1)


def _coerce_float(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(cast(Any, value))
    except (TypeError, ValueError):
        return None


def _coerce_int(value: object) -> Optional[int]:
    coerced = _coerce_float(value)
    if coerced is None:
        return None
    return int(round(coerced))


def _series(block: Mapping[str, Any], name: str) -> Sequence[object]:
    values = block.get(name)
    if isinstance(values, Sequence) and not isinstance(values, (str, bytes)):
        return cast(Sequence[object], values)
    return ()


def _at(values: Sequence[object], index: int) -> object:
    if 0 <= index < len(values):
        return values[index]
    return None


def _parse_datetime(value: object) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def _parse_date(value: object) -> Optional[date]:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _mapping(payload: Mapping[str, Any], name: str) -> Optional[Mapping[str, Any]]:
    block = payload.get(name)
    if isinstance(block, Mapping):
        return cast(Mapping[str, Any], block)
    return None


def _optional_str(value: object) -> Optional[str]:
    return value if isinstance(value, str) else None


def _build_current(
    current: Mapping[str, Any],
    daily: Optional[Mapping[str, Any]],
) -> CurrentConditions:
    temperature = _coerce_float(current.get("temperature_2m")) or 0.0
    high = low = temperature
    sunrise: Optional[str] = None
    sunset: Optional[str] = None
    if daily is not None:
        daily_max = _coerce_float(_at(_series(daily, "temperature_2m_max"), 0))
        daily_min = _coerce_float(_at(_series(daily, "temperature_2m_min"), 0))
        high = daily_max if daily_max is not None else temperature
        low = daily_min if daily_min is not None else temperature
        sunrise = _optional_str(_at(_series(daily, "sunrise"), 0))
        sunset = _optional_str(_at(_series(daily, "sunset"), 0))
    feels_like = _coerce_float(current.get("apparent_temperature"))
    is_day = _coerce_int(current.get("is_day"))
    return CurrentConditions(
        temperature=temperature,
        feels_like=feels_like if feels_like is not None else temperature,
        humidity=_coerce_int(current.get("relative_humidity_2m")) or 0,
        weather_code=_coerce_int(current.get("weather_code")) or 0,
        is_day=(is_day if is_day is not None else 1) == 1,
        wind_speed=_coerce_float(current.get("wind_speed_10m")) or 0.0,
        wind_direction=_coerce_int(current.get("wind_direction_10m")) or 0,
        wind_gusts=_coerce_float(current.get("wind_gusts_10m")),
        pressure=_coerce_float(current.get("pressure_msl")) or 0.0,
        uv_index=_coerce_float(current.get("uv_index")) or 0.0,
        visibility=_coerce_float(current.get("visibility")),
        dew_point=_coerce_float(current.get("dew_point_2m")),
        cloud_cover=_coerce_int(current.get("cloud_cover")) or 0,
        precipitation=_coerce_float(current.get("precipitation")) or 0.0,
        daily_high=high,
        daily_low=low,
        sunrise=sunrise,
        sunset=sunset,
    )


def _build_hourly(
    hourly: Optional[Mapping[str, Any]],
    *,
    now: datetime,
) -> tuple[HourlyConditions, ...]:
    if hourly is None:
        return ()
    cutoff = now - HOURLY_LOOKBACK
    entries: list[HourlyConditions] = []
    for index, raw_time in enumerate(_series(hourly, "time")):
        moment = _parse_datetime(raw_time)
        if moment is None or moment < cutoff:
            continue
        is_day = _coerce_int(_at(_series(hourly, "is_day"), index))
        entries.append(
            HourlyConditions(
                time=moment,
                temperature=_coerce_float(_at(_series(hourly, "temperature_2m"), index)) or 0.0,
                weather_code=_coerce_int(_at(_series(hourly, "weather_code"), index)) or 0,
                is_day=(is_day if is_day is not None else 1) == 1,
                precipitation_probability=(
                    _coerce_int(_at(_series(hourly, "precipitation_probability"), index)) or 0
                ),
                feels_like=_coerce_float(_at(_series(hourly, "apparent_temperature"), index)),
                precipitation=_coerce_float(_at(_series(hourly, "precipitation"), index)),
                wind_speed=_coerce_float(_at(_series(hourly, "wind_speed_10m"), index)),
                wind_direction=_coerce_int(_at(_series(hourly, "wind_direction_10m"), index)),
                humidity=_coerce_int(_at(_series(hourly, "relative_humidity_2m"), index)),
                uv_index=_coerce_float(_at(_series(hourly, "uv_index"), index)),
                cloud_cover=_coerce_int(_at(_series(hourly, "cloud_cover"), index)),
                visibility=_coerce_float(_at(_series(hourly, "visibility"), index)),
            )
        )
    return tuple(entries)


def _build_daily(daily: Optional[Mapping[str, Any]]) -> tuple[DailyConditions, ...]:
    if daily is None:
        return ()
    entries: list[DailyConditions] = []
    for index, raw_date in enumerate(_series(daily, "time")):
        day = _parse_date(raw_date)
        if day is None:
            continue
        entries.append(
            DailyConditions(
                date=day,
                weather_code=_coerce_int(_at(_series(daily, "weather_code"), index)) or 0,
                temperature_high=_coerce_float(_at(_series(daily, "temperature_2m_max"), index)) or 0.0,
                temperature_low=_coerce_float(_at(_series(daily, "temperature_2m_min"), index)) or 0.0,
                precipitation_probability=(
                    _coerce_int(_at(_series(daily, "precipitation_probability_max"), index)) or 0
                ),
                precipitation_sum=_coerce_float(_at(_series(daily, "precipitation_sum"), index)),
                sunrise=_optional_str(_at(_series(daily, "sunrise"), index)),
                sunset=_optional_str(_at(_series(daily, "sunset"), index)),
                uv_index_max=_coerce_float(_at(_series(daily, "uv_index_max"), index)),
                wind_speed_max=_coerce_float(_at(_series(daily, "wind_speed_10m_max"), index)),
                wind_direction_dominant=_coerce_int(
                    _at(_series(daily, "wind_direction_10m_dominant"), index)
                ),
            )
        )
    return tuple(entries)


def build_snapshot(
    payload: object,
    location: LocationInfo,
    *,
    now: Optional[datetime] = None,
) -> ForecastSnapshot:
    """Normalise a raw forecast payload into an immutable snapshot.

    Raises :class:`DecodeError` when the payload has no ``current`` block.
    """

    if not isinstance(payload, Mapping):
        raise DecodeError("forecast", "forecast payload must be a mapping")
    data = cast(Mapping[str, Any], payload)
    current = _mapping(data, "current")
    if current is None:
        raise DecodeError("forecast", "No current weather data")
    daily = _mapping(data, "daily")
    reference = now if now is not None else datetime.now()
    return ForecastSnapshot(
        location=location,
        current=_build_current(current, daily),
        hourly=_build_hourly(_mapping(data, "hourly"), now=reference),
        daily=_build_daily(daily),
        last_updated=reference,
    )


__all__ = ["HOURLY_LOOKBACK", "build_snapshot"]
