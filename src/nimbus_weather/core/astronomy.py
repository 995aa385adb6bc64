from __future__ import annotations

import math
from datetime import date, datetime
from typing import Optional

from .models import Astronomy, MoonPhase

SYNODIC_MONTH = 29.53058867
# Julian day of the new moon on 2000-01-06.
_REFERENCE_NEW_MOON_JD = 2451550.1

_PHASE_BOUNDARIES: tuple[tuple[float, MoonPhase], ...] = (
    (1.85, MoonPhase.NEW_MOON),
    (7.38, MoonPhase.WAXING_CRESCENT),
    (9.23, MoonPhase.FIRST_QUARTER),
    (14.77, MoonPhase.WAXING_GIBBOUS),
    (16.61, MoonPhase.FULL_MOON),
    (22.15, MoonPhase.WANING_GIBBOUS),
    (23.99, MoonPhase.LAST_QUARTER),
    (29.53, MoonPhase.WANING_CRESCENT),
)


def lunar_age(day: date) -> float:
    year, month = float(day.year), float(day.month)
    if month <= 2:
        year -= 1
        month += 12
    century = int(year / 100)
    gregorian = 2 - century + int(century / 4)
    julian_day = (
        int(365.25 * (year + 4716)) + int(30.6001 * (month + 1)) + day.day + gregorian - 1524.5
    )
    return (julian_day - _REFERENCE_NEW_MOON_JD) % SYNODIC_MONTH


def moon_phase(age: float) -> MoonPhase:
    normalized = age % 29.53
    for upper, phase in _PHASE_BOUNDARIES:
        if normalized < upper:
            return phase
    return MoonPhase.NEW_MOON


def illumination(age: float) -> float:
    fraction = age / SYNODIC_MONTH
    return float(round((1 - math.cos(fraction * 2 * math.pi)) / 2 * 100))


def _estimate_moon_time(age: float, *, rise: bool) -> str:
    # Rough: moonrise drifts ~50 minutes per day through the cycle.
    base = 18.0 if rise else 6.0
    shifted = base + (age / 29.53) * 24.0
    hour = int(shifted % 24)
    minute = int((shifted % 1) * 60)
    suffix = "AM" if hour < 12 else "PM"
    hour12 = 12 if hour == 0 else hour - 12 if hour > 12 else hour
    return f"{hour12}:{minute:02d} {suffix}"


def day_length(sunrise: Optional[str], sunset: Optional[str]) -> Optional[str]:
    if sunrise is None or sunset is None:
        return None
    try:
        rise = datetime.fromisoformat(sunrise)
        set_ = datetime.fromisoformat(sunset)
    except ValueError:
        return None
    minutes = int((set_ - rise).total_seconds() // 60)
    if minutes < 0:
        return None
    return f"{minutes // 60}h {minutes % 60}m"


def compute_astronomy(
    sunrise: Optional[str],
    sunset: Optional[str],
    *,
    today: Optional[date] = None,
) -> Astronomy:
    age = lunar_age(today or date.today())
    return Astronomy(
        moon_phase=moon_phase(age),
        moon_illumination=illumination(age),
        moonrise=_estimate_moon_time(age, rise=True),
        moonset=_estimate_moon_time(age, rise=False),
        day_length=day_length(sunrise, sunset),
    )


__all__ = ["compute_astronomy", "day_length", "illumination", "lunar_age", "moon_phase"]
