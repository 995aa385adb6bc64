from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Type, TypeVar


class TempUnit(Enum):
    FAHRENHEIT = "°F"
    CELSIUS = "°C"


class WindUnit(Enum):
    MPH = "mph"
    KMH = "km/h"
    MS = "m/s"
    KNOTS = "kn"


class PressureUnit(Enum):
    INHG = "inHg"
    HPA = "hPa"
    MBAR = "mbar"


class PrecipUnit(Enum):
    INCHES = "in"
    MM = "mm"


class VisibilityUnit(Enum):
    MILES = "mi"
    KM = "km"


class TimeFormat(Enum):
    TWELVE_HOUR = "12-hour"
    TWENTY_FOUR_HOUR = "24-hour"


_E = TypeVar("_E", bound=Enum)


def _member(enum_type: Type[_E], raw: object, default: _E) -> _E:
    if isinstance(raw, str) and raw in enum_type.__members__:
        return enum_type[raw]
    return default


@dataclass(frozen=True, slots=True)
class DisplaySettings:
    temp_unit: TempUnit = TempUnit.FAHRENHEIT
    wind_unit: WindUnit = WindUnit.MPH
    pressure_unit: PressureUnit = PressureUnit.INHG
    precip_unit: PrecipUnit = PrecipUnit.INCHES
    visibility_unit: VisibilityUnit = VisibilityUnit.MILES
    time_format: TimeFormat = TimeFormat.TWELVE_HOUR
    particles_enabled: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DisplaySettings":
        defaults = cls()
        particles = data.get("particles_enabled")
        return cls(
            temp_unit=_member(TempUnit, data.get("temp_unit"), defaults.temp_unit),
            wind_unit=_member(WindUnit, data.get("wind_unit"), defaults.wind_unit),
            pressure_unit=_member(PressureUnit, data.get("pressure_unit"), defaults.pressure_unit),
            precip_unit=_member(PrecipUnit, data.get("precip_unit"), defaults.precip_unit),
            visibility_unit=_member(
                VisibilityUnit, data.get("visibility_unit"), defaults.visibility_unit
            ),
            time_format=_member(TimeFormat, data.get("time_format"), defaults.time_format),
            particles_enabled=particles if isinstance(particles, bool) else True,
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "temp_unit": self.temp_unit.name,
            "wind_unit": self.wind_unit.name,
            "pressure_unit": self.pressure_unit.name,
            "precip_unit": self.precip_unit.name,
            "visibility_unit": self.visibility_unit.name,
            "time_format": self.time_format.name,
            "particles_enabled": self.particles_enabled,
        }
