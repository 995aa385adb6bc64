from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


@dataclass(frozen=True, slots=True)
class Coordinates:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        for name, value, bound in (
            ("latitude", self.latitude, 90.0),
            ("longitude", self.longitude, 180.0),
        ):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a real number")
            if not math.isfinite(value) or abs(value) > bound:
                raise ValueError(f"{name} must be within [-{bound:g}, {bound:g}]")


@dataclass(frozen=True, slots=True)
class LocationInfo:
    name: str
    latitude: float
    longitude: float
    region: str = ""
    country: str = ""

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class CurrentConditions:
    temperature: float
    feels_like: float
    humidity: int
    weather_code: int
    is_day: bool
    wind_speed: float
    wind_direction: int
    wind_gusts: Optional[float]
    pressure: float
    uv_index: float
    visibility: Optional[float]
    dew_point: Optional[float]
    cloud_cover: int
    precipitation: float
    daily_high: float
    daily_low: float
    sunrise: Optional[str]
    sunset: Optional[str]


@dataclass(frozen=True, slots=True)
class HourlyConditions:
    time: datetime
    temperature: float
    weather_code: int
    is_day: bool
    precipitation_probability: int
    feels_like: Optional[float] = None
    precipitation: Optional[float] = None
    wind_speed: Optional[float] = None
    wind_direction: Optional[int] = None
    humidity: Optional[int] = None
    uv_index: Optional[float] = None
    cloud_cover: Optional[int] = None
    visibility: Optional[float] = None


@dataclass(frozen=True, slots=True)
class DailyConditions:
    date: date
    weather_code: int
    temperature_high: float
    temperature_low: float
    precipitation_probability: int
    precipitation_sum: Optional[float] = None
    sunrise: Optional[str] = None
    sunset: Optional[str] = None
    uv_index_max: Optional[float] = None
    wind_speed_max: Optional[float] = None
    wind_direction_dominant: Optional[int] = None


@dataclass(frozen=True, slots=True)
class ForecastSnapshot:
    location: LocationInfo
    current: CurrentConditions
    hourly: tuple[HourlyConditions, ...]
    daily: tuple[DailyConditions, ...]
    last_updated: datetime = field(default_factory=datetime.now)


class AlertSeverity(Enum):
    EXTREME = ("Extreme", 0)
    SEVERE = ("Severe", 1)
    MODERATE = ("Moderate", 2)
    MINOR = ("Minor", 3)
    UNKNOWN = ("Unknown", 4)

    def __init__(self, label: str, sort_order: int) -> None:
        self.label = label
        self.sort_order = sort_order

    @classmethod
    def parse(cls, value: Optional[str]) -> "AlertSeverity":
        lookup = (value or "").strip().lower()
        for member in cls:
            if member.label.lower() == lookup:
                return member
        return cls.UNKNOWN


class AlertUrgency(Enum):
    IMMEDIATE = ("Immediate", 0)
    EXPECTED = ("Expected", 1)
    FUTURE = ("Future", 2)
    PAST = ("Past", 3)
    UNKNOWN = ("Unknown", 4)

    def __init__(self, label: str, sort_order: int) -> None:
        self.label = label
        self.sort_order = sort_order

    @classmethod
    def parse(cls, value: Optional[str]) -> "AlertUrgency":
        lookup = (value or "").strip().lower()
        for member in cls:
            if member.label.lower() == lookup:
                return member
        return cls.UNKNOWN


@dataclass(frozen=True, slots=True)
class Alert:
    id: str
    event: str
    headline: str
    description: str
    severity: AlertSeverity
    urgency: AlertUrgency
    certainty: str = "Unknown"
    sender_name: str = "National Weather Service"
    area_description: str = ""
    instruction: Optional[str] = None
    effective: Optional[str] = None
    expires: Optional[str] = None
    response: Optional[str] = None


class AqiLevel(Enum):
    GOOD = ("Good", 0, 50)
    MODERATE = ("Moderate", 51, 100)
    UNHEALTHY_SENSITIVE = ("Unhealthy for Sensitive Groups", 101, 150)
    UNHEALTHY = ("Unhealthy", 151, 200)
    VERY_UNHEALTHY = ("Very Unhealthy", 201, 300)
    HAZARDOUS = ("Hazardous", 301, 500)

    def __init__(self, label: str, low: int, high: int) -> None:
        self.label = label
        self.low = low
        self.high = high

    @classmethod
    def from_aqi(cls, aqi: int) -> "AqiLevel":
        for member in cls:
            if member.low <= aqi <= member.high:
                return member
        return cls.HAZARDOUS if aqi > 300 else cls.GOOD


class PollenLevel(Enum):
    NONE = "None"
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    VERY_HIGH = "Very High"


@dataclass(frozen=True, slots=True)
class PollenReading:
    name: str
    concentration: float
    level: PollenLevel


@dataclass(frozen=True, slots=True)
class HourlyAqi:
    hour: datetime
    aqi: int
    level: AqiLevel


@dataclass(frozen=True, slots=True)
class AirQualitySnapshot:
    us_aqi: int
    european_aqi: int
    level: AqiLevel
    pm25: float = 0.0
    pm10: float = 0.0
    ozone: float = 0.0
    nitrogen_dioxide: float = 0.0
    sulphur_dioxide: float = 0.0
    carbon_monoxide: float = 0.0
    pollen: tuple[PollenReading, ...] = ()
    hourly: tuple[HourlyAqi, ...] = ()

    @property
    def pollen_level(self) -> PollenLevel:
        order = list(PollenLevel)
        worst = PollenLevel.NONE
        for reading in self.pollen:
            if order.index(reading.level) > order.index(worst):
                worst = reading.level
        return worst


class MoonPhase(Enum):
    NEW_MOON = "New Moon"
    WAXING_CRESCENT = "Waxing Crescent"
    FIRST_QUARTER = "First Quarter"
    WAXING_GIBBOUS = "Waxing Gibbous"
    FULL_MOON = "Full Moon"
    WANING_GIBBOUS = "Waning Gibbous"
    LAST_QUARTER = "Last Quarter"
    WANING_CRESCENT = "Waning Crescent"


@dataclass(frozen=True, slots=True)
class Astronomy:
    moon_phase: MoonPhase
    moon_illumination: float
    moonrise: Optional[str]
    moonset: Optional[str]
    day_length: Optional[str]


@dataclass(frozen=True, slots=True)
class SavedLocation:
    id: int
    name: str
    latitude: float
    longitude: float
    region: str = ""
    country: str = ""
    sort_order: int = 0
    is_current_location: bool = False
    added_at: float = 0.0

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class RadarFrame:
    timestamp_epoch_seconds: int
    tile_url_template: str


@dataclass(frozen=True, slots=True)
class RadarFrameSet:
    past: tuple[RadarFrame, ...]
    forecast: tuple[RadarFrame, ...] = ()

    @property
    def frames(self) -> tuple[RadarFrame, ...]:
        return self.past + self.forecast

    @property
    def total_frames(self) -> int:
        return len(self.past) + len(self.forecast)

    @property
    def boundary_index(self) -> int:
        """Index of the most recent observed frame, -1 when nothing was observed."""
        return len(self.past) - 1
