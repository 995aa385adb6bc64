from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Sequence

from .models import (
    AirQualitySnapshot,
    Alert,
    Coordinates,
    LocationInfo,
    RadarFrameSet,
    SavedLocation,
)
from .units import DisplaySettings


@dataclass(frozen=True, slots=True)
class PlaceName:
    name: str
    region: str = ""
    country: str = ""


@dataclass(frozen=True, slots=True)
class LastLocation:
    latitude: float
    longitude: float
    name: str

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)


class WeatherSource(Protocol):
    async def fetch_forecast(self, latitude: float, longitude: float) -> Mapping[str, Any]: ...


class AlertSource(Protocol):
    async def fetch_alerts(self, latitude: float, longitude: float) -> Sequence[Alert]: ...


class AirQualitySource(Protocol):
    async def fetch_air_quality(self, latitude: float, longitude: float) -> AirQualitySnapshot: ...


class GeolocationSource(Protocol):
    def has_permission(self) -> bool: ...

    async def current_coordinates(self) -> Optional[Coordinates]: ...


class ReverseGeocoder(Protocol):
    async def resolve_name(self, latitude: float, longitude: float) -> Optional[PlaceName]: ...


class PlaceSearch(Protocol):
    async def search(self, query: str, *, count: int = 10) -> Sequence[LocationInfo]: ...

    async def nearest_place(self, latitude: float, longitude: float) -> Optional[PlaceName]: ...


class RadarManifestSource(Protocol):
    async def fetch_frame_manifest(self) -> RadarFrameSet: ...


class PreferenceStore(Protocol):
    async def last_location(self) -> Optional[LastLocation]: ...

    async def save_last_location(self, latitude: float, longitude: float, name: str) -> None: ...

    async def display_settings(self) -> DisplaySettings: ...


class SavedLocationStore(Protocol):
    async def all(self) -> Sequence[SavedLocation]: ...

    async def ensure_current_location(self, latitude: float, longitude: float, name: str) -> None: ...


__all__ = [
    "AirQualitySource",
    "AlertSource",
    "GeolocationSource",
    "LastLocation",
    "PlaceName",
    "PlaceSearch",
    "PreferenceStore",
    "RadarManifestSource",
    "ReverseGeocoder",
    "SavedLocationStore",
    "WeatherSource",
]
