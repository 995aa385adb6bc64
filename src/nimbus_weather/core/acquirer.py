from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from .cache import CachedSnapshot, CacheStore, key_for
from .errors import describe
from .forecast import build_snapshot
from .models import Coordinates, ForecastSnapshot, LocationInfo
from .types import PlaceName, PlaceSearch, ReverseGeocoder, WeatherSource

_LOGGER = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown Location"


@dataclass(frozen=True)
class FetchResult:
    snapshot: Optional[ForecastSnapshot] = None
    error: Optional[BaseException] = None
    is_cached_fallback: bool = False

    @property
    def ok(self) -> bool:
        return self.snapshot is not None

    @property
    def message(self) -> str:
        if self.error is None:
            return ""
        return describe(self.error, default="Failed to load weather")


@dataclass(frozen=True)
class SearchResult:
    locations: tuple[LocationInfo, ...] = ()
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class WeatherAcquirer:
    """Fetch-or-fall-back for a single coordinate pair, keeping the cache warm."""

    def __init__(
        self,
        source: WeatherSource,
        cache: CacheStore,
        *,
        reverse_geocoder: Optional[ReverseGeocoder] = None,
        place_search: Optional[PlaceSearch] = None,
    ) -> None:
        self._source = source
        self._cache = cache
        self._reverse_geocoder = reverse_geocoder
        self._place_search = place_search

    async def fetch(
        self,
        coords: Coordinates,
        explicit_name: Optional[str] = None,
    ) -> FetchResult:
        try:
            payload = await self._source.fetch_forecast(coords.latitude, coords.longitude)
            location = await self._resolve_location(coords, explicit_name)
            snapshot = build_snapshot(payload, location)
        except Exception as exc:
            return await self._fallback(coords, exc)

        await self._write_through(coords, payload, location)
        return FetchResult(snapshot=snapshot)

    async def _fallback(self, coords: Coordinates, error: BaseException) -> FetchResult:
        cached = await self.load_cached(coords)
        if cached is None:
            _LOGGER.warning(
                "Forecast fetch failed with no cached snapshot: %s",
                error,
                extra={"event": "forecast_failed", "key": key_for(coords)},
            )
            return FetchResult(error=error)
        _LOGGER.warning(
            "Forecast fetch failed, serving cached snapshot: %s",
            error,
            extra={"event": "forecast_cache_fallback", "key": key_for(coords)},
        )
        return FetchResult(snapshot=cached, error=error, is_cached_fallback=True)

    async def _write_through(
        self,
        coords: Coordinates,
        payload: Mapping[str, Any],
        location: LocationInfo,
    ) -> None:
        try:
            entry = CachedSnapshot(
                key=key_for(coords),
                raw_payload=json.dumps(payload, ensure_ascii=False),
                place_name=location.name,
                region=location.region,
                country=location.country,
                latitude=coords.latitude,
                longitude=coords.longitude,
                max_age_ms=self._cache.max_age_ms,
            )
            await self._cache.upsert(entry)
        except Exception as exc:
            _LOGGER.warning(
                "Cache write failed for %s: %s",
                key_for(coords),
                exc,
                extra={"event": "cache_write_failed"},
            )

    async def load_cached(
        self,
        coords: Coordinates,
        *,
        now: Optional[datetime] = None,
    ) -> Optional[ForecastSnapshot]:
        key = key_for(coords)
        try:
            entry = await self._cache.get(key)
            if entry is None:
                return None
            location = LocationInfo(
                name=entry.place_name,
                region=entry.region,
                country=entry.country,
                latitude=entry.latitude,
                longitude=entry.longitude,
            )
            return build_snapshot(json.loads(entry.raw_payload), location, now=now)
        except Exception as exc:
            _LOGGER.warning(
                "Discarding unreadable cache entry %s: %s",
                key,
                exc,
                extra={"event": "cache_decode_failed"},
            )
            return None

    async def _resolve_location(
        self,
        coords: Coordinates,
        explicit_name: Optional[str],
    ) -> LocationInfo:
        if explicit_name is not None:
            return LocationInfo(
                name=explicit_name,
                latitude=coords.latitude,
                longitude=coords.longitude,
            )
        place = await self._reverse_geocode(coords)
        if place is None:
            place = await self._nearest_place(coords)
        if place is None:
            place = PlaceName(UNKNOWN_LOCATION)
        return LocationInfo(
            name=place.name,
            region=place.region,
            country=place.country,
            latitude=coords.latitude,
            longitude=coords.longitude,
        )

    async def _reverse_geocode(self, coords: Coordinates) -> Optional[PlaceName]:
        if self._reverse_geocoder is None:
            return None
        try:
            place = await self._reverse_geocoder.resolve_name(coords.latitude, coords.longitude)
        except Exception as exc:
            _LOGGER.warning(
                "Reverse geocoding failed: %s",
                exc,
                extra={"event": "reverse_geocode_failed"},
            )
            return None
        if place is None or not place.name.strip():
            return None
        return place

    async def _nearest_place(self, coords: Coordinates) -> Optional[PlaceName]:
        if self._place_search is None:
            return None
        try:
            place = await self._place_search.nearest_place(coords.latitude, coords.longitude)
        except Exception as exc:
            _LOGGER.warning(
                "Nearest place lookup failed: %s",
                exc,
                extra={"event": "nearest_place_failed"},
            )
            return None
        if place is None or not place.name.strip():
            return None
        return place

    async def search_locations(self, query: str) -> SearchResult:
        if self._place_search is None or not query.strip():
            return SearchResult()
        try:
            found = await self._place_search.search(query.strip())
        except Exception as exc:
            _LOGGER.warning(
                "Location search failed for %r: %s",
                query,
                exc,
                extra={"event": "location_search_failed"},
            )
            return SearchResult(error=exc)
        return SearchResult(locations=tuple(found))


__all__ = ["FetchResult", "SearchResult", "UNKNOWN_LOCATION", "WeatherAcquirer"]
