from __future__ import annotations

from .acquirer import FetchResult, SearchResult, WeatherAcquirer
from .cache import CachedSnapshot, CacheStore, cache_key
from .errors import (
    DecodeError,
    LocationUnavailable,
    NimbusError,
    NotCoveredByRegion,
    PermissionDenied,
    SourceUnavailable,
)
from .location import LocationResolver, LocationResult
from .radar import RadarPlaybackScheduler, RadarPlaybackState, frame_delay_ms
from .session import SessionState, SessionStatus, WeatherSessionController
from .state import StateStore

__all__ = [
    "CacheStore",
    "CachedSnapshot",
    "DecodeError",
    "FetchResult",
    "LocationResolver",
    "LocationResult",
    "LocationUnavailable",
    "NimbusError",
    "NotCoveredByRegion",
    "PermissionDenied",
    "RadarPlaybackScheduler",
    "RadarPlaybackState",
    "SearchResult",
    "SessionState",
    "SessionStatus",
    "SourceUnavailable",
    "StateStore",
    "WeatherAcquirer",
    "WeatherSessionController",
    "cache_key",
    "frame_delay_ms",
]
