from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from ..adapters._client import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from ..core.cache import DEFAULT_CACHE_PATH
from ..core.location import DEFAULT_ATTEMPT_TIMEOUT, DEFAULT_MAX_ATTEMPTS, DEFAULT_RETRY_DELAY
from ..core.models import Coordinates
from ..core.radar import BOUNDARY_MS, FINAL_MS, STEP_MS

DEFAULT_PREFERENCES_PATH = Path("nimbus_prefs.json")


@dataclass(frozen=True)
class CacheConfig:
    path: Path = DEFAULT_CACHE_PATH
    ttl_minutes: int = 30

    @property
    def max_age_ms(self) -> int:
        return self.ttl_minutes * 60 * 1000


@dataclass(frozen=True)
class LocationConfig:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY
    attempt_timeout_seconds: float = DEFAULT_ATTEMPT_TIMEOUT
    fixed: Optional[Coordinates] = None
    permission: bool = False


@dataclass(frozen=True)
class HttpConfig:
    timeout_seconds: float = DEFAULT_TIMEOUT
    max_attempts: int = 3
    base_backoff: float = 1.0
    max_backoff: float = 8.0


@dataclass(frozen=True)
class RadarConfig:
    step_ms: int = STEP_MS
    boundary_ms: int = BOUNDARY_MS
    final_ms: int = FINAL_MS


@dataclass(frozen=True)
class PipelineSettings:
    cache: CacheConfig = field(default_factory=CacheConfig)
    location: LocationConfig = field(default_factory=LocationConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    radar: RadarConfig = field(default_factory=RadarConfig)
    preferences_path: Path = DEFAULT_PREFERENCES_PATH
    user_agent: str = DEFAULT_USER_AGENT


def _block(settings: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    raw = settings.get(name)
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"{name} must be a mapping")
    return raw


def _positive_int(block: Mapping[str, Any], key: str, field_name: str, default: int) -> int:
    value = block.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{field_name} must be a positive integer")
    return value


def _non_negative_float(block: Mapping[str, Any], key: str, field_name: str, default: float) -> float:
    value = block.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValueError(f"{field_name} must be a non-negative number")
    return float(value)


def _path(block: Mapping[str, Any], key: str, field_name: str, default: Path) -> Path:
    value = block.get(key)
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return Path(value)


def _fixed_coordinates(raw: Any) -> Optional[Coordinates]:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ValueError("location.fixed must be a mapping")
    try:
        return Coordinates(raw.get("latitude"), raw.get("longitude"))  # type: ignore[arg-type]
    except ValueError as exc:
        raise ValueError(f"location.fixed: {exc}") from exc


def load_pipeline_settings(settings: Mapping[str, Any]) -> PipelineSettings:
    cache_block = _block(settings, "cache")
    location_block = _block(settings, "location")
    http_block = _block(settings, "http")
    radar_block = _block(settings, "radar")
    preferences_block = _block(settings, "preferences")

    fixed = _fixed_coordinates(location_block.get("fixed"))
    permission = location_block.get("permission", fixed is not None)
    if not isinstance(permission, bool):
        raise ValueError("location.permission must be a boolean")

    http = HttpConfig(
        timeout_seconds=_non_negative_float(http_block, "timeout_seconds", "http.timeout_seconds", DEFAULT_TIMEOUT),
        max_attempts=_positive_int(http_block, "max_attempts", "http.max_attempts", 3),
        base_backoff=_non_negative_float(http_block, "base_backoff", "http.base_backoff", 1.0),
        max_backoff=_non_negative_float(http_block, "max_backoff", "http.max_backoff", 8.0),
    )
    if http.max_backoff < http.base_backoff:
        raise ValueError("http.max_backoff must be at least http.base_backoff")

    user_agent = settings.get("user_agent", DEFAULT_USER_AGENT)
    if not isinstance(user_agent, str) or not user_agent.strip():
        raise ValueError("user_agent must be a non-empty string")

    return PipelineSettings(
        cache=CacheConfig(
            path=_path(cache_block, "path", "cache.path", DEFAULT_CACHE_PATH),
            ttl_minutes=_positive_int(cache_block, "ttl_minutes", "cache.ttl_minutes", 30),
        ),
        location=LocationConfig(
            max_attempts=_positive_int(
                location_block, "max_attempts", "location.max_attempts", DEFAULT_MAX_ATTEMPTS
            ),
            retry_delay_seconds=_non_negative_float(
                location_block,
                "retry_delay_seconds",
                "location.retry_delay_seconds",
                DEFAULT_RETRY_DELAY,
            ),
            attempt_timeout_seconds=_non_negative_float(
                location_block,
                "attempt_timeout_seconds",
                "location.attempt_timeout_seconds",
                DEFAULT_ATTEMPT_TIMEOUT,
            ),
            fixed=fixed,
            permission=permission,
        ),
        http=http,
        radar=RadarConfig(
            step_ms=_positive_int(radar_block, "step_ms", "radar.step_ms", STEP_MS),
            boundary_ms=_positive_int(radar_block, "boundary_ms", "radar.boundary_ms", BOUNDARY_MS),
            final_ms=_positive_int(radar_block, "final_ms", "radar.final_ms", FINAL_MS),
        ),
        preferences_path=_path(preferences_block, "path", "preferences.path", DEFAULT_PREFERENCES_PATH),
        user_agent=user_agent,
    )


__all__ = [
    "CacheConfig",
    "HttpConfig",
    "LocationConfig",
    "PipelineSettings",
    "RadarConfig",
    "load_pipeline_settings",
]
