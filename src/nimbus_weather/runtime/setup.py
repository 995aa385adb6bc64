from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from ..adapters._client import close_shared_client, configure_shared_client
from ..adapters._retry import RetryConfig
from ..adapters.air_quality import OpenMeteoAirQualitySource
from ..adapters.nominatim import NominatimReverseGeocoder
from ..adapters.nws_alerts import NwsAlertSource
from ..adapters.open_meteo import OpenMeteoForecastSource, OpenMeteoGeocoder
from ..adapters.rainviewer import RainViewerManifestSource
from ..config.pipeline import PipelineSettings, load_pipeline_settings
from ..core.acquirer import WeatherAcquirer
from ..core.cache import CacheStore
from ..core.location import LocationResolver
from ..core.radar import RadarPlaybackScheduler
from ..core.session import WeatherSessionController
from .location import ConfiguredLocationSource
from .preferences import JsonPreferenceStore

__all__ = ["Runtime", "build_runtime"]


@dataclass
class Runtime:
    settings: PipelineSettings
    cache: CacheStore
    preferences: JsonPreferenceStore
    geolocation: ConfiguredLocationSource
    acquirer: WeatherAcquirer
    controller: WeatherSessionController
    radar: RadarPlaybackScheduler

    async def close(self) -> None:
        await self.controller.close()
        await self.radar.close()
        await close_shared_client()


def build_runtime(
    settings: Mapping[str, Any],
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> Runtime:
    """Wire every source and component from a raw settings mapping.

    ``client`` replaces the shared HTTP client, mainly for tests.
    """

    config = load_pipeline_settings(settings)
    configure_shared_client(timeout=config.http.timeout_seconds)
    retry = RetryConfig(
        max_attempts=config.http.max_attempts,
        base_backoff=config.http.base_backoff,
        max_backoff=config.http.max_backoff,
    )
    source_options: dict[str, Any] = {"client": client, "retry_config": retry}

    cache = CacheStore(config.cache.path, max_age_ms=config.cache.max_age_ms)
    preferences = JsonPreferenceStore(config.preferences_path)
    geolocation = ConfiguredLocationSource(
        config.location.fixed,
        permission=config.location.permission,
    )
    acquirer = WeatherAcquirer(
        OpenMeteoForecastSource(**source_options),
        cache,
        reverse_geocoder=NominatimReverseGeocoder(user_agent=config.user_agent, **source_options),
        place_search=OpenMeteoGeocoder(**source_options),
    )
    resolver = LocationResolver(
        geolocation,
        max_attempts=config.location.max_attempts,
        retry_delay=config.location.retry_delay_seconds,
        attempt_timeout=config.location.attempt_timeout_seconds,
    )
    controller = WeatherSessionController(
        acquirer=acquirer,
        resolver=resolver,
        preferences=preferences,
        saved_locations=preferences,
        alerts=NwsAlertSource(user_agent=config.user_agent, **source_options),
        air_quality=OpenMeteoAirQualitySource(**source_options),
    )
    radar = RadarPlaybackScheduler(
        RainViewerManifestSource(**source_options),
        preferences=preferences,
        step_ms=config.radar.step_ms,
        boundary_ms=config.radar.boundary_ms,
        final_ms=config.radar.final_ms,
    )
    return Runtime(
        settings=config,
        cache=cache,
        preferences=preferences,
        geolocation=geolocation,
        acquirer=acquirer,
        controller=controller,
        radar=radar,
    )
