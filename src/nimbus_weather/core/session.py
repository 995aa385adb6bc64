from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Coroutine, Optional, Sequence, Set

import anyio

from .acquirer import WeatherAcquirer
from .astronomy import compute_astronomy
from .errors import NotCoveredByRegion, describe
from .location import LocationResolver
from .models import (
    AirQualitySnapshot,
    Alert,
    Astronomy,
    Coordinates,
    ForecastSnapshot,
    SavedLocation,
)
from .state import StateStore
from .types import AirQualitySource, AlertSource, PreferenceStore, SavedLocationStore
from .units import DisplaySettings

_LOGGER = logging.getLogger(__name__)

PERMISSION_REQUIRED = "Location permission required."
PERMISSION_SETTLE_DELAY = 0.3


class SessionStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    READY_CACHED = "ready_cached"
    ERROR = "error"


@dataclass(frozen=True)
class SessionState:
    loading: bool = True
    refreshing: bool = False
    snapshot: Optional[ForecastSnapshot] = None
    alerts: tuple[Alert, ...] = ()
    air_quality: Optional[AirQualitySnapshot] = None
    astronomy: Optional[Astronomy] = None
    error: Optional[str] = None
    is_cached_fallback: bool = False
    needs_permission: bool = False
    active_coordinates: Optional[Coordinates] = None
    use_live_location: bool = True
    saved_locations: tuple[SavedLocation, ...] = ()
    active_page_index: int = 0
    settings: DisplaySettings = field(default_factory=DisplaySettings)

    @property
    def status(self) -> SessionStatus:
        if self.loading:
            return SessionStatus.LOADING
        if self.error is not None:
            return SessionStatus.ERROR
        if self.snapshot is not None:
            return SessionStatus.READY_CACHED if self.is_cached_fallback else SessionStatus.READY
        return SessionStatus.IDLE


class WeatherSessionController:
    """Owns :class:`SessionState` and sequences location, forecast and secondary fetches.

    Each load runs as its own task. Starting a load cancels the previous one
    together with any secondary fetches it spawned, so the most recently
    initiated request is the only one allowed to settle.
    """

    def __init__(
        self,
        *,
        acquirer: WeatherAcquirer,
        resolver: LocationResolver,
        preferences: PreferenceStore,
        saved_locations: Optional[SavedLocationStore] = None,
        alerts: Optional[AlertSource] = None,
        air_quality: Optional[AirQualitySource] = None,
        astronomy: Callable[[Optional[str], Optional[str]], Astronomy] = compute_astronomy,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._acquirer = acquirer
        self._resolver = resolver
        self._preferences = preferences
        self._saved_locations = saved_locations
        self._alerts = alerts
        self._air_quality = air_quality
        self._astronomy = astronomy
        self._sleep = sleep
        self.state: StateStore[SessionState] = StateStore(SessionState())
        self._pipeline: Optional[asyncio.Task[None]] = None
        self._secondary: Set[asyncio.Task[None]] = set()

    async def start(self, location_id: Optional[int] = None) -> None:
        await self.reload_settings()
        await self.reload_saved_locations()
        if location_id is not None and location_id > 0:
            await self.load_for_location(location_id)
        else:
            await self.load_for_current_location()

    async def load_for_current_location(self) -> None:
        await self._launch(self._load_current())

    async def load_for_coordinates(
        self,
        coords: Coordinates,
        use_live_location: bool = False,
    ) -> None:
        await self._launch(self._load_coordinates(coords, use_live_location))

    async def refresh(self) -> None:
        self.state.update(refreshing=True)
        current = self.state.value
        if not current.use_live_location and current.active_coordinates is not None:
            await self.load_for_coordinates(current.active_coordinates, use_live_location=False)
        else:
            await self.load_for_current_location()

    async def on_page_changed(self, index: int) -> None:
        locations = self.state.value.saved_locations
        if index < 0 or index >= len(locations):
            return
        entry = locations[index]
        self.state.update(active_page_index=index)
        _LOGGER.debug(
            "Page changed to %d (%s)",
            index,
            entry.name,
            extra={"event": "page_changed", "current_location": entry.is_current_location},
        )
        if entry.is_current_location:
            await self.load_for_current_location()
        else:
            await self.load_for_coordinates(entry.coordinates, use_live_location=False)

    async def load_for_location(self, location_id: int) -> None:
        entry: Optional[SavedLocation] = None
        if self._saved_locations is not None:
            try:
                entries = await self._saved_locations.all()
            except Exception as exc:
                self._settle_error(f"Failed: {describe(exc, default='saved locations unavailable')}")
                return
            entry = next((item for item in entries if item.id == location_id), None)
        if entry is None or entry.is_current_location:
            await self.load_for_current_location()
        else:
            await self.load_for_coordinates(entry.coordinates, use_live_location=False)

    async def on_permission_granted(self) -> None:
        self.state.update(needs_permission=False)
        await self._sleep(PERMISSION_SETTLE_DELAY)
        await self.load_for_current_location()

    def on_permission_denied(self) -> None:
        self.state.update(needs_permission=True, loading=False, error=PERMISSION_REQUIRED)

    async def reload_settings(self) -> None:
        try:
            settings = await self._preferences.display_settings()
        except Exception as exc:
            _LOGGER.warning(
                "Display settings unavailable: %s",
                exc,
                extra={"event": "settings_unavailable"},
            )
            return
        self.state.update(settings=settings)

    async def reload_saved_locations(self) -> None:
        if self._saved_locations is None:
            return
        try:
            entries = await self._saved_locations.all()
        except Exception as exc:
            _LOGGER.warning(
                "Saved locations unavailable: %s",
                exc,
                extra={"event": "saved_locations_unavailable"},
            )
            return
        self.state.update(saved_locations=tuple(entries))

    async def wait_for_secondary(self) -> None:
        pending = list(self._secondary)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        tasks = self._cancel_inflight()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _cancel_inflight(self) -> list[asyncio.Task[None]]:
        cancelled: list[asyncio.Task[None]] = []
        if self._pipeline is not None and not self._pipeline.done():
            self._pipeline.cancel()
            cancelled.append(self._pipeline)
        for task in list(self._secondary):
            if not task.done():
                task.cancel()
                cancelled.append(task)
        self._secondary.clear()
        self._pipeline = None
        return cancelled

    async def _launch(self, pipeline: Coroutine[Any, Any, None]) -> None:
        superseded = self._cancel_inflight()
        if superseded:
            _LOGGER.debug(
                "Cancelled %d superseded task(s)",
                len(superseded),
                extra={"event": "pipeline_superseded"},
            )
        task = asyncio.create_task(pipeline)
        self._pipeline = task
        await asyncio.wait({task})
        if self._pipeline is task:
            self._pipeline = None
        if not task.cancelled():
            task.result()

    def _spawn(self, operation: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(operation)
        self._secondary.add(task)
        task.add_done_callback(self._secondary.discard)

    async def _load_current(self) -> None:
        self.state.update(loading=True, error=None, use_live_location=True)
        try:
            if not self._resolver.has_permission():
                await self._settle_without_permission()
                return

            result = await self._resolver.resolve_current()
            if result.needs_permission:
                await self._settle_without_permission()
                return
            if result.coordinates is None:
                if not await self._settle_from_last_known():
                    self._settle_error(result.message)
                return

            await self._fetch(result.coordinates, use_live_location=True)
        except Exception as exc:
            _LOGGER.exception("Current location load failed", extra={"event": "load_failed"})
            if not await self._settle_from_last_known():
                self._settle_error(f"Error: {describe(exc, default='unexpected failure')}")

    async def _load_coordinates(self, coords: Coordinates, use_live_location: bool) -> None:
        self.state.update(loading=True, error=None, use_live_location=use_live_location)
        try:
            await self._fetch(coords, use_live_location=use_live_location)
        except Exception as exc:
            _LOGGER.exception("Coordinate load failed", extra={"event": "load_failed"})
            self._settle_error(f"Network error: {describe(exc, default='unexpected failure')}")

    async def _fetch(self, coords: Coordinates, *, use_live_location: bool) -> None:
        self.state.update(active_coordinates=coords)
        result = await self._acquirer.fetch(coords)
        snapshot = result.snapshot
        if snapshot is None:
            self._settle_error(result.message)
            return
        if result.is_cached_fallback:
            self._settle_snapshot(snapshot, cached=True)
            return

        await self._remember(coords, snapshot.location.name, use_live_location=use_live_location)
        self._settle_snapshot(snapshot, cached=False)
        self._spawn(self._load_alerts(coords))
        self._spawn(self._load_air_quality(coords))
        self._load_astronomy(snapshot)

    async def _remember(self, coords: Coordinates, name: str, *, use_live_location: bool) -> None:
        try:
            await self._preferences.save_last_location(coords.latitude, coords.longitude, name)
        except Exception as exc:
            _LOGGER.warning(
                "Could not persist last location: %s",
                exc,
                extra={"event": "last_location_write_failed"},
            )
        if not use_live_location or self._saved_locations is None:
            return
        try:
            await self._saved_locations.ensure_current_location(
                coords.latitude, coords.longitude, name
            )
            entries = await self._saved_locations.all()
        except Exception as exc:
            _LOGGER.warning(
                "Could not update current location entry: %s",
                exc,
                extra={"event": "current_location_write_failed"},
            )
            return
        self.state.update(saved_locations=tuple(entries))

    def _settle_snapshot(
        self,
        snapshot: ForecastSnapshot,
        *,
        cached: bool,
        needs_permission: bool = False,
    ) -> None:
        self.state.update(
            loading=False,
            refreshing=False,
            snapshot=snapshot,
            error=None,
            is_cached_fallback=cached,
            needs_permission=needs_permission,
            alerts=(),
            air_quality=None,
            astronomy=None,
        )
        _LOGGER.info(
            "Session settled for %s",
            snapshot.location.name,
            extra={"event": "session_ready", "cached": cached},
        )

    def _settle_error(self, message: str, *, needs_permission: bool = False) -> None:
        self.state.update(
            loading=False,
            refreshing=False,
            snapshot=None,
            error=message or "Failed to load weather",
            is_cached_fallback=False,
            needs_permission=needs_permission,
            alerts=(),
            air_quality=None,
            astronomy=None,
        )
        _LOGGER.info("Session failed: %s", message, extra={"event": "session_error"})

    async def _settle_from_last_known(self, *, needs_permission: bool = False) -> bool:
        try:
            last = await self._preferences.last_location()
            if last is None:
                return False
            cached = await self._acquirer.load_cached(last.coordinates)
        except Exception as exc:
            _LOGGER.warning(
                "Cached fallback unavailable: %s",
                exc,
                extra={"event": "cached_fallback_failed"},
            )
            return False
        if cached is None:
            return False
        self._settle_snapshot(cached, cached=True, needs_permission=needs_permission)
        return True

    async def _settle_without_permission(self) -> None:
        if not await self._settle_from_last_known(needs_permission=True):
            self._settle_error(PERMISSION_REQUIRED, needs_permission=True)

    async def _load_alerts(self, coords: Coordinates) -> None:
        alerts: Sequence[Alert] = ()
        if self._alerts is not None:
            try:
                alerts = await self._alerts.fetch_alerts(coords.latitude, coords.longitude)
            except NotCoveredByRegion:
                alerts = ()
            except Exception as exc:
                _LOGGER.warning(
                    "Alerts unavailable: %s",
                    exc,
                    extra={"event": "alerts_failed"},
                )
                alerts = ()
        self.state.update(alerts=tuple(alerts))

    async def _load_air_quality(self, coords: Coordinates) -> None:
        snapshot: Optional[AirQualitySnapshot] = None
        if self._air_quality is not None:
            try:
                snapshot = await self._air_quality.fetch_air_quality(
                    coords.latitude, coords.longitude
                )
            except Exception as exc:
                _LOGGER.warning(
                    "Air quality unavailable: %s",
                    exc,
                    extra={"event": "air_quality_failed"},
                )
                snapshot = None
        self.state.update(air_quality=snapshot)

    def _load_astronomy(self, snapshot: ForecastSnapshot) -> None:
        try:
            astronomy = self._astronomy(snapshot.current.sunrise, snapshot.current.sunset)
        except Exception as exc:
            _LOGGER.warning(
                "Astronomy computation failed: %s",
                exc,
                extra={"event": "astronomy_failed"},
            )
            return
        self.state.update(astronomy=astronomy)


__all__ = [
    "PERMISSION_REQUIRED",
    "SessionState",
    "SessionStatus",
    "WeatherSessionController",
]
