from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Final, Optional

import anyio

from .errors import describe
from .models import RadarFrame, RadarFrameSet
from .state import StateStore
from .types import PreferenceStore, RadarManifestSource

_LOGGER = logging.getLogger(__name__)

STEP_MS: Final[int] = 450
BOUNDARY_MS: Final[int] = 1500
FINAL_MS: Final[int] = 2000
# Continental US centre used when no location is known.
DEFAULT_MAP_CENTER: Final[tuple[float, float]] = (39.8, -98.5)


@dataclass(frozen=True)
class RadarPlaybackState:
    frame_set: Optional[RadarFrameSet] = None
    current_index: int = 0
    is_playing: bool = False
    paused_by_gesture: bool = False
    loading: bool = False
    error: Optional[str] = None

    @property
    def total_frames(self) -> int:
        return self.frame_set.total_frames if self.frame_set is not None else 0

    @property
    def past_frame_count(self) -> int:
        return len(self.frame_set.past) if self.frame_set is not None else 0

    @property
    def current_frame(self) -> Optional[RadarFrame]:
        if self.frame_set is None:
            return None
        frames = self.frame_set.frames
        if 0 <= self.current_index < len(frames):
            return frames[self.current_index]
        return None

    @property
    def is_current_frame_forecast(self) -> bool:
        if self.frame_set is None:
            return False
        return self.current_index >= len(self.frame_set.past)


def frame_delay_ms(
    frame_set: RadarFrameSet,
    index: int,
    *,
    step_ms: int = STEP_MS,
    boundary_ms: int = BOUNDARY_MS,
    final_ms: int = FINAL_MS,
) -> int:
    """Dwell time after showing ``index``; longer on the last observed and last overall frame."""

    if index == frame_set.boundary_index:
        return boundary_ms
    if index == frame_set.total_frames - 1:
        return final_ms
    return step_ms


class RadarPlaybackScheduler:
    def __init__(
        self,
        source: Optional[RadarManifestSource] = None,
        *,
        preferences: Optional[PreferenceStore] = None,
        step_ms: int = STEP_MS,
        boundary_ms: int = BOUNDARY_MS,
        final_ms: int = FINAL_MS,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._source = source
        self._preferences = preferences
        self.step_ms = step_ms
        self.boundary_ms = boundary_ms
        self.final_ms = final_ms
        self._sleep = sleep
        self.state: StateStore[RadarPlaybackState] = StateStore(RadarPlaybackState())
        self._playback: Optional[asyncio.Task[None]] = None

    def delay_for(self, frame_set: RadarFrameSet, index: int) -> int:
        return frame_delay_ms(
            frame_set,
            index,
            step_ms=self.step_ms,
            boundary_ms=self.boundary_ms,
            final_ms=self.final_ms,
        )

    async def load_frames(self) -> None:
        if self._source is None:
            raise RuntimeError("Radar manifest source is not configured")
        self.state.update(loading=True, error=None)
        try:
            frame_set = await self._source.fetch_frame_manifest()
        except Exception as exc:
            _LOGGER.warning(
                "Radar manifest unavailable: %s",
                exc,
                extra={"event": "radar_manifest_failed"},
            )
            self.state.update(loading=False, error=describe(exc, default="Failed to load radar"))
            return
        self.set_frames(frame_set)

    def set_frames(self, frame_set: RadarFrameSet) -> None:
        was_playing = self.state.value.is_playing
        self._cancel_loop()
        self.state.update(
            loading=False,
            error=None,
            frame_set=frame_set,
            current_index=max(frame_set.boundary_index, 0),
            is_playing=False,
            paused_by_gesture=False,
        )
        _LOGGER.debug(
            "Loaded %d radar frame(s)",
            frame_set.total_frames,
            extra={"event": "radar_frames_loaded", "past": len(frame_set.past)},
        )
        if was_playing:
            self.start_playback()

    def toggle_playback(self) -> None:
        # an explicit choice overrides any pending gesture resume
        self.state.update(paused_by_gesture=False)
        if self.state.value.is_playing:
            self.pause_playback()
        else:
            self.start_playback()

    def start_playback(self) -> None:
        self._cancel_loop()
        self.state.update(is_playing=True)
        frame_set = self.state.value.frame_set
        if frame_set is None or frame_set.total_frames < 2:
            return
        self._playback = asyncio.get_running_loop().create_task(self._run(frame_set))

    def pause_playback(self) -> None:
        self._cancel_loop()
        self.state.update(is_playing=False)

    def seek_to_frame(self, index: int) -> None:
        frame_set = self.state.value.frame_set
        if frame_set is None or frame_set.total_frames == 0:
            return
        clamped = min(max(index, 0), frame_set.total_frames - 1)
        self.state.update(current_index=clamped)

    def on_map_interaction_start(self) -> None:
        if self.state.value.is_playing:
            self.state.update(paused_by_gesture=True)
            self.pause_playback()

    def on_map_interaction_end(self) -> None:
        if self.state.value.paused_by_gesture:
            self.state.update(paused_by_gesture=False)
            self.start_playback()

    async def resolve_map_center(self, latitude: float, longitude: float) -> tuple[float, float]:
        if latitude != 0.0 or longitude != 0.0:
            return latitude, longitude
        if self._preferences is not None:
            saved = await self._preferences.last_location()
            if saved is not None:
                return saved.latitude, saved.longitude
        return DEFAULT_MAP_CENTER

    async def close(self) -> None:
        task = self._playback
        self._cancel_loop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def _cancel_loop(self) -> None:
        if self._playback is not None and not self._playback.done():
            self._playback.cancel()
        self._playback = None

    async def _run(self, frame_set: RadarFrameSet) -> None:
        total = frame_set.total_frames
        while True:
            next_index = (self.state.value.current_index + 1) % total
            self.state.update(current_index=next_index)
            await self._sleep(self.delay_for(frame_set, next_index) / 1000.0)


__all__ = [
    "BOUNDARY_MS",
    "DEFAULT_MAP_CENTER",
    "FINAL_MS",
    "RadarPlaybackScheduler",
    "RadarPlaybackState",
    "STEP_MS",
    "frame_delay_ms",
]
