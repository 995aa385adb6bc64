from __future__ import annotations

from typing import Any, Final, Mapping

from ..core.errors import DecodeError
from ..core.models import RadarFrame, RadarFrameSet
from ._client import JsonSource

MANIFEST_URL: Final[str] = "https://api.rainviewer.com/public/weather-maps.json"
TILE_HOST: Final[str] = "https://tilecache.rainviewer.com"
# 4 is the "Weather Channel" palette.
DEFAULT_COLOR_SCHEME: Final[int] = 4


def tile_url_template(
    path: str,
    *,
    color_scheme: int = DEFAULT_COLOR_SCHEME,
    smooth: bool = True,
    snow: bool = True,
) -> str:
    """Map-tile URL with literal ``{z}/{x}/{y}`` placeholders for the renderer."""

    return f"{TILE_HOST}{path}/512/{{z}}/{{x}}/{{y}}/{color_scheme}/{int(smooth)}_{int(snow)}.png"


def _frames(entries: object) -> tuple[RadarFrame, ...]:
    if not isinstance(entries, list):
        return ()
    frames: list[RadarFrame] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        timestamp = entry.get("time")
        path = entry.get("path")
        if not isinstance(timestamp, int) or isinstance(timestamp, bool) or not isinstance(path, str):
            continue
        frames.append(RadarFrame(timestamp_epoch_seconds=timestamp, tile_url_template=tile_url_template(path)))
    return tuple(frames)


def parse_manifest(payload: Mapping[str, Any]) -> RadarFrameSet:
    radar = payload.get("radar")
    if not isinstance(radar, Mapping):
        raise DecodeError("rainviewer", "No radar data available")
    return RadarFrameSet(past=_frames(radar.get("past")), forecast=_frames(radar.get("nowcast")))


class RainViewerManifestSource(JsonSource):
    source_name = "rainviewer"

    async def fetch_frame_manifest(self) -> RadarFrameSet:
        payload = await self._get_mapping(MANIFEST_URL, {}, target="weather-maps")
        return parse_manifest(payload)


__all__ = [
    "MANIFEST_URL",
    "RainViewerManifestSource",
    "TILE_HOST",
    "parse_manifest",
    "tile_url_template",
]
