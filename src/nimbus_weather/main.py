from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional, Sequence

from .config.loader import Settings
from .core.models import Coordinates
from .core.session import SessionState
from .runtime.setup import build_runtime

__all__ = ["main", "parse_args", "run", "summarize"]

_LOGGER = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = "config/settings.json"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="nimbus_weather", description="Load weather once and print a summary.")
    parser.add_argument("--settings", default=DEFAULT_SETTINGS_PATH, help="JSON or YAML settings file")
    parser.add_argument("--lat", type=float, help="latitude; requires --lon")
    parser.add_argument("--lon", type=float, help="longitude; requires --lat")
    args = parser.parse_args(argv)
    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be given together")
    return args


def summarize(state: SessionState) -> str:
    if state.snapshot is None:
        return f"error: {state.error or 'no data'}"
    snapshot = state.snapshot
    parts = [
        snapshot.location.name,
        f"{snapshot.current.temperature:.1f}C",
        f"high {snapshot.current.daily_high:.1f}C",
        f"low {snapshot.current.daily_low:.1f}C",
        f"alerts {len(state.alerts)}",
    ]
    if state.air_quality is not None:
        parts.append(f"AQI {state.air_quality.us_aqi} ({state.air_quality.level.label})")
    if state.is_cached_fallback:
        parts.append("cached")
    return " | ".join(parts)


async def run(settings_path: str, coordinates: Optional[Coordinates] = None) -> SessionState:
    runtime = build_runtime(Settings(settings_path).data)
    controller = runtime.controller
    try:
        await controller.reload_settings()
        await controller.reload_saved_locations()
        if coordinates is None:
            await controller.load_for_current_location()
        else:
            await controller.load_for_coordinates(coordinates)
        await controller.wait_for_secondary()
        return controller.state.value
    finally:
        await runtime.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO)
    args = parse_args(argv)
    coordinates = None
    if args.lat is not None:
        try:
            coordinates = Coordinates(args.lat, args.lon)
        except ValueError as exc:
            _LOGGER.error("Invalid coordinates: %s", exc)
            return 2
    state = asyncio.run(run(args.settings, coordinates))
    _LOGGER.info(summarize(state), extra={"event": "session_summary"})
    return 0 if state.snapshot is not None else 1


if __name__ == "__main__":
    raise SystemExit(main())
