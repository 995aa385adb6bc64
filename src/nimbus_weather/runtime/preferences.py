from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar

import anyio

from ..core.cache import coerce_float
from ..core.models import LocationInfo, SavedLocation
from ..core.types import LastLocation
from ..core.units import DisplaySettings

_LOGGER = logging.getLogger(__name__)

CURRENT_LOCATION_SORT_ORDER = -1

_T = TypeVar("_T")


def _last_location(raw: object) -> Optional[LastLocation]:
    if not isinstance(raw, Mapping):
        return None
    latitude = coerce_float(raw.get("latitude"))
    longitude = coerce_float(raw.get("longitude"))
    name = raw.get("name")
    if latitude is None or longitude is None or not isinstance(name, str):
        return None
    return LastLocation(latitude=latitude, longitude=longitude, name=name)


def _saved_location(raw: object) -> Optional[SavedLocation]:
    if not isinstance(raw, Mapping):
        return None
    try:
        return SavedLocation(
            id=int(raw["id"]),
            name=str(raw["name"]),
            latitude=float(raw["latitude"]),
            longitude=float(raw["longitude"]),
            region=str(raw.get("region") or ""),
            country=str(raw.get("country") or ""),
            sort_order=int(raw.get("sort_order", 0)),
            is_current_location=bool(raw.get("is_current_location", False)),
            added_at=float(raw.get("added_at", 0.0)),
        )
    except (KeyError, TypeError, ValueError):
        return None


def _ordered(entries: List[SavedLocation]) -> List[SavedLocation]:
    return sorted(entries, key=lambda entry: (entry.sort_order, entry.added_at, entry.id))


class JsonPreferenceStore:
    """Last-known location, display units and saved locations in one JSON file.

    Serves as both the preference store and the saved-location store.
    """

    def __init__(self, path: Path, *, clock: Callable[[], float] = time.time) -> None:
        self.path = path
        self._clock = clock
        self._lock = asyncio.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            _LOGGER.warning(
                "Ignoring unreadable preferences %s: %s",
                self.path,
                exc,
                extra={"event": "preferences_unreadable"},
            )
            return {}
        return raw if isinstance(raw, dict) else {}

    def _write(self, data: Mapping[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def _locations(self, data: Mapping[str, Any]) -> List[SavedLocation]:
        raw = data.get("saved_locations")
        if not isinstance(raw, list):
            return []
        return [entry for entry in map(_saved_location, raw) if entry is not None]

    async def _read_with(self, reader: Callable[[Dict[str, Any]], _T]) -> _T:
        async with self._lock:
            data = await anyio.to_thread.run_sync(self._read)
        return reader(data)

    async def _edit(self, editor: Callable[[Dict[str, Any]], _T]) -> _T:
        def _apply() -> _T:
            data = self._read()
            result = editor(data)
            self._write(data)
            return result

        async with self._lock:
            return await anyio.to_thread.run_sync(_apply)

    async def last_location(self) -> Optional[LastLocation]:
        return await self._read_with(lambda data: _last_location(data.get("last_location")))

    async def save_last_location(self, latitude: float, longitude: float, name: str) -> None:
        def _store(data: Dict[str, Any]) -> None:
            data["last_location"] = {"latitude": latitude, "longitude": longitude, "name": name}

        await self._edit(_store)

    async def display_settings(self) -> DisplaySettings:
        def _settings(data: Dict[str, Any]) -> DisplaySettings:
            raw = data.get("settings")
            return DisplaySettings.from_mapping(raw if isinstance(raw, Mapping) else {})

        return await self._read_with(_settings)

    async def save_display_settings(self, settings: DisplaySettings) -> None:
        def _store(data: Dict[str, Any]) -> None:
            data["settings"] = settings.to_mapping()

        await self._edit(_store)

    async def all(self) -> List[SavedLocation]:
        return await self._read_with(lambda data: _ordered(self._locations(data)))

    async def add(self, location: LocationInfo) -> SavedLocation:
        def _insert(data: Dict[str, Any]) -> SavedLocation:
            entries = self._locations(data)
            next_order = max((entry.sort_order for entry in entries), default=-1) + 1
            entry = SavedLocation(
                id=max((item.id for item in entries), default=0) + 1,
                name=location.name,
                latitude=location.latitude,
                longitude=location.longitude,
                region=location.region,
                country=location.country,
                sort_order=next_order,
                added_at=self._clock(),
            )
            data["saved_locations"] = [asdict(item) for item in [*entries, entry]]
            return entry

        entry = await self._edit(_insert)
        _LOGGER.info(
            "Saved location %s",
            entry.name,
            extra={"event": "saved_location_added", "location_id": entry.id},
        )
        return entry

    async def remove(self, location_id: int) -> bool:
        def _delete(data: Dict[str, Any]) -> bool:
            entries = self._locations(data)
            kept = [entry for entry in entries if entry.id != location_id]
            data["saved_locations"] = [asdict(entry) for entry in kept]
            return len(kept) != len(entries)

        return await self._edit(_delete)

    async def ensure_current_location(self, latitude: float, longitude: float, name: str) -> None:
        def _upsert(data: Dict[str, Any]) -> None:
            entries = self._locations(data)
            for index, entry in enumerate(entries):
                if entry.is_current_location:
                    entries[index] = replace(entry, latitude=latitude, longitude=longitude, name=name)
                    break
            else:
                entries.append(
                    SavedLocation(
                        id=max((item.id for item in entries), default=0) + 1,
                        name=name,
                        latitude=latitude,
                        longitude=longitude,
                        sort_order=CURRENT_LOCATION_SORT_ORDER,
                        is_current_location=True,
                        added_at=self._clock(),
                    )
                )
            data["saved_locations"] = [asdict(entry) for entry in entries]

        await self._edit(_upsert)


__all__ = ["CURRENT_LOCATION_SORT_ORDER", "JsonPreferenceStore"]
