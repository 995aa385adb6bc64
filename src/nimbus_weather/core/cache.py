from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, cast

import anyio

from .models import Coordinates

_LOGGER = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = Path("weather_cache.json")
MAX_AGE_MS = 30 * 60 * 1000


def cache_key(latitude: float, longitude: float) -> str:
    return f"{latitude:.2f},{longitude:.2f}"


def key_for(coords: Coordinates) -> str:
    return cache_key(coords.latitude, coords.longitude)


def now_millis() -> int:
    return int(time.time() * 1000)


def coerce_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(cast(Any, value))
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class CachedSnapshot:
    key: str
    raw_payload: str
    place_name: str
    latitude: float
    longitude: float
    region: str = ""
    country: str = ""
    cached_at_epoch_millis: int = field(default_factory=now_millis)
    max_age_ms: int = MAX_AGE_MS

    def is_expired_at(self, now_ms: int) -> bool:
        return now_ms - self.cached_at_epoch_millis > self.max_age_ms

    @property
    def is_expired(self) -> bool:
        return self.is_expired_at(now_millis())


def _coerce_entry(key: str, value: object, *, max_age_ms: int) -> Optional[CachedSnapshot]:
    if not isinstance(value, Mapping):
        return None
    raw = value.get("raw_payload")
    name = value.get("place_name")
    latitude = coerce_float(value.get("latitude"))
    longitude = coerce_float(value.get("longitude"))
    cached_at = coerce_float(value.get("cached_at_epoch_millis"))
    if not isinstance(raw, str) or not isinstance(name, str):
        return None
    if latitude is None or longitude is None or cached_at is None:
        return None
    return CachedSnapshot(
        key=key,
        raw_payload=raw,
        place_name=name,
        latitude=latitude,
        longitude=longitude,
        region=str(value.get("region") or ""),
        country=str(value.get("country") or ""),
        cached_at_epoch_millis=int(cached_at),
        max_age_ms=max_age_ms,
    )


class CacheStore:
    """JSON-file backed snapshot cache, one entry per coordinate key.

    Entries past their TTL stay readable; only ``prune_older_than`` and
    ``clear`` remove them.
    """

    def __init__(self, path: Path | None = None, *, max_age_ms: int = MAX_AGE_MS) -> None:
        self.path = path or DEFAULT_CACHE_PATH
        self.max_age_ms = max_age_ms
        self._lock = asyncio.Lock()

    def _read_all(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            _LOGGER.warning(
                "Ignoring unreadable cache file %s: %s",
                self.path,
                exc,
                extra={"event": "cache_unreadable"},
            )
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(key): dict(value) for key, value in raw.items() if isinstance(value, Mapping)}

    def _write_all(self, data: Mapping[str, Mapping[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        os.replace(tmp_path, self.path)

    def _get_sync(self, key: str) -> Optional[CachedSnapshot]:
        return _coerce_entry(key, self._read_all().get(key), max_age_ms=self.max_age_ms)

    def _upsert_sync(self, entry: CachedSnapshot) -> None:
        data = self._read_all()
        record = asdict(entry)
        record.pop("key")
        record.pop("max_age_ms")
        data[entry.key] = record
        self._write_all(data)

    def _prune_sync(self, before_epoch_millis: int) -> int:
        data = self._read_all()
        kept: Dict[str, Dict[str, Any]] = {}
        for key, value in data.items():
            cached_at = coerce_float(value.get("cached_at_epoch_millis"))
            if cached_at is None or cached_at < before_epoch_millis:
                continue
            kept[key] = value
        self._write_all(kept)
        return len(data) - len(kept)

    async def get(self, key: str) -> Optional[CachedSnapshot]:
        async with self._lock:
            return await anyio.to_thread.run_sync(self._get_sync, key)

    async def upsert(self, entry: CachedSnapshot) -> None:
        async with self._lock:
            await anyio.to_thread.run_sync(self._upsert_sync, entry)

    async def prune_older_than(self, before_epoch_millis: int) -> int:
        async with self._lock:
            removed = await anyio.to_thread.run_sync(self._prune_sync, before_epoch_millis)
        _LOGGER.info(
            "Pruned %d cached snapshot(s)",
            removed,
            extra={"event": "cache_pruned", "removed": removed},
        )
        return removed

    async def clear(self) -> None:
        async with self._lock:
            await anyio.to_thread.run_sync(self._write_all, {})


__all__ = [
    "CacheStore",
    "CachedSnapshot",
    "DEFAULT_CACHE_PATH",
    "MAX_AGE_MS",
    "cache_key",
    "coerce_float",
    "key_for",
    "now_millis",
]
