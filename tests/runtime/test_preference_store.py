from __future__ import annotations

import json
from pathlib import Path

import pytest

from nimbus_weather.core.models import LocationInfo
from nimbus_weather.core.types import LastLocation
from nimbus_weather.core.units import DisplaySettings, TempUnit
from nimbus_weather.runtime.preferences import CURRENT_LOCATION_SORT_ORDER, JsonPreferenceStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _Clock:
    def __init__(self) -> None:
        self.now = 1_700_000_000.0

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


def _store(tmp_path: Path) -> JsonPreferenceStore:
    return JsonPreferenceStore(tmp_path / "prefs" / "nimbus.json", clock=_Clock())


@pytest.mark.anyio("asyncio")
async def test_fresh_store_has_defaults(tmp_path: Path) -> None:
    store = _store(tmp_path)

    assert await store.last_location() is None
    assert await store.display_settings() == DisplaySettings()
    assert await store.all() == []


@pytest.mark.anyio("asyncio")
async def test_last_location_round_trips(tmp_path: Path) -> None:
    store = _store(tmp_path)

    await store.save_last_location(39.7392, -104.9903, "Denver")

    assert await store.last_location() == LastLocation(39.7392, -104.9903, "Denver")
    assert not (tmp_path / "prefs" / "nimbus.json.tmp").exists()


@pytest.mark.anyio("asyncio")
async def test_partial_last_location_is_ignored(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.path.parent.mkdir(parents=True)
    store.path.write_text(json.dumps({"last_location": {"latitude": 1.0, "name": "Nowhere"}}), encoding="utf-8")

    assert await store.last_location() is None


@pytest.mark.anyio("asyncio")
async def test_display_settings_survive_alongside_other_keys(tmp_path: Path) -> None:
    store = _store(tmp_path)
    await store.save_last_location(1.0, 2.0, "Somewhere")

    await store.save_display_settings(DisplaySettings(temp_unit=TempUnit.CELSIUS, particles_enabled=False))

    settings = await store.display_settings()
    assert settings.temp_unit is TempUnit.CELSIUS
    assert settings.particles_enabled is False
    assert await store.last_location() == LastLocation(1.0, 2.0, "Somewhere")


@pytest.mark.anyio("asyncio")
async def test_added_locations_append_in_order(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    store = _store(tmp_path)
    caplog.set_level("INFO", logger="nimbus_weather.runtime.preferences")

    first = await store.add(LocationInfo("Paris", 48.8566, 2.3522, country="France"))
    second = await store.add(LocationInfo("Tokyo", 35.6762, 139.6503, country="Japan"))

    assert (first.id, first.sort_order) == (1, 0)
    assert (second.id, second.sort_order) == (2, 1)
    assert [entry.name for entry in await store.all()] == ["Paris", "Tokyo"]
    assert [getattr(record, "location_id", None) for record in caplog.records] == [1, 2]


@pytest.mark.anyio("asyncio")
async def test_current_location_entry_is_upserted_first(tmp_path: Path) -> None:
    store = _store(tmp_path)
    await store.add(LocationInfo("Paris", 48.8566, 2.3522))

    await store.ensure_current_location(39.7, -104.9, "Denver")
    await store.ensure_current_location(39.9, -105.1, "Boulder")

    entries = await store.all()
    assert [entry.name for entry in entries] == ["Boulder", "Paris"]
    current = entries[0]
    assert current.is_current_location is True
    assert current.sort_order == CURRENT_LOCATION_SORT_ORDER
    assert (current.latitude, current.longitude) == (39.9, -105.1)
    assert sum(entry.is_current_location for entry in entries) == 1


@pytest.mark.anyio("asyncio")
async def test_remove_reports_whether_anything_was_deleted(tmp_path: Path) -> None:
    store = _store(tmp_path)
    entry = await store.add(LocationInfo("Paris", 48.8566, 2.3522))

    assert await store.remove(entry.id) is True
    assert await store.remove(entry.id) is False
    assert await store.all() == []


@pytest.mark.anyio("asyncio")
async def test_corrupt_file_reads_as_empty(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    store = _store(tmp_path)
    store.path.parent.mkdir(parents=True)
    store.path.write_text("{oops", encoding="utf-8")
    caplog.set_level("WARNING", logger="nimbus_weather.runtime.preferences")

    assert await store.all() == []
    assert [getattr(record, "event", None) for record in caplog.records] == ["preferences_unreadable"]
