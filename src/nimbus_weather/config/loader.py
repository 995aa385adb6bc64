from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Tuple

import yaml

_LOGGER = logging.getLogger(__name__)

_YAML_SUFFIXES = frozenset({".yaml", ".yml"})
_ABSENT = object()


def load_document(path: Path) -> Dict[str, Any]:
    """Parse a JSON or YAML settings file; an empty document is ``{}``."""

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in _YAML_SUFFIXES:
        document = yaml.safe_load(text)
    else:
        document = json.loads(text) if text.strip() else None
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")
    return document


def _iter_changes(old: Any, new: Any, prefix: str = "") -> Iterator[Tuple[str, Any, Any]]:
    if isinstance(old, Mapping) and isinstance(new, Mapping):
        for key in sorted(set(old) | set(new), key=str):
            dotted = f"{prefix}.{key}" if prefix else str(key)
            yield from _iter_changes(old.get(key, _ABSENT), new.get(key, _ABSENT), dotted)
        return
    if old is _ABSENT and new is _ABSENT:
        return
    if old is _ABSENT or new is _ABSENT or old != new:
        yield (
            prefix or "<root>",
            None if old is _ABSENT else old,
            None if new is _ABSENT else new,
        )


def settings_diff(old: Mapping[str, Any], new: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Dotted key -> ``{"old", "new"}`` for every leaf that changed."""

    return {key: {"old": before, "new": after} for key, before, after in _iter_changes(old, new)}


class Settings:
    """A settings file that is re-read whenever its mtime moves forward.

    A file that disappears reads as empty settings; a broken edit is logged
    and the last good document stays in effect.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._data: Dict[str, Any] = {}
        self._loaded_mtime: float | None = None
        self.reload(force=True)

    @property
    def data(self) -> Dict[str, Any]:
        self.reload()
        return self._data

    def reload(self, force: bool = False) -> None:
        try:
            mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            self._data = {}
            self._loaded_mtime = None
            return
        except OSError as exc:
            self._report_failure(exc)
            return
        if not force and self._loaded_mtime is not None and mtime <= self._loaded_mtime:
            return
        try:
            document = load_document(self.path)
        except (ValueError, yaml.YAMLError, OSError) as exc:
            self._report_failure(exc)
            return
        changes = settings_diff(self._data, document)
        if changes:
            _LOGGER.info(
                "Settings reloaded from %s",
                self.path,
                extra={"event": "settings_reload", "diff": changes},
            )
        self._data = document
        self._loaded_mtime = mtime

    def _report_failure(self, exc: Exception) -> None:
        _LOGGER.warning(
            "Failed to reload settings from %s: %s",
            self.path,
            exc,
            extra={"event": "settings_reload_failed"},
        )


__all__ = ["Settings", "load_document", "settings_diff"]
