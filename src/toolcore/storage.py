"""Opaque key/value store persisted as a single JSON document."""

from __future__ import annotations

import copy
import json
import threading
from pathlib import Path


class JsonStore:
    """Write-through key/value store with atomic file replacement."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._data: dict[str, object] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: object = None) -> object:
        with self._lock:
            if key not in self._data:
                return default
            return copy.deepcopy(self._data[key])

    def set(self, key: str, value: object) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)
            self._flush()

    def delete(self, key: str) -> None:
        with self._lock:
            if key in self._data:
                del self._data[key]
                self._flush()

    def keys(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._data))

    def _load(self) -> dict[str, object]:
        if not self._path.exists():
            return {}
        with self._path.open("r", encoding="utf-8") as handle:
            try:
                payload = json.load(handle)
            except json.JSONDecodeError:
                return {}
        if not isinstance(payload, dict):
            return {}
        return payload

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(self._data, handle, sort_keys=True)
            handle.write("\n")
        tmp.replace(self._path)
