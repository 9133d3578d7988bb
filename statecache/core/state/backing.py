from __future__ import annotations

import threading
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from statecache.core.config.io import atomic_write_json, read_json_file


@runtime_checkable
class KeyValueStore(Protocol):
    """Host-provided small-value store. ``None`` from get() means absent."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


@runtime_checkable
class SecretStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


@runtime_checkable
class ValidationTelemetry(Protocol):
    def capture_schema_validation_error(self, schema_name: str, error: BaseException) -> None: ...


class JsonFileKeyValueStore:
    """
    KeyValueStore persisted as a single JSON object. Every write replaces the
    whole file atomically, so it is only suited to small values.
    """

    def __init__(self, path: str, *, logger=None):
        self.path = path
        self.logger = logger
        self._lock = threading.Lock()
        self._data: Optional[Dict[str, Any]] = None

    def get(self, key: str) -> Any:
        with self._lock:
            return self._load_locked().get(key)

    def set(self, key: str, value: Any) -> None:
        if value is None:
            self.delete(key)
            return
        with self._lock:
            data = dict(self._load_locked())
            data[key] = value
            atomic_write_json(self.path, data, indent=2, sort_keys=True)
            self._data = data

    def delete(self, key: str) -> None:
        with self._lock:
            data = dict(self._load_locked())
            if key not in data:
                return
            del data[key]
            atomic_write_json(self.path, data, indent=2, sort_keys=True)
            self._data = data

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._load_locked().keys())

    def _load_locked(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data
        rr = read_json_file(self.path)
        if rr.ok and isinstance(rr.data, dict):
            self._data = rr.data
        else:
            if rr.error and rr.error != "missing" and self.logger:
                self.logger.warning(f"Backing store {self.path} unreadable ({rr.error}); starting empty.")
            self._data = {}
        return self._data
