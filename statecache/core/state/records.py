from __future__ import annotations

import logging
import os
import re
from typing import Any, Optional

from statecache.core.config.io import atomic_write_json, read_json_file, remove_file
from statecache.core.config.paths import StateFsPaths


_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class _Absent:
    """Marker for "no value": a missing or unreadable record, or no pending write."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Any = _Absent()


class DiskRecordStore:
    """
    One JSON file per large key under <storage-root>/state/<key>.json.
    All I/O failures are logged and swallowed; persistence here is best-effort.
    """

    def __init__(self, paths: StateFsPaths, *, indent: Optional[int] = 2, logger=None):
        self.paths = paths
        self.indent = indent
        self.logger = logger or logging.getLogger("statecache")

    def record_path(self, key: str) -> str:
        if not _SAFE_KEY.match(key) or key in {".", ".."}:
            raise ValueError(f"Key {key!r} cannot be used as a record file name.")
        return self.paths.record(key)

    def write_record(self, key: str, value: Any) -> bool:
        path = self.record_path(key)
        try:
            atomic_write_json(path, value, indent=self.indent)
            return True
        except Exception as e:  # noqa: BLE001
            self.logger.error(f"Failed to write large state '{key}' to disk: {e}")
            return False

    def read_record(self, key: str) -> Any:
        rr = read_json_file(self.record_path(key))
        if rr.ok:
            return rr.data
        if rr.error != "missing":
            self.logger.warning(f"Ignoring unreadable state record '{key}': {rr.error}")
        return ABSENT

    def delete_record(self, key: str) -> bool:
        try:
            return remove_file(self.record_path(key))
        except OSError as e:
            self.logger.warning(f"Failed to delete state record '{key}': {e}")
            return False

    def exists(self, key: str) -> bool:
        return os.path.isfile(self.record_path(key))
