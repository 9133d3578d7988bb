from __future__ import annotations

import json
import os
import threading
import time
from typing import Any

from statecache.core.events import redact


def approx_size(value: Any) -> int:
    try:
        s = json.dumps(value, ensure_ascii=False)
        return len(s.encode("utf-8")) if s else 0
    except Exception:  # noqa: BLE001
        return 0


class InstrumentLog:
    """
    Append-only JSONL trail of state writes: {ts, key, approx_size_bytes, write_path}.
    Observability only: every failure is swallowed.
    """

    def __init__(self, path: str, *, enabled: bool = True):
        self.path = path
        self.enabled = enabled
        self._lock = threading.Lock()

    def append(self, key: str, size: int, write_path: str) -> None:
        if not self.enabled:
            return
        try:
            payload = {
                "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
                "key": str(key),
                "approx_size_bytes": int(size),
                "write_path": str(write_path),
            }
            line = json.dumps(redact(payload), ensure_ascii=False)
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with self._lock:
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except Exception:  # noqa: BLE001
            return

    def record(self, key: str, value: Any, write_path: str) -> None:
        self.append(key, approx_size(value), write_path)
