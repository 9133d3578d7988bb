from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ReadResult:
    ok: bool
    data: Any
    error: Optional[str] = None


def ensure_dirs(*dirs: str) -> None:
    for d in dirs:
        if d:
            os.makedirs(d, exist_ok=True)


def read_json_file(path: str) -> ReadResult:
    if not os.path.exists(path):
        return ReadResult(ok=False, data=None, error="missing")
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
        return ReadResult(ok=True, data=obj)
    except json.JSONDecodeError as e:
        return ReadResult(ok=False, data=None, error=f"corrupt_json:{e}")
    except Exception as e:  # noqa: BLE001
        return ReadResult(ok=False, data=None, error=str(e))


def atomic_write_json(path: str, data: Any, *, indent: Optional[int] = 2, sort_keys: bool = False) -> None:
    """
    Serialize first, then write to a temp file beside ``path`` and os.replace() it
    into place. A reader sees either the previous file or the complete new one.
    """
    text = json.dumps(data, indent=indent, ensure_ascii=False, sort_keys=sort_keys)
    directory = os.path.dirname(path) or "."
    ensure_dirs(directory)
    fd, tmp = tempfile.mkstemp(prefix=f".{os.path.basename(path)}.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.write("\n")
            try:
                f.flush()
                os.fsync(f.fileno())
            except Exception:
                pass
        os.replace(tmp, path)
    finally:
        try:
            if os.path.exists(tmp):
                os.remove(tmp)
        except OSError:
            pass


def remove_file(path: str) -> bool:
    """Returns True if a file was removed. Missing files are not an error."""
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
