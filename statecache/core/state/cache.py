from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from statecache.core.config.paths import StateFsPaths
from statecache.core.errors import NotInitializedError
from statecache.core.state.backing import KeyValueStore
from statecache.core.state.debounce import DEFAULT_WRITE_DELAY_SECONDS, WriteDebouncer
from statecache.core.state.instrument import InstrumentLog
from statecache.core.state.keys import DEFAULT_KEYS, KeyRegistry
from statecache.core.state.records import ABSENT, DiskRecordStore


PurgeTask = Tuple[str, Callable[[], Any]]


class StateCache:
    """
    In-memory authority for global state keys.

    Reads are served from memory (pass-through keys excepted). Writes update
    memory synchronously, then fan out: pass-through and small keys write
    through to the backing store, large keys go to the debouncer and land in
    their own Disk Record. A failed durable write never rolls back memory.
    """

    def __init__(
        self,
        *,
        kv: KeyValueStore,
        paths: StateFsPaths,
        keys: KeyRegistry = DEFAULT_KEYS,
        write_delay_seconds: float = DEFAULT_WRITE_DELAY_SECONDS,
        record_indent: Optional[int] = 2,
        instrument: Optional[InstrumentLog] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
        logger=None,
    ):
        self.kv = kv
        self.keys = keys
        self.logger = logger or logging.getLogger("statecache")
        self.records = DiskRecordStore(paths, indent=record_indent, logger=self.logger)
        self.instrument = instrument or InstrumentLog(paths.instrument_log)
        self.debouncer = WriteDebouncer(
            write=self._persist_large,
            delay_seconds=write_delay_seconds,
            timer_factory=timer_factory,
            on_flush=lambda k, v: self.instrument.record(k, v, "debounce.flush"),
            logger=self.logger,
        )
        self._cache: Dict[str, Any] = {}
        self._raw_keys: Set[str] = set()
        self._raw_lock = threading.Lock()
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # ---- lifecycle ----
    def initialize(self) -> None:
        cache: Dict[str, Any] = {}
        for key in self.keys.global_state_keys:
            try:
                # large keys prefer their Disk Record
                if self.keys.is_large(key):
                    disk = self.records.read_record(key)
                    if disk is not ABSENT and disk is not None:
                        cache[key] = disk
                        continue
                value = self.kv.get(key)
                if value is not None:
                    cache[key] = value
            except Exception as e:  # noqa: BLE001
                self.logger.error(f"Error loading global {key}: {e}")
        self._cache = cache
        self._initialized = True

    def flush(self) -> List[str]:
        return self.debouncer.flush_all()

    def cancel_pending(self) -> List[str]:
        return self.debouncer.cancel_all()

    def clear(self) -> None:
        self._cache = {}

    def dispose(self) -> None:
        self.debouncer.dispose()

    # ---- reads ----
    def get(self, key: str, default: Any = None) -> Any:
        self._require_initialized()
        self._reject_secret(key)
        if self.keys.is_pass_through(key):
            return self._read_live(key, default)
        # raw keys are served from memory only; initialize() never hydrates them
        value = self._cache.get(key)
        return default if value is None else value

    def snapshot(self) -> Dict[str, Any]:
        self._require_initialized()
        return dict(self._cache)

    # ---- writes ----
    def set(self, key: str, value: Any) -> bool:
        """Returns False when the durable write failed; the cached value stands either way."""
        self._require_initialized()
        self._reject_secret(key)
        if self.keys.namespace(key) == "unknown":
            raise KeyError(f"Unknown state key {key!r}; use set_raw() for untyped keys.")
        return self._route(key, value, via="set")

    def set_raw(self, key: str, value: Any) -> bool:
        """Write a key outside the registry (runtime flags, bookkeeping)."""
        self._require_initialized()
        self._reject_secret(key)
        if self.keys.namespace(key) == "unknown":
            with self._raw_lock:
                self._raw_keys.add(key)
        return self._route(key, value, via="set_raw")

    # ---- reset support ----
    def purge_tasks(self) -> List[PurgeTask]:
        tasks: List[PurgeTask] = []
        for key in self.keys.global_state_keys:
            if self.keys.is_large(key):
                tasks.append((f"record:{key}", lambda k=key: self.records.delete_record(k)))
            else:
                tasks.append((f"state:{key}", lambda k=key: self.kv.delete(k)))
        for key in self.keys.pass_through_keys:
            tasks.append((f"state:{key}", lambda k=key: self.kv.delete(k)))
        with self._raw_lock:
            raw = sorted(self._raw_keys)
            self._raw_keys.clear()
        for key in raw:
            tasks.append((f"raw:{key}", lambda k=key: self.kv.delete(k)))
        return tasks

    # ---- internals ----
    def _route(self, key: str, value: Any, *, via: str) -> bool:
        self._store(key, value)
        if self.keys.is_pass_through(key):
            self.instrument.record(key, value, f"{via}.passthrough")
            return self._write_through(key, value)
        if self.keys.is_large(key):
            self.debouncer.schedule_write(key, value)
            self.instrument.record(key, value, f"{via}.scheduled")
            return True
        self.instrument.record(key, value, f"{via}.memento")
        return self._write_through(key, value)

    def _store(self, key: str, value: Any) -> None:
        if value is None:
            self._cache.pop(key, None)
        else:
            self._cache[key] = value

    def _write_through(self, key: str, value: Any) -> bool:
        try:
            if value is None:
                self.kv.delete(key)
            else:
                self.kv.set(key, value)
            return True
        except Exception as e:  # noqa: BLE001
            self.logger.error(f"Failed to persist state '{key}': {e}")
            return False

    def _read_live(self, key: str, default: Any) -> Any:
        try:
            value = self.kv.get(key)
        except Exception as e:  # noqa: BLE001
            self.logger.warning(f"Error reading state {key}: {e}")
            return default
        return default if value is None else value

    def _persist_large(self, key: str, value: Any) -> None:
        if value is None:
            self.records.delete_record(key)
        else:
            self.records.write_record(key, value)

    def _reject_secret(self, key: str) -> None:
        if self.keys.is_secret(key):
            raise KeyError(f"{key!r} is a secret key; use the secret cache.")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError("State cache used before initialize().")
