from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from statecache.core.state.records import ABSENT


DEFAULT_WRITE_DELAY_SECONDS = 5.0


class WriteDebouncer:
    """
    Coalesces writes per key: one pending value and one timer per key. A new
    schedule_write() replaces the value and restarts the timer, so only the last
    value before the quiet period reaches ``write``.

    Lock order is always _io_lock -> _lock. _io_lock is held for the whole of a
    flush, so cancel_all() returns only once no flush is in flight.
    """

    def __init__(
        self,
        *,
        write: Callable[[str, Any], None],
        delay_seconds: float = DEFAULT_WRITE_DELAY_SECONDS,
        timer_factory: Callable[..., Any] = threading.Timer,
        on_flush: Optional[Callable[[str, Any], None]] = None,
        logger=None,
    ):
        self._write = write
        self.delay_seconds = max(0.0, float(delay_seconds))
        self._timer_factory = timer_factory
        self._on_flush = on_flush
        self.logger = logger or logging.getLogger("statecache")

        self._lock = threading.Lock()
        self._io_lock = threading.RLock()
        self._pending: Dict[str, Any] = {}
        self._timers: Dict[str, Tuple[int, Any]] = {}
        self._seq = 0
        self._disposed = False

    # ---- scheduling ----
    def schedule_write(self, key: str, value: Any) -> None:
        with self._lock:
            disposed = self._disposed
            if not disposed:
                self._pending[key] = value
                prev = self._timers.pop(key, None)
                if prev is not None:
                    prev[1].cancel()
                self._seq += 1
                token = self._seq
                try:
                    timer = self._timer_factory(self.delay_seconds, self._fire, args=(key, token))
                    timer.daemon = True
                    self._timers[key] = (token, timer)
                    timer.start()
                except Exception as e:  # noqa: BLE001
                    # keep the pending value; flush_all()/dispose() will still persist it
                    self._timers.pop(key, None)
                    self.logger.error(f"Failed to schedule write for '{key}': {e}")
        if disposed:
            # no more timers after dispose(): write through
            with self._io_lock:
                self._flush_one(key, value)

    def pending(self, key: str) -> Any:
        with self._lock:
            return self._pending.get(key, ABSENT)

    def pending_keys(self) -> List[str]:
        with self._lock:
            return sorted(self._pending.keys())

    def has_timer(self, key: str) -> bool:
        with self._lock:
            return key in self._timers

    # ---- draining ----
    def flush_all(self) -> List[str]:
        """Write every pending value now. Returns the flushed keys."""
        with self._io_lock:
            with self._lock:
                items = list(self._pending.items())
                self._pending.clear()
                timers = list(self._timers.values())
                self._timers.clear()
            for _token, timer in timers:
                timer.cancel()
            for key, value in items:
                self._flush_one(key, value)
            return [k for k, _ in items]

    def cancel_all(self) -> List[str]:
        """Drop every pending value and cancel every timer. Returns the dropped keys."""
        with self._io_lock:
            with self._lock:
                dropped = sorted(self._pending.keys())
                self._pending.clear()
                timers = list(self._timers.values())
                self._timers.clear()
            for _token, timer in timers:
                timer.cancel()
            return dropped

    def dispose(self) -> None:
        self.flush_all()
        with self._lock:
            self._disposed = True

    # ---- internals ----
    def _fire(self, key: str, token: int) -> None:
        with self._io_lock:
            with self._lock:
                current = self._timers.get(key)
                if current is None or current[0] != token:
                    # superseded by a newer schedule_write, or cancelled by reset
                    return
                del self._timers[key]
                value = self._pending.pop(key, ABSENT)
            if value is ABSENT:
                return
            self._flush_one(key, value)

    def _flush_one(self, key: str, value: Any) -> None:
        try:
            self._write(key, value)
        except Exception as e:  # noqa: BLE001
            self.logger.error(f"Debounced write for '{key}' failed: {e}")
            return
        if self._on_flush is not None:
            try:
                self._on_flush(key, value)
            except Exception:  # noqa: BLE001
                pass
