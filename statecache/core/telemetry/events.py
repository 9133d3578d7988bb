from __future__ import annotations

import json
import os
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from pydantic import ValidationError

from statecache.core.telemetry.models import ValidationEvent, ValidationIssue
from statecache.core.telemetry.redaction import telemetry_redact


def _issues_from(error: BaseException) -> List[ValidationIssue]:
    if not isinstance(error, ValidationError):
        return [ValidationIssue(type=type(error).__name__, msg=telemetry_redact(str(error))[:300])]
    out: List[ValidationIssue] = []
    # include_input=False: offending values may be secrets
    for item in error.errors(include_url=False, include_input=False):
        out.append(
            ValidationIssue(
                loc=[str(p) for p in item.get("loc", ())],
                type=str(item.get("type") or ""),
                msg=telemetry_redact(str(item.get("msg") or ""))[:300],
            )
        )
    return out


class TelemetryEventWriter:
    """
    Fire-and-forget sink for settings schema validation failures.
    """

    def __init__(self, *, events_path: str = os.path.join("logs", "telemetry", "validation_events.jsonl"), keep_last: int = 200, enabled: bool = True):
        self.events_path = events_path
        self.enabled = enabled
        self._lock = threading.Lock()
        self._recent: Deque[ValidationEvent] = deque(maxlen=max(20, int(keep_last)))

    def capture_schema_validation_error(self, schema_name: str, error: BaseException, details: Optional[Dict[str, Any]] = None) -> None:
        issues = _issues_from(error)
        ev = ValidationEvent(schema_name=str(schema_name), error_count=len(issues), issues=issues, details=telemetry_redact(details or {}))
        self.emit(ev)

    def emit(self, ev: ValidationEvent) -> None:
        with self._lock:
            self._recent.appendleft(ev)
        if not self.enabled:
            return
        line = json.dumps(ev.model_dump(), ensure_ascii=False)
        os.makedirs(os.path.dirname(self.events_path) or ".", exist_ok=True)
        with self._lock:
            with open(self.events_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def recent(self, n: int = 20) -> List[Dict[str, Any]]:
        with self._lock:
            return [x.model_dump() for x in list(self._recent)[: max(1, int(n))]]
