"""
Validation telemetry (local-only).

Schema validation failures from the settings views are recorded as redacted
JSONL events. Nothing is exported over the network.
"""

from statecache.core.telemetry.events import TelemetryEventWriter

__all__ = ["TelemetryEventWriter"]
