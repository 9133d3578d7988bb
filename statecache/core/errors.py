from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from statecache.core.events import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class StateCacheError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return f"{self.code}: {self.user_message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": redact(self.context or {}),
        }


# ---- Core types ----
class NotInitializedError(StateCacheError):
    """Raised when the cache is used before initialize(). Lifecycle bug, never recoverable."""

    def __init__(self, user_message: str = "State cache not initialized.", **ctx: Any):
        super().__init__("not_initialized", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class ConfigError(StateCacheError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class SecretUnavailable(StateCacheError):
    def __init__(self, user_message: str = "Secret store unavailable.", **ctx: Any):
        super().__init__("secret_unavailable", user_message, severity=Severity.WARN, recoverable=True, context=ctx)

