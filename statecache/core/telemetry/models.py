from __future__ import annotations

import time
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class ValidationIssue(BaseModel):
    model_config = ConfigDict(extra="forbid")
    loc: List[str] = Field(default_factory=list)
    type: str = ""
    msg: str = ""


class ValidationEvent(BaseModel):
    model_config = ConfigDict(extra="forbid")
    ts: float = Field(default_factory=lambda: time.time())
    event_type: str = "schema_validation_error"
    schema_name: str
    error_count: int = 0
    issues: List[ValidationIssue] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
