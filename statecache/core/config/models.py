from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SecretsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    key_path: str = "secure/master.key"
    store_path: str = "secure/secrets.enc"
    max_bytes: int = Field(default=65536, ge=1024)
    backup_keep: int = Field(default=10, ge=1, le=200)


class CacheConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    config_version: int = Field(default=1, ge=1)
    storage_root: str = "."
    write_delay_ms: int = Field(default=5000, ge=0, le=600_000)
    instrument_log_enabled: bool = True
    instrument_log_name: str = "frag-instrument.log"
    record_indent: Optional[int] = Field(default=2, ge=0, le=8)
    io_workers: int = Field(default=8, ge=1, le=64)
    memento_file: str = "memento.json"
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)

    @property
    def write_delay_seconds(self) -> float:
        return float(self.write_delay_ms) / 1000.0
