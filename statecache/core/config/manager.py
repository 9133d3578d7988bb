from __future__ import annotations

import os
from typing import Optional

from pydantic import ValidationError

from statecache.core.config.io import atomic_write_json, read_json_file
from statecache.core.config.models import CacheConfig
from statecache.core.config.paths import StateFsPaths
from statecache.core.errors import ConfigError


def load_cache_config(path: str, *, logger=None, write_defaults: bool = True) -> CacheConfig:
    """
    Load cache.json. Missing file -> defaults (written back unless write_defaults is False).
    Corrupt or invalid file -> ConfigError; a bad config is an integration bug, not a transient.
    """
    rr = read_json_file(path)
    if not rr.ok:
        if rr.error == "missing":
            cfg = CacheConfig()
            if logger:
                logger.warning(f"Missing config {os.path.basename(path)}; using defaults.")
            if write_defaults:
                save_cache_config(path, cfg)
            return cfg
        raise ConfigError(f"{os.path.basename(path)} unreadable: {rr.error}", path=path)
    if not isinstance(rr.data, dict):
        raise ConfigError(f"{os.path.basename(path)} invalid (not an object).", path=path)
    try:
        return CacheConfig.model_validate(rr.data)
    except ValidationError as e:
        # user-friendly error
        raise ConfigError(f"{os.path.basename(path)} invalid: {e}", path=path) from e


def save_cache_config(path: str, cfg: CacheConfig) -> None:
    atomic_write_json(path, cfg.model_dump(), indent=2, sort_keys=True)


def fs_paths_for(cfg: CacheConfig, *, root: Optional[str] = None) -> StateFsPaths:
    return StateFsPaths(
        root=str(root or cfg.storage_root or "."),
        instrument_log_name=cfg.instrument_log_name,
        memento_file=cfg.memento_file,
    )

