from __future__ import annotations

import os
from typing import Optional

from statecache.core.config.manager import fs_paths_for, load_cache_config
from statecache.core.config.models import CacheConfig
from statecache.core.logger import setup_logging
from statecache.core.secure_store import EncryptedSecretStore
from statecache.core.state.backing import JsonFileKeyValueStore
from statecache.core.state.proxy import StateProxy
from statecache.core.telemetry import TelemetryEventWriter


def _under(root: str, path: str) -> str:
    return path if os.path.isabs(path) else os.path.join(root, path)


def build_state_proxy(*, cfg: Optional[CacheConfig] = None, config_path: Optional[str] = None, root: Optional[str] = None, logger=None) -> StateProxy:
    """
    Composition root: wires the file-backed host adapters from config and
    returns an initialized StateProxy.
    """
    if cfg is None:
        cfg = load_cache_config(config_path, logger=logger) if config_path else CacheConfig()
    paths = fs_paths_for(cfg, root=root)
    if logger is None:
        logger = setup_logging(paths.logs_dir)

    secrets = EncryptedSecretStore(
        key_path=_under(paths.root, cfg.secrets.key_path),
        store_path=_under(paths.root, cfg.secrets.store_path),
        max_bytes=int(cfg.secrets.max_bytes),
        max_backups=int(cfg.secrets.backup_keep),
    )
    if secrets.ensure_key():
        logger.info("Created secret store master key.")
    kv = JsonFileKeyValueStore(paths.memento, logger=logger)
    telemetry = TelemetryEventWriter(events_path=paths.validation_events)
    return StateProxy.create(kv=kv, secrets=secrets, cfg=cfg, paths=paths, telemetry=telemetry, logger=logger)
