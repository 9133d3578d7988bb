from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Mapping, Optional, Union

from pydantic import BaseModel

from statecache.core.config.manager import fs_paths_for
from statecache.core.config.models import CacheConfig
from statecache.core.config.paths import StateFsPaths
from statecache.core.state.backing import KeyValueStore, SecretStore, ValidationTelemetry
from statecache.core.state.cache import StateCache
from statecache.core.state.instrument import InstrumentLog
from statecache.core.state.keys import DEFAULT_KEYS, KeyRegistry
from statecache.core.state.models import GlobalSettings, ProviderSettings
from statecache.core.state.secret_cache import SecretCache
from statecache.core.state.views import GLOBAL_SETTINGS_VIEW, PROVIDER_SETTINGS_VIEW, SettingsViews


class StateProxy:
    """
    The one object callers talk to: typed get/set over state and secrets,
    settings views, import/export and reset.

    Built and owned by the application's composition root and handed to
    consumers by reference. There is no module-level instance.
    """

    def __init__(
        self,
        *,
        kv: KeyValueStore,
        secrets: SecretStore,
        cfg: Optional[CacheConfig] = None,
        paths: Optional[StateFsPaths] = None,
        keys: KeyRegistry = DEFAULT_KEYS,
        telemetry: Optional[ValidationTelemetry] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
        logger=None,
    ):
        self.cfg = cfg or CacheConfig()
        self.paths = paths or fs_paths_for(self.cfg)
        self.keys = keys
        self.logger = logger or logging.getLogger("statecache")
        self.instrument = InstrumentLog(self.paths.instrument_log, enabled=bool(self.cfg.instrument_log_enabled))
        self.state = StateCache(
            kv=kv,
            paths=self.paths,
            keys=keys,
            write_delay_seconds=self.cfg.write_delay_seconds,
            record_indent=self.cfg.record_indent,
            instrument=self.instrument,
            timer_factory=timer_factory,
            logger=self.logger,
        )
        self.secrets = SecretCache(store=secrets, keys=keys, io_workers=self.cfg.io_workers, logger=self.logger)
        self.views = SettingsViews(self, telemetry=telemetry, logger=self.logger)
        self._reset_lock = threading.Lock()

    @classmethod
    def create(cls, **kwargs: Any) -> "StateProxy":
        proxy = cls(**kwargs)
        proxy.initialize()
        return proxy

    # ---- lifecycle ----
    @property
    def is_initialized(self) -> bool:
        return self.state.is_initialized and self.secrets.is_initialized

    def initialize(self) -> None:
        self.state.initialize()
        self.secrets.initialize()

    def flush(self) -> None:
        flushed = self.state.flush()
        if flushed:
            self.logger.info(f"Flushed pending state writes: {flushed}")

    def dispose(self) -> None:
        self.state.dispose()

    def reset(self) -> None:
        """
        Wipe memory, backing store, Disk Records and secrets, then hydrate again.
        Debounce timers are cancelled first so no flush can resurrect a deleted record.
        """
        with self._reset_lock:
            dropped = self.state.cancel_pending()
            if dropped:
                self.logger.info(f"Reset dropped pending writes: {dropped}")
            self.state.clear()
            self.secrets.clear()

            tasks = self.state.purge_tasks() + self.secrets.purge_tasks()
            failures = 0
            with ThreadPoolExecutor(max_workers=int(self.cfg.io_workers), thread_name_prefix="statecache-reset") as ex:
                futures = {ex.submit(fn): label for label, fn in tasks}
                for fut in as_completed(futures):
                    try:
                        fut.result()
                    except Exception as e:  # noqa: BLE001
                        failures += 1
                        self.logger.warning(f"Reset step {futures[fut]} failed: {e}")
            if failures:
                self.logger.warning(f"Reset completed with {failures} failed steps")

            self.initialize()

    # ---- state / secrets ----
    def get(self, key: str, default: Any = None) -> Any:
        if self.keys.is_secret(key):
            value = self.secrets.get(key)
            return default if value is None else value
        return self.state.get(key, default)

    def set(self, key: str, value: Any) -> bool:
        if self.keys.is_secret(key):
            return self.secrets.set(key, value)
        return self.state.set(key, value)

    def set_raw(self, key: str, value: Any) -> bool:
        return self.state.set_raw(key, value)

    def get_secret(self, key: str) -> Optional[str]:
        return self.secrets.get(key)

    def set_secret(self, key: str, value: Optional[str]) -> bool:
        return self.secrets.set(key, value)

    def refresh_secrets(self) -> None:
        self.secrets.refresh()

    def get_value(self, key: str) -> Any:
        return self.get(key)

    def set_value(self, key: str, value: Any) -> bool:
        return self.set(key, value)

    def get_values(self) -> Dict[str, Any]:
        values = {key: self.state.get(key) for key in self.keys.global_state_keys}
        values.update(self.secrets.snapshot())
        return values

    def set_values(self, values: Mapping[str, Any]) -> bool:
        ok = True
        for key, value in values.items():
            ok = self.set(key, value) and ok
        return ok

    # ---- settings views ----
    def get_global_settings_view(self) -> GlobalSettings:
        return self.views.project(GLOBAL_SETTINGS_VIEW)  # type: ignore[return-value]

    def get_provider_settings_view(self) -> ProviderSettings:
        return self.views.project(PROVIDER_SETTINGS_VIEW)  # type: ignore[return-value]

    def set_provider_settings(self, values: Union[ProviderSettings, Mapping[str, Any], BaseModel]) -> None:
        self.views.set_provider_settings(values)

    def export_global_settings(self) -> Optional[Dict[str, Any]]:
        return self.views.export()

    def import_global_settings(self, values: Mapping[str, Any]) -> bool:
        return self.views.import_settings(values)
