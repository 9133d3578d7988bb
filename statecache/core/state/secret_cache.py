from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

from statecache.core.errors import NotInitializedError
from statecache.core.state.backing import SecretStore
from statecache.core.state.keys import DEFAULT_KEYS, KeyRegistry


class SecretCache:
    """
    Write-through mirror of the host secret store. No debouncing: secrets are small.
    """

    def __init__(self, *, store: SecretStore, keys: KeyRegistry = DEFAULT_KEYS, io_workers: int = 8, logger=None):
        self.store = store
        self.keys = keys
        self.io_workers = max(1, int(io_workers))
        self.logger = logger or logging.getLogger("statecache")
        self._cache: Dict[str, Optional[str]] = {}
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        self._cache = {}
        self._load_all("loading")
        self._initialized = True

    def refresh(self) -> None:
        self._require_initialized()
        self._load_all("refreshing")

    def get(self, key: str) -> Optional[str]:
        self._require_initialized()
        self._require_secret(key)
        return self._cache.get(key)

    def set(self, key: str, value: Optional[str]) -> bool:
        """
        Update the cache and the store. Unlike plain state, a failed secret write
        restores the previous cached value, so the cache never claims a secret
        the store does not hold.
        """
        self._require_initialized()
        self._require_secret(key)
        if value is not None and not isinstance(value, str):
            raise TypeError(f"Secret {key!r} must be a string or None.")
        prev = self._cache.get(key)
        self._cache[key] = value
        try:
            if value is None:
                self.store.delete(key)
            else:
                self.store.set(key, value)
            return True
        except Exception as e:  # noqa: BLE001
            self._cache[key] = prev
            self.logger.error(f"Failed to store secret {key}: {type(e).__name__}")
            return False

    def snapshot(self) -> Dict[str, Optional[str]]:
        self._require_initialized()
        return {k: self._cache.get(k) for k in self.keys.secret_keys}

    def clear(self) -> None:
        self._cache = {}

    def purge_tasks(self) -> List[Tuple[str, Any]]:
        return [(f"secret:{key}", lambda k=key: self.store.delete(k)) for key in self.keys.secret_keys]

    # ---- internals ----
    def _load_all(self, verb: str) -> None:
        keys = list(self.keys.secret_keys)
        if not keys:
            return
        with ThreadPoolExecutor(max_workers=min(self.io_workers, len(keys)), thread_name_prefix="statecache-secrets") as ex:
            futures = {key: ex.submit(self.store.get, key) for key in keys}
        for key, fut in futures.items():
            try:
                self._cache[key] = fut.result()
            except Exception as e:  # noqa: BLE001
                # keep whatever was cached before
                self.logger.error(f"Error {verb} secret {key}: {e}")

    def _require_secret(self, key: str) -> None:
        if not self.keys.is_secret(key):
            raise KeyError(f"{key!r} is not a secret key.")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError("Secret cache used before initialize().")
