from __future__ import annotations

import json
import os
import shutil
import threading
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from statecache.core.config.io import atomic_write_json, read_json_file
from statecache.core.crypto import KEY_BYTES, key_fingerprint, seal, unseal
from statecache.core.errors import SecretUnavailable


class SecureStoreMode(str, Enum):
    READY = "READY"
    KEY_MISSING = "KEY_MISSING"
    STORE_MISSING = "STORE_MISSING"
    STORE_CORRUPT = "STORE_CORRUPT"
    KEY_MISMATCH = "KEY_MISMATCH"
    READ_ONLY = "READ_ONLY"


class SecureStoreStatus(BaseModel):
    model_config = ConfigDict(extra="forbid")
    mode: SecureStoreMode
    status: str
    key_id: Optional[str] = None
    store_id: Optional[str] = None
    last_error: Optional[str] = None


class _EncryptedPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")
    store_version: int = Field(default=1, ge=1)
    store_id: str
    key_id: str
    created_at: float
    updated_at: float
    secrets: Dict[str, str] = Field(default_factory=dict)


@dataclass
class EncryptedSecretStore:
    """
    Host secret store: string secrets in one AES-GCM encrypted file.

    Files:
    - <store_path>                      (JSON with nonce+ciphertext)
    - <store_path>.meta.json            (plaintext, non-sensitive: store_id + key_id)
    - <backups_dir>/secrets.<ts>.enc    backups taken before each write
    """

    key_path: str
    store_path: str
    backups_dir: Optional[str] = None
    max_backups: int = 10
    max_bytes: int = 65536
    read_only: bool = False
    aad: bytes = b"statecache.secrets.v1"

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        if self.backups_dir is None:
            self.backups_dir = os.path.join(os.path.dirname(self.store_path) or ".", "backups")

    @property
    def meta_path(self) -> str:
        return self.store_path + ".meta.json"

    # ---------- key file ----------
    def ensure_key(self) -> bool:
        """Create the master key when none exists. Returns True if a key was written."""
        with self._lock:
            if os.path.exists(self.key_path):
                return False
            os.makedirs(os.path.dirname(self.key_path) or ".", exist_ok=True)
            # O_EXCL: never clobber a key another process created meanwhile
            try:
                fd = os.open(self.key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            except FileExistsError:
                return False
            with os.fdopen(fd, "wb") as f:
                f.write(os.urandom(KEY_BYTES))
            return True

    # ---------- public API (SecretStore) ----------
    def status(self) -> SecureStoreStatus:
        with self._lock:
            return self._status_locked()

    def list_keys(self, prefix: Optional[str] = None) -> List[str]:
        with self._lock:
            payload = self._load_payload_locked()
        keys = sorted(payload.secrets.keys())
        if prefix:
            keys = [k for k in keys if k.startswith(prefix)]
        return keys

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            payload = self._load_payload_locked()
        return payload.secrets.get(key)

    def set(self, key: str, value: str) -> None:
        if self.read_only:
            raise SecretUnavailable("Secret store is read-only.", key=key)
        if not isinstance(value, str):
            raise ValueError("Secret values must be strings.")
        if len(value.encode("utf-8")) > int(self.max_bytes):
            raise ValueError("Secret value too large.")
        with self._lock:
            payload = self._load_payload_locked(create_if_missing=True)
            payload.secrets[key] = value
            payload.updated_at = time.time()
            self._write_payload_locked(payload)

    def delete(self, key: str) -> None:
        if self.read_only:
            raise SecretUnavailable("Secret store is read-only.", key=key)
        with self._lock:
            if not os.path.exists(self.store_path):
                return
            payload = self._load_payload_locked()
            if key in payload.secrets:
                del payload.secrets[key]
                payload.updated_at = time.time()
                self._write_payload_locked(payload)

    # ---------- internal ----------
    def _status_locked(self) -> SecureStoreStatus:
        try:
            key = self._read_key_locked()
        except SecretUnavailable as e:
            return SecureStoreStatus(mode=SecureStoreMode.KEY_MISSING, status="Master key not found.", last_error=str(e))
        key_id = key_fingerprint(key)

        if not os.path.exists(self.store_path):
            return SecureStoreStatus(mode=SecureStoreMode.STORE_MISSING, status="Secret store file missing.", key_id=key_id)

        # meta check for quick mismatch detection
        rr = read_json_file(self.meta_path)
        meta = rr.data if rr.ok and isinstance(rr.data, dict) else {}
        if meta.get("key_id") and meta.get("key_id") != key_id:
            return SecureStoreStatus(
                mode=SecureStoreMode.KEY_MISMATCH,
                status="Master key does not match this secret store.",
                key_id=key_id,
                store_id=meta.get("store_id"),
                last_error="key_mismatch",
            )

        try:
            payload = self._decrypt_locked(key)
        except Exception as e:  # noqa: BLE001
            return SecureStoreStatus(mode=SecureStoreMode.STORE_CORRUPT, status="Secret store is corrupt or cannot be decrypted.", key_id=key_id, last_error=str(e))

        mode = SecureStoreMode.READ_ONLY if self.read_only else SecureStoreMode.READY
        return SecureStoreStatus(mode=mode, status="Secret store available.", key_id=key_id, store_id=payload.store_id)

    def _read_key_locked(self) -> bytes:
        try:
            with open(self.key_path, "rb") as f:
                key = f.read()
        except FileNotFoundError as e:
            raise SecretUnavailable("Master key not found.", key_path=self.key_path) from e
        if len(key) != KEY_BYTES:
            raise SecretUnavailable(f"Master key must be {KEY_BYTES} bytes.", key_path=self.key_path)
        return key

    def _decrypt_locked(self, key: bytes) -> _EncryptedPayload:
        with open(self.store_path, "r", encoding="utf-8") as f:
            blob = json.load(f)
        pt = unseal(key, blob, aad=self.aad)
        payload = _EncryptedPayload.model_validate(json.loads(pt.decode("utf-8")))
        # key_id mismatch inside payload means we used wrong key or tampered store.
        if payload.key_id != key_fingerprint(key):
            raise SecretUnavailable("Decrypted payload key_id mismatch.")
        return payload

    def _load_payload_locked(self, *, create_if_missing: bool = False) -> _EncryptedPayload:
        key = self._read_key_locked()
        if not os.path.exists(self.store_path):
            now = time.time()
            payload = _EncryptedPayload(store_id=uuid.uuid4().hex, key_id=key_fingerprint(key), created_at=now, updated_at=now)
            if create_if_missing:
                self._write_payload_locked(payload, key_override=key)
            return payload
        try:
            return self._decrypt_locked(key)
        except SecretUnavailable:
            raise
        except Exception as e:  # noqa: BLE001
            raise SecretUnavailable(f"Secret store unreadable: {e}") from e

    def _write_payload_locked(self, payload: _EncryptedPayload, *, key_override: Optional[bytes] = None) -> None:
        key = key_override or self._read_key_locked()
        pt = json.dumps(payload.model_dump(), ensure_ascii=False, sort_keys=True).encode("utf-8")
        if len(pt) > int(self.max_bytes):
            raise ValueError("Secret store payload too large.")
        self._backup_before_write()
        blob = seal(key, pt, aad=self.aad)
        atomic_write_json(self.store_path, blob, indent=2, sort_keys=True)
        _restrict(self.store_path)
        meta = {"store_version": payload.store_version, "store_id": payload.store_id, "key_id": payload.key_id, "updated_at": payload.updated_at}
        atomic_write_json(self.meta_path, meta, indent=2, sort_keys=True)

    def _backup_before_write(self) -> None:
        if not os.path.exists(self.store_path):
            return
        backups_dir = str(self.backups_dir)
        os.makedirs(backups_dir, exist_ok=True)
        ts = time.strftime("%Y%m%d_%H%M%S", time.gmtime())
        dst = os.path.join(backups_dir, f"secrets.{ts}.{uuid.uuid4().hex[:6]}.enc")
        shutil.copy2(self.store_path, dst)
        self._enforce_backup_retention()

    def _enforce_backup_retention(self) -> None:
        backups_dir = str(self.backups_dir)
        try:
            items = [os.path.join(backups_dir, f) for f in os.listdir(backups_dir) if f.startswith("secrets.") and f.endswith(".enc")]
            items.sort(key=lambda p: os.path.getmtime(p), reverse=True)
            for p in items[int(self.max_backups) :]:
                try:
                    os.remove(p)
                except OSError:
                    pass
        except OSError:
            pass


def _restrict(path: str) -> None:
    if os.name == "nt":
        return
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass
