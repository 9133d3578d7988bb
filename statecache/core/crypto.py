from __future__ import annotations

import base64
import hashlib
import os
from typing import Any, Dict

from cryptography.hazmat.primitives.ciphers.aead import AESGCM


KEY_BYTES = 32
NONCE_BYTES = 12
SEALED_VERSION = 1


def key_fingerprint(key: bytes) -> str:
    """Short non-secret id for a key; stored beside the ciphertext to detect a swapped key."""
    return hashlib.sha256(b"statecache.key-id:" + key).hexdigest()[:16]


def seal(key: bytes, plaintext: bytes, *, aad: bytes) -> Dict[str, Any]:
    nonce = os.urandom(NONCE_BYTES)
    sealed = AESGCM(key).encrypt(nonce, plaintext, aad)
    return {
        "v": SEALED_VERSION,
        "alg": "AES-256-GCM",
        "nonce": base64.b64encode(nonce).decode("ascii"),
        "data": base64.b64encode(sealed).decode("ascii"),
    }


def unseal(key: bytes, envelope: Dict[str, Any], *, aad: bytes) -> bytes:
    # raises cryptography's InvalidTag when the key, aad or ciphertext is wrong
    if envelope.get("v") != SEALED_VERSION:
        raise ValueError(f"Unsupported sealed envelope version: {envelope.get('v')!r}")
    nonce = base64.b64decode(str(envelope["nonce"]))
    data = base64.b64decode(str(envelope["data"]))
    return AESGCM(key).decrypt(nonce, data, aad)
