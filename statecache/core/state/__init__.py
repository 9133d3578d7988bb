"""
State persistence cache.

In-memory authority for configuration/session state in front of a host
key/value store, a host secret store and per-key Disk Records under
<storage-root>/state/.
"""

from statecache.core.state.keys import DEFAULT_KEYS, KeyRegistry
from statecache.core.state.proxy import StateProxy

__all__ = ["DEFAULT_KEYS", "KeyRegistry", "StateProxy"]
