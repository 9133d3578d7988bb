from __future__ import annotations

import pytest

from statecache.core.config.models import CacheConfig
from statecache.core.config.paths import StateFsPaths
from statecache.core.state.proxy import StateProxy
from tests.helpers.fakes import ManualTimerFactory, MemoryKeyValueStore, MemorySecretStore, RecordingTelemetry


@pytest.fixture
def fs_paths(tmp_path):
    return StateFsPaths(root=str(tmp_path))


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def secret_store():
    return MemorySecretStore()


@pytest.fixture
def timers():
    return ManualTimerFactory()


@pytest.fixture
def telemetry():
    return RecordingTelemetry()


@pytest.fixture
def make_proxy(tmp_path, fs_paths, kv, secret_store, timers, telemetry):
    """
    Builds an initialized StateProxy over in-memory host stores and manual timers.
    Pass initialize=False to get an uninitialized one.
    """

    def _make(*, initialize: bool = True, **overrides):
        kwargs = dict(
            kv=kv,
            secrets=secret_store,
            cfg=CacheConfig(storage_root=str(tmp_path)),
            paths=fs_paths,
            telemetry=telemetry,
            timer_factory=timers,
        )
        kwargs.update(overrides)
        proxy = StateProxy(**kwargs)
        if initialize:
            proxy.initialize()
        return proxy

    return _make


@pytest.fixture
def proxy(make_proxy):
    return make_proxy()
