from __future__ import annotations

import json
import os

import pytest

from statecache.core.config.manager import load_cache_config
from statecache.core.config.models import CacheConfig
from statecache.core.errors import ConfigError


class DummyLogger:
    def info(self, *_a, **_k): ...
    def warning(self, *_a, **_k): ...
    def error(self, *_a, **_k): ...


def test_missing_config_writes_defaults(tmp_path):
    path = str(tmp_path / "cache.json")
    cfg = load_cache_config(path, logger=DummyLogger())
    assert cfg.write_delay_ms == 5000
    assert cfg.instrument_log_name == "frag-instrument.log"
    with open(path, "r", encoding="utf-8") as f:
        assert json.load(f)["write_delay_ms"] == 5000


def test_invalid_config_raises(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text(json.dumps({"write_delay_ms": -1}), encoding="utf-8")
    with pytest.raises(ConfigError):
        load_cache_config(str(path))
    path.write_text(json.dumps({"unknown_field": 1}), encoding="utf-8")
    with pytest.raises(ConfigError):
        load_cache_config(str(path))
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_cache_config(str(path))


def test_config_delay_reaches_debouncer(make_proxy, tmp_path, timers):
    proxy = make_proxy(cfg=CacheConfig(storage_root=str(tmp_path), write_delay_ms=1500))
    proxy.set("task_history", [])
    assert timers.timers[-1].interval == 1.5


def test_bootstrap_persists_across_restarts(tmp_path):
    from statecache.core.bootstrap import build_state_proxy

    cfg = CacheConfig(storage_root=str(tmp_path), write_delay_ms=60_000)
    p1 = build_state_proxy(cfg=cfg, logger=DummyLogger())
    p1.set("mode", "architect")
    p1.set("api_key", "sk-abc")
    p1.set("task_history", [{"id": "t1", "ts": 1.0}])
    p1.dispose()

    assert os.path.exists(os.path.join(str(tmp_path), "state", "task_history.json"))
    assert os.path.exists(os.path.join(str(tmp_path), "secure", "master.key"))
    with open(os.path.join(str(tmp_path), "secure", "secrets.enc"), "r", encoding="utf-8") as f:
        assert "sk-abc" not in f.read()

    p2 = build_state_proxy(cfg=cfg, logger=DummyLogger())
    assert p2.get("mode") == "architect"
    assert p2.get_secret("api_key") == "sk-abc"
    assert p2.get("task_history") == [{"id": "t1", "ts": 1.0}]
    p2.reset()
    assert p2.get("mode") is None
    assert p2.get_secret("api_key") is None
    p2.dispose()


def test_bootstrap_records_validation_telemetry(tmp_path):
    from statecache.core.bootstrap import build_state_proxy

    p = build_state_proxy(cfg=CacheConfig(storage_root=str(tmp_path)), logger=DummyLogger())
    p.set("telemetry_setting", "sometimes")
    assert p.export_global_settings() is None
    events_path = os.path.join(str(tmp_path), "logs", "telemetry", "validation_events.jsonl")
    with open(events_path, "r", encoding="utf-8") as f:
        ev = json.loads(f.readline())
    assert ev["schema_name"] == "GlobalSettings"
    assert ev["issues"][0]["loc"] == ["telemetry_setting"]
    p.dispose()
