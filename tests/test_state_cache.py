from __future__ import annotations

import json
import os

import pytest

from statecache.core.errors import NotInitializedError


def _instrument_lines(proxy):
    path = proxy.paths.instrument_log
    if not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def test_set_then_get_returns_value_for_every_namespace(proxy):
    proxy.set("mode", "architect")
    proxy.set("task_history", [{"id": "t1", "ts": 1.0}])
    proxy.set("prompt_history", ["hello"])
    proxy.set("api_key", "sk-123")
    assert proxy.get("mode") == "architect"
    assert proxy.get("task_history") == [{"id": "t1", "ts": 1.0}]
    assert proxy.get("prompt_history") == ["hello"]
    assert proxy.get("api_key") == "sk-123"


def test_get_falls_back_to_default(proxy):
    assert proxy.get("language") is None
    assert proxy.get("language", "en") == "en"


def test_small_key_writes_through_to_backing_store(proxy, kv):
    proxy.set("language", "fr")
    assert kv.data["language"] == "fr"
    proxy.set("language", None)
    assert "language" not in kv.data
    assert proxy.get("language", "en") == "en"


def test_large_key_is_not_written_to_backing_store(proxy, kv, timers):
    proxy.set("task_history", [{"id": "t1", "ts": 1.0}])
    assert "task_history" not in kv.data
    assert not proxy.state.records.exists("task_history")
    timers.fire_all()
    assert proxy.state.records.exists("task_history")
    assert "task_history" not in kv.data


def test_initialize_prefers_disk_record_for_large_keys(make_proxy, kv, fs_paths):
    kv.data["task_history"] = [{"id": "stale", "ts": 0.0}]
    kv.data["mode"] = "code"
    os.makedirs(fs_paths.state_dir, exist_ok=True)
    with open(fs_paths.record("task_history"), "w", encoding="utf-8") as f:
        json.dump([{"id": "fresh", "ts": 2.0}], f)
    proxy = make_proxy()
    assert proxy.get("task_history") == [{"id": "fresh", "ts": 2.0}]
    assert proxy.get("mode") == "code"
    assert ("get", "task_history") not in kv.calls


def test_initialize_falls_back_to_backing_store_when_record_corrupt(make_proxy, kv, fs_paths):
    kv.data["task_history"] = [{"id": "legacy", "ts": 0.0}]
    os.makedirs(fs_paths.state_dir, exist_ok=True)
    with open(fs_paths.record("task_history"), "w", encoding="utf-8") as f:
        f.write("[{not json")
    proxy = make_proxy()
    assert proxy.get("task_history") == [{"id": "legacy", "ts": 0.0}]


def test_initialize_survives_individual_read_failures(make_proxy, kv):
    kv.data.update({"mode": "code", "language": "de"})
    kv.fail_keys.add("mode")
    proxy = make_proxy()
    assert proxy.is_initialized
    assert proxy.get("mode") is None
    assert proxy.get("language") == "de"


def test_use_before_initialize_is_fatal(make_proxy):
    proxy = make_proxy(initialize=False)
    with pytest.raises(NotInitializedError):
        proxy.get("mode")
    with pytest.raises(NotInitializedError):
        proxy.set("mode", "code")
    with pytest.raises(NotInitializedError):
        proxy.get_secret("api_key")


def test_create_returns_initialized_proxy(tmp_path, kv, secret_store, timers):
    from statecache.core.config.models import CacheConfig
    from statecache.core.state.proxy import StateProxy

    p = StateProxy.create(kv=kv, secrets=secret_store, cfg=CacheConfig(storage_root=str(tmp_path)), timer_factory=timers)
    assert p.is_initialized
    assert p.get("mode", "code") == "code"


def test_pass_through_reads_live_from_backing_store(proxy, kv):
    proxy.set("prompt_history", ["a"])
    kv.data["prompt_history"] = ["a", "b"]
    assert proxy.get("prompt_history") == ["a", "b"]
    kv.data.pop("prompt_history")
    assert proxy.get("prompt_history", []) == []


def test_failed_write_keeps_cached_value(proxy, kv):
    kv.fail_ops.add("set")
    assert proxy.set("language", "it") is False
    assert proxy.get("language") == "it"


def test_unknown_keys_need_set_raw(proxy, kv):
    with pytest.raises(KeyError):
        proxy.set("not_a_registered_key", 1)
    assert proxy.set_raw("not_a_registered_key", 1) is True
    assert proxy.get("not_a_registered_key") == 1
    assert kv.data["not_a_registered_key"] == 1


def test_raw_keys_are_served_from_memory_only(make_proxy, kv):
    kv.data["onboarding_seen"] = True
    proxy = make_proxy()
    assert proxy.get("onboarding_seen", "default") == "default"
    proxy.set_raw("onboarding_seen", False)
    assert proxy.get("onboarding_seen") is False


def test_secret_keys_rejected_by_state_cache(proxy):
    with pytest.raises(KeyError):
        proxy.state.set("api_key", "x")


def test_every_write_is_instrumented(proxy, timers):
    proxy.set("mode", "code")
    proxy.set("prompt_history", ["x"])
    proxy.set("task_history", [{"id": "t1", "ts": 1.0}])
    proxy.set_raw("flag", True)
    timers.fire_all()
    paths = [r["write_path"] for r in _instrument_lines(proxy)]
    assert paths == ["set.memento", "set.passthrough", "set.scheduled", "set_raw.memento", "debounce.flush"]
    first = _instrument_lines(proxy)[0]
    assert first["key"] == "mode"
    assert first["approx_size_bytes"] == len('"code"')
    assert set(first) == {"ts", "key", "approx_size_bytes", "write_path"}


def test_secret_writes_are_not_instrumented(proxy):
    proxy.set("api_key", "sk-should-not-appear")
    assert _instrument_lines(proxy) == []


def test_instrument_failure_is_swallowed(proxy):
    # a directory where the log file should be makes every append fail
    os.makedirs(proxy.paths.instrument_log, exist_ok=True)
    assert proxy.set("mode", "code") is True
    assert proxy.get("mode") == "code"


def test_instrument_log_can_be_disabled(make_proxy, tmp_path):
    from statecache.core.config.models import CacheConfig

    proxy = make_proxy(cfg=CacheConfig(storage_root=str(tmp_path), instrument_log_enabled=False))
    proxy.set("mode", "code")
    assert not os.path.exists(proxy.paths.instrument_log)


def test_get_values_contains_state_and_secrets(proxy):
    proxy.set("mode", "ask")
    proxy.set("api_key", "sk-1")
    values = proxy.get_values()
    assert values["mode"] == "ask"
    assert values["api_key"] == "sk-1"
    assert "prompt_history" not in values


def test_instrument_size_counts_utf8_bytes(proxy):
    proxy.set("language", "日本")
    (line,) = _instrument_lines(proxy)
    assert line["approx_size_bytes"] == len('"日本"'.encode("utf-8")) == 8
