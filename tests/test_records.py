from __future__ import annotations

import json
import os

import pytest

from statecache.core.state.records import ABSENT, DiskRecordStore


def _tmp_leftovers(state_dir):
    return [f for f in os.listdir(state_dir) if f.endswith(".tmp")]


def test_write_then_read_round_trip(fs_paths):
    store = DiskRecordStore(fs_paths)
    assert store.write_record("task_history", [{"id": "a"}]) is True
    assert store.read_record("task_history") == [{"id": "a"}]
    assert _tmp_leftovers(fs_paths.state_dir) == []


def test_json_null_is_not_absent(fs_paths):
    store = DiskRecordStore(fs_paths)
    store.write_record("k", None)
    assert store.read_record("k") is None


def test_crash_before_rename_keeps_previous_record(fs_paths, monkeypatch):
    store = DiskRecordStore(fs_paths)
    store.write_record("task_history", ["old"])

    def crash(src, dst):
        raise OSError("killed before rename")

    monkeypatch.setattr(os, "replace", crash)
    assert store.write_record("task_history", ["new"] * 1000) is False
    monkeypatch.undo()

    with open(fs_paths.record("task_history"), "r", encoding="utf-8") as f:
        assert json.load(f) == ["old"]
    assert _tmp_leftovers(fs_paths.state_dir) == []


def test_crash_before_first_rename_leaves_no_record(fs_paths, monkeypatch):
    store = DiskRecordStore(fs_paths)
    def crash(src, dst):
        raise OSError("killed")

    monkeypatch.setattr(os, "replace", crash)
    store.write_record("task_history", ["new"])
    monkeypatch.undo()
    assert store.read_record("task_history") is ABSENT
    assert not os.path.exists(fs_paths.record("task_history"))


def test_unserializable_value_never_touches_disk(fs_paths):
    store = DiskRecordStore(fs_paths)
    store.write_record("k", ["ok"])
    assert store.write_record("k", {"bad": object()}) is False
    assert store.read_record("k") == ["ok"]


def test_corrupt_or_missing_record_reads_absent(fs_paths):
    store = DiskRecordStore(fs_paths)
    assert store.read_record("task_history") is ABSENT
    os.makedirs(fs_paths.state_dir, exist_ok=True)
    with open(fs_paths.record("task_history"), "w", encoding="utf-8") as f:
        f.write('{"truncated": [1, 2')
    assert store.read_record("task_history") is ABSENT


def test_delete_missing_record_is_not_an_error(fs_paths):
    store = DiskRecordStore(fs_paths)
    assert store.delete_record("task_history") is False
    store.write_record("task_history", [])
    assert store.delete_record("task_history") is True
    assert not store.exists("task_history")


@pytest.mark.parametrize("key", ["../escape", "a/b", "..", ""])
def test_key_must_be_a_plain_file_name(fs_paths, key):
    store = DiskRecordStore(fs_paths)
    with pytest.raises(ValueError):
        store.record_path(key)
