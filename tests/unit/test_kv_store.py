#!/usr/bin/env python3
"""
Unit tests for the Key-Value Store
"""

import json
import os
import sys
import time
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from cache.errors import DirectoryCreateError, ResourceOpenError
from cache.kv_store import KeyValueStore


def bump_mtime(path, seconds=5):
    """Move the file mtime forward so other instances see it as changed."""
    st = os.stat(path)
    os.utime(path, (st.st_atime, st.st_mtime + seconds))


@pytest.fixture
def kv_path(tmp_path):
    return tmp_path / "kv" / "store.json"


@pytest.fixture
def store(kv_path):
    kv = KeyValueStore(str(kv_path), exp_time=60)
    yield kv
    kv.close()


class TestOpen:

    def test_creates_parent_directory_and_file(self, kv_path, store):
        assert kv_path.parent.is_dir()
        assert kv_path.exists()

    def test_does_not_truncate_existing_file(self, kv_path):
        kv_path.parent.mkdir(parents=True)
        payload = {"k": {"value": '"v"', "exp_time": time.time() + 60}}
        kv_path.write_text(json.dumps(payload), encoding="utf-8")

        with KeyValueStore(str(kv_path), exp_time=60) as kv:
            assert kv.get("k") == "v"

        assert json.loads(kv_path.read_text(encoding="utf-8")) == payload

    def test_directory_create_failure_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")

        with pytest.raises(DirectoryCreateError):
            KeyValueStore(str(blocker / "sub" / "store.json"))

    def test_open_failure_raises(self, tmp_path):
        # A directory cannot be opened as the backing file
        target = tmp_path / "is_a_dir"
        target.mkdir()

        with pytest.raises(ResourceOpenError):
            KeyValueStore(str(target))

    def test_close_is_idempotent(self, kv_path):
        kv = KeyValueStore(str(kv_path))
        kv.close()
        kv.close()

    def test_use_after_close_raises(self, kv_path):
        kv = KeyValueStore(str(kv_path))
        kv.close()

        with pytest.raises(ValueError):
            kv.get("k")


class TestGetSet:

    def test_set_then_get(self, store):
        assert store.set("k", "v", ttl=1)
        assert store.get("k") == "v"

    def test_missing_key(self, store):
        assert store.get("nope") is None

    def test_value_expires(self, store, monkeypatch):
        store.set("k", "v", ttl=1)
        assert store.get("k") == "v"

        future = time.time() + 2
        monkeypatch.setattr("time.time", lambda: future)
        assert store.get("k") is None

    def test_default_ttl_from_store(self, store, monkeypatch):
        store.set("k", "v")

        soon = time.time() + 30
        monkeypatch.setattr("time.time", lambda: soon)
        assert store.get("k") == "v"

        later = soon + 60
        monkeypatch.setattr("time.time", lambda: later)
        assert store.get("k") is None

    def test_set_refreshes_expiry(self, store, monkeypatch):
        store.set("k", "v1", ttl=1)
        store.set("k", "v2", ttl=100)

        future = time.time() + 10
        monkeypatch.setattr("time.time", lambda: future)
        assert store.get("k") == "v2"

    def test_structured_values(self, store):
        value = {"title": "日本語", "tags": ["a", "b"], "n": 3, "ok": True}
        store.set("page", value)

        assert store.get("page") == value

    def test_unserializable_value_rejected(self, store):
        with pytest.raises(TypeError):
            store.set("k", object())

    def test_file_format(self, store, kv_path, monkeypatch):
        monkeypatch.setattr("time.time", lambda: 1000.0)
        store.set("k", {"a": 1}, ttl=10)

        on_disk = json.loads(kv_path.read_text(encoding="utf-8"))
        assert on_disk["k"]["exp_time"] == 1010.0
        assert json.loads(on_disk["k"]["value"]) == {"a": 1}

    def test_expired_entries_stay_until_rewritten(self, store, kv_path, monkeypatch):
        store.set("old", "x", ttl=1)
        future = time.time() + 5
        monkeypatch.setattr("time.time", lambda: future)

        assert store.get("old") is None
        assert "old" in json.loads(kv_path.read_text(encoding="utf-8"))

    def test_rewrite_truncates_previous_content(self, store, kv_path):
        store.set("long", "x" * 500)
        # Replace the long value with a short one; no trailing bytes may remain
        store.set("long", "y")

        on_disk = json.loads(kv_path.read_text(encoding="utf-8"))
        assert json.loads(on_disk["long"]["value"]) == "y"


class TestSharing:
    """Two instances on one file stand in for two processes."""

    def test_second_instance_sees_existing_data(self, kv_path, store):
        store.set("k", "v")

        with KeyValueStore(str(kv_path), exp_time=60) as other:
            assert other.get("k") == "v"

    def test_reload_when_file_changes(self, kv_path, store):
        with KeyValueStore(str(kv_path), exp_time=60) as other:
            assert other.get("k") is None

            store.set("k", "v")
            bump_mtime(kv_path)

            assert other.get("k") == "v"

    def test_writes_from_both_instances_are_kept(self, kv_path, store):
        with KeyValueStore(str(kv_path), exp_time=60) as other:
            store.set("a", 1)
            bump_mtime(kv_path)
            other.set("b", 2)
            bump_mtime(kv_path, seconds=10)

            assert store.get("a") == 1
            assert store.get("b") == 2

    def test_deleted_file_is_recreated(self, kv_path, store):
        store.set("k", "v")
        os.unlink(kv_path)

        assert store.get("k") is None
        assert store.set("k2", "v2")
        assert kv_path.exists()
        assert json.loads(kv_path.read_text(encoding="utf-8")).keys() == {"k2"}


class TestDegradation:

    def test_malformed_file_loads_empty(self, kv_path):
        kv_path.parent.mkdir(parents=True)
        kv_path.write_text("{broken", encoding="utf-8")

        with KeyValueStore(str(kv_path)) as kv:
            assert kv.get("k") is None
            assert kv.set("k", "v")
            assert kv.get("k") == "v"

    def test_non_object_file_loads_empty(self, kv_path):
        kv_path.parent.mkdir(parents=True)
        kv_path.write_text("[1, 2, 3]", encoding="utf-8")

        with KeyValueStore(str(kv_path)) as kv:
            assert kv.get("k") is None

    def test_malformed_entry_ignored(self, kv_path):
        kv_path.parent.mkdir(parents=True)
        kv_path.write_text(json.dumps({"k": "not an entry"}), encoding="utf-8")

        with KeyValueStore(str(kv_path)) as kv:
            assert kv.get("k") is None

    def test_failed_reopen_recovers_later(self, kv_path, store, tmp_path):
        store.set("k", "v")

        # Replace the file with a link that cannot be opened or created
        os.unlink(kv_path)
        os.symlink(tmp_path / "missing" / "store.json", kv_path)
        assert store.get("k") is None
        assert store.set("k", "v2") is False

        os.unlink(kv_path)
        assert store.get("k") is None
        assert store.set("k", "v3")
        assert store.get("k") == "v3"
