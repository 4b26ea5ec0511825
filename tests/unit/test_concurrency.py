#!/usr/bin/env python3
"""
Multi-process tests: concurrent writers never leave a torn file
"""

import json
import multiprocessing
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from cache.cache import CacheStore
from cache.file_ops import operate_file_atomically
from cache.kv_store import KeyValueStore

WRITERS = 6
ROUNDS = 20

ctx = multiprocessing.get_context("fork")


def payload(writer_id: int) -> str:
    # Large enough that an unlocked write would be split across syscalls
    return json.dumps({"writer": writer_id, "blob": str(writer_id) * 200_000})


def _write_many(path: str, writer_id: int) -> None:
    content = payload(writer_id)
    for _ in range(ROUNDS):
        operate_file_atomically(path, "w", lambda fh: fh.write(content))


def _produce_many(cache_dir: str, writer_id: int) -> None:
    def producer(params):
        return {"writer": writer_id, "blob": str(writer_id) * 100_000}

    for _ in range(ROUNDS):
        store = CacheStore(cache_dir, producer, exp_time=3600)
        # Force the miss path every round so every process keeps writing
        store._read = lambda key, params: None
        store.get_data({"url": "https://shared"})


def _set_many(path: str, writer_id: int) -> None:
    with KeyValueStore(path, exp_time=3600) as kv:
        for i in range(ROUNDS):
            kv.set(f"w{writer_id}-{i}", writer_id)


def run_all(target, *args):
    procs = [ctx.Process(target=target, args=(*args, i)) for i in range(WRITERS)]
    for p in procs:
        p.start()
    return procs


def join_all(procs):
    for p in procs:
        p.join(timeout=60)
        assert p.exitcode == 0


class TestConcurrentWriters:

    def test_file_always_equals_one_writer_output(self, tmp_path):
        path = str(tmp_path / "shared.txt")
        expected = {payload(i) for i in range(WRITERS)}
        operate_file_atomically(path, "w", lambda fh: fh.write(payload(0)))

        procs = run_all(_write_many, path)
        seen = []
        while any(p.is_alive() for p in procs):
            seen.append(operate_file_atomically(path, "r", lambda fh: fh.read()))
        join_all(procs)
        seen.append(operate_file_atomically(path, "r", lambda fh: fh.read()))

        assert all(content in expected for content in seen)

    def test_cache_entry_parseable_after_racing_misses(self, tmp_path):
        cache_dir = str(tmp_path / "cache")
        join_all(run_all(_produce_many, cache_dir))

        entries = list(Path(cache_dir).iterdir())
        assert len(entries) == 1
        entry = json.loads(entries[0].read_text(encoding="utf-8"))
        writer = entry["data"]["writer"]
        assert entry["params"] == {"url": "https://shared"}
        assert entry["data"]["blob"] == str(writer) * 100_000

    def test_kv_store_file_stays_parseable(self, tmp_path):
        # Writes within one mtime tick can hide each other's keys, so only
        # the integrity of the file is checked here.
        path = str(tmp_path / "kv.json")
        join_all(run_all(_set_many, path))

        on_disk = json.loads(Path(path).read_text(encoding="utf-8"))
        assert on_disk
        for key, entry in on_disk.items():
            writer = int(key[1:].split("-")[0])
            assert json.loads(entry["value"]) == writer
