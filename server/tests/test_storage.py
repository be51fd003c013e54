"""Tests for the storage adapters."""

from __future__ import annotations

import json

import pytest

from nearhelp.core.errors import StorageFailure
from nearhelp.core.models import Coordinate, LocationHistoryRecord
from nearhelp.storage.file_storage import FileDocumentStore, FileLocationHistory
from nearhelp.storage.memory_storage import MemoryDocumentStore


async def test_find_returns_copies_in_insertion_order():
    store = MemoryDocumentStore()
    for key in ("b", "a", "c"):
        await store.save("things", key, {"key": key, "n": 1})

    docs = await store.find("things")
    assert [d["key"] for d in docs] == ["b", "a", "c"]

    docs[0]["n"] = 99
    assert (await store.find_one("things", "b"))["n"] == 1


async def test_find_with_predicate_and_missing_collection():
    store = MemoryDocumentStore()
    await store.save("things", "a", {"n": 1})
    await store.save("things", "b", {"n": 2})

    assert await store.find("things", lambda d: d["n"] > 1) == [{"n": 2}]
    assert await store.find("nothing") == []
    assert await store.find_one("nothing", "x") is None


async def test_transaction_reads_own_writes_and_commits():
    store = MemoryDocumentStore()

    async def fn(tx):
        assert await tx.get("things", "a") is None
        tx.set("things", "a", {"n": 1})
        return (await tx.get("things", "a"))["n"]

    assert await store.run_atomic(fn) == 1
    assert await store.find_one("things", "a") == {"n": 1}


async def test_transaction_abort_discards_writes():
    store = MemoryDocumentStore()

    async def fn(tx):
        tx.set("things", "a", {"n": 1})
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await store.run_atomic(fn)
    assert await store.find_one("things", "a") is None


async def test_file_store_survives_restart(tmp_path):
    store = FileDocumentStore(tmp_path / "docs")
    await store.save("users", "u1", {"user_id": "u1"})

    async def fn(tx):
        tx.set("users", "u2", {"user_id": "u2"})

    await store.run_atomic(fn)

    reopened = FileDocumentStore(tmp_path / "docs")
    assert [d["user_id"] for d in await reopened.find("users")] == ["u1", "u2"]
    assert json.loads((tmp_path / "docs" / "users.json").read_text())["u1"] == {"user_id": "u1"}


async def test_file_store_write_failure_leaves_memory_untouched(tmp_path):
    store = FileDocumentStore(tmp_path / "docs")
    await store.save("users", "u1", {"v": 1})
    # A directory where the temp file should go makes the write fail.
    (tmp_path / "docs" / "users.json.tmp").mkdir()

    with pytest.raises(StorageFailure):
        await store.save("users", "u1", {"v": 2})
    assert await store.find_one("users", "u1") == {"v": 1}


def test_file_store_rejects_corrupt_collection(tmp_path):
    (tmp_path / "alerts.json").write_text("{not json")
    with pytest.raises(StorageFailure):
        FileDocumentStore(tmp_path)


async def test_location_history_partitions_by_hour(tmp_path):
    history = FileLocationHistory(tmp_path)
    # 2024-03-05T14:30:00Z
    ts = 1709649000000
    await history.append(LocationHistoryRecord("u1", Coordinate(1.5, 2.5), 7.0, ts))
    await history.append(LocationHistoryRecord("u2", Coordinate(3.0, 4.0), 0.0, ts))

    path = tmp_path / "2024" / "03" / "05" / "14" / "locations.jsonl"
    lines = [json.loads(line) for line in path.read_text().splitlines()]
    assert [entry["user_id"] for entry in lines] == ["u1", "u2"]
    assert lines[0]["lat"] == 1.5
    assert lines[0]["accuracy"] == 7.0
