"""Unit tests for session stores and in-memory session maps."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from team_workflow_orchestrator.state.sessions import SessionMap
from team_workflow_orchestrator.state.store import (
    InMemorySessionStore,
    JsonFileSessionStore,
    SessionRecord,
)


@pytest.mark.asyncio
async def test_in_memory_store_create_update_get() -> None:
    store = InMemorySessionStore()
    await store.create(SessionRecord(session_id="s1", input={"content": "hi"}))

    updated = await store.update("s1", {"status": "completed", "progress": 100})

    assert updated.status == "completed"
    fetched = await store.get_by_id("s1")
    assert fetched.progress == 100
    assert fetched.updated_at >= fetched.created_at
    assert await store.get_by_id("missing") is None


@pytest.mark.asyncio
async def test_in_memory_store_rejects_duplicates_and_unknown_updates() -> None:
    store = InMemorySessionStore()
    await store.create(SessionRecord(session_id="s1"))

    with pytest.raises(ValueError):
        await store.create(SessionRecord(session_id="s1"))
    with pytest.raises(KeyError):
        await store.update("nope", {"status": "failed"})


@pytest.mark.asyncio
async def test_in_memory_store_returns_copies() -> None:
    store = InMemorySessionStore()
    await store.create(SessionRecord(session_id="s1", metadata={"a": 1}))

    fetched = await store.get_by_id("s1")
    fetched.metadata["a"] = 2

    assert (await store.get_by_id("s1")).metadata == {"a": 1}


@pytest.mark.asyncio
async def test_json_store_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "state" / "sessions.json"
    store = JsonFileSessionStore(path)
    await store.create(SessionRecord(session_id="m1", kind="master", snapshot={"phase": "x"}))
    await store.update("m1", {"status": "waiting", "metadata": {"note": "ok"}})

    reloaded = await JsonFileSessionStore(path).get_by_id("m1")

    assert path.exists()
    assert reloaded is not None
    assert reloaded.kind == "master"
    assert reloaded.status == "waiting"
    assert reloaded.snapshot == {"phase": "x"}
    assert reloaded.metadata == {"note": "ok"}


@pytest.mark.asyncio
async def test_json_store_concurrent_updates_keep_file_valid(tmp_path: Path) -> None:
    store = JsonFileSessionStore(tmp_path / "sessions.json")
    await asyncio.gather(*(store.create(SessionRecord(session_id=f"s{i}")) for i in range(5)))
    await asyncio.gather(*(store.update(f"s{i}", {"progress": i * 10}) for i in range(5)))

    for i in range(5):
        assert (await store.get_by_id(f"s{i}")).progress == i * 10


@pytest.mark.asyncio
async def test_json_store_tolerates_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "sessions.json"
    path.write_text("{not json", encoding="utf-8")

    assert await JsonFileSessionStore(path).get_by_id("s1") is None


def test_session_map_basic_operations() -> None:
    sessions: SessionMap[int] = SessionMap("numbers")
    sessions.set("a", 1)
    sessions.set("b", 2)
    sessions.set("a", 3)

    assert sessions.get("a") == 3
    assert "b" in sessions
    assert len(sessions) == 2
    assert sorted(sessions) == ["a", "b"]
    assert sessions.delete("b") is True
    assert sessions.delete("b") is False
    assert sessions.get("b") is None


def test_session_map_sweep_evicts_matching_entries() -> None:
    sessions: SessionMap[int] = SessionMap()
    for key, value in {"a": 1, "b": 20, "c": 30}.items():
        sessions.set(key, value)

    evicted = sessions.sweep(lambda value: value > 10)

    assert sorted(evicted) == ["b", "c"]
    assert sessions.keys() == ["a"]
    assert sessions.values() == [1]
