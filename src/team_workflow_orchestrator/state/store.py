"""Session persistence.

The orchestration core talks to persistence only through :class:`SessionStore`.
Two implementations ship here: an in-memory store (tests, single process) and a
JSON file store that survives restarts (best-effort).

This is intentionally minimal. A real deployment plugs a database-backed store
in behind the same protocol.
"""

from __future__ import annotations

import asyncio
import copy
import json
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field

SessionKind = Literal["supervisor", "master"]


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class SessionRecord(BaseModel):
    session_id: str
    user_id: str = "default"
    kind: SessionKind = "supervisor"
    status: str = "pending"
    stage: str | None = None
    progress: int = 0

    input_type: str | None = None
    input: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)

    results: Any = None
    error: dict[str, Any] | None = None
    snapshot: dict[str, Any] | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None


class SessionStore(Protocol):
    async def create(self, record: SessionRecord) -> SessionRecord: ...

    async def update(self, session_id: str, fields: Mapping[str, Any]) -> SessionRecord: ...

    async def get_by_id(self, session_id: str) -> SessionRecord | None: ...


def _merge(record: SessionRecord, fields: Mapping[str, Any]) -> SessionRecord:
    return record.model_copy(update={"updated_at": utc_now(), **fields})


class InMemorySessionStore:
    def __init__(self) -> None:
        self._records: dict[str, SessionRecord] = {}

    async def create(self, record: SessionRecord) -> SessionRecord:
        if record.session_id in self._records:
            raise ValueError(f"Session already exists: {record.session_id}")
        self._records[record.session_id] = record
        return record.model_copy(deep=True)

    async def update(self, session_id: str, fields: Mapping[str, Any]) -> SessionRecord:
        current = self._records.get(session_id)
        if current is None:
            raise KeyError(session_id)
        merged = _merge(current, copy.deepcopy(dict(fields)))
        self._records[session_id] = merged
        return merged.model_copy(deep=True)

    async def get_by_id(self, session_id: str) -> SessionRecord | None:
        record = self._records.get(session_id)
        return None if record is None else record.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._records)


@dataclass
class JsonFileSessionStore:
    """Persist session records to a single JSON file keyed by session id.

    File access runs in a worker thread so the event loop never blocks on disk.
    """

    path: Path

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def _load_unlocked(self) -> dict[str, SessionRecord]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return {}
        if not isinstance(raw, dict):
            return {}
        return {key: SessionRecord.model_validate(item) for key, item in raw.items()}

    def _save_unlocked(self, records: dict[str, SessionRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {key: r.model_dump(mode="json") for key, r in records.items()}
        self.path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    def _create_sync(self, record: SessionRecord) -> SessionRecord:
        with self._lock:
            records = self._load_unlocked()
            if record.session_id in records:
                raise ValueError(f"Session already exists: {record.session_id}")
            records[record.session_id] = record
            self._save_unlocked(records)
            return record

    def _update_sync(self, session_id: str, fields: Mapping[str, Any]) -> SessionRecord:
        with self._lock:
            records = self._load_unlocked()
            current = records.get(session_id)
            if current is None:
                raise KeyError(session_id)
            # Round-trip through validation so the file never holds unparsable values.
            merged = SessionRecord.model_validate(
                _merge(current, fields).model_dump(mode="json")
            )
            records[session_id] = merged
            self._save_unlocked(records)
            return merged

    def _get_sync(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            return self._load_unlocked().get(session_id)

    async def create(self, record: SessionRecord) -> SessionRecord:
        return await asyncio.to_thread(self._create_sync, record)

    async def update(self, session_id: str, fields: Mapping[str, Any]) -> SessionRecord:
        return await asyncio.to_thread(self._update_sync, session_id, dict(fields))

    async def get_by_id(self, session_id: str) -> SessionRecord | None:
        return await asyncio.to_thread(self._get_sync, session_id)
