from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionMap(Generic[T]):
    """In-memory map of live sessions keyed by session id.

    Operations on distinct keys never interfere; writes to the same key are
    last-write-wins. ``sweep`` is the single eviction entry point used by the
    periodic cleanup task.
    """

    def __init__(self, name: str = "sessions") -> None:
        self.name = name
        self._items: dict[str, T] = {}

    def get(self, session_id: str) -> T | None:
        return self._items.get(session_id)

    def set(self, session_id: str, value: T) -> None:
        self._items[session_id] = value

    def delete(self, session_id: str) -> bool:
        return self._items.pop(session_id, None) is not None

    def values(self) -> list[T]:
        return list(self._items.values())

    def keys(self) -> list[str]:
        return list(self._items)

    def sweep(self, should_evict: Callable[[T], bool]) -> list[str]:
        evicted = [key for key, value in list(self._items.items()) if should_evict(value)]
        for key in evicted:
            del self._items[key]
        if evicted:
            logger.info(
                f"Swept {len(evicted)} session(s) from {self.name}",
                extra={"session_ids": evicted},
            )
        return evicted

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))
