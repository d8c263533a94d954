"""Session state: persisted records and in-memory session maps."""

from .sessions import SessionMap
from .store import (
    InMemorySessionStore,
    JsonFileSessionStore,
    SessionRecord,
    SessionStore,
    utc_now,
)

__all__ = [
    "InMemorySessionStore",
    "JsonFileSessionStore",
    "SessionMap",
    "SessionRecord",
    "SessionStore",
    "utc_now",
]
