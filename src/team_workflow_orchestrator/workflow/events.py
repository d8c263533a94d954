from __future__ import annotations

import fnmatch
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

logger = logging.getLogger(__name__)

EventListener = Callable[[str, dict[str, Any]], "None | Awaitable[None]"]


class EventSink(Protocol):
    """Telemetry sink for named workflow events (progress, phase transitions)."""

    async def emit(self, name: str, payload: Mapping[str, Any]) -> None: ...


class EventBus:
    """In-process event bus.

    Subscriptions are exact names, glob patterns (``master.workflow.*``) or ``*``.
    Delivery is best-effort: a failing listener is logged and never breaks the
    workflow that emitted the event.
    """

    def __init__(self) -> None:
        self._listeners: list[tuple[str, EventListener]] = []

    def subscribe(self, pattern: str, listener: EventListener) -> None:
        self._listeners.append((pattern, listener))

    def unsubscribe(self, pattern: str, listener: EventListener) -> bool:
        try:
            self._listeners.remove((pattern, listener))
        except ValueError:
            return False
        return True

    async def emit(self, name: str, payload: Mapping[str, Any]) -> None:
        data = dict(payload)
        for pattern, listener in list(self._listeners):
            if not fnmatch.fnmatchcase(name, pattern):
                continue
            try:
                result = listener(name, data)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Event listener failed", extra={"event": name})
