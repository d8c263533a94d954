"""Registry of team handlers.

The registry is rebuilt from scratch at every process start and holds no
persisted state. It is read-mostly after bootstrap, so it takes no locks.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any

from .handler import TeamHandler

logger = logging.getLogger(__name__)


class TeamHandlerRegistry:
    def __init__(self) -> None:
        self._handlers: dict[str, TeamHandler] = {}

    def register_handler(self, team_name: str, handler: TeamHandler) -> None:
        """Register ``handler`` under ``team_name``. The last registration wins."""

        logger.info(f'Registering handler for team "{team_name}"')
        if team_name in self._handlers:
            logger.warning(f'Overriding existing handler for team "{team_name}"')
        self._handlers[team_name] = handler

    def unregister_handler(self, team_name: str) -> bool:
        return self._handlers.pop(team_name, None) is not None

    def get_handler(self, team_name: str) -> TeamHandler | None:
        handler = self._handlers.get(team_name)
        if handler is None:
            logger.warning(f'No handler registered for team "{team_name}"')
        return handler

    def get_all_handlers(self) -> list[TeamHandler]:
        return list(self._handlers.values())

    def get_all_team_names(self) -> list[str]:
        return list(self._handlers)

    async def find_handler_for_input(self, input: Any) -> TeamHandler | None:
        """Return the first handler whose ``can_handle`` check accepts ``input``.

        Handlers are asked in registration order.
        """

        logger.debug("Attempting to find handler for input")

        for handler in list(self._handlers.values()):
            can_handle = getattr(handler, "can_handle", None)
            if can_handle is None:
                continue
            accepted = can_handle(input)
            if inspect.isawaitable(accepted):
                accepted = await accepted
            if accepted:
                logger.debug(f"Found handler for input: {handler.get_team_name()}")
                return handler

        logger.warning("No handler found for input")
        return None

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, team_name: object) -> bool:
        return team_name in self._handlers


_default_registry: TeamHandlerRegistry | None = None


def get_default_registry() -> TeamHandlerRegistry:
    """Process-wide registry shared by handlers registered at bootstrap."""

    global _default_registry
    if _default_registry is None:
        _default_registry = TeamHandlerRegistry()
    return _default_registry


def reset_default_registry() -> None:
    global _default_registry
    _default_registry = None
