"""Team handler contract and registry."""

from .handler import Team, TeamHandler, run_handler
from .registry import TeamHandlerRegistry, get_default_registry, reset_default_registry

__all__ = [
    "Team",
    "TeamHandler",
    "TeamHandlerRegistry",
    "get_default_registry",
    "reset_default_registry",
    "run_handler",
]
