"""FastAPI server adapter for team-workflow-orchestrator.

Business logic stays in the orchestration packages; this package only
translates HTTP requests into supervisor and master orchestrator calls.
"""

from __future__ import annotations

__all__ = ["create_app"]

from team_workflow_orchestrator.server.app import create_app
