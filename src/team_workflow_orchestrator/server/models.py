"""Pydantic models for the REST server."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from team_workflow_orchestrator.master.state import MasterWorkflowState, TriggerType
from team_workflow_orchestrator.supervisor.state import StageError


class ProcessInputRequest(BaseModel):
    input: dict[str, Any]
    metadata: dict[str, Any] | None = None
    user_id: str | None = None


class TriggerRequest(BaseModel):
    type: TriggerType
    data: dict[str, Any] = Field(default_factory=dict)
    source: str | None = None
    user_id: str | None = None


class ResumeRequest(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)
    force: bool = False


class TeamList(BaseModel):
    teams: list[str]


class MasterSessionSummary(BaseModel):
    master_session_id: str
    user_id: str
    status: str
    stage: str
    current_phase: str
    completed_phases: list[str] = Field(default_factory=list)
    progress: int
    retry_count: int
    fallback_strategy: str | None = None
    error: StageError | None = None
    updated_at: datetime

    @classmethod
    def from_state(cls, state: MasterWorkflowState) -> MasterSessionSummary:
        return cls.model_validate(
            state.model_dump(
                mode="json",
                include={
                    "master_session_id",
                    "user_id",
                    "status",
                    "stage",
                    "current_phase",
                    "completed_phases",
                    "progress",
                    "retry_count",
                    "fallback_strategy",
                    "error",
                    "updated_at",
                },
            )
        )
