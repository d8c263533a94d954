"""FastAPI app factory.

Endpoints are thin wrappers over the supervisor service and the master orchestrator.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from team_workflow_orchestrator import __version__
from team_workflow_orchestrator.bootstrap import OrchestrationRuntime, build_runtime
from team_workflow_orchestrator.core.errors import (
    InputValidationError,
    SessionNotFoundError,
    WorkflowResumeError,
)
from team_workflow_orchestrator.master.state import MasterWorkflowState, WorkflowTrigger
from team_workflow_orchestrator.server.config import ServerSettings
from team_workflow_orchestrator.server.models import (
    MasterSessionSummary,
    ProcessInputRequest,
    ResumeRequest,
    TeamList,
    TriggerRequest,
)
from team_workflow_orchestrator.supervisor.service import WorkflowResults

logger = logging.getLogger(__name__)


def create_app(runtime: OrchestrationRuntime | None = None) -> FastAPI:
    settings = ServerSettings()
    if runtime is None:
        runtime = build_runtime()
        runtime.config.setup_logging()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if settings.start_background_tasks:
            runtime.start_background_tasks()
        try:
            yield
        finally:
            await runtime.shutdown()

    app = FastAPI(
        title="Team Workflow Orchestrator",
        version=__version__,
        description="REST API over the supervisor router and the master orchestrator.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/v1/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/v1/teams", response_model=TeamList)
    def list_teams() -> TeamList:
        return TeamList(teams=runtime.registry.get_all_team_names())

    # --- supervisor ---

    @app.post("/api/v1/workflows", response_model=WorkflowResults)
    async def process_input(req: ProcessInputRequest) -> WorkflowResults:
        try:
            return await runtime.supervisor.process_input(req.input, req.metadata, req.user_id)
        except InputValidationError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e

    @app.get("/api/v1/workflows/{session_id}", response_model=WorkflowResults)
    async def get_results(session_id: str, user_id: str | None = None) -> WorkflowResults:
        try:
            return await runtime.supervisor.get_results(session_id, user_id)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

    # --- master orchestrator ---

    @app.post("/api/v1/master/triggers", response_model=MasterWorkflowState)
    async def trigger(req: TriggerRequest) -> MasterWorkflowState:
        workflow_trigger = WorkflowTrigger(type=req.type, data=req.data, source=req.source)
        try:
            return await runtime.master.orchestrate(workflow_trigger, req.user_id)
        except InputValidationError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e

    @app.get("/api/v1/master", response_model=list[MasterSessionSummary])
    def list_active() -> list[MasterSessionSummary]:
        return [MasterSessionSummary.from_state(s) for s in runtime.master.list_active()]

    @app.get("/api/v1/master/{master_session_id}", response_model=MasterWorkflowState)
    async def get_status(master_session_id: str) -> MasterWorkflowState:
        state = await runtime.master.get_status(master_session_id)
        if state is None:
            raise HTTPException(status_code=404, detail="Master session not found")
        return state

    @app.post("/api/v1/master/{master_session_id}/resume", response_model=MasterWorkflowState)
    async def resume(master_session_id: str, req: ResumeRequest) -> MasterWorkflowState:
        try:
            return await runtime.master.resume(master_session_id, req.data, force=req.force)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except WorkflowResumeError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e

    @app.delete("/api/v1/master/{master_session_id}")
    async def cancel(master_session_id: str) -> dict[str, bool]:
        if not await runtime.master.cancel(master_session_id):
            raise HTTPException(status_code=404, detail="Master session not found")
        return {"cancelled": True}

    logger.info("API app created", extra={"teams": runtime.registry.get_all_team_names()})
    return app
