from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from team_workflow_orchestrator.bootstrap import build_runtime
from team_workflow_orchestrator.core.config import OrchestratorConfig
from team_workflow_orchestrator.server.app import create_app


@pytest.fixture
def runtime(registry, store, make_handler):
    registry.register_handler("email_triage", make_handler("email_triage", {"draft": "Thanks!"}))
    registry.register_handler(
        "calendar_workflow", make_handler("calendar_workflow", {"session_id": "cal-1"})
    )
    return build_runtime(
        OrchestratorConfig(json_logs=False), registry=registry, store=store
    )


@pytest.fixture
def client(monkeypatch, runtime) -> TestClient:
    monkeypatch.setenv("ORCHESTRATOR_START_BACKGROUND_TASKS", "false")
    return TestClient(create_app(runtime))


def test_health_and_teams(client: TestClient) -> None:
    assert client.get("/api/v1/health").json() == {"status": "ok"}
    assert client.get("/api/v1/teams").json() == {"teams": ["email_triage", "calendar_workflow"]}
    assert client.get("/api/openapi.json").status_code == 200


def test_process_input_and_fetch_results(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/workflows",
        json={"input": {"type": "email", "content": "Can we meet?"}, "user_id": "u1"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "completed"
    assert body["routing"]["team"] == "email_triage"
    assert body["routing"]["explanation"] == "Input type is explicitly email"
    assert body["results"] == {"draft": "Thanks!"}

    fetched = client.get(f"/api/v1/workflows/{body['session_id']}")
    assert fetched.status_code == 200
    assert fetched.json()["results"] == {"draft": "Thanks!"}


def test_process_input_validation_and_missing_session(client: TestClient) -> None:
    assert client.post("/api/v1/workflows", json={"input": {"content": ""}}).status_code == 422
    assert client.get("/api/v1/workflows/session-missing").status_code == 404


def test_master_trigger_status_resume_and_cancel(client: TestClient) -> None:
    resp = client.post("/api/v1/master/triggers", json={"type": "calendar_event_created"})
    assert resp.status_code == 200
    state = resp.json()
    master_id = state["master_session_id"]
    assert state["status"] == "waiting"
    assert state["current_phase"] == "calendar"

    listed = client.get("/api/v1/master").json()
    assert [s["master_session_id"] for s in listed] == [master_id]

    assert client.get(f"/api/v1/master/{master_id}").json()["status"] == "waiting"
    assert client.get("/api/v1/master/master-missing").status_code == 404

    # No meeting team is registered, so the meeting phase fails after the transcript arrives.
    resumed = client.post(
        f"/api/v1/master/{master_id}/resume", json={"data": {"transcript": "Alice: hi"}}
    ).json()
    assert resumed["status"] == "failed"
    assert resumed["current_phase"] == "meeting"
    assert resumed["fallback_strategy"] == "retry_current_phase"

    assert client.post("/api/v1/master/master-missing/resume", json={}).status_code == 404

    assert client.delete(f"/api/v1/master/{master_id}").json() == {"cancelled": True}
    assert client.delete(f"/api/v1/master/{master_id}").status_code == 404
    assert client.post(f"/api/v1/master/{master_id}/resume", json={}).status_code == 409


def test_master_trigger_rejects_unknown_type(client: TestClient) -> None:
    assert client.post("/api/v1/master/triggers", json={"type": "fax"}).status_code == 422
