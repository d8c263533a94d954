#!/usr/bin/env python3
"""Programmatic orchestration example.

This demonstrates using the orchestration core directly:

* register in-process team handlers
* route one input through the supervisor
* drive a master workflow from a meeting-ended trigger to completion

The handlers below are canned stand-ins for real teams.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any, Sequence

from team_workflow_orchestrator import OrchestratorConfig, build_runtime
from team_workflow_orchestrator.teams.registry import TeamHandlerRegistry


class CannedTeam:
    def __init__(self, team: str, result: dict[str, Any]) -> None:
        self.team = team
        self.result = result

    async def process(self, input: dict[str, Any]) -> dict[str, Any]:
        print(f"[{self.team}] received {input.get('type')} ({input.get('session_id')})")
        return self.result

    def get_team_name(self) -> str:
        return self.team


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the orchestrator with canned teams.")
    parser.add_argument("--email", default="Can we move tomorrow's sync to 3pm?")
    parser.add_argument(
        "--transcript",
        default="Alice: let's ship on Friday. Bob: I'll write the release notes.",
    )
    return parser.parse_args(argv)


def _registry() -> TeamHandlerRegistry:
    registry = TeamHandlerRegistry()
    registry.register_handler(
        "email_triage", CannedTeam("email_triage", {"status": "sent"})
    )
    registry.register_handler(
        "calendar_workflow",
        CannedTeam(
            "calendar_workflow",
            {
                "calendar_event": {
                    "id": "evt-1",
                    "summary": "Release planning",
                    "attendees": [{"email": "alice@example.com"}, {"email": "bob@example.com"}],
                    "organizer": {"email": "alice@example.com"},
                }
            },
        ),
    )
    registry.register_handler(
        "meeting_analysis",
        CannedTeam(
            "meeting_analysis",
            {
                "analysis_result": {
                    "action_items": [{"owner": "bob", "description": "Write release notes"}],
                    "decisions": ["Ship on Friday"],
                }
            },
        ),
    )
    return registry


async def _run(args: argparse.Namespace) -> None:
    config = OrchestratorConfig()
    config.setup_logging()
    runtime = build_runtime(config, registry=_registry())

    results = await runtime.supervisor.process_input(
        {"type": "email", "content": args.email}, user_id="demo"
    )
    print(json.dumps(results.model_dump(mode="json"), indent=2))

    state = await runtime.master.orchestrate(
        {"type": "meeting_ended", "data": {"transcript": args.transcript}}, user_id="demo"
    )
    print(f"Master workflow {state.master_session_id}: {state.status.value}")
    print(f"Completed phases: {[p.value for p in state.completed_phases]}")
    print(f"Follow-ups sent: {len(state.follow_up_actions)}")

    await runtime.shutdown()


def main(argv: Sequence[str] | None = None) -> int:
    asyncio.run(_run(_parse_args(argv)))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
