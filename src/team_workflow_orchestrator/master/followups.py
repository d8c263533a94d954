from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def attendee_emails(event: Mapping[str, Any]) -> list[str]:
    attendees = event.get("attendees") or []
    return [a["email"] for a in attendees if isinstance(a, Mapping) and a.get("email")]


def build_follow_up_drafts(
    analysis_results: Mapping[str, Any] | None, calendar_event: Mapping[str, Any] | None
) -> list[dict[str, Any]]:
    """Build follow-up email drafts from meeting analysis results.

    Action items go to every attendee; decisions go to the organizer only.
    """

    analysis = analysis_results or {}
    event = calendar_event or {}
    title = event.get("summary") or "Meeting"
    drafts: list[dict[str, Any]] = []

    action_items = analysis.get("action_items") or []
    if action_items:
        drafts.append(
            {
                "type": "action_items_summary",
                "to": attendee_emails(event),
                "subject": f"Action Items from {title}",
                "action_items": list(action_items),
                "priority": "medium",
            }
        )

    decisions = analysis.get("decisions") or []
    if decisions:
        organizer = (event.get("organizer") or {}).get("email")
        drafts.append(
            {
                "type": "decisions_summary",
                "to": [organizer] if organizer else [],
                "subject": f"Key Decisions from {title}",
                "decisions": list(decisions),
                "priority": "high",
            }
        )

    return drafts
