from __future__ import annotations

from typing import Any, Dict, List

from models import GroupOutcome, RunReport

SKIPPED_MESSAGE = "Not enough eligible users for mystery dinners"


def _event_entry(outcome: GroupOutcome) -> Dict[str, Any]:
    return {
        "eventId": outcome.event_id,
        "participantCount": outcome.participant_count,
        "location": outcome.location,
    }


def _failure_entry(outcome: GroupOutcome) -> Dict[str, Any]:
    return {
        "stage": outcome.failed_stage,
        "error": outcome.error,
        "memberIds": list(outcome.member_ids),
        "eventId": outcome.event_id,
    }


def build_response(report: RunReport) -> Dict[str, Any]:
    """JSON body returned to whoever triggered the run."""
    if report.status == "skipped":
        return {"success": True, "message": SKIPPED_MESSAGE}
    return {
        "success": True,
        "message": f"Created {report.events_created} mystery dinner events",
        "events": [_event_entry(o) for o in report.created],
        "groupsAttempted": report.groups_attempted,
        "failures": [_failure_entry(o) for o in report.failures],
    }


def build_error_response(message: str) -> Dict[str, Any]:
    return {"success": False, "error": message}


def build_summary(report: RunReport) -> str:
    lines: List[str] = [
        "## Mystery Dinner Run",
        "",
        f"- Run at: {report.run_at.isoformat()}",
        f"- Status: {report.status}",
        f"- Eligible users: {report.eligible_count}",
        f"- Unplaced users: {report.leftover_count}",
        f"- Groups attempted: {report.groups_attempted}",
        f"- Events created: {report.events_created}",
        "",
    ]
    if report.created:
        lines.append("### Events")
        for o in report.created:
            degraded = [s.stage for s in o.stages if not s.ok]
            note = f" (partial: {', '.join(degraded)} failed)" if degraded else ""
            lines.append(f"- {o.event_id} at {o.location}: {o.participant_count} guests{note}")
        lines.append("")
    if report.failures:
        lines.append("### Failures")
        for o in report.failures:
            lines.append(f"- stage={o.failed_stage} members={', '.join(o.member_ids)}: {o.error}")
        lines.append("")
    return "\n".join(lines)
