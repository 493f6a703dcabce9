from datetime import datetime, timezone

from models import RunReport, GroupOutcome, StageResult
from services.report import SKIPPED_MESSAGE, build_error_response, build_response, build_summary

RUN_AT = datetime(2026, 10, 16, tzinfo=timezone.utc)


def _ok(event_id, members, location="Rooftop Terrace Austin", degraded=False):
    stages = [
        StageResult(stage="event", ok=True, rows=1),
        StageResult(stage="attendance", ok=True, rows=len(members)),
        StageResult(stage="notifications", ok=not degraded, rows=len(members), error="down" if degraded else None),
    ]
    return GroupOutcome(member_ids=members, event_id=event_id, location=location, stages=stages)


def test_build_response_completed():
    failed = GroupOutcome(
        member_ids=["c", "d"],
        event_id="evt-2",
        stages=[StageResult(stage="event", ok=True, rows=1), StageResult(stage="attendance", ok=False, error="409")],
        failed_stage="attendance",
        error="409",
    )
    report = RunReport(status="completed", run_at=RUN_AT, eligible_count=5, outcomes=[_ok("evt-1", ["a", "b"]), failed])

    body = build_response(report)
    assert body["success"] is True
    assert body["message"] == "Created 1 mystery dinner events"
    assert body["events"] == [{"eventId": "evt-1", "participantCount": 2, "location": "Rooftop Terrace Austin"}]
    assert body["groupsAttempted"] == 2
    assert body["failures"] == [{"stage": "attendance", "error": "409", "memberIds": ["c", "d"], "eventId": "evt-2"}]


def test_build_response_skipped():
    body = build_response(RunReport(status="skipped", run_at=RUN_AT, eligible_count=1))
    assert body == {"success": True, "message": SKIPPED_MESSAGE}


def test_build_error_response():
    assert build_error_response("boom") == {"success": False, "error": "boom"}


def test_summary_mentions_partial_events():
    report = RunReport(status="completed", run_at=RUN_AT, outcomes=[_ok("evt-9", ["a", "b", "c"], degraded=True)])
    text = build_summary(report)
    assert "## Mystery Dinner Run" in text
    assert "evt-9" in text
    assert "partial: notifications failed" in text
