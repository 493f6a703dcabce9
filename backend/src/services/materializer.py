from __future__ import annotations

import random
import threading
from datetime import datetime
from typing import Any, Callable, Optional

from loguru import logger

from models import (
    CRITICAL_STAGES,
    STAGE_ATTENDANCE,
    STAGE_CONNECTIONS,
    STAGE_DEADLINE,
    STAGE_EVENT,
    STAGE_NOTIFICATIONS,
    DiningGroup,
    GroupOutcome,
    StageResult,
)
from services.event_builder import (
    build_crossed_path_rows,
    build_event_row,
    build_notification_rows,
    build_rsvp_rows,
    dominant_city,
    event_start,
    pick_venue,
)
from services.store import StoreError


def _run_stage(stage: str, rows: int, write: Callable[[], Any]) -> tuple[StageResult, Any]:
    try:
        value = write()
    except StoreError as exc:
        return StageResult(stage=stage, ok=False, rows=rows, error=str(exc)), None
    return StageResult(stage=stage, ok=True, rows=rows), value


def _halted(outcome: GroupOutcome, stop: Optional[threading.Event], stage: str) -> bool:
    """True when ``stop`` is set; records why ``stage`` never started."""
    if stop is None or not stop.is_set():
        return False
    if stage in CRITICAL_STAGES:
        outcome.failed_stage = STAGE_DEADLINE
        outcome.error = f"run deadline exceeded before {stage} stage"
        logger.error("group stopped at deadline before {} members={}", stage, outcome.member_ids)
    else:
        outcome.stages.append(StageResult(stage=stage, ok=False, error="skipped: run deadline exceeded"))
        logger.warning("{} skipped at deadline event={}", stage, outcome.event_id)
    return True


def materialize_group(
    store,
    group: DiningGroup,
    run_at: datetime,
    *,
    rng: Optional[random.Random] = None,
    lead_days: int = 7,
    stop: Optional[threading.Event] = None,
    outcome: Optional[GroupOutcome] = None,
) -> GroupOutcome:
    """Persist one group as an event with RSVPs, notifications and crossed paths.

    Stages run in order and each commits on its own. Losing the event or the
    RSVPs fails the group and stops the pipeline (an event without RSVPs is
    left behind). Notifications and crossed paths are best-effort: their
    failures are recorded but do not fail the group.

    Once ``stop`` is set no further stage starts. ``outcome`` is filled in as
    stages commit, so a caller that gives up waiting can still read it.
    """
    if outcome is None:
        outcome = GroupOutcome(member_ids=group.member_ids)
    venue = pick_venue(dominant_city(group), rng)
    starts_at = event_start(run_at, lead_days)

    if _halted(outcome, stop, STAGE_EVENT):
        return outcome
    event_row = build_event_row(group, run_at, venue=venue, lead_days=lead_days)
    result, event = _run_stage(STAGE_EVENT, 1, lambda: store.insert_event(event_row))
    if not result.ok:
        outcome.stages.append(result)
        outcome.failed_stage, outcome.error = STAGE_EVENT, result.error
        logger.error("event insert failed members={} error={}", outcome.member_ids, result.error)
        return outcome

    event_id = str(event["id"])
    outcome.event_id = event_id
    outcome.location = event.get("location_name") or venue
    outcome.stages.append(result)

    if _halted(outcome, stop, STAGE_ATTENDANCE):
        return outcome
    rsvps = build_rsvp_rows(group, event_id)
    result, _ = _run_stage(STAGE_ATTENDANCE, len(rsvps), lambda: store.insert_rsvps(rsvps))
    outcome.stages.append(result)
    if not result.ok:
        outcome.failed_stage, outcome.error = STAGE_ATTENDANCE, result.error
        logger.error(
            "rsvp insert failed event={} members={} error={} (event left without attendees)",
            event_id,
            outcome.member_ids,
            result.error,
        )
        return outcome

    if _halted(outcome, stop, STAGE_NOTIFICATIONS):
        return outcome
    notifications = build_notification_rows(group, event_id, starts_at)
    result, _ = _run_stage(STAGE_NOTIFICATIONS, len(notifications), lambda: store.insert_notifications(notifications))
    outcome.stages.append(result)
    if not result.ok:
        logger.warning("notifications failed event={} error={}", event_id, result.error)

    crossed = build_crossed_path_rows(group, outcome.location, run_at)
    if crossed:
        if _halted(outcome, stop, STAGE_CONNECTIONS):
            return outcome
        result, _ = _run_stage(STAGE_CONNECTIONS, len(crossed), lambda: store.insert_crossed_paths(crossed))
        outcome.stages.append(result)
        if not result.ok:
            logger.warning("crossed paths failed event={} error={}", event_id, result.error)

    logger.info(
        "mystery dinner created event={} participants={} location={}",
        event_id,
        group.size,
        outcome.location,
    )
    return outcome
