from __future__ import annotations

import asyncio
import dataclasses
import functools
import random
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger

from config import Configuration
from models import STAGE_DEADLINE, STAGE_UNEXPECTED, DiningGroup, GroupOutcome, RunReport
from services.grouping import build_groups
from services.materializer import materialize_group
from services.store import StoreError

MIN_POOL_SIZE = 2


async def _load_pool(store, executor: Executor, timeout: float):
    loop = asyncio.get_running_loop()
    try:
        users = await asyncio.wait_for(loop.run_in_executor(executor, store.list_eligible_users), timeout=timeout)
    except asyncio.TimeoutError:
        raise StoreError(f"timed out reading eligible users after {timeout:.0f}s")
    # the store filters too, but the snapshot is only trusted once checked here
    return [u for u in users if u.is_eligible]


def _materialize_guarded(store, idx: int, group: DiningGroup, outcome: GroupOutcome, **kwargs) -> GroupOutcome:
    try:
        return materialize_group(store, group, outcome=outcome, **kwargs)
    except Exception as exc:
        logger.exception("group {} failed unexpectedly members={}: {}", idx, group.member_ids, exc)
        outcome.failed_stage, outcome.error = STAGE_UNEXPECTED, str(exc)
        return outcome


def _deadline_snapshot(outcome: GroupOutcome) -> GroupOutcome:
    """Freeze what a still-running group has committed so far."""
    snapshot = dataclasses.replace(outcome, stages=list(outcome.stages))
    if snapshot.succeeded or snapshot.failed_stage is not None:
        return snapshot
    committed = [s.stage for s in snapshot.stages if s.ok]
    if committed:
        snapshot.error = f"run deadline exceeded after {committed[-1]} stage"
    else:
        snapshot.error = "run deadline exceeded before any stage committed"
    snapshot.failed_stage = STAGE_DEADLINE
    logger.error(
        "group did not finish before the run deadline members={} event={}",
        snapshot.member_ids,
        snapshot.event_id,
    )
    return snapshot


async def _materialize_all(
    store,
    groups: List[DiningGroup],
    run_at: datetime,
    cfg: Configuration,
    rng: random.Random,
    executor: Executor,
    timeout: float,
) -> List[GroupOutcome]:
    if not groups:
        return []
    loop = asyncio.get_running_loop()
    stop = threading.Event()
    # one generator per group keeps venue picks independent of thread scheduling
    group_rngs = [random.Random(rng.getrandbits(64)) for _ in groups]
    live = [GroupOutcome(member_ids=g.member_ids) for g in groups]

    futures = [
        loop.run_in_executor(
            executor,
            functools.partial(
                _materialize_guarded,
                store,
                idx,
                group,
                live[idx],
                run_at=run_at,
                rng=group_rngs[idx],
                lead_days=cfg.event_lead_days,
                stop=stop,
            ),
        )
        for idx, group in enumerate(groups)
    ]

    _, pending = await asyncio.wait(futures, timeout=max(timeout, 0.0))
    if not pending:
        return [f.result() for f in futures]

    # no new stage starts from here on; a write already in flight may still land
    stop.set()
    for fut in pending:
        fut.cancel()
    return [_deadline_snapshot(o) if f in pending else f.result() for f, o in zip(futures, live)]


async def run_matchmaking(
    store,
    cfg: Configuration,
    *,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> RunReport:
    """Run one matchmaking pass against ``store``.

    Raises StoreError only when the user pool cannot be read. Every per-group
    failure is captured in the returned report instead. The call returns at
    the run deadline without waiting for store writes still in flight.
    """
    run_at = now or datetime.now(timezone.utc)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + cfg.run_timeout_sec
    logger.info("mystery dinner run started run_at={}", run_at.isoformat())

    executor = ThreadPoolExecutor(max_workers=max(1, cfg.max_concurrent_groups), thread_name_prefix="mystery-dinner")
    try:
        pool = await _load_pool(store, executor, cfg.run_timeout_sec)
        logger.info("eligible users found count={}", len(pool))

        if len(pool) < MIN_POOL_SIZE:
            logger.info("not enough eligible users for mystery dinners, skipping")
            return RunReport(status="skipped", run_at=run_at, eligible_count=len(pool), leftover_count=len(pool))

        grouping = build_groups(
            pool,
            max_distance_km=cfg.max_distance_km,
            threshold=cfg.compatibility_threshold,
            max_group_size=cfg.max_group_size,
            min_group_size=cfg.min_group_size,
        )
        logger.info("mystery groups created count={} unplaced={}", len(grouping.groups), len(grouping.leftovers))

        outcomes = await _materialize_all(
            store,
            grouping.groups,
            run_at,
            cfg,
            rng or random.Random(cfg.venue_seed),
            executor,
            deadline - loop.time(),
        )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    report = RunReport(
        status="completed",
        run_at=run_at,
        eligible_count=len(pool),
        leftover_count=len(grouping.leftovers),
        outcomes=outcomes,
    )
    logger.info(
        "mystery dinner run finished groups={} created={} failed={}",
        report.groups_attempted,
        report.events_created,
        len(report.failures),
    )
    return report
