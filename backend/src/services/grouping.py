from __future__ import annotations

from typing import Sequence

from loguru import logger

from models import DiningGroup, GroupingResult, UserCandidate
from services.compatibility import compatibility_score
from utils import haversine_km


def _within(seed: UserCandidate, other: UserCandidate, max_distance_km: float) -> bool:
    if seed.lat is None or seed.lng is None or other.lat is None or other.lng is None:
        return False
    return haversine_km(seed.lat, seed.lng, other.lat, other.lng) <= max_distance_km


def build_groups(
    pool: Sequence[UserCandidate],
    *,
    max_distance_km: float = 50.0,
    threshold: float = 0.3,
    max_group_size: int = 6,
    min_group_size: int = 2,
) -> GroupingResult:
    """Greedily cluster ``pool`` into disjoint dining groups.

    Single pass in the order given. Each unused user seeds a group; the rest
    of the pool is scanned in order and a candidate joins when it is within
    ``max_distance_km`` of the seed and scores above ``threshold`` against
    the seed, until the group holds ``max_group_size`` members. Candidates are
    only compared with the seed, never with later members. Groups smaller
    than ``min_group_size`` are dropped and their seed is not retried.

    The result depends on input order and is not a global optimum.
    """
    if min_group_size < 2:
        raise ValueError("min_group_size must be at least 2")
    if max_group_size < min_group_size:
        raise ValueError("max_group_size must be >= min_group_size")

    used: set[str] = set()
    placed: set[str] = set()
    groups: list[DiningGroup] = []

    for seed in pool:
        if seed.id in used:
            continue
        members = [seed]
        used.add(seed.id)

        for other in pool:
            if len(members) >= max_group_size:
                break
            if other.id in used:
                continue
            if not _within(seed, other, max_distance_km):
                continue
            if compatibility_score(seed, other) > threshold:
                members.append(other)
                used.add(other.id)

        if len(members) >= min_group_size:
            groups.append(DiningGroup(members=members))
            placed.update(m.id for m in members)

    leftovers: list[UserCandidate] = []
    seen: set[str] = set()
    for user in pool:
        if user.id in placed or user.id in seen:
            continue
        seen.add(user.id)
        leftovers.append(user)

    logger.debug(
        "grouping pool={} groups={} leftovers={}",
        len(pool),
        len(groups),
        len(leftovers),
    )
    return GroupingResult(groups=groups, leftovers=leftovers)
