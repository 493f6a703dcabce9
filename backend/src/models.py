"""Data models for mystery dinner matchmaking."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, List, Optional, Tuple


DINING_STYLES: tuple[str, ...] = (
    "adventurous",
    "foodie_enthusiast",
    "local_lover",
    "comfort_food",
    "health_conscious",
    "social_butterfly",
)

DIETARY_PREFERENCES: tuple[str, ...] = (
    "vegetarian",
    "vegan",
    "gluten_free",
    "dairy_free",
    "keto",
    "paleo",
    "halal",
    "kosher",
    "no_restrictions",
)

# Materializer stages, in execution order.
STAGE_EVENT = "event"
STAGE_ATTENDANCE = "attendance"
STAGE_NOTIFICATIONS = "notifications"
STAGE_CONNECTIONS = "connections"
# Run-level failure labels for groups that never reached a stage result.
STAGE_UNEXPECTED = "unexpected"
STAGE_DEADLINE = "deadline"

CRITICAL_STAGES = (STAGE_EVENT, STAGE_ATTENDANCE)


@dataclass(frozen=True)
class UserCandidate:
    id: str
    lat: Optional[float]
    lng: Optional[float]
    city: Optional[str] = None
    dining_style: Optional[str] = None
    dietary_preferences: frozenset[str] = field(default_factory=frozenset)
    onboarding_completed: bool = False

    @property
    def is_eligible(self) -> bool:
        return self.onboarding_completed and self.lat is not None and self.lng is not None


@dataclass
class DiningGroup:
    """Members in the order they were added; the first one is the seed."""

    members: List[UserCandidate]

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def seed(self) -> UserCandidate:
        return self.members[0]

    @property
    def member_ids(self) -> list[str]:
        return [m.id for m in self.members]

    def pairs(self) -> Iterator[Tuple[UserCandidate, UserCandidate]]:
        for i in range(len(self.members)):
            for j in range(i + 1, len(self.members)):
                yield self.members[i], self.members[j]


@dataclass
class GroupingResult:
    groups: List[DiningGroup] = field(default_factory=list)
    leftovers: List[UserCandidate] = field(default_factory=list)


@dataclass
class StageResult:
    stage: str
    ok: bool
    rows: int = 0
    error: Optional[str] = None


@dataclass
class GroupOutcome:
    member_ids: List[str]
    event_id: Optional[str] = None
    location: Optional[str] = None
    stages: List[StageResult] = field(default_factory=list)
    failed_stage: Optional[str] = None
    error: Optional[str] = None

    @property
    def participant_count(self) -> int:
        return len(self.member_ids)

    @property
    def succeeded(self) -> bool:
        if self.failed_stage is not None:
            return False
        done = {s.stage for s in self.stages if s.ok}
        return all(stage in done for stage in CRITICAL_STAGES)


@dataclass
class RunReport:
    status: str  # "completed" or "skipped"
    run_at: datetime
    eligible_count: int = 0
    leftover_count: int = 0
    outcomes: List[GroupOutcome] = field(default_factory=list)

    @property
    def created(self) -> List[GroupOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failures(self) -> List[GroupOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def groups_attempted(self) -> int:
        return len(self.outcomes)

    @property
    def events_created(self) -> int:
        return len(self.created)
