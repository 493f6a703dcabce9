from __future__ import annotations

from models import UserCandidate


STYLE_WEIGHT = 0.4
DIET_WEIGHT = 0.3
# Proximity is gated by the group builder before a pair is ever scored.
LOCALITY_BONUS = 0.3


def _diet_overlap(a: frozenset[str], b: frozenset[str]) -> float:
    common = len(a & b)
    return common / max(len(a), len(b), 1)


def compatibility_score(a: UserCandidate, b: UserCandidate) -> float:
    """Heuristic similarity of two users in [0, 1].

    Equal, non-null dining styles add 0.4, overlapping dietary tags add up to
    0.3 and every pair gets a flat 0.3 locality bonus. Symmetric in its
    arguments.
    """
    score = LOCALITY_BONUS
    score += DIET_WEIGHT * _diet_overlap(a.dietary_preferences, b.dietary_preferences)
    if a.dining_style is not None and a.dining_style == b.dining_style:
        score += STYLE_WEIGHT
    # round away float noise so 0.3 and 1.0 come out exact
    return min(round(score, 6), 1.0)
