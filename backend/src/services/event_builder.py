from __future__ import annotations

import random
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from models import DiningGroup
from utils import iso_utc

EVENT_NAME = "Mystery Dinner Experience"
EVENT_DESCRIPTION = "A curated mystery dinner experience with fellow food enthusiasts in your area."
EVENT_TAGS = ["mystery", "curated", "local"]
DEFAULT_CITY = "City Center"

NOTIFICATION_TITLE = "Mystery Dinner Invitation! 🍽️"
NOTIFICATION_TYPE = "rsvp_confirmation"

VENUE_TEMPLATES = (
    "Cozy Bistro in {city}",
    "Garden Restaurant {city}",
    "Historic Dining Room {city}",
    "Rooftop Terrace {city}",
    "Local Chef's Table {city}",
    "Artisan Kitchen {city}",
    "Vintage Wine Bar {city}",
    "Farm-to-Table {city}",
    "Culinary Studio {city}",
    "Secret Supper Club {city}",
)


def most_common(values: Iterable[Optional[str]]) -> Optional[str]:
    """Most frequent non-empty value; ties go to the first one seen."""
    counts = Counter(v for v in values if v)
    if not counts:
        return None
    # Counter preserves insertion order and most_common() is stable
    return counts.most_common(1)[0][0]


def dominant_city(group: DiningGroup) -> str:
    city = most_common((m.city or "").strip() for m in group.members)
    return city or DEFAULT_CITY


def pick_venue(city: str, rng: Optional[random.Random] = None) -> str:
    chooser = rng or random
    return chooser.choice(VENUE_TEMPLATES).format(city=city)


def event_start(run_at: datetime, lead_days: int = 7) -> datetime:
    return run_at + timedelta(days=lead_days)


def build_event_row(
    group: DiningGroup,
    run_at: datetime,
    *,
    venue: str,
    lead_days: int = 7,
) -> Dict[str, Any]:
    diets = [d for m in group.members for d in sorted(m.dietary_preferences)]
    return {
        # first member is recorded as creator, no fairness applied
        "creator_id": group.seed.id,
        "name": EVENT_NAME,
        "description": EVENT_DESCRIPTION,
        "date_time": iso_utc(event_start(run_at, lead_days)),
        "location_name": venue,
        "max_attendees": group.size,
        "is_mystery_dinner": True,
        "dietary_theme": most_common(diets),
        "dining_style": most_common(m.dining_style for m in group.members),
        "tags": list(EVENT_TAGS),
    }


def build_rsvp_rows(group: DiningGroup, event_id: str) -> List[Dict[str, Any]]:
    return [{"event_id": event_id, "user_id": m.id, "status": "confirmed"} for m in group.members]


def build_notification_rows(group: DiningGroup, event_id: str, starts_at: datetime) -> List[Dict[str, Any]]:
    # US short date without zero padding, e.g. 10/23/2026
    day = f"{starts_at.month}/{starts_at.day}/{starts_at.year}"
    message = (
        f"You've been matched for a mystery dinner experience on {day}. "
        "Check your events for details!"
    )
    return [
        {
            "user_id": m.id,
            "title": NOTIFICATION_TITLE,
            "message": message,
            "type": NOTIFICATION_TYPE,
            "data": {"eventId": event_id, "type": "mystery_dinner"},
        }
        for m in group.members
    ]


def build_crossed_path_rows(group: DiningGroup, venue: str, run_at: datetime) -> List[Dict[str, Any]]:
    matched_at = iso_utc(run_at)
    return [
        {
            "user1_id": a.id,
            "user2_id": b.id,
            "location_name": venue,
            "location_lat": a.lat,
            "location_lng": a.lng,
            "matched_at": matched_at,
        }
        for a, b in group.pairs()
    ]
