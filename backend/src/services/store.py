from __future__ import annotations

import json
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from config import Configuration
from models import DIETARY_PREFERENCES, DINING_STYLES, UserCandidate


class StoreError(RuntimeError):
    pass


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_profile(row: Dict[str, Any]) -> Optional[UserCandidate]:
    """Map a ``profiles`` row to a UserCandidate; None when it has no id."""
    user_id = row.get("id")
    if not user_id:
        return None
    style = row.get("dining_style")
    if style not in DINING_STYLES:
        style = None
    diets = row.get("dietary_preferences") or []
    if isinstance(diets, str):
        diets = [diets]
    city = row.get("location_city")
    return UserCandidate(
        id=str(user_id),
        lat=_to_float(row.get("location_lat")),
        lng=_to_float(row.get("location_lng")),
        city=(str(city) if city else None),
        dining_style=style,
        dietary_preferences=frozenset(str(d) for d in diets if d in DIETARY_PREFERENCES),
        onboarding_completed=bool(row.get("onboarding_completed")),
    )


class InMemoryStore:
    """Dict-backed stand-in for the Supabase tables the job touches."""

    def __init__(self, profiles: Optional[Iterable[Dict[str, Any]]] = None) -> None:
        self.profiles: List[Dict[str, Any]] = list(profiles or [])
        self.events: Dict[str, Dict[str, Any]] = {}
        self.rsvps: List[Dict[str, Any]] = []
        self.notifications: List[Dict[str, Any]] = []
        self.crossed_paths: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryStore":
        p = Path(path)
        try:
            payload = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"cannot read seed profiles {p}: {exc}")
        if isinstance(payload, dict):
            payload = payload.get("profiles") or []
        if not isinstance(payload, list):
            raise StoreError(f"seed profiles {p} must be a list of rows")
        return cls(profiles=payload)

    def list_eligible_users(self) -> List[UserCandidate]:
        users: list[UserCandidate] = []
        for row in self.profiles:
            user = parse_profile(row)
            if user is not None and user.is_eligible:
                users.append(user)
        return users

    def insert_event(self, row: Dict[str, Any]) -> Dict[str, Any]:
        event = {"id": uuid.uuid4().hex, **row}
        with self._lock:
            self.events[event["id"]] = event
        return event

    def insert_rsvps(self, rows: List[Dict[str, Any]]) -> None:
        with self._lock:
            self.rsvps.extend(dict(r) for r in rows)

    def insert_notifications(self, rows: List[Dict[str, Any]]) -> None:
        with self._lock:
            self.notifications.extend(dict(r) for r in rows)

    def insert_crossed_paths(self, rows: List[Dict[str, Any]]) -> None:
        with self._lock:
            self.crossed_paths.extend(dict(r) for r in rows)

    def close(self) -> None:
        pass


def build_store(cfg: Configuration):
    """Return the store selected by ``cfg.store_backend``."""
    cfg.require_store()
    if cfg.store_backend == "memory":
        if cfg.seed_profiles_path:
            store = InMemoryStore.from_json(cfg.seed_profiles_path)
            logger.info("in-memory store seeded with {} profiles", len(store.profiles))
            return store
        return InMemoryStore()

    from services.supabase import SupabaseClient

    return SupabaseClient(cfg)
