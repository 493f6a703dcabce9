from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from config import Configuration
from models import UserCandidate
from services.store import StoreError, parse_profile


@dataclass
class _RetryPolicy:
    retries: int = 3
    base_delay: float = 0.5


_RETRY_STATUS = (429, 500, 502, 503, 504)


class SupabaseClient:
    """PostgREST client for the tables the matchmaking job reads and writes."""

    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.base = cfg.rest_base_url()
        self.session = session or requests.Session()
        self.retry = _RetryPolicy()

    def close(self) -> None:
        self.session.close()

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        key = self.cfg.supabase_service_role_key or ""
        headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _get(self, table: str, params: dict) -> list:
        url = f"{self.base}/{table}"
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, headers=self._headers(), params=params, timeout=self.cfg.supabase_timeout)
            except requests.RequestException as exc:  # network error
                if attempt <= self.retry.retries:
                    time.sleep(self.retry.base_delay * attempt)
                    continue
                raise StoreError(f"request error: {exc}")

            if resp.status_code in _RETRY_STATUS:
                if attempt <= self.retry.retries:
                    time.sleep(self.retry.base_delay * attempt)
                    continue
                raise StoreError(f"{table} {resp.status_code}: {resp.text[:300]}")

            if not resp.ok:
                raise StoreError(f"{table} {resp.status_code}: {resp.text[:300]}")

            try:
                payload = resp.json()
            except ValueError:
                raise StoreError("invalid json response")
            if not isinstance(payload, list):
                raise StoreError(f"{table}: expected a list of rows")
            return payload

    def _post(self, table: str, body: Any, *, returning: bool = False) -> Any:
        # Inserts carry no idempotency key, so they are never retried.
        url = f"{self.base}/{table}"
        prefer = "return=representation" if returning else "return=minimal"
        try:
            resp = self.session.post(
                url,
                headers=self._headers(prefer),
                json=body,
                timeout=self.cfg.supabase_timeout,
            )
        except requests.RequestException as exc:
            raise StoreError(f"{table} insert error: {exc}")

        if not resp.ok:
            raise StoreError(f"{table} insert {resp.status_code}: {resp.text[:300]}")

        if not returning:
            return None
        try:
            return resp.json()
        except ValueError:
            raise StoreError(f"{table} insert: invalid json response")

    def list_eligible_users(self) -> List[UserCandidate]:
        page_size = max(1, self.cfg.supabase_page_size)
        params = {
            "select": "*",
            "onboarding_completed": "eq.true",
            "location_lat": "not.is.null",
            "location_lng": "not.is.null",
            "order": "created_at.asc",
            "limit": page_size,
        }
        users: list[UserCandidate] = []
        offset = 0
        while True:
            rows = self._get("profiles", {**params, "offset": offset})
            for row in rows:
                user = parse_profile(row) if isinstance(row, dict) else None
                if user is None or not user.is_eligible:
                    continue
                users.append(user)
            if len(rows) < page_size:
                break
            offset += page_size
        logger.debug("profiles fetched users={} pages={}", len(users), offset // page_size + 1)
        return users

    def insert_event(self, row: Dict[str, Any]) -> Dict[str, Any]:
        payload = self._post("events", row, returning=True)
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        if not isinstance(payload, dict) or not payload.get("id"):
            raise StoreError("events insert returned no row")
        return payload

    def insert_rsvps(self, rows: List[Dict[str, Any]]) -> None:
        self._post("rsvps", rows)

    def insert_notifications(self, rows: List[Dict[str, Any]]) -> None:
        self._post("notifications", rows)

    def insert_crossed_paths(self, rows: List[Dict[str, Any]]) -> None:
        self._post("crossed_paths", rows)
