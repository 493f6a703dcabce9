from __future__ import annotations

import asyncio
from unittest.mock import patch

from fastapi.testclient import TestClient

import main
from config import Configuration
from services.store import InMemoryStore, StoreError


def _profiles():
    return [
        {"id": "U1", "location_lat": 40.0, "location_lng": -73.0, "location_city": "New York",
         "dining_style": "adventurous", "dietary_preferences": ["vegan"], "onboarding_completed": True},
        {"id": "U2", "location_lat": 40.01, "location_lng": -73.01, "location_city": "New York",
         "dining_style": "adventurous", "dietary_preferences": ["vegan"], "onboarding_completed": True},
        {"id": "U3", "location_lat": 10.0, "location_lng": 10.0, "location_city": "Lagos",
         "dining_style": "comfort_food", "dietary_preferences": [], "onboarding_completed": True},
    ]


class BrokenPoolStore(InMemoryStore):
    def list_eligible_users(self):
        raise StoreError("profiles 500: database unavailable")


class ClosingStore(InMemoryStore):
    closed = False

    def close(self) -> None:
        self.closed = True


def _client(cfg: Configuration | None = None) -> TestClient:
    main.app.dependency_overrides[main.get_config] = lambda: cfg or Configuration(store_backend="memory")
    return TestClient(main.app)


def teardown_function() -> None:
    main.app.dependency_overrides.clear()


def test_run_creates_events() -> None:
    store = InMemoryStore(_profiles())
    with patch("main.build_store", return_value=store):
        resp = _client().post("/mystery-dinner")

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Created 1 mystery dinner events"
    assert len(body["events"]) == 1
    assert body["events"][0]["participantCount"] == 2
    assert "New York" in body["events"][0]["location"]
    assert body["failures"] == []
    assert len(store.crossed_paths) == 1


def test_run_skipped_for_small_pool() -> None:
    with patch("main.build_store", return_value=InMemoryStore(_profiles()[:1])):
        resp = _client().get("/mystery-dinner")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Not enough eligible users for mystery dinners"}


def test_pool_read_failure_returns_500() -> None:
    with patch("main.build_store", return_value=BrokenPoolStore()):
        resp = _client().post("/mystery-dinner")
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "profiles 500: database unavailable"}


def test_missing_supabase_config_returns_500() -> None:
    resp = _client(Configuration(store_backend="supabase")).post("/mystery-dinner")
    assert resp.status_code == 500
    assert resp.json()["success"] is False
    assert "SUPABASE_URL" in resp.json()["error"]


def test_options_returns_empty_200() -> None:
    resp = _client().options("/mystery-dinner")
    assert resp.status_code == 200
    assert resp.content == b""
    assert resp.headers["access-control-allow-origin"] == "*"


def test_cors_header_on_run() -> None:
    with patch("main.build_store", return_value=InMemoryStore(_profiles())):
        resp = _client().post("/mystery-dinner", headers={"Origin": "https://app.example.com"})
    assert resp.headers["access-control-allow-origin"] == "*"


def test_healthz() -> None:
    assert _client().get("/healthz").json() == {"status": "ok"}


def test_overlapping_run_is_skipped_without_writes() -> None:
    store = InMemoryStore(_profiles())
    asyncio.run(main._run_lock.acquire())
    try:
        with patch("main.build_store", return_value=store) as build:
            resp = _client().post("/mystery-dinner")
    finally:
        main._run_lock.release()

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": main.ALREADY_RUNNING_MESSAGE}
    build.assert_not_called()
    assert store.events == {}
    assert store.rsvps == []


def test_store_is_closed_after_run() -> None:
    store = ClosingStore(_profiles())
    with patch("main.build_store", return_value=store):
        resp = _client().post("/mystery-dinner")
    assert resp.status_code == 200
    assert store.closed is True


def test_store_is_closed_when_pool_read_fails() -> None:
    class BrokenClosingStore(BrokenPoolStore, ClosingStore):
        pass

    store = BrokenClosingStore()
    with patch("main.build_store", return_value=store):
        resp = _client().post("/mystery-dinner")
    assert resp.status_code == 500
    assert store.closed is True
