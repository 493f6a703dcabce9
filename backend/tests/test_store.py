from __future__ import annotations

import json

import pytest

from config import Configuration
from services.store import InMemoryStore, StoreError, build_store, parse_profile
from services.supabase import SupabaseClient


def test_parse_profile_normalizes_fields() -> None:
    user = parse_profile(
        {
            "id": 17,
            "location_lat": "40.5",
            "location_lng": -73.2,
            "location_city": "",
            "dining_style": "health_conscious",
            "dietary_preferences": ["vegan", "not_a_diet"],
            "onboarding_completed": True,
        }
    )
    assert user is not None
    assert user.id == "17"
    assert user.lat == 40.5
    assert user.city is None
    assert user.dietary_preferences == frozenset({"vegan"})
    assert user.is_eligible


def test_parse_profile_without_id() -> None:
    assert parse_profile({"location_lat": 1.0}) is None


def test_in_memory_store_filters_eligibility() -> None:
    store = InMemoryStore(
        [
            {"id": "a", "location_lat": 1.0, "location_lng": 2.0, "onboarding_completed": True},
            {"id": "b", "location_lat": 1.0, "location_lng": None, "onboarding_completed": True},
            {"id": "c", "location_lat": 1.0, "location_lng": 2.0, "onboarding_completed": None},
        ]
    )
    assert [u.id for u in store.list_eligible_users()] == ["a"]


def test_in_memory_insert_assigns_ids() -> None:
    store = InMemoryStore()
    first = store.insert_event({"name": "x"})
    second = store.insert_event({"name": "y"})
    assert first["id"] != second["id"]
    assert set(store.events) == {first["id"], second["id"]}


def test_from_json_accepts_list_or_wrapped(tmp_path) -> None:
    rows = [{"id": "a", "location_lat": 1.0, "location_lng": 2.0, "onboarding_completed": True}]
    listed = tmp_path / "list.json"
    listed.write_text(json.dumps(rows), encoding="utf-8")
    wrapped = tmp_path / "wrapped.json"
    wrapped.write_text(json.dumps({"profiles": rows}), encoding="utf-8")

    assert len(InMemoryStore.from_json(listed).profiles) == 1
    assert len(InMemoryStore.from_json(wrapped).profiles) == 1


def test_from_json_rejects_bad_files(tmp_path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError):
        InMemoryStore.from_json(bad)
    with pytest.raises(StoreError):
        InMemoryStore.from_json(tmp_path / "missing.json")


def test_build_store_selects_backend(tmp_path) -> None:
    assert isinstance(build_store(Configuration(store_backend="memory")), InMemoryStore)

    seed = tmp_path / "seed.json"
    seed.write_text("[]", encoding="utf-8")
    seeded = build_store(Configuration(store_backend="memory", seed_profiles_path=str(seed)))
    assert isinstance(seeded, InMemoryStore)

    cfg = Configuration(supabase_url="https://x.supabase.co", supabase_service_role_key="k")
    assert isinstance(build_store(cfg), SupabaseClient)

    with pytest.raises(ValueError):
        build_store(Configuration())
