from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field

from utils import mask_secret


class Configuration(BaseModel):
    # Supabase / PostgREST
    supabase_url: Optional[str] = Field(default=None)
    supabase_service_role_key: Optional[str] = Field(default=None)
    supabase_timeout: int = Field(default=15)
    supabase_page_size: int = Field(default=1000)

    # "supabase" or "memory"
    store_backend: str = Field(default="supabase")
    seed_profiles_path: Optional[str] = Field(default=None)

    # Matching
    max_distance_km: float = Field(default=50.0)
    compatibility_threshold: float = Field(default=0.3)
    max_group_size: int = Field(default=6)
    min_group_size: int = Field(default=2)

    # Events
    event_lead_days: int = Field(default=7)
    venue_seed: Optional[int] = Field(default=None)

    # Run control
    max_concurrent_groups: int = Field(default=4)
    run_timeout_sec: float = Field(default=300.0)

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "supabase_url": os.getenv("SUPABASE_URL"),
            "supabase_service_role_key": os.getenv("SUPABASE_SERVICE_ROLE_KEY"),
            "supabase_timeout": os.getenv("SUPABASE_TIMEOUT"),
            "supabase_page_size": os.getenv("SUPABASE_PAGE_SIZE"),
            "store_backend": os.getenv("STORE_BACKEND"),
            "seed_profiles_path": os.getenv("SEED_PROFILES_PATH"),
            "max_distance_km": os.getenv("MATCH_MAX_DISTANCE_KM"),
            "compatibility_threshold": os.getenv("MATCH_COMPATIBILITY_THRESHOLD"),
            "max_group_size": os.getenv("MATCH_MAX_GROUP_SIZE"),
            "min_group_size": os.getenv("MATCH_MIN_GROUP_SIZE"),
            "event_lead_days": os.getenv("EVENT_LEAD_DAYS"),
            "venue_seed": os.getenv("VENUE_SEED"),
            "max_concurrent_groups": os.getenv("MATCH_CONCURRENCY"),
            "run_timeout_sec": os.getenv("MATCH_RUN_TIMEOUT_SEC"),
        }

        for k, v in env_map.items():
            if v is None or v == "":
                continue
            if k == "store_backend":
                raw[k] = v.strip().lower()
            else:
                raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    def require_store(self) -> None:
        if self.store_backend == "memory":
            return
        if self.store_backend != "supabase":
            raise ValueError(f"unknown STORE_BACKEND: {self.store_backend}")
        if not self.supabase_url:
            raise ValueError("SUPABASE_URL is required")
        if not self.supabase_service_role_key:
            raise ValueError("SUPABASE_SERVICE_ROLE_KEY is required")

    def log_summary(self) -> str:
        return (
            "store=%s supabase=%s timeout=%s radius_km=%s threshold=%s group=%s..%s concurrency=%s service_key=%s"
            % (
                self.store_backend,
                self.supabase_url or "unset",
                self.supabase_timeout,
                self.max_distance_km,
                self.compatibility_threshold,
                self.min_group_size,
                self.max_group_size,
                self.max_concurrent_groups,
                mask_secret(self.supabase_service_role_key),
            )
        )

    def rest_base_url(self) -> str:
        base = (self.supabase_url or "").rstrip("/")
        if not base.endswith("/rest/v1"):
            base = f"{base}/rest/v1"
        return base
