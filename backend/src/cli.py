"""Command-line entry point for one mystery dinner matchmaking run."""

from __future__ import annotations

import argparse
import asyncio
import json
import random
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv
from loguru import logger

from config import Configuration
from services.matchmaking import run_matchmaking
from services.report import build_error_response, build_response, build_summary
from services.store import StoreError, build_store


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run matchmaking once and print the result; 1 on a hard failure."""
    parser = argparse.ArgumentParser(
        description="Group onboarded users into mystery dinners and create the events.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  mystery-dinner-run
  mystery-dinner-run --dry-run --seed-file profiles.json
  mystery-dinner-run --dry-run --seed-file profiles.json --venue-seed 7 --format text
""",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Environment file to load before reading configuration (default: .env)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use the in-memory store instead of Supabase; nothing is written remotely",
    )
    parser.add_argument(
        "--seed-file",
        type=Path,
        help="JSON list of profile rows for the in-memory store",
    )
    parser.add_argument(
        "--venue-seed",
        type=int,
        default=None,
        help="Seed for venue selection, for reproducible runs",
    )
    parser.add_argument(
        "--format",
        choices=("json", "text"),
        default="json",
        help="Output format (default: json)",
    )

    args = parser.parse_args(argv)

    if args.env_file.exists():
        load_dotenv(args.env_file)

    overrides: dict = {"venue_seed": args.venue_seed}
    if args.dry_run:
        overrides["store_backend"] = "memory"
    if args.seed_file:
        if not args.seed_file.exists():
            print(f"Error: seed file not found: {args.seed_file}", file=sys.stderr)
            return 1
        overrides["seed_profiles_path"] = str(args.seed_file)

    try:
        cfg = Configuration.from_env(overrides)
        store = build_store(cfg)
        try:
            report = asyncio.run(run_matchmaking(store, cfg, rng=random.Random(cfg.venue_seed)))
        finally:
            store.close()
    except (ValueError, StoreError) as exc:
        logger.error("mystery dinner run failed: {}", exc)
        print(json.dumps(build_error_response(str(exc))))
        return 1

    if args.format == "text":
        print(build_summary(report))
    else:
        print(json.dumps(build_response(report), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
