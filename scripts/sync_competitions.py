#!/usr/bin/env python3
"""
Sync competitions from football-data.org.

Usage:
    # Full sync (teams, season, schedule) of every configured competition
    python scripts/sync_competitions.py sync

    # Full sync of one competition
    python scripts/sync_competitions.py sync --competition champions_league

    # Refresh recent results and score predictions
    python scripts/sync_competitions.py results --competition premier_league

    # Row counts per competition
    python scripts/sync_competitions.py status

    # Create tables first (fresh database)
    python scripts/sync_competitions.py --init-db sync
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def run(command: str, competition: str | None, init: bool) -> dict:
    from scoreline.config import get_settings
    from scoreline.database import AsyncSessionLocal, close_db, init_db
    from scoreline.etl.pipeline import create_sync_pipeline

    settings = get_settings()
    competitions = [competition] if competition else settings.sync_competitions

    if init:
        await init_db()

    try:
        async with AsyncSessionLocal() as session:
            pipeline = create_sync_pipeline(session)
            try:
                if command == "sync":
                    return await pipeline.sync_all(competitions)
                if command == "results":
                    return {c: await pipeline.refresh_results(c) for c in competitions}
                return await pipeline.get_sync_status()
            finally:
                await pipeline.provider.close()
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Sync competitions from football-data.org")
    parser.add_argument("command", choices=["sync", "results", "status"])
    parser.add_argument(
        "--competition",
        help="Competition key (default: every competition in SYNC_COMPETITIONS)",
    )
    parser.add_argument("--init-db", action="store_true", help="Create tables before running")
    args = parser.parse_args()

    result = asyncio.run(run(args.command, args.competition, args.init_db))
    print(json.dumps(result, indent=2, default=str))

    if args.command == "sync" and any("error" in r for r in result.values()):
        sys.exit(1)


if __name__ == "__main__":
    main()
