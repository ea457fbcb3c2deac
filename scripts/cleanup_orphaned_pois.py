#!/usr/bin/env python3
"""Remove POIs that no track references and nobody owns.

Dry-run is the default behavior. Pass --execute to perform deletion. Meant to
run periodically (cron); it is safe to run concurrently with uploads because
recently touched POIs are kept for the grace period.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import POI_ORPHAN_GRACE_DAYS
from db.manager import db_manager
from pois.services import PoiService


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Delete ownerless POIs that are not linked to any track.",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Apply deletion. Without this flag, the script only reports what would be deleted.",
    )
    parser.add_argument(
        "--grace-days",
        type=int,
        default=POI_ORPHAN_GRACE_DAYS,
        help="Only delete POIs not updated for this many days.",
    )
    parser.add_argument(
        "--max-preview",
        type=int,
        default=20,
        help="Maximum number of POIs to print in dry-run mode.",
    )
    return parser.parse_args()


async def main() -> int:
    args = parse_args()
    load_dotenv()
    await db_manager.init_beanie()

    try:
        orphans = await PoiService.find_orphaned_pois(args.grace_days)
        mode = "EXECUTE" if args.execute else "DRY-RUN"
        print(f"[{mode}] {len(orphans)} orphaned POI(s) older than {args.grace_days} days")

        if not args.execute:
            preview_limit = max(0, args.max_preview)
            for poi in orphans[:preview_limit]:
                print(f"  - {poi.id}: {poi.name} ({poi.lat:.5f}, {poi.lon:.5f})")
            if len(orphans) > preview_limit:
                print(f"  ... and {len(orphans) - preview_limit} more")
            print("No changes were made. Re-run with --execute to apply.")
            return 0

        deleted = await PoiService.cleanup_orphaned_pois(args.grace_days)
        print(f"Deleted {deleted} POI(s).")
        return 0
    finally:
        await db_manager.cleanup_connections()


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
