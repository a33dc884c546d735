"""
Seed script for RapidAid facilities.

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured store: python scripts/seed_db.py --apply
  - Use another seed file: python scripts/seed_db.py --file path/to/seed.json --apply

Behavior:
  - Loads `db_seed.json` from the repo root: {"facilities": [FacilityCreate, ...]}
  - Registers each facility through the facility directory wired by
    `build_alert_service()` (Firestore, or in-process with USE_MOCK_DB).

NOTE: In-process stores vanish when this script exits; seeding only
persists against Firestore.
"""

import argparse
import asyncio
import json
import os

from pydantic import ValidationError

from rapidaid.models.facility import FacilityCreate
from rapidaid.services.alert_service import build_alert_service


def load_seed(path: str) -> list:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f).get("facilities", [])


async def write_facilities(entries: list, apply: bool = False) -> int:
    directory = build_alert_service().facility_directory if apply else None
    written = 0
    for entry in entries:
        try:
            request = FacilityCreate.model_validate(entry)
        except ValidationError as e:
            print(f"Skipping invalid facility {entry.get('name', '?')}: {e}")
            continue
        print(f"Preparing: {request.type.value}/{request.name}")
        if directory is None:
            continue
        facility = await directory.register(request)
        print(f"Wrote: facilities/{facility.id}")
        written += 1
    return written


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to the store instead of dry-run")
    parser.add_argument("--file", default=os.path.join(os.getcwd(), "db_seed.json"), help="Seed file path")
    args = parser.parse_args()

    if not os.path.exists(args.file):
        print(f"Seed file not found: {args.file}")
        return

    written = asyncio.run(write_facilities(load_seed(args.file), apply=args.apply))

    if args.apply:
        print(f"Seeding completed ({written} facilities).")
    else:
        print("Dry run complete. Re-run with --apply to write to the store.")


if __name__ == "__main__":
    main()
