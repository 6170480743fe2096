#!/usr/bin/env python3
"""
Check vehicle lifecycle consistency.

Compares each vehicle's stage with its active reservations and sales and
prints the disagreements. Read-only: nothing is repaired.

Usage:
    python check_vehicle_consistency.py --vehicle-id <uuid>
    python check_vehicle_consistency.py --org-id <uuid>
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List
from uuid import UUID

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.actor import Actor
from domain.errors import LifecycleError
from repositories.vehicle_repository import get_vehicle_by_id, list_vehicles_by_org
from services.stage_service import ConsistencyReport, check_vehicle_consistency

# Read-only runs are not attributed to a user.
SYSTEM_ACTOR_ID = UUID(int=0)


def check_vehicles(vehicle_ids: List[UUID], org_id: UUID) -> List[ConsistencyReport]:
    actor = Actor(actor_id=SYSTEM_ACTOR_ID, org_id=org_id)
    return [check_vehicle_consistency(vehicle_id, actor) for vehicle_id in vehicle_ids]


def print_reports(reports: List[ConsistencyReport]) -> None:
    inconsistent = [r for r in reports if not r.is_consistent]

    print("=" * 50)
    print("VEHICLE CONSISTENCY")
    print("=" * 50)
    print(f"Vehicles checked:          {len(reports)}")
    print(f"Inconsistent:              {len(inconsistent)}")
    print("=" * 50)

    for report in inconsistent:
        print(f"\n{report.vehicle_id} (stage '{report.stage_code}')")
        for issue in report.issues:
            print(f"  - {issue}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Report vehicles whose stage disagrees with their reservations/sales")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--vehicle-id", type=UUID, help="Check a single vehicle")
    target.add_argument("--org-id", type=UUID, help="Check every non-archived vehicle of an organization")
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s %(message)s")

    try:
        if args.vehicle_id is not None:
            vehicle = get_vehicle_by_id(args.vehicle_id)
            if vehicle is None:
                print(f"Vehicle not found: {args.vehicle_id}", file=sys.stderr)
                return 1
            reports = check_vehicles([vehicle.vehicle_id], vehicle.org_id)
        else:
            vehicles = list_vehicles_by_org(args.org_id)
            reports = check_vehicles([v.vehicle_id for v in vehicles], args.org_id)
    except LifecycleError as e:
        print(f"\nERROR [{e.code}]: {e.message}", file=sys.stderr)
        return 1

    print_reports(reports)
    return 0 if all(r.is_consistent for r in reports) else 1


if __name__ == "__main__":
    sys.exit(main())
