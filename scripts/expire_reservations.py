#!/usr/bin/env python3
"""
Reservation Expiry Script

Expires every active reservation of an organization older than a threshold.
Each expired reservation releases its vehicle (back to 'publicado' unless
another reservation still holds it) in its own database transaction.

Usage:
    python expire_reservations.py --max-age-days 15 --actor-id <uuid> --org-id <uuid>
    python expire_reservations.py --max-age-days 15 --actor-id <uuid> --org-id <uuid> --dry-run
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from uuid import UUID

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.actor import Actor
from domain.errors import LifecycleError
from services.audit_service import AUDIT_MODE_SYNC, AuditSink, set_audit_sink
from services.reservation_service import ExpiryReport, expire_stale_reservations


def print_summary(report: ExpiryReport, *, dry_run: bool) -> None:
    print("=" * 50)
    print("RESERVATION EXPIRY" + (" (DRY RUN)" if dry_run else ""))
    print("=" * 50)
    print(f"Stale reservations found:  {len(report.candidates)}")
    if dry_run:
        for reservation_id in report.candidates:
            print(f"  would expire {reservation_id}")
    else:
        print(f"Expired:                   {len(report.expired)}")
        print(f"Failed:                    {len(report.failed)}")
        for reservation_id, message in report.failed.items():
            print(f"  {reservation_id}: {message}")
    print("=" * 50)


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Expire stale active reservations and release their vehicles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Expire reservations older than 15 days
  python expire_reservations.py --max-age-days 15 --actor-id <uuid> --org-id <uuid>

  # List what would be expired
  python expire_reservations.py --max-age-days 15 --actor-id <uuid> --org-id <uuid> --dry-run
        """
    )

    parser.add_argument(
        "--max-age-days",
        type=int,
        required=True,
        help="Expire active reservations created more than this many days ago"
    )

    parser.add_argument(
        "--actor-id",
        type=UUID,
        required=True,
        help="User id recorded as the one who expired the reservations"
    )

    parser.add_argument(
        "--org-id",
        type=UUID,
        required=True,
        help="Organization whose reservations are checked"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only list the reservations that would be expired"
    )

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")
    set_audit_sink(AuditSink(AUDIT_MODE_SYNC))

    try:
        report = expire_stale_reservations(
            args.max_age_days,
            Actor(actor_id=args.actor_id, org_id=args.org_id),
            dry_run=args.dry_run,
        )
    except KeyboardInterrupt:
        print("\n\nExpiry interrupted by user")
        return 130
    except LifecycleError as e:
        print(f"\nERROR [{e.code}]: {e.message}", file=sys.stderr)
        return 1

    print_summary(report, dry_run=args.dry_run)
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
