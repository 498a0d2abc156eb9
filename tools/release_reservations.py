#!/usr/bin/env python3
"""Release stands whose reservation has ended.

The ``is_reserved`` flag stored on each stand mirrors its reservation
history.  Run this script periodically (cron, systemd timer) so that stands
become available again once their reservation is over, even when nobody opens
the application in the meantime.

Usage:
    python tools/release_reservations.py [--dry-run]
"""

import argparse
import os
import sys
from datetime import datetime

# Ensure repository root is in import path
ROOT_DIR = os.path.dirname(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from app import app, release_expired_reservations
from models import Stand


def preview(now: datetime) -> int:
    """Print the stands that would be released and return their number."""
    stands = Stand.query.filter(
        Stand.is_reserved.is_(True),
        Stand.reserved_until <= now,
    ).all()
    if not stands:
        print("Aucun présentoir à libérer.")
        return 0
    print(f"[DRY-RUN] {len(stands)} présentoir(s) seraient libéré(s):")
    for stand in stands:
        print(f"  - ID {stand.id}: {stand.name} (réservé par {stand.reserved_by} "
              f"jusqu'au {stand.reserved_until:%d/%m/%Y %H:%M})")
    return len(stands)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Libère les présentoirs dont la réservation est terminée"
    )
    parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="Afficher ce qui serait libéré sans effectuer de modifications"
    )
    args = parser.parse_args()

    with app.app_context():
        now = datetime.utcnow()
        if args.dry_run:
            preview(now)
        else:
            released = release_expired_reservations(now)
            print(f"{released} présentoir(s) libéré(s).")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
