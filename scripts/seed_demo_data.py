"""
Seed the configured store with the first-time setup demo data for a user.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from giftlist.demo_data import seed_demo_data
from giftlist.dependencies import get_db_client
from shared.price_ranges import default_budget_preference

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed gift list demo data")
    parser.add_argument(
        "-u",
        "--user",
        required=True,
        help="User id that will own the demo group",
    )
    parser.add_argument(
        "--default-budget",
        type=float,
        default=None,
        help="Also save a budget preference with this default budget",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )

    db = get_db_client()
    if args.default_budget is not None:
        db.save_preference(
            args.user, default_budget_preference(default_budget=args.default_budget)
        )
    group = seed_demo_data(db, args.user)
    logger.info("Demo group %s (%s) ready for %s", group.name, group.id, args.user)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
