"""
Import a gift spreadsheet export into the configured store.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from giftlist.csv_import import CsvImportError, import_gifts, parse_gift_csv
from giftlist.dependencies import get_db_client

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Import gifts from a CSV export")
    parser.add_argument("path", type=Path, help="CSV file to import")
    parser.add_argument(
        "-u",
        "--user",
        required=True,
        help="User id that will own the imported group",
    )
    parser.add_argument(
        "--group-name",
        default="Imported Gifts",
        help="Name of the group created for the import",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and report counts without writing anything",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )

    try:
        parsed = parse_gift_csv(args.path.read_text(encoding="utf-8-sig"))
    except CsvImportError as exc:
        logger.error("Cannot import %s: %s", args.path, exc)
        return 1

    if args.dry_run:
        logger.info(
            "Would import %d members and %d gifts (%d rows skipped)",
            len(parsed.members),
            parsed.gift_count,
            parsed.skipped_rows,
        )
        return 0

    result = import_gifts(get_db_client(), args.user, parsed, group_name=args.group_name)
    logger.info("Created group %s (%s)", result.group.name, result.group.slug)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
