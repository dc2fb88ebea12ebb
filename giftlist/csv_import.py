"""
Import of gift spreadsheets exported as CSV.

Every import lands in a fresh "Imported Gifts" group: one member per
recipient and one gift per row that names a gift.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from giftlist.db import DbClient
from shared.types import MAX_PRIORITY, MIN_PRIORITY, GiftStatus, Group

logger = logging.getLogger(__name__)

RECIPIENT = "Recipient Name"
GIFT = "Gift"
OVERALL_BUDGET = "Overall Budget"
ACTUAL_COST = "Actual Cost"
PURCHASE_STATUS = "Purchase Status"
STORE = "Store"
CATEGORY = "Gift Category"
PRIORITY = "Gift Priority"
ORDER_NUMBER = "Order #"
DELIVERY_STATUS = "Delivery Status"
TOTAL_COUNT = "Total Gifts (Count)"
TOTAL_SPENT = "Total Spent (Sum)"

REQUIRED_COLUMNS = (RECIPIENT, GIFT)


class CsvImportError(ValueError):
    """Raised when the upload is not a gift spreadsheet."""


@dataclass
class ImportedGift:
    name: str
    cost: float
    status: GiftStatus
    priority: Optional[int] = None
    notes: Optional[str] = None


@dataclass
class ImportedMember:
    name: str
    budget: float = 0.0
    total_count: int = 0
    total_spent: float = 0.0
    gifts: list[ImportedGift] = field(default_factory=list)

    @property
    def notes(self) -> Optional[str]:
        if self.total_count <= 0:
            return None
        return f"Total Gifts: {self.total_count}\nTotal Spent: ${self.total_spent:.2f}"


@dataclass
class ParsedImport:
    members: list[ImportedMember]
    skipped_rows: int = 0

    @property
    def gift_count(self) -> int:
        return sum(len(member.gifts) for member in self.members)


@dataclass
class ImportResult:
    group: Group
    members: int
    gifts: int
    skipped_rows: int


def _parse_float(value: str) -> Optional[float]:
    cleaned = (value or "").replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def _parse_int(value: str) -> Optional[int]:
    number = _parse_float(value)
    return int(number) if number is not None else None


def map_status(purchase_status: str, delivery_status: str) -> GiftStatus:
    status = (purchase_status or "").strip().lower()
    delivery = (delivery_status or "").strip().lower()

    if not status or "need to sort" in status:
        return GiftStatus.PLANNED
    if "purchased" in status and "delivering" in delivery:
        return GiftStatus.PURCHASED
    if "delivered" in status or "transferred" in status or delivery == "delivered":
        return GiftStatus.DELIVERED
    if "purchased" in status:
        return GiftStatus.PURCHASED
    return GiftStatus.PLANNED


def _gift_notes(row: dict[str, str]) -> Optional[str]:
    parts = [
        f"Store: {row[STORE]}" if row.get(STORE) else None,
        f"Category: {row[CATEGORY]}" if row.get(CATEGORY) else None,
        f"Order #: {row[ORDER_NUMBER]}" if row.get(ORDER_NUMBER) else None,
        f"Delivery: {row[DELIVERY_STATUS]}" if row.get(DELIVERY_STATUS) else None,
    ]
    notes = "\n".join(part for part in parts if part)
    return notes or None


def _priority(value: str) -> Optional[int]:
    priority = _parse_int(value)
    if priority is None:
        return None
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        logger.debug("Dropping out-of-range priority %s", priority)
        return None
    return priority


def parse_gift_csv(text: str) -> ParsedImport:
    """Group spreadsheet rows by recipient, keeping first-seen order."""
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if not header:
        raise CsvImportError("CSV is empty")
    columns = [name.strip() for name in header]
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        raise CsvImportError(f"Missing columns: {', '.join(missing)}")

    members: dict[str, ImportedMember] = {}
    skipped = 0
    for values in reader:
        if not any(value.strip() for value in values):
            continue
        row = dict(zip(columns, (value.strip() for value in values)))
        recipient = row.get(RECIPIENT, "")
        if not recipient:
            skipped += 1
            continue

        member = members.setdefault(recipient, ImportedMember(name=recipient))
        member.total_count = max(member.total_count, _parse_int(row.get(TOTAL_COUNT, "")) or 0)
        member.total_spent = max(member.total_spent, _parse_float(row.get(TOTAL_SPENT, "")) or 0.0)
        member.budget = max(member.budget, _parse_float(row.get(OVERALL_BUDGET, "")) or 0.0)

        gift_name = row.get(GIFT, "")
        if gift_name:
            member.gifts.append(
                ImportedGift(
                    name=gift_name,
                    cost=max(_parse_float(row.get(ACTUAL_COST, "")) or 0.0, 0.0),
                    status=map_status(
                        row.get(PURCHASE_STATUS, ""), row.get(DELIVERY_STATUS, "")
                    ),
                    priority=_priority(row.get(PRIORITY, "")),
                    notes=_gift_notes(row),
                )
            )

    return ParsedImport(members=list(members.values()), skipped_rows=skipped)


def import_gifts(
    db: DbClient,
    user_id: str,
    parsed: ParsedImport,
    *,
    group_name: str = "Imported Gifts",
    today: Optional[date] = None,
) -> ImportResult:
    today = today or date.today()
    group = db.create_group(
        user_id,
        name=group_name,
        description=f"Imported from CSV on {today.isoformat()}",
    )
    gift_total = 0
    for imported in parsed.members:
        member = db.create_member(
            user_id,
            group.id,
            name=imported.name,
            budget=imported.budget or None,
            notes=imported.notes,
        )
        for gift in imported.gifts:
            db.create_gift(
                user_id,
                member.id,
                name=gift.name,
                cost=gift.cost,
                status=gift.status,
                priority=gift.priority,
                notes=gift.notes,
            )
            gift_total += 1

    logger.info(
        "Imported %d members and %d gifts into group %s for %s",
        len(parsed.members),
        gift_total,
        group.slug,
        user_id,
    )
    return ImportResult(
        group=group,
        members=len(parsed.members),
        gifts=gift_total,
        skipped_rows=parsed.skipped_rows,
    )
