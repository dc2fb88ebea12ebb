"""
Analytics aggregation over a snapshot of groups, members and gifts.

Both entry points are pure: they only read their inputs and build new result
objects, so callers may re-run them whenever the underlying data changes.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence

from shared.analytics import (
    BudgetAnalytics,
    GiftAnalytics,
    GroupBudget,
    MonthlySpending,
    PriceRangeBreakdown,
    StatusCount,
    TagCount,
)
from shared.price_ranges import ANALYTICS_PRICE_RANGES
from shared.types import Gift, GiftStatus, Group, Member, PriceRange


def _money(value: float | int | None) -> Decimal:
    # Via str() so 199.99 + 45.99 sums to exactly 245.98.
    return Decimal(str(value or 0))


def _sum_costs(gifts: Iterable[Gift]) -> Decimal:
    return sum((_money(gift.cost) for gift in gifts), Decimal(0))


def price_range_breakdown(
    gifts: Sequence[Gift],
    ranges: Sequence[PriceRange] = ANALYTICS_PRICE_RANGES,
) -> list[PriceRangeBreakdown]:
    """Bucket gifts by cost; every range is emitted, empty ones included."""
    rows = []
    for price_range in ranges:
        in_range = [gift for gift in gifts if price_range.contains(gift.cost)]
        rows.append(
            PriceRangeBreakdown(
                range=price_range,
                count=len(in_range),
                total_spent=float(_sum_costs(in_range)),
            )
        )
    return rows


def monthly_spending(gifts: Sequence[Gift]) -> list[MonthlySpending]:
    """Spend and gift count per ``YYYY-MM`` of ``created_at``, oldest first."""
    spent: dict[str, Decimal] = {}
    counts: dict[str, int] = {}
    for gift in gifts:
        month = gift.created_at.strftime("%Y-%m")
        spent[month] = spent.get(month, Decimal(0)) + _money(gift.cost)
        counts[month] = counts.get(month, 0) + 1
    return [
        MonthlySpending(month=month, spent=float(spent[month]), gift_count=counts[month])
        for month in sorted(spent)
    ]


def compute_budget_analytics(
    groups: Sequence[Group],
    members: Sequence[Member],
    gifts: Sequence[Gift],
) -> BudgetAnalytics:
    """
    Spend versus budget per group, plus a price-range breakdown of all gifts.

    Groups keep their input order. ``remaining_amount`` is not clamped, so a
    negative value means the user is over budget.
    """
    member_ids_by_group: dict[str, set[str]] = {}
    for member in members:
        member_ids_by_group.setdefault(member.group_id, set()).add(member.id)

    breakdown: list[GroupBudget] = []
    total_budget = Decimal(0)
    spent_amount = Decimal(0)
    for group in groups:
        member_ids = member_ids_by_group.get(group.id, set())
        spent = _sum_costs(gift for gift in gifts if gift.member_id in member_ids)
        budget = _money(group.budget)
        total_budget += budget
        spent_amount += spent
        breakdown.append(
            GroupBudget(
                group_id=group.id,
                group_name=group.name,
                budget=float(budget),
                spent=float(spent),
            )
        )

    return BudgetAnalytics(
        total_budget=float(total_budget),
        spent_amount=float(spent_amount),
        remaining_amount=float(total_budget - spent_amount),
        group_breakdown=breakdown,
        price_range_breakdown=price_range_breakdown(gifts),
    )


def compute_gift_analytics(gifts: Sequence[Gift]) -> GiftAnalytics:
    """Counts by status (all three, fixed order), tag (first seen), bucket and month."""
    status_counts = {status: 0 for status in GiftStatus}
    tag_counts: dict[str, int] = {}
    for gift in gifts:
        status_counts[GiftStatus(gift.status)] += 1
        for tag in dict.fromkeys(gift.tags or []):
            tag_counts[tag] = tag_counts.get(tag, 0) + 1

    return GiftAnalytics(
        total_gifts=len(gifts),
        status_breakdown=[
            StatusCount(status=status, count=count)
            for status, count in status_counts.items()
        ],
        tag_breakdown=[TagCount(tag=tag, count=count) for tag, count in tag_counts.items()],
        price_range_breakdown=price_range_breakdown(gifts),
        monthly_spending=monthly_spending(gifts),
    )
