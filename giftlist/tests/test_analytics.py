import copy
import unittest
from datetime import datetime, timezone

from giftlist.analytics import compute_budget_analytics, compute_gift_analytics
from shared.types import Gift, GiftStatus, Group, Member

CREATED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_group(group_id, name="Family", budget=None):
    return Group(
        id=group_id,
        user_id="u1",
        name=name,
        slug=name.lower(),
        created_at=CREATED,
        updated_at=CREATED,
        budget=budget,
    )


def make_member(member_id, group_id):
    return Member(
        id=member_id,
        group_id=group_id,
        name=member_id,
        slug=member_id,
        created_at=CREATED,
        updated_at=CREATED,
    )


def make_gift(gift_id, member_id, cost, status=GiftStatus.PLANNED, tags=None, created_at=CREATED):
    return Gift(
        id=gift_id,
        member_id=member_id,
        name=gift_id,
        cost=cost,
        status=status,
        created_at=created_at,
        updated_at=created_at,
        tags=tags or [],
    )


class BudgetAnalyticsTests(unittest.TestCase):
    def setUp(self):
        self.groups = [make_group("g1", budget=500)]
        self.members = [make_member("m1", "g1")]
        self.gifts = [
            make_gift("x1", "m1", 199.99, GiftStatus.PURCHASED),
            make_gift("x2", "m1", 45.99, GiftStatus.PLANNED),
        ]

    def test_family_scenario(self):
        report = compute_budget_analytics(self.groups, self.members, self.gifts)
        self.assertEqual(report.total_budget, 500)
        self.assertEqual(report.spent_amount, 245.98)
        self.assertEqual(report.remaining_amount, 254.02)
        self.assertEqual(len(report.group_breakdown), 1)
        row = report.group_breakdown[0]
        self.assertEqual(
            (row.group_id, row.group_name, row.budget, row.spent),
            ("g1", "Family", 500, 245.98),
        )

        buckets = {r.range.label: (r.count, r.total_spent) for r in report.price_range_breakdown}
        self.assertEqual(buckets["$25-$50"], (1, 45.99))
        self.assertEqual(buckets["$100-$250"], (1, 199.99))
        for label in ("Under $25", "$50-$100", "$250-$500", "$500+"):
            self.assertEqual(buckets[label], (0, 0))

    def test_buckets_in_fixed_order(self):
        report = compute_budget_analytics([], [], [])
        self.assertEqual(
            [(r.range.min, r.range.max) for r in report.price_range_breakdown],
            [(0, 25), (25, 50), (50, 100), (100, 250), (250, 500), (500, None)],
        )

    def test_boundary_cost_falls_in_upper_bucket(self):
        gifts = [make_gift("a", "m1", 50.0), make_gift("b", "m1", 25.0), make_gift("c", "m1", 500)]
        report = compute_budget_analytics(self.groups, self.members, gifts)
        counts = {r.range.label: r.count for r in report.price_range_breakdown}
        self.assertEqual(counts["$25-$50"], 1)
        self.assertEqual(counts["$50-$100"], 1)
        self.assertEqual(counts["$500+"], 1)
        self.assertEqual(counts["Under $25"], 0)

    def test_bucket_counts_partition_gifts(self):
        costs = [0, 0.01, 24.99, 25, 49.99, 99.5, 100, 249.99, 250, 499.99, 500, 12000]
        gifts = [make_gift(f"x{i}", "m1", cost) for i, cost in enumerate(costs)]
        report = compute_gift_analytics(gifts)
        self.assertEqual(sum(r.count for r in report.price_range_breakdown), len(costs))
        self.assertEqual(report.total_gifts, len(costs))

    def test_remaining_goes_negative_when_over_budget(self):
        groups = [make_group("g1", budget=100)]
        gifts = [make_gift("x1", "m1", 150)]
        report = compute_budget_analytics(groups, self.members, gifts)
        self.assertEqual(report.spent_amount, 150)
        self.assertEqual(report.remaining_amount, -50)

    def test_groups_keep_input_order_and_missing_budget_is_zero(self):
        groups = [make_group("g2", name="Work"), make_group("g1", budget=500)]
        members = [make_member("m1", "g1"), make_member("m2", "g2")]
        gifts = [make_gift("x1", "m2", 10)]
        report = compute_budget_analytics(groups, members, gifts)
        self.assertEqual([r.group_id for r in report.group_breakdown], ["g2", "g1"])
        self.assertEqual(report.group_breakdown[0].budget, 0)
        self.assertEqual(report.group_breakdown[0].spent, 10)
        self.assertEqual(report.group_breakdown[1].spent, 0)

    def test_inputs_untouched_and_repeatable(self):
        before = copy.deepcopy((self.groups, self.members, self.gifts))
        first = compute_budget_analytics(self.groups, self.members, self.gifts)
        second = compute_budget_analytics(self.groups, self.members, self.gifts)
        self.assertEqual(first, second)
        self.assertEqual((self.groups, self.members, self.gifts), before)


class GiftAnalyticsTests(unittest.TestCase):
    def test_status_breakdown_always_has_three_rows(self):
        gifts = [
            make_gift("x1", "m1", 199.99, GiftStatus.PURCHASED),
            make_gift("x2", "m1", 45.99, GiftStatus.PLANNED),
        ]
        report = compute_gift_analytics(gifts)
        self.assertEqual(report.total_gifts, 2)
        self.assertEqual(
            [(r.status, r.count) for r in report.status_breakdown],
            [("planned", 1), ("purchased", 1), ("delivered", 0)],
        )

    def test_empty_input_gives_zero_report(self):
        report = compute_gift_analytics([])
        self.assertEqual(report.total_gifts, 0)
        self.assertEqual([r.count for r in report.status_breakdown], [0, 0, 0])
        self.assertEqual(report.tag_breakdown, [])
        self.assertEqual(report.monthly_spending, [])
        self.assertEqual(len(report.price_range_breakdown), 6)

    def test_tags_in_first_seen_order(self):
        gifts = [
            make_gift("x1", "m1", 10, tags=["kitchen", "coffee"]),
            make_gift("x2", "m1", 10, tags=["books", "kitchen"]),
            make_gift("x3", "m1", 10, tags=["kitchen", "kitchen"]),
        ]
        report = compute_gift_analytics(gifts)
        self.assertEqual(
            [(r.tag, r.count) for r in report.tag_breakdown],
            [("kitchen", 3), ("coffee", 1), ("books", 1)],
        )

    def test_monthly_spending_sorted_by_month(self):
        gifts = [
            make_gift("x1", "m1", 10.1, created_at=datetime(2024, 6, 3, tzinfo=timezone.utc)),
            make_gift("x2", "m1", 20.2, created_at=datetime(2023, 12, 30, tzinfo=timezone.utc)),
            make_gift("x3", "m1", 0.1, created_at=datetime(2024, 6, 20, tzinfo=timezone.utc)),
        ]
        report = compute_gift_analytics(gifts)
        self.assertEqual(
            [(r.month, r.spent, r.gift_count) for r in report.monthly_spending],
            [("2023-12", 20.2, 1), ("2024-06", 10.2, 2)],
        )


if __name__ == "__main__":
    unittest.main()
