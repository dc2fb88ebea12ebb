import unittest
from unittest.mock import patch

from giftlist.cache import AnalyticsCache
from giftlist.db import InMemoryDbClient
from giftlist.events import ChangeEvent


class AnalyticsCacheTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.cache = AnalyticsCache(self.db)
        group = self.db.create_group("u1", name="Family", budget=500)
        self.member = self.db.create_member("u1", group.id, name="John")
        self.db.create_gift("u1", self.member.id, name="Watch", cost=199.99)

    def tearDown(self):
        self.cache.close()

    def test_reports_are_cached_until_a_change(self):
        with patch.object(self.db, "snapshot", wraps=self.db.snapshot) as snapshot:
            first = self.cache.budget("u1")
            second = self.cache.budget("u1")
            self.assertIs(first, second)
            self.assertEqual(snapshot.call_count, 1)

        self.db.create_gift("u1", self.member.id, name="Coffee", cost=45.99)
        refreshed = self.cache.budget("u1")
        self.assertEqual(refreshed.spent_amount, 245.98)
        self.assertEqual(self.cache.gifts("u1").total_gifts, 2)

    def test_invalidation_is_per_user(self):
        mine = self.cache.gifts("u1")
        theirs = self.cache.gifts("u2")
        self.cache.handle_event(ChangeEvent(table="gifts", action="insert", record_id="x", user_id="u2"))
        self.assertIs(self.cache.gifts("u1"), mine)
        self.assertIsNot(self.cache.gifts("u2"), theirs)

        self.cache.invalidate()
        self.assertIsNot(self.cache.gifts("u1"), mine)

    def test_report_computed_during_a_change_is_not_stored(self):
        real_snapshot = self.db.snapshot

        def snapshot_then_change(user_id):
            result = real_snapshot(user_id)
            self.cache.invalidate(user_id)
            return result

        with patch.object(self.db, "snapshot", side_effect=snapshot_then_change):
            stale = self.cache.budget("u1")
        self.assertIsNot(self.cache.budget("u1"), stale)

    def test_close_stops_listening(self):
        report = self.cache.gifts("u1")
        self.cache.close()
        self.db.create_gift("u1", self.member.id, name="Coffee", cost=45.99)
        self.assertIs(self.cache.gifts("u1"), report)


if __name__ == "__main__":
    unittest.main()
