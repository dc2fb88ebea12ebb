import json
import unittest
from unittest.mock import MagicMock, patch

from redis import exceptions as redis_exceptions

from giftlist.cache import AnalyticsCache
from giftlist.db import InMemoryDbClient
from giftlist.events import ChangeEvent, InMemoryChangeFeed, RedisChangeFeed


class InMemoryChangeFeedTests(unittest.TestCase):
    def test_failing_subscriber_does_not_block_others(self):
        feed = InMemoryChangeFeed()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        feed.subscribe(broken)
        feed.subscribe(received.append)
        event = ChangeEvent(table="gifts", action="insert", record_id="x1", user_id="u1")
        with self.assertLogs("giftlist.events", level="ERROR"):
            feed.publish(event)
        self.assertEqual(received, [event])
        self.assertEqual(feed.published, [event])


class RedisChangeFeedTests(unittest.TestCase):
    @patch("giftlist.events.redis.Redis.from_url")
    def test_publish_sends_json_payload(self, mock_from_url):
        client = MagicMock()
        mock_from_url.return_value = client
        feed = RedisChangeFeed(url="redis://localhost:6379/0", channel="changes")

        event = ChangeEvent(
            table="groups", action="delete", record_id="g1", user_id="u1", occurred_at=1.5
        )
        feed.publish(event)

        channel, payload = client.publish.call_args[0]
        self.assertEqual(channel, "changes")
        self.assertEqual(
            json.loads(payload),
            {
                "table": "groups",
                "action": "delete",
                "record_id": "g1",
                "user_id": "u1",
                "occurred_at": 1.5,
                "source": feed.source,
            },
        )

    @patch("giftlist.events.redis.Redis.from_url")
    def test_publish_survives_connection_error(self, mock_from_url):
        broken = MagicMock()
        broken.publish.side_effect = redis_exceptions.ConnectionError("down")
        mock_from_url.side_effect = [broken, MagicMock()]
        feed = RedisChangeFeed(url="redis://localhost:6379/0")

        with self.assertLogs("giftlist.events", level="WARNING"):
            feed.publish(ChangeEvent(table="gifts", action="update", record_id="x1"))
        self.assertEqual(mock_from_url.call_count, 2)
        self.assertIsNot(feed.client, broken)

    @patch("giftlist.events.redis.Redis.from_url")
    def test_subscribe_decodes_messages(self, mock_from_url):
        client = MagicMock()
        pubsub = client.pubsub.return_value
        mock_from_url.return_value = client
        feed = RedisChangeFeed(url="redis://localhost:6379/0", channel="changes")
        received = []

        subscription = feed.subscribe(received.append)

        handler = pubsub.subscribe.call_args.kwargs["changes"]
        payload = json.dumps({"table": "gifts", "action": "insert", "record_id": "x1", "user_id": "u1"})
        handler({"type": "message", "data": payload.encode("utf-8")})
        with self.assertLogs("giftlist.events", level="WARNING"):
            handler({"type": "message", "data": b"not json"})
        own = json.dumps({"table": "gifts", "action": "delete", "record_id": "x1", "source": feed.source})
        handler({"type": "message", "data": own})

        self.assertEqual(len(received), 1)
        self.assertEqual((received[0].record_id, received[0].user_id), ("x1", "u1"))
        pubsub.run_in_thread.assert_called_once()

        subscription.unsubscribe()
        pubsub.run_in_thread.return_value.stop.assert_called_once()
        pubsub.close.assert_called_once()
        feed.publish(ChangeEvent(table="gifts", action="update", record_id="x2"))
        self.assertEqual(len(received), 1)

    @patch("giftlist.events.redis.Redis.from_url")
    def test_local_subscribers_notified_when_redis_is_down(self, mock_from_url):
        client = MagicMock()
        client.publish.side_effect = redis_exceptions.ConnectionError("down")
        mock_from_url.return_value = client
        feed = RedisChangeFeed(url="redis://localhost:6379/0")
        received = []
        feed.subscribe(received.append)

        event = ChangeEvent(table="gifts", action="insert", record_id="x1", user_id="u1")
        with self.assertLogs("giftlist.events", level="WARNING"):
            feed.publish(event)
        self.assertEqual(received, [event])

    @patch("giftlist.events.redis.Redis.from_url")
    def test_cached_analytics_follow_local_writes_without_redis(self, mock_from_url):
        client = MagicMock()
        client.publish.side_effect = redis_exceptions.ConnectionError("down")
        mock_from_url.return_value = client
        db = InMemoryDbClient(feed=RedisChangeFeed(url="redis://localhost:6379/0"))
        cache = AnalyticsCache(db)
        group = db.create_group("u1", name="Family", budget=100)
        member = db.create_member("u1", group.id, name="John")

        self.assertEqual(cache.budget("u1").spent_amount, 0)
        with self.assertLogs("giftlist.events", level="WARNING"):
            db.create_gift("u1", member.id, name="Lamp", cost=80)
        self.assertEqual(cache.budget("u1").spent_amount, 80)
        self.assertEqual(cache.gifts("u1").total_gifts, 1)
        cache.close()


if __name__ == "__main__":
    unittest.main()
