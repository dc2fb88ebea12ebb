"""
Change feed abstraction for store mutations.

Supports an in-memory fan-out for tests/local runs and a Redis pub/sub
implementation so several API processes see each other's writes.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Callable, Literal, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)

ChangeTable = Literal["groups", "members", "gifts", "preferences"]
ChangeAction = Literal["insert", "update", "delete"]


@dataclass(frozen=True)
class ChangeEvent:
    table: ChangeTable
    action: ChangeAction
    record_id: str
    user_id: Optional[str] = None
    occurred_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeEvent":
        return cls(
            table=data["table"],
            action=data["action"],
            record_id=data["record_id"],
            user_id=data.get("user_id"),
            occurred_at=data.get("occurred_at") or time.time(),
        )


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None:
        ...


class ChangeFeed(Protocol):
    """Minimal publish/subscribe interface for change notifications."""

    def publish(self, event: ChangeEvent) -> None:
        ...

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        ...


@dataclass
class _CallbackSubscription:
    feed: "InMemoryChangeFeed"
    callback: ChangeCallback

    def unsubscribe(self) -> None:
        self.feed.remove(self.callback)


class InMemoryChangeFeed:
    """Synchronous fan-out to in-process subscribers."""

    def __init__(self):
        self.callbacks: list[ChangeCallback] = []
        self.published: list[ChangeEvent] = []
        self._lock = threading.Lock()

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            self.published.append(event)
            callbacks = list(self.callbacks)
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Change subscriber failed for %s %s", event.table, event.action
                )

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        with self._lock:
            self.callbacks.append(callback)
        return _CallbackSubscription(feed=self, callback=callback)

    def remove(self, callback: ChangeCallback) -> None:
        with self._lock:
            if callback in self.callbacks:
                self.callbacks.remove(callback)
@dataclass
class _RedisSubscription:
    local: Subscription
    pubsub: "redis.client.PubSub"
    thread: "redis.client.PubSubWorkerThread"

    def unsubscribe(self) -> None:
        self.local.unsubscribe()
        self.thread.stop()
        self.pubsub.close()


@dataclass
class RedisChangeFeed:
    """
    Redis-backed feed using a pub/sub channel of JSON-encoded events.

    Subscribers in this process are notified synchronously on publish, even
    when Redis is down. Messages from Redis only reach them for events
    published by other processes.
    """

    url: str
    channel: str = "giftlist:changes"
    poll_interval_seconds: float = 0.1

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)
        self.local = InMemoryChangeFeed()
        self.source = uuid.uuid4().hex

    def publish(self, event: ChangeEvent) -> None:
        self.local.publish(event)
        payload = json.dumps({**event.as_dict(), "source": self.source})
        try:
            self.client.publish(self.channel, payload)
        except redis_exceptions.ConnectionError:
            # Best effort; the database write has already committed.
            logger.warning(
                "Redis unavailable, dropped %s %s event for %s",
                event.table,
                event.action,
                event.record_id,
            )
            self.client = redis.Redis.from_url(self.url)

    def subscribe(self, callback: ChangeCallback) -> Subscription:
        def handle(message: dict) -> None:
            data = message.get("data")
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            try:
                payload = json.loads(data)
                if payload.get("source") == self.source:
                    return
                event = ChangeEvent.from_dict(payload)
            except (TypeError, ValueError, KeyError, AttributeError):
                logger.warning("Ignoring malformed change event: %r", data)
                return
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Change subscriber failed for %s %s", event.table, event.action
                )

        local = self.local.subscribe(callback)
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(**{self.channel: handle})
        thread = pubsub.run_in_thread(
            sleep_time=self.poll_interval_seconds, daemon=True
        )
        return _RedisSubscription(local=local, pubsub=pubsub, thread=thread)
