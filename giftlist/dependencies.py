"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request

from giftlist.cache import AnalyticsCache
from giftlist.config import get_settings
from giftlist.db import DbClient, InMemoryDbClient, PostgresDbClient
from giftlist.events import ChangeFeed, InMemoryChangeFeed, RedisChangeFeed

logger = logging.getLogger(__name__)

_change_feed: ChangeFeed | None = None
_db_client: DbClient | None = None
_analytics_cache: AnalyticsCache | None = None


@dataclass(frozen=True)
class CurrentUser:
    id: str


def get_change_feed() -> ChangeFeed:
    global _change_feed
    if _change_feed:
        return _change_feed

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _change_feed = RedisChangeFeed(
            url=settings.redis_url,
            channel=settings.redis_channel,
        )
    else:
        _change_feed = InMemoryChangeFeed()
    return _change_feed


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so data persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    feed = get_change_feed()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory gift list store")
        _db_client = InMemoryDbClient(feed=feed)
    else:
        _db_client = PostgresDbClient(settings.database_url, feed=feed)
    return _db_client


def get_analytics_cache() -> AnalyticsCache:
    global _analytics_cache
    if _analytics_cache:
        return _analytics_cache
    _analytics_cache = AnalyticsCache(get_db_client())
    return _analytics_cache


def get_current_user(request: Request) -> Optional[CurrentUser]:
    """The signed-in user forwarded by the identity proxy, if any."""
    user_id = (request.headers.get(get_settings().user_header) or "").strip()
    return CurrentUser(id=user_id) if user_id else None


def require_user(
    user: Optional[CurrentUser] = Depends(get_current_user),
) -> CurrentUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    return user
