"""
Per-user cache of analytics reports, invalidated by store change events.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Optional, TypeVar

from giftlist.analytics import compute_budget_analytics, compute_gift_analytics
from giftlist.db import DbClient
from giftlist.events import ChangeEvent
from shared.analytics import BudgetAnalytics, GiftAnalytics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AnalyticsCache:
    """
    Computes reports from ``db.snapshot`` on a miss and keeps them until a
    change event for the same user arrives. Events without a user clear
    everything.
    """

    def __init__(self, db: DbClient):
        self.db = db
        self._budget: Dict[str, BudgetAnalytics] = {}
        self._gifts: Dict[str, GiftAnalytics] = {}
        # Bumped on every invalidation; reports computed across a bump are not stored.
        self._generation = 0
        self._lock = threading.Lock()
        self.subscription = db.subscribe(self.handle_event)

    def handle_event(self, event: ChangeEvent) -> None:
        self.invalidate(event.user_id)

    def invalidate(self, user_id: Optional[str] = None) -> None:
        with self._lock:
            self._generation += 1
            if user_id is None:
                self._budget.clear()
                self._gifts.clear()
            else:
                self._budget.pop(user_id, None)
                self._gifts.pop(user_id, None)
        logger.debug("Invalidated analytics for %s", user_id or "all users")

    def _get(self, store: Dict[str, T], user_id: str, compute: Callable[[], T]) -> T:
        with self._lock:
            cached = store.get(user_id)
            generation = self._generation
        if cached is not None:
            return cached
        report = compute()
        with self._lock:
            if generation == self._generation:
                store[user_id] = report
        return report

    def budget(self, user_id: str) -> BudgetAnalytics:
        def compute() -> BudgetAnalytics:
            groups, members, gifts = self.db.snapshot(user_id)
            return compute_budget_analytics(groups, members, gifts)

        return self._get(self._budget, user_id, compute)

    def gifts(self, user_id: str) -> GiftAnalytics:
        def compute() -> GiftAnalytics:
            return compute_gift_analytics(self.db.list_gifts(user_id))

        return self._get(self._gifts, user_id, compute)

    def close(self) -> None:
        self.subscription.unsubscribe()
