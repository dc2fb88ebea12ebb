"""
Demo dataset offered during first-time setup.
"""

from __future__ import annotations

import logging

from giftlist.db import DbClient
from shared.types import GiftStatus, Group, TrackingLevel

logger = logging.getLogger(__name__)

# One purchased and one planned gift in different price buckets.
DEMO_GIFTS = (
    {
        "name": "Smart Watch",
        "cost": 199.99,
        "tags": ["electronics"],
        "status": GiftStatus.PURCHASED,
        "priority": 1,
        "notes": "Anniversary gift idea",
    },
    {
        "name": "Coffee Gift Set",
        "cost": 45.99,
        "tags": ["kitchen"],
        "status": GiftStatus.PLANNED,
        "priority": 2,
        "notes": "They mentioned needing new coffee gear",
    },
)


def seed_demo_data(db: DbClient, user_id: str) -> Group:
    group = db.create_group(
        user_id,
        name="Family",
        description="Close family members",
        budget=500,
        tracking_level=TrackingLevel.BOTH,
    )
    couple = db.create_member(
        user_id,
        group.id,
        name="John & Sarah",
        budget=300,
        notes="Anniversary in June",
        tags=["couple", "family"],
    )
    for gift in DEMO_GIFTS:
        db.create_gift(user_id, couple.id, **gift)
    logger.info("Seeded demo data for %s in group %s", user_id, group.slug)
    return group
