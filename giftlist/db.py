"""
Database abstraction for Postgres and an in-memory implementation.

Both clients scope every call by ``user_id``, enforce cascading deletes and
publish a ``ChangeEvent`` for each successful mutation. Mutations return the
stored entity so callers can merge it locally instead of reloading everything.
"""

from __future__ import annotations

import copy
import logging
import secrets
from dataclasses import asdict, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol

from dacite import Config, from_dict
from sqlalchemy import (
    JSON,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    or_,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from giftlist.events import ChangeEvent, ChangeFeed, InMemoryChangeFeed, Subscription
from giftlist.slugs import slugify, unique_slug
from shared.types import (
    BudgetPreference,
    Gift,
    GiftStatus,
    Group,
    Member,
    PriceRange,
    TrackingLevel,
)

logger = logging.getLogger(__name__)

GROUP_FIELDS = frozenset(
    {"name", "slug", "description", "budget", "tracking_level", "price_ranges"}
)
MEMBER_FIELDS = frozenset({"name", "slug", "budget", "notes", "tags"})
GIFT_FIELDS = frozenset({"name", "cost", "status", "tags", "priority", "notes"})

_DACITE_CONFIG = Config(cast=[TrackingLevel], check_types=False)


class DbClient(Protocol):
    """Interface for gift list persistence."""

    def list_groups(self, user_id: str) -> List[Group]:
        ...

    def get_group(self, user_id: str, id_or_slug: str) -> Optional[Group]:
        ...

    def create_group(
        self,
        user_id: str,
        *,
        name: str,
        slug: Optional[str] = None,
        description: Optional[str] = None,
        budget: Optional[float] = None,
        tracking_level: Optional[TrackingLevel] = None,
        price_ranges: Optional[List[PriceRange]] = None,
    ) -> Group:
        ...

    def update_group(
        self, user_id: str, id_or_slug: str, changes: Dict[str, Any]
    ) -> Optional[Group]:
        ...

    def delete_group(self, user_id: str, id_or_slug: str) -> bool:
        ...

    def list_members(
        self, user_id: str, group_id: Optional[str] = None
    ) -> List[Member]:
        ...

    def get_member(self, user_id: str, id_or_slug: str) -> Optional[Member]:
        ...

    def create_member(
        self,
        user_id: str,
        group_id: str,
        *,
        name: str,
        slug: Optional[str] = None,
        budget: Optional[float] = None,
        notes: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Optional[Member]:
        ...

    def update_member(
        self, user_id: str, id_or_slug: str, changes: Dict[str, Any]
    ) -> Optional[Member]:
        ...

    def delete_member(self, user_id: str, id_or_slug: str) -> bool:
        ...

    def list_gifts(
        self,
        user_id: str,
        member_id: Optional[str] = None,
        status: Optional[GiftStatus] = None,
    ) -> List[Gift]:
        ...

    def get_gift(self, user_id: str, gift_id: str) -> Optional[Gift]:
        ...

    def create_gift(
        self,
        user_id: str,
        member_id: str,
        *,
        name: str,
        cost: float,
        status: GiftStatus = GiftStatus.PLANNED,
        tags: Optional[List[str]] = None,
        priority: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Optional[Gift]:
        ...

    def update_gift(
        self, user_id: str, gift_id: str, changes: Dict[str, Any]
    ) -> Optional[Gift]:
        ...

    def delete_gift(self, user_id: str, gift_id: str) -> bool:
        ...

    def get_preference(self, user_id: str) -> Optional[BudgetPreference]:
        ...

    def save_preference(
        self, user_id: str, preference: BudgetPreference
    ) -> BudgetPreference:
        ...

    def snapshot(
        self, user_id: str
    ) -> tuple[List[Group], List[Member], List[Gift]]:
        ...

    def subscribe(self, callback) -> Subscription:
        ...


def new_id() -> str:
    return secrets.token_hex(8)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _pick(changes: Dict[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
    return {key: value for key, value in changes.items() if key in allowed}


def _next_slug(
    changes: Dict[str, Any], taken: Iterable[str], fallback: str
) -> Optional[str]:
    """Slug implied by an update, or None when neither slug nor name changes."""
    if changes.get("slug"):
        base = slugify(changes["slug"], fallback)
    elif changes.get("name"):
        base = slugify(changes["name"], fallback)
    else:
        return None
    return unique_slug(base, set(taken))


def _normalize_gift_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    if changes.get("status") is not None:
        changes = {**changes, "status": GiftStatus(changes["status"])}
    return changes


def preference_from_dict(data: dict) -> BudgetPreference:
    return from_dict(data_class=BudgetPreference, data=data, config=_DACITE_CONFIG)


def price_ranges_from_json(data: Optional[list]) -> Optional[List[PriceRange]]:
    if data is None:
        return None
    return [
        from_dict(data_class=PriceRange, data=item, config=_DACITE_CONFIG)
        for item in data
    ]


def price_ranges_to_json(ranges: Optional[List[PriceRange]]) -> Optional[list]:
    if ranges is None:
        return None
    return [asdict(price_range) for price_range in ranges]


class InMemoryDbClient:
    """Simple in-memory store for development and tests."""

    def __init__(self, feed: Optional[ChangeFeed] = None):
        self.feed: ChangeFeed = feed or InMemoryChangeFeed()
        # Dicts keep insertion order, which is the creation order callers see.
        self.groups: Dict[str, Group] = {}
        self.members: Dict[str, Member] = {}
        self.gifts: Dict[str, Gift] = {}
        self.preferences: Dict[str, BudgetPreference] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.groups.clear()
        self.members.clear()
        self.gifts.clear()
        self.preferences.clear()

    def subscribe(self, callback) -> Subscription:
        return self.feed.subscribe(callback)

    def _publish(self, table, action, record_id: str, user_id: str) -> None:
        self.feed.publish(
            ChangeEvent(table=table, action=action, record_id=record_id, user_id=user_id)
        )

    # Lookups return the stored objects; public methods hand out copies.

    def _find_group(self, user_id: str, id_or_slug: str) -> Optional[Group]:
        group = self.groups.get(id_or_slug)
        if group and group.user_id == user_id:
            return group
        for group in self.groups.values():
            if group.user_id == user_id and group.slug == id_or_slug:
                return group
        return None

    def _owns_member(self, user_id: str, member: Member) -> bool:
        group = self.groups.get(member.group_id)
        return bool(group and group.user_id == user_id)

    def _find_member(self, user_id: str, id_or_slug: str) -> Optional[Member]:
        member = self.members.get(id_or_slug)
        if member and self._owns_member(user_id, member):
            return member
        for member in self.members.values():
            if member.slug == id_or_slug and self._owns_member(user_id, member):
                return member
        return None

    def _find_gift(self, user_id: str, gift_id: str) -> Optional[Gift]:
        gift = self.gifts.get(gift_id)
        if not gift:
            return None
        member = self.members.get(gift.member_id)
        if not member or not self._owns_member(user_id, member):
            return None
        return gift

    def list_groups(self, user_id: str) -> List[Group]:
        return [
            copy.deepcopy(group)
            for group in self.groups.values()
            if group.user_id == user_id
        ]

    def get_group(self, user_id: str, id_or_slug: str) -> Optional[Group]:
        group = self._find_group(user_id, id_or_slug)
        return copy.deepcopy(group) if group else None

    def create_group(
        self,
        user_id: str,
        *,
        name: str,
        slug: Optional[str] = None,
        description: Optional[str] = None,
        budget: Optional[float] = None,
        tracking_level: Optional[TrackingLevel] = None,
        price_ranges: Optional[List[PriceRange]] = None,
    ) -> Group:
        taken = {g.slug for g in self.groups.values() if g.user_id == user_id}
        now = _now()
        group = Group(
            id=new_id(),
            user_id=user_id,
            name=name,
            slug=unique_slug(slugify(slug or name, "group"), taken),
            created_at=now,
            updated_at=now,
            description=description,
            budget=budget,
            tracking_level=TrackingLevel(tracking_level) if tracking_level else None,
            price_ranges=list(price_ranges) if price_ranges is not None else None,
        )
        self.groups[group.id] = group
        logger.debug("Created group %s (%s) for %s", group.id, group.slug, user_id)
        self._publish("groups", "insert", group.id, user_id)
        return copy.deepcopy(group)

    def update_group(
        self, user_id: str, id_or_slug: str, changes: Dict[str, Any]
    ) -> Optional[Group]:
        group = self._find_group(user_id, id_or_slug)
        if not group:
            return None
        changes = _pick(changes, GROUP_FIELDS)
        taken = (
            g.slug
            for g in self.groups.values()
            if g.user_id == user_id and g.id != group.id
        )
        slug = _next_slug(changes, taken, "group")
        changes.pop("slug", None)
        if slug:
            changes["slug"] = slug
        if changes.get("tracking_level"):
            changes["tracking_level"] = TrackingLevel(changes["tracking_level"])
        updated = replace(group, **changes, updated_at=_now())
        self.groups[group.id] = updated
        self._publish("groups", "update", group.id, user_id)
        return copy.deepcopy(updated)

    def delete_group(self, user_id: str, id_or_slug: str) -> bool:
        group = self._find_group(user_id, id_or_slug)
        if not group:
            return False
        member_ids = {
            m.id for m in self.members.values() if m.group_id == group.id
        }
        self.gifts = {
            gift_id: gift
            for gift_id, gift in self.gifts.items()
            if gift.member_id not in member_ids
        }
        self.members = {
            member_id: member
            for member_id, member in self.members.items()
            if member_id not in member_ids
        }
        del self.groups[group.id]
        logger.debug(
            "Deleted group %s with %d members", group.id, len(member_ids)
        )
        self._publish("groups", "delete", group.id, user_id)
        return True

    def list_members(
        self, user_id: str, group_id: Optional[str] = None
    ) -> List[Member]:
        return [
            copy.deepcopy(member)
            for member in self.members.values()
            if (group_id is None or member.group_id == group_id)
            and self._owns_member(user_id, member)
        ]

    def get_member(self, user_id: str, id_or_slug: str) -> Optional[Member]:
        member = self._find_member(user_id, id_or_slug)
        return copy.deepcopy(member) if member else None

    def create_member(
        self,
        user_id: str,
        group_id: str,
        *,
        name: str,
        slug: Optional[str] = None,
        budget: Optional[float] = None,
        notes: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Optional[Member]:
        group = self._find_group(user_id, group_id)
        if not group:
            return None
        taken = {m.slug for m in self.members.values() if m.group_id == group.id}
        now = _now()
        member = Member(
            id=new_id(),
            group_id=group.id,
            name=name,
            slug=unique_slug(slugify(slug or name, "member"), taken),
            created_at=now,
            updated_at=now,
            budget=budget,
            notes=notes,
            tags=list(tags or []),
        )
        self.members[member.id] = member
        self._publish("members", "insert", member.id, user_id)
        return copy.deepcopy(member)

    def update_member(
        self, user_id: str, id_or_slug: str, changes: Dict[str, Any]
    ) -> Optional[Member]:
        member = self._find_member(user_id, id_or_slug)
        if not member:
            return None
        changes = _pick(changes, MEMBER_FIELDS)
        taken = (
            m.slug
            for m in self.members.values()
            if m.group_id == member.group_id and m.id != member.id
        )
        slug = _next_slug(changes, taken, "member")
        changes.pop("slug", None)
        if slug:
            changes["slug"] = slug
        if "tags" in changes:
            changes["tags"] = list(changes["tags"] or [])
        updated = replace(member, **changes, updated_at=_now())
        self.members[member.id] = updated
        self._publish("members", "update", member.id, user_id)
        return copy.deepcopy(updated)

    def delete_member(self, user_id: str, id_or_slug: str) -> bool:
        member = self._find_member(user_id, id_or_slug)
        if not member:
            return False
        self.gifts = {
            gift_id: gift
            for gift_id, gift in self.gifts.items()
            if gift.member_id != member.id
        }
        del self.members[member.id]
        self._publish("members", "delete", member.id, user_id)
        return True

    def list_gifts(
        self,
        user_id: str,
        member_id: Optional[str] = None,
        status: Optional[GiftStatus] = None,
    ) -> List[Gift]:
        gifts = []
        for gift in self.gifts.values():
            if member_id is not None and gift.member_id != member_id:
                continue
            if status is not None and gift.status != status:
                continue
            member = self.members.get(gift.member_id)
            if member and self._owns_member(user_id, member):
                gifts.append(copy.deepcopy(gift))
        return gifts

    def get_gift(self, user_id: str, gift_id: str) -> Optional[Gift]:
        gift = self._find_gift(user_id, gift_id)
        return copy.deepcopy(gift) if gift else None

    def create_gift(
        self,
        user_id: str,
        member_id: str,
        *,
        name: str,
        cost: float,
        status: GiftStatus = GiftStatus.PLANNED,
        tags: Optional[List[str]] = None,
        priority: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Optional[Gift]:
        member = self._find_member(user_id, member_id)
        if not member:
            return None
        now = _now()
        gift = Gift(
            id=new_id(),
            member_id=member.id,
            name=name,
            cost=cost,
            status=GiftStatus(status),
            created_at=now,
            updated_at=now,
            tags=list(tags or []),
            priority=priority,
            notes=notes,
        )
        self.gifts[gift.id] = gift
        self._publish("gifts", "insert", gift.id, user_id)
        return copy.deepcopy(gift)

    def update_gift(
        self, user_id: str, gift_id: str, changes: Dict[str, Any]
    ) -> Optional[Gift]:
        gift = self._find_gift(user_id, gift_id)
        if not gift:
            return None
        changes = _normalize_gift_changes(_pick(changes, GIFT_FIELDS))
        if "tags" in changes:
            changes["tags"] = list(changes["tags"] or [])
        updated = replace(gift, **changes, updated_at=_now())
        self.gifts[gift.id] = updated
        self._publish("gifts", "update", gift.id, user_id)
        return copy.deepcopy(updated)

    def delete_gift(self, user_id: str, gift_id: str) -> bool:
        gift = self._find_gift(user_id, gift_id)
        if not gift:
            return False
        del self.gifts[gift.id]
        self._publish("gifts", "delete", gift.id, user_id)
        return True

    def get_preference(self, user_id: str) -> Optional[BudgetPreference]:
        preference = self.preferences.get(user_id)
        return copy.deepcopy(preference) if preference else None

    def save_preference(
        self, user_id: str, preference: BudgetPreference
    ) -> BudgetPreference:
        action = "update" if user_id in self.preferences else "insert"
        self.preferences[user_id] = copy.deepcopy(preference)
        self._publish("preferences", action, user_id, user_id)
        return copy.deepcopy(preference)

    def snapshot(
        self, user_id: str
    ) -> tuple[List[Group], List[Member], List[Gift]]:
        return (
            self.list_groups(user_id),
            self.list_members(user_id),
            self.list_gifts(user_id),
        )


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, feed: Optional[ChangeFeed] = None):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        self.feed: ChangeFeed = feed or InMemoryChangeFeed()
        Base.metadata.create_all(self.engine)

    def subscribe(self, callback) -> Subscription:
        return self.feed.subscribe(callback)

    def _publish(self, table, action, record_id: str, user_id: str) -> None:
        self.feed.publish(
            ChangeEvent(table=table, action=action, record_id=record_id, user_id=user_id)
        )

    def _to_group(self, row: "GroupRow") -> Group:
        return Group(
            id=row.id,
            user_id=row.user_id,
            name=row.name,
            slug=row.slug,
            created_at=_to_datetime(row.created_at),
            updated_at=_to_datetime(row.updated_at),
            description=row.description,
            budget=row.budget,
            tracking_level=(
                TrackingLevel(row.tracking_level) if row.tracking_level else None
            ),
            price_ranges=price_ranges_from_json(row.price_ranges),
        )

    def _to_member(self, row: "MemberRow") -> Member:
        return Member(
            id=row.id,
            group_id=row.group_id,
            name=row.name,
            slug=row.slug,
            created_at=_to_datetime(row.created_at),
            updated_at=_to_datetime(row.updated_at),
            budget=row.budget,
            notes=row.notes,
            tags=list(row.tags or []),
        )

    def _to_gift(self, row: "GiftRow") -> Gift:
        return Gift(
            id=row.id,
            member_id=row.member_id,
            name=row.name,
            cost=row.cost,
            status=GiftStatus(row.status),
            created_at=_to_datetime(row.created_at),
            updated_at=_to_datetime(row.updated_at),
            tags=list(row.tags or []),
            priority=row.priority,
            notes=row.notes,
        )

    def _group_row(
        self, session: Session, user_id: str, id_or_slug: str
    ) -> Optional["GroupRow"]:
        stmt = (
            select(GroupRow)
            .where(
                GroupRow.user_id == user_id,
                or_(GroupRow.id == id_or_slug, GroupRow.slug == id_or_slug),
            )
            .order_by(GroupRow.pk.asc())
            .limit(1)
        )
        return session.execute(stmt).scalar_one_or_none()

    def _member_row(
        self, session: Session, user_id: str, id_or_slug: str
    ) -> Optional["MemberRow"]:
        stmt = (
            select(MemberRow)
            .join(GroupRow, MemberRow.group_id == GroupRow.id)
            .where(
                GroupRow.user_id == user_id,
                or_(MemberRow.id == id_or_slug, MemberRow.slug == id_or_slug),
            )
            .order_by(MemberRow.pk.asc())
            .limit(1)
        )
        return session.execute(stmt).scalar_one_or_none()

    def _gift_row(
        self, session: Session, user_id: str, gift_id: str
    ) -> Optional["GiftRow"]:
        stmt = (
            select(GiftRow)
            .join(MemberRow, GiftRow.member_id == MemberRow.id)
            .join(GroupRow, MemberRow.group_id == GroupRow.id)
            .where(GroupRow.user_id == user_id, GiftRow.id == gift_id)
        )
        return session.execute(stmt).scalar_one_or_none()

    def list_groups(self, user_id: str) -> List[Group]:
        with self.Session() as session:
            rows = session.scalars(
                select(GroupRow)
                .where(GroupRow.user_id == user_id)
                .order_by(GroupRow.pk.asc())
            ).all()
            return [self._to_group(row) for row in rows]

    def get_group(self, user_id: str, id_or_slug: str) -> Optional[Group]:
        with self.Session() as session:
            row = self._group_row(session, user_id, id_or_slug)
            return self._to_group(row) if row else None

    def create_group(
        self,
        user_id: str,
        *,
        name: str,
        slug: Optional[str] = None,
        description: Optional[str] = None,
        budget: Optional[float] = None,
        tracking_level: Optional[TrackingLevel] = None,
        price_ranges: Optional[List[PriceRange]] = None,
    ) -> Group:
        now = _now().timestamp()
        with self.Session() as session:
            taken = set(
                session.scalars(
                    select(GroupRow.slug).where(GroupRow.user_id == user_id)
                )
            )
            row = GroupRow(
                id=new_id(),
                user_id=user_id,
                name=name,
                slug=unique_slug(slugify(slug or name, "group"), taken),
                description=description,
                budget=budget,
                tracking_level=(
                    TrackingLevel(tracking_level).value if tracking_level else None
                ),
                price_ranges=price_ranges_to_json(price_ranges),
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            group = self._to_group(row)
        logger.debug("Created group %s (%s) for %s", group.id, group.slug, user_id)
        self._publish("groups", "insert", group.id, user_id)
        return group

    def update_group(
        self, user_id: str, id_or_slug: str, changes: Dict[str, Any]
    ) -> Optional[Group]:
        changes = _pick(changes, GROUP_FIELDS)
        with self.Session() as session:
            row = self._group_row(session, user_id, id_or_slug)
            if not row:
                return None
            taken = session.scalars(
                select(GroupRow.slug).where(
                    GroupRow.user_id == user_id, GroupRow.id != row.id
                )
            ).all()
            slug = _next_slug(changes, taken, "group")
            if slug:
                row.slug = slug
            for key in ("name", "description", "budget"):
                if key in changes:
                    setattr(row, key, changes[key])
            if "tracking_level" in changes:
                level = changes["tracking_level"]
                row.tracking_level = TrackingLevel(level).value if level else None
            if "price_ranges" in changes:
                row.price_ranges = price_ranges_to_json(changes["price_ranges"])
            row.updated_at = _now().timestamp()
            session.commit()
            group = self._to_group(row)
        self._publish("groups", "update", group.id, user_id)
        return group

    def delete_group(self, user_id: str, id_or_slug: str) -> bool:
        with self.Session() as session:
            row = self._group_row(session, user_id, id_or_slug)
            if not row:
                return False
            group_id = row.id
            member_ids = select(MemberRow.id).where(MemberRow.group_id == group_id)
            session.execute(delete(GiftRow).where(GiftRow.member_id.in_(member_ids)))
            session.execute(delete(MemberRow).where(MemberRow.group_id == group_id))
            session.delete(row)
            session.commit()
        logger.debug("Deleted group %s", group_id)
        self._publish("groups", "delete", group_id, user_id)
        return True

    def list_members(
        self, user_id: str, group_id: Optional[str] = None
    ) -> List[Member]:
        with self.Session() as session:
            stmt = (
                select(MemberRow)
                .join(GroupRow, MemberRow.group_id == GroupRow.id)
                .where(GroupRow.user_id == user_id)
                .order_by(MemberRow.pk.asc())
            )
            if group_id is not None:
                stmt = stmt.where(MemberRow.group_id == group_id)
            return [self._to_member(row) for row in session.scalars(stmt).all()]

    def get_member(self, user_id: str, id_or_slug: str) -> Optional[Member]:
        with self.Session() as session:
            row = self._member_row(session, user_id, id_or_slug)
            return self._to_member(row) if row else None

    def create_member(
        self,
        user_id: str,
        group_id: str,
        *,
        name: str,
        slug: Optional[str] = None,
        budget: Optional[float] = None,
        notes: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Optional[Member]:
        now = _now().timestamp()
        with self.Session() as session:
            group = self._group_row(session, user_id, group_id)
            if not group:
                return None
            taken = set(
                session.scalars(
                    select(MemberRow.slug).where(MemberRow.group_id == group.id)
                )
            )
            row = MemberRow(
                id=new_id(),
                group_id=group.id,
                name=name,
                slug=unique_slug(slugify(slug or name, "member"), taken),
                budget=budget,
                notes=notes,
                tags=list(tags or []),
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            member = self._to_member(row)
        self._publish("members", "insert", member.id, user_id)
        return member

    def update_member(
        self, user_id: str, id_or_slug: str, changes: Dict[str, Any]
    ) -> Optional[Member]:
        changes = _pick(changes, MEMBER_FIELDS)
        with self.Session() as session:
            row = self._member_row(session, user_id, id_or_slug)
            if not row:
                return None
            taken = session.scalars(
                select(MemberRow.slug).where(
                    MemberRow.group_id == row.group_id, MemberRow.id != row.id
                )
            ).all()
            slug = _next_slug(changes, taken, "member")
            if slug:
                row.slug = slug
            for key in ("name", "budget", "notes"):
                if key in changes:
                    setattr(row, key, changes[key])
            if "tags" in changes:
                row.tags = list(changes["tags"] or [])
            row.updated_at = _now().timestamp()
            session.commit()
            member = self._to_member(row)
        self._publish("members", "update", member.id, user_id)
        return member

    def delete_member(self, user_id: str, id_or_slug: str) -> bool:
        with self.Session() as session:
            row = self._member_row(session, user_id, id_or_slug)
            if not row:
                return False
            member_id = row.id
            session.execute(delete(GiftRow).where(GiftRow.member_id == member_id))
            session.delete(row)
            session.commit()
        self._publish("members", "delete", member_id, user_id)
        return True

    def list_gifts(
        self,
        user_id: str,
        member_id: Optional[str] = None,
        status: Optional[GiftStatus] = None,
    ) -> List[Gift]:
        with self.Session() as session:
            stmt = (
                select(GiftRow)
                .join(MemberRow, GiftRow.member_id == MemberRow.id)
                .join(GroupRow, MemberRow.group_id == GroupRow.id)
                .where(GroupRow.user_id == user_id)
                .order_by(GiftRow.pk.asc())
            )
            if member_id is not None:
                stmt = stmt.where(GiftRow.member_id == member_id)
            if status is not None:
                stmt = stmt.where(GiftRow.status == GiftStatus(status).value)
            return [self._to_gift(row) for row in session.scalars(stmt).all()]

    def get_gift(self, user_id: str, gift_id: str) -> Optional[Gift]:
        with self.Session() as session:
            row = self._gift_row(session, user_id, gift_id)
            return self._to_gift(row) if row else None

    def create_gift(
        self,
        user_id: str,
        member_id: str,
        *,
        name: str,
        cost: float,
        status: GiftStatus = GiftStatus.PLANNED,
        tags: Optional[List[str]] = None,
        priority: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Optional[Gift]:
        now = _now().timestamp()
        with self.Session() as session:
            member = self._member_row(session, user_id, member_id)
            if not member:
                return None
            row = GiftRow(
                id=new_id(),
                member_id=member.id,
                name=name,
                cost=cost,
                status=GiftStatus(status).value,
                tags=list(tags or []),
                priority=priority,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            gift = self._to_gift(row)
        self._publish("gifts", "insert", gift.id, user_id)
        return gift

    def update_gift(
        self, user_id: str, gift_id: str, changes: Dict[str, Any]
    ) -> Optional[Gift]:
        changes = _normalize_gift_changes(_pick(changes, GIFT_FIELDS))
        with self.Session() as session:
            row = self._gift_row(session, user_id, gift_id)
            if not row:
                return None
            for key in ("name", "cost", "priority", "notes"):
                if key in changes:
                    setattr(row, key, changes[key])
            if "status" in changes:
                row.status = changes["status"].value
            if "tags" in changes:
                row.tags = list(changes["tags"] or [])
            row.updated_at = _now().timestamp()
            session.commit()
            gift = self._to_gift(row)
        self._publish("gifts", "update", gift.id, user_id)
        return gift

    def delete_gift(self, user_id: str, gift_id: str) -> bool:
        with self.Session() as session:
            row = self._gift_row(session, user_id, gift_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
        self._publish("gifts", "delete", gift_id, user_id)
        return True

    def get_preference(self, user_id: str) -> Optional[BudgetPreference]:
        with self.Session() as session:
            row = session.get(PreferenceRow, user_id)
            return preference_from_dict(row.data) if row else None

    def save_preference(
        self, user_id: str, preference: BudgetPreference
    ) -> BudgetPreference:
        data = asdict(preference)
        data["tracking_level"] = TrackingLevel(preference.tracking_level).value
        with self.Session() as session:
            existing = session.get(PreferenceRow, user_id)
            action = "update" if existing else "insert"
            if existing:
                existing.data = data
            else:
                session.add(PreferenceRow(user_id=user_id, data=data))
            session.commit()
        self._publish("preferences", action, user_id, user_id)
        return preference_from_dict(data)

    def snapshot(
        self, user_id: str
    ) -> tuple[List[Group], List[Member], List[Gift]]:
        return (
            self.list_groups(user_id),
            self.list_members(user_id),
            self.list_gifts(user_id),
        )


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


Base = declarative_base()


class GroupRow(Base):
    __tablename__ = "groups"
    __table_args__ = (UniqueConstraint("user_id", "slug"),)

    # Surrogate key preserves creation order for list queries.
    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    description = Column(String, nullable=True)
    budget = Column(Float, nullable=True)
    tracking_level = Column(String, nullable=True)
    price_ranges = Column(JSON, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class MemberRow(Base):
    __tablename__ = "members"
    __table_args__ = (UniqueConstraint("group_id", "slug"),)

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True)
    group_id = Column(
        String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    budget = Column(Float, nullable=True)
    notes = Column(String, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class GiftRow(Base):
    __tablename__ = "gifts"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True)
    member_id = Column(
        String, ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String, nullable=False)
    cost = Column(Float, nullable=False)
    status = Column(String, nullable=False, index=True)
    tags = Column(JSON, nullable=False, default=list)
    priority = Column(Integer, nullable=True)
    notes = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class PreferenceRow(Base):
    __tablename__ = "budget_preferences"

    user_id = Column(String, primary_key=True)
    data = Column("preference", JSON, nullable=False)
