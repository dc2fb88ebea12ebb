"""
HTTP routes for the gift list API.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel

from giftlist.cache import AnalyticsCache
from giftlist.csv_import import CsvImportError, import_gifts, parse_gift_csv
from giftlist.db import DbClient
from giftlist.demo_data import seed_demo_data
from giftlist.dependencies import (
    CurrentUser,
    get_analytics_cache,
    get_db_client,
    require_user,
)
from giftlist.schemas import (
    AnalyticsResponse,
    BudgetAnalyticsResponse,
    BudgetPreferenceModel,
    DeleteResponse,
    GiftAnalyticsResponse,
    GiftCreate,
    GiftResponse,
    GiftUpdate,
    GroupCreate,
    GroupResponse,
    GroupUpdate,
    ImportResponse,
    MemberCreate,
    MemberResponse,
    MemberUpdate,
    SetupRequest,
    SetupResponse,
)
from shared.json_utils import convert_keys
from shared.price_ranges import default_budget_preference
from shared.types import (
    BudgetPreference,
    Gift,
    GiftStatus,
    Group,
    Member,
    PriceRange,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# PATCH may not null these out.
_REQUIRED_FIELDS = frozenset({"name", "cost", "status"})


def _to_wire(record: Any) -> dict:
    return convert_keys(asdict(record), "snake_to_camel")


def _group_response(group: Group) -> GroupResponse:
    return GroupResponse(**_to_wire(group))


def _member_response(member: Member) -> MemberResponse:
    return MemberResponse(**_to_wire(member))


def _gift_response(gift: Gift) -> GiftResponse:
    return GiftResponse(**_to_wire(gift))


def _price_ranges(items: Optional[list]) -> Optional[list[PriceRange]]:
    if items is None:
        return None
    return [PriceRange(**item) for item in items]


def _changes(payload: BaseModel) -> dict[str, Any]:
    """Snake_case fields the client actually sent, for a partial update."""
    changes = convert_keys(payload.model_dump(exclude_unset=True), "camel_to_snake")
    changes = {
        key: value
        for key, value in changes.items()
        if value is not None or key not in _REQUIRED_FIELDS
    }
    if "price_ranges" in changes:
        changes["price_ranges"] = _price_ranges(changes["price_ranges"])
    return changes


def _preference_model(preference: BudgetPreference) -> BudgetPreferenceModel:
    return BudgetPreferenceModel(**_to_wire(preference))


def _require_group(db: DbClient, user: CurrentUser, id_or_slug: str) -> Group:
    group = db.get_group(user.id, id_or_slug)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


@router.get("/groups", response_model=list[GroupResponse])
def list_groups(
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    return [_group_response(group) for group in db.list_groups(user.id)]


@router.post("/groups", response_model=GroupResponse, status_code=201)
def create_group(
    payload: GroupCreate,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    data = payload.model_dump()
    group = db.create_group(
        user.id,
        name=payload.name,
        slug=payload.slug,
        description=payload.description,
        budget=payload.budget,
        tracking_level=payload.trackingLevel,
        price_ranges=_price_ranges(data["priceRanges"]),
    )
    return _group_response(group)


@router.get("/groups/{id_or_slug}", response_model=GroupResponse)
def get_group(
    id_or_slug: str,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    return _group_response(_require_group(db, user, id_or_slug))


@router.patch("/groups/{id_or_slug}", response_model=GroupResponse)
def update_group(
    id_or_slug: str,
    payload: GroupUpdate,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    group = db.update_group(user.id, id_or_slug, _changes(payload))
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return _group_response(group)


@router.delete("/groups/{id_or_slug}", response_model=DeleteResponse)
def delete_group(
    id_or_slug: str,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_group(user.id, id_or_slug):
        raise HTTPException(status_code=404, detail="Group not found")
    return DeleteResponse(success=True)


@router.get("/groups/{id_or_slug}/members", response_model=list[MemberResponse])
def list_group_members(
    id_or_slug: str,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    group = _require_group(db, user, id_or_slug)
    return [
        _member_response(member) for member in db.list_members(user.id, group.id)
    ]


@router.post(
    "/groups/{id_or_slug}/members", response_model=MemberResponse, status_code=201
)
def create_member(
    id_or_slug: str,
    payload: MemberCreate,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    group = _require_group(db, user, id_or_slug)
    member = db.create_member(
        user.id,
        group.id,
        name=payload.name,
        slug=payload.slug,
        budget=payload.budget,
        notes=payload.notes,
        tags=payload.tags,
    )
    if not member:
        raise HTTPException(status_code=404, detail="Group not found")
    return _member_response(member)


@router.get("/members", response_model=list[MemberResponse])
def list_all_members(
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    members = sorted(db.list_members(user.id), key=lambda m: m.name.lower())
    return [_member_response(member) for member in members]


@router.get("/members/{id_or_slug}", response_model=MemberResponse)
def get_member(
    id_or_slug: str,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    member = db.get_member(user.id, id_or_slug)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    return _member_response(member)


@router.patch("/members/{id_or_slug}", response_model=MemberResponse)
def update_member(
    id_or_slug: str,
    payload: MemberUpdate,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    member = db.update_member(user.id, id_or_slug, _changes(payload))
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    return _member_response(member)


@router.delete("/members/{id_or_slug}", response_model=DeleteResponse)
def delete_member(
    id_or_slug: str,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_member(user.id, id_or_slug):
        raise HTTPException(status_code=404, detail="Member not found")
    return DeleteResponse(success=True)


@router.get("/gifts", response_model=list[GiftResponse])
def list_gifts(
    member_id: Optional[str] = Query(None, alias="memberId"),
    status: Optional[GiftStatus] = Query(None),
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    if member_id:
        member = db.get_member(user.id, member_id)
        if not member:
            raise HTTPException(status_code=404, detail="Member not found")
        member_id = member.id
    gifts = db.list_gifts(user.id, member_id=member_id, status=status)
    return [_gift_response(gift) for gift in gifts]


@router.post("/gifts", response_model=GiftResponse, status_code=201)
def create_gift(
    payload: GiftCreate,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    gift = db.create_gift(
        user.id,
        payload.memberId,
        name=payload.name,
        cost=payload.cost,
        status=payload.status,
        tags=payload.tags,
        priority=payload.priority,
        notes=payload.notes,
    )
    if not gift:
        raise HTTPException(status_code=404, detail="Member not found")
    return _gift_response(gift)


@router.get("/gifts/planned", response_model=list[GiftResponse])
def list_planned_gifts(
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    """Planned gifts, most important first; unprioritized gifts go last."""
    gifts = db.list_gifts(user.id, status=GiftStatus.PLANNED)
    gifts.sort(key=lambda g: (g.priority is None, g.priority or 0, g.created_at))
    return [_gift_response(gift) for gift in gifts]


@router.get("/gifts/{gift_id}", response_model=GiftResponse)
def get_gift(
    gift_id: str,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    gift = db.get_gift(user.id, gift_id)
    if not gift:
        raise HTTPException(status_code=404, detail="Gift not found")
    return _gift_response(gift)


@router.patch("/gifts/{gift_id}", response_model=GiftResponse)
def update_gift(
    gift_id: str,
    payload: GiftUpdate,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    gift = db.update_gift(user.id, gift_id, _changes(payload))
    if not gift:
        raise HTTPException(status_code=404, detail="Gift not found")
    return _gift_response(gift)


@router.delete("/gifts/{gift_id}", response_model=DeleteResponse)
def delete_gift(
    gift_id: str,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_gift(user.id, gift_id):
        raise HTTPException(status_code=404, detail="Gift not found")
    return DeleteResponse(success=True)


@router.get("/analytics/budget", response_model=BudgetAnalyticsResponse)
def budget_analytics(
    user: CurrentUser = Depends(require_user),
    cache: AnalyticsCache = Depends(get_analytics_cache),
):
    return BudgetAnalyticsResponse(**_to_wire(cache.budget(user.id)))


@router.get("/analytics/gifts", response_model=GiftAnalyticsResponse)
def gift_analytics(
    user: CurrentUser = Depends(require_user),
    cache: AnalyticsCache = Depends(get_analytics_cache),
):
    return GiftAnalyticsResponse(**_to_wire(cache.gifts(user.id)))


@router.get("/analytics", response_model=AnalyticsResponse)
def analytics(
    user: CurrentUser = Depends(require_user),
    cache: AnalyticsCache = Depends(get_analytics_cache),
):
    return AnalyticsResponse(
        budget=_to_wire(cache.budget(user.id)),
        gifts=_to_wire(cache.gifts(user.id)),
    )


@router.get("/preferences", response_model=BudgetPreferenceModel)
def get_preferences(
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    preference = db.get_preference(user.id) or default_budget_preference()
    return _preference_model(preference)


@router.put("/preferences", response_model=BudgetPreferenceModel)
def save_preferences(
    payload: BudgetPreferenceModel,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    preference = default_budget_preference(
        default_budget=payload.defaultBudget,
        tracking_level=payload.trackingLevel,
        enable_analytics=payload.enableAnalytics,
    )
    data = payload.model_dump()
    if data["priceRanges"] is not None:
        preference.price_ranges = _price_ranges(data["priceRanges"])
    return _preference_model(db.save_preference(user.id, preference))


@router.post("/setup", response_model=SetupResponse)
def first_time_setup(
    payload: SetupRequest,
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    """Save the preference; demo data is only loaded for users without groups."""
    preference = db.save_preference(
        user.id,
        default_budget_preference(
            default_budget=payload.defaultBudget,
            tracking_level=payload.trackingLevel,
            enable_analytics=payload.enableAnalytics,
        ),
    )
    demo_group = None
    if payload.loadDemoData and not db.list_groups(user.id):
        demo_group = seed_demo_data(db, user.id)
    return SetupResponse(
        preference=_preference_model(preference),
        demoGroup=_group_response(demo_group) if demo_group else None,
    )


@router.post("/import/csv", response_model=ImportResponse, status_code=201)
async def import_csv(
    file: UploadFile = File(...),
    user: CurrentUser = Depends(require_user),
    db: DbClient = Depends(get_db_client),
):
    raw = await file.read()
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV must be UTF-8 text")
    try:
        parsed = parse_gift_csv(text)
    except CsvImportError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    result = import_gifts(db, user.id, parsed)
    return ImportResponse(
        groupId=result.group.id,
        groupSlug=result.group.slug,
        members=result.members,
        gifts=result.gifts,
        skippedRows=result.skipped_rows,
    )
