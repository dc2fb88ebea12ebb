"""
Pydantic schemas for the gift list API. Wire names are camelCase.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from shared.types import MAX_PRIORITY, MIN_PRIORITY, GiftStatus, TrackingLevel


class PriceRangeModel(BaseModel):
    min: float = Field(..., ge=0, allow_inf_nan=False)
    max: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    label: str


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    budget: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    trackingLevel: Optional[TrackingLevel] = None
    priceRanges: Optional[list[PriceRangeModel]] = None


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    slug: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    budget: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    trackingLevel: Optional[TrackingLevel] = None
    priceRanges: Optional[list[PriceRangeModel]] = None


class GroupResponse(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    budget: Optional[float] = None
    trackingLevel: Optional[TrackingLevel] = None
    priceRanges: Optional[list[PriceRangeModel]] = None
    createdAt: datetime
    updatedAt: datetime


class MemberCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(default=None, max_length=200)
    budget: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    notes: Optional[str] = None
    tags: Optional[list[str]] = None


class MemberUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    slug: Optional[str] = Field(default=None, max_length=200)
    budget: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    notes: Optional[str] = None
    tags: Optional[list[str]] = None


class MemberResponse(BaseModel):
    id: str
    groupId: str
    name: str
    slug: str
    budget: Optional[float] = None
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    createdAt: datetime
    updatedAt: datetime


class GiftCreate(BaseModel):
    memberId: str
    name: str = Field(..., min_length=1, max_length=200)
    cost: float = Field(..., ge=0, allow_inf_nan=False)
    status: GiftStatus = GiftStatus.PLANNED
    tags: Optional[list[str]] = None
    priority: Optional[int] = Field(default=None, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    notes: Optional[str] = None


class GiftUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    cost: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    status: Optional[GiftStatus] = None
    tags: Optional[list[str]] = None
    priority: Optional[int] = Field(default=None, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    notes: Optional[str] = None


class GiftResponse(BaseModel):
    id: str
    memberId: str
    name: str
    cost: float
    status: GiftStatus
    tags: list[str] = Field(default_factory=list)
    priority: Optional[int] = None
    notes: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime


class DeleteResponse(BaseModel):
    success: Literal[True]


class GroupBudgetResponse(BaseModel):
    groupId: str
    groupName: str
    budget: float
    spent: float


class PriceRangeBreakdownResponse(BaseModel):
    range: PriceRangeModel
    count: int
    totalSpent: float


class BudgetAnalyticsResponse(BaseModel):
    totalBudget: float
    spentAmount: float
    remainingAmount: float
    groupBreakdown: list[GroupBudgetResponse]
    priceRangeBreakdown: list[PriceRangeBreakdownResponse]


class StatusCountResponse(BaseModel):
    status: GiftStatus
    count: int


class TagCountResponse(BaseModel):
    tag: str
    count: int


class MonthlySpendingResponse(BaseModel):
    month: str
    spent: float
    giftCount: int


class GiftAnalyticsResponse(BaseModel):
    totalGifts: int
    statusBreakdown: list[StatusCountResponse]
    tagBreakdown: list[TagCountResponse]
    priceRangeBreakdown: list[PriceRangeBreakdownResponse]
    monthlySpending: list[MonthlySpendingResponse]


class AnalyticsResponse(BaseModel):
    budget: BudgetAnalyticsResponse
    gifts: GiftAnalyticsResponse


class BudgetPreferenceModel(BaseModel):
    defaultBudget: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    trackingLevel: TrackingLevel = TrackingLevel.BOTH
    enableAnalytics: bool = True
    priceRanges: Optional[list[PriceRangeModel]] = None


class SetupRequest(BaseModel):
    defaultBudget: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    trackingLevel: TrackingLevel = TrackingLevel.BOTH
    enableAnalytics: bool = True
    loadDemoData: bool = True


class SetupResponse(BaseModel):
    preference: BudgetPreferenceModel
    demoGroup: Optional[GroupResponse] = None


class ImportResponse(BaseModel):
    groupId: str
    groupSlug: str
    members: int
    gifts: int
    skippedRows: int
