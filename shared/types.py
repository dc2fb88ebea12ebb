# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from enum import StrEnum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

MIN_PRIORITY = 1
MAX_PRIORITY = 5


class GiftStatus(StrEnum):
    PLANNED = "planned"
    PURCHASED = "purchased"
    DELIVERED = "delivered"


class TrackingLevel(StrEnum):
    GROUP = "group"
    MEMBER = "member"
    BOTH = "both"


@dataclass(frozen=True)
class PriceRange:
    """Half-open cost interval [min, max). A max of None is unbounded."""

    min: float
    max: Optional[float]
    label: str

    def contains(self, cost: float) -> bool:
        if cost < self.min:
            return False
        return self.max is None or cost < self.max


@dataclass
class Group:
    """A named collection of members sharing an occasion or budget."""

    id: str
    user_id: str
    name: str
    slug: str
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    budget: Optional[float] = None
    tracking_level: Optional[TrackingLevel] = None
    price_ranges: Optional[List[PriceRange]] = None


@dataclass
class Member:
    """A gift recipient belonging to exactly one group."""

    id: str
    group_id: str
    name: str
    slug: str
    created_at: datetime
    updated_at: datetime
    budget: Optional[float] = None
    notes: Optional[str] = None
    tags: List[str] = field(default_factory=list)


@dataclass
class Gift:
    """A tracked item assigned to a member."""

    id: str
    member_id: str
    name: str
    cost: float
    status: GiftStatus
    created_at: datetime
    updated_at: datetime
    tags: List[str] = field(default_factory=list)
    priority: Optional[int] = None
    notes: Optional[str] = None


@dataclass
class BudgetPreference:
    """Per-user budgeting configuration, created or overwritten as a whole."""

    default_budget: Optional[float] = None
    tracking_level: TrackingLevel = TrackingLevel.BOTH
    enable_analytics: bool = True
    price_ranges: List[PriceRange] = field(default_factory=list)
