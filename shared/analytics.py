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

from dataclasses import dataclass
from typing import List

from shared.types import GiftStatus, PriceRange


@dataclass
class GroupBudget:
    group_id: str
    group_name: str
    budget: float
    spent: float


@dataclass
class PriceRangeBreakdown:
    range: PriceRange
    count: int
    total_spent: float


@dataclass
class BudgetAnalytics:
    """Spend-vs-budget report across groups and price buckets."""

    total_budget: float
    spent_amount: float
    # Negative when over budget.
    remaining_amount: float
    group_breakdown: List[GroupBudget]
    price_range_breakdown: List[PriceRangeBreakdown]


@dataclass
class StatusCount:
    status: GiftStatus
    count: int


@dataclass
class TagCount:
    tag: str
    count: int


@dataclass
class MonthlySpending:
    month: str  # YYYY-MM
    spent: float
    gift_count: int


@dataclass
class GiftAnalytics:
    """Counts by status, tag, price bucket and month."""

    total_gifts: int
    status_breakdown: List[StatusCount]
    tag_breakdown: List[TagCount]
    price_range_breakdown: List[PriceRangeBreakdown]
    monthly_spending: List[MonthlySpending]
