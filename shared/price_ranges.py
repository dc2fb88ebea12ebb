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

from typing import List, Optional

from shared.types import BudgetPreference, PriceRange, TrackingLevel

# Ascending and contiguous; analytics reports always emit all of them.
ANALYTICS_PRICE_RANGES: tuple[PriceRange, ...] = (
    PriceRange(min=0, max=25, label="Under $25"),
    PriceRange(min=25, max=50, label="$25-$50"),
    PriceRange(min=50, max=100, label="$50-$100"),
    PriceRange(min=100, max=250, label="$100-$250"),
    PriceRange(min=250, max=500, label="$250-$500"),
    PriceRange(min=500, max=None, label="$500+"),
)

# Offered to new users during first-time setup.
PREFERENCE_PRICE_RANGES: tuple[PriceRange, ...] = (
    PriceRange(min=0, max=50, label="Budget"),
    PriceRange(min=50, max=150, label="Moderate"),
    PriceRange(min=150, max=99999, label="Premium"),
)


def default_budget_preference(
    default_budget: Optional[float] = None,
    tracking_level: TrackingLevel = TrackingLevel.BOTH,
    enable_analytics: bool = True,
) -> BudgetPreference:
    price_ranges: List[PriceRange] = list(PREFERENCE_PRICE_RANGES)
    return BudgetPreference(
        default_budget=default_budget,
        tracking_level=tracking_level,
        enable_analytics=enable_analytics,
        price_ranges=price_ranges,
    )
