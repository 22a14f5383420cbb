"""Subscription tier limits.

Each tier maps every :class:`LimitKey` to either a :class:`BooleanLimit`
(a feature flag) or a :class:`NumericLimit` (a cap, where ``-1`` means
unlimited). Active and archived counts for lots and items are separate keys
so a user at the active cap can still complete and archive lots.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Union

from resale_metrics.models import Item, ItemStatus, Lot, LotStatus

logger = logging.getLogger(__name__)

UNLIMITED = -1


class Tier(str, Enum):
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"


TIER_ORDER = [Tier.FREE, Tier.STARTER, Tier.PRO, Tier.ENTERPRISE]


class LimitKey(str, Enum):
    ACTIVE_LOTS = "active_lots"
    ARCHIVED_LOTS = "archived_lots"
    ACTIVE_ITEMS = "active_items"
    ARCHIVED_ITEMS = "archived_items"
    PHOTOS_PER_ITEM = "photos_per_item"
    ARCHIVED_PHOTO_RETENTION_DAYS = "archived_photo_retention_days"
    KEEP_FIRST_PHOTO = "keep_first_photo"
    AI_DESCRIPTIONS_PER_MONTH = "ai_descriptions_per_month"
    ANALYTICS_RETENTION_DAYS = "analytics_retention_days"
    CSV_EXPORT = "csv_export"
    PDF_EXPORT = "pdf_export"
    EXPENSE_TRACKING = "expense_tracking"
    MILEAGE_TRACKING = "mileage_tracking"
    MILEAGE_SAVED_ROUTES = "mileage_saved_routes"
    BULK_IMPORT_EXPORT = "bulk_import_export"
    PRIORITY_SUPPORT = "priority_support"
    MULTI_USER = "multi_user"


class UsageLevel(str, Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


# Fractions of a finite limit
USAGE_THRESHOLDS = {
    UsageLevel.WARNING: 0.75,
    UsageLevel.CRITICAL: 0.99,
}


@dataclass(frozen=True)
class BooleanLimit:
    enabled: bool


@dataclass(frozen=True)
class NumericLimit:
    value: int

    @property
    def unlimited(self) -> bool:
        return self.value == UNLIMITED


Limit = Union[BooleanLimit, NumericLimit]
LimitTable = Mapping[Tier, Mapping[LimitKey, Limit]]


def _tier(active_lots, archived_lots, active_items, archived_items, photos,
          retention_days, ai_descriptions, analytics_days, *, csv=False, pdf=False,
          expenses=False, mileage=False, saved_routes=False, bulk=False,
          priority=False, multi_user=False, keep_first_photo=True) -> dict[LimitKey, Limit]:
    return {
        LimitKey.ACTIVE_LOTS: NumericLimit(active_lots),
        LimitKey.ARCHIVED_LOTS: NumericLimit(archived_lots),
        LimitKey.ACTIVE_ITEMS: NumericLimit(active_items),
        LimitKey.ARCHIVED_ITEMS: NumericLimit(archived_items),
        LimitKey.PHOTOS_PER_ITEM: NumericLimit(photos),
        LimitKey.ARCHIVED_PHOTO_RETENTION_DAYS: NumericLimit(retention_days),
        LimitKey.KEEP_FIRST_PHOTO: BooleanLimit(keep_first_photo),
        LimitKey.AI_DESCRIPTIONS_PER_MONTH: NumericLimit(ai_descriptions),
        LimitKey.ANALYTICS_RETENTION_DAYS: NumericLimit(analytics_days),
        LimitKey.CSV_EXPORT: BooleanLimit(csv),
        LimitKey.PDF_EXPORT: BooleanLimit(pdf),
        LimitKey.EXPENSE_TRACKING: BooleanLimit(expenses),
        LimitKey.MILEAGE_TRACKING: BooleanLimit(mileage),
        LimitKey.MILEAGE_SAVED_ROUTES: BooleanLimit(saved_routes),
        LimitKey.BULK_IMPORT_EXPORT: BooleanLimit(bulk),
        LimitKey.PRIORITY_SUPPORT: BooleanLimit(priority),
        LimitKey.MULTI_USER: BooleanLimit(multi_user),
    }


TIER_LIMITS: dict[Tier, dict[LimitKey, Limit]] = {
    Tier.FREE: _tier(2, 10, 100, 200, 1, 30, 0, 30, keep_first_photo=False),
    Tier.STARTER: _tier(5, UNLIMITED, 500, UNLIMITED, 3, 90, 50, UNLIMITED,
                        csv=True, expenses=True, mileage=True),
    Tier.PRO: _tier(UNLIMITED, UNLIMITED, UNLIMITED, UNLIMITED, 10, UNLIMITED, 200, UNLIMITED,
                    csv=True, pdf=True, expenses=True, mileage=True, saved_routes=True,
                    bulk=True, priority=True),
    Tier.ENTERPRISE: _tier(UNLIMITED, UNLIMITED, UNLIMITED, UNLIMITED, UNLIMITED,
                           UNLIMITED, UNLIMITED, UNLIMITED,
                           csv=True, pdf=True, expenses=True, mileage=True, saved_routes=True,
                           bulk=True, priority=True, multi_user=True),
}

TIER_PRICING = {
    Tier.FREE: {"monthly": 0.0, "annual": 0.0},
    Tier.STARTER: {"monthly": 9.99, "annual": 99.99},
    Tier.PRO: {"monthly": 24.99, "annual": 249.99},
    Tier.ENTERPRISE: {"monthly": None, "annual": None},  # custom pricing
}


def resolve_tier(tier: Union[Tier, str]) -> Tier:
    """Normalize a tier name; unknown names fall back to free."""
    if isinstance(tier, Tier):
        return tier
    try:
        return Tier(str(tier).lower())
    except ValueError:
        logger.warning("Unknown subscription tier %r, using free tier limits", tier)
        return Tier.FREE


def get_limit(tier: Union[Tier, str], key: LimitKey,
              table: Optional[LimitTable] = None) -> Limit:
    table = TIER_LIMITS if table is None else table
    return table[resolve_tier(tier)][LimitKey(key)]


def is_unlimited(limit: Limit) -> bool:
    return isinstance(limit, NumericLimit) and limit.unlimited


def can_perform(tier: Union[Tier, str], key: LimitKey, current_count: int = 0,
                table: Optional[LimitTable] = None) -> bool:
    """Whether one more of ``key`` is allowed at ``current_count``.

    Feature flags ignore the count. Being at a cap blocks the next creation
    but never invalidates existing records.
    """
    limit = get_limit(tier, key, table)
    if isinstance(limit, BooleanLimit):
        return limit.enabled
    if limit.unlimited:
        return True
    return current_count < limit.value


def usage_percent(tier: Union[Tier, str], key: LimitKey, current_count: int,
                  table: Optional[LimitTable] = None) -> Optional[float]:
    """Percentage of a finite cap in use; ``None`` for flags and unlimited caps."""
    limit = get_limit(tier, key, table)
    if isinstance(limit, BooleanLimit) or limit.unlimited:
        return None
    if limit.value == 0:
        # A zero quota is always fully used
        return 100.0
    return current_count / limit.value * 100


def usage_level(tier: Union[Tier, str], key: LimitKey, current_count: int,
                table: Optional[LimitTable] = None) -> UsageLevel:
    pct = usage_percent(tier, key, current_count, table)
    if pct is None:
        return UsageLevel.OK
    if pct >= USAGE_THRESHOLDS[UsageLevel.CRITICAL] * 100:
        return UsageLevel.CRITICAL
    if pct >= USAGE_THRESHOLDS[UsageLevel.WARNING] * 100:
        return UsageLevel.WARNING
    return UsageLevel.OK


def required_tier_for(key: LimitKey, current_count: int = 0,
                      table: Optional[LimitTable] = None) -> Optional[Tier]:
    """Cheapest tier that allows the action, or ``None`` if none does."""
    for tier in TIER_ORDER:
        if can_perform(tier, key, current_count, table):
            return tier
    return None


@dataclass
class UsageCounts:
    active_lots: int = 0
    archived_lots: int = 0
    active_items: int = 0
    archived_items: int = 0

    def for_key(self, key: LimitKey) -> int:
        return {
            LimitKey.ACTIVE_LOTS: self.active_lots,
            LimitKey.ARCHIVED_LOTS: self.archived_lots,
            LimitKey.ACTIVE_ITEMS: self.active_items,
            LimitKey.ARCHIVED_ITEMS: self.archived_items,
        }.get(LimitKey(key), 0)


def count_usage(lots: list[Lot], items: list[Item]) -> UsageCounts:
    """Active vs archived counts: completed lots and sold items are archived."""
    archived_lots = sum(1 for lot in lots if lot.status == LotStatus.COMPLETED)
    archived_items = sum(1 for item in items if item.status == ItemStatus.SOLD)
    return UsageCounts(
        active_lots=len(lots) - archived_lots,
        archived_lots=archived_lots,
        active_items=len(items) - archived_items,
        archived_items=archived_items,
    )
