"""Inventory Health Analyzer.

Surface stale listings, lifecycle counts and short actionable insights for
the dashboard.

Features:
- Stale listing detection (listed and aged past a threshold)
- Unlisted / listed / sold counts
- Prioritized insights with a navigation target (item or lot)
- Stage-aware empty states when nothing is noteworthy
- Lot completion readiness
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from resale_metrics.config import EngineSettings
from resale_metrics.cost_allocation import recorded_cost
from resale_metrics.models import Item, ItemStatus, Lot, LotStatus, to_date, to_datetime

QUICK_FLIP_DAYS = 7
QUICK_FLIP_LOOKBACK_DAYS = 30
UNLISTED_REMINDER_MIN = 5
BEST_SOURCE_MIN_SALES = 3
SALES_MILESTONES = [100, 50, 25, 10]


class InsightKind(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    INFO = "info"
    TIP = "tip"


class TargetType(str, Enum):
    ITEM = "item"
    LOT = "lot"


class UserStage(str, Enum):
    NEW_USER = "new_user"            # no lots or items
    HAS_INVENTORY = "has_inventory"  # items, none listed
    HAS_LISTINGS = "has_listings"    # listed, no sales
    MAKING_SALES = "making_sales"
    ESTABLISHED = "established"      # 10+ sales


@dataclass
class Insight:
    id: str
    kind: InsightKind
    title: str
    message: str
    priority: int
    target_type: Optional[TargetType] = None
    target_id: Optional[str] = None


@dataclass
class EmptyState:
    title: str
    message: str
    action_label: Optional[str] = None
    action_route: Optional[str] = None


@dataclass
class LifecycleCounts:
    unlisted: int = 0
    listed: int = 0
    sold: int = 0

    @property
    def total(self) -> int:
        return self.unlisted + self.listed + self.sold


@dataclass
class StaleItem:
    id: str
    name: str
    lot_id: Optional[str]
    lot_name: Optional[str]
    days_listed: int
    listing_price: Optional[float]


def days_since_listed(item: Item, today: Optional[date] = None) -> Optional[int]:
    """Whole days since listing.

    A timestamped listing measured against a ``datetime`` (the default is the
    current time) floors the elapsed time to whole days. Anything else
    compares calendar dates.
    """
    listed_on = to_date(item.listing_date)
    if listed_on is None:
        return None
    listed_at = to_datetime(item.listing_date)
    if today is None:
        today = datetime.now(listed_at.tzinfo) if listed_at is not None else date.today()
    if (isinstance(today, datetime) and listed_at is not None
            and (today.tzinfo is None) == (listed_at.tzinfo is None)):
        return (today - listed_at) // timedelta(days=1)
    if isinstance(today, datetime):
        today = today.date()
    return (today - listed_on).days


def days_to_sell(item: Item) -> Optional[int]:
    if item.status != ItemStatus.SOLD:
        return None
    listed_on, sold_on = to_date(item.listing_date), to_date(item.sale_date)
    if listed_on is None or sold_on is None:
        return None
    return (sold_on - listed_on).days


def average_days_to_sell(items: list[Item]) -> Optional[float]:
    durations = [d for d in (days_to_sell(i) for i in items) if d is not None]
    if not durations:
        return None
    return sum(durations) / len(durations)


def is_stale(item: Item, threshold_days: int = 30, today: Optional[date] = None) -> bool:
    """Listed items whose listing has aged ``threshold_days`` or more."""
    if item.status != ItemStatus.LISTED:
        return False
    days = days_since_listed(item, today)
    return days is not None and days >= threshold_days


def lifecycle_counts(items: list[Item]) -> LifecycleCounts:
    counts = LifecycleCounts()
    for item in items:
        if item.status == ItemStatus.SOLD:
            counts.sold += 1
        elif item.status == ItemStatus.LISTED:
            counts.listed += 1
        else:
            counts.unlisted += 1
    return counts


def get_stale_items(items: list[Item], lots: list[Lot], threshold_days: int = 30,
                    today: Optional[date] = None) -> list[StaleItem]:
    """Stale items, longest-listed first."""
    lot_names = {lot.id: lot.name for lot in lots}
    stale = [
        StaleItem(
            id=item.id,
            name=item.name,
            lot_id=item.lot_id,
            lot_name=lot_names.get(item.lot_id) if item.lot_id else None,
            days_listed=days_since_listed(item, today) or 0,
            listing_price=item.listing_price,
        )
        for item in items
        if is_stale(item, threshold_days, today)
    ]
    return sorted(stale, key=lambda s: s.days_listed, reverse=True)


def is_lot_ready_to_complete(lot: Lot, items: list[Item],
                             dismissed_lot_ids: Iterable[str] = ()) -> bool:
    """A processing lot whose items are all listed or sold, not yet dismissed."""
    if lot.status != LotStatus.PROCESSING:
        return False
    if lot.id in set(dismissed_lot_ids):
        return False
    lot_items = [i for i in items if i.lot_id == lot.id]
    if not lot_items:
        return False
    return all(i.status != ItemStatus.UNLISTED for i in lot_items)


# ── Insight rules ──

def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'s' if n != 1 else ''}"


def _first_sale_insight(sold: list[Item]) -> Optional[Insight]:
    if len(sold) != 1:
        return None
    item = sold[0]
    profit = (item.sale_price or 0.0) - recorded_cost(item)
    message = (f"Congrats on your first sale! You made ${profit:.2f}" if profit >= 0
               else "Your first sale is in the books!")
    return Insight("first-sale", InsightKind.SUCCESS, "First Sale!", message, 100,
                   TargetType.ITEM, item.id)


def _milestone_insight(sold: list[Item]) -> Optional[Insight]:
    count = len(sold)
    for milestone in SALES_MILESTONES:
        if milestone <= count < milestone + 5:
            return Insight(f"milestone-{milestone}", InsightKind.SUCCESS, f"{milestone} Sales!",
                           f"You've sold {count} items. Keep it up!", 95)
    return None


def _stale_insight(items: list[Item], threshold: int, today: Optional[date]) -> Optional[Insight]:
    stale = [i for i in items if is_stale(i, threshold, today)]
    if not stale:
        return None
    target = stale[0].id if len(stale) == 1 else None
    return Insight("stale-inventory", InsightKind.WARNING, "Stale Inventory",
                   f"{_plural(len(stale), 'item')} listed {threshold}+ days. Consider repricing.",
                   90, TargetType.ITEM if target else None, target)


def _ready_lot_insights(lots: list[Lot], items: list[Item],
                        dismissed: set[str]) -> list[Insight]:
    return [
        Insight(f"lot-ready-{lot.id}", InsightKind.INFO, "Ready to Archive",
                f"{lot.name} is fully listed. Mark it complete to archive it.",
                85, TargetType.LOT, lot.id)
        for lot in lots
        if is_lot_ready_to_complete(lot, items, dismissed)
    ]


def _best_source_insight(sold: list[Item], lots: list[Lot]) -> Optional[Insight]:
    if len(sold) < BEST_SOURCE_MIN_SALES:
        return None
    lots_by_id = {lot.id: lot for lot in lots}
    stats: dict[Optional[str], list[float]] = {}
    for item in sold:
        key = item.lot_id if item.lot_id in lots_by_id else None
        s = stats.setdefault(key, [0.0, 0.0, 0])
        s[0] += item.sale_price or 0.0
        s[1] += recorded_cost(item)
        s[2] += 1

    best_key, best_roi = None, None
    for key, (revenue, cost, count) in stats.items():
        if count < 2 or cost <= 0:
            continue
        roi = (revenue - cost) / cost * 100
        if best_roi is None or roi > best_roi:
            best_key, best_roi = key, roi

    if best_roi is None or best_roi <= 0:
        return None
    name = lots_by_id[best_key].name if best_key else "Individual items"
    return Insight("best-source", InsightKind.SUCCESS, "Top Performer",
                   f"{name} has your best ROI at {round(best_roi)}%", 80,
                   TargetType.LOT if best_key else None, best_key)


def _quick_flip_insight(sold: list[Item], today: date) -> Optional[Insight]:
    since = today - timedelta(days=QUICK_FLIP_LOOKBACK_DAYS)
    durations = []
    for item in sold:
        sold_on = to_date(item.sale_date)
        if sold_on is None or sold_on < since:
            continue
        d = days_to_sell(item)
        if d is not None and d <= QUICK_FLIP_DAYS:
            durations.append(d)
    if not durations:
        return None
    avg = sum(durations) / len(durations)
    return Insight("quick-flips", InsightKind.SUCCESS, "Quick Flips",
                   f"{_plural(len(durations), 'item')} sold within a week, avg {round(avg)} days", 70)


def _unlisted_insight(items: list[Item]) -> Optional[Insight]:
    unlisted = [i for i in items if i.status == ItemStatus.UNLISTED]
    if len(unlisted) < UNLISTED_REMINDER_MIN:
        return None
    return Insight("unlisted-items", InsightKind.TIP, "Ready to List",
                   f"{len(unlisted)} items waiting to be listed", 60)


def generate_insights(lots: list[Lot], items: list[Item],
                      settings: Optional[EngineSettings] = None,
                      today: Optional[date] = None,
                      dismissed_lot_ids: Iterable[str] = ()) -> list[Insight]:
    """Top insights by priority, highest first."""
    settings = settings or EngineSettings()
    day = today or date.today()
    if isinstance(day, datetime):
        day = day.date()
    sold = [i for i in items if i.status == ItemStatus.SOLD]

    candidates = [
        _first_sale_insight(sold),
        _milestone_insight(sold),
        _stale_insight(items, settings.stale_threshold_days, today),
        _best_source_insight(sold, lots),
        _quick_flip_insight(sold, day),
        _unlisted_insight(items),
    ]
    insights = [c for c in candidates if c is not None]
    insights.extend(_ready_lot_insights(lots, items, set(dismissed_lot_ids)))

    insights.sort(key=lambda i: i.priority, reverse=True)
    return insights[:settings.max_insights]


def get_user_stage(lots: list[Lot], items: list[Item]) -> UserStage:
    counts = lifecycle_counts(items)
    if not lots and not items:
        return UserStage.NEW_USER
    if counts.sold >= 10:
        return UserStage.ESTABLISHED
    if counts.sold > 0:
        return UserStage.MAKING_SALES
    if counts.listed > 0:
        return UserStage.HAS_LISTINGS
    return UserStage.HAS_INVENTORY


EMPTY_STATES = {
    UserStage.NEW_USER: EmptyState(
        "Welcome!", "Add your first pallet or item to start tracking profits.",
        "Add Pallet", "/pallets/new"),
    UserStage.HAS_INVENTORY: EmptyState(
        "Ready to sell?", "List your items to start making sales and unlock insights.",
        "View Inventory", "/inventory"),
    UserStage.HAS_LISTINGS: EmptyState(
        "Looking good!", "Once you make a few sales, trends and tips will show up here."),
    UserStage.MAKING_SALES: EmptyState(
        "Keep it up!", "A few more sales and you'll see insights about your best sources."),
    UserStage.ESTABLISHED: EmptyState(
        "All caught up!", "No new insights right now. Keep selling and check back soon."),
}


def get_empty_state(stage: UserStage) -> EmptyState:
    return EMPTY_STATES[stage]


@dataclass
class HealthSummary:
    counts: LifecycleCounts
    stale_items: list[StaleItem]
    insights: list[Insight]
    empty_state: Optional[EmptyState]
    ready_lot_ids: list[str]


def analyze_inventory(lots: list[Lot], items: list[Item],
                      settings: Optional[EngineSettings] = None,
                      today: Optional[date] = None,
                      dismissed_lot_ids: Iterable[str] = ()) -> HealthSummary:
    """Everything the dashboard's health section shows, from one snapshot."""
    settings = settings or EngineSettings()
    dismissed = set(dismissed_lot_ids)
    insights = generate_insights(lots, items, settings, today, dismissed)
    return HealthSummary(
        counts=lifecycle_counts(items),
        stale_items=get_stale_items(items, lots, settings.stale_threshold_days, today),
        insights=insights,
        empty_state=None if insights else get_empty_state(get_user_stage(lots, items)),
        ready_lot_ids=[lot.id for lot in lots if is_lot_ready_to_complete(lot, items, dismissed)],
    )
