"""Notification payloads and Expo push delivery.

Builders return ``None`` when there is nothing to send. Delivery posts
batches to the Expo push API with retry; failures are logged and counted,
never raised to the caller.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Optional, Union

import requests

from resale_metrics.config import config
from resale_metrics.cost_allocation import calculate_lot_profit, recorded_cost
from resale_metrics.inventory_health import is_stale
from resale_metrics.models import Item, ItemStatus, Lot, to_date
from resale_metrics.tier_limits import LimitKey, NumericLimit, Tier, get_limit

logger = logging.getLogger(__name__)

PUSH_BATCH_SIZE = 100
LIMIT_WARNING_FRACTION = 0.8
ROI_MILESTONES = [25, 50, 75, 100, 150, 200]
TRIAL_REMINDER_DAYS = 3

LIMIT_NAMES = {
    LimitKey.ACTIVE_LOTS: "active pallets",
    LimitKey.ARCHIVED_LOTS: "archived pallets",
    LimitKey.ACTIVE_ITEMS: "active items",
    LimitKey.ARCHIVED_ITEMS: "archived items",
    LimitKey.PHOTOS_PER_ITEM: "photos per item",
    LimitKey.AI_DESCRIPTIONS_PER_MONTH: "AI descriptions",
}


class NotificationType(str, Enum):
    STALE_INVENTORY = "stale_inventory"
    LOT_MILESTONE = "pallet_milestone"
    WEEKLY_SUMMARY = "weekly_summary"
    SUBSCRIPTION_REMINDER = "subscription_reminder"
    LIMIT_WARNING = "limit_warning"
    SYSTEM = "system"


@dataclass
class NotificationPayload:
    user_id: str
    type: NotificationType
    title: str
    body: str
    data: dict = field(default_factory=dict)

    def to_push_message(self, token: str) -> dict:
        return {
            "to": token,
            "title": self.title,
            "body": self.body,
            "data": {**self.data, "type": self.type.value},
            "sound": "default",
        }


def stale_inventory_notification(user_id: str, items: list[Item], threshold_days: int = 30,
                                 today: Optional[date] = None) -> Optional[NotificationPayload]:
    stale = [i for i in items if is_stale(i, threshold_days, today)]
    if not stale:
        return None
    if len(stale) == 1:
        body = (f"You have 1 item listed for over {threshold_days} days. "
                "Consider repricing to move it faster.")
    else:
        body = (f"You have {len(stale)} items listed for over {threshold_days} days. "
                "Consider repricing to move them faster.")
    return NotificationPayload(
        user_id=user_id,
        type=NotificationType.STALE_INVENTORY,
        title="Stale Inventory Alert",
        body=body,
        data={"itemIds": [i.id for i in stale], "count": len(stale), "thresholdDays": threshold_days},
    )


def trial_ending_notification(user_id: str, days_left: int) -> Optional[NotificationPayload]:
    if not 0 < days_left <= TRIAL_REMINDER_DAYS:
        return None
    if days_left == 1:
        body = "Your Pro trial ends tomorrow. Upgrade to keep all features."
    else:
        body = f"Your Pro trial ends in {days_left} days. Upgrade to keep all features."
    return NotificationPayload(
        user_id=user_id,
        type=NotificationType.SUBSCRIPTION_REMINDER,
        title="Trial Ending Soon",
        body=body,
        data={"daysLeft": days_left, "route": "/settings/subscription"},
    )


def limit_warning_notification(user_id: str, tier: Union[Tier, str], key: LimitKey,
                               current: int) -> Optional[NotificationPayload]:
    """Warn at 80% of a finite cap; flags and unlimited caps never warn."""
    limit = get_limit(tier, key)
    if not isinstance(limit, NumericLimit) or limit.unlimited or limit.value <= 0:
        return None
    if current < limit.value * LIMIT_WARNING_FRACTION:
        return None
    name = LIMIT_NAMES.get(LimitKey(key), LimitKey(key).value.replace("_", " "))
    return NotificationPayload(
        user_id=user_id,
        type=NotificationType.LIMIT_WARNING,
        title="Approaching Limit",
        body=f"You're using {current} of {limit.value} {name}. Upgrade for more room.",
        data={"limitType": LimitKey(key).value, "current": current, "max": limit.value},
    )


def lot_milestone_notification(user_id: str, lot: Lot, items: list[Item],
                               already_notified: int = 0) -> Optional[NotificationPayload]:
    """Highest ROI milestone a lot has crossed above ``already_notified``."""
    result = calculate_lot_profit(lot, items, [])
    if result.sold_count == 0 or result.total_cost <= 0:
        return None
    crossed = [m for m in ROI_MILESTONES if result.roi >= m]
    if not crossed or crossed[-1] <= already_notified:
        return None
    milestone = crossed[-1]
    return NotificationPayload(
        user_id=user_id,
        type=NotificationType.LOT_MILESTONE,
        title="Milestone Reached!",
        body=(f"{lot.name} has reached {milestone}% ROI (currently {result.roi:.0f}%). "
              "Great sourcing decision!"),
        data={"palletId": lot.id, "palletName": lot.name, "milestone": milestone,
              "roi": round(result.roi)},
    )


def weekly_summary_notification(user_id: str, items: list[Item],
                                today: Optional[date] = None) -> Optional[NotificationPayload]:
    """Sales over the 7 days ending ``today``; ``None`` without any sale."""
    today = today or date.today()
    week_start = today - timedelta(days=7)
    sold = []
    for item in items:
        sold_on = to_date(item.sale_date)
        if item.status == ItemStatus.SOLD and sold_on is not None and week_start <= sold_on <= today:
            sold.append(item)
    if not sold:
        return None
    revenue = sum(i.sale_price or 0.0 for i in sold)
    profit = sum((i.sale_price or 0.0) - recorded_cost(i) for i in sold)
    profit_text = f"${profit:.2f} profit" if profit >= 0 else f"-${abs(profit):.2f} loss"
    return NotificationPayload(
        user_id=user_id,
        type=NotificationType.WEEKLY_SUMMARY,
        title="Weekly Summary",
        body=f"This week: {len(sold)} items sold for ${revenue:.2f} ({profit_text})",
        data={"itemsSold": len(sold), "revenue": round(revenue, 2), "profit": round(profit, 2),
              "weekStarting": week_start.isoformat()},
    )


def welcome_notification(user_id: str) -> NotificationPayload:
    return NotificationPayload(
        user_id=user_id,
        type=NotificationType.SYSTEM,
        title="Welcome!",
        body="Get started by adding your first pallet and tracking your reselling profits.",
        data={"action": "onboarding"},
    )


@dataclass
class PushResult:
    sent: int = 0
    failed: int = 0
    invalid_tokens: list[str] = field(default_factory=list)


class PushNotifier:
    """Deliver payloads to the Expo push API."""

    def __init__(self, url: Optional[str] = None, timeout: Optional[int] = None,
                 retries: Optional[int] = None):
        self.url = url or config.EXPO_PUSH_URL
        self.timeout = timeout or config.PUSH_TIMEOUT
        self.retries = retries or config.PUSH_RETRIES

    def send(self, payloads: list[NotificationPayload],
             tokens: dict[str, list[str]]) -> PushResult:
        """Send every payload to each of its user's tokens, in batches."""
        messages = []
        for payload in payloads:
            for token in tokens.get(payload.user_id, []):
                messages.append(payload.to_push_message(token))

        result = PushResult()
        for start in range(0, len(messages), PUSH_BATCH_SIZE):
            batch = messages[start:start + PUSH_BATCH_SIZE]
            tickets = self._post_batch(batch)
            if tickets is None:
                result.failed += len(batch)
                continue
            result.sent += len(batch)
            for message, ticket in zip(batch, tickets):
                details = ticket.get("details") or {}
                if ticket.get("status") == "error" and details.get("error") == "DeviceNotRegistered":
                    result.invalid_tokens.append(message["to"])
        if result.invalid_tokens:
            logger.info("Found %d unregistered push tokens", len(result.invalid_tokens))
        return result

    def _post_batch(self, batch: list[dict]) -> Optional[list[dict]]:
        last_err = None
        for attempt in range(self.retries):
            try:
                r = requests.post(
                    self.url,
                    headers={"Accept": "application/json", "Content-Type": "application/json"},
                    json=batch,
                    timeout=self.timeout,
                )
                r.raise_for_status()
                return r.json().get("data") or []
            except requests.exceptions.Timeout:
                last_err = "timeout"
                time.sleep(2 ** attempt)
            except requests.exceptions.HTTPError as e:
                status = e.response.status_code if e.response is not None else 0
                if status == 429 or status >= 500:
                    last_err = f"HTTP {status}"
                    time.sleep(2 ** attempt)
                else:
                    logger.error("Push batch rejected: HTTP %s", status)
                    return None
            except requests.exceptions.RequestException as e:
                last_err = str(e)
                time.sleep(2 ** attempt)
        logger.error("Push batch failed after %d attempts: %s", self.retries, last_err)
        return None
