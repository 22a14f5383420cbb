"""Retention of photos on sold (archived) items.

The policy only decides eligibility and which photos to hand to the storage
layer; deleting them is the storage collaborator's job.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from resale_metrics.models import DateLike, Item, ItemPhoto, ItemStatus, to_date
from resale_metrics.tier_limits import (
    BooleanLimit,
    LimitKey,
    LimitTable,
    NumericLimit,
    Tier,
    UNLIMITED,
    get_limit,
)


@dataclass(frozen=True)
class RetentionPolicy:
    retention_days: int
    keep_first_photo: bool

    @property
    def unlimited(self) -> bool:
        return self.retention_days == UNLIMITED


@dataclass(frozen=True)
class PhotoDeletionRequest:
    photo_id: str
    storage_path: str


def retention_policy(tier: Union[Tier, str], table: Optional[LimitTable] = None) -> RetentionPolicy:
    days = get_limit(tier, LimitKey.ARCHIVED_PHOTO_RETENTION_DAYS, table)
    keep_first = get_limit(tier, LimitKey.KEEP_FIRST_PHOTO, table)
    return RetentionPolicy(
        retention_days=days.value if isinstance(days, NumericLimit) else UNLIMITED,
        keep_first_photo=keep_first.enabled if isinstance(keep_first, BooleanLimit) else True,
    )


def should_clean_archived_photos(tier: Union[Tier, str], sold_date: DateLike, photo_count: int,
                                 today: Optional[date] = None,
                                 table: Optional[LimitTable] = None) -> bool:
    """Whether a sold item's photos are past the tier's retention window."""
    policy = retention_policy(tier, table)
    if policy.unlimited or photo_count <= 0:
        return False
    if policy.keep_first_photo and photo_count <= 1:
        return False
    sold_on = to_date(sold_date)
    if sold_on is None:
        return False
    return ((today or date.today()) - sold_on).days > policy.retention_days


def build_deletion_requests(tier: Union[Tier, str], item: Item, photos: list[ItemPhoto],
                            today: Optional[date] = None,
                            table: Optional[LimitTable] = None) -> list[PhotoDeletionRequest]:
    """Photos of ``item`` to delete now; the first by display order survives when kept."""
    if item.status != ItemStatus.SOLD:
        return []
    own = sorted((p for p in photos if p.item_id == item.id), key=lambda p: p.display_order)
    if not should_clean_archived_photos(tier, item.sale_date, len(own), today, table):
        return []
    if retention_policy(tier, table).keep_first_photo:
        own = own[1:]
    return [PhotoDeletionRequest(p.id, p.storage_path) for p in own]
