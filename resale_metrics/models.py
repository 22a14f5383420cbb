"""Inventory records: lots, items, expenses, mileage trips and photos.

Records are plain dataclasses loaded once per refresh from the persistence
layer. Date fields accept ``date``, ``datetime`` or ISO strings; use
:func:`to_date` to read them, which returns ``None`` for anything it cannot
parse so callers can drop the record instead of failing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str, None]

MAX_TRIP_MILES = 9999


class LotStatus(str, Enum):
    UNPROCESSED = "unprocessed"
    PROCESSING = "processing"
    COMPLETED = "completed"


class ItemStatus(str, Enum):
    UNLISTED = "unlisted"
    LISTED = "listed"
    SOLD = "sold"


class ItemCondition(str, Enum):
    NEW = "new"
    OPEN_BOX = "open_box"
    USED_GOOD = "used_good"
    USED_FAIR = "used_fair"
    DAMAGED = "damaged"
    FOR_PARTS = "for_parts"
    UNSELLABLE = "unsellable"


class SourceType(str, Enum):
    PALLET = "pallet"
    THRIFT = "thrift"
    GARAGE_SALE = "garage_sale"
    RETAIL_ARBITRAGE = "retail_arbitrage"
    MYSTERY_BOX = "mystery_box"
    OTHER = "other"


class ExpenseCategory(str, Enum):
    SUPPLIES = "supplies"
    GAS = "gas"
    MILEAGE = "mileage"
    STORAGE = "storage"
    FEES = "fees"
    SHIPPING = "shipping"
    SUBSCRIPTIONS = "subscriptions"
    EQUIPMENT = "equipment"
    OTHER = "other"


class TripPurpose(str, Enum):
    PALLET_PICKUP = "pallet_pickup"
    THRIFT_RUN = "thrift_run"
    GARAGE_SALE = "garage_sale"
    POST_OFFICE = "post_office"
    SUPPLIES = "supplies"
    OTHER = "other"


def to_date(value: DateLike) -> Optional[date]:
    """Coerce a date-ish value to a ``date``; ``None`` if missing or malformed."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        # Full timestamps, including a trailing "Z"
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        logger.debug("Unparseable date %r", value)
        return None


def to_datetime(value: DateLike) -> Optional[datetime]:
    """A ``datetime`` when the value carries a time of day, else ``None``."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or len(value.strip()) <= 10:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _enum(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _num(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class Lot:
    """A bulk purchase whose cost is shared by its items."""
    id: str
    name: str
    purchase_cost: float = 0.0
    sales_tax: Optional[float] = None
    purchase_date: DateLike = None
    status: LotStatus = LotStatus.UNPROCESSED
    supplier: Optional[str] = None
    source_type: SourceType = SourceType.PALLET
    source_name: Optional[str] = None
    version: int = 1

    @property
    def total_cost(self) -> float:
        return self.purchase_cost + (self.sales_tax or 0.0)

    @classmethod
    def from_dict(cls, data: dict) -> "Lot":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            purchase_cost=_num(data.get("purchase_cost")) or 0.0,
            sales_tax=_num(data.get("sales_tax")),
            purchase_date=data.get("purchase_date"),
            status=_enum(LotStatus, data.get("status"), LotStatus.UNPROCESSED),
            supplier=data.get("supplier"),
            source_type=_enum(SourceType, data.get("source_type"), SourceType.PALLET),
            source_name=data.get("source_name"),
            version=int(data.get("version") or 1),
        )


@dataclass
class Item:
    id: str
    name: str
    lot_id: Optional[str] = None
    quantity: int = 1
    condition: ItemCondition = ItemCondition.USED_GOOD
    status: ItemStatus = ItemStatus.UNLISTED
    retail_price: Optional[float] = None
    listing_price: Optional[float] = None
    sale_price: Optional[float] = None
    purchase_cost: Optional[float] = None
    allocated_cost: Optional[float] = None
    listing_date: DateLike = None
    sale_date: DateLike = None
    sales_channel: Optional[str] = None
    platform_fee: Optional[float] = None
    shipping_cost: Optional[float] = None

    @property
    def is_sold(self) -> bool:
        return self.status == ItemStatus.SOLD

    def relist(self, listing_price: float, today: Optional[date] = None) -> "Item":
        """Return a copy with a new listing price.

        A price change on a listed item restarts its listing clock.
        """
        today = today or date.today()
        if self.status == ItemStatus.LISTED and listing_price != self.listing_price:
            return replace(self, listing_price=listing_price, listing_date=today)
        return replace(self, listing_price=listing_price)

    @classmethod
    def from_dict(cls, data: dict) -> "Item":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            lot_id=data.get("lot_id", data.get("pallet_id")),
            quantity=int(data.get("quantity") or 1),
            condition=_enum(ItemCondition, data.get("condition"), ItemCondition.USED_GOOD),
            status=_enum(ItemStatus, data.get("status"), ItemStatus.UNLISTED),
            retail_price=_num(data.get("retail_price")),
            listing_price=_num(data.get("listing_price")),
            sale_price=_num(data.get("sale_price")),
            purchase_cost=_num(data.get("purchase_cost")),
            allocated_cost=_num(data.get("allocated_cost")),
            listing_date=data.get("listing_date"),
            sale_date=data.get("sale_date"),
            sales_channel=data.get("sales_channel", data.get("platform")),
            platform_fee=_num(data.get("platform_fee")),
            shipping_cost=_num(data.get("shipping_cost")),
        )


@dataclass
class Expense:
    id: str
    amount: float
    category: ExpenseCategory = ExpenseCategory.OTHER
    expense_date: DateLike = None
    lot_ids: list[str] = field(default_factory=list)
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Expense":
        lot_ids = data.get("lot_ids", data.get("pallet_ids"))
        if lot_ids is None:
            single = data.get("lot_id", data.get("pallet_id"))
            lot_ids = [single] if single else []
        return cls(
            id=str(data["id"]),
            amount=_num(data.get("amount")) or 0.0,
            category=_enum(ExpenseCategory, data.get("category"), ExpenseCategory.OTHER),
            expense_date=data.get("expense_date"),
            lot_ids=[str(i) for i in lot_ids],
            description=data.get("description"),
        )


@dataclass
class MileageTrip:
    """A logged business trip. The rate and deduction are fixed when logged."""
    id: str
    trip_date: DateLike
    purpose: TripPurpose
    miles: float
    mileage_rate: float
    deduction: float
    lot_ids: list[str] = field(default_factory=list)

    @classmethod
    def log(cls, id: str, trip_date: DateLike, purpose: TripPurpose, miles: float,
            mileage_rate: float, lot_ids: Optional[list[str]] = None) -> "MileageTrip":
        """Create a trip, locking the current rate and its deduction."""
        if not 0 < miles <= MAX_TRIP_MILES:
            raise ValueError(f"miles must be in (0, {MAX_TRIP_MILES}], got {miles}")
        return cls(
            id=id,
            trip_date=trip_date,
            purpose=purpose,
            miles=miles,
            mileage_rate=mileage_rate,
            deduction=round(miles * mileage_rate, 2),
            lot_ids=list(lot_ids or []),
        )

    @classmethod
    def from_dict(cls, data: dict) -> "MileageTrip":
        miles = _num(data.get("miles")) or 0.0
        rate = _num(data.get("mileage_rate")) or 0.0
        deduction = _num(data.get("deduction"))
        return cls(
            id=str(data["id"]),
            trip_date=data.get("trip_date"),
            purpose=_enum(TripPurpose, data.get("purpose"), TripPurpose.OTHER),
            miles=miles,
            mileage_rate=rate,
            # Older records without a stored deduction fall back to their own locked rate
            deduction=deduction if deduction is not None else round(miles * rate, 2),
            lot_ids=[str(i) for i in data.get("lot_ids", data.get("pallet_ids")) or []],
        )


@dataclass
class ItemPhoto:
    id: str
    item_id: str
    storage_path: str
    display_order: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "ItemPhoto":
        return cls(
            id=str(data["id"]),
            item_id=str(data["item_id"]),
            storage_path=data.get("storage_path", ""),
            display_order=int(data.get("display_order") or 0),
        )


@dataclass
class Snapshot:
    """Everything the engine needs for one refresh."""
    lots: list[Lot] = field(default_factory=list)
    items: list[Item] = field(default_factory=list)
    expenses: list[Expense] = field(default_factory=list)
    mileage_trips: list[MileageTrip] = field(default_factory=list)
    photos: list[ItemPhoto] = field(default_factory=list)
    tier: str = "free"

    def lot_by_id(self, lot_id: Optional[str]) -> Optional[Lot]:
        if lot_id is None:
            return None
        for lot in self.lots:
            if lot.id == lot_id:
                return lot
        return None

    def items_in_lot(self, lot_id: str) -> list[Item]:
        return [i for i in self.items if i.lot_id == lot_id]

    def photos_for_item(self, item_id: str) -> list[ItemPhoto]:
        return [p for p in self.photos if p.item_id == item_id]


def load_snapshot(data: dict) -> Snapshot:
    """Build a :class:`Snapshot` from JSON-shaped data (``pallets`` is accepted for ``lots``)."""
    return Snapshot(
        lots=[Lot.from_dict(d) for d in data.get("lots", data.get("pallets")) or []],
        items=[Item.from_dict(d) for d in data.get("items") or []],
        expenses=[Expense.from_dict(d) for d in data.get("expenses") or []],
        mileage_trips=[MileageTrip.from_dict(d) for d in data.get("mileage_trips") or []],
        photos=[ItemPhoto.from_dict(d) for d in data.get("photos") or []],
        tier=data.get("tier") or "free",
    )
