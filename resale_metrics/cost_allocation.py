"""Cost allocation and per-item / per-lot profit.

The cost basis of an item is resolved by an ordered strategy:

1. an explicit ``allocated_cost`` (manual override or locked at sale),
2. an even split of the parent lot's cost (purchase cost + sales tax),
3. the item's own ``purchase_cost``,
4. zero.

Only items without an explicit allocation see a new split when the lot's
membership changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from resale_metrics.models import Expense, Item, ItemCondition, ItemStatus, Lot


class CostSource(str, Enum):
    OVERRIDE = "override"
    LOT_SPLIT = "lot_split"
    DIRECT = "direct"
    NONE = "none"


@dataclass(frozen=True)
class CostBasis:
    value: float
    source: CostSource


def lot_split(lot: Lot, item_count: int) -> float:
    """Even share of a lot's total cost; 0 for an empty lot."""
    if item_count <= 0:
        return 0.0
    return lot.total_cost / item_count


def explain_cost_basis(item: Item, lot: Optional[Lot] = None,
                       lot_items: Optional[list[Item]] = None) -> CostBasis:
    """Resolve an item's cost basis and report which rule produced it."""
    if item.allocated_cost is not None:
        return CostBasis(item.allocated_cost, CostSource.OVERRIDE)
    if item.lot_id is not None and lot is not None:
        # Without a sibling list the item is the only known member of its lot
        siblings = lot_items if lot_items is not None else [item]
        return CostBasis(lot_split(lot, len(siblings)), CostSource.LOT_SPLIT)
    if item.purchase_cost is not None:
        return CostBasis(item.purchase_cost, CostSource.DIRECT)
    return CostBasis(0.0, CostSource.NONE)


def resolve_cost_basis(item: Item, lot: Optional[Lot] = None,
                       lot_items: Optional[list[Item]] = None) -> float:
    return explain_cost_basis(item, lot, lot_items).value


def recorded_cost(item: Item) -> float:
    """Cost basis stored on the record itself, as used for sold items."""
    if item.allocated_cost is not None:
        return item.allocated_cost
    return item.purchase_cost or 0.0


def allocate_lot_costs(lot: Lot, items: list[Item],
                       include_unsellable: bool = True) -> dict[str, float]:
    """Cost basis for every item in a lot, keyed by item id.

    Items with an explicit allocation keep it. When ``include_unsellable`` is
    False, unsellable items are left out of the divisor and carry no cost.
    """
    if include_unsellable:
        divisor = len(items)
    else:
        divisor = sum(1 for i in items if i.condition != ItemCondition.UNSELLABLE)
    share = lot_split(lot, divisor)

    allocations = {}
    for item in items:
        if item.allocated_cost is not None:
            allocations[item.id] = item.allocated_cost
        elif not include_unsellable and item.condition == ItemCondition.UNSELLABLE:
            allocations[item.id] = 0.0
        else:
            allocations[item.id] = share
    return allocations


def estimate_allocated_cost(purchase_cost: float, sales_tax: Optional[float],
                            total_items: int, include_unsellable: bool = True,
                            unsellable_count: int = 0) -> float:
    """Preview of the per-item split before a new item is saved."""
    divisor = total_items if include_unsellable else total_items - unsellable_count
    if divisor <= 0:
        return 0.0
    return (purchase_cost + (sales_tax or 0.0)) / divisor


def item_fees(item: Item) -> float:
    return (item.platform_fee or 0.0) + (item.shipping_cost or 0.0)


def item_profit(item: Item, include_fees: bool = True) -> float:
    """Realized profit on a sold item; 0 until it has a sale price."""
    if item.sale_price is None:
        return 0.0
    profit = item.sale_price - recorded_cost(item)
    if include_fees:
        profit -= item_fees(item)
    return profit


def item_roi(item: Item) -> float:
    if item.sale_price is None:
        return 0.0
    cost = recorded_cost(item)
    if cost == 0:
        return 100.0 if item.sale_price > 0 else 0.0
    return (item.sale_price - cost) / cost * 100


@dataclass
class LotProfit:
    """Profit summary for one lot."""
    lot_id: str
    total_revenue: float
    lot_cost: float
    sales_tax: float
    expenses: float
    total_cost: float
    net_profit: float
    roi: float
    sold_count: int
    total_count: int
    unsold_count: int
    unsold_value: float

    @property
    def sell_through_rate(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.sold_count / self.total_count * 100


def expense_share(expense: Expense, lot_id: str) -> float:
    """Portion of an expense charged to one lot; shared expenses split evenly."""
    if lot_id not in expense.lot_ids:
        return 0.0
    return expense.amount / len(expense.lot_ids)


def calculate_lot_profit(lot: Lot, items: list[Item], expenses: list[Expense]) -> LotProfit:
    lot_items = [i for i in items if i.lot_id == lot.id]
    sold = [i for i in lot_items if i.status == ItemStatus.SOLD and i.sale_price is not None]
    unsold = [i for i in lot_items if i.status != ItemStatus.SOLD]

    revenue = sum(i.sale_price for i in sold)
    sales_tax = lot.sales_tax or 0.0
    expense_total = sum(expense_share(e, lot.id) for e in expenses)
    total_cost = lot.purchase_cost + sales_tax + expense_total
    net = revenue - total_cost

    if total_cost > 0:
        roi = net / total_cost * 100
    else:
        roi = 100.0 if net > 0 else 0.0

    unsold_value = sum(i.listing_price or i.retail_price or 0.0 for i in unsold)

    return LotProfit(
        lot_id=lot.id,
        total_revenue=round(revenue, 2),
        lot_cost=round(lot.purchase_cost, 2),
        sales_tax=round(sales_tax, 2),
        expenses=round(expense_total, 2),
        total_cost=round(total_cost, 2),
        net_profit=round(net, 2),
        roi=round(roi, 2),
        sold_count=len(sold),
        total_count=len(lot_items),
        unsold_count=len(unsold),
        unsold_value=round(unsold_value, 2),
    )
