"""Export inventory records to CSV."""
import csv
import io
from typing import Optional

from resale_metrics.cost_allocation import item_profit
from resale_metrics.models import Expense, Item, ItemStatus, Lot, to_date


def _money(value: Optional[float]) -> str:
    return "" if value is None else f"{value:.2f}"


def _day(value) -> str:
    d = to_date(value)
    return d.isoformat() if d else ""


def _write(header: list[str], rows: list[list]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue()


def export_items_csv(items: list[Item], lots: list[Lot]) -> str:
    """Items with their lot name and realized profit (sold items only)."""
    lot_names = {lot.id: lot.name for lot in lots}
    rows = []
    for i in items:
        profit = item_profit(i) if i.status == ItemStatus.SOLD and i.sale_price is not None else None
        rows.append([
            i.name,
            lot_names.get(i.lot_id, "") if i.lot_id else "",
            i.status.value,
            i.condition.value,
            _money(i.purchase_cost),
            _money(i.allocated_cost),
            _money(i.listing_price),
            _money(i.sale_price),
            i.sales_channel or "",
            _money(i.platform_fee),
            _money(i.shipping_cost),
            _money(profit),
            _day(i.listing_date),
            _day(i.sale_date),
        ])
    return _write([
        "Name", "Pallet", "Status", "Condition", "Purchase Cost", "Allocated Cost",
        "Listing Price", "Sale Price", "Platform", "Platform Fee", "Shipping Cost",
        "Profit", "Listed Date", "Sale Date",
    ], rows)


def export_lots_csv(lots: list[Lot]) -> str:
    rows = [[
        lot.name,
        lot.supplier or "",
        lot.source_type.value,
        _money(lot.purchase_cost),
        _money(lot.sales_tax),
        _money(lot.total_cost),
        _day(lot.purchase_date),
        lot.status.value,
    ] for lot in lots]
    return _write(["Name", "Supplier", "Source Type", "Purchase Cost", "Sales Tax",
                   "Total Cost", "Purchase Date", "Status"], rows)


def export_expenses_csv(expenses: list[Expense], lots: list[Lot]) -> str:
    lot_names = {lot.id: lot.name for lot in lots}
    rows = [[
        _day(e.expense_date),
        e.category.value,
        _money(e.amount),
        e.description or "",
        "; ".join(lot_names.get(lid, lid) for lid in e.lot_ids),
    ] for e in expenses]
    return _write(["Date", "Category", "Amount", "Description", "Pallets"], rows)


EXPORTERS = {
    "items": lambda snapshot: export_items_csv(snapshot.items, snapshot.lots),
    "lots": lambda snapshot: export_lots_csv(snapshot.lots),
    "expenses": lambda snapshot: export_expenses_csv(snapshot.expenses, snapshot.lots),
}
