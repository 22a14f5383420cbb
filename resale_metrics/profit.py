"""Time-windowed profit and ROI.

A sold item counts toward a window when its ``sale_date`` falls inside the
window (inclusive). Expenses count by ``expense_date`` whether or not
anything sold. ROI is measured against the total cost basis::

    net_profit = revenue - cogs - fees - expenses
    roi        = net_profit / (cogs + expenses) * 100   (0 when the basis is 0)

Features:
- Current vs previous period comparison
- Profit trend buckets (daily / weekly / monthly)
- Profit-and-loss summary with operating expenses and mileage deductions
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Optional, Union

from resale_metrics.cost_allocation import recorded_cost
from resale_metrics.models import (
    Expense,
    ExpenseCategory,
    Item,
    ItemStatus,
    Lot,
    MileageTrip,
    to_date,
)
from resale_metrics.periods import DateWindow, TimePeriod, resolve_windows

logger = logging.getLogger(__name__)


@dataclass
class PeriodMetrics:
    """Profit figures for one window."""
    window: DateWindow
    revenue: float = 0.0
    cogs: float = 0.0
    fees: float = 0.0
    expenses: float = 0.0
    net_profit: float = 0.0
    total_cost_basis: float = 0.0
    roi: float = 0.0
    items_sold: int = 0

    @property
    def avg_sale_price(self) -> float:
        return self.revenue / self.items_sold if self.items_sold else 0.0


@dataclass
class ProfitReport:
    current: PeriodMetrics
    previous: Optional[PeriodMetrics] = None
    period: Optional[TimePeriod] = None

    def change_pct(self, metric: str = "net_profit") -> Optional[float]:
        """Percent change of ``metric`` vs the previous window."""
        if self.previous is None:
            return None
        before = getattr(self.previous, metric)
        if before == 0:
            return None
        after = getattr(self.current, metric)
        return round((after - before) / abs(before) * 100, 2)

    def summary(self) -> str:
        c = self.current
        lines = [
            f"Revenue:        ${c.revenue:,.2f}",
            f"Cost of Goods:  ${c.cogs:,.2f}",
            f"Fees/Shipping:  ${c.fees:,.2f}",
            f"Expenses:       ${c.expenses:,.2f}",
            f"Net Profit:     ${c.net_profit:,.2f}",
            f"ROI:            {c.roi:+.1f}%",
            f"Items Sold:     {c.items_sold}",
        ]
        change = self.change_pct()
        if change is not None:
            lines.append(f"vs previous:    {change:+.1f}%")
        return "\n".join(lines)


def sold_in_window(items: list[Item], window: DateWindow) -> list[Item]:
    return [i for i in items if i.status == ItemStatus.SOLD and window.contains(i.sale_date)]


def calculate_period_metrics(items: list[Item], expenses: list[Expense],
                             window: DateWindow) -> PeriodMetrics:
    sold = sold_in_window(items, window)
    revenue = sum(i.sale_price or 0.0 for i in sold)
    cogs = sum(recorded_cost(i) for i in sold)
    fees = sum(i.platform_fee or 0.0 for i in sold) + sum(i.shipping_cost or 0.0 for i in sold)
    expense_total = sum(e.amount for e in expenses if window.contains(e.expense_date))

    net = revenue - cogs - fees - expense_total
    basis = cogs + expense_total
    roi = net / basis * 100 if basis > 0 else 0.0

    return PeriodMetrics(
        window=window,
        revenue=round(revenue, 2),
        cogs=round(cogs, 2),
        fees=round(fees, 2),
        expenses=round(expense_total, 2),
        net_profit=round(net, 2),
        total_cost_basis=round(basis, 2),
        roi=round(roi, 2),
        items_sold=len(sold),
    )


def calculate_profit_report(selector: Union[TimePeriod, str, DateWindow], items: list[Item],
                            expenses: list[Expense], today: Optional[date] = None,
                            compare: bool = True) -> ProfitReport:
    """Metrics for a named period or explicit window, plus the prior window."""
    window, previous_window = resolve_windows(selector, today)
    current = calculate_period_metrics(items, expenses, window)
    previous = None
    if compare and previous_window is not None:
        previous = calculate_period_metrics(items, expenses, previous_window)
    period = None if isinstance(selector, DateWindow) else TimePeriod(selector)
    return ProfitReport(current=current, previous=previous, period=period)


# ── Trend ──

class Granularity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass
class TrendPoint:
    bucket: date
    profit: float
    revenue: float
    items_sold: int


def _bucket(d: date, granularity: Granularity) -> date:
    if granularity == Granularity.DAILY:
        return d
    if granularity == Granularity.WEEKLY:
        return d - timedelta(days=d.weekday())  # Monday
    return d.replace(day=1)


def calculate_profit_trend(items: list[Item], granularity: Union[Granularity, str] = Granularity.MONTHLY,
                           window: Optional[DateWindow] = None) -> list[TrendPoint]:
    """Per-bucket item profit (sale price - cost - fees), oldest first."""
    granularity = Granularity(granularity)
    window = window or DateWindow()
    groups: dict[date, list[float]] = defaultdict(lambda: [0.0, 0.0, 0])

    for item in sold_in_window(items, window):
        if item.sale_price is None:
            continue
        sold_on = to_date(item.sale_date)
        g = groups[_bucket(sold_on, granularity)]
        g[0] += item.sale_price - recorded_cost(item) - (item.platform_fee or 0.0) - (item.shipping_cost or 0.0)
        g[1] += item.sale_price
        g[2] += 1

    return [
        TrendPoint(bucket=k, profit=round(v[0], 2), revenue=round(v[1], 2), items_sold=int(v[2]))
        for k, v in sorted(groups.items())
    ]


# ── Profit & loss ──

OPERATING_CATEGORIES = [
    ExpenseCategory.SUPPLIES,
    ExpenseCategory.STORAGE,
    ExpenseCategory.SUBSCRIPTIONS,
    ExpenseCategory.EQUIPMENT,
    ExpenseCategory.OTHER,
]

PLATFORM_LABELS = {
    "ebay": "eBay",
    "poshmark": "Poshmark",
    "mercari": "Mercari",
    "whatnot": "Whatnot",
    "facebook": "Facebook Marketplace",
    "offerup": "OfferUp",
    "craigslist": "Craigslist",
    "other": "Other",
}


@dataclass
class PlatformSales:
    platform: str
    sales: float = 0.0
    fees: float = 0.0
    count: int = 0


@dataclass
class ProfitLossSummary:
    """Tax-style summary over a window."""
    window: DateWindow
    gross_sales: float
    items_sold: int
    lot_items_cogs: float
    individual_items_cogs: float
    prorated_sales_tax: float
    total_cogs: float
    gross_profit: float
    gross_margin: float
    platform_fees: float
    shipping_costs: float
    operating_expenses: dict[str, float] = field(default_factory=dict)
    platform_breakdown: list[PlatformSales] = field(default_factory=list)
    total_miles: float = 0.0
    mileage_deduction: float = 0.0
    trip_count: int = 0
    total_expenses: float = 0.0
    net_profit: float = 0.0
    net_margin: float = 0.0


def calculate_profit_loss(items: list[Item], lots: list[Lot], expenses: list[Expense],
                          trips: list[MileageTrip],
                          window: Optional[DateWindow] = None) -> ProfitLossSummary:
    """Profit and loss for a window.

    COGS is accrual-based: only the cost of items sold in the window. The
    share of lot sales tax carried by those items is broken out. Mileage uses
    the deduction stored on each trip, never the current rate.
    """
    window = window or DateWindow()
    sold = [i for i in sold_in_window(items, window) if i.sale_price is not None]
    gross_sales = sum(i.sale_price for i in sold)

    sold_lot_items = [i for i in sold if i.lot_id is not None]
    lot_cogs = sum(recorded_cost(i) for i in sold_lot_items)
    individual = [i for i in sold if i.lot_id is None and i.purchase_cost is not None]
    individual_cogs = sum(i.purchase_cost for i in individual)

    prorated_tax = 0.0
    for lot in lots:
        if not lot.sales_tax:
            continue
        lot_total = sum(1 for i in items if i.lot_id == lot.id)
        lot_sold = sum(1 for i in sold_lot_items if i.lot_id == lot.id)
        if lot_total and lot_sold:
            prorated_tax += lot_sold / lot_total * lot.sales_tax

    # Lot splits already include sales tax; the prorated figure is reported, not added
    total_cogs = lot_cogs + individual_cogs
    gross_profit = gross_sales - total_cogs

    platform_fees = sum(i.platform_fee or 0.0 for i in sold)
    shipping = sum(i.shipping_cost or 0.0 for i in sold)

    by_platform: dict[str, PlatformSales] = {}
    for i in sold:
        key = (i.sales_channel or "other").lower()
        entry = by_platform.setdefault(key, PlatformSales(platform=PLATFORM_LABELS.get(key, key)))
        entry.sales += i.sale_price
        entry.fees += i.platform_fee or 0.0
        entry.count += 1

    operating: dict[str, float] = {}
    for e in expenses:
        if e.category in OPERATING_CATEGORIES and window.contains(e.expense_date):
            operating[e.category.value] = operating.get(e.category.value, 0.0) + e.amount
    operating_total = sum(operating.values())

    in_window_trips = [t for t in trips if window.contains(t.trip_date)]
    skipped = len(trips) - len(in_window_trips)
    if skipped:
        logger.debug("%d mileage trips outside window or undated", skipped)
    total_miles = sum(t.miles for t in in_window_trips)
    mileage_deduction = sum(t.deduction for t in in_window_trips)

    total_expenses = platform_fees + shipping + operating_total + mileage_deduction
    net = gross_profit - total_expenses

    return ProfitLossSummary(
        window=window,
        gross_sales=round(gross_sales, 2),
        items_sold=len(sold),
        lot_items_cogs=round(lot_cogs, 2),
        individual_items_cogs=round(individual_cogs, 2),
        prorated_sales_tax=round(prorated_tax, 2),
        total_cogs=round(total_cogs, 2),
        gross_profit=round(gross_profit, 2),
        gross_margin=round(gross_profit / gross_sales * 100, 2) if gross_sales > 0 else 0.0,
        platform_fees=round(platform_fees, 2),
        shipping_costs=round(shipping, 2),
        operating_expenses={k: round(v, 2) for k, v in operating.items()},
        platform_breakdown=sorted(by_platform.values(), key=lambda p: p.sales, reverse=True),
        total_miles=round(total_miles, 1),
        mileage_deduction=round(mileage_deduction, 2),
        trip_count=len(in_window_trips),
        total_expenses=round(total_expenses, 2),
        net_profit=round(net, 2),
        net_margin=round(net / gross_sales * 100, 2) if gross_sales > 0 else 0.0,
    )
