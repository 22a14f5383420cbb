"""Reporting periods and date windows.

Named periods are calendar-aligned: weeks start on Sunday, months on the
1st, years on January 1st. Window bounds are inclusive dates.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Optional, Union

from resale_metrics.models import DateLike, to_date


class TimePeriod(str, Enum):
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


PERIOD_LABELS = {
    TimePeriod.WEEK: ("This Week", "Week"),
    TimePeriod.MONTH: ("This Month", "Month"),
    TimePeriod.YEAR: ("This Year", "Year"),
    TimePeriod.ALL: ("All Time", "All"),
}


@dataclass(frozen=True)
class DateWindow:
    """Inclusive date range; an open side is ``None``."""
    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    @property
    def days(self) -> Optional[int]:
        if self.start is None or self.end is None:
            return None
        return (self.end - self.start).days + 1

    def contains(self, value: DateLike) -> bool:
        """True if the date parses and falls inside; malformed dates never match."""
        d = to_date(value)
        if d is None:
            return False
        if self.start is not None and d < self.start:
            return False
        if self.end is not None and d > self.end:
            return False
        return True

    def previous(self) -> Optional["DateWindow"]:
        """Window of equal length ending the day before this one starts."""
        if self.start is None or self.end is None:
            return None
        length = self.end - self.start
        prev_end = self.start - timedelta(days=1)
        return DateWindow(prev_end - length, prev_end)


def _month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def period_window(period: Union[TimePeriod, str], today: Optional[date] = None) -> DateWindow:
    """Calendar window containing ``today`` for a named period."""
    period = TimePeriod(period)
    today = today or date.today()
    if period == TimePeriod.WEEK:
        # date.weekday(): Monday=0 .. Sunday=6
        start = today - timedelta(days=(today.weekday() + 1) % 7)
        return DateWindow(start, start + timedelta(days=6))
    if period == TimePeriod.MONTH:
        return DateWindow(today.replace(day=1), _month_end(today.year, today.month))
    if period == TimePeriod.YEAR:
        return DateWindow(date(today.year, 1, 1), date(today.year, 12, 31))
    return DateWindow()


def previous_period_window(period: Union[TimePeriod, str],
                           today: Optional[date] = None) -> Optional[DateWindow]:
    """The prior calendar period of the same granularity; ``None`` for ``all``."""
    period = TimePeriod(period)
    today = today or date.today()
    if period == TimePeriod.ALL:
        return None
    current = period_window(period, today)
    if period == TimePeriod.WEEK:
        return DateWindow(current.start - timedelta(days=7), current.start - timedelta(days=1))
    if period == TimePeriod.MONTH:
        last_of_prev = current.start - timedelta(days=1)
        return DateWindow(last_of_prev.replace(day=1), last_of_prev)
    return DateWindow(date(today.year - 1, 1, 1), date(today.year - 1, 12, 31))


def resolve_windows(selector: Union[TimePeriod, str, DateWindow],
                    today: Optional[date] = None) -> tuple[DateWindow, Optional[DateWindow]]:
    """Current and comparison windows for a named period or an explicit window."""
    if isinstance(selector, DateWindow):
        return selector, selector.previous()
    return period_window(selector, today), previous_period_window(selector, today)


def period_label(period: Union[TimePeriod, str], short: bool = False) -> str:
    try:
        long_label, short_label = PERIOD_LABELS[TimePeriod(period)]
    except ValueError:
        long_label, short_label = PERIOD_LABELS[TimePeriod.ALL]
    return short_label if short else long_label
