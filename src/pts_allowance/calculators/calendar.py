"""Month and Thai fiscal-year helpers."""

from __future__ import annotations

import calendar
from collections.abc import Iterator
from datetime import date, timedelta

BUDDHIST_ERA_OFFSET = 543
FISCAL_YEAR_START_MONTH = 10


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """Return the first and last day of a month."""
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def fiscal_year_for(year: int, month: int) -> int:
    """Thai government fiscal year (Oct-Sep) in Buddhist era.

    October 2024 belongs to fiscal year 2568; September 2024 to 2567.
    """
    if month >= FISCAL_YEAR_START_MONTH:
        return year + 1 + BUDDHIST_ERA_OFFSET
    return year + BUDDHIST_ERA_OFFSET


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end inclusive."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def month_index(year: int, month: int) -> int:
    """Monotonic month counter, handy for window arithmetic."""
    return year * 12 + (month - 1)


def from_month_index(index: int) -> tuple[int, int]:
    return index // 12, index % 12 + 1
