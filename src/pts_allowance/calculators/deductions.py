"""Leave deductions: per-day fraction of eligibility lost to leave."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Protocol

from pts_allowance.calculators.calendar import iter_days
from pts_allowance.calculators.rate_resolver import normalize_text
from pts_allowance.calculators.types import ZERO

ONE = Decimal("1")


class LeaveCategory(str, Enum):
    """Leave categories with distinct deduction policies."""

    VACATION = "VACATION"
    SICK = "SICK"
    PERSONAL = "PERSONAL"
    MATERNITY = "MATERNITY"
    ORDAIN = "ORDAIN"
    EDUCATION = "EDUCATION"


# HR views deliver either codes or Thai labels.
LEAVE_TYPE_ALIASES: dict[str, LeaveCategory] = {
    "vacation": LeaveCategory.VACATION,
    "annual": LeaveCategory.VACATION,
    "ลาพักผ่อน": LeaveCategory.VACATION,
    "พักผ่อน": LeaveCategory.VACATION,
    "sick": LeaveCategory.SICK,
    "ลาป่วย": LeaveCategory.SICK,
    "personal": LeaveCategory.PERSONAL,
    "business": LeaveCategory.PERSONAL,
    "ลากิจ": LeaveCategory.PERSONAL,
    "ลากิจส่วนตัว": LeaveCategory.PERSONAL,
    "maternity": LeaveCategory.MATERNITY,
    "ลาคลอด": LeaveCategory.MATERNITY,
    "ลาคลอดบุตร": LeaveCategory.MATERNITY,
    "ordain": LeaveCategory.ORDAIN,
    "ordination": LeaveCategory.ORDAIN,
    "ลาอุปสมบท": LeaveCategory.ORDAIN,
    "ลาบวช": LeaveCategory.ORDAIN,
    "education": LeaveCategory.EDUCATION,
    "study": LeaveCategory.EDUCATION,
    "ลาศึกษาต่อ": LeaveCategory.EDUCATION,
}

# Non-deducting allowance per fiscal year, in days. Vacation comes from quota.
ANNUAL_ALLOWANCE: dict[LeaveCategory, Decimal] = {
    LeaveCategory.SICK: Decimal("60"),
    LeaveCategory.PERSONAL: Decimal("45"),
    LeaveCategory.MATERNITY: Decimal("90"),
    LeaveCategory.ORDAIN: Decimal("60"),
    LeaveCategory.EDUCATION: ZERO,
}

# Counted in working days; weekends and holidays inside the span are free.
WORKING_DAY_CATEGORIES = frozenset(
    {LeaveCategory.VACATION, LeaveCategory.SICK, LeaveCategory.PERSONAL}
)

INACTIVE_LEAVE_STATUSES = frozenset({"CANCELLED", "CANCELED", "REJECTED", "WITHDRAWN"})


class LeaveLike(Protocol):
    leave_type: str
    start_date: date
    end_date: date
    duration_days: Decimal | float | None
    status: str | None


class QuotaLike(Protocol):
    quota_vacation: Decimal | float | None


def classify_leave(leave_type: str | None) -> LeaveCategory | None:
    return LEAVE_TYPE_ALIASES.get(normalize_text(leave_type))


def _is_counted(leave: LeaveLike) -> bool:
    return (leave.status or "").strip().upper() not in INACTIVE_LEAVE_STATUSES


def _units_per_day(leave: LeaveLike) -> Decimal:
    """Half-day leave consumes its fraction; anything else a whole day."""
    if leave.duration_days is None or leave.start_date != leave.end_date:
        return ONE
    duration = Decimal(str(leave.duration_days))
    if ZERO < duration < ONE:
        return duration
    return ONE


def _allowances(
    quota: QuotaLike | None, default_vacation_quota: int | Decimal
) -> dict[LeaveCategory, Decimal]:
    allowances = dict(ANNUAL_ALLOWANCE)
    if quota is not None and quota.quota_vacation is not None:
        allowances[LeaveCategory.VACATION] = Decimal(str(quota.quota_vacation))
    else:
        allowances[LeaveCategory.VACATION] = Decimal(str(default_vacation_quota))
    return allowances


def calculate_deductions(
    leaves: Iterable[LeaveLike],
    quota: QuotaLike | None,
    holidays: Iterable[date],
    month_start: date,
    month_end: date,
    *,
    default_vacation_quota: int | Decimal = 10,
) -> dict[str, Decimal]:
    """Build the per-day deduction weight map for a month.

    Leaves of the whole fiscal year are replayed in start-date order so that
    allowance consumed in earlier months counts. Only days inside the month
    receive weight; a day's weight is the part of its consumption that falls
    beyond the allowance for its category, capped at one day.

    Returns a mapping of ISO date string to weight in (0, 1].
    """
    holiday_set = set(holidays)
    allowances = _allowances(quota, default_vacation_quota)
    used: dict[LeaveCategory, Decimal] = defaultdict(lambda: ZERO)
    weights: dict[str, Decimal] = defaultdict(lambda: ZERO)

    for leave in sorted(
        (lv for lv in leaves if _is_counted(lv)), key=lambda lv: lv.start_date
    ):
        if leave.start_date > month_end:
            break
        category = classify_leave(leave.leave_type)
        if category is None:
            continue

        units = _units_per_day(leave)
        allowance = allowances[category]
        last_day = min(leave.end_date, month_end)

        for day in iter_days(leave.start_date, last_day):
            if category in WORKING_DAY_CATEGORIES and (
                day.weekday() >= 5 or day in holiday_set
            ):
                continue

            used[category] += units
            excess = min(units, max(ZERO, used[category] - allowance))
            if excess > ZERO and day >= month_start:
                weights[day.isoformat()] += excess

    return {key: min(weight, ONE) for key, weight in weights.items() if weight > ZERO}
