"""Work-period resolution from employment movements."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta
from typing import Protocol

from pts_allowance.calculators.types import (
    STUDY_LEAVE_REMARK,
    MovementType,
    WorkPeriod,
    WorkPeriodResolution,
)


class MovementLike(Protocol):
    movement_type: str
    effective_date: date


def _movement_type(movement: MovementLike) -> MovementType | None:
    try:
        return MovementType(movement.movement_type)
    except ValueError:
        return None


def resolve_periods(
    movements: Iterable[MovementLike],
    month_start: date,
    month_end: date,
) -> WorkPeriodResolution:
    """Determine which parts of a month count as active service.

    Movements are replayed in effective-date order; ties keep the order in
    which they were supplied (the caller loads them by insertion order).

    - Movements before the month establish the opening state.
    - ENTRY opens a period, exit events close it the day before they take
      effect, STUDY inside the month ends processing with no open period.
    - A citizen with no movements at all is active for the whole month.
    """
    relevant = sorted(
        (m for m in movements if m.effective_date <= month_end),
        key=lambda m: m.effective_date,
    )
    if not relevant:
        return WorkPeriodResolution(periods=[WorkPeriod(month_start, month_end)])

    remark = ""
    active = False

    for mov in relevant:
        if mov.effective_date >= month_start:
            break
        kind = _movement_type(mov)
        if kind == MovementType.ENTRY:
            active = True
        elif kind == MovementType.STUDY:
            active = False
            remark = STUDY_LEAVE_REMARK
        elif kind is not None and kind.is_exit:
            active = False

    periods: list[WorkPeriod] = []
    current_start: date | None = month_start if active else None

    for mov in relevant:
        event_date = mov.effective_date
        if event_date < month_start:
            continue
        kind = _movement_type(mov)

        if kind == MovementType.STUDY:
            active = False
            current_start = None
            remark = STUDY_LEAVE_REMARK
            break

        if kind == MovementType.ENTRY:
            if not active:
                active = True
                current_start = event_date
        elif kind is not None and kind.is_exit:
            if active and current_start is not None:
                end = min(event_date - timedelta(days=1), month_end)
                if end >= current_start:
                    periods.append(WorkPeriod(current_start, end))
            active = False
            current_start = None

    if active and current_start is not None:
        periods.append(WorkPeriod(current_start, month_end))

    return WorkPeriodResolution(periods=periods, remark=remark)
