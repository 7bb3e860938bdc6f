"""Retroactive adjustment - recompute closed months and emit signed deltas."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pts_allowance.calculators.calendar import (
    BUDDHIST_ERA_OFFSET,
    from_month_index,
    month_index,
)
from pts_allowance.calculators.engine import MonthlyCalculator
from pts_allowance.calculators.line_builder import PayoutItemBuilder
from pts_allowance.calculators.types import (
    CENT,
    ZERO,
    ItemType,
    RetroactiveResult,
    RetroDetail,
)
from pts_allowance.config import Settings, get_settings
from pts_allowance.models import Payout, PayoutItem, PayrollPeriod, RateEligibility

logger = logging.getLogger(__name__)

CLOSED_STATUS = "CLOSED"


def retro_remark(year: int, month: int) -> str:
    return f"ปรับตกเบิกย้อนหลัง {month:02d}/{year + BUDDHIST_ERA_OFFSET}"


class RetroactiveAdjuster:
    """Finds past months whose recorded payout no longer matches current data.

    Window:
    - starts at the month of the citizen's earliest eligibility effective date
    - reaches back at most ``retro_lookback_months``
    - ends the month before the period being calculated
    - only months whose payroll period is CLOSED are compared

    Previously paid = signed sum of every item that references the month,
    across all periods except the one being calculated. Corrections held by
    a period still under review count as recorded.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        calculator: MonthlyCalculator | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.calculator = calculator or MonthlyCalculator(session, self.settings)

    async def calculate_retroactive(
        self, citizen_id: str, year: int, month: int
    ) -> RetroactiveResult:
        earliest = await self._get_earliest_effective_date(citizen_id)
        if earliest is None:
            return RetroactiveResult()

        current = month_index(year, month)
        start = max(
            month_index(earliest.year, earliest.month),
            current - self.settings.retro_lookback_months,
        )
        if start >= current:
            return RetroactiveResult()

        closed_months = await self._get_closed_months(start, current - 1)
        if not closed_months:
            return RetroactiveResult()

        paid = await self._get_previously_paid(citizen_id, year, month)

        details: list[RetroDetail] = []
        total = ZERO
        for ref_year, ref_month in closed_months:
            recomputed = await self.calculator.calculate_monthly(
                citizen_id, ref_year, ref_month
            )
            diff = PayoutItemBuilder.round_to_cents(
                recomputed.net_payment - paid.get((ref_year, ref_month), ZERO)
            )
            if abs(diff) < CENT:
                continue
            details.append(
                RetroDetail(
                    month=ref_month,
                    year=ref_year,
                    diff=diff,
                    remark=retro_remark(ref_year, ref_month),
                )
            )
            total += diff

        if details:
            logger.info(
                "Retroactive differences found",
                extra={
                    "citizen_id": citizen_id,
                    "months": len(details),
                    "total_retro": str(total),
                },
            )

        return RetroactiveResult(total_retro=total, retro_details=details)

    # === Data Loading Methods ===

    async def _get_earliest_effective_date(self, citizen_id: str) -> date | None:
        result = await self.session.execute(
            select(func.min(RateEligibility.effective_date)).where(
                RateEligibility.citizen_id == citizen_id
            )
        )
        return result.scalar_one_or_none()

    async def _get_closed_months(
        self, start_index: int, end_index: int
    ) -> list[tuple[int, int]]:
        """Closed (year, month) pairs within the index window, oldest first."""
        first_year, _ = from_month_index(start_index)
        last_year, _ = from_month_index(end_index)
        result = await self.session.execute(
            select(PayrollPeriod.period_year, PayrollPeriod.period_month).where(
                PayrollPeriod.status == CLOSED_STATUS,
                PayrollPeriod.period_year >= first_year,
                PayrollPeriod.period_year <= last_year,
            )
        )
        months = [
            (row.period_year, row.period_month)
            for row in result.all()
            if start_index <= month_index(row.period_year, row.period_month) <= end_index
        ]
        return sorted(months)

    async def _get_previously_paid(
        self, citizen_id: str, year: int, month: int
    ) -> dict[tuple[int, int], Decimal]:
        """Signed item totals per referenced month, excluding period (year, month)."""
        result = await self.session.execute(
            select(
                PayoutItem.reference_year,
                PayoutItem.reference_month,
                PayoutItem.item_type,
                PayoutItem.amount,
            )
            .join(Payout, PayoutItem.payout_id == Payout.payout_id)
            .join(PayrollPeriod, Payout.period_id == PayrollPeriod.period_id)
            .where(
                Payout.citizen_id == citizen_id,
                or_(
                    PayrollPeriod.period_year != year,
                    PayrollPeriod.period_month != month,
                ),
            )
        )
        paid: dict[tuple[int, int], Decimal] = defaultdict(lambda: ZERO)
        for row in result.all():
            amount = Decimal(str(row.amount))
            if row.item_type == ItemType.RETROACTIVE_DEDUCT.value:
                amount = -amount
            paid[(row.reference_year, row.reference_month)] += amount
        return dict(paid)
