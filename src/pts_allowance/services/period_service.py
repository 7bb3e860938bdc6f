"""Payroll period service - batch calculation and period approval lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pts_allowance.calculators.calendar import month_bounds
from pts_allowance.calculators.engine import MonthlyCalculator
from pts_allowance.calculators.line_builder import PayoutItemBuilder
from pts_allowance.calculators.retroactive import RetroactiveAdjuster
from pts_allowance.calculators.types import ZERO, CalculationResult
from pts_allowance.config import Settings, get_settings
from pts_allowance.errors import InvalidStateTransitionError, NotFoundError, ValidationError
from pts_allowance.models import Payout, PayoutItem, PayrollPeriod, RateEligibility
from pts_allowance.services.state_machine import (
    PeriodAction,
    PeriodStateMachine,
    PeriodStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class PeriodCalculationSummary:
    """Outcome of one period calculation run."""

    period_id: int
    headcount: int
    total_amount: Decimal


class PayrollPeriodService:
    """Service for managing payroll periods.

    Operations:
    - get_or_create_period: Upsert the period row for a month
    - process_period_calculation: Recompute every eligible citizen's payout
    - update_period_status: Move the period through its approval chain
    - list_payouts: Read back the persisted payouts with their items

    Recalculation deletes the period's payouts and rebuilds them inside the
    caller's transaction, so it is idempotent and all-or-nothing.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        calculator: MonthlyCalculator | None = None,
        retro_adjuster: RetroactiveAdjuster | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.calculator = calculator or MonthlyCalculator(session, self.settings)
        self.retro_adjuster = retro_adjuster or RetroactiveAdjuster(
            session, self.settings, self.calculator
        )

    async def get_or_create_period(self, year: int, month: int) -> PayrollPeriod:
        """Return the period for a month, creating it OPEN if absent."""
        if not 1 <= month <= 12:
            raise ValidationError("month", f"Invalid month: {month}")

        result = await self.session.execute(
            select(PayrollPeriod).where(
                PayrollPeriod.period_year == year,
                PayrollPeriod.period_month == month,
            )
        )
        period = result.scalar_one_or_none()
        if period is not None:
            return period

        period = PayrollPeriod(
            period_year=year,
            period_month=month,
            status=PeriodStatus.OPEN.value,
            total_amount=Decimal("0"),
            total_headcount=0,
        )
        self.session.add(period)
        await self.session.flush()
        logger.info(
            "Payroll period created",
            extra={"period_id": period.period_id, "year": year, "month": month},
        )
        return period

    async def get_period(self, period_id: int, for_update: bool = False) -> PayrollPeriod:
        query = select(PayrollPeriod).where(PayrollPeriod.period_id == period_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        period = result.scalar_one_or_none()
        if period is None:
            raise NotFoundError("Period", period_id)
        return period

    async def update_period_status(
        self,
        period_id: int,
        action: PeriodAction | str,
        actor_id: int | None = None,
    ) -> PayrollPeriod:
        """Apply an approval action to a period.

        Raises InvalidStateTransitionError if the action is not allowed
        from the period's current status.
        """
        period = await self.get_period(period_id, for_update=True)
        from_status = period.status
        to_status = PeriodStateMachine.next_status(from_status, action)

        period.status = to_status.value
        if to_status == PeriodStatus.CLOSED:
            period.closed_at = datetime.now(timezone.utc)
        await self.session.flush()

        logger.info(
            "Period status changed",
            extra={
                "period_id": period_id,
                "action": PeriodAction(action).value,
                "from_status": from_status,
                "to_status": to_status.value,
                "actor_id": actor_id,
            },
        )
        return period

    async def process_period_calculation(self, period_id: int) -> PeriodCalculationSummary:
        """Recalculate all payouts of an OPEN period.

        Steps:
        1. Lock the period row and check it is OPEN
        2. Delete the period's existing payouts and items
        3. For each citizen with an active eligibility started by month end:
           monthly calculation + retroactive adjustment
        4. Persist a payout with items when anything is payable or owed back
        5. Store headcount and total on the period
        """
        period = await self.get_period(period_id, for_update=True)
        if not PeriodStateMachine.can_calculate(period.status):
            raise InvalidStateTransitionError(
                period.status,
                "CALCULATE",
                "cannot calculate: period is not OPEN",
            )

        year, month = period.period_year, period.period_month
        logger.info(
            "Period calculation started",
            extra={"period_id": period_id, "year": year, "month": month},
        )

        await self._delete_payouts(period_id)

        citizen_ids = await self._get_eligible_citizens(year, month)

        headcount = 0
        total_amount = ZERO
        for citizen_id in citizen_ids:
            result = await self.calculator.calculate_monthly(citizen_id, year, month)
            retro = await self.retro_adjuster.calculate_retroactive(citizen_id, year, month)
            result.apply_retroactive(retro)

            if result.net_payment == ZERO and result.grand_total == ZERO:
                continue

            await self._save_payout(period_id, citizen_id, result, year, month)
            headcount += 1
            total_amount += result.grand_total

        period.total_headcount = headcount
        period.total_amount = PayoutItemBuilder.round_to_cents(total_amount)
        await self.session.flush()

        logger.info(
            "Period calculation finished",
            extra={
                "period_id": period_id,
                "headcount": headcount,
                "total_amount": str(period.total_amount),
            },
        )
        return PeriodCalculationSummary(
            period_id=period_id,
            headcount=headcount,
            total_amount=period.total_amount,
        )

    async def list_payouts(self, period_id: int) -> list[Payout]:
        await self.get_period(period_id)
        result = await self.session.execute(
            select(Payout)
            .where(Payout.period_id == period_id)
            .options(selectinload(Payout.items))
            .order_by(Payout.citizen_id)
        )
        return list(result.scalars().all())

    # === Internal Methods ===

    async def _delete_payouts(self, period_id: int) -> None:
        # Items first: not every backend enforces the FK cascade.
        payout_ids = select(Payout.payout_id).where(Payout.period_id == period_id)
        await self.session.execute(
            delete(PayoutItem).where(PayoutItem.payout_id.in_(payout_ids))
        )
        await self.session.execute(delete(Payout).where(Payout.period_id == period_id))

    async def _get_eligible_citizens(self, year: int, month: int) -> list[str]:
        _, month_end = month_bounds(year, month)
        result = await self.session.execute(
            select(RateEligibility.citizen_id)
            .where(
                RateEligibility.is_active.is_(True),
                RateEligibility.effective_date <= month_end,
            )
            .distinct()
            .order_by(RateEligibility.citizen_id)
        )
        return list(result.scalars().all())

    async def _save_payout(
        self,
        period_id: int,
        citizen_id: str,
        result: CalculationResult,
        year: int,
        month: int,
    ) -> Payout:
        payout = Payout(
            period_id=period_id,
            citizen_id=citizen_id,
            master_rate_id=result.master_rate_id,
            pts_rate_snapshot=result.rate_snapshot,
            calculated_amount=result.net_payment,
            total_payable=PayoutItemBuilder.round_to_cents(result.grand_total),
            deducted_days=result.total_deduction_days,
            eligible_days=result.eligible_days,
            remark=result.remark or None,
        )
        self.session.add(payout)
        await self.session.flush()

        for candidate in PayoutItemBuilder.build_items(result, year, month):
            self.session.add(
                PayoutItem(
                    payout_id=payout.payout_id,
                    reference_month=candidate.reference_month,
                    reference_year=candidate.reference_year,
                    item_type=candidate.item_type.value,
                    amount=candidate.amount,
                    description=candidate.description,
                )
            )
        await self.session.flush()
        return payout
