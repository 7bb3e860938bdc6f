"""Monthly allowance calculator - composes periods, rates, licenses and leave."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pts_allowance.calculators.calendar import (
    days_in_month,
    fiscal_year_for,
    iter_days,
    month_bounds,
)
from pts_allowance.calculators.deductions import LeaveLike, QuotaLike, calculate_deductions
from pts_allowance.calculators.rate_resolver import (
    EligibilityWindow,
    LicenseLike,
    RateResolver,
)
from pts_allowance.calculators.types import (
    CENT,
    NO_SERVICE_REMARK,
    ZERO,
    CalculationResult,
)
from pts_allowance.calculators.work_periods import MovementLike, resolve_periods
from pts_allowance.config import Settings, get_settings
from pts_allowance.models import (
    EmployeeProfile,
    EmploymentMovement,
    Holiday,
    LeaveQuota,
    LeaveRequest,
    License,
    MasterRate,
    RateEligibility,
)

logger = logging.getLogger(__name__)

ONE = Decimal("1")


class MonthlyCalculator:
    """Calculates one citizen's allowance for one month.

    Calculation pipeline:
    1) Resolve active work periods from employment movements
    2) Build the leave deduction map for the month
    3) For every day of every work period:
       - rate from the covering eligibility window (0 if none)
       - license validity (1) or not (0)
       - eligible weight = license - deduction, clamped to [0, 1]
       - pay += rate / days_in_month * eligible weight
    4) Round the accumulated total half-up to 2 places
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.rate_resolver = RateResolver(self.settings.lifetime_license_keywords)

    async def calculate_monthly(
        self, citizen_id: str, year: int, month: int
    ) -> CalculationResult:
        """Load the citizen's data for the month and run the calculation."""
        month_start, month_end = month_bounds(year, month)
        fiscal_year = fiscal_year_for(year, month)

        windows = await self._get_eligibility_windows(citizen_id, month_start, month_end)
        movements = await self._get_movements(citizen_id, month_end)
        profile = await self.session.get(EmployeeProfile, citizen_id)
        licenses = await self._get_licenses(citizen_id)
        leaves = await self._get_leaves(citizen_id, fiscal_year)
        quota = await self._get_quota(citizen_id, fiscal_year)
        holidays = await self._get_holidays(date(year - 1, 1, 1), date(year, 12, 31))

        return self.compute(
            year=year,
            month=month,
            windows=windows,
            movements=movements,
            licenses=licenses,
            leaves=leaves,
            quota=quota,
            holidays=holidays,
            position_name=profile.position_name if profile else None,
        )

    def compute(
        self,
        *,
        year: int,
        month: int,
        windows: Sequence[EligibilityWindow],
        movements: Sequence[MovementLike],
        licenses: Sequence[LicenseLike],
        leaves: Sequence[LeaveLike],
        quota: QuotaLike | None,
        holidays: Sequence[date],
        position_name: str | None = None,
    ) -> CalculationResult:
        """Run the day-by-day calculation over already-loaded inputs."""
        month_start, month_end = month_bounds(year, month)
        month_days = Decimal(days_in_month(year, month))

        resolution = resolve_periods(movements, month_start, month_end)
        if not resolution.has_service:
            return CalculationResult.empty(resolution.remark or NO_SERVICE_REMARK)

        deduction_map = calculate_deductions(
            leaves,
            quota,
            holidays,
            month_start,
            month_end,
            default_vacation_quota=self.settings.default_vacation_quota,
        )
        ordered_windows = RateResolver.sort_windows(windows)

        total_payment = ZERO
        total_deduction_days = ZERO
        eligible_days = ZERO
        valid_license_days = 0
        rate_snapshot = ZERO
        master_rate_id: int | None = None

        for period in resolution.periods:
            for day in iter_days(period.start, period.end):
                window = self.rate_resolver.active_eligibility_for_day(
                    ordered_windows, day
                )
                current_rate = window.rate if window is not None else ZERO
                if window is not None:
                    rate_snapshot = window.rate
                    master_rate_id = window.master_rate_id

                has_license = self.rate_resolver.has_valid_license(
                    licenses, day, position_name
                )
                if has_license:
                    valid_license_days += 1

                deduction_weight = deduction_map.get(day.isoformat(), ZERO)
                eligible_weight = (ONE if has_license else ZERO) - deduction_weight
                eligible_weight = min(max(eligible_weight, ZERO), ONE)

                if deduction_weight > ZERO:
                    total_deduction_days += deduction_weight
                if eligible_weight > ZERO:
                    eligible_days += eligible_weight

                total_payment += current_rate / month_days * eligible_weight

        net_payment = total_payment.quantize(CENT, rounding=ROUND_HALF_UP)

        logger.debug(
            "Monthly calculation done",
            extra={
                "year": year,
                "month": month,
                "net_payment": str(net_payment),
                "eligible_days": str(eligible_days),
            },
        )

        return CalculationResult(
            net_payment=net_payment,
            total_deduction_days=total_deduction_days,
            valid_license_days=valid_license_days,
            eligible_days=eligible_days,
            remark=resolution.remark,
            master_rate_id=master_rate_id,
            rate_snapshot=rate_snapshot,
        )

    # === Data Loading Methods ===

    async def _get_eligibility_windows(
        self, citizen_id: str, month_start: date, month_end: date
    ) -> list[EligibilityWindow]:
        """Get active and superseded eligibility intervals overlapping the month."""
        result = await self.session.execute(
            select(
                RateEligibility.effective_date,
                RateEligibility.expiry_date,
                RateEligibility.master_rate_id,
                MasterRate.amount,
            )
            .join(MasterRate, RateEligibility.master_rate_id == MasterRate.rate_id)
            .where(
                RateEligibility.citizen_id == citizen_id,
                or_(
                    RateEligibility.is_active.is_(True),
                    RateEligibility.expiry_date.is_not(None),
                ),
                RateEligibility.effective_date <= month_end,
                or_(
                    RateEligibility.expiry_date.is_(None),
                    RateEligibility.expiry_date >= month_start,
                ),
            )
            .order_by(RateEligibility.effective_date, RateEligibility.eligibility_id)
        )
        return [
            EligibilityWindow(
                effective_date=row.effective_date,
                expiry_date=row.expiry_date,
                rate=Decimal(str(row.amount)),
                master_rate_id=row.master_rate_id,
            )
            for row in result.all()
        ]

    async def _get_movements(
        self, citizen_id: str, month_end: date
    ) -> list[EmploymentMovement]:
        result = await self.session.execute(
            select(EmploymentMovement)
            .where(
                EmploymentMovement.citizen_id == citizen_id,
                EmploymentMovement.effective_date <= month_end,
            )
            .order_by(EmploymentMovement.effective_date, EmploymentMovement.movement_id)
        )
        return list(result.scalars().all())

    async def _get_licenses(self, citizen_id: str) -> list[License]:
        result = await self.session.execute(
            select(License).where(License.citizen_id == citizen_id)
        )
        return list(result.scalars().all())

    async def _get_leaves(self, citizen_id: str, fiscal_year: int) -> list[LeaveRequest]:
        result = await self.session.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.citizen_id == citizen_id,
                LeaveRequest.fiscal_year == fiscal_year,
            )
            .order_by(LeaveRequest.start_date, LeaveRequest.leave_id)
        )
        return list(result.scalars().all())

    async def _get_quota(self, citizen_id: str, fiscal_year: int) -> LeaveQuota | None:
        result = await self.session.execute(
            select(LeaveQuota).where(
                LeaveQuota.citizen_id == citizen_id,
                LeaveQuota.fiscal_year == fiscal_year,
            )
        )
        return result.scalar_one_or_none()

    async def _get_holidays(self, start: date, end: date) -> list[date]:
        result = await self.session.execute(
            select(Holiday.holiday_date).where(
                Holiday.holiday_date >= start,
                Holiday.holiday_date <= end,
            )
        )
        return list(result.scalars().all())
