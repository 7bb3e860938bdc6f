"""Eligibility service - open a new rate interval and supersede overlapping ones."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pts_allowance.errors import NotFoundError
from pts_allowance.models import MasterRate, RateEligibility

logger = logging.getLogger(__name__)


class EligibilityService:
    """Maintains the per-citizen sequence of rate eligibility intervals.

    A citizen has at most one interval covering any date. Creating a new
    interval effective on day D:
    - closes every interval that started on or before D and is still open
      on D (is_active=false, expiry_date = D - 1 day)
    - deactivates active intervals that would only have started after D,
      leaving them as empty history (expiry_date = their effective_date - 1)
    - inserts the new interval as the only active one

    Superseded rows are kept; nothing is deleted.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_eligibility(
        self,
        citizen_id: str,
        master_rate_id: int,
        effective_date: date,
        request_id: int | None = None,
    ) -> RateEligibility:
        rate = await self.session.get(MasterRate, master_rate_id)
        if rate is None:
            raise NotFoundError("MasterRate", master_rate_id)

        closed = await self._close_overlapping(citizen_id, effective_date)

        eligibility = RateEligibility(
            citizen_id=citizen_id,
            master_rate_id=master_rate_id,
            request_id=request_id,
            effective_date=effective_date,
            expiry_date=None,
            is_active=True,
        )
        self.session.add(eligibility)
        await self.session.flush()

        logger.info(
            "Eligibility created",
            extra={
                "citizen_id": citizen_id,
                "eligibility_id": eligibility.eligibility_id,
                "master_rate_id": master_rate_id,
                "effective_date": effective_date.isoformat(),
                "superseded": closed,
            },
        )
        return eligibility

    async def _close_overlapping(self, citizen_id: str, effective_date: date) -> int:
        """Close intervals that would overlap one starting at ``effective_date``."""
        day_before = effective_date - timedelta(days=1)
        result = await self.session.execute(
            select(RateEligibility).where(
                RateEligibility.citizen_id == citizen_id,
                or_(
                    RateEligibility.is_active.is_(True),
                    RateEligibility.expiry_date >= effective_date,
                ),
            )
        )

        closed = 0
        for row in result.scalars().all():
            if row.effective_date <= effective_date:
                row.expiry_date = day_before
            else:
                row.expiry_date = row.effective_date - timedelta(days=1)
            row.is_active = False
            closed += 1

        if closed:
            await self.session.flush()
        return closed

    async def get_active_eligibility(
        self, citizen_id: str, on_date: date | None = None
    ) -> RateEligibility | None:
        """Active interval for a citizen, optionally requiring it to cover a date."""
        query = select(RateEligibility).where(
            RateEligibility.citizen_id == citizen_id,
            RateEligibility.is_active.is_(True),
        )
        if on_date is not None:
            query = query.where(
                RateEligibility.effective_date <= on_date,
                or_(
                    RateEligibility.expiry_date.is_(None),
                    RateEligibility.expiry_date >= on_date,
                ),
            )
        result = await self.session.execute(
            query.order_by(RateEligibility.effective_date.desc()).limit(1)
        )
        return result.scalars().first()

    async def list_history(self, citizen_id: str) -> list[RateEligibility]:
        result = await self.session.execute(
            select(RateEligibility)
            .where(RateEligibility.citizen_id == citizen_id)
            .order_by(RateEligibility.effective_date, RateEligibility.eligibility_id)
        )
        return list(result.scalars().all())

    async def find_rate_by_amount(
        self, amount: Decimal, profession_code: str | None = None
    ) -> MasterRate | None:
        """Active master rate with exactly ``amount``, optionally by profession."""
        query = select(MasterRate).where(
            MasterRate.is_active.is_(True),
            MasterRate.amount == amount,
        )
        if profession_code:
            query = query.where(MasterRate.profession_code == profession_code)
        result = await self.session.execute(query.order_by(MasterRate.rate_id).limit(1))
        return result.scalars().first()
