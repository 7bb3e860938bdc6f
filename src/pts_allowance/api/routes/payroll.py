"""Payroll period API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from pts_allowance.api.dependencies import Actor, CurrentActor, DbSession, require_roles
from pts_allowance.api.schemas import (
    ErrorResponse,
    PayoutListResponse,
    PayoutResponse,
    PeriodCalculationResponse,
    PeriodResponse,
)
from pts_allowance.services.approval import Role
from pts_allowance.services.period_service import PayrollPeriodService
from pts_allowance.services.state_machine import PeriodAction

router = APIRouter(prefix="/payroll", tags=["payroll"])

PeriodId = Annotated[int, Path(ge=1)]


@router.get(
    "/period",
    response_model=PeriodResponse,
    responses={422: {"model": ErrorResponse}},
)
async def get_period_status(
    db: DbSession,
    actor: CurrentActor,
    year: Annotated[int, Query(ge=2000, le=2600)],
    month: Annotated[int, Query(ge=1, le=12)],
) -> PeriodResponse:
    """Get the period for a month, creating it OPEN if it does not exist yet."""
    period = await PayrollPeriodService(db).get_or_create_period(year, month)
    await db.commit()
    return PeriodResponse.model_validate(period)


@router.post(
    "/period/{period_id}/calculate",
    response_model=PeriodCalculationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def calculate_period(
    db: DbSession,
    period_id: PeriodId,
    actor: Annotated[Actor, require_roles(Role.PTS_OFFICER)],
) -> PeriodCalculationResponse:
    """Recalculate every payout of an OPEN period."""
    summary = await PayrollPeriodService(db).process_period_calculation(period_id)
    await db.commit()
    return PeriodCalculationResponse(
        period_id=summary.period_id,
        headcount=summary.headcount,
        total_amount=summary.total_amount,
    )


@router.get(
    "/period/{period_id}/payouts",
    response_model=PayoutListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_period_payouts(
    db: DbSession,
    period_id: PeriodId,
    actor: CurrentActor,
) -> PayoutListResponse:
    """List computed payouts with their items."""
    payouts = await PayrollPeriodService(db).list_payouts(period_id)
    return PayoutListResponse(
        items=[PayoutResponse.model_validate(p) for p in payouts],
        total=len(payouts),
    )


async def _transition(
    db: DbSession, period_id: int, action: PeriodAction, actor: Actor
) -> PeriodResponse:
    period = await PayrollPeriodService(db).update_period_status(
        period_id, action, actor.user_id
    )
    await db.commit()
    return PeriodResponse.model_validate(period)


@router.post(
    "/period/{period_id}/submit",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def submit_to_hr(
    db: DbSession,
    period_id: PeriodId,
    actor: Annotated[Actor, require_roles(Role.PTS_OFFICER)],
) -> PeriodResponse:
    return await _transition(db, period_id, PeriodAction.SUBMIT, actor)


@router.post(
    "/period/{period_id}/approve-hr",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_by_hr(
    db: DbSession,
    period_id: PeriodId,
    actor: Annotated[Actor, require_roles(Role.HEAD_HR)],
) -> PeriodResponse:
    return await _transition(db, period_id, PeriodAction.APPROVE_HR, actor)


@router.post(
    "/period/{period_id}/approve-director",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_by_director(
    db: DbSession,
    period_id: PeriodId,
    actor: Annotated[Actor, require_roles(Role.DIRECTOR)],
) -> PeriodResponse:
    return await _transition(db, period_id, PeriodAction.APPROVE_DIRECTOR, actor)


@router.post(
    "/period/{period_id}/reject",
    response_model=PeriodResponse,
    status_code=status.HTTP_200_OK,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reject_period(
    db: DbSession,
    period_id: PeriodId,
    actor: Annotated[Actor, require_roles(Role.HEAD_HR, Role.DIRECTOR)],
) -> PeriodResponse:
    return await _transition(db, period_id, PeriodAction.REJECT, actor)
