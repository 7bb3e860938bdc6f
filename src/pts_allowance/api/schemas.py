"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Payroll period schemas
# ============================================================================


class PeriodResponse(BaseModel):
    """Schema for payroll period response."""

    model_config = ConfigDict(from_attributes=True)

    period_id: int
    period_year: int
    period_month: int
    status: str
    total_amount: Decimal
    total_headcount: int
    created_at: datetime | None = None
    closed_at: datetime | None = None


class PeriodCalculationResponse(BaseModel):
    """Schema for the outcome of a period calculation."""

    period_id: int
    headcount: int
    total_amount: Decimal


class PayoutItemResponse(BaseModel):
    """Schema for a payout item."""

    model_config = ConfigDict(from_attributes=True)

    item_id: int
    item_type: str
    amount: Decimal
    reference_month: int
    reference_year: int
    description: str | None = None


class PayoutResponse(BaseModel):
    """Schema for a citizen's payout in a period."""

    model_config = ConfigDict(from_attributes=True)

    payout_id: int
    period_id: int
    citizen_id: str
    master_rate_id: int | None = None
    pts_rate_snapshot: Decimal
    calculated_amount: Decimal
    total_payable: Decimal
    deducted_days: Decimal
    eligible_days: Decimal
    remark: str | None = None
    items: list[PayoutItemResponse] = Field(default_factory=list)


class PayoutListResponse(BaseModel):
    items: list[PayoutResponse]
    total: int


# ============================================================================
# Request schemas
# ============================================================================


class WorkAttributesSchema(BaseModel):
    operation: bool = False
    planning: bool = False
    coordination: bool = False
    service: bool = False


class RequestCreate(BaseModel):
    """Schema for creating a new request in draft status."""

    personnel_type: str
    request_type: str
    requested_amount: Decimal = Field(gt=0)
    effective_date: date
    position_number: str | None = None
    department_group: str | None = None
    main_duty: str | None = None
    work_attributes: WorkAttributesSchema | None = None
    submission_data: dict[str, Any] | None = None


class RequestActionResponse(BaseModel):
    """Schema for one entry of a request's action log."""

    model_config = ConfigDict(from_attributes=True)

    action_id: int
    actor_id: int
    step_no: int
    action: str
    comment: str | None = None
    action_date: datetime | None = None


class RequestResponse(BaseModel):
    """Schema for request response."""

    model_config = ConfigDict(from_attributes=True)

    request_id: int
    request_no: str | None = None
    user_id: int
    citizen_id: str
    personnel_type: str
    request_type: str
    position_number: str | None = None
    department_group: str | None = None
    main_duty: str | None = None
    work_attributes: dict[str, Any] | None = None
    requested_amount: Decimal | None = None
    effective_date: date | None = None
    status: str
    current_step: int
    submission_data: dict[str, Any] | None = None
    submitted_at: datetime | None = None
    actions: list[RequestActionResponse] = Field(default_factory=list)


class RequestListResponse(BaseModel):
    items: list[RequestResponse]
    total: int


class RequestActionPayload(BaseModel):
    """Schema for approve/reject/return bodies."""

    comment: str | None = None


class BatchApproveRequest(BaseModel):
    request_ids: list[int] = Field(min_length=1)
    comment: str | None = None


class BatchFailure(BaseModel):
    id: int
    reason: str


class BatchApproveResponse(BaseModel):
    success: list[int]
    failed: list[BatchFailure]


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
