"""ORM models."""

from pts_allowance.models.base import Base, TimestampMixin
from pts_allowance.models.employee import (
    EmployeeProfile,
    EmploymentMovement,
    Holiday,
    LeaveQuota,
    LeaveRequest,
    License,
    MasterRate,
    RateEligibility,
)
from pts_allowance.models.payroll import Payout, PayoutItem, PayrollPeriod
from pts_allowance.models.request import PTSRequest, RequestAction, User, UserSignature

__all__ = [
    "Base",
    "TimestampMixin",
    "EmployeeProfile",
    "EmploymentMovement",
    "Holiday",
    "LeaveQuota",
    "LeaveRequest",
    "License",
    "MasterRate",
    "RateEligibility",
    "Payout",
    "PayoutItem",
    "PayrollPeriod",
    "PTSRequest",
    "RequestAction",
    "User",
    "UserSignature",
]
