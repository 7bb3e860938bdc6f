"""Allowance workflow services."""

from pts_allowance.services.approval import ApprovalStep, RequestStatus, Role
from pts_allowance.services.eligibility_service import EligibilityService
from pts_allowance.services.period_service import (
    PayrollPeriodService,
    PeriodCalculationSummary,
)
from pts_allowance.services.request_service import (
    BatchApproveResult,
    NewRequest,
    RateRecommender,
    RequestWorkflowService,
)
from pts_allowance.services.state_machine import (
    PeriodAction,
    PeriodStateMachine,
    PeriodStatus,
)

__all__ = [
    "ApprovalStep",
    "BatchApproveResult",
    "EligibilityService",
    "NewRequest",
    "PayrollPeriodService",
    "PeriodAction",
    "PeriodCalculationSummary",
    "PeriodStateMachine",
    "PeriodStatus",
    "RateRecommender",
    "RequestStatus",
    "RequestWorkflowService",
    "Role",
]
