"""Approval chain vocabulary: roles, steps, request statuses and payload types."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum, IntEnum
from typing import Any


class Role(str, Enum):
    """User roles known to the workflow."""

    USER = "USER"
    HEAD_DEPT = "HEAD_DEPT"
    PTS_OFFICER = "PTS_OFFICER"
    HEAD_HR = "HEAD_HR"
    DIRECTOR = "DIRECTOR"
    HEAD_FINANCE = "HEAD_FINANCE"
    ADMIN = "ADMIN"


class ApprovalStep(IntEnum):
    """The five sequential approval steps."""

    HEAD_DEPT = 1
    PTS_OFFICER = 2
    HEAD_HR = 3
    DIRECTOR = 4
    HEAD_FINANCE = 5


# Reached after the last approval; not an approval step itself.
FINAL_STEP = 6

STEP_ROLES: dict[ApprovalStep, Role] = {
    ApprovalStep.HEAD_DEPT: Role.HEAD_DEPT,
    ApprovalStep.PTS_OFFICER: Role.PTS_OFFICER,
    ApprovalStep.HEAD_HR: Role.HEAD_HR,
    ApprovalStep.DIRECTOR: Role.DIRECTOR,
    ApprovalStep.HEAD_FINANCE: Role.HEAD_FINANCE,
}

ROLE_STEPS: dict[Role, ApprovalStep] = {role: step for step, role in STEP_ROLES.items()}

# Steps whose approvers may approve many requests at once.
BATCH_APPROVAL_STEPS = frozenset({ApprovalStep.DIRECTOR, ApprovalStep.HEAD_FINANCE})


def required_role(step: ApprovalStep | int) -> Role:
    """Role that must act on a request sitting at ``step``."""
    return STEP_ROLES[ApprovalStep(step)]


def step_for_role(role: Role | str) -> ApprovalStep | None:
    """Step a role approves, or None for roles outside the chain."""
    try:
        return ROLE_STEPS.get(Role(role))
    except ValueError:
        return None


class RequestStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


# Statuses from which the owner may (re)submit.
SUBMITTABLE_STATUSES = frozenset({RequestStatus.DRAFT, RequestStatus.RETURNED})


class ActionType(str, Enum):
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    RETURN = "RETURN"


class PersonnelType(str, Enum):
    CIVIL_SERVANT = "CIVIL_SERVANT"
    GOV_EMPLOYEE = "GOV_EMPLOYEE"
    PH_EMPLOYEE = "PH_EMPLOYEE"
    TEMP_EMPLOYEE = "TEMP_EMPLOYEE"


class RequestType(str, Enum):
    NEW_ENTRY = "NEW_ENTRY"
    EDIT_INFO_SAME_RATE = "EDIT_INFO_SAME_RATE"
    EDIT_INFO_NEW_RATE = "EDIT_INFO_NEW_RATE"


@dataclass
class WorkAttributes:
    """Nature of the applicant's duties as declared on the request form."""

    operation: bool = False
    planning: bool = False
    coordination: bool = False
    service: bool = False

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> WorkAttributes:
        data = data or {}
        return cls(
            operation=bool(data.get("operation", False)),
            planning=bool(data.get("planning", False)),
            coordination=bool(data.get("coordination", False)),
            service=bool(data.get("service", False)),
        )
