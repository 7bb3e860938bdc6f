"""Payroll period state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from pts_allowance.errors import InvalidStateTransitionError


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    OPEN = "OPEN"
    WAITING_HR = "WAITING_HR"
    WAITING_DIRECTOR = "WAITING_DIRECTOR"
    CLOSED = "CLOSED"


class PeriodAction(str, Enum):
    """Actions that move a period between statuses."""

    SUBMIT = "SUBMIT"
    APPROVE_HR = "APPROVE_HR"
    APPROVE_DIRECTOR = "APPROVE_DIRECTOR"
    REJECT = "REJECT"


class PeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - OPEN --SUBMIT--> WAITING_HR
    - WAITING_HR --APPROVE_HR--> WAITING_DIRECTOR
    - WAITING_DIRECTOR --APPROVE_DIRECTOR--> CLOSED
    - WAITING_HR / WAITING_DIRECTOR --REJECT--> OPEN
    """

    # {from_status: {action: to_status}}
    VALID_TRANSITIONS: dict[PeriodStatus, dict[PeriodAction, PeriodStatus]] = {
        PeriodStatus.OPEN: {PeriodAction.SUBMIT: PeriodStatus.WAITING_HR},
        PeriodStatus.WAITING_HR: {
            PeriodAction.APPROVE_HR: PeriodStatus.WAITING_DIRECTOR,
            PeriodAction.REJECT: PeriodStatus.OPEN,
        },
        PeriodStatus.WAITING_DIRECTOR: {
            PeriodAction.APPROVE_DIRECTOR: PeriodStatus.CLOSED,
            PeriodAction.REJECT: PeriodStatus.OPEN,
        },
        PeriodStatus.CLOSED: {},  # Terminal state
    }

    # Statuses where payouts may be recalculated
    CALCULATION_ALLOWED = {PeriodStatus.OPEN}

    @classmethod
    def can_transition(cls, status: str, action: str) -> bool:
        try:
            allowed = cls.VALID_TRANSITIONS[PeriodStatus(status)]
            return PeriodAction(action) in allowed
        except ValueError:
            return False

    @classmethod
    def next_status(cls, status: str, action: str) -> PeriodStatus:
        """Return the status reached by ``action``, raising if it is not allowed."""
        if not cls.can_transition(status, action):
            raise InvalidStateTransitionError(status, action)
        return cls.VALID_TRANSITIONS[PeriodStatus(status)][PeriodAction(action)]

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        return status in cls.CALCULATION_ALLOWED

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status == PeriodStatus.CLOSED

    @classmethod
    def get_available_actions(cls, status: str) -> list[PeriodAction]:
        try:
            return list(cls.VALID_TRANSITIONS[PeriodStatus(status)])
        except ValueError:
            return []


__all__ = [
    "InvalidStateTransitionError",
    "PeriodAction",
    "PeriodStateMachine",
    "PeriodStatus",
]
