"""Exception taxonomy shared by calculators, services and the API."""

from __future__ import annotations

from typing import Any


class PTSError(Exception):
    """Base class for all domain errors."""

    code = "PTS_ERROR"


class NotFoundError(PTSError):
    """Raised when a referenced period, request, user or profile is absent."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class InvalidStateTransitionError(PTSError):
    """Raised when an action is not permitted from the current status or step."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: Any, attempted: Any, reason: str | None = None):
        self.current = current
        self.attempted = attempted
        self.reason = reason
        msg = f"Invalid action '{_plain(attempted)}' for status '{_plain(current)}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PermissionDeniedError(PTSError):
    """Raised when the actor's role does not match the expected approver."""

    code = "PERMISSION_DENIED"

    def __init__(self, expected_role: Any, actual_role: Any):
        self.expected_role = expected_role
        self.actual_role = actual_role
        super().__init__(
            f"Invalid approver role. Expected {_plain(expected_role)}, "
            f"got {_plain(actual_role)}"
        )


class ValidationError(PTSError):
    """Raised when a required field is missing or malformed."""

    code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class DataIntegrityError(PTSError):
    """Raised when reference data needed to proceed is missing."""

    code = "DATA_INTEGRITY"


def _plain(value: Any) -> str:
    return str(getattr(value, "value", value))
