"""Request workflow service - submit and five-step approval with finalization."""

from __future__ import annotations

import logging
import random
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pts_allowance.errors import (
    DataIntegrityError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from pts_allowance.models import (
    MasterRate,
    PTSRequest,
    RateEligibility,
    RequestAction,
    User,
    UserSignature,
)
from pts_allowance.services.approval import (
    BATCH_APPROVAL_STEPS,
    FINAL_STEP,
    SUBMITTABLE_STATUSES,
    ActionType,
    ApprovalStep,
    PersonnelType,
    RequestStatus,
    RequestType,
    Role,
    WorkAttributes,
    required_role,
    step_for_role,
)
from pts_allowance.services.eligibility_service import EligibilityService

logger = logging.getLogger(__name__)

# Classification heuristic: given a citizen, suggest the master rate they
# qualify for. Supplied by the deployment; the engine treats it as opaque.
RateRecommender = Callable[[AsyncSession, str], Awaitable[MasterRate | None]]


async def no_recommendation(session: AsyncSession, citizen_id: str) -> MasterRate | None:
    return None


def is_valid_citizen_id(citizen_id: str | None) -> bool:
    """Thai citizen id: 13 digits, last one a mod-11 check digit."""
    if not citizen_id or len(citizen_id) != 13 or not citizen_id.isdigit():
        return False
    digits = [int(d) for d in citizen_id]
    total = sum(digit * (13 - idx) for idx, digit in enumerate(digits[:12]))
    return (11 - total % 11) % 10 == digits[12]


def generate_request_no(today: date | None = None) -> str:
    year = (today or date.today()).year % 100
    return f"REQ-{year:02d}-{random.randint(0, 999_999):06d}"


@dataclass
class NewRequest:
    """Fields the applicant fills in on a request form."""

    personnel_type: PersonnelType | str
    request_type: RequestType | str
    requested_amount: Decimal | None
    effective_date: date | None
    position_number: str | None = None
    department_group: str | None = None
    main_duty: str | None = None
    work_attributes: WorkAttributes | None = None
    submission_data: dict[str, Any] | None = None


@dataclass
class BatchApproveResult:
    """Per-request outcome of a batch approval."""

    success: list[int] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)


class RequestWorkflowService:
    """Service driving requests through the approval chain.

    Transitions:
    - submit: DRAFT/RETURNED -> PENDING at step 1 (owner only)
    - approve: step -> step + 1; past step 5 -> APPROVED at step 6 + finalize
    - reject: PENDING -> REJECTED (terminal), comment required
    - return: PENDING at step N>1 -> RETURNED at step N-1, comment required

    Every transition appends a RequestAction. Guards run before any
    mutation, so a refused action leaves the request untouched.
    """

    def __init__(
        self,
        session: AsyncSession,
        recommender: RateRecommender | None = None,
        eligibility_service: EligibilityService | None = None,
    ):
        self.session = session
        self.recommender = recommender or no_recommendation
        self.eligibility_service = eligibility_service or EligibilityService(session)

    # === Creation and submission ===

    async def create_request(self, user_id: int, data: NewRequest) -> PTSRequest:
        """Create a DRAFT request for a user."""
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        if not is_valid_citizen_id(user.citizen_id):
            raise ValidationError(
                "citizen_id", "Invalid citizen ID. Must be 13 digits with a valid checksum."
            )
        if data.requested_amount is None or Decimal(data.requested_amount) <= 0:
            raise ValidationError("requested_amount", "requested_amount must be positive")
        if data.effective_date is None:
            raise ValidationError("effective_date", "effective_date is required")

        signature = await self._get_signature(user_id)
        if signature is None:
            raise DataIntegrityError("Applicant signature is required before creating a request")

        request = PTSRequest(
            request_no=generate_request_no(),
            user_id=user_id,
            citizen_id=user.citizen_id,
            personnel_type=PersonnelType(data.personnel_type).value,
            request_type=RequestType(data.request_type).value,
            position_number=data.position_number,
            department_group=data.department_group,
            main_duty=data.main_duty,
            work_attributes=(
                data.work_attributes.to_dict() if data.work_attributes else None
            ),
            applicant_signature_id=signature.signature_id,
            requested_amount=Decimal(data.requested_amount),
            effective_date=data.effective_date,
            status=RequestStatus.DRAFT.value,
            current_step=ApprovalStep.HEAD_DEPT,
            submission_data=data.submission_data,
        )
        self.session.add(request)
        await self.session.flush()

        logger.info(
            "Request created",
            extra={"request_id": request.request_id, "request_no": request.request_no},
        )
        return request

    async def submit(self, request_id: int, user_id: int) -> PTSRequest:
        request = await self._load(request_id)
        if request.user_id != user_id:
            raise NotFoundError("Request", request_id)
        if request.status not in SUBMITTABLE_STATUSES:
            raise InvalidStateTransitionError(request.status, ActionType.SUBMIT)

        request.status = RequestStatus.PENDING.value
        request.current_step = ApprovalStep.HEAD_DEPT
        request.submitted_at = datetime.now(timezone.utc)
        self._record(request, user_id, ApprovalStep.HEAD_DEPT, ActionType.SUBMIT)
        await self.session.flush()

        logger.info("Request submitted", extra={"request_id": request_id})
        return request

    # === Approval chain ===

    async def approve(
        self,
        request_id: int,
        actor_id: int,
        actor_role: Role | str,
        comment: str | None = None,
    ) -> PTSRequest:
        request = await self._load(request_id)
        self._check_actionable(request, ActionType.APPROVE, actor_role)

        signature = await self._require_approver_signature(actor_id)
        await self._perform_approval(request, actor_id, comment, signature)
        await self.session.flush()
        return request

    async def reject(
        self,
        request_id: int,
        actor_id: int,
        actor_role: Role | str,
        comment: str | None,
    ) -> PTSRequest:
        request = await self._load(request_id)
        self._check_actionable(request, ActionType.REJECT, actor_role)
        if not comment or not comment.strip():
            raise ValidationError("comment", "Rejection reason is required")

        self._record(request, actor_id, request.current_step, ActionType.REJECT, comment)
        request.status = RequestStatus.REJECTED.value
        await self.session.flush()

        logger.info(
            "Request rejected",
            extra={"request_id": request_id, "step": request.current_step},
        )
        return request

    async def return_request(
        self,
        request_id: int,
        actor_id: int,
        actor_role: Role | str,
        comment: str | None,
    ) -> PTSRequest:
        request = await self._load(request_id)
        if request.status != RequestStatus.PENDING:
            raise InvalidStateTransitionError(request.status, ActionType.RETURN)
        if request.current_step <= ApprovalStep.HEAD_DEPT:
            raise InvalidStateTransitionError(
                request.status,
                ActionType.RETURN,
                "Cannot return request from the first approval step",
            )
        self._check_role(request, actor_role)
        if not comment or not comment.strip():
            raise ValidationError("comment", "Return reason is required")

        current_step = request.current_step
        self._record(request, actor_id, current_step, ActionType.RETURN, comment)
        request.status = RequestStatus.RETURNED.value
        request.current_step = current_step - 1
        await self.session.flush()

        logger.info(
            "Request returned",
            extra={"request_id": request_id, "from_step": current_step},
        )
        return request

    async def approve_batch(
        self,
        actor_id: int,
        actor_role: Role | str,
        request_ids: Iterable[int],
        comment: str | None = None,
    ) -> BatchApproveResult:
        """Approve many requests at step 4 or 5, each in its own savepoint.

        A request that fails is rolled back alone and reported in ``failed``;
        the others stay approved.
        """
        expected_step = step_for_role(actor_role)
        if expected_step not in BATCH_APPROVAL_STEPS:
            raise PermissionDeniedError(
                " or ".join(required_role(step).value for step in sorted(BATCH_APPROVAL_STEPS)),
                actor_role,
            )

        signature = await self._require_approver_signature(actor_id)
        result = BatchApproveResult()

        for request_id in request_ids:
            try:
                async with self.session.begin_nested():
                    reason = await self._approve_in_batch(
                        request_id, expected_step, actor_id, comment, signature
                    )
                    if reason is not None:
                        result.failed.append({"id": request_id, "reason": reason})
                        continue
                result.success.append(request_id)
            except Exception as exc:
                logger.exception(
                    "Batch approval failed",
                    extra={"request_id": request_id, "actor_id": actor_id},
                )
                result.failed.append({"id": request_id, "reason": str(exc)})

        logger.info(
            "Batch approval finished",
            extra={
                "actor_id": actor_id,
                "approved": len(result.success),
                "failed": len(result.failed),
            },
        )
        return result

    async def _approve_in_batch(
        self,
        request_id: int,
        expected_step: ApprovalStep,
        actor_id: int,
        comment: str | None,
        signature: bytes,
    ) -> str | None:
        """Approve one request; return a failure reason instead of raising for guards."""
        result = await self.session.execute(
            select(PTSRequest)
            .where(PTSRequest.request_id == request_id)
            .options(selectinload(PTSRequest.actions))
            .with_for_update()
        )
        request = result.scalar_one_or_none()
        if request is None:
            return "Request not found"
        if request.current_step != expected_step:
            return (
                f"Not at Step {int(expected_step)} "
                f"(currently at Step {request.current_step})"
            )
        if request.status != RequestStatus.PENDING:
            return f"Status is {request.status}, not PENDING"

        await self._perform_approval(request, actor_id, comment, signature)
        await self.session.flush()
        return None

    async def _perform_approval(
        self,
        request: PTSRequest,
        actor_id: int,
        comment: str | None,
        signature: bytes,
    ) -> None:
        current_step = request.current_step
        self._record(
            request, actor_id, current_step, ActionType.APPROVE, comment or None, signature
        )

        if current_step >= ApprovalStep.HEAD_FINANCE:
            request.status = RequestStatus.APPROVED.value
            request.current_step = FINAL_STEP
            await self.session.flush()
            await self.finalize(request)
        else:
            request.current_step = current_step + 1

        logger.info(
            "Request approved",
            extra={
                "request_id": request.request_id,
                "step": current_step,
                "next_step": request.current_step,
            },
        )

    async def finalize(self, request: PTSRequest) -> RateEligibility:
        """Turn a fully approved request into the citizen's active eligibility.

        Rate selection:
        1. The recommended rate, if its amount equals the requested amount
        2. An active rate with that amount in the recommended profession
        3. Any active rate with that amount
        """
        amount = request.requested_amount
        if amount is None or Decimal(amount) <= 0:
            raise ValidationError("requested_amount", "requested_amount must be positive")
        if request.effective_date is None:
            raise ValidationError("effective_date", "effective_date is required for finalization")
        amount = Decimal(amount)

        recommended = await self.recommender(self.session, request.citizen_id)
        rate: MasterRate | None = None
        if recommended is not None and Decimal(str(recommended.amount)) == amount:
            rate = recommended
        else:
            profession_code = recommended.profession_code if recommended else None
            if profession_code:
                rate = await self.eligibility_service.find_rate_by_amount(
                    amount, profession_code
                )
            if rate is None:
                rate = await self.eligibility_service.find_rate_by_amount(amount)

        if rate is None:
            raise DataIntegrityError(f"No master rate with amount {amount}")

        logger.info(
            "Finalizing request",
            extra={
                "request_id": request.request_id,
                "master_rate_id": rate.rate_id,
                "recommended": recommended is not None and rate is recommended,
            },
        )
        return await self.eligibility_service.create_eligibility(
            request.citizen_id,
            rate.rate_id,
            request.effective_date,
            request_id=request.request_id,
        )

    # === Queries ===

    async def get_request(self, request_id: int) -> PTSRequest:
        return await self._load(request_id)

    async def list_pending_for_role(self, role: Role | str) -> list[PTSRequest]:
        step = step_for_role(role)
        if step is None:
            raise PermissionDeniedError("an approver role", role)
        result = await self.session.execute(
            select(PTSRequest)
            .where(
                PTSRequest.status == RequestStatus.PENDING.value,
                PTSRequest.current_step == int(step),
            )
            .options(selectinload(PTSRequest.actions))
            .order_by(PTSRequest.created_at, PTSRequest.request_id)
        )
        return list(result.scalars().all())

    async def list_for_user(self, user_id: int) -> list[PTSRequest]:
        result = await self.session.execute(
            select(PTSRequest)
            .where(PTSRequest.user_id == user_id)
            .options(selectinload(PTSRequest.actions))
            .order_by(PTSRequest.created_at.desc(), PTSRequest.request_id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    def can_view(request: PTSRequest, user_id: int, role: Role | str) -> bool:
        """Owner, the approver currently holding it, or an admin."""
        if request.user_id == user_id or role == Role.ADMIN:
            return True
        step = step_for_role(role)
        return (
            step is not None
            and request.status == RequestStatus.PENDING
            and request.current_step == step
        )

    # === Internal Methods ===

    async def _load(self, request_id: int) -> PTSRequest:
        result = await self.session.execute(
            select(PTSRequest)
            .where(PTSRequest.request_id == request_id)
            .options(selectinload(PTSRequest.actions))
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError("Request", request_id)
        return request

    async def _get_signature(self, user_id: int) -> UserSignature | None:
        result = await self.session.execute(
            select(UserSignature).where(UserSignature.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def _require_approver_signature(self, actor_id: int) -> bytes:
        signature = await self._get_signature(actor_id)
        if signature is None or not signature.signature_image:
            raise DataIntegrityError(
                "Approver signature is required. Please set your signature before approving."
            )
        return signature.signature_image

    def _check_actionable(
        self, request: PTSRequest, action: ActionType, actor_role: Role | str
    ) -> None:
        if request.status != RequestStatus.PENDING:
            raise InvalidStateTransitionError(request.status, action)
        self._check_role(request, actor_role)

    @staticmethod
    def _check_role(request: PTSRequest, actor_role: Role | str) -> None:
        expected = required_role(request.current_step)
        if actor_role != expected:
            raise PermissionDeniedError(expected, actor_role)

    def _record(
        self,
        request: PTSRequest,
        actor_id: int,
        step_no: int,
        action: ActionType,
        comment: str | None = None,
        signature_snapshot: bytes | None = None,
    ) -> RequestAction:
        entry = RequestAction(
            actor_id=actor_id,
            step_no=int(step_no),
            action=action.value,
            comment=comment,
            signature_snapshot=signature_snapshot,
        )
        request.actions.append(entry)
        return entry
