"""Tests for the request approval workflow."""

import re
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from pts_allowance.errors import (
    DataIntegrityError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from pts_allowance.models import PTSRequest, RateEligibility, RequestAction
from pts_allowance.services.approval import (
    ActionType,
    ApprovalStep,
    RequestStatus,
    Role,
    WorkAttributes,
    required_role,
)
from pts_allowance.services.request_service import (
    NewRequest,
    RequestWorkflowService,
    generate_request_no,
    is_valid_citizen_id,
)
from tests.factories import (
    add_eligibility,
    add_master_rate,
    add_request,
    add_user,
    make_citizen_id,
)

CHAIN_ROLES = [
    Role.HEAD_DEPT,
    Role.PTS_OFFICER,
    Role.HEAD_HR,
    Role.DIRECTOR,
    Role.HEAD_FINANCE,
]


@pytest.fixture
async def people(session):
    """Applicant plus one signed-up approver per step."""
    users = {"owner": await add_user(session, Role.USER.value, make_citizen_id(100))}
    for idx, role in enumerate(CHAIN_ROLES, start=1):
        users[role] = await add_user(session, role.value, make_citizen_id(100 + idx))
    return users


@pytest.fixture
async def rate_1500(session):
    return await add_master_rate(session, "1500")


@pytest.fixture
def service(session) -> RequestWorkflowService:
    return RequestWorkflowService(session)


async def action_count(session, request_id: int) -> int:
    return await session.scalar(
        select(func.count())
        .select_from(RequestAction)
        .where(RequestAction.request_id == request_id)
    )


async def approve_steps(service, request, people, steps: int) -> None:
    for role in CHAIN_ROLES[:steps]:
        await service.approve(request.request_id, people[role].user_id, role)


def new_request(**overrides) -> NewRequest:
    data = dict(
        personnel_type="CIVIL_SERVANT",
        request_type="NEW_ENTRY",
        requested_amount=Decimal("1500"),
        effective_date=date(2024, 3, 1),
        main_duty="ดูแลผู้ป่วยวิกฤต",
        work_attributes=WorkAttributes(operation=True, service=True),
        submission_data={"title": "นาง", "first_name": "สมหญิง"},
    )
    data.update(overrides)
    return NewRequest(**data)


class TestCitizenId:
    """Test citizen id checksum."""

    def test_generated_ids_are_valid(self):
        assert all(is_valid_citizen_id(make_citizen_id(n)) for n in range(50))

    def test_invalid_ids(self):
        valid = make_citizen_id(7)
        wrong_digit = valid[:-1] + str((int(valid[-1]) + 1) % 10)

        assert is_valid_citizen_id(wrong_digit) is False
        assert is_valid_citizen_id("12345") is False
        assert is_valid_citizen_id("12345678901ab") is False
        assert is_valid_citizen_id(None) is False

    def test_request_no_format(self):
        assert re.fullmatch(r"REQ-24-\d{6}", generate_request_no(date(2024, 5, 1)))


class TestCreateAndSubmit:
    """Test request creation and submission."""

    @pytest.mark.asyncio
    async def test_create_draft(self, service, people):
        owner = people["owner"]

        request = await service.create_request(owner.user_id, new_request())

        assert request.status == RequestStatus.DRAFT
        assert request.current_step == 1
        assert request.citizen_id == owner.citizen_id
        assert request.applicant_signature_id is not None
        assert request.work_attributes == {
            "operation": True,
            "planning": False,
            "coordination": False,
            "service": True,
        }
        assert request.submission_data == {"title": "นาง", "first_name": "สมหญิง"}
        assert re.fullmatch(r"REQ-\d{2}-\d{6}", request.request_no)

    @pytest.mark.asyncio
    async def test_create_requires_positive_amount(self, service, people):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_request(
                people["owner"].user_id, new_request(requested_amount=Decimal("0"))
            )

        assert exc_info.value.field == "requested_amount"

    @pytest.mark.asyncio
    async def test_create_requires_effective_date(self, service, people):
        with pytest.raises(ValidationError):
            await service.create_request(
                people["owner"].user_id, new_request(effective_date=None)
            )

    @pytest.mark.asyncio
    async def test_create_requires_signature(self, session, service):
        user = await add_user(session, "USER", make_citizen_id(200), with_signature=False)

        with pytest.raises(DataIntegrityError):
            await service.create_request(user.user_id, new_request())

    @pytest.mark.asyncio
    async def test_create_rejects_bad_citizen_id(self, session, service):
        user = await add_user(session, "USER", "1234")

        with pytest.raises(ValidationError):
            await service.create_request(user.user_id, new_request())

    @pytest.mark.asyncio
    async def test_submit_moves_to_pending(self, session, service, people):
        request = await add_request(session, people["owner"])

        await service.submit(request.request_id, people["owner"].user_id)

        assert request.status == RequestStatus.PENDING
        assert request.current_step == ApprovalStep.HEAD_DEPT
        assert request.submitted_at is not None
        assert [a.action for a in request.actions] == [ActionType.SUBMIT.value]

    @pytest.mark.asyncio
    async def test_only_owner_can_submit(self, session, service, people):
        request = await add_request(session, people["owner"])

        with pytest.raises(NotFoundError):
            await service.submit(request.request_id, people[Role.HEAD_DEPT].user_id)

        assert request.status == RequestStatus.DRAFT

    @pytest.mark.asyncio
    async def test_cannot_submit_pending(self, session, service, people):
        request = await add_request(session, people["owner"], status="PENDING")

        with pytest.raises(InvalidStateTransitionError):
            await service.submit(request.request_id, people["owner"].user_id)


class TestApprovalChain:
    """Test approve/reject/return guards and transitions."""

    @pytest.mark.asyncio
    async def test_full_chain_creates_eligibility(
        self, session, service, people, rate_1500
    ):
        request = await add_request(session, people["owner"])
        await service.submit(request.request_id, people["owner"].user_id)

        await approve_steps(service, request, people, 5)

        assert request.status == RequestStatus.APPROVED
        assert request.current_step == 6
        approvals = [a for a in request.actions if a.action == ActionType.APPROVE.value]
        assert [a.step_no for a in approvals] == [1, 2, 3, 4, 5]
        assert approvals[0].signature_snapshot == b"sig-HEAD_DEPT"

        result = await session.execute(
            select(RateEligibility).where(
                RateEligibility.citizen_id == people["owner"].citizen_id
            )
        )
        [eligibility] = result.scalars().all()
        assert eligibility.is_active is True
        assert eligibility.master_rate_id == rate_1500.rate_id
        assert eligibility.effective_date == date(2024, 3, 1)
        assert eligibility.request_id == request.request_id

    @pytest.mark.asyncio
    async def test_wrong_role_fails_without_mutation(self, session, service, people):
        request = await add_request(session, people["owner"], status="PENDING")
        before = await action_count(session, request.request_id)

        with pytest.raises(PermissionDeniedError) as exc_info:
            await service.approve(
                request.request_id, people[Role.HEAD_HR].user_id, Role.HEAD_HR
            )

        assert str(exc_info.value) == "Invalid approver role. Expected HEAD_DEPT, got HEAD_HR"
        assert request.status == RequestStatus.PENDING
        assert request.current_step == 1
        assert await action_count(session, request.request_id) == before

    @pytest.mark.asyncio
    async def test_approve_requires_pending(self, session, service, people):
        request = await add_request(session, people["owner"])

        with pytest.raises(InvalidStateTransitionError):
            await service.approve(
                request.request_id, people[Role.HEAD_DEPT].user_id, Role.HEAD_DEPT
            )

        assert request.status == RequestStatus.DRAFT
        assert await action_count(session, request.request_id) == 0

    @pytest.mark.asyncio
    async def test_approver_needs_signature(self, session, service, people):
        unsigned = await add_user(
            session, "HEAD_DEPT", make_citizen_id(300), with_signature=False
        )
        request = await add_request(session, people["owner"], status="PENDING")

        with pytest.raises(DataIntegrityError):
            await service.approve(request.request_id, unsigned.user_id, Role.HEAD_DEPT)

        assert request.current_step == 1

    @pytest.mark.asyncio
    async def test_reject_requires_comment(self, session, service, people):
        request = await add_request(session, people["owner"], status="PENDING")

        with pytest.raises(ValidationError):
            await service.reject(
                request.request_id, people[Role.HEAD_DEPT].user_id, Role.HEAD_DEPT, "  "
            )

        assert request.status == RequestStatus.PENDING

    @pytest.mark.asyncio
    async def test_reject_is_terminal(self, session, service, people):
        request = await add_request(
            session, people["owner"], status="PENDING", current_step=2
        )

        await service.reject(
            request.request_id,
            people[Role.PTS_OFFICER].user_id,
            Role.PTS_OFFICER,
            "ไม่ผ่านเกณฑ์",
        )

        assert request.status == RequestStatus.REJECTED
        assert request.current_step == 2
        assert request.actions[-1].action == ActionType.REJECT.value
        assert request.actions[-1].comment == "ไม่ผ่านเกณฑ์"

        with pytest.raises(InvalidStateTransitionError):
            await service.approve(
                request.request_id, people[Role.PTS_OFFICER].user_id, Role.PTS_OFFICER
            )

    @pytest.mark.asyncio
    async def test_return_from_first_step_refused(self, session, service, people):
        request = await add_request(session, people["owner"], status="PENDING")

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await service.return_request(
                request.request_id, people[Role.HEAD_DEPT].user_id, Role.HEAD_DEPT, "x"
            )

        assert "first approval step" in str(exc_info.value)
        assert request.status == RequestStatus.PENDING

    @pytest.mark.asyncio
    async def test_return_requires_comment(self, session, service, people):
        request = await add_request(
            session, people["owner"], status="PENDING", current_step=3
        )

        with pytest.raises(ValidationError):
            await service.return_request(
                request.request_id, people[Role.HEAD_HR].user_id, Role.HEAD_HR, None
            )

        assert request.current_step == 3

    @pytest.mark.asyncio
    async def test_return_then_resubmit_restarts_at_step_one(
        self, session, service, people
    ):
        request = await add_request(session, people["owner"])
        await service.submit(request.request_id, people["owner"].user_id)
        await approve_steps(service, request, people, 2)
        assert request.current_step == 3

        await service.return_request(
            request.request_id,
            people[Role.HEAD_HR].user_id,
            Role.HEAD_HR,
            "missing document",
        )

        assert request.status == RequestStatus.RETURNED
        assert request.current_step == 2
        assert request.actions[-1].action == ActionType.RETURN.value
        assert request.actions[-1].step_no == 3

        await service.submit(request.request_id, people["owner"].user_id)

        assert request.status == RequestStatus.PENDING
        assert request.current_step == 1


class TestBatchApprove:
    """Test batch approval at the director and finance steps."""

    @pytest.mark.asyncio
    async def test_partial_failure(self, session, service, people):
        owner = people["owner"]
        ok_1 = await add_request(session, owner, status="PENDING", current_step=4)
        ok_2 = await add_request(session, owner, status="PENDING", current_step=4)
        rejected = await add_request(session, owner, status="REJECTED", current_step=4)
        director = people[Role.DIRECTOR]

        result = await service.approve_batch(
            director.user_id,
            Role.DIRECTOR,
            [ok_1.request_id, ok_2.request_id, rejected.request_id],
        )

        assert result.success == [ok_1.request_id, ok_2.request_id]
        assert result.failed == [
            {"id": rejected.request_id, "reason": "Status is REJECTED, not PENDING"}
        ]
        assert ok_1.current_step == 5
        assert ok_2.current_step == 5
        assert rejected.current_step == 4
        assert await action_count(session, ok_1.request_id) == 1

    @pytest.mark.asyncio
    async def test_reports_missing_and_wrong_step(self, session, service, people):
        at_step_3 = await add_request(
            session, people["owner"], status="PENDING", current_step=3
        )

        result = await service.approve_batch(
            people[Role.DIRECTOR].user_id, Role.DIRECTOR, [at_step_3.request_id, 9999]
        )

        assert result.success == []
        assert result.failed == [
            {
                "id": at_step_3.request_id,
                "reason": "Not at Step 4 (currently at Step 3)",
            },
            {"id": 9999, "reason": "Request not found"},
        ]

    @pytest.mark.asyncio
    async def test_failed_finalization_rolls_back_only_that_request(
        self, session, service, people, rate_1500
    ):
        owner = people["owner"]
        good = await add_request(session, owner, status="PENDING", current_step=5)
        no_rate = await add_request(
            session,
            owner,
            status="PENDING",
            current_step=5,
            requested_amount="1234",
            effective_date=date(2024, 4, 1),
        )

        good_id, no_rate_id = good.request_id, no_rate.request_id

        result = await service.approve_batch(
            people[Role.HEAD_FINANCE].user_id,
            Role.HEAD_FINANCE,
            [good_id, no_rate_id],
        )

        assert result.success == [good_id]
        assert result.failed[0]["id"] == no_rate_id
        assert "1234" in result.failed[0]["reason"]

        # The rolled-back savepoint expired its objects; reload them
        reloaded = await session.get(PTSRequest, no_rate_id, populate_existing=True)
        assert reloaded.status == RequestStatus.PENDING
        assert reloaded.current_step == 5
        assert await action_count(session, no_rate_id) == 0

        approved = await session.get(PTSRequest, good_id, populate_existing=True)
        assert approved.status == RequestStatus.APPROVED
        active = await session.scalar(
            select(func.count())
            .select_from(RateEligibility)
            .where(RateEligibility.is_active.is_(True))
        )
        assert active == 1

    @pytest.mark.asyncio
    async def test_only_director_and_finance(self, service, people):
        with pytest.raises(PermissionDeniedError):
            await service.approve_batch(
                people[Role.HEAD_HR].user_id, Role.HEAD_HR, [1]
            )

    @pytest.mark.asyncio
    async def test_batch_requires_signature(self, session, service, people):
        unsigned = await add_user(
            session, "DIRECTOR", make_citizen_id(301), with_signature=False
        )

        with pytest.raises(DataIntegrityError):
            await service.approve_batch(unsigned.user_id, Role.DIRECTOR, [1])


class TestFinalization:
    """Test master-rate resolution and eligibility supersession."""

    @pytest.mark.asyncio
    async def test_supersedes_existing_eligibility(self, session, service, people):
        owner = people["owner"]
        old_rate = await add_master_rate(session, "1000")
        new_rate = await add_master_rate(session, "1500")
        old = await add_eligibility(session, owner.citizen_id, old_rate, date(2024, 1, 1))
        request = await add_request(session, owner, status="APPROVED", current_step=6)

        created = await service.finalize(request)

        assert created.master_rate_id == new_rate.rate_id
        assert old.is_active is False
        assert old.expiry_date == date(2024, 3, 1) - timedelta(days=1)
        active = await session.scalar(
            select(func.count())
            .select_from(RateEligibility)
            .where(
                RateEligibility.citizen_id == owner.citizen_id,
                RateEligibility.is_active.is_(True),
            )
        )
        assert active == 1

    @pytest.mark.asyncio
    async def test_prefers_recommended_rate_with_same_amount(self, session, people):
        await add_master_rate(session, "1500", profession_code="NURSE")
        pharmacist = await add_master_rate(session, "1500", profession_code="PHARM")

        async def recommend(session, citizen_id):
            return pharmacist

        service = RequestWorkflowService(session, recommender=recommend)
        request = await add_request(session, people["owner"], status="APPROVED", current_step=6)

        created = await service.finalize(request)

        assert created.master_rate_id == pharmacist.rate_id

    @pytest.mark.asyncio
    async def test_narrows_by_recommended_profession(self, session, people):
        await add_master_rate(session, "1500", profession_code="NURSE")
        pharm_1000 = await add_master_rate(session, "1000", profession_code="PHARM")
        pharm_1500 = await add_master_rate(session, "1500", profession_code="PHARM")

        async def recommend(session, citizen_id):
            return pharm_1000

        service = RequestWorkflowService(session, recommender=recommend)
        request = await add_request(session, people["owner"], status="APPROVED", current_step=6)

        created = await service.finalize(request)

        assert created.master_rate_id == pharm_1500.rate_id

    @pytest.mark.asyncio
    async def test_inactive_rates_are_not_used(self, session, service, people):
        await add_master_rate(session, "1500", is_active=False)
        request = await add_request(session, people["owner"], status="APPROVED", current_step=6)

        with pytest.raises(DataIntegrityError):
            await service.finalize(request)

    @pytest.mark.asyncio
    async def test_missing_amount_fails(self, session, service, people, rate_1500):
        request = await add_request(
            session, people["owner"], status="APPROVED", current_step=6, requested_amount=None
        )

        with pytest.raises(ValidationError):
            await service.finalize(request)


class TestQueries:
    """Test request listing helpers."""

    @pytest.mark.asyncio
    async def test_pending_for_role(self, session, service, people):
        owner = people["owner"]
        at_dept = await add_request(session, owner, status="PENDING", current_step=1)
        await add_request(session, owner, status="PENDING", current_step=2)
        await add_request(session, owner, status="RETURNED", current_step=1)

        pending = await service.list_pending_for_role(Role.HEAD_DEPT)

        assert [r.request_id for r in pending] == [at_dept.request_id]

    @pytest.mark.asyncio
    async def test_pending_for_non_approver(self, service):
        with pytest.raises(PermissionDeniedError):
            await service.list_pending_for_role(Role.USER)

    @pytest.mark.asyncio
    async def test_list_for_user_and_visibility(self, session, service, people):
        owner = people["owner"]
        request = await add_request(session, owner, status="PENDING", current_step=2)

        mine = await service.list_for_user(owner.user_id)

        assert [r.request_id for r in mine] == [request.request_id]
        assert service.can_view(request, owner.user_id, Role.USER)
        assert service.can_view(request, people[Role.PTS_OFFICER].user_id, Role.PTS_OFFICER)
        assert not service.can_view(request, people[Role.HEAD_HR].user_id, Role.HEAD_HR)
        assert service.can_view(request, 12345, Role.ADMIN)
        assert required_role(request.current_step) == Role.PTS_OFFICER
