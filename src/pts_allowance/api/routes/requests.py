"""Allowance request API endpoints."""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, status

from pts_allowance.api.dependencies import Actor, CurrentActor, DbSession, require_roles
from pts_allowance.api.schemas import (
    BatchApproveRequest,
    BatchApproveResponse,
    BatchFailure,
    ErrorResponse,
    RequestActionPayload,
    RequestCreate,
    RequestListResponse,
    RequestResponse,
)
from pts_allowance.services.approval import Role, WorkAttributes
from pts_allowance.services.request_service import NewRequest, RequestWorkflowService

router = APIRouter(prefix="/requests", tags=["requests"])

RequestId = Annotated[int, Path(ge=1)]

APPROVER_ROLES = (
    Role.HEAD_DEPT,
    Role.PTS_OFFICER,
    Role.HEAD_HR,
    Role.DIRECTOR,
    Role.HEAD_FINANCE,
)


async def _reload(service: RequestWorkflowService, request_id: int) -> RequestResponse:
    request = await service.get_request(request_id)
    return RequestResponse.model_validate(request)


# Fixed paths go before /{request_id}.


@router.post(
    "/batch-approve",
    response_model=BatchApproveResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_batch(
    db: DbSession,
    payload: BatchApproveRequest,
    actor: Annotated[Actor, require_roles(Role.DIRECTOR, Role.HEAD_FINANCE)],
) -> BatchApproveResponse:
    """Approve several requests at the director or finance step."""
    result = await RequestWorkflowService(db).approve_batch(
        actor.user_id, actor.role, payload.request_ids, payload.comment
    )
    await db.commit()
    return BatchApproveResponse(
        success=result.success,
        failed=[BatchFailure(**entry) for entry in result.failed],
    )


@router.get(
    "/pending",
    response_model=RequestListResponse,
    responses={403: {"model": ErrorResponse}},
)
async def list_pending(
    db: DbSession,
    actor: Annotated[Actor, require_roles(*APPROVER_ROLES)],
) -> RequestListResponse:
    """List requests waiting at the caller's approval step."""
    requests = await RequestWorkflowService(db).list_pending_for_role(actor.role)
    return RequestListResponse(
        items=[RequestResponse.model_validate(r) for r in requests],
        total=len(requests),
    )


@router.post(
    "",
    response_model=RequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_request(
    db: DbSession,
    payload: RequestCreate,
    actor: CurrentActor,
) -> RequestResponse:
    """Create a new request in DRAFT status."""
    service = RequestWorkflowService(db)
    request = await service.create_request(
        actor.user_id,
        NewRequest(
            personnel_type=payload.personnel_type,
            request_type=payload.request_type,
            requested_amount=payload.requested_amount,
            effective_date=payload.effective_date,
            position_number=payload.position_number,
            department_group=payload.department_group,
            main_duty=payload.main_duty,
            work_attributes=(
                WorkAttributes(**payload.work_attributes.model_dump())
                if payload.work_attributes
                else None
            ),
            submission_data=payload.submission_data,
        ),
    )
    await db.commit()
    return await _reload(service, request.request_id)


@router.get("", response_model=RequestListResponse)
async def list_my_requests(db: DbSession, actor: CurrentActor) -> RequestListResponse:
    """List requests created by the caller."""
    requests = await RequestWorkflowService(db).list_for_user(actor.user_id)
    return RequestListResponse(
        items=[RequestResponse.model_validate(r) for r in requests],
        total=len(requests),
    )


@router.get(
    "/{request_id}",
    response_model=RequestResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_request(
    db: DbSession,
    request_id: RequestId,
    actor: CurrentActor,
) -> RequestResponse:
    """Get a request with its action log."""
    service = RequestWorkflowService(db)
    request = await service.get_request(request_id)
    if not service.can_view(request, actor.user_id, actor.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to view this request",
        )
    return RequestResponse.model_validate(request)


@router.post(
    "/{request_id}/submit",
    response_model=RequestResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def submit_request(
    db: DbSession,
    request_id: RequestId,
    actor: CurrentActor,
) -> RequestResponse:
    service = RequestWorkflowService(db)
    await service.submit(request_id, actor.user_id)
    await db.commit()
    return await _reload(service, request_id)


@router.post(
    "/{request_id}/approve",
    response_model=RequestResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def approve_request(
    db: DbSession,
    request_id: RequestId,
    actor: CurrentActor,
    payload: RequestActionPayload | None = None,
) -> RequestResponse:
    service = RequestWorkflowService(db)
    await service.approve(
        request_id, actor.user_id, actor.role, payload.comment if payload else None
    )
    await db.commit()
    return await _reload(service, request_id)


@router.post(
    "/{request_id}/reject",
    response_model=RequestResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def reject_request(
    db: DbSession,
    request_id: RequestId,
    actor: CurrentActor,
    payload: RequestActionPayload,
) -> RequestResponse:
    service = RequestWorkflowService(db)
    await service.reject(request_id, actor.user_id, actor.role, payload.comment)
    await db.commit()
    return await _reload(service, request_id)


@router.post(
    "/{request_id}/return",
    response_model=RequestResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def return_request(
    db: DbSession,
    request_id: RequestId,
    actor: CurrentActor,
    payload: RequestActionPayload,
) -> RequestResponse:
    service = RequestWorkflowService(db)
    await service.return_request(request_id, actor.user_id, actor.role, payload.comment)
    await db.commit()
    return await _reload(service, request_id)
