"""Overtime request API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from hris_payroll.api.dependencies import DbSession, OrganizationId
from hris_payroll.api.schemas import (
    ErrorResponse,
    OvertimeApprovalRequest,
    OvertimeRejectionRequest,
    OvertimeRequestCreate,
    OvertimeRequestResponse,
)
from hris_payroll.services.overtime_service import OvertimeService

router = APIRouter(prefix="/overtime-requests", tags=["overtime"])


@router.post(
    "",
    response_model=OvertimeRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_overtime_request(
    db: DbSession,
    organization_id: OrganizationId,
    payload: OvertimeRequestCreate,
) -> OvertimeRequestResponse:
    """File an overtime request for one work date."""
    request = await OvertimeService(db).request_overtime(
        payload.employee_id,
        organization_id,
        payload.work_date,
        payload.requested_minutes,
        reason=payload.reason,
    )
    return OvertimeRequestResponse.model_validate(request)


@router.post(
    "/{overtime_request_id}/approve",
    response_model=OvertimeRequestResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_overtime_request(
    db: DbSession,
    organization_id: OrganizationId,
    overtime_request_id: Annotated[UUID, Path()],
    payload: OvertimeApprovalRequest,
) -> OvertimeRequestResponse:
    """Approve a pending request, optionally for fewer minutes."""
    request = await OvertimeService(db).approve_overtime(
        overtime_request_id,
        payload.approved_minutes,
        organization_id=organization_id,
    )
    return OvertimeRequestResponse.model_validate(request)


@router.post(
    "/{overtime_request_id}/reject",
    response_model=OvertimeRequestResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reject_overtime_request(
    db: DbSession,
    organization_id: OrganizationId,
    overtime_request_id: Annotated[UUID, Path()],
    payload: OvertimeRejectionRequest,
) -> OvertimeRequestResponse:
    request = await OvertimeService(db).reject_overtime(
        overtime_request_id, payload.reason, organization_id=organization_id
    )
    return OvertimeRequestResponse.model_validate(request)
