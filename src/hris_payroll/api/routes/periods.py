"""Payroll period API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from hris_payroll.api.dependencies import DbSession, OrganizationId
from hris_payroll.api.schemas import (
    ErrorResponse,
    GeneratePeriodsRequest,
    GeneratePeriodsResponse,
    PayrollPeriodResponse,
    PeriodTransitionRequest,
    SkippedWindow,
)
from hris_payroll.config import get_settings
from hris_payroll.services.period_service import PeriodService

router = APIRouter(prefix="/payroll-periods", tags=["payroll-periods"])


@router.post(
    "/generate",
    response_model=GeneratePeriodsResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def generate_periods(
    db: DbSession,
    organization_id: OrganizationId,
    payload: GeneratePeriodsRequest,
) -> GeneratePeriodsResponse:
    """Generate periods of one type covering a date range."""
    offset = payload.pay_day_offset or get_settings().default_pay_day_offset
    result = await PeriodService(db).generate_payroll_periods(
        organization_id,
        payload.period_type,
        payload.start_date,
        payload.end_date,
        pay_day_offset=offset,
        week_start=payload.week_start,
    )
    return GeneratePeriodsResponse(
        periods=[PayrollPeriodResponse.model_validate(p) for p in result.periods],
        created=result.created,
        updated=result.updated,
        skipped=[SkippedWindow(start_date=w.start_date, end_date=w.end_date) for w in result.skipped],
    )


@router.post(
    "/{payroll_period_id}/transition",
    response_model=PayrollPeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def transition_period(
    db: DbSession,
    organization_id: OrganizationId,
    payroll_period_id: Annotated[UUID, Path()],
    payload: PeriodTransitionRequest,
) -> PayrollPeriodResponse:
    """Change a period's status."""
    period = await PeriodService(db).transition_period(
        payroll_period_id, payload.target_status, organization_id=organization_id
    )
    return PayrollPeriodResponse.model_validate(period)


@router.delete(
    "/{payroll_period_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_period(
    db: DbSession,
    organization_id: OrganizationId,
    payroll_period_id: Annotated[UUID, Path()],
) -> None:
    """Delete a period that no live payroll references."""
    await PeriodService(db).delete_period(payroll_period_id, organization_id=organization_id)
