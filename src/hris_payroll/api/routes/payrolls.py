"""Payroll API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from hris_payroll.api.dependencies import Config, DbSession, OrganizationId, SessionFactory
from hris_payroll.api.schemas import (
    ApplicablePoliciesResponse,
    BatchComputeRequest,
    BatchComputeResponse,
    BulkRecomputeRequest,
    BulkResponse,
    BulkTransitionRequest,
    ComputePayrollRequest,
    EmployeeOutcomeResponse,
    ErrorResponse,
    PayrollResponse,
    PolicySummary,
    TransitionRequest,
    WarningResponse,
)
from hris_payroll.calculators.late_policy import LateDeductionPolicy
from hris_payroll.services.batch import PayrollBatchRunner
from hris_payroll.services.payroll_service import PayrollService

router = APIRouter(tags=["payrolls"])

_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


# ============================================================================
# Computation
# ============================================================================


@router.post("/payrolls/compute", response_model=PayrollResponse, responses=_ERRORS)
async def compute_payroll(
    db: DbSession,
    organization_id: OrganizationId,
    config: Config,
    payload: ComputePayrollRequest,
) -> PayrollResponse:
    """Compute one employee's payroll; preview unless persist_data is set."""
    service = PayrollService(db, config)
    payroll = await service.compute_payroll(
        payload.employee_id,
        organization_id,
        payload.period_start,
        payload.period_end,
        persist_data=payload.persist_data,
        department_id=payload.department_id,
    )
    return PayrollResponse.model_validate(payroll)


@router.post("/payrolls/batch", response_model=BatchComputeResponse, responses=_ERRORS)
async def batch_compute(
    session_factory: SessionFactory,
    organization_id: OrganizationId,
    config: Config,
    payload: BatchComputeRequest,
) -> BatchComputeResponse:
    """Compute every active employee of the organization (or a subset)."""
    runner = PayrollBatchRunner(session_factory, config)
    result = await runner.run(
        organization_id,
        payload.period_start,
        payload.period_end,
        employee_ids=payload.employee_ids,
        department_id=payload.department_id,
        persist=payload.persist_data,
    )
    return BatchComputeResponse(
        organization_id=result.organization_id,
        period_start=result.period_start,
        period_end=result.period_end,
        succeeded=len(result.succeeded),
        failed=len(result.failed),
        cancelled=len(result.cancelled),
        outcomes=[
            EmployeeOutcomeResponse(
                employee_id=o.employee_id,
                status=o.status.value,
                payroll_id=o.payroll_id,
                net_pay=o.net_pay,
                warnings=o.warnings,
                error=o.error,
            )
            for o in result.outcomes
        ],
    )


@router.get("/payrolls/{payroll_id}", response_model=PayrollResponse, responses=_ERRORS)
async def get_payroll(
    db: DbSession,
    organization_id: OrganizationId,
    payroll_id: Annotated[UUID, Path()],
) -> PayrollResponse:
    """Get a payroll with its line items."""
    payroll = await PayrollService(db).get_payroll(payroll_id, organization_id)
    return PayrollResponse.model_validate(payroll)


# ============================================================================
# Status transitions
# ============================================================================


@router.post(
    "/payrolls/bulk-transition",
    response_model=BulkResponse,
    status_code=status.HTTP_200_OK,
    responses=_ERRORS,
)
async def bulk_transition(
    db: DbSession,
    organization_id: OrganizationId,
    payload: BulkTransitionRequest,
) -> BulkResponse:
    """Approve, release or void many payrolls atomically."""
    result = await PayrollService(db).bulk_transition(
        payload.payroll_ids,
        payload.target_status,
        payload.reason,
        organization_id=organization_id,
    )
    return BulkResponse(
        action=result.action,
        count=result.count,
        payroll_ids=result.payroll_ids,
        reason=result.reason,
    )


@router.post("/payrolls/bulk-recompute", response_model=BulkResponse, responses=_ERRORS)
async def bulk_recompute(
    db: DbSession,
    organization_id: OrganizationId,
    config: Config,
    payload: BulkRecomputeRequest,
) -> BulkResponse:
    """Recompute many DRAFT/COMPUTED payrolls atomically."""
    result = await PayrollService(db, config).bulk_recompute(
        payload.payroll_ids,
        payload.reason,
        organization_id=organization_id,
    )
    return BulkResponse(
        action=result.action,
        count=result.count,
        payroll_ids=result.payroll_ids,
        reason=result.reason,
    )


@router.post(
    "/payrolls/{payroll_id}/transition",
    response_model=PayrollResponse,
    responses=_ERRORS,
)
async def transition_payroll(
    db: DbSession,
    organization_id: OrganizationId,
    payroll_id: Annotated[UUID, Path()],
    payload: TransitionRequest,
) -> PayrollResponse:
    """Move a payroll to a new status."""
    payroll = await PayrollService(db).transition_payroll(
        payroll_id,
        payload.target_status,
        reason=payload.reason,
        organization_id=organization_id,
    )
    return PayrollResponse.model_validate(payroll)


# ============================================================================
# Applicable rules
# ============================================================================


def _policy_summary(policy: LateDeductionPolicy | None) -> PolicySummary | None:
    if policy is None:
        return None
    return PolicySummary(
        policy_id=policy.policy_id,
        name=policy.name,
        policy_type=policy.policy_type.value,
        deduction_method=policy.method.method.value,
        grace_period_minutes=policy.grace_period_minutes,
        minimum_late_minutes=policy.minimum_late_minutes,
        max_deduction_per_day=policy.max_deduction_per_day,
        max_deduction_per_cutoff=policy.max_deduction_per_cutoff,
        effective_date=policy.effective_date,
        end_date=policy.end_date,
    )


@router.get(
    "/employees/{employee_id}/policies",
    response_model=ApplicablePoliciesResponse,
    responses=_ERRORS,
)
async def get_applicable_policies(
    db: DbSession,
    organization_id: OrganizationId,
    config: Config,
    employee_id: Annotated[UUID, Path()],
    on_date: Annotated[date, Query()],
) -> ApplicablePoliciesResponse:
    """Show the schedule and late/absence policies in force on a date."""
    summary = await PayrollService(db, config).get_applicable_policies(
        employee_id, organization_id, on_date
    )
    return ApplicablePoliciesResponse(
        employee_id=summary.employee_id,
        organization_id=summary.organization_id,
        on_date=summary.on_date,
        schedule_type=summary.schedule_type,
        expected_clock_in=summary.expected_clock_in,
        grace_period_minutes=summary.grace_period_minutes,
        required_work_minutes=summary.required_work_minutes,
        allow_late_deduction=summary.allow_late_deduction,
        late_policy=_policy_summary(summary.late_policy),
        undertime_policy=_policy_summary(summary.undertime_policy),
        warnings=[
            WarningResponse(code=w.code, message=w.message, on_date=w.on_date)
            for w in summary.warnings
        ],
    )
