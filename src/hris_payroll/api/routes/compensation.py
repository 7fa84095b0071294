"""Compensation and contribution-table API endpoints."""

from decimal import Decimal

from fastapi import APIRouter

from hris_payroll.api.dependencies import DbSession, OrganizationId
from hris_payroll.api.schemas import (
    BulkCompensationRequest,
    BulkCompensationResponse,
    ErrorResponse,
    ValidateTablesRequest,
    ValidateTablesResponse,
)
from hris_payroll.calculators.contributions import validate_contribution_tables
from hris_payroll.calculators.types import ContributionTier, TaxBracket
from hris_payroll.services.compensation_service import CompensationService, CompensationUpdate

router = APIRouter(tags=["compensation"])


@router.post(
    "/compensation/bulk-update",
    response_model=BulkCompensationResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def bulk_update_compensation(
    db: DbSession,
    organization_id: OrganizationId,
    payload: BulkCompensationRequest,
) -> BulkCompensationResponse:
    """Update many compensation records in one transaction."""
    result = await CompensationService(db).bulk_update_compensation(
        [CompensationUpdate(**item.model_dump()) for item in payload.updates],
        payload.effective_date,
        payload.reason,
        organization_id=organization_id,
    )
    return BulkCompensationResponse(
        count=result.count,
        compensation_ids=result.compensation_ids,
        effective_date=result.effective_date,
        reason=result.reason,
    )


@router.post("/contributions/validate", response_model=ValidateTablesResponse)
async def validate_tables(
    organization_id: OrganizationId,
    payload: ValidateTablesRequest,
) -> ValidateTablesResponse:
    """Check a submitted tax or contribution table for gaps, overlaps and negative rates."""
    if payload.kind == "TAX":
        bands = [
            TaxBracket(
                min_salary=b.min_salary,
                max_salary=b.max_salary,
                base_tax=b.base_tax,
                rate=b.rate or Decimal("0"),
                effective_from=b.effective_from,
                effective_to=b.effective_to,
                excess_over=b.excess_over,
            )
            for b in payload.bands
        ]
    else:
        bands = [
            ContributionTier(
                min_salary=b.min_salary,
                max_salary=b.max_salary,
                employee_rate=b.employee_rate or Decimal("0"),
                employer_rate=b.employer_rate or Decimal("0"),
                effective_from=b.effective_from,
                effective_to=b.effective_to,
                ec_rate=b.ec_rate,
            )
            for b in payload.bands
        ]
    issues = validate_contribution_tables(bands, label=payload.kind)
    return ValidateTablesResponse(valid=not issues, issues=issues)
