"""Pydantic schemas for API request/response models."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from hris_payroll.calculators.types import PeriodType, Weekday
from hris_payroll.services.state_machine import PayrollStatus, PeriodStatus


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str
    field_errors: dict[str, str] | None = None


# ============================================================================
# Payroll schemas
# ============================================================================


class ComputePayrollRequest(BaseModel):
    """Request to compute (or preview) one employee's payroll."""

    employee_id: UUID
    period_start: date
    period_end: date
    persist_data: bool = False
    department_id: UUID | None = None


class BatchComputeRequest(BaseModel):
    period_start: date
    period_end: date
    employee_ids: list[UUID] | None = None
    department_id: UUID | None = None
    persist_data: bool = True


class PayrollLineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: str
    line_type: str
    hours: Decimal
    rate: Decimal
    amount: Decimal
    is_taxable: bool
    source_id: UUID | None = None
    explanation: str | None = None


class PayrollResponse(BaseModel):
    """Payroll aggregate: totals, breakdown and status."""

    model_config = ConfigDict(from_attributes=True)

    payroll_id: UUID | None = None
    organization_id: UUID
    employee_id: UUID
    payroll_period_id: UUID | None = None
    period_start: date
    period_end: date
    status: str
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    taxable_income: Decimal
    employer_contributions: Decimal
    calculation_id: UUID | None = None
    engine_version: str | None = None
    warnings: list[dict[str, Any]] = Field(default_factory=list)
    attendance_summary: dict[str, Any] = Field(default_factory=dict)
    computed_at: datetime | None = None
    approved_at: datetime | None = None
    released_at: datetime | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    line_items: list[PayrollLineItemResponse] = Field(default_factory=list)


class TransitionRequest(BaseModel):
    target_status: PayrollStatus
    reason: str | None = None


class BulkTransitionRequest(BaseModel):
    payroll_ids: list[UUID] = Field(min_length=1)
    target_status: PayrollStatus
    reason: str = Field(min_length=1)


class BulkRecomputeRequest(BaseModel):
    payroll_ids: list[UUID] = Field(min_length=1)
    reason: str = Field(min_length=1)


class BulkResponse(BaseModel):
    action: str
    count: int
    payroll_ids: list[UUID]
    reason: str


class EmployeeOutcomeResponse(BaseModel):
    employee_id: UUID
    status: str
    payroll_id: UUID | None = None
    net_pay: Decimal | None = None
    warnings: int = 0
    error: str | None = None


class BatchComputeResponse(BaseModel):
    organization_id: UUID
    period_start: date
    period_end: date
    succeeded: int
    failed: int
    cancelled: int
    outcomes: list[EmployeeOutcomeResponse]


# ============================================================================
# Policy schemas
# ============================================================================


class WarningResponse(BaseModel):
    code: str
    message: str
    on_date: date | None = None


class PolicySummary(BaseModel):
    policy_id: UUID
    name: str
    policy_type: str
    deduction_method: str
    grace_period_minutes: int
    minimum_late_minutes: int
    max_deduction_per_day: Decimal | None = None
    max_deduction_per_cutoff: Decimal | None = None
    effective_date: date
    end_date: date | None = None


class ApplicablePoliciesResponse(BaseModel):
    employee_id: UUID
    organization_id: UUID
    on_date: date
    schedule_type: str | None = None
    expected_clock_in: time | None = None
    grace_period_minutes: int | None = None
    required_work_minutes: int | None = None
    allow_late_deduction: bool | None = None
    late_policy: PolicySummary | None = None
    undertime_policy: PolicySummary | None = None
    warnings: list[WarningResponse] = Field(default_factory=list)


# ============================================================================
# Period schemas
# ============================================================================


class GeneratePeriodsRequest(BaseModel):
    period_type: PeriodType
    start_date: date
    end_date: date
    pay_day_offset: int | None = Field(default=None, ge=1)
    week_start: Weekday = Weekday.MONDAY


class PayrollPeriodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    organization_id: UUID
    period_type: str
    start_date: date
    end_date: date
    pay_date: date
    year: int
    month: int
    period_number: int
    status: str


class SkippedWindow(BaseModel):
    start_date: date
    end_date: date


class GeneratePeriodsResponse(BaseModel):
    periods: list[PayrollPeriodResponse]
    created: int
    updated: int
    skipped: list[SkippedWindow]


class PeriodTransitionRequest(BaseModel):
    target_status: PeriodStatus


# ============================================================================
# Overtime request schemas
# ============================================================================


class OvertimeRequestCreate(BaseModel):
    employee_id: UUID
    work_date: date
    requested_minutes: int = Field(ge=1, le=1440)
    reason: str | None = None


class OvertimeApprovalRequest(BaseModel):
    """Omit approved_minutes to approve the full request."""

    approved_minutes: int | None = Field(default=None, ge=0)


class OvertimeRejectionRequest(BaseModel):
    reason: str | None = None


class OvertimeRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    overtime_request_id: UUID
    organization_id: UUID
    employee_id: UUID
    work_date: date
    requested_minutes: int
    approved_minutes: int | None = None
    status: str
    reason: str | None = None
    approved_at: datetime | None = None


# ============================================================================
# Compensation schemas
# ============================================================================


class CompensationUpdateItem(BaseModel):
    compensation_id: UUID
    base_salary: Decimal | None = None
    monthly_rate: Decimal | None = None
    daily_rate: Decimal | None = None
    hourly_rate: Decimal | None = None
    is_active: bool | None = None


class BulkCompensationRequest(BaseModel):
    updates: list[CompensationUpdateItem] = Field(min_length=1)
    effective_date: date | None = None
    reason: str = Field(min_length=1)


class BulkCompensationResponse(BaseModel):
    count: int
    compensation_ids: list[UUID]
    effective_date: date | None = None
    reason: str


# ============================================================================
# Contribution table schemas
# ============================================================================


class ContributionBand(BaseModel):
    """One band of a tax or contribution table, as submitted for checking."""

    min_salary: Decimal
    max_salary: Decimal | None = None
    rate: Decimal | None = None
    base_tax: Decimal = Decimal("0")
    excess_over: Decimal | None = None
    employee_rate: Decimal | None = None
    employer_rate: Decimal | None = None
    ec_rate: Decimal = Decimal("0")
    effective_from: date
    effective_to: date | None = None


class ValidateTablesRequest(BaseModel):
    kind: str = Field(pattern="^(TAX|SSS|PHILHEALTH|PAGIBIG)$")
    bands: list[ContributionBand] = Field(min_length=1)


class ValidateTablesResponse(BaseModel):
    valid: bool
    issues: list[str]
