"""Batched reads for payroll computation.

Every query needed to compute one or many employees for a period is issued
here, once per run, and the rows are converted into the calculators' value
objects. The calculators never touch the session.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hris_payroll.calculators.attendance import BreakInterval, ClockInterval
from hris_payroll.calculators.engine import EarningAdjustmentInput, EmployeePayrollInputs
from hris_payroll.calculators.late_policy import LateDeductionPolicy, build_method
from hris_payroll.calculators.types import (
    CalculationWarning,
    ContributionKind,
    ContributionTables,
    ContributionTier,
    EarningType,
    HolidayType,
    PeriodType,
    PolicyType,
    TaxBracket,
    Weekday,
)
from hris_payroll.calculators.work_schedule import (
    CompensationRecord,
    WorkSchedule,
    build_shift,
)
from hris_payroll.errors import NotFoundError, ValidationError
from hris_payroll.models import (
    Compensation,
    ContributionTierModel,
    EarningAdjustment,
    Employee,
    Holiday,
    LateDeductionPolicyModel,
    LeaveRequest,
    OvertimeRequest,
    PayrollPeriod,
    TaxBracketModel,
    TimeEntry,
    WorkScheduleModel,
)

logger = logging.getLogger(__name__)


def schedule_from_model(row: WorkScheduleModel) -> WorkSchedule:
    """Convert a persisted schedule row, validating it.

    Raises:
        ValidationError: The row is missing fields its type requires, or its
            work and rest days overlap.
    """
    shift = build_shift(
        row.schedule_type,
        default_start=row.default_start,
        default_end=row.default_end,
        core_hours_start=row.core_hours_start,
        core_hours_end=row.core_hours_end,
        total_hours_per_week=row.total_hours_per_week,
        min_hours_per_day=row.min_hours_per_day,
        max_hours_per_day=row.max_hours_per_day,
        can_log_any_hours=row.can_log_any_hours,
        rotation_pattern=row.rotation_pattern,
        shift_groups=row.shift_groups,
        office_days=row.office_days,
        remote_days=row.remote_days,
    )
    schedule = WorkSchedule(
        shift=shift,
        work_days=frozenset(Weekday(d) for d in row.work_days),
        rest_days=frozenset(Weekday(d) for d in row.rest_days),
        night_shift_start=row.night_shift_start,
        night_shift_end=row.night_shift_end,
        overtime_rate=Decimal(row.overtime_rate),
        rest_day_rate=Decimal(row.rest_day_rate),
        holiday_rate=Decimal(row.holiday_rate),
        special_holiday_rate=Decimal(row.special_holiday_rate),
        double_holiday_rate=Decimal(row.double_holiday_rate),
        night_diff_rate=Decimal(row.night_diff_rate),
        grace_period_minutes=row.grace_period_minutes,
        required_work_minutes=row.required_work_minutes,
        max_regular_hours=Decimal(row.max_regular_hours),
        max_overtime_hours=Decimal(row.max_overtime_hours),
        allow_late_deduction=row.allow_late_deduction,
        is_monthly_rate=row.is_monthly_rate,
        monthly_rate=row.monthly_rate,
        daily_rate=row.daily_rate,
        hourly_rate=row.hourly_rate,
        schedule_id=row.work_schedule_id,
    )
    schedule.validate()
    return schedule


def compensation_from_model(row: Compensation) -> CompensationRecord:
    return CompensationRecord(
        compensation_id=row.compensation_id,
        employee_id=row.employee_id,
        effective_date=row.effective_date,
        base_salary=Decimal(row.base_salary),
        schedule=schedule_from_model(row.work_schedule) if row.work_schedule else None,
        end_date=row.end_date,
        is_active=row.is_active,
    )


def policy_from_model(row: LateDeductionPolicyModel) -> LateDeductionPolicy:
    """Convert a persisted policy row, validating it.

    Raises:
        ValidationError: The method value does not fit the deduction method,
            or the row breaks a policy invariant.
    """
    policy = LateDeductionPolicy(
        policy_id=row.policy_id,
        organization_id=row.organization_id,
        name=row.name,
        policy_type=PolicyType(row.policy_type),
        method=build_method(
            row.deduction_method,
            fixed_amount=row.fixed_amount,
            percentage_rate=row.percentage_rate,
            hourly_rate_multiplier=row.hourly_rate_multiplier,
        ),
        effective_date=row.effective_date,
        end_date=row.end_date,
        grace_period_minutes=row.grace_period_minutes,
        minimum_late_minutes=row.minimum_late_minutes,
        max_deduction_per_day=row.max_deduction_per_day,
        max_deduction_per_cutoff=row.max_deduction_per_cutoff,
        is_active=row.is_active,
    )
    policy.validate()
    return policy


def interval_from_model(row: TimeEntry) -> ClockInterval:
    return ClockInterval(
        clock_in=row.clock_in_at,
        clock_out=row.clock_out_at if row.status == "CLOSED" else None,
        breaks=[BreakInterval(start=b.start_at, end=b.end_at) for b in row.breaks],
        entry_id=row.time_entry_id,
    )


def _overlapping(start_col, end_col, start: date, end: date):
    """Rows whose [start_col, end_col-or-open] window touches [start, end]."""
    return and_(start_col <= end, or_(end_col.is_(None), end_col >= start))


class PayrollRepository:
    """Read access for payroll computation, batched per run."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ===== Lookups =====

    async def get_employee(self, employee_id: UUID, organization_id: UUID) -> Employee:
        """Load an employee of an organization.

        Raises:
            NotFoundError: Unknown employee, or it belongs to another organization.
        """
        result = await self.session.execute(
            select(Employee).where(
                Employee.employee_id == employee_id,
                Employee.organization_id == organization_id,
            )
        )
        employee = result.scalar_one_or_none()
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    async def list_active_employee_ids(
        self,
        organization_id: UUID,
        department_id: UUID | None = None,
    ) -> list[UUID]:
        query = select(Employee.employee_id).where(
            Employee.organization_id == organization_id,
            Employee.status == "ACTIVE",
        )
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        result = await self.session.execute(query.order_by(Employee.employee_number))
        return list(result.scalars().all())

    async def find_period(
        self,
        organization_id: UUID,
        period_start: date,
        period_end: date,
    ) -> PayrollPeriod | None:
        result = await self.session.execute(
            select(PayrollPeriod).where(
                PayrollPeriod.organization_id == organization_id,
                PayrollPeriod.start_date == period_start,
                PayrollPeriod.end_date == period_end,
            )
        )
        return result.scalar_one_or_none()

    # ===== Batched loaders =====

    async def load_compensations(
        self,
        employee_ids: Sequence[UUID],
        period_start: date,
        period_end: date,
    ) -> dict[UUID, list[CompensationRecord]]:
        result = await self.session.execute(
            select(Compensation)
            .where(
                Compensation.employee_id.in_(employee_ids),
                Compensation.is_active.is_(True),
                _overlapping(
                    Compensation.effective_date, Compensation.end_date, period_start, period_end
                ),
            )
            .options(selectinload(Compensation.work_schedule))
        )
        by_employee: dict[UUID, list[CompensationRecord]] = defaultdict(list)
        for row in result.scalars().all():
            by_employee[row.employee_id].append(compensation_from_model(row))
        return by_employee

    async def load_time_entries(
        self,
        employee_ids: Sequence[UUID],
        period_start: date,
        period_end: date,
    ) -> dict[UUID, dict[date, list[ClockInterval]]]:
        result = await self.session.execute(
            select(TimeEntry)
            .where(
                TimeEntry.employee_id.in_(employee_ids),
                TimeEntry.work_date >= period_start,
                TimeEntry.work_date <= period_end,
            )
            .options(selectinload(TimeEntry.breaks))
            .order_by(TimeEntry.clock_in_at)
        )
        by_employee: dict[UUID, dict[date, list[ClockInterval]]] = defaultdict(
            lambda: defaultdict(list)
        )
        for row in result.scalars().all():
            by_employee[row.employee_id][row.work_date].append(interval_from_model(row))
        return by_employee

    async def load_holidays(
        self,
        organization_id: UUID,
        period_start: date,
        period_end: date,
    ) -> dict[date, HolidayType]:
        result = await self.session.execute(
            select(Holiday).where(
                Holiday.organization_id == organization_id,
                Holiday.holiday_date >= period_start,
                Holiday.holiday_date <= period_end,
            )
        )
        return {h.holiday_date: HolidayType(h.holiday_type) for h in result.scalars().all()}

    async def load_leave_dates(
        self,
        employee_ids: Sequence[UUID],
        period_start: date,
        period_end: date,
    ) -> dict[UUID, set[date]]:
        result = await self.session.execute(
            select(LeaveRequest).where(
                LeaveRequest.employee_id.in_(employee_ids),
                LeaveRequest.status == "APPROVED",
                _overlapping(LeaveRequest.start_date, LeaveRequest.end_date, period_start, period_end),
            )
        )
        by_employee: dict[UUID, set[date]] = defaultdict(set)
        for leave in result.scalars().all():
            day = max(leave.start_date, period_start)
            last = min(leave.end_date, period_end)
            while day <= last:
                by_employee[leave.employee_id].add(day)
                day = date.fromordinal(day.toordinal() + 1)
        return by_employee

    async def load_approved_overtime(
        self,
        employee_ids: Sequence[UUID],
        period_start: date,
        period_end: date,
    ) -> dict[UUID, dict[date, int]]:
        """Sum approved overtime minutes per employee and work date."""
        result = await self.session.execute(
            select(OvertimeRequest).where(
                OvertimeRequest.employee_id.in_(employee_ids),
                OvertimeRequest.status == "APPROVED",
                OvertimeRequest.work_date >= period_start,
                OvertimeRequest.work_date <= period_end,
            )
        )
        by_employee: dict[UUID, dict[date, int]] = defaultdict(lambda: defaultdict(int))
        for request in result.scalars().all():
            by_employee[request.employee_id][request.work_date] += request.approved_minutes or 0
        return by_employee

    async def load_adjustments(
        self,
        employee_ids: Sequence[UUID],
        period_start: date,
        period_end: date,
    ) -> dict[UUID, list[EarningAdjustmentInput]]:
        result = await self.session.execute(
            select(EarningAdjustment)
            .where(
                EarningAdjustment.employee_id.in_(employee_ids),
                EarningAdjustment.effective_date >= period_start,
                EarningAdjustment.effective_date <= period_end,
            )
            .order_by(EarningAdjustment.effective_date)
        )
        by_employee: dict[UUID, list[EarningAdjustmentInput]] = defaultdict(list)
        for row in result.scalars().all():
            by_employee[row.employee_id].append(
                EarningAdjustmentInput(
                    adjustment_id=row.adjustment_id,
                    earning_type=EarningType(row.earning_type),
                    amount=Decimal(row.amount),
                    effective_date=row.effective_date,
                    is_taxable=row.is_taxable,
                    description=row.description,
                )
            )
        return by_employee

    async def load_policies(
        self,
        organization_id: UUID,
        period_start: date,
        period_end: date,
    ) -> tuple[list[LateDeductionPolicy], list[CalculationWarning]]:
        """Active policies whose window touches the period; the engine selects per day.

        Malformed rows are skipped with a POLICY_INVALID warning so one bad
        row cannot stop every payroll of the organization.
        """
        result = await self.session.execute(
            select(LateDeductionPolicyModel).where(
                LateDeductionPolicyModel.organization_id == organization_id,
                LateDeductionPolicyModel.is_active.is_(True),
                _overlapping(
                    LateDeductionPolicyModel.effective_date,
                    LateDeductionPolicyModel.end_date,
                    period_start,
                    period_end,
                ),
            )
        )
        policies: list[LateDeductionPolicy] = []
        warnings: list[CalculationWarning] = []
        for row in result.scalars().all():
            try:
                policies.append(policy_from_model(row))
            except ValidationError as exc:
                logger.warning("Skipping invalid policy %s: %s", row.policy_id, exc)
                warnings.append(
                    CalculationWarning(
                        code="POLICY_INVALID",
                        message=f"Policy '{row.name}' ({row.policy_id}) skipped: {exc}",
                    )
                )
        return policies, warnings

    async def load_contribution_tables(
        self,
        organization_id: UUID,
        period_start: date,
        period_end: date,
    ) -> ContributionTables:
        brackets = await self.session.execute(
            select(TaxBracketModel)
            .where(
                TaxBracketModel.organization_id == organization_id,
                _overlapping(
                    TaxBracketModel.effective_from,
                    TaxBracketModel.effective_to,
                    period_start,
                    period_end,
                ),
            )
            .order_by(TaxBracketModel.min_salary)
        )
        tiers = await self.session.execute(
            select(ContributionTierModel)
            .where(
                ContributionTierModel.organization_id == organization_id,
                _overlapping(
                    ContributionTierModel.effective_from,
                    ContributionTierModel.effective_to,
                    period_start,
                    period_end,
                ),
            )
            .order_by(ContributionTierModel.min_salary)
        )

        tables = ContributionTables(
            tax_brackets=[
                TaxBracket(
                    min_salary=Decimal(b.min_salary),
                    max_salary=b.max_salary,
                    base_tax=Decimal(b.base_tax),
                    rate=Decimal(b.rate),
                    effective_from=b.effective_from,
                    effective_to=b.effective_to,
                    excess_over=b.excess_over,
                    bracket_id=b.tax_bracket_id,
                )
                for b in brackets.scalars().all()
            ]
        )
        for t in tiers.scalars().all():
            tables.tiers_for(ContributionKind(t.kind)).append(
                ContributionTier(
                    min_salary=Decimal(t.min_salary),
                    max_salary=t.max_salary,
                    employee_rate=Decimal(t.employee_rate),
                    employer_rate=Decimal(t.employer_rate),
                    effective_from=t.effective_from,
                    effective_to=t.effective_to,
                    ec_rate=Decimal(t.ec_rate),
                    salary_cap=t.salary_cap,
                    max_employee_contribution=t.max_employee_contribution,
                    tier_id=t.tier_id,
                )
            )
        return tables

    # ===== Assembly =====

    async def build_inputs(
        self,
        employee_ids: Iterable[UUID],
        organization_id: UUID,
        period_start: date,
        period_end: date,
    ) -> dict[UUID, EmployeePayrollInputs]:
        """Prefetch everything for a set of employees in a fixed number of queries."""
        ids = list(employee_ids)
        if not ids:
            return {}

        period = await self.find_period(organization_id, period_start, period_end)
        compensations = await self.load_compensations(ids, period_start, period_end)
        entries = await self.load_time_entries(ids, period_start, period_end)
        leaves = await self.load_leave_dates(ids, period_start, period_end)
        overtime = await self.load_approved_overtime(ids, period_start, period_end)
        adjustments = await self.load_adjustments(ids, period_start, period_end)
        holidays = await self.load_holidays(organization_id, period_start, period_end)
        policies, policy_warnings = await self.load_policies(
            organization_id, period_start, period_end
        )
        tables = await self.load_contribution_tables(organization_id, period_start, period_end)

        return {
            employee_id: EmployeePayrollInputs(
                employee_id=employee_id,
                organization_id=organization_id,
                period_start=period_start,
                period_end=period_end,
                compensations=compensations.get(employee_id, []),
                intervals_by_date=dict(entries.get(employee_id, {})),
                holidays=holidays,
                leave_dates=leaves.get(employee_id, set()),
                approved_overtime=dict(overtime.get(employee_id, {})),
                adjustments=adjustments.get(employee_id, []),
                policies=policies,
                policy_warnings=policy_warnings,
                tables=tables,
                period_type=PeriodType(period.period_type) if period else None,
            )
            for employee_id in ids
        }
