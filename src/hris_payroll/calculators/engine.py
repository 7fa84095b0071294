"""Payroll calculation engine - per-employee aggregator."""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from hris_payroll.calculators.attendance import (
    AttendanceClassifier,
    ClockInterval,
    DailyAttendanceOutcome,
    PeriodAttendanceTotals,
)
from hris_payroll.calculators.contributions import MONTHLY_FACTORS, ContributionCalculator
from hris_payroll.calculators.late_policy import LateDeductionPolicy, LatePolicyEngine
from hris_payroll.calculators.line_builder import LineItemBuilder
from hris_payroll.calculators.periods import infer_period_type
from hris_payroll.calculators.types import (
    CalculationWarning,
    ContributionKind,
    ContributionTables,
    DayType,
    DeductionType,
    EarningType,
    HolidayType,
    LineCandidate,
    LineCategory,
    PeriodType,
    PolicyType,
)
from hris_payroll.calculators.work_schedule import CompensationRecord, ScheduleResolver
from hris_payroll.config import PayrollConfig
from hris_payroll.errors import ConfigurationMissingError, ValidationError

logger = logging.getLogger(__name__)

_EARNING_ORDER = {t: i for i, t in enumerate(EarningType)}

_STATUTORY_DEDUCTIONS = {
    ContributionKind.SSS: DeductionType.SSS,
    ContributionKind.PHILHEALTH: DeductionType.PHILHEALTH,
    ContributionKind.PAGIBIG: DeductionType.PAGIBIG,
    ContributionKind.TAX: DeductionType.TAX,
}


@dataclass
class EarningAdjustmentInput:
    """A flat allowance or bonus dated inside the period."""

    adjustment_id: UUID
    earning_type: EarningType
    amount: Decimal
    effective_date: date
    is_taxable: bool = True
    description: str | None = None


@dataclass
class EmployeePayrollInputs:
    """Everything one employee's computation reads, prefetched in bulk."""

    employee_id: UUID
    organization_id: UUID
    period_start: date
    period_end: date
    compensations: list[CompensationRecord]
    intervals_by_date: dict[date, list[ClockInterval]] = field(default_factory=dict)
    holidays: dict[date, HolidayType] = field(default_factory=dict)
    leave_dates: set[date] = field(default_factory=set)
    approved_overtime: dict[date, int] = field(default_factory=dict)
    adjustments: list[EarningAdjustmentInput] = field(default_factory=list)
    policies: list[LateDeductionPolicy] = field(default_factory=list)
    policy_warnings: list[CalculationWarning] = field(default_factory=list)
    tables: ContributionTables = field(default_factory=ContributionTables)
    period_type: PeriodType | None = None

    def days(self) -> list[date]:
        count = (self.period_end - self.period_start).days + 1
        return [self.period_start + timedelta(days=i) for i in range(count)]


@dataclass
class CalculationResult:
    """Result of calculating pay for one employee and one period."""

    employee_id: UUID
    organization_id: UUID
    period_start: date
    period_end: date
    calculation_id: UUID
    lines: list[LineCandidate]
    daily: list[DailyAttendanceOutcome]
    totals: PeriodAttendanceTotals
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    taxable_income: Decimal
    employer_contributions: Decimal
    warnings: list[CalculationWarning]
    errors: list[str]
    inputs_fingerprint: str
    rules_fingerprint: str

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    @property
    def earnings(self) -> list[LineCandidate]:
        return [l for l in self.lines if l.category == LineCategory.EARNING]

    @property
    def deductions(self) -> list[LineCandidate]:
        return [l for l in self.lines if l.category == LineCategory.DEDUCTION]

    @property
    def employer_lines(self) -> list[LineCandidate]:
        return [l for l in self.lines if l.category == LineCategory.EMPLOYER_CONTRIBUTION]


class PayrollCalculator:
    """Main payroll calculation pipeline for one employee.

    Pipeline (stable order):
    1) Classify each day of the period against the schedule in force,
       limiting overtime to approved requests when approval is required
    2) Reduce daily outcomes into period totals
    3) Price regular/rest-day/holiday/overtime/night-diff minutes
    4) Add flat allowances and bonuses
    5) Price late and absence occurrences through the deduction policies
    6) Compute statutory deductions on taxable gross
    7) Sum gross, total deductions and net

    The calculator performs no I/O; all inputs arrive prefetched.
    """

    def __init__(self, config: PayrollConfig | None = None):
        self.config = config or PayrollConfig()

    def calculate(self, inputs: EmployeePayrollInputs) -> CalculationResult:
        """Calculate pay for one employee.

        Raises:
            ValidationError: The period range is inverted.
            ConfigurationMissingError: No work schedule resolves on any day.
        """
        if inputs.period_start > inputs.period_end:
            raise ValidationError(
                "Invalid payroll period",
                {"period_end": "must not be before period_start"},
            )

        warnings: list[CalculationWarning] = []
        errors: list[str] = []

        resolver = ScheduleResolver(
            employee_id=inputs.employee_id,
            compensations=inputs.compensations,
            organization_id=inputs.organization_id,
            working_days_per_month=self.config.working_days_per_month,
            hours_per_day=self.config.hours_per_day,
        )
        classifier = AttendanceClassifier(
            overtime_cap_policy=self.config.overtime_cap_policy,
            force_absence_on_incomplete=self.config.force_absence_on_incomplete,
        )
        policy_engine = LatePolicyEngine(inputs.policies)

        # (earning type, rate) -> minutes
        buckets: dict[tuple[EarningType, Decimal], int] = {}
        late_amount = Decimal("0")
        late_minutes = 0
        absence_amount = Decimal("0")
        absence_days = 0
        daily: list[DailyAttendanceOutcome] = []
        unscheduled: list[date] = []
        seen_warnings: set[tuple[str, str]] = set()

        def warn(warning: CalculationWarning) -> None:
            key = (warning.code, warning.message)
            if key not in seen_warnings:
                seen_warnings.add(key)
                warnings.append(warning)

        for warning in inputs.policy_warnings:
            warn(warning)

        for day in inputs.days():
            resolved = resolver.try_resolve(day)
            if resolved is None:
                unscheduled.append(day)
                continue

            schedule = resolved.schedule
            rates = resolved.rates
            outcome = classifier.classify_day(
                day,
                inputs.intervals_by_date.get(day, []),
                schedule,
                holiday_type=inputs.holidays.get(day),
                is_leave=day in inputs.leave_dates,
            )
            if self.config.require_overtime_approval and outcome.overtime_minutes:
                approved = inputs.approved_overtime.get(day, 0)
                if outcome.overtime_minutes > approved:
                    warn(
                        CalculationWarning(
                            code="OVERTIME_UNAPPROVED",
                            message=(
                                f"{outcome.overtime_minutes - approved} overtime minutes "
                                "not covered by an approved request"
                            ),
                            on_date=day,
                        )
                    )
                    outcome = replace(outcome, overtime_minutes=approved)
            daily.append(outcome)

            if outcome.regular_minutes:
                if outcome.day_type == DayType.REGULAR_DAY:
                    key = (EarningType.REGULAR, rates.hourly)
                elif outcome.day_type == DayType.REST_DAY:
                    key = (EarningType.REST_DAY, rates.hourly * schedule.rest_day_rate)
                else:
                    key = (
                        EarningType.HOLIDAY,
                        rates.hourly * schedule.premium_multiplier(outcome.day_type),
                    )
                buckets[key] = buckets.get(key, 0) + outcome.regular_minutes
            if outcome.overtime_minutes:
                key = (EarningType.OVERTIME, rates.hourly * schedule.overtime_rate)
                buckets[key] = buckets.get(key, 0) + outcome.overtime_minutes
            if outcome.night_diff_minutes:
                key = (EarningType.NIGHT_DIFF, rates.hourly * schedule.night_diff_rate)
                buckets[key] = buckets.get(key, 0) + outcome.night_diff_minutes

            if outcome.excess_overtime_minutes:
                warn(
                    CalculationWarning(
                        code="OVERTIME_CAPPED",
                        message=(
                            f"{outcome.excess_overtime_minutes} minutes beyond the overtime cap "
                            f"({self.config.overtime_cap_policy})"
                        ),
                        on_date=day,
                    )
                )
            if outcome.is_incomplete:
                warn(
                    CalculationWarning(
                        code="INCOMPLETE_ATTENDANCE",
                        message="Clock-in without clock-out; flagged for manual review",
                        on_date=day,
                    )
                )

            if outcome.is_absent:
                computed = policy_engine.deduct(
                    PolicyType.UNDERTIME, schedule.required_work_minutes, day, rates
                )
                if computed.warning:
                    warn(computed.warning)
                if computed.amount > 0:
                    absence_amount += computed.amount
                    absence_days += 1
            elif (
                outcome.late_minutes > 0
                and not outcome.is_incomplete
                and schedule.allow_late_deduction
            ):
                computed = policy_engine.deduct(PolicyType.LATE, outcome.late_minutes, day, rates)
                if computed.warning:
                    warn(computed.warning)
                if computed.amount > 0:
                    late_amount += computed.amount
                    late_minutes += outcome.late_minutes

        if not daily:
            raise ConfigurationMissingError(
                "work schedule",
                inputs.organization_id,
                inputs.period_start,
                f"employee {inputs.employee_id} has no resolvable schedule in the period",
            )
        if unscheduled:
            warn(
                CalculationWarning(
                    code="SCHEDULE_MISSING",
                    message=f"No work schedule resolves for {len(unscheduled)} day(s); not paid",
                    on_date=unscheduled[0],
                )
            )

        lines: list[LineCandidate] = []

        # Earnings from attendance
        for (earning_type, rate), minutes in sorted(
            buckets.items(), key=lambda kv: (_EARNING_ORDER[kv[0][0]], kv[0][1])
        ):
            hours = LineItemBuilder.minutes_to_hours(minutes)
            lines.append(
                LineItemBuilder.create_earning_line(
                    earning_type,
                    hours=hours,
                    rate=rate,
                    explanation=f"{earning_type.value}: {minutes} min",
                )
            )

        # Flat allowances and bonuses
        for adj in sorted(inputs.adjustments, key=lambda a: (a.effective_date, str(a.adjustment_id))):
            if not inputs.period_start <= adj.effective_date <= inputs.period_end:
                continue
            lines.append(
                LineItemBuilder.create_flat_earning_line(
                    adj.earning_type,
                    adj.amount,
                    is_taxable=adj.is_taxable,
                    source_id=adj.adjustment_id,
                    explanation=adj.description,
                )
            )

        # Late and absence deductions
        if late_amount > 0:
            lines.append(
                LineItemBuilder.create_deduction_line(
                    DeductionType.LATE,
                    late_amount,
                    hours=LineItemBuilder.minutes_to_hours(late_minutes),
                    explanation=f"Tardiness: {late_minutes} min",
                )
            )
        if absence_amount > 0:
            lines.append(
                LineItemBuilder.create_deduction_line(
                    DeductionType.ABSENCE,
                    absence_amount,
                    explanation=f"Absences: {absence_days} day(s)",
                )
            )

        # Statutory deductions on taxable gross
        taxable_gross = LineItemBuilder.calculate_taxable_gross(lines)
        statutory = ContributionCalculator(inputs.tables, inputs.organization_id).compute_all(
            taxable_gross,
            inputs.period_end,
            monthly_factor=self._monthly_factor(inputs),
        )
        for w in statutory.warnings:
            warn(w)
        for component in statutory.components:
            if component.employee_amount > 0:
                lines.append(
                    LineItemBuilder.create_deduction_line(
                        _STATUTORY_DEDUCTIONS[component.kind],
                        component.employee_amount,
                        explanation=f"{component.kind.value} on {LineItemBuilder.round_to_cents(component.base)}",
                    )
                )
            if component.employer_amount > 0:
                lines.append(
                    LineItemBuilder.create_employer_line(
                        component.kind,
                        component.employer_amount,
                        explanation=f"{component.kind.value} employer share",
                    )
                )

        gross = LineItemBuilder.calculate_gross_from_lines(lines)
        total_deductions = LineItemBuilder.calculate_deductions_from_lines(lines)
        net = gross - total_deductions
        employer_total = sum(
            (l.amount for l in lines if l.category == LineCategory.EMPLOYER_CONTRIBUTION),
            Decimal("0.00"),
        )

        errors.extend(LineItemBuilder.validate_line_amounts(lines))
        if net < 0:
            warn(CalculationWarning(code="NEGATIVE_NET", message=f"Net pay is negative: {net}"))

        inputs_fingerprint = self._compute_inputs_fingerprint(inputs)
        rules_fingerprint = self._compute_rules_fingerprint(inputs)
        calculation_id = self._generate_calculation_id(
            inputs.employee_id,
            inputs.period_start,
            inputs.period_end,
            inputs_fingerprint,
            rules_fingerprint,
        )

        return CalculationResult(
            employee_id=inputs.employee_id,
            organization_id=inputs.organization_id,
            period_start=inputs.period_start,
            period_end=inputs.period_end,
            calculation_id=calculation_id,
            lines=lines,
            daily=daily,
            totals=PeriodAttendanceTotals.from_outcomes(daily),
            gross_pay=gross,
            total_deductions=total_deductions,
            net_pay=net,
            taxable_income=LineItemBuilder.round_to_cents(statutory.tax_base),
            employer_contributions=employer_total,
            warnings=warnings,
            errors=errors,
            inputs_fingerprint=inputs_fingerprint,
            rules_fingerprint=rules_fingerprint,
        )

    def _monthly_factor(self, inputs: EmployeePayrollInputs) -> Decimal:
        if self.config.contribution_table_basis != "MONTHLY":
            return Decimal("1")
        period_type = inputs.period_type or infer_period_type(inputs.period_start, inputs.period_end)
        return MONTHLY_FACTORS[period_type]

    def _generate_calculation_id(
        self,
        employee_id: UUID,
        period_start: date,
        period_end: date,
        inputs_fingerprint: str,
        rules_fingerprint: str,
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "employee_id": str(employee_id),
            "period_start": str(period_start),
            "period_end": str(period_end),
            "engine_version": self.config.engine_version,
            "inputs_fingerprint": inputs_fingerprint,
            "rules_fingerprint": rules_fingerprint,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])

    def _compute_inputs_fingerprint(self, inputs: EmployeePayrollInputs) -> str:
        """Compute fingerprint of attendance, calendar and adjustment inputs."""
        data: list[dict[str, Any]] = []
        for day in sorted(inputs.intervals_by_date):
            for interval in inputs.intervals_by_date[day]:
                data.append({
                    "type": "time_entry",
                    "date": str(day),
                    "in": interval.clock_in.isoformat(),
                    "out": interval.clock_out.isoformat() if interval.clock_out else None,
                    "breaks": [
                        [b.start.isoformat(), b.end.isoformat() if b.end else None]
                        for b in interval.breaks
                    ],
                })
        for day in sorted(inputs.holidays):
            data.append({"type": "holiday", "date": str(day), "kind": inputs.holidays[day].value})
        for day in sorted(inputs.leave_dates):
            data.append({"type": "leave", "date": str(day)})
        for day in sorted(inputs.approved_overtime):
            data.append({
                "type": "approved_overtime",
                "date": str(day),
                "minutes": inputs.approved_overtime[day],
            })
        for adj in inputs.adjustments:
            data.append({"type": "adjustment", "id": str(adj.adjustment_id), "amount": str(adj.amount)})
        for comp in inputs.compensations:
            data.append({
                "type": "compensation",
                "id": str(comp.compensation_id),
                "effective_date": str(comp.effective_date),
                "base_salary": str(comp.base_salary),
                "schedule": comp.schedule.to_canonical_dict() if comp.schedule else None,
            })
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    def _compute_rules_fingerprint(self, inputs: EmployeePayrollInputs) -> str:
        """Compute fingerprint of every policy and table row consulted."""
        rules = [repr(p) for p in inputs.policies]
        rules.extend(repr(b) for b in inputs.tables.tax_brackets)
        for kind in (ContributionKind.SSS, ContributionKind.PHILHEALTH, ContributionKind.PAGIBIG):
            rules.extend(repr(t) for t in inputs.tables.tiers_for(kind))
        json_str = json.dumps(sorted(rules))
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]
