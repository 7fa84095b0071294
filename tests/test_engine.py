"""Tests for the per-employee payroll calculation engine."""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings, strategies as st

from hris_payroll.calculators.attendance import ClockInterval
from hris_payroll.calculators.engine import (
    EarningAdjustmentInput,
    EmployeePayrollInputs,
    PayrollCalculator,
)
from hris_payroll.calculators.late_policy import LateDeductionPolicy, build_method
from hris_payroll.calculators.line_builder import LineItemBuilder
from hris_payroll.calculators.types import (
    ContributionTables,
    ContributionTier,
    EarningType,
    HolidayType,
    LineCategory,
    PeriodType,
    PolicyType,
    TaxBracket,
)
from hris_payroll.calculators.work_schedule import CompensationRecord, WorkSchedule, build_shift
from hris_payroll.config import PayrollConfig
from hris_payroll.errors import ConfigurationMissingError, ValidationError

EMPLOYEE_ID = uuid4()
ORG_ID = uuid4()

NEW_YEAR = date(2024, 1, 1)
TUESDAY = date(2024, 1, 2)
WEDNESDAY = date(2024, 1, 3)
SATURDAY = date(2024, 1, 6)


def worked(day: date, start: time, end: time) -> ClockInterval:
    return ClockInterval(datetime.combine(day, start), datetime.combine(day, end))


def compensation(effective: date = date(2023, 1, 1)) -> CompensationRecord:
    schedule = WorkSchedule(
        shift=build_shift("FIXED", default_start=time(9, 0), default_end=time(18, 0)),
        monthly_rate=Decimal("22000"),
    )
    return CompensationRecord(
        compensation_id=uuid4(),
        employee_id=EMPLOYEE_ID,
        effective_date=effective,
        base_salary=Decimal("22000"),
        schedule=schedule,
    )


def deduction_policy(policy_type: PolicyType, method: str, **values) -> LateDeductionPolicy:
    return LateDeductionPolicy(
        policy_id=uuid4(),
        organization_id=ORG_ID,
        name=f"{policy_type.value} policy",
        policy_type=policy_type,
        method=build_method(method, **values),
        effective_date=date(2023, 1, 1),
        grace_period_minutes=5 if policy_type == PolicyType.LATE else 0,
    )


POLICIES = [
    deduction_policy(PolicyType.LATE, "FIXED_AMOUNT", fixed_amount=Decimal("100")),
    deduction_policy(PolicyType.UNDERTIME, "PERCENTAGE", percentage_rate=Decimal("100")),
]


def tier(ee: str, er: str, cap: str | None = None, max_ee: str | None = None) -> ContributionTier:
    return ContributionTier(
        min_salary=Decimal("0"),
        max_salary=None,
        employee_rate=Decimal(ee),
        employer_rate=Decimal(er),
        effective_from=date(2023, 1, 1),
        salary_cap=Decimal(cap) if cap else None,
        max_employee_contribution=Decimal(max_ee) if max_ee else None,
    )


STATUTORY = ContributionTables(
    tax_brackets=[
        TaxBracket(Decimal("0"), Decimal("20833"), Decimal("0"), Decimal("0"), date(2023, 1, 1)),
        TaxBracket(Decimal("20833"), None, Decimal("0"), Decimal("0.15"), date(2023, 1, 1)),
    ],
    sss=[tier("0.045", "0.095", cap="30000")],
    philhealth=[tier("0.025", "0.025", cap="100000")],
    pagibig=[tier("0.02", "0.02", max_ee="200")],
)


def inputs_for(
    start: date,
    end: date,
    intervals: list[ClockInterval],
    **overrides,
) -> EmployeePayrollInputs:
    by_date: dict[date, list[ClockInterval]] = {}
    for interval in intervals:
        by_date.setdefault(interval.clock_in.date(), []).append(interval)
    values = {
        "employee_id": EMPLOYEE_ID,
        "organization_id": ORG_ID,
        "period_start": start,
        "period_end": end,
        "compensations": [compensation()],
        "intervals_by_date": by_date,
        "policies": POLICIES,
        "period_type": PeriodType.MONTHLY,
    }
    values.update(overrides)
    return EmployeePayrollInputs(**values)


def line_amount(result, line_type: str, category: LineCategory = LineCategory.DEDUCTION) -> Decimal:
    return sum(
        (l.amount for l in result.lines if l.line_type == line_type and l.category == category),
        Decimal("0"),
    )


class TestPayrollCalculator:
    """One employee, one period."""

    def setup_method(self):
        self.calculator = PayrollCalculator()

    def test_late_day(self):
        """09:15 against a 09:00 start with the flat ₱100 policy."""
        result = self.calculator.calculate(
            inputs_for(TUESDAY, TUESDAY, [worked(TUESDAY, time(9, 15), time(17, 15))])
        )

        assert result.gross_pay == Decimal("1000.00")
        assert line_amount(result, "LATE") == Decimal("100.00")
        assert result.net_pay == Decimal("900.00")
        assert result.totals.late_minutes == 15

    def test_overtime_line(self):
        result = self.calculator.calculate(
            inputs_for(TUESDAY, TUESDAY, [worked(TUESDAY, time(8, 55), time(17, 5))])
        )

        overtime = [l for l in result.earnings if l.line_type == "OVERTIME"]
        assert len(overtime) == 1
        assert overtime[0].rate == Decimal("156.25")
        assert overtime[0].amount == Decimal("26.04")
        assert result.gross_pay == Decimal("1026.04")
        assert line_amount(result, "LATE") == Decimal("0")

    def test_absence_priced_by_undertime_policy(self):
        result = self.calculator.calculate(inputs_for(WEDNESDAY, WEDNESDAY, []))

        assert line_amount(result, "ABSENCE") == Decimal("1000.00")
        assert result.gross_pay == Decimal("0.00")
        assert result.net_pay == Decimal("-1000.00")
        assert "NEGATIVE_NET" in {w.code for w in result.warnings}

    def test_regular_holiday_premium(self):
        result = self.calculator.calculate(
            inputs_for(
                NEW_YEAR,
                NEW_YEAR,
                [worked(NEW_YEAR, time(9, 0), time(17, 0))],
                holidays={NEW_YEAR: HolidayType.REGULAR},
            )
        )

        holiday = result.earnings[0]
        assert holiday.line_type == "HOLIDAY"
        assert holiday.rate == Decimal("162.5000")
        assert holiday.amount == Decimal("1300.00")

    def test_unworked_holiday_is_not_absence(self):
        result = self.calculator.calculate(
            inputs_for(NEW_YEAR, NEW_YEAR, [], holidays={NEW_YEAR: HolidayType.REGULAR})
        )

        assert result.lines == []
        assert result.totals.days_absent == 0

    def test_rest_day_premium(self):
        result = self.calculator.calculate(
            inputs_for(SATURDAY, SATURDAY, [worked(SATURDAY, time(9, 30), time(17, 30))])
        )

        assert result.earnings[0].line_type == "REST_DAY"
        assert result.gross_pay == Decimal("1300.00")
        assert line_amount(result, "LATE") == Decimal("0")

    def test_night_differential(self):
        result = self.calculator.calculate(
            inputs_for(
                TUESDAY,
                TUESDAY,
                [ClockInterval(datetime.combine(TUESDAY, time(14)), datetime.combine(TUESDAY, time(23)))],
                policies=[],
            )
        )

        night = [l for l in result.earnings if l.line_type == "NIGHT_DIFF"]
        # 22:00-23:00 at 10% of 125
        assert night[0].amount == Decimal("12.50")

    def test_overtime_cap_warning(self):
        result = self.calculator.calculate(
            inputs_for(TUESDAY, TUESDAY, [worked(TUESDAY, time(8, 0), time(20, 0))])
        )

        assert "OVERTIME_CAPPED" in {w.code for w in result.warnings}
        overtime = [l for l in result.earnings if l.line_type == "OVERTIME"][0]
        assert overtime.hours == Decimal("3")

    def test_overtime_limited_to_approved_minutes(self):
        calculator = PayrollCalculator(PayrollConfig(require_overtime_approval=True))
        result = calculator.calculate(
            inputs_for(
                TUESDAY,
                TUESDAY,
                [worked(TUESDAY, time(9, 0), time(20, 0))],
                approved_overtime={TUESDAY: 60},
            )
        )

        overtime = [l for l in result.earnings if l.line_type == "OVERTIME"]
        assert overtime[0].hours == Decimal("1")
        assert overtime[0].amount == Decimal("156.25")
        assert result.totals.overtime_minutes == 60
        unapproved = [w for w in result.warnings if w.code == "OVERTIME_UNAPPROVED"]
        assert len(unapproved) == 1
        assert unapproved[0].on_date == TUESDAY
        assert unapproved[0].message.startswith("120 overtime minutes")

    def test_unapproved_overtime_is_unpaid_when_approval_required(self):
        calculator = PayrollCalculator(PayrollConfig(require_overtime_approval=True))
        result = calculator.calculate(
            inputs_for(TUESDAY, TUESDAY, [worked(TUESDAY, time(9, 0), time(20, 0))])
        )

        assert [l for l in result.earnings if l.line_type == "OVERTIME"] == []
        assert result.gross_pay == Decimal("1000.00")

    def test_overtime_paid_without_approval_by_default(self):
        result = self.calculator.calculate(
            inputs_for(TUESDAY, TUESDAY, [worked(TUESDAY, time(9, 0), time(20, 0))])
        )

        overtime = [l for l in result.earnings if l.line_type == "OVERTIME"]
        assert overtime[0].hours == Decimal("3")
        assert "OVERTIME_UNAPPROVED" not in {w.code for w in result.warnings}

    def test_approved_overtime_is_part_of_the_inputs_fingerprint(self):
        day = [worked(TUESDAY, time(9, 0), time(20, 0))]
        plain = self.calculator.calculate(inputs_for(TUESDAY, TUESDAY, day))
        approved = self.calculator.calculate(
            inputs_for(TUESDAY, TUESDAY, day, approved_overtime={TUESDAY: 60})
        )

        assert plain.inputs_fingerprint != approved.inputs_fingerprint

    def test_incomplete_day_flagged_not_deducted(self):
        result = self.calculator.calculate(
            inputs_for(TUESDAY, TUESDAY, [ClockInterval(datetime.combine(TUESDAY, time(9, 30)))])
        )

        assert "INCOMPLETE_ATTENDANCE" in {w.code for w in result.warnings}
        assert result.deductions == []

    def test_non_taxable_allowance(self):
        allowance = EarningAdjustmentInput(
            adjustment_id=uuid4(),
            earning_type=EarningType.ALLOWANCE,
            amount=Decimal("1500"),
            effective_date=TUESDAY,
            is_taxable=False,
            description="Rice subsidy",
        )
        outside = EarningAdjustmentInput(
            adjustment_id=uuid4(),
            earning_type=EarningType.BONUS,
            amount=Decimal("5000"),
            effective_date=date(2024, 2, 1),
        )

        result = self.calculator.calculate(
            inputs_for(
                TUESDAY,
                TUESDAY,
                [worked(TUESDAY, time(9, 0), time(17, 0))],
                adjustments=[allowance, outside],
            )
        )

        assert result.gross_pay == Decimal("2500.00")
        assert result.taxable_income == Decimal("1000.00")

    def test_statutory_deductions_semi_monthly(self):
        days = [NEW_YEAR + timedelta(days=i) for i in range(15)]
        intervals = [
            worked(d, time(9, 0), time(17, 0)) for d in days if d.weekday() < 5 and d != NEW_YEAR
        ]

        result = self.calculator.calculate(
            inputs_for(
                days[0],
                days[-1],
                intervals,
                holidays={NEW_YEAR: HolidayType.REGULAR},
                tables=STATUTORY,
                period_type=PeriodType.SEMI_MONTHLY,
            )
        )

        assert result.gross_pay == Decimal("10000.00")
        assert line_amount(result, "SSS") == Decimal("450.00")
        assert line_amount(result, "PHILHEALTH") == Decimal("250.00")
        assert line_amount(result, "PAGIBIG") == Decimal("100.00")
        assert line_amount(result, "TAX") == Decimal("0")
        assert result.net_pay == Decimal("9200.00")
        assert result.employer_contributions == Decimal("1400.00")
        assert result.warnings == []

    def test_missing_tables_are_warnings(self):
        result = self.calculator.calculate(
            inputs_for(TUESDAY, TUESDAY, [worked(TUESDAY, time(9, 0), time(17, 0))])
        )

        assert result.net_pay == Decimal("1000.00")
        assert [w.code for w in result.warnings] == ["CONFIGURATION_MISSING"] * 4

    def test_repeated_warnings_are_collapsed(self):
        result = self.calculator.calculate(
            inputs_for(
                TUESDAY,
                WEDNESDAY,
                [worked(TUESDAY, time(9, 30), time(17, 30)), worked(WEDNESDAY, time(9, 30), time(17, 30))],
                policies=[],
            )
        )

        assert [w.code for w in result.warnings].count("POLICY_MISSING") == 1

    def test_days_before_compensation_are_unpaid(self):
        result = self.calculator.calculate(
            inputs_for(
                TUESDAY,
                WEDNESDAY,
                [worked(TUESDAY, time(9, 0), time(17, 0)), worked(WEDNESDAY, time(9, 0), time(17, 0))],
                compensations=[compensation(effective=WEDNESDAY)],
            )
        )

        missing = [w for w in result.warnings if w.code == "SCHEDULE_MISSING"]
        assert missing[0].on_date == TUESDAY
        assert result.gross_pay == Decimal("1000.00")

    def test_no_compensation_raises(self):
        with pytest.raises(ConfigurationMissingError):
            self.calculator.calculate(inputs_for(TUESDAY, WEDNESDAY, [], compensations=[]))

    def test_inverted_period_raises(self):
        with pytest.raises(ValidationError):
            self.calculator.calculate(inputs_for(WEDNESDAY, TUESDAY, []))

    def test_same_inputs_same_result(self):
        inputs = inputs_for(TUESDAY, WEDNESDAY, [worked(TUESDAY, time(9, 15), time(17, 15))])

        first = self.calculator.calculate(inputs)
        second = self.calculator.calculate(inputs)

        assert first.calculation_id == second.calculation_id
        assert first.lines == second.lines
        assert first.inputs_fingerprint == second.inputs_fingerprint

    def test_fingerprints_track_inputs_and_rules(self):
        base = self.calculator.calculate(
            inputs_for(TUESDAY, TUESDAY, [worked(TUESDAY, time(9, 0), time(17, 0))])
        )
        more_work = self.calculator.calculate(
            inputs_for(TUESDAY, TUESDAY, [worked(TUESDAY, time(9, 0), time(18, 0))])
        )
        other_rules = self.calculator.calculate(
            inputs_for(TUESDAY, TUESDAY, [worked(TUESDAY, time(9, 0), time(17, 0))], policies=[])
        )

        assert base.inputs_fingerprint != more_work.inputs_fingerprint
        assert base.rules_fingerprint == more_work.rules_fingerprint
        assert base.rules_fingerprint != other_rules.rules_fingerprint
        assert base.calculation_id != other_rules.calculation_id

    @settings(max_examples=30, deadline=None)
    @given(
        shifts=st.lists(
            st.tuples(
                st.integers(min_value=6 * 60, max_value=11 * 60),
                st.integers(min_value=0, max_value=13 * 60),
            ),
            min_size=5,
            max_size=5,
        ),
        absent=st.sets(st.integers(min_value=0, max_value=4)),
    )
    def test_totals_reconcile_with_lines(self, shifts, absent):
        monday = date(2024, 1, 8)
        intervals = []
        for i, (start_minute, length) in enumerate(shifts):
            if i in absent:
                continue
            clock_in = datetime.combine(monday + timedelta(days=i), time()) + timedelta(minutes=start_minute)
            intervals.append(ClockInterval(clock_in, clock_in + timedelta(minutes=length)))

        result = PayrollCalculator().calculate(
            inputs_for(
                monday,
                monday + timedelta(days=6),
                intervals,
                tables=STATUTORY,
                period_type=PeriodType.WEEKLY,
            )
        )

        assert result.gross_pay == LineItemBuilder.calculate_gross_from_lines(result.lines)
        assert result.total_deductions == sum((l.amount for l in result.deductions), Decimal("0"))
        assert result.net_pay == result.gross_pay - result.total_deductions
        assert all(l.amount >= 0 for l in result.lines)
        assert result.errors == []
