"""Payroll calculation engine."""

from hris_payroll.calculators.attendance import AttendanceClassifier, DailyAttendanceOutcome
from hris_payroll.calculators.contributions import ContributionCalculator
from hris_payroll.calculators.engine import (
    CalculationResult,
    EmployeePayrollInputs,
    PayrollCalculator,
)
from hris_payroll.calculators.late_policy import LateDeductionPolicy, LatePolicyEngine
from hris_payroll.calculators.line_builder import LineItemBuilder
from hris_payroll.calculators.periods import generate_periods
from hris_payroll.calculators.work_schedule import ScheduleResolver, WorkSchedule

__all__ = [
    "AttendanceClassifier",
    "CalculationResult",
    "ContributionCalculator",
    "DailyAttendanceOutcome",
    "EmployeePayrollInputs",
    "LateDeductionPolicy",
    "LatePolicyEngine",
    "LineItemBuilder",
    "PayrollCalculator",
    "ScheduleResolver",
    "WorkSchedule",
    "generate_periods",
]
