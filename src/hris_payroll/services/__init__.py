"""Payroll services."""

from hris_payroll.services.batch import PayrollBatchRunner
from hris_payroll.services.compensation_service import CompensationService
from hris_payroll.services.overtime_service import OvertimeService
from hris_payroll.services.payroll_service import PayrollService
from hris_payroll.services.period_service import PeriodService
from hris_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollStateMachine,
    PayrollStatus,
    PeriodStateMachine,
    PeriodStatus,
)

__all__ = [
    "CompensationService",
    "InvalidTransitionError",
    "OvertimeService",
    "PayrollBatchRunner",
    "PayrollService",
    "PayrollStateMachine",
    "PayrollStatus",
    "PeriodService",
    "PeriodStateMachine",
    "PeriodStatus",
]
