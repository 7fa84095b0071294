"""SQLAlchemy ORM models."""

from hris_payroll.models.attendance import OvertimeRequest, TimeBreak, TimeEntry
from hris_payroll.models.base import Base, TimestampMixin
from hris_payroll.models.contributions import (
    ContributionTierModel,
    LateDeductionPolicyModel,
    TaxBracketModel,
)
from hris_payroll.models.organization import (
    Compensation,
    Department,
    EarningAdjustment,
    Employee,
    Holiday,
    LeaveRequest,
    Organization,
    WorkScheduleModel,
)
from hris_payroll.models.payroll import AuditEvent, Payroll, PayrollLineItem, PayrollPeriod

__all__ = [
    "AuditEvent",
    "Base",
    "Compensation",
    "ContributionTierModel",
    "Department",
    "EarningAdjustment",
    "Employee",
    "Holiday",
    "LateDeductionPolicyModel",
    "LeaveRequest",
    "Organization",
    "OvertimeRequest",
    "Payroll",
    "PayrollLineItem",
    "PayrollPeriod",
    "TaxBracketModel",
    "TimeBreak",
    "TimeEntry",
    "TimestampMixin",
    "WorkScheduleModel",
]
