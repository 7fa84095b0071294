"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class Weekday(str, Enum):
    """Weekday tags used by work schedules."""

    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @classmethod
    def from_date(cls, value: date) -> Weekday:
        return _WEEKDAY_ORDER[value.weekday()]

    @property
    def index(self) -> int:
        """Python weekday index (Monday == 0)."""
        return _WEEKDAY_ORDER.index(self)


_WEEKDAY_ORDER = [
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
    Weekday.SATURDAY,
    Weekday.SUNDAY,
]


class ScheduleType(str, Enum):
    FIXED = "FIXED"
    FLEXIBLE = "FLEXIBLE"
    ROTATING = "ROTATING"
    HYBRID = "HYBRID"


class HolidayType(str, Enum):
    REGULAR = "REGULAR"
    SPECIAL = "SPECIAL"
    DOUBLE = "DOUBLE"


class DayType(str, Enum):
    """Classification of a calendar date for one employee."""

    REGULAR_DAY = "REGULAR_DAY"
    REST_DAY = "REST_DAY"
    REGULAR_HOLIDAY = "REGULAR_HOLIDAY"
    SPECIAL_HOLIDAY = "SPECIAL_HOLIDAY"
    DOUBLE_HOLIDAY = "DOUBLE_HOLIDAY"

    @property
    def is_holiday(self) -> bool:
        return self in (
            DayType.REGULAR_HOLIDAY,
            DayType.SPECIAL_HOLIDAY,
            DayType.DOUBLE_HOLIDAY,
        )


class PolicyType(str, Enum):
    """Late deduction policy types. UNDERTIME also prices absences."""

    LATE = "LATE"
    UNDERTIME = "UNDERTIME"


class DeductionMethod(str, Enum):
    FIXED_AMOUNT = "FIXED_AMOUNT"
    PERCENTAGE = "PERCENTAGE"
    HOURLY_RATE = "HOURLY_RATE"


class OvertimeCapPolicy(str, Enum):
    """What happens to overtime beyond a schedule's maxOvertimeHours."""

    CAP_AND_LOG = "CAP_AND_LOG"
    PAY_ALL = "PAY_ALL"


class PeriodType(str, Enum):
    MONTHLY = "MONTHLY"
    SEMI_MONTHLY = "SEMI_MONTHLY"
    BI_WEEKLY = "BI_WEEKLY"
    WEEKLY = "WEEKLY"


class LineCategory(str, Enum):
    """Pay line categories.

    EMPLOYER_CONTRIBUTION lines are reported for cost accounting and never
    affect the employee's net pay.
    """

    EARNING = "EARNING"
    DEDUCTION = "DEDUCTION"
    EMPLOYER_CONTRIBUTION = "EMPLOYER_CONTRIBUTION"


class EarningType(str, Enum):
    REGULAR = "REGULAR"
    OVERTIME = "OVERTIME"
    NIGHT_DIFF = "NIGHT_DIFF"
    HOLIDAY = "HOLIDAY"
    REST_DAY = "REST_DAY"
    ALLOWANCE = "ALLOWANCE"
    BONUS = "BONUS"


class DeductionType(str, Enum):
    TAX = "TAX"
    SSS = "SSS"
    PHILHEALTH = "PHILHEALTH"
    PAGIBIG = "PAGIBIG"
    LATE = "LATE"
    ABSENCE = "ABSENCE"


class ContributionKind(str, Enum):
    """Statutory components resolved by the contribution engine."""

    TAX = "TAX"
    SSS = "SSS"
    PHILHEALTH = "PHILHEALTH"
    PAGIBIG = "PAGIBIG"


@dataclass
class LineCandidate:
    """A priced earning or deduction before persistence.

    Amounts are always positive; the category decides whether a line adds to
    gross or is subtracted from it.
    """

    category: LineCategory
    line_type: str  # EarningType / DeductionType value
    amount: Decimal
    hours: Decimal = Decimal("0")
    rate: Decimal = Decimal("0")
    is_taxable: bool = True
    source_id: UUID | None = None
    explanation: str | None = None

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "category": self.category.value,
            "line_type": self.line_type,
            "amount": str(self.amount),
            "hours": str(self.hours),
            "rate": str(self.rate),
            "is_taxable": self.is_taxable,
            "source_id": str(self.source_id) if self.source_id else None,
        }


@dataclass(frozen=True)
class CalculationWarning:
    """Non-fatal issue surfaced with a computation result."""

    code: str
    message: str
    on_date: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "on_date": self.on_date.isoformat() if self.on_date else None,
        }


@dataclass(frozen=True)
class RateTable:
    """Normalized pay rates for one schedule. Never rounded."""

    monthly: Decimal
    daily: Decimal
    hourly: Decimal


@dataclass
class TaxBracket:
    """Withholding tax bracket.

    tax = base_tax + rate * (income - excess_over), where excess_over
    defaults to min_salary.
    """

    min_salary: Decimal
    max_salary: Decimal | None  # None = no upper limit
    base_tax: Decimal
    rate: Decimal  # As decimal, e.g., 0.20 for 20%
    effective_from: date
    effective_to: date | None = None
    excess_over: Decimal | None = None
    bracket_id: UUID | None = None

    @property
    def threshold(self) -> Decimal:
        return self.min_salary if self.excess_over is None else self.excess_over


@dataclass
class ContributionTier:
    """SSS / PhilHealth / Pag-IBIG salary band."""

    min_salary: Decimal
    max_salary: Decimal | None
    employee_rate: Decimal
    employer_rate: Decimal
    effective_from: date
    effective_to: date | None = None
    ec_rate: Decimal = Decimal("0")
    salary_cap: Decimal | None = None
    max_employee_contribution: Decimal | None = None
    tier_id: UUID | None = None


@dataclass
class ContributionTables:
    """All date-effective statutory tables for one organization."""

    tax_brackets: list[TaxBracket] = field(default_factory=list)
    sss: list[ContributionTier] = field(default_factory=list)
    philhealth: list[ContributionTier] = field(default_factory=list)
    pagibig: list[ContributionTier] = field(default_factory=list)

    def tiers_for(self, kind: ContributionKind) -> list[ContributionTier]:
        if kind == ContributionKind.SSS:
            return self.sss
        if kind == ContributionKind.PHILHEALTH:
            return self.philhealth
        if kind == ContributionKind.PAGIBIG:
            return self.pagibig
        raise ValueError(f"{kind} is not a tiered contribution")
