"""Late/undertime deduction policy engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence, Union
from uuid import UUID

from hris_payroll.calculators.types import (
    CalculationWarning,
    DeductionMethod,
    PolicyType,
    RateTable,
)
from hris_payroll.errors import ValidationError

logger = logging.getLogger(__name__)


# ===== Deduction methods (one per DeductionMethod) =====


@dataclass(frozen=True)
class FixedAmountMethod:
    """A flat amount per late or absent day."""

    amount: Decimal

    @property
    def method(self) -> DeductionMethod:
        return DeductionMethod.FIXED_AMOUNT

    def compute(self, minutes: int, rates: RateTable) -> Decimal:
        return self.amount


@dataclass(frozen=True)
class PercentageMethod:
    """A percentage of the daily rate per occurrence."""

    percentage_rate: Decimal

    @property
    def method(self) -> DeductionMethod:
        return DeductionMethod.PERCENTAGE

    def compute(self, minutes: int, rates: RateTable) -> Decimal:
        return self.percentage_rate / Decimal("100") * rates.daily


@dataclass(frozen=True)
class HourlyRateMethod:
    """Late minutes priced at a multiple of the hourly rate."""

    multiplier: Decimal

    @property
    def method(self) -> DeductionMethod:
        return DeductionMethod.HOURLY_RATE

    def compute(self, minutes: int, rates: RateTable) -> Decimal:
        return self.multiplier * rates.hourly * Decimal(minutes) / Decimal("60")


DeductionMethodSpec = Union[FixedAmountMethod, PercentageMethod, HourlyRateMethod]


def build_method(
    deduction_method: DeductionMethod | str,
    fixed_amount: Decimal | None = None,
    percentage_rate: Decimal | None = None,
    hourly_rate_multiplier: Decimal | None = None,
) -> DeductionMethodSpec:
    """Build the method variant, requiring exactly the one matching field."""
    deduction_method = DeductionMethod(deduction_method)
    values = {
        DeductionMethod.FIXED_AMOUNT: ("fixed_amount", fixed_amount),
        DeductionMethod.PERCENTAGE: ("percentage_rate", percentage_rate),
        DeductionMethod.HOURLY_RATE: ("hourly_rate_multiplier", hourly_rate_multiplier),
    }
    errors: dict[str, str] = {}

    for method, (name, value) in values.items():
        if method != deduction_method and value is not None:
            errors[name] = f"must be empty for {deduction_method.value} policies"

    name, value = values[deduction_method]
    if value is None:
        errors[name] = f"required for {deduction_method.value} policies"
    elif value <= 0:
        errors[name] = "must be positive"
    elif deduction_method == DeductionMethod.PERCENTAGE and value > 100:
        errors[name] = "cannot exceed 100"

    if errors:
        raise ValidationError("Invalid deduction method", errors)

    if deduction_method == DeductionMethod.FIXED_AMOUNT:
        return FixedAmountMethod(amount=Decimal(value))
    if deduction_method == DeductionMethod.PERCENTAGE:
        return PercentageMethod(percentage_rate=Decimal(value))
    return HourlyRateMethod(multiplier=Decimal(value))


# ===== Policies =====


@dataclass(frozen=True)
class LateDeductionPolicy:
    """Organization-scoped, date-effective deduction policy."""

    policy_id: UUID
    organization_id: UUID
    name: str
    policy_type: PolicyType
    method: DeductionMethodSpec
    effective_date: date
    end_date: date | None = None
    grace_period_minutes: int = 0
    minimum_late_minutes: int = 1
    max_deduction_per_day: Decimal | None = None
    max_deduction_per_cutoff: Decimal | None = None
    is_active: bool = True

    @property
    def threshold_minutes(self) -> int:
        """Minutes below which no deduction applies."""
        return max(self.grace_period_minutes, self.minimum_late_minutes)

    def is_active_on(self, on_date: date) -> bool:
        if not self.is_active or self.effective_date > on_date:
            return False
        return self.end_date is None or on_date <= self.end_date

    def validate(self) -> None:
        errors: dict[str, str] = {}
        if not self.name or not self.name.strip():
            errors["name"] = "required"
        if self.grace_period_minutes < 0:
            errors["grace_period_minutes"] = "cannot be negative"
        if self.minimum_late_minutes < 1:
            errors["minimum_late_minutes"] = "must be at least 1"
        if self.end_date is not None and self.end_date <= self.effective_date:
            errors["end_date"] = "must be after effective_date"
        for name in ("max_deduction_per_day", "max_deduction_per_cutoff"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                errors[name] = "must be positive when set"
        if errors:
            raise ValidationError(f"Invalid late deduction policy '{self.name}'", errors)

    def compute_daily_amount(self, minutes: int, rates: RateTable) -> Decimal:
        """Deduction for one day before cutoff caps. Unrounded."""
        if minutes <= 0 or minutes < self.threshold_minutes:
            return Decimal("0")
        amount = self.method.compute(minutes, rates)
        if self.max_deduction_per_day is not None:
            amount = min(amount, self.max_deduction_per_day)
        return max(amount, Decimal("0"))


@dataclass(frozen=True)
class PolicySelection:
    policy: LateDeductionPolicy | None
    warning: CalculationWarning | None = None


def select_policy(
    policies: Sequence[LateDeductionPolicy],
    policy_type: PolicyType,
    on_date: date,
) -> PolicySelection:
    """Select the policy of a type in force on a date.

    The latest effective_date wins. Two candidates sharing that date are
    ambiguous and yield no policy plus a warning.
    """
    candidates = [
        p for p in policies if p.policy_type == policy_type and p.is_active_on(on_date)
    ]
    if not candidates:
        return PolicySelection(
            policy=None,
            warning=CalculationWarning(
                code="POLICY_MISSING",
                message=f"No active {policy_type.value} deduction policy",
                on_date=on_date,
            ),
        )

    latest = max(p.effective_date for p in candidates)
    chosen = [p for p in candidates if p.effective_date == latest]
    if len(chosen) > 1:
        names = ", ".join(sorted(p.name for p in chosen))
        return PolicySelection(
            policy=None,
            warning=CalculationWarning(
                code="POLICY_AMBIGUOUS",
                message=f"Multiple {policy_type.value} policies effective {latest}: {names}",
                on_date=on_date,
            ),
        )
    return PolicySelection(policy=chosen[0])


@dataclass(frozen=True)
class DeductionComputation:
    """One priced late/absence occurrence."""

    on_date: date
    policy_type: PolicyType
    minutes: int
    raw_amount: Decimal
    amount: Decimal
    policy_id: UUID | None = None
    warning: CalculationWarning | None = None

    @property
    def was_capped(self) -> bool:
        return self.amount < self.raw_amount


class LatePolicyEngine:
    """Prices late and absence occurrences across one cutoff period.

    One instance per employee per period: it carries the running totals used
    to clamp each policy's max_deduction_per_cutoff.
    """

    def __init__(self, policies: Sequence[LateDeductionPolicy]):
        self.policies = list(policies)
        self._cutoff_totals: dict[UUID, Decimal] = {}

    def deduct(
        self,
        policy_type: PolicyType,
        minutes: int,
        on_date: date,
        rates: RateTable,
    ) -> DeductionComputation:
        selection = select_policy(self.policies, policy_type, on_date)
        if selection.policy is None:
            logger.warning("No deduction on %s: %s", on_date, selection.warning.message)
            return DeductionComputation(
                on_date=on_date,
                policy_type=policy_type,
                minutes=minutes,
                raw_amount=Decimal("0"),
                amount=Decimal("0"),
                warning=selection.warning,
            )

        policy = selection.policy
        raw = policy.compute_daily_amount(minutes, rates)
        amount = self._clamp_to_cutoff(policy, raw)
        return DeductionComputation(
            on_date=on_date,
            policy_type=policy_type,
            minutes=minutes,
            raw_amount=raw,
            amount=amount,
            policy_id=policy.policy_id,
        )

    def _clamp_to_cutoff(self, policy: LateDeductionPolicy, amount: Decimal) -> Decimal:
        running = self._cutoff_totals.get(policy.policy_id, Decimal("0"))
        if policy.max_deduction_per_cutoff is not None:
            amount = max(Decimal("0"), min(amount, policy.max_deduction_per_cutoff - running))
        self._cutoff_totals[policy.policy_id] = running + amount
        return amount

    def cutoff_total(self, policy_id: UUID) -> Decimal:
        return self._cutoff_totals.get(policy_id, Decimal("0"))
