"""Government statutory contributions: withholding tax, SSS, PhilHealth, Pag-IBIG."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from itertools import groupby
from typing import Sequence, TypeVar, Union
from uuid import UUID

from hris_payroll.calculators.types import (
    CalculationWarning,
    ContributionKind,
    ContributionTables,
    ContributionTier,
    PeriodType,
    TaxBracket,
)
from hris_payroll.errors import ConfigurationMissingError

logger = logging.getLogger(__name__)

Band = TypeVar("Band", TaxBracket, ContributionTier)

# Published tables step in whole pesos (max 250,000, next min 250,001); an
# income in the sub-peso space above a ceiling belongs to the lower band.
GAP_TOLERANCE = Decimal("1.00")

# Multiplier from period income to the monthly basis the tables are stated in
MONTHLY_FACTORS: dict[PeriodType, Decimal] = {
    PeriodType.MONTHLY: Decimal("1"),
    PeriodType.SEMI_MONTHLY: Decimal("2"),
    PeriodType.BI_WEEKLY: Decimal("26") / Decimal("12"),
    PeriodType.WEEKLY: Decimal("52") / Decimal("12"),
}


@dataclass(frozen=True)
class ContributionResult:
    """One statutory component for one period."""

    kind: ContributionKind
    base: Decimal
    employee_amount: Decimal
    employer_amount: Decimal = Decimal("0")
    band_id: UUID | None = None


@dataclass
class StatutoryResult:
    """All statutory components plus warnings for missing configuration."""

    components: list[ContributionResult] = field(default_factory=list)
    warnings: list[CalculationWarning] = field(default_factory=list)
    tax_base: Decimal = Decimal("0")

    @property
    def employee_total(self) -> Decimal:
        return sum((c.employee_amount for c in self.components), Decimal("0"))

    @property
    def employer_total(self) -> Decimal:
        return sum((c.employer_amount for c in self.components), Decimal("0"))

    def get(self, kind: ContributionKind) -> ContributionResult | None:
        return next((c for c in self.components if c.kind == kind), None)


def _is_effective(band: Union[TaxBracket, ContributionTier], on_date: date) -> bool:
    if band.effective_from > on_date:
        return False
    return band.effective_to is None or band.effective_to >= on_date


def find_band(
    bands: Sequence[Band],
    income: Decimal,
    on_date: date,
    component: str,
    organization_id: UUID | None = None,
) -> Band | None:
    """Select the band containing the income on a date.

    The date-valid band with the greatest min_salary not above the income is
    chosen, so a shared boundary belongs to exactly one band (the higher one).
    An income at most GAP_TOLERANCE above the chosen band's max_salary still
    matches it.

    Returns None when income is below every band.

    Raises:
        ConfigurationMissingError: No band is effective on the date, or the
            income falls in a gap between bands.
    """
    effective = [b for b in bands if _is_effective(b, on_date)]
    if not effective:
        raise ConfigurationMissingError(component, organization_id, on_date)

    candidates = [b for b in effective if b.min_salary <= income]
    if not candidates:
        return None

    band = max(candidates, key=lambda b: b.min_salary)
    if band.max_salary is not None and income > band.max_salary + GAP_TOLERANCE:
        raise ConfigurationMissingError(
            component,
            organization_id,
            on_date,
            f"income {income} is not covered by any band",
        )
    return band


class ContributionCalculator:
    """Computes employee-side statutory deductions from date-effective tables.

    Each component is resolved independently. A missing table never raises
    out of compute_all: the component is zero and a warning is recorded.

    Tables are stated on a monthly basis. Period income is scaled to a
    monthly equivalent before lookup and the result scaled back.
    """

    def __init__(self, tables: ContributionTables, organization_id: UUID | None = None):
        self.tables = tables
        self.organization_id = organization_id

    def compute_tax(self, income: Decimal, on_date: date) -> ContributionResult:
        """tax = base_tax + rate * (income - threshold) for the matched bracket."""
        bracket = find_band(
            self.tables.tax_brackets,
            income,
            on_date,
            "withholding tax",
            self.organization_id,
        )
        if bracket is None or income <= 0:
            return ContributionResult(kind=ContributionKind.TAX, base=income, employee_amount=Decimal("0"))

        tax = bracket.base_tax + bracket.rate * (income - bracket.threshold)
        return ContributionResult(
            kind=ContributionKind.TAX,
            base=income,
            employee_amount=max(tax, Decimal("0")),
            band_id=bracket.bracket_id,
        )

    def compute_tiered(
        self,
        kind: ContributionKind,
        income: Decimal,
        on_date: date,
    ) -> ContributionResult:
        """employee share = employee_rate * income credited within the band."""
        tier = find_band(
            self.tables.tiers_for(kind),
            income,
            on_date,
            kind.value,
            self.organization_id,
        )
        if tier is None or income <= 0:
            return ContributionResult(kind=kind, base=Decimal("0"), employee_amount=Decimal("0"))

        base = income
        if tier.max_salary is not None:
            base = min(base, tier.max_salary)
        if tier.salary_cap is not None:
            base = min(base, tier.salary_cap)

        employee = tier.employee_rate * base
        if tier.max_employee_contribution is not None:
            employee = min(employee, tier.max_employee_contribution)
        employer = (tier.employer_rate + tier.ec_rate) * base

        return ContributionResult(
            kind=kind,
            base=base,
            employee_amount=employee,
            employer_amount=employer,
            band_id=tier.tier_id,
        )

    def compute_all(
        self,
        taxable_income: Decimal,
        on_date: date,
        monthly_factor: Decimal = Decimal("1"),
    ) -> StatutoryResult:
        """Compute every statutory component for one period's taxable income.

        Withholding tax applies to taxable income net of the employee's SSS,
        PhilHealth and Pag-IBIG shares.
        """
        result = StatutoryResult()
        monthly_income = taxable_income * monthly_factor

        monthly: list[ContributionResult] = []
        for kind in (ContributionKind.SSS, ContributionKind.PHILHEALTH, ContributionKind.PAGIBIG):
            try:
                monthly.append(self.compute_tiered(kind, monthly_income, on_date))
            except ConfigurationMissingError as e:
                logger.warning("%s", e)
                result.warnings.append(
                    CalculationWarning(code="CONFIGURATION_MISSING", message=str(e), on_date=on_date)
                )

        tax_base = monthly_income - sum((c.employee_amount for c in monthly), Decimal("0"))
        try:
            monthly.append(self.compute_tax(tax_base, on_date))
        except ConfigurationMissingError as e:
            logger.warning("%s", e)
            result.warnings.append(
                CalculationWarning(code="CONFIGURATION_MISSING", message=str(e), on_date=on_date)
            )

        result.tax_base = tax_base / monthly_factor
        for c in monthly:
            result.components.append(
                ContributionResult(
                    kind=c.kind,
                    base=c.base / monthly_factor,
                    employee_amount=c.employee_amount / monthly_factor,
                    employer_amount=c.employer_amount / monthly_factor,
                    band_id=c.band_id,
                )
            )
        return result


def validate_contribution_tables(
    bands: Sequence[Union[TaxBracket, ContributionTier]],
    label: str = "table",
) -> list[str]:
    """Report gaps, overlaps and negative rates per effective window.

    Adjacent bands may share a boundary value; a difference larger than
    GAP_TOLERANCE between one band's max and the next band's min is a gap.
    """
    issues: list[str] = []

    def window(b: Union[TaxBracket, ContributionTier]) -> tuple[date, date]:
        return (b.effective_from, b.effective_to or date.max)

    for (start, _), group in groupby(sorted(bands, key=window), key=window):
        ordered = sorted(group, key=lambda b: b.min_salary)
        for band in ordered:
            rates = (
                [band.rate, band.base_tax]
                if isinstance(band, TaxBracket)
                else [band.employee_rate, band.employer_rate, band.ec_rate]
            )
            if any(r < 0 for r in rates):
                issues.append(f"{label} ({start}): negative rate in band starting {band.min_salary}")
            if band.max_salary is not None and band.max_salary < band.min_salary:
                issues.append(
                    f"{label} ({start}): band {band.min_salary} has max below min"
                )

        for prev, curr in zip(ordered, ordered[1:]):
            if prev.max_salary is None:
                issues.append(
                    f"{label} ({start}): unbounded band {prev.min_salary} overlaps {curr.min_salary}"
                )
            elif curr.min_salary > prev.max_salary + GAP_TOLERANCE:
                issues.append(
                    f"{label} ({start}): gap between {prev.max_salary} and {curr.min_salary}"
                )
            elif curr.min_salary < prev.max_salary:
                issues.append(
                    f"{label} ({start}): overlap between {prev.min_salary}-{prev.max_salary} "
                    f"and {curr.min_salary}"
                )

        if ordered and ordered[-1].max_salary is not None:
            issues.append(f"{label} ({start}): top band {ordered[-1].min_salary} is bounded")

    return issues
