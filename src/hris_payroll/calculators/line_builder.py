"""Line item builder with single-point rounding."""

from __future__ import annotations

import hashlib
import json
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from hris_payroll.calculators.types import (
    ContributionKind,
    DeductionType,
    EarningType,
    LineCandidate,
    LineCategory,
)


class LineItemBuilder:
    """Builds earning, deduction and employer-contribution lines.

    Conventions:
    - Amounts are stored positive; the category gives the direction
    - EMPLOYER_CONTRIBUTION lines never enter gross or net

    Rounding:
    - Internal compute is unrounded (hours, rates, intermediate products)
    - Each line amount is rounded half-up to 2 decimals exactly once, when
      the line is created
    - Totals are sums of rounded line amounts, so gross and net reconcile
      to the cent
    """

    OUTPUT_PRECISION = Decimal("0.01")
    AMOUNT_TOLERANCE = Decimal("0.01")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (half-up)."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def minutes_to_hours(minutes: int) -> Decimal:
        return Decimal(minutes) / Decimal("60")

    @staticmethod
    def compute_line_hash(line: LineCandidate) -> str:
        """Deterministic hash of a line's defining fields."""
        canonical = line.to_canonical_dict()
        json_str = json.dumps(canonical, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    @staticmethod
    def create_earning_line(
        earning_type: EarningType,
        hours: Decimal,
        rate: Decimal,
        explanation: str | None = None,
        is_taxable: bool = True,
    ) -> LineCandidate:
        """Create an hours-times-rate earning line."""
        return LineCandidate(
            category=LineCategory.EARNING,
            line_type=earning_type.value,
            amount=LineItemBuilder.round_to_cents(abs(hours * rate)),
            hours=hours,
            rate=rate,
            is_taxable=is_taxable,
            explanation=explanation,
        )

    @staticmethod
    def create_flat_earning_line(
        earning_type: EarningType,
        amount: Decimal,
        is_taxable: bool = True,
        source_id: UUID | None = None,
        explanation: str | None = None,
    ) -> LineCandidate:
        """Create a flat earning (allowance, bonus). Exempt from hours x rate."""
        return LineCandidate(
            category=LineCategory.EARNING,
            line_type=earning_type.value,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            is_taxable=is_taxable,
            source_id=source_id,
            explanation=explanation,
        )

    @staticmethod
    def create_deduction_line(
        deduction_type: DeductionType,
        amount: Decimal,
        hours: Decimal = Decimal("0"),
        explanation: str | None = None,
        source_id: UUID | None = None,
    ) -> LineCandidate:
        """Create a deduction line.

        Policy and statutory deductions carry no rate; hours are informational.
        """
        return LineCandidate(
            category=LineCategory.DEDUCTION,
            line_type=deduction_type.value,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            hours=hours,
            source_id=source_id,
            explanation=explanation,
        )

    @staticmethod
    def create_employer_line(
        kind: ContributionKind,
        amount: Decimal,
        explanation: str | None = None,
    ) -> LineCandidate:
        """Create an employer contribution line (reported, not deducted)."""
        return LineCandidate(
            category=LineCategory.EMPLOYER_CONTRIBUTION,
            line_type=kind.value,
            amount=LineItemBuilder.round_to_cents(abs(amount)),
            explanation=explanation,
        )

    @staticmethod
    def calculate_gross_from_lines(lines: list[LineCandidate]) -> Decimal:
        """GROSS = Σ(EARNING)"""
        return sum(
            (l.amount for l in lines if l.category == LineCategory.EARNING),
            Decimal("0.00"),
        )

    @staticmethod
    def calculate_taxable_gross(lines: list[LineCandidate]) -> Decimal:
        """Gross minus non-taxable earnings."""
        return sum(
            (l.amount for l in lines if l.category == LineCategory.EARNING and l.is_taxable),
            Decimal("0.00"),
        )

    @staticmethod
    def calculate_deductions_from_lines(lines: list[LineCandidate]) -> Decimal:
        """TOTAL DEDUCTIONS = Σ(DEDUCTION)"""
        return sum(
            (l.amount for l in lines if l.category == LineCategory.DEDUCTION),
            Decimal("0.00"),
        )

    @staticmethod
    def calculate_net_from_lines(lines: list[LineCandidate]) -> Decimal:
        """NET = GROSS - TOTAL DEDUCTIONS

        Note: EMPLOYER_CONTRIBUTION is excluded from net calculation.
        """
        return LineItemBuilder.calculate_gross_from_lines(
            lines
        ) - LineItemBuilder.calculate_deductions_from_lines(lines)

    @staticmethod
    def validate_line_amounts(lines: list[LineCandidate]) -> list[str]:
        """Check amount ≈ hours * rate for every line that has both.

        Returns list of error messages (empty if all valid).
        """
        errors: list[str] = []
        for i, line in enumerate(lines):
            if line.amount < 0:
                errors.append(f"Line {i} ({line.line_type}) has negative amount {line.amount}")
            if line.hours == 0 or line.rate == 0:
                continue
            expected = line.hours * line.rate
            if abs(line.amount - expected) > LineItemBuilder.AMOUNT_TOLERANCE:
                errors.append(
                    f"Line {i} ({line.line_type}) amount {line.amount} does not match "
                    f"{line.hours} x {line.rate}"
                )
        return errors

    @staticmethod
    def sum_by_type(lines: list[LineCandidate]) -> dict[str, Decimal]:
        """Sum line amounts by line type within each category."""
        totals: dict[str, Decimal] = {}
        for line in lines:
            key = f"{line.category.value}:{line.line_type}"
            totals[key] = totals.get(key, Decimal("0")) + line.amount
        return totals
