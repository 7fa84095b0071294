"""Tests for the statutory reference tables shipped with the seed script."""

import importlib.util
from datetime import date
from decimal import Decimal
from pathlib import Path

from hris_payroll.calculators.contributions import ContributionCalculator
from hris_payroll.calculators.types import ContributionKind, ContributionTables

SEED_SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "seed_contribution_tables.py"

_spec = importlib.util.spec_from_file_location("seed_contribution_tables", SEED_SCRIPT)
seed = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(seed)

ON_DATE = date(2024, 1, 15)


def reference_calculator() -> ContributionCalculator:
    return ContributionCalculator(
        ContributionTables(
            sss=seed.reference_tiers("SSS"),
            philhealth=seed.reference_tiers("PHILHEALTH"),
            pagibig=seed.reference_tiers("PAGIBIG"),
        )
    )


class TestReferenceTables:
    def test_tables_validate_cleanly(self):
        assert seed.check_tables() == []

    def test_sss_credit_capped_at_20250(self):
        result = reference_calculator().compute_tiered(ContributionKind.SSS, Decimal("30000"), ON_DATE)

        assert result.base == Decimal("20250")
        assert result.employee_amount == Decimal("911.25")
        assert result.employer_amount == Decimal("1923.75")

    def test_pagibig_capped_at_5000(self):
        calc = reference_calculator()

        high = calc.compute_tiered(ContributionKind.PAGIBIG, Decimal("30000"), ON_DATE)
        low = calc.compute_tiered(ContributionKind.PAGIBIG, Decimal("1000"), ON_DATE)

        assert high.base == Decimal("5000")
        assert high.employee_amount == Decimal("100")
        assert low.employee_amount == Decimal("10")
