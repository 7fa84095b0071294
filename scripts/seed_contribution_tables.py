"""Seed script for Philippine statutory tables.

Run with:
    python scripts/seed_contribution_tables.py --organization-id <uuid>

Creates the monthly withholding tax brackets and the SSS, PhilHealth and
Pag-IBIG contribution tiers for one organization. Pass --create-schema on a
fresh database to create the tables first.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hris_payroll.calculators.contributions import validate_contribution_tables
from hris_payroll.calculators.types import ContributionTier, TaxBracket
from hris_payroll.database import get_session, init_db
from hris_payroll.models import Base, ContributionTierModel, Organization, TaxBracketModel

EFFECTIVE_FROM = date(2024, 1, 1)

# Monthly withholding tax (TRAIN law, 2023 onward)
TAX_BRACKETS = [
    # (min, max, base_tax, rate)
    ("0", "20833", "0", "0"),
    ("20833", "33333", "0", "0.15"),
    ("33333", "66667", "1875", "0.20"),
    ("66667", "166667", "8541.80", "0.25"),
    ("166667", "666667", "33541.80", "0.30"),
    ("666667", None, "183541.80", "0.35"),
]

CONTRIBUTION_TIERS = {
    # kind: [(min, max, employee_rate, employer_rate, ec_rate, salary_cap, max_employee)]
    # SSS monthly salary credit ceiling ₱20,250
    "SSS": [("0", None, "0.045", "0.095", "0", "20250", None)],
    "PHILHEALTH": [("0", None, "0.025", "0.025", "0", "100000", None)],
    "PAGIBIG": [
        ("0", "1500", "0.01", "0.02", "0", None, None),
        # Pag-IBIG fund salary ceiling ₱5,000, so at most ₱100 from the employee
        ("1500", None, "0.02", "0.02", "0", "5000", "100"),
    ],
}


def _dec(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def reference_tiers(kind: str) -> list[ContributionTier]:
    return [
        ContributionTier(
            min_salary=Decimal(lo),
            max_salary=_dec(hi),
            employee_rate=Decimal(ee),
            employer_rate=Decimal(er),
            ec_rate=Decimal(ec),
            salary_cap=_dec(cap),
            max_employee_contribution=_dec(max_ee),
            effective_from=EFFECTIVE_FROM,
        )
        for lo, hi, ee, er, ec, cap, max_ee in CONTRIBUTION_TIERS[kind]
    ]


def check_tables() -> list[str]:
    """Validate the seed tables before writing them."""
    issues = validate_contribution_tables(
        [
            TaxBracket(
                min_salary=Decimal(lo),
                max_salary=_dec(hi),
                base_tax=Decimal(base),
                rate=Decimal(rate),
                effective_from=EFFECTIVE_FROM,
            )
            for lo, hi, base, rate in TAX_BRACKETS
        ],
        label="TAX",
    )
    for kind in CONTRIBUTION_TIERS:
        issues += validate_contribution_tables(reference_tiers(kind), label=kind)
    return issues


async def seed_tax_brackets(session: AsyncSession, organization_id: UUID) -> None:
    """Create the withholding tax brackets unless already present."""
    result = await session.execute(
        select(TaxBracketModel).where(
            TaxBracketModel.organization_id == organization_id,
            TaxBracketModel.effective_from == EFFECTIVE_FROM,
        )
    )
    if result.scalars().first() is not None:
        print("Tax brackets already exist, skipping...")
        return

    for lo, hi, base, rate in TAX_BRACKETS:
        session.add(
            TaxBracketModel(
                organization_id=organization_id,
                min_salary=Decimal(lo),
                max_salary=_dec(hi),
                base_tax=Decimal(base),
                rate=Decimal(rate),
                effective_from=EFFECTIVE_FROM,
            )
        )
    print(f"Created {len(TAX_BRACKETS)} tax brackets")


async def seed_contribution_tiers(session: AsyncSession, organization_id: UUID) -> None:
    """Create SSS, PhilHealth and Pag-IBIG tiers unless already present."""
    for kind, rows in CONTRIBUTION_TIERS.items():
        result = await session.execute(
            select(ContributionTierModel).where(
                ContributionTierModel.organization_id == organization_id,
                ContributionTierModel.kind == kind,
                ContributionTierModel.effective_from == EFFECTIVE_FROM,
            )
        )
        if result.scalars().first() is not None:
            print(f"{kind} tiers already exist, skipping...")
            continue

        for lo, hi, ee, er, ec, cap, max_ee in rows:
            session.add(
                ContributionTierModel(
                    organization_id=organization_id,
                    kind=kind,
                    min_salary=Decimal(lo),
                    max_salary=_dec(hi),
                    employee_rate=Decimal(ee),
                    employer_rate=Decimal(er),
                    ec_rate=Decimal(ec),
                    salary_cap=_dec(cap),
                    max_employee_contribution=_dec(max_ee),
                    effective_from=EFFECTIVE_FROM,
                )
            )
        print(f"Created {len(rows)} {kind} tiers")


async def main(organization_id: UUID, create_schema: bool) -> int:
    issues = check_tables()
    if issues:
        for issue in issues:
            print(f"Invalid seed table: {issue}", file=sys.stderr)
        return 1

    if create_schema:
        engine, _ = init_db()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        print("Schema created")

    print("Seeding statutory tables...")
    async with get_session() as session:
        if await session.get(Organization, organization_id) is None:
            print(f"Organization {organization_id} not found", file=sys.stderr)
            return 1
        await seed_tax_brackets(session, organization_id)
        await seed_contribution_tiers(session, organization_id)

    print("\nDone! Statutory tables seeded successfully.")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed statutory contribution tables")
    parser.add_argument("--organization-id", type=UUID, required=True)
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create all tables before seeding",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.organization_id, args.create_schema)))
