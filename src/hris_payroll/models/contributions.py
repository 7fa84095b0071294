"""Deduction policy and statutory contribution table models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from hris_payroll.models.base import Base, TimestampMixin


class LateDeductionPolicyModel(Base, TimestampMixin):
    """Organization late/undertime deduction policy."""

    __tablename__ = "late_deduction_policy"

    policy_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    policy_type: Mapped[str] = mapped_column(String, nullable=False)
    deduction_method: Mapped[str] = mapped_column(String, nullable=False)
    fixed_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    percentage_rate: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)
    hourly_rate_multiplier: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)
    grace_period_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    minimum_late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_deduction_per_day: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    max_deduction_per_cutoff: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "policy_type IN ('LATE', 'UNDERTIME')",
            name="late_deduction_policy_type_check",
        ),
        CheckConstraint(
            "deduction_method IN ('FIXED_AMOUNT', 'PERCENTAGE', 'HOURLY_RATE')",
            name="late_deduction_policy_method_check",
        ),
        Index("late_deduction_policy_lookup_idx", "organization_id", "policy_type", "effective_date"),
    )


class TaxBracketModel(Base, TimestampMixin):
    """Withholding tax bracket (monthly basis)."""

    __tablename__ = "tax_bracket"

    tax_bracket_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    min_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    max_salary: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    base_tax: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    excess_over: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "max_salary IS NULL OR max_salary >= min_salary",
            name="tax_bracket_band_check",
        ),
        Index("tax_bracket_lookup_idx", "organization_id", "effective_from"),
    )


class ContributionTierModel(Base, TimestampMixin):
    """SSS, PhilHealth or Pag-IBIG contribution tier (monthly basis)."""

    __tablename__ = "contribution_tier"

    tier_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(String, nullable=False)
    min_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    max_salary: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    employee_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    employer_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    ec_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False, default=Decimal("0"))
    salary_cap: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    max_employee_contribution: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "kind IN ('SSS', 'PHILHEALTH', 'PAGIBIG')",
            name="contribution_tier_kind_check",
        ),
        CheckConstraint(
            "max_salary IS NULL OR max_salary >= min_salary",
            name="contribution_tier_band_check",
        ),
        Index("contribution_tier_lookup_idx", "organization_id", "kind", "effective_from"),
    )
