"""Payroll period, payroll record, line item and audit models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hris_payroll.models.base import Base, TimestampMixin

# ===== Periods =====


class PayrollPeriod(Base, TimestampMixin):
    """Organization payroll period (cutoff)."""

    __tablename__ = "payroll_period"

    payroll_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    period_type: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "start_date", "end_date", name="payroll_period_org_range_unique"
        ),
        CheckConstraint("start_date <= end_date", name="payroll_period_range_check"),
        CheckConstraint("pay_date > end_date", name="payroll_period_pay_date_check"),
        CheckConstraint(
            "period_type IN ('MONTHLY', 'SEMI_MONTHLY', 'BI_WEEKLY', 'WEEKLY')",
            name="payroll_period_type_check",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'CANCELLED')",
            name="payroll_period_status_check",
        ),
    )


# ===== Payroll =====


class Payroll(Base, TimestampMixin):
    """Payroll record: root aggregate for one employee and one period."""

    __tablename__ = "payroll"

    payroll_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_period.payroll_period_id", ondelete="RESTRICT"),
        nullable=True,
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")

    gross_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    net_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    taxable_income: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    employer_contributions: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    # Reproducibility
    calculation_id: Mapped[UUID | None] = mapped_column(nullable=True)
    inputs_fingerprint: Mapped[str | None] = mapped_column(String, nullable=True)
    rules_fingerprint: Mapped[str | None] = mapped_column(String, nullable=True)
    engine_version: Mapped[str | None] = mapped_column(String, nullable=True)

    warnings: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    attendance_summary: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    computed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    void_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'COMPUTED', 'APPROVED', 'RELEASED', 'VOIDED')",
            name="payroll_status_check",
        ),
        CheckConstraint(
            "status != 'VOIDED' OR void_reason IS NOT NULL",
            name="payroll_void_reason_check",
        ),
        # One live payroll per employee and period
        Index(
            "payroll_one_live_per_employee_period",
            "employee_id",
            "period_start",
            "period_end",
            unique=True,
            postgresql_where=text("status != 'VOIDED'"),
            sqlite_where=text("status != 'VOIDED'"),
        ),
    )

    # Relationships
    line_items: Mapped[list[PayrollLineItem]] = relationship(
        back_populates="payroll",
        cascade="all, delete-orphan",
        order_by="PayrollLineItem.sequence",
    )
    period: Mapped[PayrollPeriod | None] = relationship()

    @property
    def earnings(self) -> list[PayrollLineItem]:
        return [l for l in self.line_items if l.category == "EARNING"]

    @property
    def deductions(self) -> list[PayrollLineItem]:
        return [l for l in self.line_items if l.category == "DEDUCTION"]


class PayrollLineItem(Base, TimestampMixin):
    """Earning, deduction or employer-contribution line of a payroll."""

    __tablename__ = "payroll_line_item"

    line_item_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll.payroll_id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category: Mapped[str] = mapped_column(String, nullable=False)
    line_type: Mapped[str] = mapped_column(String, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False, default=Decimal("0"))
    rate: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False, default=Decimal("0"))
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    source_id: Mapped[UUID | None] = mapped_column(nullable=True)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    line_hash: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "category IN ('EARNING', 'DEDUCTION', 'EMPLOYER_CONTRIBUTION')",
            name="payroll_line_item_category_check",
        ),
        CheckConstraint("amount >= 0", name="payroll_line_item_amount_check"),
    )

    # Relationships
    payroll: Mapped[Payroll] = relationship(back_populates="line_items")


# ===== Audit =====


class AuditEvent(Base):
    """Audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID | None] = mapped_column(nullable=True)
    actor_user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.now,
    )
