"""Organization, employee, compensation and calendar models."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hris_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from hris_payroll.models.attendance import TimeEntry

DEFAULT_WORK_DAYS = ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY")
DEFAULT_REST_DAYS = ("SATURDAY", "SUNDAY")


class Organization(Base, TimestampMixin):
    """Tenant organization; every other record is scoped to one."""

    __tablename__ = "organization"

    organization_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)

    # Relationships
    departments: Mapped[list[Department]] = relationship(back_populates="organization")
    employees: Mapped[list[Employee]] = relationship(back_populates="organization")


class Department(Base, TimestampMixin):
    """Department within an organization."""

    __tablename__ = "department"

    department_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="department_org_name_unique"),
    )

    # Relationships
    organization: Mapped[Organization] = relationship(back_populates="departments")


class Employee(Base, TimestampMixin):
    """Employee record."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("department.department_id", ondelete="SET NULL"),
        nullable=True,
    )
    employee_number: Mapped[str] = mapped_column(String, nullable=False)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="ACTIVE")
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "employee_number", name="employee_org_number_unique"),
        CheckConstraint(
            "status IN ('ACTIVE', 'INACTIVE', 'TERMINATED')",
            name="employee_status_check",
        ),
    )

    # Relationships
    organization: Mapped[Organization] = relationship(back_populates="employees")
    department: Mapped[Department | None] = relationship()
    compensations: Mapped[list[Compensation]] = relationship(back_populates="employee")
    time_entries: Mapped[list[TimeEntry]] = relationship(back_populates="employee")

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"


class Compensation(Base, TimestampMixin):
    """Date-effective compensation record; owns one work schedule."""

    __tablename__ = "compensation"

    compensation_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    base_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reason: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("base_salary >= 0", name="compensation_salary_check"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= effective_date",
            name="compensation_dates_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="compensations")
    work_schedule: Mapped[WorkScheduleModel | None] = relationship(
        back_populates="compensation",
        uselist=False,
        cascade="all, delete-orphan",
    )


class WorkScheduleModel(Base, TimestampMixin):
    """Persisted work schedule configuration for one compensation record."""

    __tablename__ = "work_schedule"

    work_schedule_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    compensation_id: Mapped[UUID] = mapped_column(
        ForeignKey("compensation.compensation_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    schedule_type: Mapped[str] = mapped_column(String, nullable=False, default="FIXED")

    # FIXED
    default_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    default_end: Mapped[time | None] = mapped_column(Time, nullable=True)

    # FLEXIBLE
    core_hours_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    core_hours_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    total_hours_per_week: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    min_hours_per_day: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    max_hours_per_day: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    can_log_any_hours: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # ROTATING
    rotation_pattern: Mapped[str | None] = mapped_column(String, nullable=True)
    shift_groups: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    # HYBRID
    office_days: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    remote_days: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    work_days: Mapped[list[Any]] = mapped_column(
        JSON, nullable=False, default=lambda: list(DEFAULT_WORK_DAYS)
    )
    rest_days: Mapped[list[Any]] = mapped_column(
        JSON, nullable=False, default=lambda: list(DEFAULT_REST_DAYS)
    )
    night_shift_start: Mapped[time] = mapped_column(Time, nullable=False, default=time(22, 0))
    night_shift_end: Mapped[time] = mapped_column(Time, nullable=False, default=time(6, 0))

    overtime_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False, default=Decimal("1.25"))
    rest_day_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False, default=Decimal("1.30"))
    holiday_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False, default=Decimal("1.30"))
    special_holiday_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 4), nullable=False, default=Decimal("1.30")
    )
    double_holiday_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 4), nullable=False, default=Decimal("2.00")
    )
    night_diff_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False, default=Decimal("0.10"))

    grace_period_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    required_work_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=480)
    max_regular_hours: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("8"))
    max_overtime_hours: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("3"))
    allow_late_deduction: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    is_monthly_rate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    monthly_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    daily_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 4), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "schedule_type IN ('FIXED', 'FLEXIBLE', 'ROTATING', 'HYBRID')",
            name="work_schedule_type_check",
        ),
        CheckConstraint("grace_period_minutes >= 0", name="work_schedule_grace_check"),
        CheckConstraint("required_work_minutes > 0", name="work_schedule_required_check"),
    )

    # Relationships
    compensation: Mapped[Compensation] = relationship(back_populates="work_schedule")


class Holiday(Base, TimestampMixin):
    """Organization holiday calendar entry."""

    __tablename__ = "holiday"

    holiday_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    holiday_type: Mapped[str] = mapped_column(String, nullable=False, default="REGULAR")

    __table_args__ = (
        UniqueConstraint("organization_id", "holiday_date", name="holiday_org_date_unique"),
        CheckConstraint(
            "holiday_type IN ('REGULAR', 'SPECIAL', 'DOUBLE')",
            name="holiday_type_check",
        ),
    )


class LeaveRequest(Base, TimestampMixin):
    """Leave request; approved leave days are never absences."""

    __tablename__ = "leave_request"

    leave_request_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type: Mapped[str] = mapped_column(String, nullable=False, default="VACATION")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="leave_request_dates_check"),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name="leave_request_status_check",
        ),
    )


class EarningAdjustment(Base, TimestampMixin):
    """Flat allowance or bonus dated inside a period."""

    __tablename__ = "earning_adjustment"

    adjustment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    earning_type: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "earning_type IN ('ALLOWANCE', 'BONUS')",
            name="earning_adjustment_type_check",
        ),
        CheckConstraint("amount >= 0", name="earning_adjustment_amount_check"),
    )
