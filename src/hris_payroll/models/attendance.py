"""Time entry, break and overtime request models."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hris_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from hris_payroll.models.organization import Employee


class TimeEntry(Base, TimestampMixin):
    """One clock-in/clock-out interval for an employee."""

    __tablename__ = "time_entry"

    time_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    clock_in_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    clock_out_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    total_work_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="OPEN")

    __table_args__ = (
        CheckConstraint("status IN ('OPEN', 'CLOSED')", name="time_entry_status_check"),
        CheckConstraint(
            "clock_out_at IS NULL OR clock_out_at >= clock_in_at",
            name="time_entry_order_check",
        ),
        # At most one open entry per employee
        Index(
            "time_entry_one_open_per_employee",
            "employee_id",
            unique=True,
            postgresql_where=text("status = 'OPEN'"),
            sqlite_where=text("status = 'OPEN'"),
        ),
        Index("time_entry_employee_date_idx", "employee_id", "work_date"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="time_entries")
    breaks: Mapped[list[TimeBreak]] = relationship(
        back_populates="time_entry",
        cascade="all, delete-orphan",
        order_by="TimeBreak.start_at",
    )

    @property
    def is_open(self) -> bool:
        return self.status == "OPEN"


class TimeBreak(Base):
    """Break taken inside a time entry."""

    __tablename__ = "time_break"

    time_break_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    time_entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("time_entry.time_entry_id", ondelete="CASCADE"),
        nullable=False,
    )
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Relationships
    time_entry: Mapped[TimeEntry] = relationship(back_populates="breaks")


class OvertimeRequest(Base, TimestampMixin):
    """Overtime requested for a work date; only approved minutes are payable."""

    __tablename__ = "overtime_request"

    overtime_request_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    requested_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    approved_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    reason: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_by_user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'CANCELLED')",
            name="overtime_request_status_check",
        ),
        CheckConstraint(
            "requested_minutes BETWEEN 1 AND 1440",
            name="overtime_request_minutes_check",
        ),
        CheckConstraint(
            "approved_minutes IS NULL OR approved_minutes BETWEEN 0 AND requested_minutes",
            name="overtime_request_approved_check",
        ),
        Index("overtime_request_employee_date_idx", "employee_id", "work_date"),
    )
