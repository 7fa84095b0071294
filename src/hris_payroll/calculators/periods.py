"""Payroll period generation."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta

from hris_payroll.calculators.types import PeriodType, Weekday
from hris_payroll.errors import ValidationError

MIN_YEAR = 2000
MAX_YEAR = 2100

_WINDOW_DAYS = {PeriodType.WEEKLY: 7, PeriodType.BI_WEEKLY: 14}


@dataclass(frozen=True)
class PeriodWindow:
    """Boundaries and pay date of one generated payroll period."""

    period_type: PeriodType
    start_date: date
    end_date: date
    pay_date: date

    @property
    def year(self) -> int:
        return self.start_date.year

    @property
    def month(self) -> int:
        return self.start_date.month

    @property
    def period_number(self) -> int:
        """1-based ordinal of the window within its start month."""
        if self.period_type == PeriodType.MONTHLY:
            return 1
        if self.period_type == PeriodType.SEMI_MONTHLY:
            return 1 if self.start_date.day <= 15 else 2
        return (self.start_date.day - 1) // _WINDOW_DAYS[self.period_type] + 1

    def overlaps(self, start_date: date, end_date: date) -> bool:
        return self.start_date <= end_date and start_date <= self.end_date


def _last_day(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def _next_month(value: date) -> date:
    if value.month == 12:
        return date(value.year + 1, 1, 1)
    return date(value.year, value.month + 1, 1)


def generate_periods(
    period_type: PeriodType | str,
    start_date: date,
    end_date: date,
    pay_day_offset: int = 5,
    week_start: Weekday | str = Weekday.MONDAY,
) -> list[PeriodWindow]:
    """Generate consecutive, non-overlapping windows covering a date range.

    Every window that overlaps [start_date, end_date] is returned. The pay
    date is window end + pay_day_offset days, which places MONTHLY pay dates
    in the following month.

    Raises:
        ValidationError: Invalid range or offset.
    """
    period_type = PeriodType(period_type)
    week_start = Weekday(week_start)

    errors: dict[str, str] = {}
    if start_date > end_date:
        errors["end_date"] = "must not be before start_date"
    if pay_day_offset < 1:
        errors["pay_day_offset"] = "must be at least 1 day"
    for name, value in (("start_date", start_date), ("end_date", end_date)):
        if not MIN_YEAR <= value.year <= MAX_YEAR:
            errors[name] = f"year must be between {MIN_YEAR} and {MAX_YEAR}"
    if errors:
        raise ValidationError("Invalid period generation request", errors)

    offset = timedelta(days=pay_day_offset)
    windows: list[PeriodWindow] = []

    def add(start: date, end: date) -> None:
        window = PeriodWindow(period_type, start, end, end + offset)
        if window.overlaps(start_date, end_date):
            windows.append(window)

    if period_type in (PeriodType.MONTHLY, PeriodType.SEMI_MONTHLY):
        cursor = date(start_date.year, start_date.month, 1)
        while cursor <= end_date:
            last = _last_day(cursor.year, cursor.month)
            if period_type == PeriodType.MONTHLY:
                add(cursor, last)
            else:
                add(cursor, cursor.replace(day=15))
                add(cursor.replace(day=16), last)
            cursor = _next_month(cursor)
        return windows

    length = _WINDOW_DAYS[period_type]
    cursor = start_date - timedelta(days=(start_date.weekday() - week_start.index) % 7)
    while cursor <= end_date:
        add(cursor, cursor + timedelta(days=length - 1))
        cursor += timedelta(days=length)
    return windows


def validate_period(
    start_date: date,
    end_date: date,
    pay_date: date,
    period_number: int = 1,
) -> None:
    """Check a period's boundaries: start < end < pay date, sane years."""
    errors: dict[str, str] = {}
    if start_date >= end_date:
        errors["end_date"] = "must be after start_date"
    if end_date >= pay_date:
        errors["pay_date"] = "must be after end_date"
    if not MIN_YEAR <= start_date.year <= MAX_YEAR:
        errors["start_date"] = f"year must be between {MIN_YEAR} and {MAX_YEAR}"
    if period_number < 1:
        errors["period_number"] = "must be at least 1"
    if errors:
        raise ValidationError("Invalid payroll period", errors)


def infer_period_type(start_date: date, end_date: date) -> PeriodType:
    """Guess the period type from its length when no period record exists."""
    days = (end_date - start_date).days + 1
    if days <= 7:
        return PeriodType.WEEKLY
    if days <= 14:
        return PeriodType.BI_WEEKLY
    if days <= 16:
        return PeriodType.SEMI_MONTHLY
    return PeriodType.MONTHLY
