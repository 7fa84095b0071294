"""Work schedule model, validation and date-effective resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Sequence, Union
from uuid import UUID

from hris_payroll.calculators.types import DayType, RateTable, ScheduleType, Weekday
from hris_payroll.errors import ConfigurationMissingError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_WORK_DAYS = frozenset(
    {Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY}
)
DEFAULT_REST_DAYS = frozenset({Weekday.SATURDAY, Weekday.SUNDAY})


# ===== Shift variants (one per schedule type) =====


@dataclass(frozen=True)
class FixedShift:
    start: time
    end: time

    def expected_clock_in(self) -> time | None:
        return self.start


@dataclass(frozen=True)
class FlexibleShift:
    core_start: time
    core_end: time
    total_hours_per_week: Decimal
    min_hours_per_day: Decimal | None = None
    max_hours_per_day: Decimal | None = None
    can_log_any_hours: bool = False

    def expected_clock_in(self) -> time | None:
        # Employees who may log any hours are never late
        return None if self.can_log_any_hours else self.core_start


@dataclass(frozen=True)
class ShiftGroup:
    name: str
    start: time
    end: time


@dataclass(frozen=True)
class RotatingShift:
    rotation_pattern: str
    shift_groups: tuple[ShiftGroup, ...]
    start: time | None = None

    def expected_clock_in(self) -> time | None:
        return self.start


@dataclass(frozen=True)
class HybridShift:
    office_days: frozenset[Weekday]
    remote_days: frozenset[Weekday]
    start: time | None = None
    end: time | None = None

    def expected_clock_in(self) -> time | None:
        return self.start


Shift = Union[FixedShift, FlexibleShift, RotatingShift, HybridShift]

_SHIFT_TYPES: dict[type, ScheduleType] = {
    FixedShift: ScheduleType.FIXED,
    FlexibleShift: ScheduleType.FLEXIBLE,
    RotatingShift: ScheduleType.ROTATING,
    HybridShift: ScheduleType.HYBRID,
}


def build_shift(
    schedule_type: ScheduleType | str,
    *,
    default_start: time | None = None,
    default_end: time | None = None,
    core_hours_start: time | None = None,
    core_hours_end: time | None = None,
    total_hours_per_week: Decimal | None = None,
    min_hours_per_day: Decimal | None = None,
    max_hours_per_day: Decimal | None = None,
    can_log_any_hours: bool = False,
    rotation_pattern: str | None = None,
    shift_groups: Sequence[dict] | None = None,
    office_days: Sequence[Weekday | str] | None = None,
    remote_days: Sequence[Weekday | str] | None = None,
) -> Shift:
    """Build the shift variant for a schedule type from flat column values.

    Raises ValidationError naming every missing or inconsistent field.
    """
    schedule_type = ScheduleType(schedule_type)
    errors: dict[str, str] = {}

    if schedule_type == ScheduleType.FIXED:
        if default_start is None:
            errors["default_start"] = "required for FIXED schedules"
        if default_end is None:
            errors["default_end"] = "required for FIXED schedules"
        if default_start is not None and default_start == default_end:
            errors["default_end"] = "must differ from default_start"
        if errors:
            raise ValidationError("Invalid FIXED schedule", errors)
        return FixedShift(start=default_start, end=default_end)

    if schedule_type == ScheduleType.FLEXIBLE:
        if core_hours_start is None:
            errors["core_hours_start"] = "required for FLEXIBLE schedules"
        if core_hours_end is None:
            errors["core_hours_end"] = "required for FLEXIBLE schedules"
        if core_hours_start and core_hours_end and core_hours_start >= core_hours_end:
            errors["core_hours_end"] = "must be after core_hours_start"
        if total_hours_per_week is None or total_hours_per_week <= 0:
            errors["total_hours_per_week"] = "required and must be positive"
        if (
            min_hours_per_day is not None
            and max_hours_per_day is not None
            and min_hours_per_day > max_hours_per_day
        ):
            errors["min_hours_per_day"] = "cannot exceed max_hours_per_day"
        if errors:
            raise ValidationError("Invalid FLEXIBLE schedule", errors)
        return FlexibleShift(
            core_start=core_hours_start,
            core_end=core_hours_end,
            total_hours_per_week=Decimal(total_hours_per_week),
            min_hours_per_day=min_hours_per_day,
            max_hours_per_day=max_hours_per_day,
            can_log_any_hours=can_log_any_hours,
        )

    if schedule_type == ScheduleType.ROTATING:
        if not rotation_pattern:
            errors["rotation_pattern"] = "required for ROTATING schedules"
        groups: list[ShiftGroup] = []
        for i, raw in enumerate(shift_groups or []):
            try:
                groups.append(
                    ShiftGroup(
                        name=str(raw.get("name") or f"Shift {i + 1}"),
                        start=_as_time(raw["start"]),
                        end=_as_time(raw["end"]),
                    )
                )
            except (KeyError, ValueError, TypeError):
                errors[f"shift_groups[{i}]"] = "needs a valid start and end"
        if not groups and "shift_groups" not in errors:
            errors["shift_groups"] = "at least one shift group is required"
        if errors:
            raise ValidationError("Invalid ROTATING schedule", errors)
        return RotatingShift(
            rotation_pattern=rotation_pattern,
            shift_groups=tuple(groups),
            start=default_start,
        )

    office = frozenset(Weekday(d) for d in office_days or [])
    remote = frozenset(Weekday(d) for d in remote_days or [])
    if not office:
        errors["office_days"] = "required for HYBRID schedules"
    if not remote:
        errors["remote_days"] = "required for HYBRID schedules"
    if office & remote:
        errors["remote_days"] = "cannot overlap office_days"
    if errors:
        raise ValidationError("Invalid HYBRID schedule", errors)
    return HybridShift(office_days=office, remote_days=remote, start=default_start, end=default_end)


def _as_time(value: time | str) -> time:
    if isinstance(value, time):
        return value
    return time.fromisoformat(value)


# ===== Work schedule =====


@dataclass(frozen=True)
class WorkSchedule:
    """Expected hours, rate multipliers and pay rate for one compensation."""

    shift: Shift
    work_days: frozenset[Weekday] = DEFAULT_WORK_DAYS
    rest_days: frozenset[Weekday] = DEFAULT_REST_DAYS
    night_shift_start: time = time(22, 0)
    night_shift_end: time = time(6, 0)
    overtime_rate: Decimal = Decimal("1.25")
    rest_day_rate: Decimal = Decimal("1.30")
    holiday_rate: Decimal = Decimal("1.30")
    special_holiday_rate: Decimal = Decimal("1.30")
    double_holiday_rate: Decimal = Decimal("2.00")
    night_diff_rate: Decimal = Decimal("0.10")
    grace_period_minutes: int = 0
    required_work_minutes: int = 480
    max_regular_hours: Decimal = Decimal("8")
    max_overtime_hours: Decimal = Decimal("3")
    allow_late_deduction: bool = True
    is_monthly_rate: bool = True
    monthly_rate: Decimal | None = None
    daily_rate: Decimal | None = None
    hourly_rate: Decimal | None = None
    schedule_id: UUID | None = None

    @property
    def schedule_type(self) -> ScheduleType:
        return _SHIFT_TYPES[type(self.shift)]

    @property
    def max_overtime_minutes(self) -> int:
        return int(self.max_overtime_hours * 60)

    def is_work_day(self, on_date: date) -> bool:
        return Weekday.from_date(on_date) in self.work_days

    def is_rest_day(self, on_date: date) -> bool:
        return Weekday.from_date(on_date) in self.rest_days

    def expected_clock_in(self, on_date: date) -> datetime | None:
        """Expected clock-in on a date, or None when lateness does not apply."""
        start = self.shift.expected_clock_in()
        if start is None:
            return None
        return datetime.combine(on_date, start)

    def premium_multiplier(self, day_type: DayType) -> Decimal:
        """Multiplier applied to regular minutes worked on a given day type."""
        if day_type == DayType.REST_DAY:
            return self.rest_day_rate
        if day_type == DayType.REGULAR_HOLIDAY:
            return self.holiday_rate
        if day_type == DayType.SPECIAL_HOLIDAY:
            return self.special_holiday_rate
        if day_type == DayType.DOUBLE_HOLIDAY:
            return self.double_holiday_rate
        return Decimal("1")

    def hours_per_day(self, default_hours: int = 8) -> Decimal:
        if isinstance(self.shift, FlexibleShift) and self.work_days:
            return self.shift.total_hours_per_week / len(self.work_days)
        return Decimal(default_hours)

    def rate_table(
        self,
        working_days_per_month: int = 22,
        hours_per_day: int = 8,
        fallback_monthly: Decimal | None = None,
    ) -> RateTable:
        """Derive monthly/daily/hourly rates from the authoritative one.

        Monthly schedules use monthly_rate (or the compensation base salary);
        others use daily_rate, then hourly_rate.
        """
        days = Decimal(working_days_per_month)
        hours = self.hours_per_day(hours_per_day)

        if self.is_monthly_rate:
            monthly = self.monthly_rate or fallback_monthly
            if monthly:
                daily = monthly / days
                return RateTable(monthly=monthly, daily=daily, hourly=daily / hours)
        if self.daily_rate:
            return RateTable(
                monthly=self.daily_rate * days,
                daily=self.daily_rate,
                hourly=self.daily_rate / hours,
            )
        if self.hourly_rate:
            daily = self.hourly_rate * hours
            return RateTable(monthly=daily * days, daily=daily, hourly=self.hourly_rate)
        if fallback_monthly:
            daily = fallback_monthly / days
            return RateTable(monthly=fallback_monthly, daily=daily, hourly=daily / hours)

        raise ValidationError(
            "Work schedule has no authoritative pay rate",
            {"monthly_rate": "one of monthly_rate, daily_rate or hourly_rate is required"},
        )

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        data = _canonical_fields(self)
        data["shift"] = _canonical_fields(self.shift)
        data["schedule_type"] = self.schedule_type.value
        return data

    def validate(self) -> None:
        """Validate cross-field invariants, raising ValidationError."""
        errors = collect_schedule_errors(self)
        if errors:
            raise ValidationError("Invalid work schedule", errors)


def _canonical_fields(obj: Any) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, frozenset):
            data[f.name] = sorted(d.value for d in value)
        elif isinstance(value, (bool, int)) or value is None:
            data[f.name] = value
        else:
            data[f.name] = str(value)
    return data


def collect_schedule_errors(schedule: WorkSchedule) -> dict[str, str]:
    """Return field-level errors for a schedule (empty when valid)."""
    errors: dict[str, str] = {}

    if not schedule.work_days:
        errors["work_days"] = "at least one work day is required"
    overlap = schedule.work_days & schedule.rest_days
    if overlap:
        days = ", ".join(sorted(d.value for d in overlap))
        errors["rest_days"] = f"cannot overlap work_days ({days})"

    for name in (
        "overtime_rate",
        "rest_day_rate",
        "holiday_rate",
        "special_holiday_rate",
        "double_holiday_rate",
        "night_diff_rate",
    ):
        if getattr(schedule, name) <= 0:
            errors[name] = "must be positive"

    if schedule.grace_period_minutes < 0:
        errors["grace_period_minutes"] = "cannot be negative"
    if schedule.required_work_minutes <= 0:
        errors["required_work_minutes"] = "must be positive"
    if schedule.max_overtime_hours < 0:
        errors["max_overtime_hours"] = "cannot be negative"

    rate_names = ("monthly_rate", "daily_rate", "hourly_rate")
    for name in rate_names:
        value = getattr(schedule, name)
        if value is not None and value <= 0:
            errors[name] = "must be positive when set"
    if sum(getattr(schedule, name) is not None for name in rate_names) > 1:
        errors["rates"] = "set only one of monthly_rate, daily_rate, hourly_rate"

    if isinstance(schedule.shift, HybridShift):
        outside = (schedule.shift.office_days | schedule.shift.remote_days) - schedule.work_days
        if outside:
            errors["office_days"] = "office and remote days must be work days"

    return errors


# ===== Compensation resolution =====


@dataclass
class CompensationRecord:
    """A date-effective compensation with its work schedule."""

    compensation_id: UUID
    employee_id: UUID
    effective_date: date
    base_salary: Decimal
    schedule: WorkSchedule | None
    end_date: date | None = None
    is_active: bool = True

    def is_effective_on(self, on_date: date) -> bool:
        if not self.is_active or self.effective_date > on_date:
            return False
        return self.end_date is None or self.end_date >= on_date


@dataclass(frozen=True)
class ResolvedSchedule:
    """The schedule and rate table in force for an employee on a date."""

    compensation_id: UUID
    schedule: WorkSchedule
    rates: RateTable


@dataclass
class ScheduleResolver:
    """Resolves the single authoritative work schedule for an employee.

    Selection: among active compensations effective on the date, the one with
    the latest effective_date wins. Overlapping ranges are logged, not fatal.
    """

    employee_id: UUID
    compensations: list[CompensationRecord]
    organization_id: UUID | None = None
    working_days_per_month: int = 22
    hours_per_day: int = 8
    _cache: dict[UUID, ResolvedSchedule] = field(default_factory=dict, repr=False)

    def resolve(self, on_date: date) -> ResolvedSchedule:
        """Resolve the schedule on a date.

        Raises:
            ConfigurationMissingError: No compensation with a schedule applies.
        """
        candidates = [c for c in self.compensations if c.is_effective_on(on_date)]
        if not candidates:
            raise ConfigurationMissingError(
                "work schedule",
                self.organization_id,
                on_date,
                f"employee {self.employee_id} has no active compensation",
            )

        candidates.sort(key=lambda c: (c.effective_date, str(c.compensation_id)))
        chosen = candidates[-1]
        if len(candidates) > 1:
            logger.warning(
                "Overlapping compensations for employee %s on %s; using %s",
                self.employee_id,
                on_date,
                chosen.compensation_id,
            )

        if chosen.schedule is None:
            raise ConfigurationMissingError(
                "work schedule",
                self.organization_id,
                on_date,
                f"compensation {chosen.compensation_id} has no work schedule",
            )

        cached = self._cache.get(chosen.compensation_id)
        if cached is not None:
            return cached

        rates = chosen.schedule.rate_table(
            working_days_per_month=self.working_days_per_month,
            hours_per_day=self.hours_per_day,
            fallback_monthly=chosen.base_salary,
        )
        resolved = ResolvedSchedule(
            compensation_id=chosen.compensation_id,
            schedule=chosen.schedule,
            rates=rates,
        )
        self._cache[chosen.compensation_id] = resolved
        return resolved

    def try_resolve(self, on_date: date) -> ResolvedSchedule | None:
        try:
            return self.resolve(on_date)
        except ConfigurationMissingError:
            return None
