"""Attendance classification: clock events to daily attendance buckets."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, Sequence
from uuid import UUID

from hris_payroll.calculators.types import DayType, HolidayType, OvertimeCapPolicy
from hris_payroll.calculators.work_schedule import WorkSchedule

logger = logging.getLogger(__name__)

_HOLIDAY_DAY_TYPES = {
    HolidayType.REGULAR: DayType.REGULAR_HOLIDAY,
    HolidayType.SPECIAL: DayType.SPECIAL_HOLIDAY,
    HolidayType.DOUBLE: DayType.DOUBLE_HOLIDAY,
}


@dataclass(frozen=True)
class BreakInterval:
    start: datetime
    end: datetime | None = None


@dataclass
class ClockInterval:
    """One time entry with its breaks."""

    clock_in: datetime
    clock_out: datetime | None = None
    breaks: list[BreakInterval] = field(default_factory=list)
    entry_id: UUID | None = None

    @property
    def is_open(self) -> bool:
        return self.clock_out is None


@dataclass(frozen=True)
class DailyAttendanceOutcome:
    """Attendance buckets for one employee on one calendar date.

    excess_overtime_minutes counts minutes beyond the schedule's overtime cap.
    They are included in overtime_minutes only under OvertimeCapPolicy.PAY_ALL.
    """

    work_date: date
    day_type: DayType = DayType.REGULAR_DAY
    is_work_day: bool = False
    total_work_minutes: int = 0
    regular_minutes: int = 0
    overtime_minutes: int = 0
    excess_overtime_minutes: int = 0
    night_diff_minutes: int = 0
    late_minutes: int = 0
    undertime_minutes: int = 0
    is_absent: bool = False
    is_incomplete: bool = False
    is_leave: bool = False


@dataclass
class PeriodAttendanceTotals:
    """Daily outcomes reduced over a payroll period."""

    total_work_minutes: int = 0
    regular_minutes: int = 0
    overtime_minutes: int = 0
    excess_overtime_minutes: int = 0
    night_diff_minutes: int = 0
    late_minutes: int = 0
    undertime_minutes: int = 0
    days_present: int = 0
    days_absent: int = 0
    days_late: int = 0
    days_incomplete: int = 0

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[DailyAttendanceOutcome]) -> PeriodAttendanceTotals:
        totals = cls()
        for o in outcomes:
            totals.total_work_minutes += o.total_work_minutes
            totals.regular_minutes += o.regular_minutes
            totals.overtime_minutes += o.overtime_minutes
            totals.excess_overtime_minutes += o.excess_overtime_minutes
            totals.night_diff_minutes += o.night_diff_minutes
            totals.late_minutes += o.late_minutes
            totals.undertime_minutes += o.undertime_minutes
            if o.total_work_minutes > 0:
                totals.days_present += 1
            if o.is_absent:
                totals.days_absent += 1
            if o.late_minutes > 0:
                totals.days_late += 1
            if o.is_incomplete:
                totals.days_incomplete += 1
        return totals


# ===== Interval arithmetic =====


def truncate_to_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end (0 when end is not after start)."""
    if end <= start:
        return 0
    return int((truncate_to_minute(end) - truncate_to_minute(start)).total_seconds() // 60)


def _overlap_minutes(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> int:
    return minutes_between(max(a_start, b_start), min(a_end, b_end))


def night_minutes(
    start: datetime,
    end: datetime,
    window_start: time,
    window_end: time,
) -> int:
    """Minutes of [start, end) that fall inside the daily night window.

    The window [window_start, window_end) wraps past midnight when
    window_start >= window_end. Equivalent to counting every minute tick of
    the interval, but runs in time proportional to the days spanned.
    """
    start = truncate_to_minute(start)
    end = truncate_to_minute(end)
    if end <= start or window_start == window_end:
        return 0

    wraps = window_start > window_end
    total = 0
    day = start.date() - timedelta(days=1)
    while day <= end.date():
        w_start = datetime.combine(day, window_start)
        w_end = datetime.combine(day + timedelta(days=1) if wraps else day, window_end)
        total += _overlap_minutes(start, end, w_start, w_end)
        day += timedelta(days=1)
    return total


def _merged_breaks(interval: ClockInterval) -> list[tuple[datetime, datetime]]:
    """Closed breaks clipped to the entry and merged so none overlap."""
    if interval.clock_out is None:
        return []
    clipped: list[tuple[datetime, datetime]] = []
    for brk in interval.breaks:
        if brk.end is None:
            continue
        b_start = max(truncate_to_minute(brk.start), truncate_to_minute(interval.clock_in))
        b_end = min(truncate_to_minute(brk.end), truncate_to_minute(interval.clock_out))
        if b_end > b_start:
            clipped.append((b_start, b_end))

    clipped.sort()
    merged: list[tuple[datetime, datetime]] = []
    for b_start, b_end in clipped:
        if merged and b_start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], b_end))
        else:
            merged.append((b_start, b_end))
    return merged


def worked_minutes(interval: ClockInterval) -> int:
    """Entry length minus the breaks contained within it. Open entries count 0."""
    if interval.clock_out is None:
        return 0
    gross = minutes_between(interval.clock_in, interval.clock_out)
    breaks = sum(minutes_between(s, e) for s, e in _merged_breaks(interval))
    return max(0, gross - breaks)


def worked_night_minutes(interval: ClockInterval, window_start: time, window_end: time) -> int:
    if interval.clock_out is None:
        return 0
    total = night_minutes(interval.clock_in, interval.clock_out, window_start, window_end)
    for b_start, b_end in _merged_breaks(interval):
        total -= night_minutes(b_start, b_end, window_start, window_end)
    return max(0, total)


# ===== Classifier =====


def determine_day_type(
    work_date: date,
    schedule: WorkSchedule,
    holiday_type: HolidayType | None = None,
) -> DayType:
    if holiday_type is not None:
        return _HOLIDAY_DAY_TYPES[HolidayType(holiday_type)]
    if schedule.is_rest_day(work_date):
        return DayType.REST_DAY
    return DayType.REGULAR_DAY


class AttendanceClassifier:
    """Turns one day's clock events into a DailyAttendanceOutcome.

    Rules:
    - worked minutes = clock-out minus clock-in minus contained breaks,
      summed across every entry of the date
    - a work day with no entries that is not a holiday or leave is absent
    - overtime = minutes beyond required_work_minutes, subject to the
      schedule's overtime cap and the configured OvertimeCapPolicy
    - lateness is raw minutes after the schedule's expected clock-in; grace
      periods are applied by the deduction policy, not here
    - an entry without clock-out marks the day incomplete for manual review
    """

    def __init__(
        self,
        overtime_cap_policy: OvertimeCapPolicy = OvertimeCapPolicy.CAP_AND_LOG,
        force_absence_on_incomplete: bool = False,
    ):
        self.overtime_cap_policy = OvertimeCapPolicy(overtime_cap_policy)
        self.force_absence_on_incomplete = force_absence_on_incomplete

    def classify_day(
        self,
        work_date: date,
        intervals: Sequence[ClockInterval],
        schedule: WorkSchedule,
        holiday_type: HolidayType | None = None,
        is_leave: bool = False,
    ) -> DailyAttendanceOutcome:
        day_type = determine_day_type(work_date, schedule, holiday_type)
        is_work_day = schedule.is_work_day(work_date) and not day_type.is_holiday

        if not intervals:
            return DailyAttendanceOutcome(
                work_date=work_date,
                day_type=day_type,
                is_work_day=is_work_day,
                is_absent=is_work_day and not is_leave,
                is_leave=is_leave,
            )

        is_incomplete = any(i.is_open for i in intervals)
        total = sum(worked_minutes(i) for i in intervals)
        night = sum(
            worked_night_minutes(i, schedule.night_shift_start, schedule.night_shift_end)
            for i in intervals
        )

        overtime = max(0, total - schedule.required_work_minutes)
        regular = total - overtime
        excess = max(0, overtime - schedule.max_overtime_minutes)
        if excess:
            if self.overtime_cap_policy == OvertimeCapPolicy.CAP_AND_LOG:
                overtime -= excess
                logger.warning(
                    "Overtime on %s exceeds cap by %d minutes; excess not paid",
                    work_date,
                    excess,
                )
            else:
                logger.info("Overtime on %s exceeds cap by %d minutes", work_date, excess)

        late = 0
        expected = schedule.expected_clock_in(work_date)
        if is_work_day and expected is not None:
            first_clock_in = min(i.clock_in for i in intervals)
            late = minutes_between(expected, first_clock_in)

        undertime = 0
        if is_work_day and not is_incomplete:
            undertime = max(0, schedule.required_work_minutes - total)

        is_absent = False
        if is_incomplete and self.force_absence_on_incomplete and is_work_day and total == 0:
            is_absent = True

        return DailyAttendanceOutcome(
            work_date=work_date,
            day_type=day_type,
            is_work_day=is_work_day,
            total_work_minutes=total,
            regular_minutes=regular,
            overtime_minutes=overtime,
            excess_overtime_minutes=excess,
            night_diff_minutes=night,
            late_minutes=late,
            undertime_minutes=undertime,
            is_absent=is_absent,
            is_incomplete=is_incomplete,
            is_leave=is_leave,
        )
