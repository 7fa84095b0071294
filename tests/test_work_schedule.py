"""Tests for work schedule validation and resolution."""

from datetime import date, time
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, strategies as st

from hris_payroll.calculators.types import DayType, ScheduleType, Weekday
from hris_payroll.calculators.work_schedule import (
    CompensationRecord,
    ScheduleResolver,
    WorkSchedule,
    build_shift,
    collect_schedule_errors,
)
from hris_payroll.errors import ConfigurationMissingError, ValidationError


def fixed_schedule(**overrides) -> WorkSchedule:
    values = {
        "shift": build_shift("FIXED", default_start=time(9, 0), default_end=time(18, 0)),
        "monthly_rate": Decimal("22000"),
    }
    values.update(overrides)
    return WorkSchedule(**values)


class TestBuildShift:
    """Schedule-type specific required fields."""

    def test_fixed_requires_start_and_end(self):
        with pytest.raises(ValidationError) as exc_info:
            build_shift(ScheduleType.FIXED, default_start=time(9, 0))

        assert "default_end" in exc_info.value.field_errors

    def test_fixed_start_and_end_must_differ(self):
        with pytest.raises(ValidationError) as exc_info:
            build_shift("FIXED", default_start=time(9, 0), default_end=time(9, 0))

        assert exc_info.value.field_errors["default_end"] == "must differ from default_start"

    def test_fixed_overnight_shift(self):
        shift = build_shift("FIXED", default_start=time(22, 0), default_end=time(6, 0))

        assert shift.start == time(22, 0)
        assert shift.end == time(6, 0)
        assert shift.expected_clock_in() == time(22, 0)

    def test_fixed_expected_clock_in_is_start(self):
        shift = build_shift("FIXED", default_start=time(8, 30), default_end=time(17, 30))
        assert shift.expected_clock_in() == time(8, 30)

    def test_flexible_requires_core_hours_and_weekly_target(self):
        with pytest.raises(ValidationError) as exc_info:
            build_shift("FLEXIBLE")

        errors = exc_info.value.field_errors
        assert set(errors) == {"core_hours_start", "core_hours_end", "total_hours_per_week"}

    def test_flexible_log_any_hours_has_no_expected_clock_in(self):
        shift = build_shift(
            "FLEXIBLE",
            core_hours_start=time(10, 0),
            core_hours_end=time(15, 0),
            total_hours_per_week=Decimal("40"),
            can_log_any_hours=True,
        )
        assert shift.expected_clock_in() is None

    def test_flexible_expected_clock_in_is_core_start(self):
        shift = build_shift(
            "FLEXIBLE",
            core_hours_start=time(10, 0),
            core_hours_end=time(15, 0),
            total_hours_per_week=Decimal("40"),
        )
        assert shift.expected_clock_in() == time(10, 0)

    def test_rotating_requires_pattern_and_group(self):
        with pytest.raises(ValidationError) as exc_info:
            build_shift("ROTATING")

        assert set(exc_info.value.field_errors) == {"rotation_pattern", "shift_groups"}

    def test_rotating_parses_shift_groups(self):
        shift = build_shift(
            "ROTATING",
            rotation_pattern="WEEKLY",
            shift_groups=[{"name": "Night", "start": "22:00", "end": "06:00"}],
        )
        assert shift.shift_groups[0].start == time(22, 0)

    def test_rotating_rejects_malformed_group(self):
        with pytest.raises(ValidationError) as exc_info:
            build_shift("ROTATING", rotation_pattern="WEEKLY", shift_groups=[{"name": "A"}])

        assert "shift_groups[0]" in exc_info.value.field_errors

    def test_hybrid_days_must_not_overlap(self):
        with pytest.raises(ValidationError) as exc_info:
            build_shift(
                "HYBRID",
                office_days=["MONDAY", "TUESDAY"],
                remote_days=["TUESDAY"],
            )

        assert "remote_days" in exc_info.value.field_errors


class TestScheduleValidation:
    """Cross-field schedule invariants."""

    def test_default_schedule_is_valid(self):
        fixed_schedule().validate()

    def test_work_and_rest_days_overlap_rejected(self):
        schedule = fixed_schedule(
            work_days=frozenset({Weekday.MONDAY, Weekday.SATURDAY}),
            rest_days=frozenset({Weekday.SATURDAY, Weekday.SUNDAY}),
        )
        with pytest.raises(ValidationError) as exc_info:
            schedule.validate()

        assert "SATURDAY" in exc_info.value.field_errors["rest_days"]

    def test_non_positive_rates_rejected(self):
        errors = collect_schedule_errors(
            fixed_schedule(overtime_rate=Decimal("0"), night_diff_rate=Decimal("-0.1"))
        )
        assert errors["overtime_rate"] == "must be positive"
        assert errors["night_diff_rate"] == "must be positive"

    def test_only_one_authoritative_rate(self):
        errors = collect_schedule_errors(fixed_schedule(daily_rate=Decimal("1000")))

        assert errors == {"rates": "set only one of monthly_rate, daily_rate, hourly_rate"}

    def test_schedule_without_rate_is_valid(self):
        assert collect_schedule_errors(fixed_schedule(monthly_rate=None)) == {}

    def test_negative_grace_and_zero_required_minutes_rejected(self):
        errors = collect_schedule_errors(
            fixed_schedule(grace_period_minutes=-1, required_work_minutes=0)
        )
        assert set(errors) >= {"grace_period_minutes", "required_work_minutes"}

    @given(
        work=st.frozensets(st.sampled_from(list(Weekday)), min_size=1),
        rest=st.frozensets(st.sampled_from(list(Weekday))),
    )
    def test_accepted_schedules_never_share_work_and_rest_days(self, work, rest):
        schedule = fixed_schedule(work_days=work, rest_days=rest)
        errors = collect_schedule_errors(schedule)

        if work & rest:
            assert "rest_days" in errors
        else:
            assert errors == {}


class TestRateTable:
    """Monthly/daily/hourly derivation with the 22-day, 8-hour divisors."""

    def test_monthly_rate(self):
        rates = fixed_schedule().rate_table()

        assert rates.monthly == Decimal("22000")
        assert rates.daily == Decimal("1000")
        assert rates.hourly == Decimal("125")

    def test_daily_rate(self):
        rates = fixed_schedule(
            is_monthly_rate=False, monthly_rate=None, daily_rate=Decimal("800")
        ).rate_table()

        assert rates.monthly == Decimal("17600")
        assert rates.hourly == Decimal("100")

    def test_hourly_rate(self):
        rates = fixed_schedule(
            is_monthly_rate=False, monthly_rate=None, hourly_rate=Decimal("100")
        ).rate_table()

        assert rates.daily == Decimal("800")
        assert rates.monthly == Decimal("17600")

    def test_falls_back_to_base_salary(self):
        rates = fixed_schedule(monthly_rate=None).rate_table(fallback_monthly=Decimal("44000"))
        assert rates.daily == Decimal("2000")

    def test_no_rate_at_all_raises(self):
        with pytest.raises(ValidationError):
            fixed_schedule(monthly_rate=None).rate_table()

    def test_flexible_hours_per_day_follow_weekly_target(self):
        shift = build_shift(
            "FLEXIBLE",
            core_hours_start=time(10, 0),
            core_hours_end=time(15, 0),
            total_hours_per_week=Decimal("45"),
        )
        schedule = WorkSchedule(shift=shift, monthly_rate=Decimal("22000"))

        assert schedule.hours_per_day() == Decimal("9")
        assert schedule.rate_table().hourly == Decimal("1000") / Decimal("9")


class TestPremiumMultiplier:
    def test_multipliers_by_day_type(self):
        schedule = fixed_schedule()

        assert schedule.premium_multiplier(DayType.REGULAR_DAY) == Decimal("1")
        assert schedule.premium_multiplier(DayType.REST_DAY) == Decimal("1.30")
        assert schedule.premium_multiplier(DayType.REGULAR_HOLIDAY) == Decimal("1.30")
        assert schedule.premium_multiplier(DayType.DOUBLE_HOLIDAY) == Decimal("2.00")


class TestScheduleResolver:
    """Date-effective selection of the authoritative schedule."""

    def _record(self, effective: date, schedule: WorkSchedule | None, **kwargs) -> CompensationRecord:
        return CompensationRecord(
            compensation_id=uuid4(),
            employee_id=self.employee_id,
            effective_date=effective,
            base_salary=Decimal("20000"),
            schedule=schedule,
            **kwargs,
        )

    def setup_method(self):
        self.employee_id = uuid4()

    def test_latest_effective_compensation_wins(self):
        old = self._record(date(2023, 1, 1), fixed_schedule(monthly_rate=Decimal("20000")))
        new = self._record(date(2024, 1, 10), fixed_schedule(monthly_rate=Decimal("30000")))
        resolver = ScheduleResolver(self.employee_id, [old, new])

        assert resolver.resolve(date(2024, 1, 9)).compensation_id == old.compensation_id
        assert resolver.resolve(date(2024, 1, 10)).compensation_id == new.compensation_id

    def test_ended_and_inactive_compensations_ignored(self):
        ended = self._record(date(2023, 1, 1), fixed_schedule(), end_date=date(2023, 12, 31))
        inactive = self._record(date(2023, 6, 1), fixed_schedule(), is_active=False)
        resolver = ScheduleResolver(self.employee_id, [ended, inactive])

        with pytest.raises(ConfigurationMissingError):
            resolver.resolve(date(2024, 1, 2))
        assert resolver.try_resolve(date(2024, 1, 2)) is None

    def test_compensation_without_schedule_raises(self):
        resolver = ScheduleResolver(self.employee_id, [self._record(date(2023, 1, 1), None)])

        with pytest.raises(ConfigurationMissingError) as exc_info:
            resolver.resolve(date(2024, 1, 2))

        assert exc_info.value.component == "work schedule"

    def test_missing_monthly_rate_uses_base_salary(self):
        record = self._record(date(2023, 1, 1), fixed_schedule(monthly_rate=None))
        resolved = ScheduleResolver(self.employee_id, [record]).resolve(date(2024, 1, 2))

        assert resolved.rates.monthly == Decimal("20000")
