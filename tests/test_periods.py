"""Tests for payroll period generation."""

from datetime import date, timedelta

import pytest
from hypothesis import given, strategies as st

from hris_payroll.calculators.periods import (
    generate_periods,
    infer_period_type,
    validate_period,
)
from hris_payroll.calculators.types import PeriodType
from hris_payroll.errors import ValidationError


class TestGeneratePeriods:
    def test_semi_monthly_january(self):
        windows = generate_periods("SEMI_MONTHLY", date(2024, 1, 1), date(2024, 1, 31))

        assert [(w.start_date, w.end_date) for w in windows] == [
            (date(2024, 1, 1), date(2024, 1, 15)),
            (date(2024, 1, 16), date(2024, 1, 31)),
        ]
        assert [w.pay_date for w in windows] == [date(2024, 1, 20), date(2024, 2, 5)]
        assert [w.period_number for w in windows] == [1, 2]

    def test_semi_monthly_leap_february(self):
        windows = generate_periods(PeriodType.SEMI_MONTHLY, date(2024, 2, 1), date(2024, 2, 29))
        assert windows[-1].end_date == date(2024, 2, 29)

    def test_monthly_pay_date_falls_in_next_month(self):
        windows = generate_periods("MONTHLY", date(2024, 1, 1), date(2024, 3, 31))

        assert len(windows) == 3
        assert windows[0].pay_date == date(2024, 2, 5)
        assert windows[1].end_date == date(2024, 2, 29)

    def test_range_mid_month_includes_overlapping_windows(self):
        windows = generate_periods("SEMI_MONTHLY", date(2024, 1, 10), date(2024, 1, 20))
        assert len(windows) == 2

    def test_weekly_windows(self):
        windows = generate_periods("WEEKLY", date(2024, 1, 1), date(2024, 1, 14))

        assert [(w.start_date, w.end_date) for w in windows] == [
            (date(2024, 1, 1), date(2024, 1, 7)),
            (date(2024, 1, 8), date(2024, 1, 14)),
        ]
        assert windows[1].period_number == 2

    def test_weekly_anchored_on_week_start(self):
        windows = generate_periods("WEEKLY", date(2024, 1, 3), date(2024, 1, 5), week_start="SUNDAY")
        assert windows[0].start_date == date(2023, 12, 31)

    def test_bi_weekly_windows(self):
        windows = generate_periods("BI_WEEKLY", date(2024, 1, 1), date(2024, 1, 31))

        assert [w.start_date for w in windows] == [
            date(2024, 1, 1),
            date(2024, 1, 15),
            date(2024, 1, 29),
        ]
        assert windows[0].end_date == date(2024, 1, 14)

    def test_custom_pay_day_offset(self):
        windows = generate_periods("MONTHLY", date(2024, 1, 1), date(2024, 1, 31), pay_day_offset=1)
        assert windows[0].pay_date == date(2024, 2, 1)

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            generate_periods("MONTHLY", date(2024, 2, 1), date(2024, 1, 1))
        assert "end_date" in exc_info.value.field_errors

    def test_zero_offset_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            generate_periods("MONTHLY", date(2024, 1, 1), date(2024, 1, 31), pay_day_offset=0)
        assert "pay_day_offset" in exc_info.value.field_errors

    def test_year_out_of_range_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            generate_periods("MONTHLY", date(1999, 12, 1), date(2000, 1, 31))
        assert "start_date" in exc_info.value.field_errors

    @given(
        period_type=st.sampled_from(list(PeriodType)),
        start=st.dates(min_value=date(2000, 1, 8), max_value=date(2099, 6, 1)),
        length=st.integers(min_value=0, max_value=120),
    )
    def test_windows_are_contiguous_and_cover_the_range(self, period_type, start, length):
        end = start + timedelta(days=length)
        windows = generate_periods(period_type, start, end)

        assert windows[0].start_date <= start
        assert windows[-1].end_date >= end
        for prev, curr in zip(windows, windows[1:]):
            assert curr.start_date == prev.end_date + timedelta(days=1)
        for w in windows:
            assert w.start_date < w.end_date < w.pay_date
            assert w.overlaps(start, end)


class TestValidatePeriod:
    def test_valid_period(self):
        validate_period(date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 20))

    def test_pay_date_must_follow_end(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_period(date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 15))
        assert "pay_date" in exc_info.value.field_errors

    def test_single_day_period_rejected(self):
        with pytest.raises(ValidationError):
            validate_period(date(2024, 1, 1), date(2024, 1, 1), date(2024, 1, 5))


class TestInferPeriodType:
    @pytest.mark.parametrize(
        "start,end,expected",
        [
            (date(2024, 1, 1), date(2024, 1, 7), PeriodType.WEEKLY),
            (date(2024, 1, 1), date(2024, 1, 14), PeriodType.BI_WEEKLY),
            (date(2024, 1, 1), date(2024, 1, 15), PeriodType.SEMI_MONTHLY),
            (date(2024, 1, 16), date(2024, 1, 31), PeriodType.SEMI_MONTHLY),
            (date(2024, 1, 1), date(2024, 1, 31), PeriodType.MONTHLY),
        ],
    )
    def test_infers_from_length(self, start, end, expected):
        assert infer_period_type(start, end) == expected
