"""Tests for date ranges and calendar helpers."""

from datetime import date, datetime

import pytest

from focusboard.utils.datetime import (
    day_of_week,
    format_hour,
    month_bounds,
    parse_iso_date,
    week_end,
    week_start,
)
from focusboard.utils.validation import DateRange, InvalidRangeError, validate_range


class TestDateRange:

    def test_parse(self):
        date_range = DateRange.parse("2024-03-04", "2024-03-10")
        assert date_range.days == 7
        assert date_range.contains(date(2024, 3, 10))
        assert not date_range.contains(date(2024, 3, 11))

    def test_parse_rejects_garbage(self):
        with pytest.raises(InvalidRangeError):
            DateRange.parse("next week", "2024-03-10")

    def test_previous(self):
        previous = DateRange.parse("2024-03-04", "2024-03-10").previous()
        assert previous == DateRange(date(2024, 2, 26), date(2024, 3, 3))

    def test_ending_on(self):
        assert DateRange.ending_on(date(2024, 3, 10), 1) == DateRange(date(2024, 3, 10), date(2024, 3, 10))


class TestValidateRange:
    """Test range rejection"""

    def test_single_day_is_valid(self):
        one_day = DateRange(date(2024, 3, 4), date(2024, 3, 4))
        assert validate_range(one_day) is one_day

    def test_inverted(self):
        with pytest.raises(InvalidRangeError) as exc_info:
            validate_range(DateRange(date(2024, 3, 5), date(2024, 3, 4)))
        assert exc_info.value.start_date == date(2024, 3, 5)

    def test_too_long(self):
        with pytest.raises(InvalidRangeError):
            validate_range(DateRange(date(2024, 1, 1), date(2024, 1, 31)), max_days=30)

    def test_invalid_range_is_value_error(self):
        assert issubclass(InvalidRangeError, ValueError)


class TestCalendar:

    def test_day_of_week_starts_sunday(self):
        assert day_of_week(date(2024, 3, 3)) == 0
        assert day_of_week(datetime(2024, 3, 4, 9, 0)) == 1
        assert day_of_week(date(2024, 3, 9)) == 6

    def test_weeks_start_monday(self):
        assert week_start(date(2024, 3, 10)) == date(2024, 3, 4)
        assert week_end(date(2024, 3, 4)) == date(2024, 3, 10)

    def test_month_bounds(self):
        assert month_bounds(date(2024, 2, 15)) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(date(2023, 12, 5)) == (date(2023, 12, 1), date(2023, 12, 31))

    @pytest.mark.parametrize("hour,label", [(0, "12:00 AM"), (9, "9:00 AM"), (12, "12:00 PM"), (23, "11:00 PM")])
    def test_format_hour(self, hour, label):
        assert format_hour(hour) == label

    def test_parse_iso_date_accepts_timestamps(self):
        assert parse_iso_date("2024-03-04T09:00:00") == date(2024, 3, 4)

    @pytest.mark.parametrize("value", ["2024-01-01xyz", "2024-13-01", ""])
    def test_parse_iso_date_rejects_trailing_text(self, value):
        with pytest.raises(ValueError):
            parse_iso_date(value)

    def test_range_with_trailing_text_is_invalid(self):
        with pytest.raises(InvalidRangeError):
            DateRange.parse("2024-03-04xyz", "2024-03-10")
