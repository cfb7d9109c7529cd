"""
Tests for relative time expressions

Covers parsing of offset terms and calendar-aware resolution of month
and year offsets.
"""

from datetime import datetime

import pytest

from cookie_consent.utils.relative_time import parse_offset, resolve_offset


class TestParseOffset:
    """Test splitting expressions into terms"""

    def test_single_term(self):
        assert parse_offset("+2 years") == [(2, "year")]

    def test_negative_term(self):
        assert parse_offset("-6 months") == [(-6, "month")]

    def test_unsigned_term(self):
        assert parse_offset("3 days") == [(3, "day")]

    def test_multiple_terms(self):
        assert parse_offset("+1 week 3 days") == [(1, "week"), (3, "day")]

    def test_case_insensitive_units(self):
        assert parse_offset("+12 HOURS") == [(12, "hour")]

    def test_abbreviated_units(self):
        assert parse_offset("+30 mins 10 secs") == [(30, "min"), (10, "sec")]

    @pytest.mark.parametrize("expression", ["", "   ", "soon", "2 eons", "+2 years banana", "tomorrow +1 day"])
    def test_invalid_expressions(self, expression):
        with pytest.raises(ValueError):
            parse_offset(expression)


class TestResolveOffset:
    """Test applying expressions to a reference time"""

    def test_days(self):
        now = datetime(2024, 1, 1, 10, 0, 0)
        assert resolve_offset("+1 day", now) == datetime(2024, 1, 2, 10, 0, 0)

    def test_weeks_and_days(self):
        now = datetime(2024, 1, 1)
        assert resolve_offset("+1 week 3 days", now) == datetime(2024, 1, 11)

    def test_fortnight(self):
        assert resolve_offset("+1 fortnight", datetime(2024, 1, 1)) == datetime(2024, 1, 15)

    def test_hours_minutes_seconds(self):
        now = datetime(2024, 1, 1, 23, 59, 0)
        assert resolve_offset("+1 hour 1 minute 30 seconds", now) == datetime(2024, 1, 2, 1, 0, 30)

    def test_years_keep_calendar_date(self):
        now = datetime(2024, 1, 1, 10, 0, 0)
        assert resolve_offset("+2 years", now) == datetime(2026, 1, 1, 10, 0, 0)

    def test_years_from_leap_day_clamp(self):
        assert resolve_offset("+2 years", datetime(2024, 2, 29)) == datetime(2026, 2, 28)

    def test_month_end_clamps(self):
        assert resolve_offset("-1 month", datetime(2024, 3, 31)) == datetime(2024, 2, 29)
        assert resolve_offset("+1 month", datetime(2023, 1, 31)) == datetime(2023, 2, 28)

    def test_months_across_year_boundary(self):
        assert resolve_offset("-24 months", datetime(2024, 5, 15)) == datetime(2022, 5, 15)
        assert resolve_offset("+3 months", datetime(2024, 11, 30)) == datetime(2025, 2, 28)

    def test_negative_week(self):
        assert resolve_offset("-1 week", datetime(2024, 1, 3)) == datetime(2023, 12, 27)

    def test_invalid_expression_raises(self):
        with pytest.raises(ValueError):
            resolve_offset("whenever", datetime(2024, 1, 1))
