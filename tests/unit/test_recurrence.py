"""Tests for recurrence pattern parsing, firing days and billing windows."""

import json
from datetime import date, datetime, timedelta

import pytest

from precast.maintenance.exceptions import PatternError
from precast.schemas.recurrence import (
    DatePattern,
    WeekPattern,
    billing_window,
    default_billing_window,
    occurrence_in_month,
    parse_recurrence_patterns,
)


def days_of(year: int, month: int):
    day = date(year, month, 1)
    while day.month == month:
        yield day
        day += timedelta(days=1)


class TestParsing:
    def test_parses_json_text(self):
        raw = json.dumps([
            {"pattern_type": "date", "date_value": "1"},
            {"pattern_type": "week", "week_number": "fifth", "day_of_week": "monday"},
        ])
        patterns = parse_recurrence_patterns(raw)
        assert isinstance(patterns[0], DatePattern)
        assert isinstance(patterns[1], WeekPattern)

    def test_parses_bytes_and_lists(self):
        assert parse_recurrence_patterns(b'[{"pattern_type": "date", "date_value": "penultimate"}]')[0].date_value == "penultimate"
        assert parse_recurrence_patterns([{"pattern_type": "date", "date_value": 15}])[0].date_value == "15"

    def test_none_means_no_patterns(self):
        assert parse_recurrence_patterns(None) == []

    def test_case_is_normalised(self):
        (pattern,) = parse_recurrence_patterns([{"pattern_type": "week", "week_number": "First", "day_of_week": "MONDAY"}])
        assert pattern.week_number == "first"
        assert pattern.day_of_week == "monday"

    @pytest.mark.parametrize("raw", [
        "not json",
        '{"pattern_type": "date"}',
        '[{"pattern_type": "monthly", "date_value": "1"}]',
        '[{"pattern_type": "date", "date_value": "last"}]',
        '[{"pattern_type": "date", "date_value": "32"}]',
        '[{"pattern_type": "week", "week_number": "sixth", "day_of_week": "monday"}]',
        '[{"pattern_type": "week", "week_number": "first", "day_of_week": "someday"}]',
    ])
    def test_malformed_patterns_raise(self, raw):
        with pytest.raises(PatternError):
            parse_recurrence_patterns(raw)


class TestDatePattern:
    def test_numeric_day(self):
        pattern = DatePattern(pattern_type="date", date_value="1")
        assert pattern.fires_on(date(2026, 3, 1))
        assert not pattern.fires_on(date(2026, 3, 2))

    def test_penultimate_on_28_day_february_fires_on_27th(self):
        pattern = DatePattern(pattern_type="date", date_value="penultimate")
        fired = [day.day for day in days_of(2026, 2) if pattern.fires_on(day)]
        assert fired == [27]

    def test_penultimate_on_leap_february_and_long_month(self):
        pattern = DatePattern(pattern_type="date", date_value="penultimate")
        assert [day.day for day in days_of(2028, 2) if pattern.fires_on(day)] == [28]
        assert [day.day for day in days_of(2026, 3) if pattern.fires_on(day)] == [30]

    def test_day_31_never_fires_in_short_months(self):
        pattern = DatePattern(pattern_type="date", date_value="31")
        assert not any(pattern.fires_on(day) for day in days_of(2026, 4))


class TestWeekPattern:
    def test_occurrence_in_month(self):
        assert occurrence_in_month(date(2026, 3, 1)) == 1
        assert occurrence_in_month(date(2026, 3, 7)) == 1
        assert occurrence_in_month(date(2026, 3, 8)) == 2
        assert occurrence_in_month(date(2026, 3, 29)) == 5

    def test_fifth_monday_fires_when_month_has_five(self):
        # March 2026 has Mondays on 2, 9, 16, 23 and 30
        pattern = WeekPattern(pattern_type="week", week_number="fifth", day_of_week="monday")
        assert [day.day for day in days_of(2026, 3) if pattern.fires_on(day)] == [30]

    def test_fifth_monday_never_fires_with_four_mondays(self):
        # February 2026 has Mondays on 2, 9, 16 and 23
        pattern = WeekPattern(pattern_type="week", week_number="fifth", day_of_week="monday")
        assert not any(pattern.fires_on(day) for day in days_of(2026, 2))

    def test_first_weekday_before_first_of_month_weekday(self):
        # June 2026 starts on a Monday; its first Sunday is the 7th
        pattern = WeekPattern(pattern_type="week", week_number="first", day_of_week="sunday")
        assert [day.day for day in days_of(2026, 6) if pattern.fires_on(day)] == [7]

    @pytest.mark.parametrize("year,month", [(2026, m) for m in range(1, 13)])
    def test_each_ordinal_fires_at_most_once_per_month(self, year, month):
        for week_number in ("first", "second", "third", "fourth", "fifth"):
            pattern = WeekPattern(pattern_type="week", week_number=week_number, day_of_week="friday")
            fired = [day for day in days_of(year, month) if pattern.fires_on(day)]
            assert len(fired) <= 1
            if week_number != "fifth":
                assert len(fired) == 1


class TestBillingWindow:
    NOW = datetime(2026, 3, 30, 11, 50)

    def test_date_pattern_window_starts_at_first_of_month(self):
        pattern = DatePattern(pattern_type="date", date_value="30")
        assert billing_window(pattern, self.NOW) == (datetime(2026, 3, 1), self.NOW)

    def test_week_pattern_window_covers_seven_days(self):
        pattern = WeekPattern(pattern_type="week", week_number="fifth", day_of_week="monday")
        assert billing_window(pattern, self.NOW) == (datetime(2026, 3, 23), self.NOW)

    def test_manual_window_covers_yesterday_and_today(self):
        assert billing_window(None, self.NOW) == default_billing_window(self.NOW) == (
            datetime(2026, 3, 29), datetime(2026, 3, 30, 23, 59, 59)
        )

    def test_start_advances_past_last_invoice(self):
        pattern = DatePattern(pattern_type="date", date_value="30")
        last = datetime(2026, 3, 15, 11, 50)
        start, end = billing_window(pattern, self.NOW, last)
        assert start == last + timedelta(seconds=1)
        assert end == self.NOW

    def test_older_last_invoice_leaves_start_alone(self):
        pattern = DatePattern(pattern_type="date", date_value="30")
        start, _ = billing_window(pattern, self.NOW, datetime(2026, 2, 1))
        assert start == datetime(2026, 3, 1)
