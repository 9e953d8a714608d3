"""
Invoice recurrence patterns stored in work_order.recurrence_patterns.

    [{"pattern_type": "date", "date_value": "penultimate"},
     {"pattern_type": "week", "week_number": "fifth", "day_of_week": "monday"}]
"""
from datetime import date, datetime, time, timedelta
from typing import Annotated, List, Literal, Optional, Union
import calendar
import json

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from precast.maintenance.exceptions import PatternError

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
WEEK_NUMBERS = {"first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5}


def last_day_of_month(day: date) -> int:
    return calendar.monthrange(day.year, day.month)[1]


def occurrence_in_month(day: date) -> int:
    """
    1 for the first Monday (Tuesday, ...) of the month, 2 for the second, and so on.

    Counts occurrences of the weekday itself, not calendar rows offset by the weekday
    of the 1st, so "fifth monday" only fires in months that have five Mondays.
    """
    return (day.day - 1) // 7 + 1


class DatePattern(BaseModel):
    pattern_type: Literal["date"]
    date_value: str
    stage: Optional[str] = None

    @field_validator("date_value", mode="before")
    @classmethod
    def validate_date_value(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str):
            raise ValueError("date_value must be a day number or 'penultimate'")
        v = v.strip().lower()
        if v == "penultimate":
            return v
        if not v.isdigit() or not 1 <= int(v) <= 31:
            raise ValueError(f"invalid date_value {v!r}")
        return v

    def fires_on(self, today: date) -> bool:
        if self.date_value == "penultimate":
            return today.day == last_day_of_month(today) - 1
        return today.day == int(self.date_value)

    def billing_window(self, now: datetime):
        """From the first instant of the month up to now"""
        return datetime.combine(now.date().replace(day=1), time.min), now


class WeekPattern(BaseModel):
    pattern_type: Literal["week"]
    week_number: Literal["first", "second", "third", "fourth", "fifth"]
    day_of_week: Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
    stage: Optional[str] = None

    @field_validator("week_number", "day_of_week", mode="before")
    @classmethod
    def normalize_case(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    def fires_on(self, today: date) -> bool:
        if WEEKDAYS[today.weekday()] != self.day_of_week:
            return False
        return occurrence_in_month(today) == WEEK_NUMBERS[self.week_number]

    def billing_window(self, now: datetime):
        """From seven days ago at midnight up to now"""
        return datetime.combine(now.date() - timedelta(days=7), time.min), now


RecurrencePattern = Annotated[Union[DatePattern, WeekPattern], Field(discriminator="pattern_type")]

_patterns_adapter = TypeAdapter(List[RecurrencePattern])


def parse_recurrence_patterns(raw) -> List[Union[DatePattern, WeekPattern]]:
    """
    Parse the JSON column value. Raises PatternError when any entry is malformed,
    so a work order is either fully understood or skipped.
    """
    if raw is None:
        return []
    try:
        if isinstance(raw, (str, bytes)):
            raw = json.loads(raw)
        return _patterns_adapter.validate_python(raw)
    except (ValueError, ValidationError) as e:
        raise PatternError(f"invalid recurrence patterns: {e}") from e


def default_billing_window(now: datetime):
    """Window used by manual runs: the whole of yesterday and today"""
    start = datetime.combine(now.date() - timedelta(days=1), time.min)
    end = datetime.combine(now.date(), time(23, 59, 59))
    return start, end


def billing_window(pattern, now: datetime, last_generated_at: Optional[datetime] = None):
    """
    Resolve the billing window for a fired pattern (None for a manual run).
    The start never reaches back before the last generated invoice.
    """
    if pattern is None:
        start, end = default_billing_window(now)
    else:
        start, end = pattern.billing_window(now)
    if last_generated_at is not None and last_generated_at > start:
        start = last_generated_at + timedelta(seconds=1)
    return start, end
