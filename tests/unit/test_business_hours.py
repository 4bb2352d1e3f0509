"""
Unit tests for business hours and holiday checks.
"""
import pytest
from datetime import datetime, timezone
from types import SimpleNamespace

from stableride.errors import ValidationError
from stableride.services.business_hours import day_of_week, is_open_at, parse_hhmm, validate_window

# 2026-03-10 is a Tuesday
TUESDAY_NOON = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def hours(day=2, open_time="08:00", close_time="18:00", is_closed=False):
    return SimpleNamespace(day_of_week=day, open_time=open_time, close_time=close_time, is_closed=is_closed)


def test_day_of_week_starts_on_sunday():
    assert day_of_week(TUESDAY_NOON) == 2
    assert day_of_week(datetime(2026, 3, 8)) == 0


def test_parse_hhmm():
    assert parse_hhmm("07:30") == (7, 30)
    with pytest.raises(ValidationError):
        parse_hhmm("24:00")
    with pytest.raises(ValidationError):
        parse_hhmm("noon")


def test_window_must_be_ordered():
    validate_window("08:00", "18:00")
    with pytest.raises(ValidationError, match="before close"):
        validate_window("18:00", "08:00")


class TestIsOpen:
    def test_open_inside_window(self):
        assert is_open_at(hours(), None, TUESDAY_NOON)[0] is True

    def test_closed_outside_window(self):
        is_open, message = is_open_at(hours(), None, TUESDAY_NOON.replace(hour=19))
        assert is_open is False
        assert message == "Open 08:00-18:00"

    def test_closed_day(self):
        is_open, message = is_open_at(hours(is_closed=True), None, TUESDAY_NOON)
        assert is_open is False
        assert message == "Closed on Tuesday"

    def test_holiday_closure_overrides(self):
        holiday = SimpleNamespace(name="Christmas", is_closed=True, open_time=None, close_time=None)
        assert is_open_at(hours(), holiday, TUESDAY_NOON) == (False, "Closed for Christmas")

    def test_holiday_special_hours(self):
        holiday = SimpleNamespace(name="New Year", is_closed=False, open_time="14:00", close_time="20:00")
        assert is_open_at(hours(), holiday, TUESDAY_NOON)[0] is False
        assert is_open_at(hours(), holiday, TUESDAY_NOON.replace(hour=15))[0] is True
