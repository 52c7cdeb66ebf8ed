"""Tests for calendar policy checks and hot reload."""

import json
from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from app.core.config import Settings
from app.modules.bookings.intervals import TimeInterval
from app.modules.calendar.policy import PolicyProvider, load_policy_file, policy_from_settings
from app.modules.calendar.schemas import CalendarPolicy, OpenHours


def span(start: datetime, minutes: int) -> TimeInterval:
    return TimeInterval(start=start, end=start + timedelta(minutes=minutes))


class TestDuration:
    def test_bounds_are_inclusive(self, calendar_policy, at):
        assert calendar_policy.duration_valid(span(at(9), 15))
        assert calendar_policy.duration_valid(span(at(9), 240))

    def test_too_short_and_too_long(self, calendar_policy, at):
        assert not calendar_policy.duration_valid(span(at(9), 5))
        assert not calendar_policy.duration_valid(span(at(9), 300))


class TestBusinessHours:
    def test_inside_open_window(self, calendar_policy, at):
        assert calendar_policy.is_open(span(at(8), 30))
        assert calendar_policy.is_open(span(at(17, 30), 30))

    def test_spanning_close_is_rejected(self, calendar_policy, at):
        assert not calendar_policy.is_open(span(at(17, 45), 30))
        assert not calendar_policy.is_open(span(at(7, 45), 30))

    def test_closed_weekday(self, calendar_policy, at):
        saturday = date(2030, 1, 12)
        assert not calendar_policy.is_open(span(at(10, day=saturday), 30))
        assert calendar_policy.open_window(saturday) is None

    def test_local_timezone_is_used(self, at):
        policy = CalendarPolicy(
            timezone="America/New_York",
            business_hours={0: OpenHours(open="08:00", close="18:00")},
        )
        # 13:00 UTC in January is 08:00 in New York
        assert policy.is_open(span(at(13), 30))
        assert not policy.is_open(span(at(12, 30), 30))

    def test_open_windows_are_clipped(self, calendar_policy, at):
        windows = calendar_policy.open_windows(at(10), at(12, day=date(2030, 1, 8)))
        assert windows == [
            TimeInterval(start=at(10), end=at(18)),
            TimeInterval(start=at(8, day=date(2030, 1, 8)), end=at(12, day=date(2030, 1, 8))),
        ]


class TestHolidays:
    def test_holiday_rejected_regardless_of_time(self, calendar_policy, at):
        christmas = date(2030, 12, 25)
        assert calendar_policy.is_holiday(christmas)
        for hour in (8, 12, 17):
            assert calendar_policy.holiday_of(span(at(hour, day=christmas), 30)) == christmas
        assert calendar_policy.open_window(christmas) is None

    def test_ordinary_day(self, calendar_policy, at):
        assert calendar_policy.holiday_of(span(at(9), 30)) is None


class TestValidation:
    def test_min_above_max(self):
        with pytest.raises(ValidationError):
            CalendarPolicy(min_duration_minutes=60, max_duration_minutes=30)

    def test_bad_weekday(self):
        with pytest.raises(ValidationError):
            CalendarPolicy(business_hours={7: OpenHours(open="08:00", close="18:00")})

    def test_close_before_open(self):
        with pytest.raises(ValidationError):
            OpenHours(open="18:00", close="08:00")


class TestPolicySources:
    def test_from_settings(self):
        s = Settings(
            POLICY_TIMEZONE="Europe/London",
            BUSINESS_HOURS={0: ("09:00", "17:00")},
            HOLIDAYS=[date(2030, 1, 1)],
            MIN_DURATION_MINUTES=10,
            MAX_DURATION_MINUTES=120,
        )
        policy = policy_from_settings(s)
        assert policy.timezone == "Europe/London"
        assert set(policy.business_hours) == {0}
        assert policy.is_holiday(date(2030, 1, 1))
        assert policy.max_duration == timedelta(minutes=120)

    def test_file_and_reload(self, tmp_path, at):
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({
            "timezone": "UTC",
            "business_hours": {"0": {"open": "08:00", "close": "12:00"}},
            "holidays": [],
        }))
        provider = PolicyProvider(load_policy_file(path), source=path)
        assert not provider.current().is_open(span(at(13), 30))

        path.write_text(json.dumps({
            "timezone": "UTC",
            "business_hours": {"0": {"open": "08:00", "close": "18:00"}},
            "holidays": ["2030-01-07"],
        }))
        old = provider.current()
        provider.reload()
        assert provider.current() is not old
        assert provider.current().holiday_of(span(at(13), 30)) == date(2030, 1, 7)

    def test_reload_without_source(self, policy):
        with pytest.raises(RuntimeError):
            policy.reload()
