from datetime import date, datetime, time, timedelta, timezone
from functools import cached_property
from zoneinfo import ZoneInfo
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from app.modules.bookings.intervals import TimeInterval

class OpenHours(BaseModel):
    model_config = ConfigDict(frozen=True)

    open: time
    close: time

    @model_validator(mode="after")
    def _ordered(self):
        if self.open >= self.close:
            raise ValueError("close must be after open")
        return self

class CalendarPolicy(BaseModel):
    """Business hours, holidays and duration bounds.

    Every check is a pure function of the policy and its arguments; none of
    them raise. Weekdays are 0=Mon..6=Sun, evaluated in ``timezone``.
    """
    model_config = ConfigDict(frozen=True)

    timezone: str = "UTC"
    business_hours: dict[int, OpenHours] = {}
    holidays: frozenset[date] = frozenset()
    min_duration_minutes: int = Field(default=15, gt=0)
    max_duration_minutes: int = Field(default=240, gt=0)

    @field_validator("business_hours")
    @classmethod
    def _weekdays(cls, v: dict[int, OpenHours]):
        bad = [d for d in v if not 0 <= d <= 6]
        if bad:
            raise ValueError(f"weekday keys must be 0..6, got {bad}")
        return v

    @field_validator("timezone")
    @classmethod
    def _known_tz(cls, v: str):
        ZoneInfo(v)
        return v

    @model_validator(mode="after")
    def _bounds(self):
        if self.min_duration_minutes > self.max_duration_minutes:
            raise ValueError("min_duration_minutes must not exceed max_duration_minutes")
        return self

    @cached_property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def min_duration(self) -> timedelta:
        return timedelta(minutes=self.min_duration_minutes)

    @property
    def max_duration(self) -> timedelta:
        return timedelta(minutes=self.max_duration_minutes)

    def local(self, dt: datetime) -> datetime:
        return dt.astimezone(self.tz)

    def duration_valid(self, interval: TimeInterval) -> bool:
        return self.min_duration <= interval.duration <= self.max_duration

    def is_holiday(self, day: date) -> bool:
        return day in self.holidays

    def holiday_of(self, interval: TimeInterval) -> date | None:
        """The holiday the interval touches, if any (local start or end date)."""
        start = self.local(interval.start).date()
        if self.is_holiday(start):
            return start
        end = self.local(interval.end - timedelta(microseconds=1)).date()
        if end != start and self.is_holiday(end):
            return end
        return None

    def is_open(self, interval: TimeInterval) -> bool:
        start = self.local(interval.start)
        end = self.local(interval.end)
        if start.date() != end.date():
            return False
        hours = self.business_hours.get(start.weekday())
        if hours is None:
            return False
        return hours.open <= start.time() and end.time() <= hours.close

    def open_window(self, day: date) -> TimeInterval | None:
        if self.is_holiday(day):
            return None
        hours = self.business_hours.get(day.weekday())
        if hours is None:
            return None
        return TimeInterval(
            start=datetime.combine(day, hours.open, tzinfo=self.tz).astimezone(timezone.utc),
            end=datetime.combine(day, hours.close, tzinfo=self.tz).astimezone(timezone.utc),
        )

    def open_windows(self, start: datetime, end: datetime) -> list[TimeInterval]:
        """Open windows clipped to ``[start, end)``, in chronological order."""
        out: list[TimeInterval] = []
        day = self.local(start).date()
        last = self.local(end).date()
        while day <= last:
            w = self.open_window(day)
            if w is not None:
                lo, hi = max(w.start, start), min(w.end, end)
                if lo < hi:
                    out.append(TimeInterval(start=lo, end=hi))
            day += timedelta(days=1)
        return out
