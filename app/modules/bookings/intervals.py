"""Half-open time intervals, overlap checks and free-gap computation.

All intervals are ``[start, end)``: the end instant is excluded, so a booking
ending at 10:30 and one starting at 10:30 do not overlap.
"""
from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator, Protocol, Sequence
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt

class TimeInterval(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _tz(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @model_validator(mode="after")
    def _ordered(self):
        if self.start >= self.end:
            raise ValueError("end time must be after start time")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeInterval") -> bool:
        return self.start < other.end and other.start < self.end

    def touches(self, other: "TimeInterval") -> bool:
        return self.start == other.end or other.start == self.end

    def contains(self, other: "TimeInterval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def shifted(self, delta: timedelta) -> "TimeInterval":
        return TimeInterval(start=self.start + delta, end=self.end + delta)

class HasInterval(Protocol):
    interval: TimeInterval

def conflicts(candidate: TimeInterval, existing: Iterable[HasInterval], *, allow_touching: bool = True):
    """Return the first item of ``existing`` whose interval collides with ``candidate``, else None."""
    for item in existing:
        iv = item.interval
        if candidate.overlaps(iv):
            return item
        if not allow_touching and candidate.touches(iv):
            return item
    return None

class GapSequence:
    """Free intervals of at least ``min_duration`` inside ``[window_start, window_end)``.

    Lazy and restartable: each iteration walks the busy list again.
    """

    def __init__(self, busy: Iterable[TimeInterval], window_start: datetime, window_end: datetime, min_duration: timedelta):
        self.window_start = ensure_aware(window_start)
        self.window_end = ensure_aware(window_end)
        self.min_duration = min_duration
        self._busy: Sequence[TimeInterval] = sorted(busy, key=lambda iv: (iv.start, iv.end))

    def __iter__(self) -> Iterator[TimeInterval]:
        cursor = self.window_start
        for iv in self._busy:
            if iv.end <= cursor:
                continue
            if iv.start >= self.window_end:
                break
            if iv.start > cursor and iv.start - cursor >= self.min_duration:
                yield TimeInterval(start=cursor, end=iv.start)
            cursor = max(cursor, iv.end)
            if cursor >= self.window_end:
                return
        if cursor < self.window_end and self.window_end - cursor >= self.min_duration:
            yield TimeInterval(start=cursor, end=self.window_end)

def find_gaps(existing: Iterable[TimeInterval], window_start: datetime, window_end: datetime, min_duration: timedelta) -> GapSequence:
    return GapSequence(existing, window_start, window_end, min_duration)

def intersect(a: Iterable[TimeInterval], b: Iterable[TimeInterval]) -> Iterator[TimeInterval]:
    """Lazy intersection of two sorted sequences of disjoint intervals."""
    ia, ib = iter(a), iter(b)
    x, y = next(ia, None), next(ib, None)
    while x is not None and y is not None:
        lo = max(x.start, y.start)
        hi = min(x.end, y.end)
        if lo < hi:
            yield TimeInterval(start=lo, end=hi)
        if x.end <= y.end:
            x = next(ia, None)
        else:
            y = next(ib, None)

def intersect_all(sequences: Sequence[Iterable[TimeInterval]]) -> Iterable[TimeInterval]:
    if not sequences:
        return iter(())
    acc: Iterable[TimeInterval] = sequences[0]
    for seq in sequences[1:]:
        acc = intersect(acc, seq)
    return acc
