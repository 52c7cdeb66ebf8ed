"""Tests for half-open intervals, conflict detection and gap finding."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from app.modules.bookings.intervals import (
    TimeInterval,
    conflicts,
    ensure_aware,
    find_gaps,
    intersect,
    intersect_all,
)


def iv(h1: int, m1: int, h2: int, m2: int) -> TimeInterval:
    day = datetime(2030, 1, 7, tzinfo=timezone.utc)
    return TimeInterval(
        start=day.replace(hour=h1, minute=m1),
        end=day.replace(hour=h2, minute=m2),
    )


class _Held:
    def __init__(self, interval: TimeInterval, name: str):
        self.interval = interval
        self.name = name


class TestTimeInterval:
    """Construction and comparisons."""

    def test_rejects_empty_and_inverted(self):
        start = datetime(2030, 1, 7, 10, tzinfo=timezone.utc)
        with pytest.raises(ValidationError):
            TimeInterval(start=start, end=start)
        with pytest.raises(ValidationError):
            TimeInterval(start=start, end=start - timedelta(minutes=1))

    def test_naive_datetimes_are_treated_as_utc(self):
        interval = TimeInterval(start=datetime(2030, 1, 7, 9), end=datetime(2030, 1, 7, 10))
        assert interval.start.tzinfo is timezone.utc
        assert ensure_aware(datetime(2030, 1, 7)).tzinfo is timezone.utc

    def test_touching_is_not_overlapping(self):
        a, b = iv(10, 0, 10, 30), iv(10, 30, 11, 0)
        assert not a.overlaps(b)
        assert a.touches(b)

    def test_overlap_is_symmetric(self):
        a, b = iv(10, 0, 11, 0), iv(10, 59, 11, 30)
        assert a.overlaps(b) and b.overlaps(a)

    def test_contains_and_duration(self):
        outer = iv(9, 0, 12, 0)
        assert outer.contains(iv(9, 0, 12, 0))
        assert not outer.contains(iv(8, 59, 10, 0))
        assert outer.duration == timedelta(hours=3)
        assert outer.shifted(timedelta(hours=1)) == iv(10, 0, 13, 0)


class TestConflicts:
    """First colliding item or None."""

    def test_empty_existing_never_conflicts(self):
        assert conflicts(iv(9, 0, 10, 0), []) is None

    def test_returns_first_colliding_item(self):
        held = [_Held(iv(8, 0, 9, 0), "early"), _Held(iv(9, 30, 10, 30), "mid"), _Held(iv(9, 45, 11, 0), "late")]
        hit = conflicts(iv(9, 15, 9, 50), held)
        assert hit.name == "mid"

    def test_touching_allowed_by_default(self):
        held = [_Held(iv(10, 0, 10, 30), "a")]
        assert conflicts(iv(10, 30, 11, 0), held) is None
        assert conflicts(iv(9, 30, 10, 0), held) is None

    def test_touching_can_be_disallowed(self):
        held = [_Held(iv(10, 0, 10, 30), "a")]
        assert conflicts(iv(10, 30, 11, 0), held, allow_touching=False).name == "a"


class TestFindGaps:
    """Free intervals inside a window."""

    def test_gaps_between_bookings(self):
        busy = [iv(9, 0, 9, 30), iv(10, 0, 10, 30)]
        window = iv(9, 0, 11, 0)
        gaps = list(find_gaps(busy, window.start, window.end, timedelta(minutes=30)))
        assert gaps == [iv(9, 30, 10, 0), iv(10, 30, 11, 0)]

    def test_short_gaps_are_dropped(self):
        busy = [iv(9, 0, 9, 50), iv(10, 0, 10, 30)]
        window = iv(9, 0, 11, 0)
        gaps = list(find_gaps(busy, window.start, window.end, timedelta(minutes=15)))
        assert gaps == [iv(10, 30, 11, 0)]

    def test_empty_calendar_is_one_gap(self):
        window = iv(9, 0, 17, 0)
        assert list(find_gaps([], window.start, window.end, timedelta(minutes=15))) == [window]

    def test_busy_outside_window_is_ignored_and_edges_clipped(self):
        busy = [iv(7, 0, 8, 0), iv(8, 30, 9, 15), iv(10, 45, 12, 0), iv(13, 0, 14, 0)]
        window = iv(9, 0, 11, 0)
        gaps = list(find_gaps(busy, window.start, window.end, timedelta(minutes=15)))
        assert gaps == [iv(9, 15, 10, 45)]

    def test_unsorted_and_overlapping_busy_input(self):
        busy = [iv(10, 0, 10, 30), iv(9, 0, 9, 45), iv(9, 30, 10, 15)]
        window = iv(9, 0, 11, 0)
        gaps = list(find_gaps(busy, window.start, window.end, timedelta(minutes=15)))
        assert gaps == [iv(10, 30, 11, 0)]

    def test_sequence_is_restartable(self):
        window = iv(9, 0, 11, 0)
        gaps = find_gaps([iv(9, 30, 10, 0)], window.start, window.end, timedelta(minutes=15))
        assert list(gaps) == list(gaps)


class TestIntersect:
    """Intersection of free interval sequences."""

    def test_pairwise_intersection(self):
        a = [iv(9, 0, 10, 0), iv(11, 0, 12, 0)]
        b = [iv(9, 30, 11, 30)]
        assert list(intersect(a, b)) == [iv(9, 30, 10, 0), iv(11, 0, 11, 30)]

    def test_touching_sequences_do_not_intersect(self):
        assert list(intersect([iv(9, 0, 10, 0)], [iv(10, 0, 11, 0)])) == []

    def test_intersect_all_three_resources(self):
        staff = [iv(9, 0, 12, 0)]
        room = [iv(8, 0, 10, 0), iv(10, 30, 13, 0)]
        equipment = [iv(9, 45, 11, 0)]
        assert list(intersect_all([staff, room, equipment])) == [iv(9, 45, 10, 0), iv(10, 30, 11, 0)]

    def test_intersect_all_of_nothing_is_empty(self):
        assert list(intersect_all([])) == []
