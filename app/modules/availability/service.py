import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator
from app.core.config import settings
from app.modules.bookings.intervals import TimeInterval, find_gaps, intersect_all
from app.modules.bookings.schemas import BookingCandidate
from app.modules.calendar.policy import PolicyProvider
from app.platform.ports.booking_store import BookingStorePort

logger = logging.getLogger(__name__)

def _now() -> datetime:
    return datetime.now(timezone.utc)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

def _ceil_div(a: timedelta, b: timedelta) -> int:
    return -((-a) // b)

def _align_up(dt: datetime, step: timedelta) -> datetime:
    rem = (dt - _EPOCH) % step
    return dt + (step - rem) if rem else dt

class AvailabilityFinder:
    """Read side of the ledger. Works on store snapshots and never takes resource locks."""

    def __init__(
        self,
        store: BookingStorePort,
        policy: PolicyProvider,
        *,
        horizon_days: int | None = None,
        step_minutes: int | None = None,
        clock: Callable[[], datetime] = _now,
    ):
        self.store = store
        self.policy = policy
        self.horizon = timedelta(days=horizon_days if horizon_days is not None else settings.SUGGESTION_HORIZON_DAYS)
        self.step = timedelta(minutes=step_minutes or settings.SUGGESTION_STEP_MINUTES)
        self.clock = clock

    async def free_slots(self, resource_id: str, window: TimeInterval, min_duration: timedelta | None = None) -> list[TimeInterval]:
        min_duration = min_duration or self.policy.current().min_duration
        snap = await self.store.snapshot([resource_id], window.start, window.end)
        busy = [b.interval for b in snap.get(resource_id, [])]
        return list(find_gaps(busy, window.start, window.end, min_duration))

    async def _common_free(self, resource_ids: list[str], window: TimeInterval, duration: timedelta) -> list[TimeInterval]:
        """Intervals of at least ``duration`` free on every resource and inside business hours."""
        policy = self.policy.current()
        snap = await self.store.snapshot(resource_ids, window.start, window.end)
        per_resource = [
            find_gaps([b.interval for b in snap.get(rid, [])], window.start, window.end, duration)
            for rid in resource_ids
        ]
        opening = policy.open_windows(window.start, window.end)
        return [iv for iv in intersect_all([opening, *per_resource]) if iv.duration >= duration]

    def _forward(self, free: list[TimeInterval], origin: datetime, duration: timedelta, limit: datetime) -> Iterator[datetime]:
        for iv in free:
            if iv.end - duration < origin:
                continue
            k = _ceil_div(max(iv.start, origin) - origin, self.step)
            s = origin + k * self.step
            while s + duration <= iv.end and s <= limit:
                yield s
                s += self.step

    def _backward(self, free: list[TimeInterval], origin: datetime, duration: timedelta, limit: datetime) -> Iterator[datetime]:
        for iv in reversed(free):
            if iv.start >= origin:
                continue
            k = min((iv.end - duration - origin) // self.step, -1)
            s = origin + k * self.step
            while s >= iv.start and s >= limit:
                yield s
                s -= self.step

    async def suggest_alternatives(self, candidate: BookingCandidate, max_suggestions: int = 3) -> list[TimeInterval]:
        """Nearest-first same-length slots free for all of the candidate's resources.

        Starts are aligned to ``candidate.start + k * step``; at equal distance
        the earlier slot wins, so the result is stable for an unchanged ledger.
        """
        if max_suggestions <= 0:
            return []
        policy = self.policy.current()
        original = candidate.interval
        if not policy.duration_valid(original):
            return []
        duration = original.duration
        origin = original.start
        earliest = max(origin - self.horizon, self.clock())
        latest = origin + self.horizon
        if earliest >= latest + duration:
            return []
        window = TimeInterval(start=earliest, end=latest + duration)
        free = await self._common_free(candidate.resource_ids, window, duration)

        fwd = self._forward(free, origin, duration, latest)
        bwd = self._backward(free, origin, duration, earliest)
        f, b = next(fwd, None), next(bwd, None)
        out: list[TimeInterval] = []
        while len(out) < max_suggestions and (f is not None or b is not None):
            if b is None or (f is not None and f - origin < origin - b):
                start, f = f, next(fwd, None)
            else:
                start, b = b, next(bwd, None)
            out.append(TimeInterval(start=start, end=start + duration))
        logger.debug("Suggested %d alternative(s) around %s for %s", len(out), origin.isoformat(), candidate.resource_ids)
        return out

    async def first_free(self, resource_ids: list[str], duration: timedelta, window: TimeInterval | None = None) -> TimeInterval | None:
        # start on a step boundary, not at the current microsecond
        now = _align_up(self.clock(), self.step)
        if window is None:
            window = TimeInterval(start=now, end=now + self.horizon)
        elif window.end <= now:
            return None
        elif window.start < now:
            window = TimeInterval(start=now, end=window.end)
        for iv in await self._common_free(resource_ids, window, duration):
            return TimeInterval(start=iv.start, end=iv.start + duration)
        return None
