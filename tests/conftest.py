"""Shared test fixtures for the scheduling core."""

import uuid
from datetime import date, datetime, timezone

import pytest
import pytest_asyncio

from app.api.deps import Scheduling, build_scheduling
from app.modules.bookings.schemas import BookingCandidate, ResourceCreate
from app.modules.calendar.policy import PolicyProvider
from app.modules.calendar.schemas import CalendarPolicy, OpenHours
from app.platform.adapters.bus_noop import NoopEventBus
from app.platform.adapters.notifier_bus import EventBusNotifier
from app.platform.adapters.store_memory import (
    InMemoryAppointmentStore,
    InMemoryBookingStore,
    InMemoryWaitlistStore,
)

# Monday, far enough ahead that "now" never clips it
MONDAY = date(2030, 1, 7)
CHRISTMAS = date(2030, 12, 25)

RESOURCES = [
    ResourceCreate(id="dr-a", kind="staff", name="Dr. A"),
    ResourceCreate(id="dr-b", kind="staff", name="Dr. B"),
    ResourceCreate(id="room-1", kind="room", name="Exam 1"),
    ResourceCreate(id="room-2", kind="room", name="Exam 2"),
    ResourceCreate(id="xray", kind="equipment", name="X-ray"),
]


def _at(hour: int, minute: int = 0, day: date = MONDAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def at():
    """Build an aware UTC datetime on the test Monday (or another day)."""
    return _at


@pytest.fixture
def calendar_policy() -> CalendarPolicy:
    """Weekdays 08:00-18:00 UTC, one holiday, 15-240 minute bookings."""
    weekday = OpenHours(open="08:00", close="18:00")
    return CalendarPolicy(
        timezone="UTC",
        business_hours={d: weekday for d in range(5)},
        holidays=frozenset({CHRISTMAS}),
        min_duration_minutes=15,
        max_duration_minutes=240,
    )


@pytest.fixture
def policy(calendar_policy) -> PolicyProvider:
    return PolicyProvider(calendar_policy)


@pytest.fixture
def bus() -> NoopEventBus:
    return NoopEventBus()


@pytest.fixture
def resources() -> list[ResourceCreate]:
    return list(RESOURCES)


@pytest_asyncio.fixture
async def sched(policy, bus, resources) -> Scheduling:
    """A fully wired in-memory scheduling core with the standard resources registered."""
    s = build_scheduling(
        bookings=InMemoryBookingStore(),
        appointments=InMemoryAppointmentStore(),
        waitlist=InMemoryWaitlistStore(),
        notifier=EventBusNotifier(bus),
        policy=policy,
        lock_timeout=1.0,
    )
    for r in resources:
        await s.ledger.register_resource(r)
    yield s
    await s.shutdown()


@pytest.fixture
def patient_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def candidate(patient_id):
    """Factory for booking candidates on the test Monday."""

    def make(start: datetime, end: datetime, staff_id: str = "dr-a", room_id: str = "room-1", **kw) -> BookingCandidate:
        return BookingCandidate(
            start=start,
            end=end,
            staff_id=staff_id,
            room_id=room_id,
            patient_id=kw.pop("patient_id", patient_id),
            **kw,
        )

    return make


@pytest_asyncio.fixture
async def client(sched):
    """HTTP client over the real application with the test core installed."""
    from httpx import ASGITransport, AsyncClient

    from app.main import app

    app.state.scheduling = sched
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.state.scheduling = None
