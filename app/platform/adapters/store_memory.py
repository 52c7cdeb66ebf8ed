import bisect
import itertools
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Iterable
from app.platform.ports.booking_store import BookingStorePort, BookingTransactionPort
from app.platform.ports.schedule_store import AppointmentStorePort, WaitlistStorePort
from app.modules.bookings.schemas import Booking, Resource, ResourceKind
from app.modules.appointments.schemas import Appointment, AppointmentStatus
from app.modules.waitlist.schemas import WaitlistEntry

class _MemoryBookingTransaction(BookingTransactionPort):
    def __init__(self, store: "InMemoryBookingStore", scope: Iterable[str]):
        self._store = store
        self._scope = set(scope)
        self.staged: dict[uuid.UUID, Booking] = {}

    def _check_scope(self, resource_ids: Iterable[str]):
        outside = set(resource_ids) - self._scope
        if outside:
            raise ValueError(f"resources {sorted(outside)} are outside this unit of work")

    async def resource(self, resource_id: str) -> Resource | None:
        return await self._store.get_resource(resource_id)

    async def active_bookings(self, resource_id: str) -> list[Booking]:
        self._check_scope([resource_id])
        merged = {bid: self._store._bookings[bid] for bid in self._store._by_resource.get(resource_id, ())}
        for b in self.staged.values():
            if resource_id in b.resource_ids:
                merged[b.id] = b
        return [b.model_copy(deep=True) for b in merged.values() if b.active]

    async def get(self, booking_id: uuid.UUID) -> Booking | None:
        b = self.staged.get(booking_id) or self._store._bookings.get(booking_id)
        return b.model_copy(deep=True) if b else None

    async def add(self, booking: Booking) -> None:
        self._check_scope(booking.resource_ids)
        self.staged[booking.id] = booking.model_copy(deep=True)

    async def save(self, booking: Booking) -> None:
        self._check_scope(booking.resource_ids)
        self.staged[booking.id] = booking.model_copy(deep=True)

class InMemoryBookingStore(BookingStorePort):
    """Dict-backed store; commits are applied without awaiting, so they are atomic on the event loop."""

    def __init__(self):
        self._resources: dict[str, Resource] = {}
        self._bookings: dict[uuid.UUID, Booking] = {}
        self._by_resource: dict[str, set[uuid.UUID]] = defaultdict(set)
        self._versions: dict[str, int] = defaultdict(int)

    async def register_resource(self, resource: Resource) -> Resource:
        self._resources[resource.id] = resource.model_copy()
        return resource

    async def get_resource(self, resource_id: str) -> Resource | None:
        r = self._resources.get(resource_id)
        return r.model_copy() if r else None

    async def list_resources(self, kind: ResourceKind | None = None) -> list[Resource]:
        return [r.model_copy() for r in sorted(self._resources.values(), key=lambda r: r.id) if kind is None or r.kind == kind]

    async def get(self, booking_id: uuid.UUID) -> Booking | None:
        b = self._bookings.get(booking_id)
        return b.model_copy(deep=True) if b else None

    async def snapshot(self, resource_ids: Iterable[str], start: datetime, end: datetime) -> dict[str, list[Booking]]:
        out: dict[str, list[Booking]] = {}
        for rid in resource_ids:
            out[rid] = sorted(
                (
                    self._bookings[bid].model_copy(deep=True)
                    for bid in self._by_resource.get(rid, ())
                    if self._bookings[bid].active
                    and self._bookings[bid].interval.start < end
                    and self._bookings[bid].interval.end > start
                ),
                key=lambda b: b.interval.start,
            )
        return out

    async def version(self, resource_id: str) -> int:
        return self._versions[resource_id]

    @asynccontextmanager
    async def transaction(self, resource_ids: Iterable[str], timeout: float | None = None):
        tx = _MemoryBookingTransaction(self, resource_ids)
        yield tx
        self._apply(tx)

    def _apply(self, tx: _MemoryBookingTransaction):
        touched: set[str] = set()
        for booking in tx.staged.values():
            self._bookings[booking.id] = booking
            for rid in booking.resource_ids:
                self._by_resource[rid].add(booking.id)
                touched.add(rid)
        for rid in touched:
            self._versions[rid] += 1

class InMemoryAppointmentStore(AppointmentStorePort):
    def __init__(self):
        self._items: dict[uuid.UUID, Appointment] = {}
        self._by_booking: dict[uuid.UUID, uuid.UUID] = {}

    async def add(self, appt: Appointment) -> Appointment:
        self._items[appt.id] = appt.model_copy(deep=True)
        self._by_booking[appt.booking_id] = appt.id
        return appt

    async def get(self, appt_id: uuid.UUID) -> Appointment | None:
        a = self._items.get(appt_id)
        return a.model_copy(deep=True) if a else None

    async def get_by_booking(self, booking_id: uuid.UUID) -> Appointment | None:
        aid = self._by_booking.get(booking_id)
        return await self.get(aid) if aid else None

    async def save(self, appt: Appointment) -> Appointment:
        self._items[appt.id] = appt.model_copy(deep=True)
        return appt

    async def list(self, *, patient_id: uuid.UUID | None = None, status: AppointmentStatus | None = None) -> list[Appointment]:
        rows = [
            a for a in self._items.values()
            if (patient_id is None or a.patient_id == patient_id) and (status is None or a.status == status)
        ]
        return [a.model_copy(deep=True) for a in sorted(rows, key=lambda a: a.created_at)]

class InMemoryWaitlistStore(WaitlistStorePort):
    def __init__(self):
        self._items: dict[uuid.UUID, WaitlistEntry] = {}
        self._queue: list[tuple] = []  # sorted (priority, enqueued_at, seq, id)
        self._seq = itertools.count(1)

    async def add(self, entry: WaitlistEntry) -> WaitlistEntry:
        entry = entry.model_copy(update={"seq": next(self._seq)})
        self._items[entry.id] = entry
        if entry.status == "waiting":
            bisect.insort(self._queue, (*entry.sort_key, entry.id))
        return entry.model_copy()

    async def get(self, entry_id: uuid.UUID) -> WaitlistEntry | None:
        e = self._items.get(entry_id)
        return e.model_copy() if e else None

    async def save(self, entry: WaitlistEntry) -> WaitlistEntry:
        prev = self._items.get(entry.id)
        if prev is not None and prev.status == "waiting":
            key = (*prev.sort_key, prev.id)
            i = bisect.bisect_left(self._queue, key)
            if i < len(self._queue) and self._queue[i] == key:
                del self._queue[i]
        self._items[entry.id] = entry.model_copy()
        if entry.status == "waiting":
            bisect.insort(self._queue, (*entry.sort_key, entry.id))
        return entry

    async def list_waiting(self, *, desired_type: str | None = None, limit: int | None = None) -> list[WaitlistEntry]:
        out: list[WaitlistEntry] = []
        for *_, eid in self._queue:
            e = self._items[eid]
            if desired_type and e.desired_type != desired_type:
                continue
            out.append(e.model_copy())
            if limit is not None and len(out) >= limit:
                break
        return out
