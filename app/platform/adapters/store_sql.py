import uuid
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Iterable
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from app.platform.ports.booking_store import BookingStorePort, BookingTransactionPort
from app.platform.ports.schedule_store import AppointmentStorePort, WaitlistStorePort
from app.modules.bookings.locks import LockTimeout
from app.modules.bookings.models import BookingRecord, ResourceRecord
from app.modules.bookings.repository import BookingRepository
from app.modules.bookings.schemas import Booking, Resource, ResourceKind
from app.modules.appointments.models import AppointmentRecord
from app.modules.appointments.repository import AppointmentRepository
from app.modules.appointments.schemas import Appointment, AppointmentStatus
from app.modules.waitlist.models import WaitlistRecord
from app.modules.waitlist.repository import WaitlistRepository
from app.modules.waitlist.schemas import WaitlistEntry

log = logging.getLogger("store.sql")

LOCK_NOT_AVAILABLE = "55P03"

def _is_lock_timeout(e: DBAPIError) -> bool:
    orig = e.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code == LOCK_NOT_AVAILABLE

class _SqlBookingTransaction(BookingTransactionPort):
    def __init__(self, session: AsyncSession, locked: dict[str, ResourceRecord]):
        self.session = session
        self.repo = BookingRepository(session)
        self.locked = locked
        self.touched: set[str] = set()

    def _check_scope(self, resource_ids: Iterable[str]):
        outside = set(resource_ids) - set(self.locked)
        if outside:
            raise ValueError(f"resources {sorted(outside)} are outside this unit of work")

    async def resource(self, resource_id: str) -> Resource | None:
        rec = self.locked.get(resource_id) or await self.repo.get_resource(resource_id)
        return rec.to_domain() if rec else None

    async def active_bookings(self, resource_id: str) -> list[Booking]:
        return [r.to_domain() for r in await self.repo.active_for_resource(resource_id)]

    async def get(self, booking_id: uuid.UUID) -> Booking | None:
        rec = await self.repo.get(booking_id)
        return rec.to_domain() if rec else None

    async def add(self, booking: Booking) -> None:
        self._check_scope(booking.resource_ids)
        self.session.add(BookingRecord.from_domain(booking))
        await self.session.flush()
        self.touched.update(booking.resource_ids)

    async def save(self, booking: Booking) -> None:
        self._check_scope(booking.resource_ids)
        rec = await self.repo.get(booking.id)
        rec.apply(booking)
        rec.version = (rec.version or 1) + 1
        await self.session.flush()
        self.touched.update(booking.resource_ids)

class SqlBookingStore(BookingStorePort):
    """Bookings in SQL; a unit of work row-locks the resource rows and bumps their version on commit."""

    def __init__(self, sessions: async_sessionmaker):
        self.sessions = sessions

    async def register_resource(self, resource: Resource) -> Resource:
        async with self.sessions() as s:
            rec = await BookingRepository(s).upsert_resource(resource)
            await s.commit()
            return rec.to_domain()

    async def get_resource(self, resource_id: str) -> Resource | None:
        async with self.sessions() as s:
            rec = await BookingRepository(s).get_resource(resource_id)
            return rec.to_domain() if rec else None

    async def list_resources(self, kind: ResourceKind | None = None) -> list[Resource]:
        async with self.sessions() as s:
            return [r.to_domain() for r in await BookingRepository(s).list_resources(kind)]

    async def get(self, booking_id: uuid.UUID) -> Booking | None:
        async with self.sessions() as s:
            rec = await BookingRepository(s).get(booking_id)
            return rec.to_domain() if rec else None

    async def snapshot(self, resource_ids: Iterable[str], start: datetime, end: datetime) -> dict[str, list[Booking]]:
        ids = list(resource_ids)
        out: dict[str, list[Booking]] = {rid: [] for rid in ids}
        async with self.sessions() as s:
            # one statement, so one consistent view
            for rid, rec in await BookingRepository(s).active_in_range(ids, start, end):
                out[rid].append(rec.to_domain())
        return out

    async def version(self, resource_id: str) -> int:
        async with self.sessions() as s:
            rec = await BookingRepository(s).get_resource(resource_id)
            return rec.version if rec else 0

    @asynccontextmanager
    async def transaction(self, resource_ids: Iterable[str], timeout: float | None = None):
        ids = sorted(set(resource_ids))
        async with self.sessions() as session:
            async with session.begin():
                if timeout is not None and session.bind.dialect.name == "postgresql":
                    await session.execute(text(f"SET LOCAL lock_timeout = '{int(timeout * 1000)}ms'"))
                try:
                    locked = await BookingRepository(session).lock_resources(ids)
                except DBAPIError as e:
                    if _is_lock_timeout(e):
                        raise LockTimeout(ids) from e
                    raise
                tx = _SqlBookingTransaction(session, {r.id: r for r in locked})
                yield tx
                for rid in tx.touched:
                    if rid in tx.locked:
                        tx.locked[rid].version += 1
                await session.flush()

class SqlAppointmentStore(AppointmentStorePort):
    def __init__(self, sessions: async_sessionmaker):
        self.sessions = sessions

    async def add(self, appt: Appointment) -> Appointment:
        async with self.sessions() as s:
            rec = AppointmentRecord(
                id=appt.id, booking_id=appt.booking_id, patient_id=appt.patient_id,
                client_id=appt.client_id, appointment_type=appt.appointment_type,
                created_at=appt.created_at,
            )
            rec.apply(appt)
            s.add(rec)
            await s.commit()
        return appt

    async def get(self, appt_id: uuid.UUID) -> Appointment | None:
        async with self.sessions() as s:
            rec = await AppointmentRepository(s).get(appt_id)
            return rec.to_domain() if rec else None

    async def get_by_booking(self, booking_id: uuid.UUID) -> Appointment | None:
        async with self.sessions() as s:
            rec = await AppointmentRepository(s).get_by_booking(booking_id)
            return rec.to_domain() if rec else None

    async def save(self, appt: Appointment) -> Appointment:
        async with self.sessions() as s:
            rec = await AppointmentRepository(s).get(appt.id)
            if rec is None:
                raise LookupError(f"appointment {appt.id} does not exist")
            rec.apply(appt)
            await s.commit()
        return appt

    async def list(self, *, patient_id: uuid.UUID | None = None, status: AppointmentStatus | None = None) -> list[Appointment]:
        async with self.sessions() as s:
            return [r.to_domain() for r in await AppointmentRepository(s).list(status=status, patient_id=patient_id)]

class SqlWaitlistStore(WaitlistStorePort):
    def __init__(self, sessions: async_sessionmaker):
        self.sessions = sessions

    async def add(self, entry: WaitlistEntry) -> WaitlistEntry:
        async with self.sessions() as s:
            repo = WaitlistRepository(s)
            entry = entry.model_copy(update={"seq": await repo.next_seq()})
            s.add(WaitlistRecord.from_domain(entry))
            await s.commit()
        return entry

    async def get(self, entry_id: uuid.UUID) -> WaitlistEntry | None:
        async with self.sessions() as s:
            rec = await WaitlistRepository(s).get(entry_id)
            return rec.to_domain() if rec else None

    async def save(self, entry: WaitlistEntry) -> WaitlistEntry:
        async with self.sessions() as s:
            rec = await WaitlistRepository(s).get(entry.id)
            if rec is None:
                raise LookupError(f"waitlist entry {entry.id} does not exist")
            rec.apply(entry)
            await s.commit()
        return entry

    async def list_waiting(self, *, desired_type: str | None = None, limit: int | None = None) -> list[WaitlistEntry]:
        async with self.sessions() as s:
            return [r.to_domain() for r in await WaitlistRepository(s).list_waiting(desired_type=desired_type, limit=limit)]
