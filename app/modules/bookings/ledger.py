"""The booking ledger: sole writer of booking state.

Every mutation runs inside one unit of work keyed by the booking's resource
ids: process-local keyed locks first, then the store's own transaction (row
locks in SQL). Policy checks are pure and run before any lock is taken.
"""
import uuid
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Iterable
from app.core.config import settings
from app.modules.bookings.errors import BookingError
from app.modules.bookings.events import BookingReserved, BookingRescheduled, ResourceFreed
from app.modules.bookings.intervals import TimeInterval, conflicts
from app.modules.bookings.locks import KeyedLocks, LockTimeout
from app.modules.bookings.schemas import Booking, BookingCandidate, Resource, ResourceCreate
from app.modules.calendar.policy import PolicyProvider
from app.modules.events.hub import EventHub
from app.modules.notifications.service import NotificationsService
from app.platform.ports.booking_store import BookingStorePort, BookingTransactionPort

logger = logging.getLogger(__name__)

Result = tuple[Booking | None, BookingError | None]

def _now() -> datetime:
    return datetime.now(timezone.utc)

def _required_kinds(obj) -> list[tuple[str, str]]:
    return [(obj.staff_id, "staff"), (obj.room_id, "room"), *((e, "equipment") for e in obj.equipment_ids)]

class BookingLedger:
    def __init__(
        self,
        store: BookingStorePort,
        policy: PolicyProvider,
        *,
        hub: EventHub | None = None,
        notifications: NotificationsService | None = None,
        locks: KeyedLocks | None = None,
        lock_timeout: float | None = None,
        allow_touching: bool | None = None,
    ):
        self.store = store
        self.policy = policy
        self.hub = hub or EventHub()
        self.notifications = notifications
        self.locks = locks or KeyedLocks()
        self.lock_timeout = settings.LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout
        self.allow_touching = settings.ALLOW_BACK_TO_BACK if allow_touching is None else allow_touching

    # ---- Resources ----
    async def register_resource(self, payload: ResourceCreate) -> Resource:
        res = await self.store.register_resource(Resource(**payload.model_dump()))
        logger.info("Registered %s resource %s", res.kind, res.id)
        return res

    async def get_resource(self, resource_id: str) -> Resource | None:
        return await self.store.get_resource(resource_id)

    # ---- Reads ----
    async def get(self, booking_id: uuid.UUID) -> Booking | None:
        return await self.store.get(booking_id)

    async def list_bookings(self, resource_id: str, start: datetime, end: datetime) -> list[Booking]:
        snap = await self.store.snapshot([resource_id], start, end)
        return snap.get(resource_id, [])

    # ---- Policy ----
    def check_policy(self, interval: TimeInterval) -> BookingError | None:
        policy = self.policy.current()
        if not policy.duration_valid(interval):
            return BookingError.duration_invalid(
                interval.duration.total_seconds() / 60,
                policy.min_duration_minutes, policy.max_duration_minutes,
            )
        day = policy.holiday_of(interval)
        if day is not None:
            return BookingError.holiday(day)
        if not policy.is_open(interval):
            return BookingError.outside_business_hours()
        return None

    # ---- Unit of work ----
    @asynccontextmanager
    async def _unit_of_work(self, resource_ids: Iterable[str]):
        async with self.locks.hold(resource_ids, self.lock_timeout) as keys:
            async with self.store.transaction(keys, self.lock_timeout) as tx:
                yield tx

    async def _check_resources(self, tx: BookingTransactionPort, obj) -> BookingError | None:
        for rid, kind in _required_kinds(obj):
            res = await tx.resource(rid)
            if res is None or not res.active or res.kind != kind:
                return BookingError.not_found(f"{kind} resource", rid)
        return None

    async def _find_conflict(self, tx: BookingTransactionPort, interval: TimeInterval, resource_ids: list[str], exclude: uuid.UUID | None = None) -> BookingError | None:
        for rid in resource_ids:
            existing = [b for b in await tx.active_bookings(rid) if b.id != exclude]
            hit = conflicts(interval, existing, allow_touching=self.allow_touching)
            if hit is not None:
                return BookingError.conflict(rid, hit.id)
        return None

    # ---- Mutations ----
    async def reserve(self, candidate: BookingCandidate) -> Result:
        err = self.check_policy(candidate.interval)
        if err:
            logger.info("Reserve rejected by policy: %s", err.message)
            return None, err

        booking: Booking | None = None
        try:
            async with self._unit_of_work(candidate.resource_ids) as tx:
                err = await self._check_resources(tx, candidate)
                if err is None:
                    err = await self._find_conflict(tx, candidate.interval, candidate.resource_ids)
                if err is None:
                    booking = Booking.from_candidate(candidate)
                    await tx.add(booking)
        except LockTimeout as e:
            return None, BookingError.timeout(e.keys)
        if err:
            logger.info("Reserve rejected: %s", err.message)
            return None, err

        logger.info(f"Reserved booking {booking.id} [{booking.interval.start.isoformat()}, {booking.interval.end.isoformat()}) on {booking.resource_ids}")
        await self.hub.publish(BookingReserved(booking=booking))
        self._notify("booking.reserved", booking)
        return booking, None

    async def cancel(self, booking_id: uuid.UUID, reason: str | None = None) -> Result:
        current = await self.store.get(booking_id)
        if current is None:
            return None, BookingError.not_found("booking", booking_id)
        if not current.active:
            return current, None

        freed = False
        try:
            async with self._unit_of_work(current.resource_ids) as tx:
                booking = await tx.get(booking_id)
                if booking.active:
                    booking = booking.model_copy(update={
                        "status": "cancelled",
                        "cancel_reason": reason,
                        "cancelled_at": _now(),
                    })
                    await tx.save(booking)
                    freed = True
        except LockTimeout as e:
            return None, BookingError.timeout(e.keys)

        if freed:
            logger.info(f"Cancelled booking {booking.id} (reason={reason!r})")
            await self.hub.publish(ResourceFreed.of(booking, booking.interval, "cancelled"))
            self._notify("booking.cancelled", booking)
        return booking, None

    async def reschedule(self, booking_id: uuid.UUID, new_interval: TimeInterval) -> Result:
        current = await self.store.get(booking_id)
        if current is None or not current.active:
            return None, BookingError.not_found("booking", booking_id)
        err = self.check_policy(new_interval)
        if err:
            logger.info("Reschedule of %s rejected by policy: %s", booking_id, err.message)
            return None, err

        previous = current.interval
        booking: Booking | None = None
        try:
            async with self._unit_of_work(current.resource_ids) as tx:
                locked = await tx.get(booking_id)
                if not locked.active:
                    err = BookingError.not_found("booking", booking_id)
                else:
                    previous = locked.interval
                    err = await self._check_resources(tx, locked)
                    if err is None:
                        err = await self._find_conflict(tx, new_interval, locked.resource_ids, exclude=locked.id)
                    if err is None:
                        booking = locked.model_copy(update={"interval": new_interval})
                        await tx.save(booking)
        except LockTimeout as e:
            return None, BookingError.timeout(e.keys)
        if err:
            logger.info("Reschedule of %s rejected: %s", booking_id, err.message)
            return None, err

        logger.info(f"Rescheduled booking {booking.id} from {previous.start.isoformat()} to {new_interval.start.isoformat()}")
        await self.hub.publish(BookingRescheduled(booking=booking, previous=previous))
        if previous != new_interval:
            await self.hub.publish(ResourceFreed.of(booking, previous, "rescheduled"))
        self._notify("booking.rescheduled", booking, previous_start=previous.start.isoformat())
        return booking, None

    def _notify(self, event_type: str, booking: Booking, **extra):
        if self.notifications is None:
            return
        self.notifications.send(event_type, booking.id, {
            "booking_id": str(booking.id),
            "patient_id": str(booking.patient_id),
            "client_id": str(booking.client_id) if booking.client_id else None,
            "appointment_type": booking.appointment_type,
            "start": booking.interval.start.isoformat(),
            "end": booking.interval.end.isoformat(),
            "staff_id": booking.staff_id,
            "room_id": booking.room_id,
            "status": booking.status,
            **extra,
        })
