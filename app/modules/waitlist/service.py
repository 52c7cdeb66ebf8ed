import uuid
import logging
from collections import Counter
from datetime import datetime, timezone
from app.core.config import settings
from app.modules.availability.service import AvailabilityFinder
from app.modules.bookings.errors import BookingError
from app.modules.bookings.events import ResourceFreed
from app.modules.bookings.intervals import TimeInterval
from app.modules.bookings.ledger import BookingLedger
from app.modules.bookings.locks import KeyedLocks, LockTimeout
from app.modules.bookings.schemas import Booking, BookingCandidate
from app.modules.events.hub import BackgroundTasks
from app.modules.notifications.service import NotificationsService
from app.modules.waitlist.schemas import Urgency, WaitlistCreate, WaitlistEntry, WaitlistStats
from app.platform.ports.schedule_store import WaitlistStorePort

logger = logging.getLogger(__name__)

def _now() -> datetime:
    return datetime.now(timezone.utc)

def _key(entry_id: uuid.UUID) -> str:
    return f"waitlist:{entry_id}"

class WaitlistManager:
    """Ordered queue of patients waiting for capacity.

    Served by ascending ``(priority, enqueued_at, seq)``. Freed capacity is
    offered to waiting entries by a background scan that calls back into the
    ledger's ``reserve``; the ledger stays the only writer of bookings.
    """

    def __init__(
        self,
        store: WaitlistStorePort,
        ledger: BookingLedger,
        finder: AvailabilityFinder,
        *,
        tasks: BackgroundTasks | None = None,
        notifications: NotificationsService | None = None,
        scan_limit: int | None = None,
    ):
        self.store = store
        self.ledger = ledger
        self.finder = finder
        self.tasks = tasks or BackgroundTasks("waitlist")
        self.notifications = notifications
        self.scan_limit = scan_limit or settings.WAITLIST_SCAN_LIMIT
        self.locks = KeyedLocks()

    async def enqueue(self, payload: WaitlistCreate) -> tuple[WaitlistEntry | None, BookingError | None]:
        entry = WaitlistEntry(**payload.model_dump())
        policy = self.finder.policy.current()
        if not policy.duration_valid(TimeInterval(start=entry.enqueued_at, end=entry.enqueued_at + entry.duration)):
            return None, BookingError.duration_invalid(
                entry.duration_minutes, policy.min_duration_minutes, policy.max_duration_minutes,
            )
        entry = await self.store.add(entry)
        logger.info(f"Waitlisted patient {entry.patient_id} for {entry.desired_type} (priority={entry.priority}, urgency={entry.urgency})")
        return entry, None

    async def get(self, entry_id: uuid.UUID) -> WaitlistEntry | None:
        return await self.store.get(entry_id)

    async def list(self, desired_type: str | None = None) -> list[WaitlistEntry]:
        return await self.store.list_waiting(desired_type=desired_type)

    async def stats(self) -> WaitlistStats:
        waiting = await self.store.list_waiting()
        return WaitlistStats(
            total_waiting=len(waiting),
            by_type=dict(Counter(e.desired_type for e in waiting)),
            oldest_enqueued_at=min((e.enqueued_at for e in waiting), default=None),
        )

    async def reprioritize(self, entry_id: uuid.UUID, priority: int, urgency: Urgency | None = None) -> tuple[WaitlistEntry | None, BookingError | None]:
        """Move a waiting entry to a new place in the serve order."""
        async with self.locks.hold([_key(entry_id)], None):
            entry = await self.store.get(entry_id)
            if entry is None or entry.status != "waiting":
                return None, BookingError.not_found("waitlist entry", entry_id)
            update = {"priority": priority}
            if urgency is not None:
                update["urgency"] = urgency
            entry = await self.store.save(entry.model_copy(update=update))
        logger.info(f"Waitlist entry {entry_id} now priority={entry.priority}, urgency={entry.urgency}")
        return entry, None

    async def withdraw(self, entry_id: uuid.UUID) -> WaitlistEntry | None:
        async with self.locks.hold([_key(entry_id)], None):
            entry = await self.store.get(entry_id)
            if entry is None or entry.status != "waiting":
                return entry
            entry = await self.store.save(entry.model_copy(update={"status": "withdrawn", "resolved_at": _now()}))
        logger.info("Withdrew waitlist entry %s", entry_id)
        return entry

    # ---- Promotion ----
    async def _reserve_for(self, entry: WaitlistEntry, interval: TimeInterval, staff_id: str, room_id: str) -> tuple[Booking | None, BookingError | None]:
        candidate = BookingCandidate(
            start=interval.start,
            end=interval.end,
            staff_id=staff_id,
            room_id=room_id,
            patient_id=entry.patient_id,
            client_id=entry.client_id,
            appointment_type=entry.desired_type,
            notes=entry.notes,
        )
        booking, err = await self.ledger.reserve(candidate)
        if err:
            return None, err
        await self.store.save(entry.model_copy(update={
            "status": "promoted",
            "booking_id": booking.id,
            "resolved_at": _now(),
        }))
        logger.info(f"Promoted waitlist entry {entry.id} to booking {booking.id}")
        if self.notifications is not None:
            self.notifications.send("waitlist.promoted", entry.id, {
                "entry_id": str(entry.id),
                "booking_id": str(booking.id),
                "patient_id": str(entry.patient_id),
                "start": booking.interval.start.isoformat(),
                "end": booking.interval.end.isoformat(),
            })
        return booking, None

    async def promote(self, entry_id: uuid.UUID, interval: TimeInterval | None = None) -> tuple[Booking | None, BookingError | None]:
        try:
            async with self.locks.hold([_key(entry_id)], self.ledger.lock_timeout):
                entry = await self.store.get(entry_id)
                if entry is None or entry.status != "waiting":
                    return None, BookingError.not_found("waitlist entry", entry_id)
                if not entry.staff_id or not entry.room_id:
                    return None, BookingError.not_found("staff and room preference for waitlist entry", entry_id)
                if interval is None:
                    window = None
                    if entry.earliest_start or entry.latest_end:
                        now = self.finder.clock()
                        start = max(entry.earliest_start or now, now)
                        end = entry.latest_end or start + self.finder.horizon
                        if start >= end:
                            return None, BookingError.conflict(None, None, message=f"preferred window of waitlist entry {entry_id} has passed")
                        window = TimeInterval(start=start, end=end)
                    interval = await self.finder.first_free([entry.staff_id, entry.room_id], entry.duration, window)
                    if interval is None:
                        return None, BookingError.conflict(None, None, message=f"no free slot for waitlist entry {entry_id}")
                return await self._reserve_for(entry, interval, entry.staff_id, entry.room_id)
        except LockTimeout as e:
            return None, BookingError.timeout(e.keys)

    def _fits(self, entry: WaitlistEntry, event: ResourceFreed) -> TimeInterval | None:
        if entry.staff_id and entry.staff_id != event.staff_id:
            return None
        if entry.room_id and entry.room_id != event.room_id:
            return None
        if entry.duration > event.interval.duration:
            return None
        attempt = TimeInterval(start=event.interval.start, end=event.interval.start + entry.duration)
        if not entry.accepts(attempt):
            return None
        return attempt

    async def on_resource_freed(self, event: ResourceFreed) -> Booking | None:
        """Offer freed capacity to the first compatible waiting entry; returns the new booking, if any."""
        waiting = await self.store.list_waiting(limit=self.scan_limit)
        for entry in waiting:
            attempt = self._fits(entry, event)
            if attempt is None:
                continue
            key = _key(entry.id)
            if self.locks.locked(key):
                # someone is already promoting it
                continue
            async with self.locks.hold([key], None):
                current = await self.store.get(entry.id)
                if current is None or current.status != "waiting":
                    continue
                booking, err = await self._reserve_for(
                    current, attempt,
                    current.staff_id or event.staff_id,
                    current.room_id or event.room_id,
                )
            if booking is not None:
                return booking
            logger.debug("Waitlist entry %s not promoted: %s", entry.id, err.message)
        return None

    async def handle_freed(self, event: ResourceFreed) -> None:
        # the freeing transaction has committed; promotion runs outside it
        self.tasks.spawn(self.on_resource_freed(event), label=f"freed:{event.booking_id}")

    async def drain(self) -> None:
        await self.tasks.drain()
