import uuid
import logging
from datetime import datetime, timezone
from app.modules.appointments.schemas import Appointment, AppointmentStatus, StatusChange
from app.modules.bookings.errors import BookingError
from app.modules.bookings.events import BookingReserved, BookingRescheduled, ResourceFreed
from app.modules.bookings.ledger import BookingLedger
from app.modules.bookings.locks import KeyedLocks
from app.platform.ports.schedule_store import AppointmentStorePort

logger = logging.getLogger(__name__)

Result = tuple[Appointment | None, BookingError | None]

# target -> legal predecessors; completed, cancelled and no_show are terminal
TRANSITIONS: dict[AppointmentStatus, set[AppointmentStatus]] = {
    "checked_in": {"scheduled"},
    "completed": {"checked_in"},
    "cancelled": {"scheduled"},
    "no_show": {"scheduled", "checked_in"},
}

STAMP_FIELD: dict[AppointmentStatus, str] = {
    "checked_in": "checked_in_at",
    "completed": "completed_at",
    "cancelled": "cancelled_at",
    "no_show": "no_show_at",
}

def _now() -> datetime:
    return datetime.now(timezone.utc)

def _key(appt_id: uuid.UUID) -> str:
    return f"appointment:{appt_id}"

class AppointmentLifecycle:
    def __init__(self, store: AppointmentStorePort, ledger: BookingLedger):
        self.store = store
        self.ledger = ledger
        self.locks = KeyedLocks()
        self._cancelling: set[uuid.UUID] = set()

    async def get(self, appt_id: uuid.UUID) -> Appointment | None:
        return await self.store.get(appt_id)

    async def get_by_booking(self, booking_id: uuid.UUID) -> Appointment | None:
        return await self.store.get_by_booking(booking_id)

    async def list(self, *, patient_id: uuid.UUID | None = None, status: AppointmentStatus | None = None):
        return await self.store.list(patient_id=patient_id, status=status)

    # ---- Ledger event handlers ----
    async def create_for(self, event: BookingReserved) -> Appointment:
        b = event.booking
        appt = await self.store.add(Appointment(
            booking_id=b.id,
            patient_id=b.patient_id,
            client_id=b.client_id,
            appointment_type=b.appointment_type,
        ))
        logger.info(f"Scheduled appointment {appt.id} for booking {b.id}")
        return appt

    async def on_rescheduled(self, event: BookingRescheduled) -> None:
        """Note the move in the appointment history; the status is unchanged."""
        appt = await self.store.get_by_booking(event.booking.id)
        if appt is None:
            return
        async with self.locks.hold([_key(appt.id)], None):
            appt = await self.store.get(appt.id)
            note = StatusChange(
                from_status=appt.status,
                to_status=appt.status,
                at=_now(),
                reason=f"rescheduled from {event.previous.start.isoformat()} to {event.booking.interval.start.isoformat()}",
            )
            await self.store.save(appt.model_copy(update={"history": [*appt.history, note]}))
        logger.info(f"Appointment {appt.id} follows booking {event.booking.id} to {event.booking.interval.start}")

    async def on_resource_freed(self, event: ResourceFreed) -> None:
        if event.reason != "cancelled":
            return
        appt = await self.store.get_by_booking(event.booking_id)
        if appt is None or appt.id in self._cancelling:
            return
        async with self.locks.hold([_key(appt.id)], None):
            appt = await self.store.get(appt.id)
            if appt.status == "scheduled":
                await self._apply(appt, "cancelled", event.cancel_reason)

    # ---- Transitions ----
    async def _apply(self, appt: Appointment, target: AppointmentStatus, reason: str | None = None) -> Appointment:
        at = _now()
        change = StatusChange(from_status=appt.status, to_status=target, at=at, reason=reason)
        updated = appt.model_copy(update={
            "status": target,
            STAMP_FIELD[target]: at,
            "history": [*appt.history, change],
        })
        await self.store.save(updated)
        logger.info(f"Appointment {appt.id}: {appt.status} -> {target}")
        return updated

    async def _transition(self, appt_id: uuid.UUID, target: AppointmentStatus, reason: str | None = None) -> Result:
        async with self.locks.hold([_key(appt_id)], None):
            appt = await self.store.get(appt_id)
            if appt is None:
                return None, BookingError.not_found("appointment", appt_id)
            if appt.status not in TRANSITIONS[target]:
                return None, BookingError.invalid_transition(appt.status, target)
            return await self._apply(appt, target, reason), None

    async def check_in(self, appt_id: uuid.UUID) -> Result:
        return await self._transition(appt_id, "checked_in")

    async def complete(self, appt_id: uuid.UUID) -> Result:
        return await self._transition(appt_id, "completed")

    async def mark_no_show(self, appt_id: uuid.UUID) -> Result:
        return await self._transition(appt_id, "no_show")

    async def cancel(self, appt_id: uuid.UUID, reason: str | None = None) -> Result:
        """Cancel the appointment and release its booking in the ledger."""
        async with self.locks.hold([_key(appt_id)], None):
            appt = await self.store.get(appt_id)
            if appt is None:
                return None, BookingError.not_found("appointment", appt_id)
            if appt.status not in TRANSITIONS["cancelled"]:
                return None, BookingError.invalid_transition(appt.status, "cancelled")
            self._cancelling.add(appt_id)
            try:
                _, err = await self.ledger.cancel(appt.booking_id, reason)
            finally:
                self._cancelling.discard(appt_id)
            if err:
                return None, err
            return await self._apply(appt, "cancelled", reason), None
