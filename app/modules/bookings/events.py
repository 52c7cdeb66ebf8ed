import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal
from app.modules.bookings.intervals import TimeInterval
from app.modules.bookings.schemas import Booking

def _now() -> datetime:
    return datetime.now(timezone.utc)

@dataclass(frozen=True)
class BookingReserved:
    booking: Booking
    occurred_at: datetime = field(default_factory=_now)

@dataclass(frozen=True)
class BookingRescheduled:
    booking: Booking
    previous: TimeInterval
    occurred_at: datetime = field(default_factory=_now)

@dataclass(frozen=True)
class ResourceFreed:
    """Capacity released by a committed cancel or reschedule."""
    booking_id: uuid.UUID
    staff_id: str
    room_id: str
    equipment_ids: tuple[str, ...]
    interval: TimeInterval
    reason: Literal["cancelled", "rescheduled"]
    cancel_reason: str | None = None
    occurred_at: datetime = field(default_factory=_now)

    @property
    def resource_ids(self) -> list[str]:
        return [self.staff_id, self.room_id, *self.equipment_ids]

    @classmethod
    def of(cls, booking: Booking, interval: TimeInterval, reason: Literal["cancelled", "rescheduled"]) -> "ResourceFreed":
        return cls(
            booking_id=booking.id,
            staff_id=booking.staff_id,
            room_id=booking.room_id,
            equipment_ids=tuple(booking.equipment_ids),
            interval=interval,
            reason=reason,
            cancel_reason=booking.cancel_reason,
        )

LedgerEvent = BookingReserved | BookingRescheduled | ResourceFreed
