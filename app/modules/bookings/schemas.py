import uuid
from datetime import datetime, timezone
from typing import Literal
from pydantic import BaseModel, Field, model_validator
from app.modules.bookings.intervals import TimeInterval, ensure_aware

ResourceKind = Literal["staff", "room", "equipment"]
BookingStatus = Literal["confirmed", "cancelled"]

def _now() -> datetime:
    return datetime.now(timezone.utc)

# ---- Resources ----

class ResourceCreate(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    kind: ResourceKind
    name: str | None = None
    active: bool = True

class Resource(ResourceCreate):
    pass

# ---- Bookings ----

class BookingCandidate(BaseModel):
    """A fully typed booking request; validated before it reaches the ledger."""
    start: datetime
    end: datetime
    staff_id: str = Field(min_length=1)
    room_id: str = Field(min_length=1)
    equipment_ids: list[str] = []
    patient_id: uuid.UUID
    client_id: uuid.UUID | None = None
    appointment_type: str = "consult"
    notes: str | None = None

    @model_validator(mode="after")
    def _check(self):
        self.start = ensure_aware(self.start)
        self.end = ensure_aware(self.end)
        if self.start >= self.end:
            raise ValueError("end time must be after start time")
        ids = self.resource_ids
        if len(set(ids)) != len(ids):
            raise ValueError("a resource may only be reserved once per booking")
        return self

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(start=self.start, end=self.end)

    @property
    def resource_ids(self) -> list[str]:
        return [self.staff_id, self.room_id, *self.equipment_ids]

    def at(self, interval: TimeInterval) -> "BookingCandidate":
        return self.model_copy(update={"start": interval.start, "end": interval.end})

class Booking(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    interval: TimeInterval
    staff_id: str
    room_id: str
    equipment_ids: list[str] = []
    patient_id: uuid.UUID
    client_id: uuid.UUID | None = None
    appointment_type: str
    status: BookingStatus = "confirmed"
    notes: str | None = None
    cancel_reason: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime = Field(default_factory=_now)

    @property
    def resource_ids(self) -> list[str]:
        return [self.staff_id, self.room_id, *self.equipment_ids]

    @property
    def active(self) -> bool:
        return self.status == "confirmed"

    @classmethod
    def from_candidate(cls, c: BookingCandidate) -> "Booking":
        return cls(
            interval=c.interval,
            staff_id=c.staff_id,
            room_id=c.room_id,
            equipment_ids=list(c.equipment_ids),
            patient_id=c.patient_id,
            client_id=c.client_id,
            appointment_type=c.appointment_type,
            notes=c.notes,
        )

class CancelRequest(BaseModel):
    reason: str | None = None

class RescheduleRequest(BaseModel):
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check(self):
        self.start = ensure_aware(self.start)
        self.end = ensure_aware(self.end)
        if self.start >= self.end:
            raise ValueError("end time must be after start time")
        return self

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(start=self.start, end=self.end)

class BookingOut(BaseModel):
    id: uuid.UUID
    start: datetime
    end: datetime
    staff_id: str
    room_id: str
    equipment_ids: list[str]
    patient_id: uuid.UUID
    client_id: uuid.UUID | None = None
    appointment_type: str
    status: BookingStatus
    cancel_reason: str | None = None

    @classmethod
    def of(cls, b: Booking) -> "BookingOut":
        return cls(
            id=b.id, start=b.interval.start, end=b.interval.end,
            staff_id=b.staff_id, room_id=b.room_id, equipment_ids=b.equipment_ids,
            patient_id=b.patient_id, client_id=b.client_id,
            appointment_type=b.appointment_type, status=b.status, cancel_reason=b.cancel_reason,
        )
