from pydantic import BaseModel, Field
import uuid
from datetime import datetime, timezone
from typing import Literal

AppointmentStatus = Literal["scheduled", "checked_in", "completed", "cancelled", "no_show"]

def _now() -> datetime:
    return datetime.now(timezone.utc)

# ---- Appointments ----

class StatusChange(BaseModel):
    from_status: AppointmentStatus
    to_status: AppointmentStatus
    at: datetime
    reason: str | None = None

class Appointment(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    booking_id: uuid.UUID
    patient_id: uuid.UUID
    client_id: uuid.UUID | None = None
    appointment_type: str
    status: AppointmentStatus = "scheduled"
    checked_in_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    no_show_at: datetime | None = None
    history: list[StatusChange] = []
    created_at: datetime = Field(default_factory=_now)

class AppointmentCancel(BaseModel):
    reason: str | None = None

class AppointmentOut(BaseModel):
    id: uuid.UUID
    booking_id: uuid.UUID
    patient_id: uuid.UUID
    client_id: uuid.UUID | None = None
    appointment_type: str
    status: AppointmentStatus
    checked_in_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    no_show_at: datetime | None = None
    history: list[StatusChange] = []
    created_at: datetime
