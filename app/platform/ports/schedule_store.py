import uuid
from typing import Protocol, runtime_checkable
from app.modules.appointments.schemas import Appointment, AppointmentStatus
from app.modules.waitlist.schemas import WaitlistEntry

@runtime_checkable
class AppointmentStorePort(Protocol):
    async def add(self, appt: Appointment) -> Appointment: ...
    async def get(self, appt_id: uuid.UUID) -> Appointment | None: ...
    async def get_by_booking(self, booking_id: uuid.UUID) -> Appointment | None: ...
    async def save(self, appt: Appointment) -> Appointment: ...
    async def list(self, *, patient_id: uuid.UUID | None = None, status: AppointmentStatus | None = None) -> list[Appointment]: ...

@runtime_checkable
class WaitlistStorePort(Protocol):
    async def add(self, entry: WaitlistEntry) -> WaitlistEntry: ...
    async def get(self, entry_id: uuid.UUID) -> WaitlistEntry | None: ...
    async def save(self, entry: WaitlistEntry) -> WaitlistEntry: ...
    # waiting entries ordered by (priority, enqueued_at, seq)
    async def list_waiting(self, *, desired_type: str | None = None, limit: int | None = None) -> list[WaitlistEntry]: ...
