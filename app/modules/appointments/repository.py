import uuid
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from app.modules.appointments.models import AppointmentRecord

class AppointmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, appt_id: uuid.UUID) -> AppointmentRecord | None:
        return await self.session.get(AppointmentRecord, appt_id)

    async def get_by_booking(self, booking_id: uuid.UUID) -> AppointmentRecord | None:
        res = await self.session.execute(select(AppointmentRecord).where(AppointmentRecord.booking_id == booking_id))
        return res.scalar_one_or_none()

    async def list(self, *, status: str | None = None, patient_id: uuid.UUID | None = None) -> Sequence[AppointmentRecord]:
        cond = []
        if status:
            cond.append(AppointmentRecord.status == status)
        if patient_id:
            cond.append(AppointmentRecord.patient_id == patient_id)
        q = select(AppointmentRecord).where(and_(True, *cond)).order_by(AppointmentRecord.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()
