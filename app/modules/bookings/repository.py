import uuid
from datetime import datetime
from typing import Iterable, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from app.modules.bookings.models import ResourceRecord, BookingRecord, BookingResourceRecord
from app.modules.bookings.schemas import Resource

class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    # resources
    async def get_resource(self, resource_id: str) -> ResourceRecord | None:
        return await self.session.get(ResourceRecord, resource_id)

    async def upsert_resource(self, res: Resource) -> ResourceRecord:
        obj = await self.get_resource(res.id)
        if obj is None:
            obj = ResourceRecord(id=res.id, kind=res.kind, name=res.name, active=res.active, version=0)
            self.session.add(obj)
        else:
            obj.kind, obj.name, obj.active = res.kind, res.name, res.active
        await self.session.flush()
        return obj

    async def list_resources(self, kind: str | None = None) -> Sequence[ResourceRecord]:
        q = select(ResourceRecord).order_by(ResourceRecord.id)
        if kind:
            q = q.where(ResourceRecord.kind == kind)
        res = await self.session.execute(q)
        return res.scalars().all()

    async def lock_resources(self, resource_ids: list[str]) -> Sequence[ResourceRecord]:
        # SELECT ... FOR UPDATE in id order so concurrent writers queue instead of deadlocking
        q = (
            select(ResourceRecord)
            .where(ResourceRecord.id.in_(resource_ids))
            .order_by(ResourceRecord.id)
            .with_for_update()
        )
        res = await self.session.execute(q)
        return res.scalars().all()

    # bookings
    async def get(self, booking_id: uuid.UUID) -> BookingRecord | None:
        return await self.session.get(BookingRecord, booking_id)

    async def active_for_resource(self, resource_id: str) -> Sequence[BookingRecord]:
        q = (
            select(BookingRecord)
            .join(BookingResourceRecord, BookingResourceRecord.booking_id == BookingRecord.id)
            .where(and_(BookingResourceRecord.resource_id == resource_id, BookingRecord.status == "confirmed"))
            .order_by(BookingRecord.start)
        )
        res = await self.session.execute(q)
        return res.scalars().all()

    async def active_in_range(self, resource_ids: Iterable[str], start: datetime, end: datetime) -> list[tuple[str, BookingRecord]]:
        q = (
            select(BookingResourceRecord.resource_id, BookingRecord)
            .join(BookingRecord, BookingRecord.id == BookingResourceRecord.booking_id)
            .where(and_(
                BookingResourceRecord.resource_id.in_(list(resource_ids)),
                BookingRecord.status == "confirmed",
                BookingRecord.start < end,
                BookingRecord.end > start,
            ))
            .order_by(BookingRecord.start)
        )
        res = await self.session.execute(q)
        return [(rid, rec) for rid, rec in res.all()]
