import uuid
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from app.modules.waitlist.models import WaitlistRecord

class WaitlistRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, wid: uuid.UUID) -> WaitlistRecord | None:
        return await self.session.get(WaitlistRecord, wid)

    async def next_seq(self) -> int:
        res = await self.session.execute(select(func.coalesce(func.max(WaitlistRecord.seq), 0)))
        return int(res.scalar_one()) + 1

    async def list_waiting(self, *, desired_type: str | None = None, limit: int | None = None) -> Sequence[WaitlistRecord]:
        q = select(WaitlistRecord).where(WaitlistRecord.status == "waiting")
        if desired_type:
            q = q.where(WaitlistRecord.desired_type == desired_type)
        q = q.order_by(WaitlistRecord.priority.asc(), WaitlistRecord.enqueued_at.asc(), WaitlistRecord.seq.asc())
        if limit:
            q = q.limit(limit)
        res = await self.session.execute(q)
        return res.scalars().all()
