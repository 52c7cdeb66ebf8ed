import uuid
from fastapi import APIRouter, Depends, HTTPException, status
from app.api.deps import Scheduling, get_scheduling
from app.api.errors import http_error
from app.modules.bookings.schemas import BookingOut
from app.modules.waitlist.schemas import WaitlistCreate, WaitlistOut, WaitlistPromote, WaitlistStats, WaitlistUpdate

router = APIRouter()

@router.post("", response_model=WaitlistOut, status_code=status.HTTP_201_CREATED)
async def enqueue(payload: WaitlistCreate, sched: Scheduling = Depends(get_scheduling)):
    entry, err = await sched.waitlist.enqueue(payload)
    if err:
        raise http_error(err)
    return entry

@router.get("", response_model=list[WaitlistOut])
async def list_waiting(desired_type: str | None = None, sched: Scheduling = Depends(get_scheduling)):
    return await sched.waitlist.list(desired_type)

@router.get("/stats", response_model=WaitlistStats)
async def stats(sched: Scheduling = Depends(get_scheduling)):
    return await sched.waitlist.stats()

@router.get("/{entry_id}", response_model=WaitlistOut)
async def get_entry(entry_id: uuid.UUID, sched: Scheduling = Depends(get_scheduling)):
    entry = await sched.waitlist.get(entry_id)
    if not entry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Waitlist entry not found")
    return entry

@router.patch("/{entry_id}", response_model=WaitlistOut)
async def reprioritize(entry_id: uuid.UUID, payload: WaitlistUpdate, sched: Scheduling = Depends(get_scheduling)):
    entry, err = await sched.waitlist.reprioritize(entry_id, payload.priority, payload.urgency)
    if err:
        raise http_error(err)
    return entry

@router.delete("/{entry_id}", status_code=204)
async def withdraw(entry_id: uuid.UUID, sched: Scheduling = Depends(get_scheduling)):
    # withdrawing twice is a no-op
    await sched.waitlist.withdraw(entry_id)
    return

@router.post("/{entry_id}/promote", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def promote(entry_id: uuid.UUID, payload: WaitlistPromote | None = None, sched: Scheduling = Depends(get_scheduling)):
    booking, err = await sched.waitlist.promote(entry_id, payload.interval if payload else None)
    if err:
        raise http_error(err)
    return BookingOut.of(booking)
