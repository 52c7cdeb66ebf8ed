import uuid
from fastapi import APIRouter, Depends, HTTPException, status
from app.api.deps import Scheduling, get_scheduling
from app.api.errors import http_error
from app.modules.bookings.errors import ErrorKind
from app.modules.bookings.schemas import BookingCandidate, BookingOut, CancelRequest, RescheduleRequest, Resource, ResourceCreate

router = APIRouter()

# Resources
@router.post("/resources", response_model=Resource, status_code=status.HTTP_201_CREATED)
async def register_resource(payload: ResourceCreate, sched: Scheduling = Depends(get_scheduling)):
    return await sched.ledger.register_resource(payload)

# Bookings
@router.post("/bookings", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def reserve(payload: BookingCandidate, sched: Scheduling = Depends(get_scheduling)):
    booking, err = await sched.ledger.reserve(payload)
    if err:
        alternatives = None
        if err.kind is ErrorKind.CONFLICT:
            alternatives = await sched.finder.suggest_alternatives(payload, 3)
        raise http_error(err, alternatives)
    return BookingOut.of(booking)

@router.get("/bookings/{booking_id}", response_model=BookingOut)
async def get_booking(booking_id: uuid.UUID, sched: Scheduling = Depends(get_scheduling)):
    booking = await sched.ledger.get(booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return BookingOut.of(booking)

@router.post("/bookings/{booking_id}/cancel", response_model=BookingOut)
async def cancel(booking_id: uuid.UUID, payload: CancelRequest | None = None, sched: Scheduling = Depends(get_scheduling)):
    booking, err = await sched.ledger.cancel(booking_id, payload.reason if payload else None)
    if err:
        raise http_error(err)
    return BookingOut.of(booking)

@router.post("/bookings/{booking_id}/reschedule", response_model=BookingOut)
async def reschedule(booking_id: uuid.UUID, payload: RescheduleRequest, sched: Scheduling = Depends(get_scheduling)):
    booking, err = await sched.ledger.reschedule(booking_id, payload.interval)
    if err:
        raise http_error(err)
    return BookingOut.of(booking)
