from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError
from app.api.deps import Scheduling, get_scheduling
from app.modules.availability.schemas import AlternativesRequest, SlotOut, SlotsQuery

router = APIRouter()

@router.get("/availability/slots", response_model=list[SlotOut])
async def search_slots(resource_id: str, start: datetime, end: datetime, min_duration: int | None = None, sched: Scheduling = Depends(get_scheduling)):
    try:
        q = SlotsQuery(resource_id=resource_id, start=start, end=end, min_duration=min_duration)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    if await sched.ledger.get_resource(resource_id) is None:
        raise HTTPException(status_code=404, detail="Resource not found")
    slots = await sched.finder.free_slots(
        q.resource_id, q.window,
        timedelta(minutes=q.min_duration) if q.min_duration else None,
    )
    return [SlotOut.of(iv) for iv in slots]

@router.post("/availability/alternatives", response_model=list[SlotOut])
async def suggest_alternatives(payload: AlternativesRequest, sched: Scheduling = Depends(get_scheduling)):
    slots = await sched.finder.suggest_alternatives(payload, payload.max_suggestions)
    return [SlotOut.of(iv) for iv in slots]
