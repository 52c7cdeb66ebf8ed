import uuid
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from app.api.deps import Scheduling, get_scheduling
from app.api.errors import http_error
from app.modules.appointments.schemas import AppointmentCancel, AppointmentOut, AppointmentStatus

router = APIRouter()
logger = logging.getLogger(__name__)

# ---- Appointments ----

@router.get("", response_model=list[AppointmentOut])
async def list_appointments(patient_id: uuid.UUID | None = None, status: AppointmentStatus | None = None, sched: Scheduling = Depends(get_scheduling)):
    return await sched.lifecycle.list(patient_id=patient_id, status=status)

@router.get("/{appointment_id}", response_model=AppointmentOut)
async def get_appointment(appointment_id: uuid.UUID, sched: Scheduling = Depends(get_scheduling)):
    appt = await sched.lifecycle.get(appointment_id)
    if not appt:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    return appt

@router.post("/{appointment_id}/check-in", response_model=AppointmentOut)
async def check_in(appointment_id: uuid.UUID, sched: Scheduling = Depends(get_scheduling)):
    appt, err = await sched.lifecycle.check_in(appointment_id)
    if err:
        raise http_error(err)
    return appt

@router.post("/{appointment_id}/complete", response_model=AppointmentOut)
async def complete(appointment_id: uuid.UUID, sched: Scheduling = Depends(get_scheduling)):
    appt, err = await sched.lifecycle.complete(appointment_id)
    if err:
        raise http_error(err)
    return appt

@router.post("/{appointment_id}/cancel", response_model=AppointmentOut)
async def cancel(appointment_id: uuid.UUID, payload: AppointmentCancel | None = None, sched: Scheduling = Depends(get_scheduling)):
    appt, err = await sched.lifecycle.cancel(appointment_id, payload.reason if payload else None)
    if err:
        logger.info(f"Cancel of appointment {appointment_id} rejected: {err.message}")
        raise http_error(err)
    return appt

@router.post("/{appointment_id}/no-show", response_model=AppointmentOut)
async def mark_no_show(appointment_id: uuid.UUID, sched: Scheduling = Depends(get_scheduling)):
    appt, err = await sched.lifecycle.mark_no_show(appointment_id)
    if err:
        raise http_error(err)
    return appt
