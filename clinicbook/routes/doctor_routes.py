from datetime import datetime, timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from clinicbook.core import config
from clinicbook.routes.common import ensure_database_ready, get_appointment_service, to_http_exception
from clinicbook.scheduling.errors import SchedulingError
from clinicbook.scheduling.lifecycle import AppointmentService, local_range
from clinicbook.scheduling.schemas import DoctorSummary
from clinicbook.scheduling.slots import AvailabilitySlot

router = APIRouter(tags=['doctors'])

MAX_SLOT_RANGE_DAYS = 31


class AvailabilityCheckResponse(BaseModel):
    doctor_id: UUID
    start_time: datetime
    end_time: datetime
    available: bool


@router.get('/available', response_model=list[DoctorSummary])
def list_available_doctors(
    start: datetime = Query(...),
    end: datetime = Query(...),
    specialization: str | None = Query(default=None),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()

    try:
        return service.available_doctors(start, end, specialization)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/{doctor_id}/availability', response_model=AvailabilityCheckResponse)
def check_doctor_availability(
    doctor_id: UUID,
    start: datetime = Query(...),
    end: datetime = Query(...),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()

    try:
        available = service.check_availability(doctor_id, start, end)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    return AvailabilityCheckResponse(doctor_id=doctor_id, start_time=start, end_time=end, available=available)


@router.get('/{doctor_id}/slots', response_model=list[AvailabilitySlot])
def list_doctor_slots(
    doctor_id: UUID,
    start: datetime = Query(...),
    end: datetime = Query(...),
    slot_minutes: int = Query(default=config.DEFAULT_SLOT_MINUTES, ge=5, le=480),
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        start, end = local_range(start, end)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    if end - start > timedelta(days=MAX_SLOT_RANGE_DAYS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Slots can be listed for at most {MAX_SLOT_RANGE_DAYS} days at a time.',
        )

    ensure_database_ready()

    try:
        return list(service.generate_slots(doctor_id, start, end, slot_minutes))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
