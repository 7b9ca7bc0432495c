from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel

from clinicbook.auth.dependencies import get_current_user, require_staff
from clinicbook.models.enums import AppointmentStatus
from clinicbook.models.user import User
from clinicbook.routes.common import ensure_database_ready, get_appointment_service, to_http_exception
from clinicbook.scheduling.errors import SchedulingError
from clinicbook.scheduling.lifecycle import AppointmentService
from clinicbook.scheduling.schemas import (
    AppointmentCandidate,
    AppointmentRecord,
    AppointmentUpdate,
    AppointmentView,
)

router = APIRouter(tags=['appointments'])


class StatusChangeRequest(BaseModel):
    status: AppointmentStatus


def ensure_can_access(appointment: AppointmentRecord, user: User, action: str) -> None:
    if user.is_staff or appointment.created_by == user.id:
        return

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=f'Only clinic staff or the user who booked this appointment can {action} it.',
    )


@router.post('', response_model=AppointmentView, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: AppointmentCandidate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    if not current_user.is_staff and data.status not in (None, AppointmentStatus.PENDING):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Patients can only request pending appointments.',
        )

    ensure_database_ready()

    try:
        if current_user.is_staff:
            appointment = service.create(data, created_by=current_user.id)
        else:
            appointment = service.request_booking(data, created_by=current_user.id)

        return service.describe(appointment)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('', response_model=list[AppointmentView])
def list_appointments(
    doctor_id: UUID | None = Query(default=None),
    patient_id: UUID | None = Query(default=None),
    appointment_status: AppointmentStatus | None = Query(default=None, alias='status'),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    require_staff(current_user)

    if doctor_id is None and patient_id is None and appointment_status is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Filter by doctor_id, patient_id or status.',
        )

    ensure_database_ready()

    try:
        if doctor_id is not None:
            appointments = service.list_for_doctor(doctor_id, start, end)
        elif patient_id is not None:
            appointments = service.list_for_patient(patient_id, start, end)
        else:
            appointments = service.list_by_status(appointment_status)

        if appointment_status is not None:
            appointments = [appointment for appointment in appointments if appointment.status == appointment_status]
        if patient_id is not None:
            appointments = [appointment for appointment in appointments if appointment.patient_id == patient_id]

        return [service.describe(appointment) for appointment in appointments]
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/conflicts', response_model=list[AppointmentRecord])
def list_conflicts(
    doctor_id: UUID = Query(...),
    start: datetime = Query(...),
    end: datetime = Query(...),
    exclude_id: UUID | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    require_staff(current_user)
    ensure_database_ready()

    try:
        return service.find_conflicts(doctor_id, start, end, exclude_appointment_id=exclude_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/{appointment_id}', response_model=AppointmentView)
def get_appointment(
    appointment_id: UUID,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()

    try:
        appointment = service.get(appointment_id)
        ensure_can_access(appointment, current_user, 'view')
        return service.describe(appointment)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.put('/{appointment_id}', response_model=AppointmentView)
def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    require_staff(current_user)
    ensure_database_ready()

    try:
        return service.describe(service.update(appointment_id, data))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.put('/{appointment_id}/status', response_model=AppointmentView)
def overwrite_appointment_status(
    appointment_id: UUID,
    data: StatusChangeRequest,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    require_staff(current_user)
    ensure_database_ready()

    try:
        return service.describe(service.set_status(appointment_id, data.status))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/{appointment_id}/transition', response_model=AppointmentView)
def transition_appointment(
    appointment_id: UUID,
    data: StatusChangeRequest,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    require_staff(current_user)
    ensure_database_ready()

    try:
        return service.describe(service.transition(appointment_id, data.status))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentView)
def cancel_appointment(
    appointment_id: UUID,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    ensure_database_ready()

    try:
        ensure_can_access(service.get(appointment_id), current_user, 'cancel')
        return service.describe(service.cancel(appointment_id))
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: UUID,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    require_staff(current_user)
    ensure_database_ready()

    try:
        deleted = service.delete(appointment_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )

    return Response(status_code=status.HTTP_204_NO_CONTENT)
