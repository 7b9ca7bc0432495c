"""Value types exchanged between the scheduling engine, its store and callers.

Datetimes are naive local date-times. Incoming values are truncated to whole
seconds and outgoing values serialize as ISO-8601 without fractional seconds,
e.g. ``2099-03-02T10:00:00``. Field names serialize in camelCase
(``doctorId``, ``startTime``) and are accepted in either form.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from clinicbook.models.enums import AppointmentStatus, AppointmentType
from clinicbook.scheduling.errors import ValidationError


def normalize_local_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        raise ValueError('Times must be local date-times without a UTC offset.')
    return value.replace(microsecond=0)


def require_local_datetime(value: datetime | None, field_name: str) -> datetime | None:
    """Query-parameter counterpart of ``normalize_local_datetime``."""
    try:
        return normalize_local_datetime(value)
    except ValueError as exc:
        raise ValidationError(
            f'{field_name} must be a local date-time without a UTC offset.',
            code='invalid_datetime',
        ) from exc


def normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    return normalized


class ScheduleModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class AppointmentCandidate(ScheduleModel):
    doctor_id: UUID
    patient_id: UUID
    start_time: datetime
    end_time: datetime
    type: AppointmentType = AppointmentType.CONSULTATION
    status: AppointmentStatus | None = None
    notes: str | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, value: datetime) -> datetime:
        return normalize_local_datetime(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class AppointmentUpdate(ScheduleModel):
    """Partial update; only fields that were explicitly set are applied."""

    doctor_id: UUID | None = None
    patient_id: UUID | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    type: AppointmentType | None = None
    status: AppointmentStatus | None = None
    notes: str | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, value: datetime | None) -> datetime | None:
        return normalize_local_datetime(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class AppointmentRecord(ScheduleModel):
    """Persisted shape of an appointment."""

    id: UUID
    doctor_id: UUID
    patient_id: UUID
    start_time: datetime
    end_time: datetime
    type: AppointmentType
    status: AppointmentStatus
    notes: str | None = None
    created_by: UUID
    created_at: datetime
    updated_at: datetime

    @field_serializer('start_time', 'end_time', 'created_at', 'updated_at', when_used='json')
    def serialize_local_datetime(self, value: datetime) -> str:
        return value.replace(microsecond=0).isoformat()


class AppointmentView(AppointmentRecord):
    doctor_name: str
    patient_name: str
    doctor_specialization: str = ''


class DoctorSummary(ScheduleModel):
    id: UUID
    name: str
    specialization: str = ''
