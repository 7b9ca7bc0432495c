"""Working-hours policy for doctors.

A doctor either has a stored weekly schedule or falls back to the clinic
default (Monday to Friday, 08:00 to 18:00). The stored schedule, when
present, fully replaces the default, so a doctor who lists Saturday hours is
bookable on Saturdays.
"""

from datetime import date, datetime, time
from typing import Any, Mapping
from uuid import UUID

from pydantic import BaseModel, model_validator

from clinicbook.scheduling.errors import ValidationError
from clinicbook.scheduling.store import Directory

WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')
WEEKEND_DAYS = frozenset({5, 6})
DEFAULT_OPEN_TIME = time(8, 0)
DEFAULT_CLOSE_TIME = time(18, 0)


class WorkingWindow(BaseModel):
    start: time
    end: time

    @model_validator(mode='after')
    def validate_order(self) -> 'WorkingWindow':
        if self.end <= self.start:
            raise ValueError('Working hours must end after they start.')
        return self


class WorkingHours(BaseModel):
    """Weekly schedule; a day set to None is not a working day."""

    monday: WorkingWindow | None = None
    tuesday: WorkingWindow | None = None
    wednesday: WorkingWindow | None = None
    thursday: WorkingWindow | None = None
    friday: WorkingWindow | None = None
    saturday: WorkingWindow | None = None
    sunday: WorkingWindow | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> 'WorkingHours | None':
        """Parse the stored ``{"monday": {"start": "08:00", "end": "18:00"}}`` map.

        Returns None for a missing or empty map so callers fall back to the
        default schedule.
        """
        if not raw:
            return None

        if not isinstance(raw, Mapping):
            return cls.model_validate(raw)

        normalized = {str(day).strip().lower(): window for day, window in raw.items()}
        return cls.model_validate(normalized)

    def window_for(self, day: date) -> WorkingWindow | None:
        return getattr(self, WEEKDAYS[day.weekday()])


DEFAULT_WORKING_HOURS = WorkingHours(
    **{
        day: WorkingWindow(start=DEFAULT_OPEN_TIME, end=DEFAULT_CLOSE_TIME)
        for day in WEEKDAYS[:5]
    }
)


def policy_violation(hours: WorkingHours, start: datetime, end: datetime) -> ValidationError | None:
    window = hours.window_for(start.date())

    if window is None:
        if start.weekday() in WEEKEND_DAYS:
            return ValidationError('Appointments cannot be scheduled on weekends.', code='weekend')
        return ValidationError(
            f'The doctor does not work on {WEEKDAYS[start.weekday()].capitalize()}s.',
            code='non_working_day',
        )

    if end.date() != start.date() or start.time() < window.start or end.time() > window.end:
        return ValidationError(
            f'Appointment must be within working hours ({window.start:%H:%M} to {window.end:%H:%M}).',
            code='outside_working_hours',
        )

    return None


class AvailabilityPolicy:
    def __init__(self, directory: Directory) -> None:
        self.directory = directory

    def working_hours_for(self, doctor_id: UUID) -> WorkingHours:
        hours = self.directory.doctor_working_hours(doctor_id)
        if hours is None:
            return DEFAULT_WORKING_HOURS
        return hours

    def check(self, doctor_id: UUID, start: datetime, end: datetime) -> None:
        violation = policy_violation(self.working_hours_for(doctor_id), start, end)
        if violation is not None:
            raise violation

    def is_within_working_hours(self, doctor_id: UUID, start: datetime, end: datetime) -> bool:
        return policy_violation(self.working_hours_for(doctor_id), start, end) is None
