from datetime import datetime
from typing import Iterable
from uuid import UUID

from clinicbook.models.enums import AppointmentStatus
from clinicbook.scheduling.intervals import overlaps
from clinicbook.scheduling.schemas import AppointmentRecord
from clinicbook.scheduling.store import AppointmentStore

NON_BLOCKING_STATUSES = frozenset({AppointmentStatus.CANCELLED})


def blocks_calendar(appointment: AppointmentRecord) -> bool:
    return appointment.status not in NON_BLOCKING_STATUSES


def select_conflicts(
    appointments: Iterable[AppointmentRecord],
    start: datetime,
    end: datetime,
    exclude_appointment_id: UUID | None = None,
) -> list[AppointmentRecord]:
    conflicts = [
        appointment
        for appointment in appointments
        if blocks_calendar(appointment)
        and appointment.id != exclude_appointment_id
        and overlaps(appointment.start_time, appointment.end_time, start, end)
    ]
    return sorted(conflicts, key=lambda appointment: appointment.start_time)


class ConflictDetector:
    """Finds a doctor's non-cancelled appointments that overlap a candidate interval."""

    def __init__(self, store: AppointmentStore) -> None:
        self.store = store

    def find_conflicts(
        self,
        doctor_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> list[AppointmentRecord]:
        candidates = self.store.find_by_doctor_and_range(doctor_id, start, end)
        return select_conflicts(candidates, start, end, exclude_appointment_id)

    def has_conflict(
        self,
        doctor_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> bool:
        return bool(self.find_conflicts(doctor_id, start, end, exclude_appointment_id))
