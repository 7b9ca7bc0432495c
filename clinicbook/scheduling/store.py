"""Collaborator interfaces consumed by the scheduling engine.

Implementations raise StoreUnavailableError when the backing database times
out or cannot be reached, and InternalError when a stored row cannot be
turned back into a record.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable
from uuid import UUID

from clinicbook.models.enums import AppointmentStatus
from clinicbook.scheduling.schemas import AppointmentRecord, DoctorSummary

if TYPE_CHECKING:
    from clinicbook.scheduling.availability import WorkingHours


@runtime_checkable
class AppointmentStore(Protocol):
    def save(self, appointment: AppointmentRecord) -> AppointmentRecord:
        """Insert or replace the record atomically and return what was stored."""
        ...

    def find_by_id(self, appointment_id: UUID) -> AppointmentRecord | None:
        ...

    def find_by_doctor_and_range(self, doctor_id: UUID, start: datetime, end: datetime) -> list[AppointmentRecord]:
        """Appointments of any status whose interval overlaps ``[start, end)``, by start time."""
        ...

    def find_by_doctor(self, doctor_id: UUID) -> list[AppointmentRecord]:
        ...

    def find_by_patient(
        self,
        patient_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[AppointmentRecord]:
        ...

    def find_by_status(self, status: AppointmentStatus) -> list[AppointmentRecord]:
        ...

    def delete_by_id(self, appointment_id: UUID) -> bool:
        ...

    def exists_by_id(self, appointment_id: UUID) -> bool:
        ...

    def refresh(self) -> None:
        """End any open read snapshot so later reads see committed writes.

        Called right after a doctor's booking lock is acquired.
        """
        ...


@runtime_checkable
class Directory(Protocol):
    """Read-only view of doctors and patients."""

    def doctor_exists(self, doctor_id: UUID) -> bool:
        """True only for doctors that exist and are active."""
        ...

    def patient_exists(self, patient_id: UUID) -> bool:
        ...

    def doctor_working_hours(self, doctor_id: UUID) -> 'WorkingHours | None':
        ...

    def doctor_summary(self, doctor_id: UUID) -> DoctorSummary | None:
        ...

    def patient_name(self, patient_id: UUID) -> str | None:
        ...

    def active_doctor_ids(self, specialization: str | None = None) -> list[UUID]:
        ...
