import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicbook.models.doctor import Doctor
from clinicbook.models.patient import Patient
from clinicbook.repositories.appointment_store import STORE_UNAVAILABLE_MESSAGE
from clinicbook.scheduling.availability import WorkingHours
from clinicbook.scheduling.errors import InternalError, StoreUnavailableError
from clinicbook.scheduling.schemas import DoctorSummary

logger = logging.getLogger(__name__)


def full_name(first_name: str | None, last_name: str | None) -> str:
    return ' '.join(part for part in (first_name, last_name) if part)


class SqlAlchemyDirectory:
    """Doctor and patient lookups used by the scheduling engine."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _get(self, model, entity_id: UUID):
        try:
            return self.db.get(model, entity_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE) from exc

    def doctor_exists(self, doctor_id: UUID) -> bool:
        doctor = self._get(Doctor, doctor_id)
        return doctor is not None and bool(doctor.is_active)

    def patient_exists(self, patient_id: UUID) -> bool:
        return self._get(Patient, patient_id) is not None

    def doctor_working_hours(self, doctor_id: UUID) -> WorkingHours | None:
        doctor = self._get(Doctor, doctor_id)
        if doctor is None:
            return None

        try:
            return WorkingHours.from_mapping(doctor.working_hours)
        except ValueError as exc:
            logger.exception('Working hours for doctor %s could not be parsed', doctor_id)
            raise InternalError(f'Stored working hours for doctor {doctor_id} are invalid.') from exc

    def doctor_summary(self, doctor_id: UUID) -> DoctorSummary | None:
        doctor = self._get(Doctor, doctor_id)
        if doctor is None:
            return None

        return DoctorSummary(
            id=doctor.id,
            name=full_name(doctor.first_name, doctor.last_name),
            specialization=doctor.specialization or '',
        )

    def patient_name(self, patient_id: UUID) -> str | None:
        patient = self._get(Patient, patient_id)
        if patient is None:
            return None
        return full_name(patient.first_name, patient.last_name)

    def active_doctor_ids(self, specialization: str | None = None) -> list[UUID]:
        query = self.db.query(Doctor.id).filter(Doctor.is_active.is_(True))

        normalized = (specialization or '').strip().lower()
        if normalized:
            query = query.filter(func.lower(Doctor.specialization) == normalized)

        try:
            rows = query.order_by(Doctor.last_name.asc(), Doctor.first_name.asc()).all()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE) from exc

        return [row.id for row in rows]
