import logging
from datetime import datetime
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from clinicbook.models.appointment import Appointment
from clinicbook.models.enums import AppointmentStatus
from clinicbook.scheduling.errors import InternalError, StoreUnavailableError
from clinicbook.scheduling.schemas import AppointmentRecord

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE_MESSAGE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def to_record(row: Appointment) -> AppointmentRecord:
    try:
        record = AppointmentRecord.model_validate(row)
    except PydanticValidationError as exc:
        logger.exception('Stored appointment %s could not be read', row.id)
        raise InternalError(f'Stored appointment {row.id} is corrupted.', appointment_id=row.id) from exc

    if record.end_time <= record.start_time:
        logger.error('Stored appointment %s ends before it starts', row.id)
        raise InternalError(f'Stored appointment {row.id} is corrupted.', appointment_id=row.id)

    return record


class SqlAlchemyAppointmentStore:
    """Appointment store backed by a SQLAlchemy session.

    Every write is committed in its own transaction and rolled back on
    failure, so a record is either fully stored or not stored at all.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _fetch_all(self, query: Query) -> list[AppointmentRecord]:
        try:
            rows = query.all()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE) from exc

        return [to_record(row) for row in rows]

    def save(self, appointment: AppointmentRecord) -> AppointmentRecord:
        try:
            row = self.db.get(Appointment, appointment.id)
            if row is None:
                row = Appointment(id=appointment.id)
                self.db.add(row)

            row.doctor_id = appointment.doctor_id
            row.patient_id = appointment.patient_id
            row.start_time = appointment.start_time
            row.end_time = appointment.end_time
            row.type = appointment.type.value
            row.status = appointment.status.value
            row.notes = appointment.notes
            row.created_by = appointment.created_by
            row.created_at = appointment.created_at
            row.updated_at = appointment.updated_at

            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE) from exc

        return to_record(row)

    def find_by_id(self, appointment_id: UUID) -> AppointmentRecord | None:
        try:
            row = self.db.get(Appointment, appointment_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE) from exc

        if row is None:
            return None
        return to_record(row)

    def find_by_doctor_and_range(self, doctor_id: UUID, start: datetime, end: datetime) -> list[AppointmentRecord]:
        return self._fetch_all(
            self.db.query(Appointment).filter(
                Appointment.doctor_id == doctor_id,
                Appointment.start_time < end,
                Appointment.end_time > start,
            ).order_by(Appointment.start_time.asc())
        )

    def find_by_doctor(self, doctor_id: UUID) -> list[AppointmentRecord]:
        return self._fetch_all(
            self.db.query(Appointment).filter(
                Appointment.doctor_id == doctor_id,
            ).order_by(Appointment.start_time.asc())
        )

    def find_by_patient(
        self,
        patient_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[AppointmentRecord]:
        query = self.db.query(Appointment).filter(Appointment.patient_id == patient_id)
        if end is not None:
            query = query.filter(Appointment.start_time < end)
        if start is not None:
            query = query.filter(Appointment.end_time > start)

        return self._fetch_all(query.order_by(Appointment.start_time.asc()))

    def find_by_status(self, status: AppointmentStatus) -> list[AppointmentRecord]:
        return self._fetch_all(
            self.db.query(Appointment).filter(
                Appointment.status == status.value,
            ).order_by(Appointment.start_time.asc())
        )

    def delete_by_id(self, appointment_id: UUID) -> bool:
        try:
            row = self.db.get(Appointment, appointment_id)
            if row is None:
                return False

            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE) from exc

        return True

    def exists_by_id(self, appointment_id: UUID) -> bool:
        try:
            return self.db.query(Appointment.id).filter(Appointment.id == appointment_id).first() is not None
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE) from exc

    def refresh(self) -> None:
        # A REPEATABLE READ snapshot is fixed by the first query of the transaction.
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailableError(STORE_UNAVAILABLE_MESSAGE) from exc
