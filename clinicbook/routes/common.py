from fastapi import Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicbook.database import ensure_appointment_schema, get_db
from clinicbook.repositories.appointment_store import SqlAlchemyAppointmentStore
from clinicbook.repositories.directory import SqlAlchemyDirectory
from clinicbook.scheduling.errors import (
    ConflictError,
    NotFoundError,
    SchedulingError,
    StoreUnavailableError,
    ValidationError,
)
from clinicbook.scheduling.lifecycle import AppointmentService

# First match wins; UnknownReferenceError is both a ValidationError and a
# NotFoundError and maps to 400.
ERROR_STATUS_CODES = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    return AppointmentService(SqlAlchemyAppointmentStore(db), SqlAlchemyDirectory(db))


def to_http_exception(exc: SchedulingError) -> HTTPException:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.message)

    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail='Internal scheduling error.',
    )
