import os
import threading
import time
from datetime import datetime
from uuid import UUID, uuid4

os.environ.setdefault('DATABASE_URL', 'sqlite://')

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from clinicbook.database import Base  # noqa: E402
from clinicbook.models.appointment import Appointment  # noqa: E402
from clinicbook.models.doctor import Doctor  # noqa: E402
from clinicbook.models.enums import AppointmentStatus, AppointmentType  # noqa: E402
from clinicbook.models.patient import Patient  # noqa: E402
from clinicbook.models.user import User  # noqa: E402
from clinicbook.scheduling.availability import WorkingHours  # noqa: E402
from clinicbook.scheduling.errors import StoreUnavailableError  # noqa: E402
from clinicbook.scheduling.lifecycle import AppointmentService  # noqa: E402
from clinicbook.scheduling.locks import DoctorLocks  # noqa: E402
from clinicbook.scheduling.schemas import AppointmentCandidate, AppointmentRecord, DoctorSummary  # noqa: E402

# Sunday; most tests book the following Monday, 2099-03-02.
NOW = datetime(2099, 3, 1, 9, 0)


class FakeAppointmentStore:
    def __init__(self, read_delay: float = 0.0) -> None:
        self.records: dict[UUID, AppointmentRecord] = {}
        self.read_delay = read_delay
        self.range_queries = 0
        self.refreshes = 0
        self._lock = threading.Lock()

    def _snapshot(self) -> list[AppointmentRecord]:
        with self._lock:
            return sorted(self.records.values(), key=lambda record: record.start_time)

    def save(self, appointment: AppointmentRecord) -> AppointmentRecord:
        with self._lock:
            self.records[appointment.id] = appointment
        return appointment

    def find_by_id(self, appointment_id: UUID) -> AppointmentRecord | None:
        return self.records.get(appointment_id)

    def find_by_doctor_and_range(self, doctor_id: UUID, start: datetime, end: datetime) -> list[AppointmentRecord]:
        self.range_queries += 1
        matches = [
            record
            for record in self._snapshot()
            if record.doctor_id == doctor_id and record.start_time < end and record.end_time > start
        ]
        if self.read_delay:
            time.sleep(self.read_delay)
        return matches

    def find_by_doctor(self, doctor_id: UUID) -> list[AppointmentRecord]:
        return [record for record in self._snapshot() if record.doctor_id == doctor_id]

    def find_by_patient(self, patient_id: UUID, start=None, end=None) -> list[AppointmentRecord]:
        return [
            record
            for record in self._snapshot()
            if record.patient_id == patient_id
            and (start is None or record.end_time > start)
            and (end is None or record.start_time < end)
        ]

    def find_by_status(self, status: AppointmentStatus) -> list[AppointmentRecord]:
        return [record for record in self._snapshot() if record.status == status]

    def delete_by_id(self, appointment_id: UUID) -> bool:
        with self._lock:
            return self.records.pop(appointment_id, None) is not None

    def exists_by_id(self, appointment_id: UUID) -> bool:
        return appointment_id in self.records

    def refresh(self) -> None:
        self.refreshes += 1


class FakeDirectory:
    def __init__(self) -> None:
        self.doctors: dict[UUID, dict] = {}
        self.patients: dict[UUID, str] = {}
        self.fail_lookups = False

    def add_doctor(
        self,
        name: str = 'Ana Torres',
        specialization: str = 'Cardiology',
        hours: WorkingHours | None = None,
        active: bool = True,
    ) -> UUID:
        doctor_id = uuid4()
        self.doctors[doctor_id] = {
            'name': name,
            'specialization': specialization,
            'hours': hours,
            'active': active,
        }
        return doctor_id

    def add_patient(self, name: str = 'Luis Gomez') -> UUID:
        patient_id = uuid4()
        self.patients[patient_id] = name
        return patient_id

    def doctor_exists(self, doctor_id: UUID) -> bool:
        doctor = self.doctors.get(doctor_id)
        return doctor is not None and doctor['active']

    def patient_exists(self, patient_id: UUID) -> bool:
        return patient_id in self.patients

    def doctor_working_hours(self, doctor_id: UUID) -> WorkingHours | None:
        doctor = self.doctors.get(doctor_id)
        return doctor['hours'] if doctor else None

    def doctor_summary(self, doctor_id: UUID) -> DoctorSummary | None:
        if self.fail_lookups:
            raise StoreUnavailableError('Directory timed out.')
        doctor = self.doctors.get(doctor_id)
        if doctor is None:
            return None
        return DoctorSummary(id=doctor_id, name=doctor['name'], specialization=doctor['specialization'])

    def patient_name(self, patient_id: UUID) -> str | None:
        if self.fail_lookups:
            raise StoreUnavailableError('Directory timed out.')
        return self.patients.get(patient_id)

    def active_doctor_ids(self, specialization: str | None = None) -> list[UUID]:
        return [
            doctor_id
            for doctor_id, doctor in self.doctors.items()
            if doctor['active']
            and (specialization is None or doctor['specialization'].lower() == specialization.lower())
        ]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> FakeAppointmentStore:
    return FakeAppointmentStore()


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def doctor_id(directory: FakeDirectory) -> UUID:
    return directory.add_doctor()


@pytest.fixture
def patient_id(directory: FakeDirectory) -> UUID:
    return directory.add_patient()


@pytest.fixture
def staff_user_id() -> UUID:
    return uuid4()


@pytest.fixture
def service(store: FakeAppointmentStore, directory: FakeDirectory) -> AppointmentService:
    return AppointmentService(store, directory, clock=lambda: NOW, locks=DoctorLocks(), lock_timeout=2)


@pytest.fixture
def make_candidate(doctor_id: UUID, patient_id: UUID):
    def _make(start: datetime, end: datetime, **overrides) -> AppointmentCandidate:
        fields = {
            'doctor_id': doctor_id,
            'patient_id': patient_id,
            'start_time': start,
            'end_time': end,
            'type': AppointmentType.CONSULTATION,
        }
        fields.update(overrides)
        return AppointmentCandidate(**fields)

    return _make


@pytest.fixture
def db_session():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    tables = [User.__table__, Doctor.__table__, Patient.__table__, Appointment.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(tables)))
