"""Appointment lifecycle: booking, updates and status changes.

Statuses move along a small graph::

    PENDING -> SCHEDULED | CANCELLED
    SCHEDULED -> COMPLETED | CANCELLED | NO_SHOW

COMPLETED, CANCELLED and NO_SHOW are terminal. ``transition`` enforces the
graph. ``set_status`` is the administrative overwrite and does not;
neither re-checks availability.
"""

import functools
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator
from uuid import UUID, uuid4

from clinicbook.core import config
from clinicbook.models.enums import AppointmentStatus
from clinicbook.scheduling.availability import AvailabilityPolicy
from clinicbook.scheduling.conflicts import ConflictDetector, blocks_calendar
from clinicbook.scheduling.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    StoreUnavailableError,
    UnknownReferenceError,
    ValidationError,
)
from clinicbook.scheduling.intervals import duration_minutes
from clinicbook.scheduling.locks import DoctorLocks, booking_locks
from clinicbook.scheduling.schemas import (
    AppointmentCandidate,
    AppointmentRecord,
    AppointmentUpdate,
    AppointmentView,
    DoctorSummary,
    require_local_datetime,
)
from clinicbook.scheduling.slots import SlotGenerator, SlotSequence
from clinicbook.scheduling.store import AppointmentStore, Directory

logger = logging.getLogger(__name__)

UNKNOWN_NAME = 'Unknown'

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.SCHEDULED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}
TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)

REQUIRED_FIELDS = (
    ('doctor_id', 'Doctor is required.'),
    ('patient_id', 'Patient is required.'),
    ('start_time', 'Start time is required.'),
    ('end_time', 'End time is required.'),
    ('type', 'Appointment type is required.'),
    ('status', 'Appointment status is required.'),
)


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def local_range(start: datetime | None, end: datetime | None) -> tuple[datetime | None, datetime | None]:
    return require_local_datetime(start, 'start'), require_local_datetime(end, 'end')


def validate_appointment_shape(appointment: AppointmentRecord, now: datetime, *, check_past: bool = True) -> None:
    for field_name, message in REQUIRED_FIELDS:
        if getattr(appointment, field_name) is None:
            raise ValidationError(message, code='missing_field')

    if appointment.end_time <= appointment.start_time:
        raise ValidationError('End time must be after start time.', code='invalid_interval')

    minutes = duration_minutes(appointment.start_time, appointment.end_time)
    if minutes < config.MIN_APPOINTMENT_MINUTES:
        raise ValidationError(
            f'Appointments must last at least {config.MIN_APPOINTMENT_MINUTES} minutes.',
            code='duration_out_of_bounds',
        )
    if minutes > config.MAX_APPOINTMENT_MINUTES:
        raise ValidationError(
            f'Appointments cannot last more than {config.MAX_APPOINTMENT_MINUTES // 60} hours.',
            code='duration_out_of_bounds',
        )

    if check_past and appointment.start_time <= now:
        raise ValidationError('Appointments must be scheduled in the future.', code='start_in_past')

    if appointment.notes is not None and len(appointment.notes) > config.MAX_NOTES_LENGTH:
        raise ValidationError(
            f'Notes must be {config.MAX_NOTES_LENGTH} characters or fewer.',
            code='notes_too_long',
        )


def scheduling_operation(operation: str):
    """Tag InternalErrors escaping ``operation`` and log them once."""

    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            try:
                return method(self, *args, **kwargs)
            except InternalError as exc:
                if exc.operation is not None:
                    raise
                exc.operation = operation
                logger.error(
                    'Internal scheduling error during %s for appointment %s: %s',
                    operation,
                    exc.appointment_id,
                    exc.message,
                )
                raise

        return wrapper

    return decorator


class AppointmentService:
    def __init__(
        self,
        store: AppointmentStore,
        directory: Directory,
        *,
        clock: Callable[[], datetime] = datetime.now,
        locks: DoctorLocks = booking_locks,
        lock_timeout: float = config.BOOKING_LOCK_TIMEOUT_SECONDS,
    ) -> None:
        self.store = store
        self.directory = directory
        self.clock = clock
        self.locks = locks
        self.lock_timeout = lock_timeout
        self.policy = AvailabilityPolicy(directory)
        self.detector = ConflictDetector(store)
        self.slot_generator = SlotGenerator(store, self.policy, directory)

    def _now(self) -> datetime:
        return self.clock().replace(microsecond=0)

    def _require(self, appointment_id: UUID) -> AppointmentRecord:
        appointment = self.store.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError(f'Appointment not found with id: {appointment_id}')
        return appointment

    def _resolve_references(self, appointment: AppointmentRecord) -> None:
        if not self.directory.doctor_exists(appointment.doctor_id):
            raise UnknownReferenceError(f'Active doctor not found with id: {appointment.doctor_id}')
        if not self.directory.patient_exists(appointment.patient_id):
            raise UnknownReferenceError(f'Patient not found with id: {appointment.patient_id}')

    def _ensure_no_conflicts(self, appointment: AppointmentRecord, exclude_appointment_id: UUID | None) -> None:
        conflicts = self.detector.find_conflicts(
            appointment.doctor_id,
            appointment.start_time,
            appointment.end_time,
            exclude_appointment_id,
        )
        if conflicts:
            logger.warning(
                'Rejected booking for doctor %s at %s: overlaps %s',
                appointment.doctor_id,
                appointment.start_time.isoformat(),
                ', '.join(str(conflict.id) for conflict in conflicts),
            )
            raise ConflictError(
                'Doctor already has an appointment during this time.',
                conflicting_ids=[conflict.id for conflict in conflicts],
            )

    def _book(self, appointment: AppointmentRecord) -> AppointmentRecord:
        with self.locks.hold(appointment.doctor_id, self.lock_timeout):
            self.store.refresh()
            self._ensure_no_conflicts(appointment, exclude_appointment_id=None)
            return self.store.save(appointment)

    @contextmanager
    def _locked_appointment(self, appointment_id: UUID, *doctor_ids: UUID | None) -> Iterator[AppointmentRecord]:
        """Yield the stored appointment, re-read while its doctor's lock is held.

        Extra ``doctor_ids`` are locked as well, for edits that move the
        appointment to another doctor's calendar.
        """
        seen = self._require(appointment_id)
        locked_ids = {seen.doctor_id, *(doctor_id for doctor_id in doctor_ids if doctor_id is not None)}

        with self.locks.hold_all(locked_ids, self.lock_timeout):
            self.store.refresh()
            current = self._require(appointment_id)
            if current.doctor_id not in locked_ids:
                raise StoreUnavailableError(
                    f'Appointment {appointment_id} changed while waiting to edit it; try again.',
                    code='concurrent_update',
                )
            yield current

    def _change_status(
        self,
        appointment_id: UUID,
        status: AppointmentStatus,
        *,
        keep_if_current: bool = False,
        enforce_graph: bool = False,
    ) -> AppointmentRecord:
        with self._locked_appointment(appointment_id) as existing:
            if keep_if_current and existing.status == status:
                return existing

            if enforce_graph and not can_transition(existing.status, status):
                raise ValidationError(
                    f'Cannot move an appointment from {existing.status.value} to {status.value}.',
                    code='illegal_transition',
                )

            saved = self.store.save(existing.model_copy(update={'status': status, 'updated_at': self._now()}))

        logger.info(
            'Appointment %s status %s -> %s',
            saved.id,
            existing.status.value,
            saved.status.value,
        )
        return saved

    @scheduling_operation('create')
    def create(
        self,
        candidate: AppointmentCandidate,
        created_by: UUID,
        default_status: AppointmentStatus = AppointmentStatus.SCHEDULED,
    ) -> AppointmentRecord:
        """Book a new appointment entered by staff; status defaults to SCHEDULED."""
        if created_by is None:
            raise ValidationError('The user creating the appointment is required.', code='missing_field')

        now = self._now()
        appointment = AppointmentRecord(
            id=uuid4(),
            doctor_id=candidate.doctor_id,
            patient_id=candidate.patient_id,
            start_time=candidate.start_time,
            end_time=candidate.end_time,
            type=candidate.type,
            status=candidate.status or default_status,
            notes=candidate.notes,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )

        validate_appointment_shape(appointment, now)
        self._resolve_references(appointment)
        self.policy.check(appointment.doctor_id, appointment.start_time, appointment.end_time)
        saved = self._book(appointment)

        logger.info(
            'Created appointment %s for doctor %s at %s (%s)',
            saved.id,
            saved.doctor_id,
            saved.start_time.isoformat(),
            saved.status.value,
        )
        return saved

    def request_booking(self, candidate: AppointmentCandidate, created_by: UUID) -> AppointmentRecord:
        """Self-service booking by a patient; stays PENDING until staff confirm it."""
        return self.create(candidate, created_by, default_status=AppointmentStatus.PENDING)

    @scheduling_operation('update')
    def update(self, appointment_id: UUID, changes: AppointmentUpdate) -> AppointmentRecord:
        fields = changes.model_dump(exclude_unset=True)

        with self._locked_appointment(appointment_id, fields.get('doctor_id')) as existing:
            now = self._now()
            updated = existing.model_copy(update={**fields, 'updated_at': now})

            timing_changed = (
                updated.start_time != existing.start_time or updated.end_time != existing.end_time
            )
            validate_appointment_shape(updated, now, check_past=timing_changed)
            self._resolve_references(updated)
            self.policy.check(updated.doctor_id, updated.start_time, updated.end_time)
            if blocks_calendar(updated):
                self._ensure_no_conflicts(updated, exclude_appointment_id=existing.id)
            saved = self.store.save(updated)

        logger.info('Updated appointment %s (%s)', saved.id, ', '.join(sorted(fields)) or 'no fields')
        return saved

    @scheduling_operation('set_status')
    def set_status(self, appointment_id: UUID, status: AppointmentStatus) -> AppointmentRecord:
        """Overwrite the status without consulting the transition graph."""
        return self._change_status(appointment_id, status)

    @scheduling_operation('transition')
    def transition(self, appointment_id: UUID, status: AppointmentStatus) -> AppointmentRecord:
        return self._change_status(appointment_id, status, keep_if_current=True, enforce_graph=True)

    @scheduling_operation('cancel')
    def cancel(self, appointment_id: UUID) -> AppointmentRecord:
        return self._change_status(appointment_id, AppointmentStatus.CANCELLED, keep_if_current=True)

    @scheduling_operation('delete')
    def delete(self, appointment_id: UUID) -> bool:
        deleted = self.store.delete_by_id(appointment_id)
        if deleted:
            logger.info('Deleted appointment %s', appointment_id)
        return deleted

    @scheduling_operation('get')
    def get(self, appointment_id: UUID) -> AppointmentRecord:
        return self._require(appointment_id)

    @scheduling_operation('list_for_doctor')
    def list_for_doctor(
        self,
        doctor_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[AppointmentRecord]:
        start, end = local_range(start, end)
        if start is not None and end is not None:
            return self.store.find_by_doctor_and_range(doctor_id, start, end)
        appointments = self.store.find_by_doctor(doctor_id)
        return [
            appointment
            for appointment in appointments
            if (start is None or appointment.end_time > start) and (end is None or appointment.start_time < end)
        ]

    @scheduling_operation('list_for_patient')
    def list_for_patient(
        self,
        patient_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[AppointmentRecord]:
        start, end = local_range(start, end)
        return self.store.find_by_patient(patient_id, start, end)

    @scheduling_operation('list_by_status')
    def list_by_status(self, status: AppointmentStatus) -> list[AppointmentRecord]:
        return self.store.find_by_status(status)

    @scheduling_operation('find_conflicts')
    def find_conflicts(
        self,
        doctor_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> list[AppointmentRecord]:
        start, end = local_range(start, end)
        if end <= start:
            raise ValidationError('End time must be after start time.', code='invalid_interval')
        return self.detector.find_conflicts(doctor_id, start, end, exclude_appointment_id)

    @scheduling_operation('check_availability')
    def check_availability(self, doctor_id: UUID, start: datetime, end: datetime) -> bool:
        """Pre-flight check for a booking form.

        Only looks for overlapping appointments; working hours are not
        applied here, so a True answer does not guarantee ``create`` succeeds.
        """
        start, end = local_range(start, end)
        if end <= start:
            raise ValidationError('End time must be after start time.', code='invalid_interval')
        return not self.detector.has_conflict(doctor_id, start, end)

    def generate_slots(
        self,
        doctor_id: UUID,
        range_start: datetime,
        range_end: datetime,
        slot_minutes: int = config.DEFAULT_SLOT_MINUTES,
    ) -> SlotSequence:
        return self.slot_generator.generate_slots(doctor_id, range_start, range_end, slot_minutes)

    @scheduling_operation('available_doctors')
    def available_doctors(
        self,
        start: datetime,
        end: datetime,
        specialization: str | None = None,
    ) -> list[DoctorSummary]:
        """Active doctors who work during ``[start, end)`` and have nothing booked in it."""
        start, end = local_range(start, end)
        if end <= start:
            raise ValidationError('End time must be after start time.', code='invalid_interval')

        available: list[DoctorSummary] = []
        for doctor_id in self.directory.active_doctor_ids(specialization):
            if not self.policy.is_within_working_hours(doctor_id, start, end):
                continue
            if self.detector.has_conflict(doctor_id, start, end):
                continue

            summary = self.directory.doctor_summary(doctor_id)
            if summary is not None:
                available.append(summary)

        return available

    def describe(self, appointment: AppointmentRecord) -> AppointmentView:
        """Attach doctor and patient names for display.

        Lookup failures are not fatal: the name becomes ``Unknown``.
        """
        doctor_name = UNKNOWN_NAME
        doctor_specialization = ''
        try:
            summary = self.directory.doctor_summary(appointment.doctor_id)
        except StoreUnavailableError:
            logger.warning('Error fetching doctor info for appointment %s', appointment.id, exc_info=True)
        else:
            if summary is not None:
                doctor_name = summary.name
                doctor_specialization = summary.specialization

        patient_name = UNKNOWN_NAME
        try:
            name = self.directory.patient_name(appointment.patient_id)
        except StoreUnavailableError:
            logger.warning('Error fetching patient info for appointment %s', appointment.id, exc_info=True)
        else:
            if name:
                patient_name = name

        return AppointmentView(
            **appointment.model_dump(),
            doctor_name=doctor_name,
            patient_name=patient_name,
            doctor_specialization=doctor_specialization,
        )
