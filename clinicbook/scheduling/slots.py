from datetime import date, datetime, timedelta
from typing import Iterator
from uuid import UUID

from pydantic import BaseModel, field_serializer

from clinicbook.core import config
from clinicbook.scheduling.availability import AvailabilityPolicy, WorkingHours
from clinicbook.scheduling.conflicts import select_conflicts
from clinicbook.scheduling.errors import NotFoundError, ValidationError
from clinicbook.scheduling.schemas import require_local_datetime
from clinicbook.scheduling.store import AppointmentStore, Directory


class AvailabilitySlot(BaseModel):
    start_time: datetime
    end_time: datetime
    available: bool = True

    @field_serializer('start_time', 'end_time', when_used='json')
    def serialize_local_datetime(self, value: datetime) -> str:
        return value.replace(microsecond=0).isoformat()


def iterate_days(range_start: datetime, range_end: datetime) -> Iterator[date]:
    current_day = range_start.date()
    while datetime.combine(current_day, datetime.min.time()) < range_end:
        yield current_day
        current_day += timedelta(days=1)


def tile_working_day(
    hours: WorkingHours,
    day: date,
    slot_length: timedelta,
) -> Iterator[tuple[datetime, datetime]]:
    window = hours.window_for(day)
    if window is None:
        return

    slot_start = datetime.combine(day, window.start)
    day_close = datetime.combine(day, window.end)

    while slot_start + slot_length <= day_close:
        yield slot_start, slot_start + slot_length
        slot_start += slot_length


class SlotSequence:
    """Chronological slots for one doctor over ``[range_start, range_end)``.

    Nothing is computed until iteration starts. Each iteration reads the
    doctor's appointments for the whole range once and walks the days again,
    so the sequence can be iterated any number of times.
    """

    def __init__(
        self,
        store: AppointmentStore,
        hours: WorkingHours,
        doctor_id: UUID,
        range_start: datetime,
        range_end: datetime,
        slot_minutes: int,
    ) -> None:
        self.store = store
        self.hours = hours
        self.doctor_id = doctor_id
        self.range_start = range_start
        self.range_end = range_end
        self.slot_length = timedelta(minutes=slot_minutes)

    def __iter__(self) -> Iterator[AvailabilitySlot]:
        appointments = self.store.find_by_doctor_and_range(self.doctor_id, self.range_start, self.range_end)

        for day in iterate_days(self.range_start, self.range_end):
            for slot_start, slot_end in tile_working_day(self.hours, day, self.slot_length):
                if slot_start < self.range_start or slot_end > self.range_end:
                    continue

                yield AvailabilitySlot(
                    start_time=slot_start,
                    end_time=slot_end,
                    available=not select_conflicts(appointments, slot_start, slot_end),
                )


class SlotGenerator:
    def __init__(self, store: AppointmentStore, policy: AvailabilityPolicy, directory: Directory) -> None:
        self.store = store
        self.policy = policy
        self.directory = directory

    def generate_slots(
        self,
        doctor_id: UUID,
        range_start: datetime,
        range_end: datetime,
        slot_minutes: int = config.DEFAULT_SLOT_MINUTES,
    ) -> SlotSequence:
        range_start = require_local_datetime(range_start, 'start')
        range_end = require_local_datetime(range_end, 'end')

        if range_end <= range_start:
            raise ValidationError('The range end must be after the range start.', code='invalid_range')

        if slot_minutes < 1:
            raise ValidationError('Slot length must be at least one minute.', code='invalid_slot_length')

        if not self.directory.doctor_exists(doctor_id):
            raise NotFoundError(f'Doctor not found with id: {doctor_id}')

        return SlotSequence(
            self.store,
            self.policy.working_hours_for(doctor_id),
            doctor_id,
            range_start,
            range_end,
            slot_minutes,
        )
