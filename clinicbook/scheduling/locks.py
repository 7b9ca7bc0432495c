from contextlib import ExitStack, contextmanager
from threading import Lock
from typing import Iterable, Iterator
from uuid import UUID

from clinicbook.scheduling.errors import StoreUnavailableError


class DoctorLocks:
    """One writer at a time per doctor.

    Bookings hold the doctor's lock across the conflict query and the write,
    so two requests for the same doctor cannot both pass the conflict check.
    Locks are per process; a deployment needs a single writer process.
    """

    def __init__(self) -> None:
        self._registry_lock = Lock()
        self._locks: dict[UUID, Lock] = {}

    def _lock_for(self, doctor_id: UUID) -> Lock:
        with self._registry_lock:
            lock = self._locks.get(doctor_id)
            if lock is None:
                lock = Lock()
                self._locks[doctor_id] = lock
            return lock

    @contextmanager
    def hold(self, doctor_id: UUID, timeout: float) -> Iterator[None]:
        lock = self._lock_for(doctor_id)
        if not lock.acquire(timeout=timeout):
            raise StoreUnavailableError(
                f'Timed out waiting to book for doctor {doctor_id}; try again.',
                code='booking_lock_timeout',
            )

        try:
            yield
        finally:
            lock.release()

    @contextmanager
    def hold_all(self, doctor_ids: Iterable[UUID], timeout: float) -> Iterator[None]:
        """Hold several doctors' locks, always acquired in id order."""
        with ExitStack() as stack:
            for doctor_id in sorted(set(doctor_ids), key=str):
                stack.enter_context(self.hold(doctor_id, timeout))
            yield


booking_locks = DoctorLocks()
