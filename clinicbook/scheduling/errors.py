"""Error taxonomy raised by the scheduling engine.

Every failure a caller can act on is one of the four expected outcomes
(ValidationError, ConflictError, NotFoundError, StoreUnavailableError).
InternalError is reserved for states the engine cannot explain, such as a
stored record that no longer parses.
"""

from uuid import UUID


class SchedulingError(Exception):
    code = 'scheduling_error'

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(SchedulingError):
    code = 'invalid_appointment'


class ConflictError(SchedulingError):
    code = 'conflict'

    def __init__(self, message: str, *, conflicting_ids: list[UUID] | None = None) -> None:
        super().__init__(message)
        self.conflicting_ids = list(conflicting_ids or [])


class NotFoundError(SchedulingError):
    code = 'not_found'


class UnknownReferenceError(ValidationError, NotFoundError):
    """A booking names a doctor or patient that does not resolve."""

    code = 'unknown_reference'


class StoreUnavailableError(SchedulingError):
    code = 'store_unavailable'


class InternalError(SchedulingError):
    code = 'internal_error'

    def __init__(self, message: str, *, appointment_id: UUID | None = None, operation: str | None = None) -> None:
        super().__init__(message)
        self.appointment_id = appointment_id
        self.operation = operation
