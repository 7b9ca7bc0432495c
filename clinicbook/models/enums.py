"""Enumerations shared by the ORM models and the scheduling engine."""

from enum import Enum


class AppointmentStatus(str, Enum):
    PENDING = 'PENDING'
    SCHEDULED = 'SCHEDULED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    NO_SHOW = 'NO_SHOW'


class AppointmentType(str, Enum):
    CONSULTATION = 'CONSULTATION'
    FOLLOWUP = 'FOLLOWUP'
    CHECKUP = 'CHECKUP'
    PROCEDURE = 'PROCEDURE'
