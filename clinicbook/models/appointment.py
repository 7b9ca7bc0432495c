"""Appointment model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid

from clinicbook.database import Base


class Appointment(Base):
    """Represents a booked appointment between a doctor and a patient."""
    __tablename__ = "appointments"

    id = Column(Uuid, primary_key=True)
    doctor_id = Column(Uuid, ForeignKey("doctors.id"), nullable=False, index=True)
    patient_id = Column(Uuid, ForeignKey("patients.id"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    type = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False, index=True)
    notes = Column(String(1000))
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
