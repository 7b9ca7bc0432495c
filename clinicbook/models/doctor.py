"""Doctor model definitions."""

from sqlalchemy import JSON, Boolean, Column, ForeignKey, String, Uuid

from clinicbook.database import Base


class Doctor(Base):
    """Represents a bookable doctor and their weekly working hours."""
    __tablename__ = "doctors"

    id = Column(Uuid, primary_key=True)
    user_id = Column(Uuid, ForeignKey("users.id"), unique=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    specialization = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    # {"monday": {"start": "08:00", "end": "18:00"}, ...}; NULL means the default schedule
    working_hours = Column(JSON)
