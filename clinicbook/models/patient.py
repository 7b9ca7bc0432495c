"""Patient model definitions."""

from sqlalchemy import Column, ForeignKey, String, Uuid

from clinicbook.database import Base


class Patient(Base):
    """Represents a patient who can be booked into appointments."""
    __tablename__ = "patients"

    id = Column(Uuid, primary_key=True)
    user_id = Column(Uuid, ForeignKey("users.id"), unique=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, index=True)
