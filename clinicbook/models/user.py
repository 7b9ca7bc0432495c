"""User model definitions."""

from sqlalchemy import Column, String, Uuid

from clinicbook.database import Base

STAFF_ROLES = frozenset({'admin', 'doctor'})


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True)
    email = Column(String, unique=True, index=True)
    role = Column(String)  # admin/doctor/patient

    @property
    def is_staff(self) -> bool:
        return (self.role or '').strip().lower() in STAFF_ROLES
