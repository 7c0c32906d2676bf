"""User model definitions."""

from sqlalchemy import Column, Integer, String
from medbook.database import Base


PATIENT_ROLE = "patient"
DOCTOR_ROLE = "doctor"
INSTITUTE_ROLE = "institute"
ADMIN_ROLE = "admin"
PROVIDER_ROLES = (DOCTOR_ROLE, INSTITUTE_ROLE)


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    hashed_password = Column(String)
    role = Column(String)  # patient/doctor/institute/admin
