"""Service model definitions."""

from sqlalchemy import Column, Integer, String
from medbook.database import Base


class Service(Base):
    """A bookable service; institutes bill its duration, doctors always 30 minutes."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=30)
