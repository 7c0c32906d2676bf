"""Complaint report model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String

from medbook.database import Base, UTCDateTime, utcnow


class Report(Base):
    """A complaint that froze an appointment, pending admin review."""
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, index=True)
    filed_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    filed_against = Column(Integer, ForeignKey("users.id"), nullable=False)
    reason = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending/resolved/cancelled
    created_at = Column(UTCDateTime, default=utcnow)
