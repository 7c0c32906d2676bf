"""Provider weekly availability template."""

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, ForeignKey, Integer, String
from medbook.database import Base


class ProviderSchedule(Base):
    """Recurring weekly working hours for exactly one doctor or institute."""
    __tablename__ = "provider_schedules"
    __table_args__ = (
        CheckConstraint(
            "(doctor_id IS NULL) != (institute_id IS NULL)",
            name="ck_provider_schedule_single_provider",
        ),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=True)
    institute_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=True)
    start_hour = Column(String(5), nullable=False)  # "09:00"
    end_hour = Column(String(5), nullable=False)  # "17:00", "24:00" for end of day
    days_of_week = Column(JSON, nullable=False, default=list)  # 0=Sunday
    is_active = Column(Boolean, nullable=False, default=True)
