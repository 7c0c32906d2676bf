"""Appointment model definitions."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
)

from medbook.database import Base, UTCDateTime, utcnow
from medbook.scheduling.status import AppointmentStatus


class Appointment(Base):
    """A patient's booking with one doctor or institute.

    ``status`` and the presence/payment flags are written only through
    ``medbook.scheduling.transitions`` and ``medbook.scheduling.sweeps``.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint(
            "(doctor_id IS NULL) != (institute_id IS NULL)",
            name="ck_appointment_single_provider",
        ),
        CheckConstraint('"end" > start', name="ck_appointment_end_after_start"),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    institute_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    virtual = Column(Boolean, nullable=False, default=True)

    start = Column(UTCDateTime, nullable=False, index=True)
    end = Column(UTCDateTime, nullable=False)

    status = Column(
        Enum(
            AppointmentStatus,
            name="appointment_status",
            native_enum=False,
            length=32,
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=AppointmentStatus.PENDING_ACCEPT,
        index=True,
    )

    payment_method = Column(String)
    amount = Column(Numeric(10, 2), nullable=False)
    deposit_amount = Column(Numeric(10, 2), nullable=False)
    deposit_paid = Column(Boolean, nullable=False, default=False)
    deposit_ref = Column(String)
    balance_amount = Column(Numeric(10, 2), nullable=False)
    balance_paid = Column(Boolean, nullable=False, default=False)
    balance_ref = Column(String)

    patient_present = Column(Boolean, nullable=False, default=False)
    doctor_present = Column(Boolean, nullable=False, default=False)
    institute_present = Column(Boolean, nullable=False, default=False)
    both_present = Column(Boolean, nullable=False, default=False)

    rejection_reason = Column(String)
    rating = Column(Integer)
    review = Column(String)
    channel_id = Column(String)

    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    @property
    def provider_id(self) -> int:
        return self.doctor_id if self.doctor_id is not None else self.institute_id

    @property
    def provider_present(self) -> bool:
        return bool(self.doctor_present or self.institute_present)
