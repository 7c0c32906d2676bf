"""Booking-time validation and appointment creation.

A booking passes, in order: the booking window, the service duration, the
provider's active template, the working-hours window, the provider's and
the patient's in-flight appointments (with a buffer on both sides), and the
price lookup. The template row is locked for the whole check so two
bookings for one provider cannot both pass the conflict scan.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo

from sqlalchemy.orm import Session

from medbook.core import config
from medbook.models.appointment import Appointment
from medbook.models.schedule import ProviderSchedule
from medbook.models.service import Service
from medbook.scheduling.availability import WeeklyTemplate
from medbook.scheduling.errors import (
    BookingWindowViolation,
    DoubleBooked,
    DurationMismatch,
    NotAuthorized,
    NotFound,
    OutsideWorkingHours,
    ProviderUnavailable,
    SlotTaken,
)
from medbook.scheduling.pricing import compute_payment_split, get_price
from medbook.scheduling.providers import Caller, ProviderRef
from medbook.scheduling.status import IN_FLIGHT_STATUSES, AppointmentStatus
from medbook.scheduling.timeutils import (
    civil_weekday,
    clinic_timezone,
    instant_from_minutes,
    intervals_overlap,
    localize,
)

logger = logging.getLogger(__name__)

DOCTOR_CONSULTATION_MINUTES = 30


@dataclass(frozen=True)
class BookingRequest:
    provider: ProviderRef
    service_id: int
    start: datetime
    end: datetime | None = None
    payment_method: str | None = None


def check_booking_window(start: datetime, now: datetime) -> None:
    earliest = now + timedelta(minutes=config.BOOKING_MIN_LEAD_MINUTES)
    latest = now + timedelta(days=config.BOOKING_MAX_DAYS_AHEAD)

    if start < earliest:
        raise BookingWindowViolation(
            f'Appointments must be booked at least {config.BOOKING_MIN_LEAD_MINUTES} minutes in advance.'
        )
    if start > latest:
        raise BookingWindowViolation(
            f'Appointments can only be booked up to {config.BOOKING_MAX_DAYS_AHEAD} days ahead.'
        )


def resolve_duration_minutes(db: Session, provider: ProviderRef, service_id: int) -> int:
    service = db.get(Service, service_id)
    if service is None:
        raise NotFound('Service not found.')
    if provider.is_doctor:
        return DOCTOR_CONSULTATION_MINUTES
    return service.duration_minutes


def check_working_hours(template: WeeklyTemplate, start: datetime, end: datetime, tz: tzinfo) -> None:
    if civil_weekday(start, tz) not in template.days_of_week:
        raise OutsideWorkingHours('Booking outside provider operating days.')

    local_start = localize(start, tz)
    day_open = instant_from_minutes(local_start.date(), template.start_minute, tz)
    day_close = instant_from_minutes(local_start.date(), template.end_minute, tz)

    if start < day_open or end > day_close:
        raise OutsideWorkingHours('Booking out of operating hours.')


def find_overlapping(
    db: Session,
    participant_filter,
    start: datetime,
    end: datetime,
    buffer_minutes: int = config.CONFLICT_BUFFER_MINUTES,
) -> Appointment | None:
    buffer = timedelta(minutes=buffer_minutes)
    candidates = db.query(Appointment).filter(
        participant_filter,
        Appointment.status.in_(sorted(IN_FLIGHT_STATUSES)),
        Appointment.start < end + buffer,
        Appointment.end > start - buffer,
    ).all()

    for appointment in candidates:
        if intervals_overlap(start, end, appointment.start, appointment.end, buffer_minutes):
            return appointment
    return None


def _lock_schedule(db: Session, provider: ProviderRef) -> ProviderSchedule | None:
    return db.query(ProviderSchedule).filter(provider.schedule_filter()).with_for_update().first()


def book_appointment(
    db: Session,
    caller: Caller,
    request: BookingRequest,
    *,
    now: datetime,
    tz: tzinfo | None = None,
) -> Appointment:
    if not caller.is_patient:
        raise NotAuthorized('Only patients can book appointments.')

    tz = tz or clinic_timezone()
    now = localize(now, tz)
    start = localize(request.start, tz).replace(second=0, microsecond=0)

    check_booking_window(start, now)

    duration_minutes = resolve_duration_minutes(db, request.provider, request.service_id)
    end = start + timedelta(minutes=duration_minutes)
    if request.end is not None and localize(request.end, tz) != end:
        raise DurationMismatch(f'Appointments for this service last exactly {duration_minutes} minutes.')

    try:
        schedule = _lock_schedule(db, request.provider)
        if schedule is None or not schedule.is_active:
            raise ProviderUnavailable('Provider schedule not found.')

        check_working_hours(WeeklyTemplate.from_schedule(schedule), start, end, tz)

        if find_overlapping(db, request.provider.appointment_filter(), start, end):
            raise SlotTaken()

        if find_overlapping(db, Appointment.patient_id == caller.user_id, start, end):
            raise DoubleBooked()

        price = get_price(db, request.provider, request.service_id)
        deposit, balance = compute_payment_split(price)

        appointment = Appointment(
            patient_id=caller.user_id,
            service_id=request.service_id,
            virtual=request.provider.is_doctor,
            start=start,
            end=end,
            status=AppointmentStatus.PENDING_ACCEPT,
            payment_method=request.payment_method,
            amount=deposit + balance,
            deposit_amount=deposit,
            balance_amount=balance,
            **request.provider.key_columns(),
        )
        db.add(appointment)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info(
        'Appointment %s booked by patient %s with %s %s at %s',
        appointment.id,
        caller.user_id,
        request.provider.kind,
        request.provider.id,
        start.isoformat(),
    )
    return appointment
