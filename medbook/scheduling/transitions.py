"""Role-gated appointment status transitions.

Each action loads the appointment, checks the caller holds the required
seat, checks the current status is a legal source and then writes with one
conditional UPDATE that repeats the source check. A zero row count means a
concurrent writer got there first and the caller gets ``InvalidTransition``
with the status it lost to.
"""

import logging

from sqlalchemy.orm import Session

from medbook.models.appointment import Appointment
from medbook.models.report import Report
from medbook.scheduling.errors import InvalidTransition, NotAuthorized, NotFound, ValidationFailed
from medbook.scheduling.providers import Caller
from medbook.scheduling.status import (
    COMPLAINABLE_STATUSES,
    REVIEWABLE_STATUSES,
    AppointmentStatus,
)

logger = logging.getLogger(__name__)

S = AppointmentStatus

CANCEL_UNPAID_SOURCES = frozenset({S.PENDING_ACCEPT, S.AWAITING_DEPOSIT})
CANCEL_FORFEIT_SOURCES = frozenset({S.BOOKED})
ATTENDANCE_SOURCES = frozenset({S.BOOKED, S.CONFIRMED})
PATIENT_COMPLETE_SOURCES = frozenset({S.CONFIRMED, S.ONGOING, S.MARKED_COMPLETE, S.CONFIRM_FULLY_PAID})
PAY_BALANCE_SOURCES = frozenset({S.MARKED_COMPLETE, S.COMPLETED})

DEFAULT_REJECTION_REASON = 'No reason provided'


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound('Appointment not found.')
    return appointment


def conditional_update(db: Session, appointment_id: int, sources, values: dict, *conditions) -> int:
    """UPDATE the row only while its status is still one of ``sources``. Does not commit."""
    return db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.status.in_(sorted(sources)),
        *conditions,
    ).update(values, synchronize_session=False)


def _require_patient(caller: Caller, appointment: Appointment, message: str) -> None:
    if not caller.is_patient_of(appointment):
        raise NotAuthorized(message)


def _require_provider(caller: Caller, appointment: Appointment, message: str) -> None:
    if not caller.is_provider_of(appointment):
        raise NotAuthorized(message)


def _require_source(appointment: Appointment, action: str, sources) -> None:
    if appointment.status not in sources:
        raise InvalidTransition(action, appointment.status)


def _apply(
    db: Session,
    appointment: Appointment,
    action: str,
    sources,
    values: dict,
    *conditions,
) -> Appointment:
    previous = appointment.status
    try:
        matched = conditional_update(db, appointment.id, sources, values, *conditions)
        if not matched:
            db.rollback()
            db.refresh(appointment)
            raise InvalidTransition(action, appointment.status)
        db.commit()
    except InvalidTransition:
        raise
    except Exception:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info(
        'Appointment %s: %s (%s -> %s)',
        appointment.id,
        action,
        getattr(previous, 'value', previous),
        appointment.status.value,
    )
    return appointment


def accept_appointment(db: Session, caller: Caller, appointment_id: int) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _require_provider(caller, appointment, 'Only the assigned provider can accept this appointment.')
    _require_source(appointment, 'accept', {S.PENDING_ACCEPT})
    return _apply(db, appointment, 'accept', {S.PENDING_ACCEPT}, {Appointment.status: S.AWAITING_DEPOSIT})


def reject_appointment(db: Session, caller: Caller, appointment_id: int, reason: str | None = None) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _require_provider(caller, appointment, 'Only the assigned provider can reject this appointment.')
    _require_source(appointment, 'reject', {S.PENDING_ACCEPT})
    return _apply(
        db,
        appointment,
        'reject',
        {S.PENDING_ACCEPT},
        {
            Appointment.status: S.REJECTED,
            Appointment.rejection_reason: (reason or '').strip() or DEFAULT_REJECTION_REASON,
        },
    )


def pay_deposit(db: Session, caller: Caller, appointment_id: int, reference_number: str) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _require_patient(caller, appointment, 'You can only pay for your own appointments.')

    reference = (reference_number or '').strip()
    if not reference:
        raise ValidationFailed('Reference number is required.')

    _require_source(appointment, 'pay the deposit for', {S.AWAITING_DEPOSIT})
    return _apply(
        db,
        appointment,
        'pay the deposit for',
        {S.AWAITING_DEPOSIT},
        {
            Appointment.status: S.BOOKED,
            Appointment.deposit_paid: True,
            Appointment.deposit_ref: reference,
        },
    )


def confirm_deposit(db: Session, caller: Caller, appointment_id: int) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _require_provider(caller, appointment, 'Only the assigned provider can confirm the deposit.')
    _require_source(appointment, 'confirm the deposit for', {S.BOOKED})
    if not appointment.deposit_paid:
        raise InvalidTransition('confirm the deposit for', appointment.status)
    return _apply(
        db,
        appointment,
        'confirm the deposit for',
        {S.BOOKED},
        {Appointment.status: S.CONFIRMED},
        Appointment.deposit_paid.is_(True),
    )


def mark_attendance(db: Session, caller: Caller, appointment_id: int) -> Appointment:
    """Record the caller as present; a booked appointment with both sides present starts."""
    appointment = get_appointment(db, appointment_id)
    if not caller.is_participant_of(appointment):
        raise NotAuthorized()
    _require_source(appointment, 'mark attendance for', ATTENDANCE_SOURCES)

    if caller.is_patient_of(appointment):
        flag = Appointment.patient_present
    elif appointment.doctor_id is not None:
        flag = Appointment.doctor_present
    else:
        flag = Appointment.institute_present

    try:
        if not conditional_update(db, appointment.id, ATTENDANCE_SOURCES, {flag: True}):
            db.rollback()
            db.refresh(appointment)
            raise InvalidTransition('mark attendance for', appointment.status)

        # The row is locked by the first UPDATE until commit, so this read is stable.
        db.refresh(appointment)
        if appointment.patient_present and appointment.provider_present:
            values = {Appointment.both_present: True}
            if appointment.status == S.BOOKED:
                values[Appointment.status] = S.ONGOING
            conditional_update(db, appointment.id, {appointment.status}, values)
        db.commit()
    except InvalidTransition:
        raise
    except Exception:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info('Appointment %s: attendance marked by user %s (%s)', appointment.id, caller.user_id, appointment.status.value)
    return appointment


def mark_complete(db: Session, caller: Caller, appointment_id: int) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _require_provider(caller, appointment, 'Only the assigned provider can mark the appointment as completed.')
    _require_source(appointment, 'mark complete', {S.ONGOING})
    return _apply(db, appointment, 'mark complete', {S.ONGOING}, {Appointment.status: S.MARKED_COMPLETE})


def complete_appointment(db: Session, caller: Caller, appointment_id: int) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _require_patient(caller, appointment, 'Only the patient can mark the appointment as completed.')
    _require_source(appointment, 'complete', PATIENT_COMPLETE_SOURCES)
    return _apply(db, appointment, 'complete', PATIENT_COMPLETE_SOURCES, {Appointment.status: S.COMPLETED})


def pay_balance(db: Session, caller: Caller, appointment_id: int, reference_number: str | None = None) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _require_patient(caller, appointment, 'You can only pay for your own appointments.')
    _require_source(appointment, 'pay the balance for', PAY_BALANCE_SOURCES)
    if appointment.balance_paid or not appointment.deposit_paid:
        raise InvalidTransition('pay the balance for', appointment.status)
    return _apply(
        db,
        appointment,
        'pay the balance for',
        PAY_BALANCE_SOURCES,
        {
            Appointment.status: S.FULLY_PAID,
            Appointment.balance_paid: True,
            Appointment.balance_ref: (reference_number or '').strip() or None,
        },
        Appointment.balance_paid.is_(False),
    )


def confirm_balance(db: Session, caller: Caller, appointment_id: int) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _require_provider(caller, appointment, 'Only the assigned provider can confirm full payment.')
    _require_source(appointment, 'confirm full payment for', {S.FULLY_PAID})
    if not appointment.balance_paid:
        raise InvalidTransition('confirm full payment for', appointment.status)
    return _apply(
        db,
        appointment,
        'confirm full payment for',
        {S.FULLY_PAID},
        {Appointment.status: S.CONFIRM_FULLY_PAID},
        Appointment.balance_paid.is_(True),
    )


def submit_review(
    db: Session,
    caller: Caller,
    appointment_id: int,
    rating: int,
    review: str | None = None,
) -> Appointment:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationFailed('Rating must be 1-5.')

    appointment = get_appointment(db, appointment_id)
    _require_patient(caller, appointment, 'You can only review your own appointments.')
    _require_source(appointment, 'review', REVIEWABLE_STATUSES)
    if appointment.rating is not None or not appointment.balance_paid:
        raise InvalidTransition('review', appointment.status)

    return _apply(
        db,
        appointment,
        'review',
        REVIEWABLE_STATUSES,
        {Appointment.rating: rating, Appointment.review: (review or '').strip()},
        Appointment.rating.is_(None),
        Appointment.balance_paid.is_(True),
    )


def cancel_appointment(db: Session, caller: Caller, appointment_id: int) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _require_patient(caller, appointment, 'Only the patient who booked this appointment can cancel it.')

    if appointment.status in CANCEL_UNPAID_SOURCES:
        sources, target = CANCEL_UNPAID_SOURCES, S.CANCELLED_UNPAID
    elif appointment.status in CANCEL_FORFEIT_SOURCES:
        sources, target = CANCEL_FORFEIT_SOURCES, S.CANCELLED
    else:
        raise InvalidTransition('cancel', appointment.status)

    return _apply(db, appointment, 'cancel', sources, {Appointment.status: target})


def file_complaint(db: Session, caller: Caller, appointment_id: int, reason: str) -> tuple[Appointment, Report]:
    """Freeze the appointment and open a report against the other party."""
    reason = (reason or '').strip()
    if not reason:
        raise ValidationFailed('Complaint message is required.')

    appointment = get_appointment(db, appointment_id)
    if not caller.is_participant_of(appointment):
        raise NotAuthorized()
    _require_source(appointment, 'file a complaint on', COMPLAINABLE_STATUSES)

    filed_against = appointment.provider_id if caller.is_patient_of(appointment) else appointment.patient_id
    report = Report(
        appointment_id=appointment.id,
        filed_by=caller.user_id,
        filed_against=filed_against,
        reason=reason,
        status='pending',
    )
    db.add(report)
    _apply(db, appointment, 'file a complaint on', COMPLAINABLE_STATUSES, {Appointment.status: S.FREEZE})
    db.refresh(report)
    return appointment, report


def list_patient_appointments(db: Session, caller: Caller) -> list[Appointment]:
    if not caller.is_patient:
        raise NotAuthorized('Only patients can view their own appointments.')
    return db.query(Appointment).filter(
        Appointment.patient_id == caller.user_id,
    ).order_by(Appointment.start.asc()).all()
