"""
Time-triggered appointment transitions.

No-show sweep:  booked/confirmed, start at least 5 minutes ago, not both
                present -> no_show_both / no_show_patient / no_show_doctor;
                ongoing, both present, end passed -> completed
Auto-start:     confirmed, start reached -> ongoing (with a channel id)

The sweeps take ``now`` explicitly and know nothing about how they are
triggered; ``medbook.worker`` runs them on a timer. Every write repeats the
source-status check, so rerunning a sweep or racing a user action never
moves an appointment twice. One appointment failing is logged and skipped.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from medbook.core import config
from medbook.models.appointment import Appointment
from medbook.scheduling.status import (
    AUTO_COMPLETE_SOURCE_STATUSES,
    AUTO_START_SOURCE_STATUSES,
    NO_SHOW_SOURCE_STATUSES,
    AppointmentStatus,
)
from medbook.scheduling.timeutils import localize
from medbook.scheduling.transitions import conditional_update

logger = logging.getLogger(__name__)

S = AppointmentStatus


def channel_id_for(provider_id, patient_id) -> str:
    """Same pair of participants always yields the same channel id."""
    return '-'.join(sorted([str(provider_id), str(patient_id)]))


def no_show_outcome(
    appointment: Appointment,
    now: datetime,
    grace_minutes: int = config.NO_SHOW_GRACE_MINUTES,
) -> AppointmentStatus | None:
    status = appointment.status
    patient_present = bool(appointment.patient_present)
    provider_present = appointment.provider_present

    if status in AUTO_COMPLETE_SOURCE_STATUSES:
        if appointment.both_present and appointment.end <= now:
            return S.COMPLETED
        return None

    if status not in NO_SHOW_SOURCE_STATUSES:
        return None
    if appointment.start > now - timedelta(minutes=grace_minutes):
        return None
    if patient_present and provider_present:
        return None

    if not patient_present and not provider_present:
        return S.NO_SHOW_BOTH
    if provider_present:
        return S.NO_SHOW_PATIENT
    return S.NO_SHOW_DOCTOR


def _sweep(db: Session, candidates: list[Appointment], decide, summary: dict) -> dict:
    # Ids are read up front; commits expire the loaded rows.
    for appointment_id, appointment in [(candidate.id, candidate) for candidate in candidates]:
        try:
            decision = decide(appointment)
            if decision is None:
                summary['skipped'] += 1
                continue

            key, values = decision
            source = appointment.status
            if conditional_update(db, appointment_id, {source}, values):
                db.commit()
                summary[key] += 1
                summary['total_updated'] += 1
                logger.info('Appointment %s: %s -> %s (sweep)', appointment_id, source.value, key)
            else:
                # A user action moved it first.
                db.rollback()
                summary['skipped'] += 1
        except Exception:
            db.rollback()
            summary['failed'] += 1
            logger.exception('Sweep failed to update appointment %s', appointment_id)

    return summary


def run_no_show_sweep(db: Session, *, now: datetime, grace_minutes: int = config.NO_SHOW_GRACE_MINUTES) -> dict:
    summary = {
        S.NO_SHOW_BOTH.value: 0,
        S.NO_SHOW_PATIENT.value: 0,
        S.NO_SHOW_DOCTOR.value: 0,
        S.COMPLETED.value: 0,
        'skipped': 0,
        'failed': 0,
        'total_updated': 0,
    }
    now = localize(now)
    cutoff = now - timedelta(minutes=grace_minutes)

    candidates = db.query(Appointment).filter(
        or_(
            and_(Appointment.start <= cutoff, Appointment.status.in_(sorted(NO_SHOW_SOURCE_STATUSES))),
            and_(Appointment.end <= now, Appointment.status.in_(sorted(AUTO_COMPLETE_SOURCE_STATUSES))),
        )
    ).order_by(Appointment.start.asc()).all()

    def decide(appointment: Appointment):
        target = no_show_outcome(appointment, now, grace_minutes)
        if target is None:
            return None
        return target.value, {Appointment.status: target}

    _sweep(db, candidates, decide, summary)

    if summary['total_updated'] or summary['failed']:
        logger.info('No-show sweep summary: %s', summary)
    else:
        logger.debug('No-show sweep: nothing to update')
    return summary


def run_auto_start_sweep(db: Session, *, now: datetime) -> dict:
    summary = {S.ONGOING.value: 0, 'skipped': 0, 'failed': 0, 'total_updated': 0}
    now = localize(now)

    candidates = db.query(Appointment).filter(
        Appointment.start <= now,
        Appointment.status.in_(sorted(AUTO_START_SOURCE_STATUSES)),
    ).order_by(Appointment.start.asc()).all()

    def decide(appointment: Appointment):
        if appointment.status not in AUTO_START_SOURCE_STATUSES or appointment.start > now:
            return None
        return S.ONGOING.value, {
            Appointment.status: S.ONGOING,
            Appointment.channel_id: channel_id_for(appointment.provider_id, appointment.patient_id),
        }

    _sweep(db, candidates, decide, summary)

    if summary['total_updated'] or summary['failed']:
        logger.info('Auto-start sweep summary: %s', summary)
    else:
        logger.debug('Auto-start sweep: nothing to update')
    return summary


def run_sweeps(db: Session, *, now: datetime) -> dict:
    return {
        'auto_start': run_auto_start_sweep(db, now=now),
        'no_show': run_no_show_sweep(db, now=now),
    }
