"""Provider calendars: free slots merged with existing appointments."""

from dataclasses import dataclass
from datetime import datetime, tzinfo

from sqlalchemy.orm import Session

from medbook.core import config
from medbook.models.appointment import Appointment
from medbook.scheduling.providers import ProviderRef
from medbook.scheduling.slots import available_slots, horizon_bounds
from medbook.scheduling.status import OCCUPIES_CALENDAR_STATUSES
from medbook.scheduling.timeutils import clinic_timezone, format_local, localize

AVAILABILITY_EVENT = 'availability'
APPOINTMENT_EVENT = 'appointment'


@dataclass(frozen=True)
class CalendarEvent:
    start: datetime
    end: datetime
    title: str
    type: str
    local_time: str
    appointment_id: int | None = None


def _local_range(start: datetime, end: datetime, tz: tzinfo) -> str:
    return f'{format_local(start, tz)} to {format_local(end, tz, "%H:%M")}'


def upcoming_appointments(
    db: Session,
    provider: ProviderRef,
    statuses,
    now: datetime,
    window_end: datetime,
) -> list[Appointment]:
    return db.query(Appointment).filter(
        provider.appointment_filter(),
        Appointment.status.in_(sorted(statuses)),
        Appointment.start >= now,
        Appointment.start < window_end,
    ).order_by(Appointment.start.asc()).all()


def build_calendar(
    db: Session,
    provider: ProviderRef,
    *,
    now: datetime,
    days_ahead: int = config.CALENDAR_DAYS_AHEAD,
    appointment_statuses=OCCUPIES_CALENDAR_STATUSES,
    include_slots: bool = True,
    tz: tzinfo | None = None,
) -> list[CalendarEvent]:
    tz = tz or clinic_timezone()
    now = localize(now, tz)
    events: list[CalendarEvent] = []

    if include_slots:
        duration = config.SLOT_DURATION_MINUTES
        for slot in available_slots(db, provider, now=now, days_ahead=days_ahead, duration_minutes=duration, tz=tz):
            events.append(
                CalendarEvent(
                    start=slot.start,
                    end=slot.end,
                    title='Available',
                    type=AVAILABILITY_EVENT,
                    local_time=_local_range(slot.start, slot.end, tz),
                )
            )

    _, window_end = horizon_bounds(now, days_ahead, tz)
    for appointment in upcoming_appointments(db, provider, appointment_statuses, now, window_end):
        status_value = appointment.status.value
        events.append(
            CalendarEvent(
                start=localize(appointment.start, tz),
                end=localize(appointment.end, tz),
                title=status_value[:1].upper() + status_value[1:],
                type=APPOINTMENT_EVENT,
                local_time=_local_range(appointment.start, appointment.end, tz),
                appointment_id=appointment.id,
            )
        )

    events.sort(key=lambda event: event.start)
    return events
