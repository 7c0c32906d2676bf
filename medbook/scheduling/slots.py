"""Candidate slot generation from a provider's weekly template.

Slots are ``duration`` minutes long and start every ``duration + gap``
minutes from the template's opening time. A slot is dropped when it starts
before ``now`` or touches an appointment that still occupies the calendar.
The generator is driven by an explicit ``now`` so two calls with the same
inputs produce the same slots.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Iterator

from sqlalchemy.orm import Session

from medbook.core import config
from medbook.models.appointment import Appointment
from medbook.scheduling.availability import WeeklyTemplate, get_active_template
from medbook.scheduling.providers import ProviderRef
from medbook.scheduling.status import OCCUPIES_CALENDAR_STATUSES
from medbook.scheduling.timeutils import clinic_timezone, instant_from_minutes, intervals_overlap, localize


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime


def iter_candidate_slots(
    template: WeeklyTemplate | None,
    now: datetime,
    *,
    days_ahead: int,
    duration_minutes: int = config.SLOT_DURATION_MINUTES,
    gap_minutes: int = config.SLOT_GAP_MINUTES,
    tz: tzinfo | None = None,
) -> Iterator[Slot]:
    if template is None or not template.is_active:
        return

    tz = tz or clinic_timezone()
    today = localize(now, tz).date()
    duration = timedelta(minutes=duration_minutes)
    step = duration_minutes + gap_minutes

    for offset in range(days_ahead):
        day = today + timedelta(days=offset)
        if day.isoweekday() % 7 not in template.days_of_week:
            continue

        minute = template.start_minute
        while minute + duration_minutes <= template.end_minute:
            start = instant_from_minutes(day, minute, tz)
            yield Slot(start=start, end=start + duration)
            minute += step


def horizon_bounds(now: datetime, days_ahead: int, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    tz = tz or clinic_timezone()
    today = localize(now, tz).date()
    # One extra day covers templates whose end of day is the next midnight.
    return instant_from_minutes(today, 0, tz), instant_from_minutes(today, 0, tz) + timedelta(days=days_ahead + 1)


def load_busy_intervals(
    db: Session,
    provider: ProviderRef,
    window_start: datetime,
    window_end: datetime,
    statuses=OCCUPIES_CALENDAR_STATUSES,
) -> list[tuple[datetime, datetime]]:
    rows = db.query(Appointment.start, Appointment.end).filter(
        provider.appointment_filter(),
        Appointment.status.in_(sorted(statuses)),
        Appointment.start < window_end,
        Appointment.end > window_start,
    ).order_by(Appointment.start.asc()).all()
    return [(start, end) for start, end in rows]


@dataclass
class SlotSequence:
    """Lazy, restartable sequence of free slots.

    Each iteration reads the template and the provider's appointments once
    and then filters every candidate in memory.
    """

    db: Session
    provider: ProviderRef
    now: datetime
    days_ahead: int = config.DEFAULT_SLOT_DAYS_AHEAD
    duration_minutes: int = config.SLOT_DURATION_MINUTES
    gap_minutes: int = config.SLOT_GAP_MINUTES
    occupying_statuses: frozenset = OCCUPIES_CALENDAR_STATUSES
    tz: tzinfo | None = field(default=None)

    def __iter__(self) -> Iterator[Slot]:
        if self.days_ahead <= 0:
            return

        tz = self.tz or clinic_timezone()
        now = localize(self.now, tz)
        template = get_active_template(self.db, self.provider)
        if template is None:
            return

        window_start, window_end = horizon_bounds(now, self.days_ahead, tz)
        busy = load_busy_intervals(self.db, self.provider, window_start, window_end, self.occupying_statuses)

        for slot in iter_candidate_slots(
            template,
            now,
            days_ahead=self.days_ahead,
            duration_minutes=self.duration_minutes,
            gap_minutes=self.gap_minutes,
            tz=tz,
        ):
            if slot.start < now:
                continue
            if any(intervals_overlap(slot.start, slot.end, busy_start, busy_end) for busy_start, busy_end in busy):
                continue
            yield slot


def available_slots(
    db: Session,
    provider: ProviderRef,
    *,
    now: datetime,
    days_ahead: int = config.DEFAULT_SLOT_DAYS_AHEAD,
    duration_minutes: int = config.SLOT_DURATION_MINUTES,
    gap_minutes: int = config.SLOT_GAP_MINUTES,
    occupying_statuses=OCCUPIES_CALENDAR_STATUSES,
    tz: tzinfo | None = None,
) -> SlotSequence:
    return SlotSequence(
        db=db,
        provider=provider,
        now=now,
        days_ahead=days_ahead,
        duration_minutes=duration_minutes,
        gap_minutes=gap_minutes,
        occupying_statuses=frozenset(occupying_statuses),
        tz=tz,
    )
