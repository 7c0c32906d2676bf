"""Weekly availability templates, one per provider."""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from medbook.models.schedule import ProviderSchedule
from medbook.scheduling.errors import InvalidAvailability, NotFound
from medbook.scheduling.providers import ProviderRef
from medbook.scheduling.timeutils import parse_time_of_day

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeeklyTemplate:
    """Normalized view of a ``ProviderSchedule`` row."""

    days_of_week: frozenset
    start_minute: int
    end_minute: int
    is_active: bool = True

    @classmethod
    def from_schedule(cls, schedule: ProviderSchedule) -> 'WeeklyTemplate':
        return cls(
            days_of_week=frozenset(schedule.days_of_week or ()),
            start_minute=parse_time_of_day(schedule.start_hour),
            end_minute=parse_time_of_day(schedule.end_hour, allow_end_of_day=True),
            is_active=bool(schedule.is_active),
        )


def normalize_days_of_week(days_of_week) -> list[int]:
    if days_of_week is None:
        raise InvalidAvailability('daysOfWeek is required.')

    normalized: set[int] = set()
    for day in days_of_week:
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise InvalidAvailability(f'Invalid weekday {day!r}; use 0 (Sunday) through 6 (Saturday).')
        normalized.add(day)

    if not normalized:
        raise InvalidAvailability('At least one working day is required.')

    return sorted(normalized)


def validate_hours(start_hour: str, end_hour: str) -> tuple[str, str]:
    start_minute = parse_time_of_day(start_hour)
    end_minute = parse_time_of_day(end_hour, allow_end_of_day=True)
    if start_minute >= end_minute:
        raise InvalidAvailability('Start time must be before end time.')
    return start_hour.strip(), end_hour.strip()


def get_schedule(db: Session, provider: ProviderRef) -> ProviderSchedule | None:
    return db.query(ProviderSchedule).filter(provider.schedule_filter()).first()


def get_active_template(db: Session, provider: ProviderRef) -> WeeklyTemplate | None:
    schedule = get_schedule(db, provider)
    if schedule is None or not schedule.is_active:
        return None
    return WeeklyTemplate.from_schedule(schedule)


def set_availability(
    db: Session,
    provider: ProviderRef,
    start_hour: str,
    end_hour: str,
    days_of_week,
    is_active: bool = True,
) -> ProviderSchedule:
    """Replace the provider's template wholesale, creating it if needed."""
    start_hour, end_hour = validate_hours(start_hour, end_hour)
    days = normalize_days_of_week(days_of_week)

    schedule = get_schedule(db, provider)
    if schedule is None:
        schedule = ProviderSchedule(**provider.key_columns())
        db.add(schedule)

    schedule.start_hour = start_hour
    schedule.end_hour = end_hour
    schedule.days_of_week = days
    schedule.is_active = bool(is_active)

    db.commit()
    db.refresh(schedule)
    logger.info('Availability set for %s %s: %s-%s on %s', provider.kind, provider.id, start_hour, end_hour, days)
    return schedule


def deactivate_availability(db: Session, provider: ProviderRef) -> ProviderSchedule:
    schedule = get_schedule(db, provider)
    if schedule is None:
        raise NotFound('No availability schedule found.')

    schedule.is_active = False
    db.commit()
    db.refresh(schedule)
    logger.info('Availability deactivated for %s %s', provider.kind, provider.id)
    return schedule
