"""Civil time helpers. Nothing here reads the clock unless asked to."""

import re
from datetime import date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo

from medbook.core import config
from medbook.scheduling.errors import InvalidTimeFormat

MINUTES_PER_DAY = 24 * 60
_TIME_OF_DAY_PATTERN = re.compile(r'^(?:[01]\d|2[0-3]):[0-5]\d$')


def clinic_timezone() -> ZoneInfo:
    return ZoneInfo(config.CLINIC_TIMEZONE)


def clinic_now(tz: tzinfo | None = None) -> datetime:
    return datetime.now(tz or clinic_timezone())


def parse_time_of_day(value: str, *, allow_end_of_day: bool = False) -> int:
    """Return minutes since midnight for a zero-padded "HH:mm" string.

    With ``allow_end_of_day`` the value is an upper bound and both "24:00"
    and "00:00" mean the end of the calendar day (1440).
    """
    if not isinstance(value, str):
        raise InvalidTimeFormat(f'Invalid time of day: {value!r}.')

    normalized = value.strip()
    if allow_end_of_day and normalized in {'24:00', '00:00'}:
        return MINUTES_PER_DAY

    if not _TIME_OF_DAY_PATTERN.match(normalized):
        raise InvalidTimeFormat(f'Invalid time of day: {value!r}. Use zero-padded 24-hour HH:mm.')

    hours, minutes = normalized.split(':')
    return int(hours) * 60 + int(minutes)


def instant_from_minutes(day: date, minutes: int, tz: tzinfo) -> datetime:
    # 1440 rolls over to midnight of the following day.
    return datetime.combine(day, time(0, 0), tzinfo=tz) + timedelta(minutes=minutes)


def to_instant(day: date, time_of_day: str, tz: tzinfo | None = None, *, end_of_day: bool = False) -> datetime:
    minutes = parse_time_of_day(time_of_day, allow_end_of_day=end_of_day)
    return instant_from_minutes(day, minutes, tz or clinic_timezone())


def intervals_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
    buffer_minutes: int = 0,
) -> bool:
    buffer = timedelta(minutes=buffer_minutes)
    return a_start < b_end + buffer and a_end > b_start - buffer


def civil_weekday(instant: datetime, tz: tzinfo | None = None) -> int:
    """Weekday of ``instant`` in the clinic zone, 0=Sunday..6=Saturday."""
    return localize(instant, tz).isoweekday() % 7


def localize(instant: datetime, tz: tzinfo | None = None) -> datetime:
    """Express ``instant`` in the clinic zone; naive values are taken as already local."""
    tz = tz or clinic_timezone()
    if instant.tzinfo is None:
        return instant.replace(tzinfo=tz)
    return instant.astimezone(tz)


def format_local(instant: datetime, tz: tzinfo | None = None, fmt: str = '%Y-%m-%d %H:%M') -> str:
    return localize(instant, tz).strftime(fmt)
