import pytest

from medbook.models.schedule import ProviderSchedule
from medbook.scheduling.availability import (
    WeeklyTemplate,
    deactivate_availability,
    get_active_template,
    get_schedule,
    normalize_days_of_week,
    set_availability,
    validate_hours,
)
from medbook.scheduling.errors import InvalidAvailability, InvalidTimeFormat, NotFound


def test_normalize_days_of_week_sorts_and_deduplicates() -> None:
    assert normalize_days_of_week([5, 1, 3, 1]) == [1, 3, 5]


@pytest.mark.parametrize('days', [None, [], [7], [-1], ['1'], [True], [1.0]])
def test_normalize_days_of_week_rejects_invalid_days(days) -> None:
    with pytest.raises(InvalidAvailability):
        normalize_days_of_week(days)


def test_validate_hours_requires_start_before_end() -> None:
    assert validate_hours(' 09:00', '17:00 ') == ('09:00', '17:00')
    assert validate_hours('22:00', '24:00') == ('22:00', '24:00')
    assert validate_hours('22:00', '00:00') == ('22:00', '00:00')

    with pytest.raises(InvalidAvailability) as exception_info:
        validate_hours('17:00', '09:00')
    assert exception_info.value.detail == 'Start time must be before end time.'

    with pytest.raises(InvalidAvailability):
        validate_hours('09:00', '09:00')


def test_validate_hours_rejects_malformed_times() -> None:
    with pytest.raises(InvalidTimeFormat):
        validate_hours('9am', '17:00')


def test_set_availability_creates_then_replaces_the_single_template(db, doctor_ref) -> None:
    created = set_availability(db, doctor_ref, '09:00', '17:00', [1, 2, 3])
    updated = set_availability(db, doctor_ref, '10:00', '18:00', [5, 4])

    assert created.id == updated.id
    assert db.query(ProviderSchedule).count() == 1
    assert updated.doctor_id == doctor_ref.id
    assert updated.institute_id is None
    assert updated.start_hour == '10:00'
    assert updated.end_hour == '18:00'
    assert updated.days_of_week == [4, 5]
    assert updated.is_active is True


def test_set_availability_is_idempotent(db, institute_ref) -> None:
    first = set_availability(db, institute_ref, '08:00', '12:00', [1])
    second = set_availability(db, institute_ref, '08:00', '12:00', [1])

    assert first.id == second.id
    assert (second.start_hour, second.end_hour, second.days_of_week) == ('08:00', '12:00', [1])


def test_set_availability_does_not_write_invalid_templates(db, doctor_ref) -> None:
    with pytest.raises(InvalidAvailability):
        set_availability(db, doctor_ref, '09:00', '17:00', [])

    assert get_schedule(db, doctor_ref) is None


def test_deactivate_availability_keeps_the_row(db, doctor_ref) -> None:
    set_availability(db, doctor_ref, '09:00', '17:00', [1])

    schedule = deactivate_availability(db, doctor_ref)

    assert schedule.is_active is False
    assert get_schedule(db, doctor_ref) is not None
    assert get_active_template(db, doctor_ref) is None


def test_deactivate_availability_requires_existing_template(db, doctor_ref) -> None:
    with pytest.raises(NotFound):
        deactivate_availability(db, doctor_ref)


def test_weekly_template_from_schedule_normalizes_end_of_day(db, doctor_ref) -> None:
    schedule = set_availability(db, doctor_ref, '20:00', '24:00', [0, 6])

    template = WeeklyTemplate.from_schedule(schedule)

    assert template == WeeklyTemplate(days_of_week=frozenset({0, 6}), start_minute=1200, end_minute=1440)
    assert get_active_template(db, doctor_ref) == template
