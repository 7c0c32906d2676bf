from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from medbook.routes.availability_routes import (
    SetAvailabilityRequest,
    SetPriceRequest,
    deactivate_availability,
    get_availability,
    get_doctor_public_calendar,
    get_institute_public_calendar,
    get_own_calendar,
    list_slots,
    set_availability,
    set_pricing,
)
from medbook.scheduling.status import AppointmentStatus

MANILA = ZoneInfo('Asia/Manila')
MONDAY_8AM = datetime(2026, 1, 5, 8, 0, tzinfo=MANILA)


@pytest.fixture(autouse=True)
def frozen_clock(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('medbook.routes.availability_routes.clinic_now', lambda tz=None: MONDAY_8AM)


def test_set_availability_request_strips_hours() -> None:
    request = SetAvailabilityRequest(start_hour=' 09:00 ', end_hour='17:00 ', days_of_week=[1, 2])

    assert request.start_hour == '09:00'
    assert request.end_hour == '17:00'


def test_set_price_request_rejects_negative_price() -> None:
    with pytest.raises(ValidationError) as exception_info:
        SetPriceRequest(service_id=1, price=Decimal('-5'))

    assert 'Price must be a non-negative number.' in str(exception_info.value)
    assert SetPriceRequest(service_id=1, price=Decimal('0')).price == Decimal('0')


def test_set_availability_stores_template_for_provider(db, doctor, doctor_caller) -> None:
    response = set_availability(
        data=SetAvailabilityRequest(start_hour='09:00', end_hour='17:00', days_of_week=[5, 1, 1]),
        caller=doctor_caller,
        db=db,
    )

    assert response.doctor_id == doctor.id
    assert response.days_of_week == [1, 5]
    assert get_availability(caller=doctor_caller, db=db).id == response.id


def test_set_availability_rejects_patients(db, patient_caller) -> None:
    with pytest.raises(HTTPException) as exception_info:
        set_availability(
            data=SetAvailabilityRequest(start_hour='09:00', end_hour='17:00', days_of_week=[1]),
            caller=patient_caller,
            db=db,
        )

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Only doctors and institutes can manage schedules.'


@pytest.mark.parametrize(
    ('start_hour', 'end_hour', 'days', 'detail'),
    [
        ('17:00', '09:00', [1], 'Start time must be before end time.'),
        ('9:00', '17:00', [1], "Invalid time of day: '9:00'. Use zero-padded 24-hour HH:mm."),
        ('09:00', '17:00', [7], 'Invalid weekday 7; use 0 (Sunday) through 6 (Saturday).'),
    ],
)
def test_set_availability_reports_invalid_templates(db, doctor_caller, start_hour, end_hour, days, detail) -> None:
    with pytest.raises(HTTPException) as exception_info:
        set_availability(
            data=SetAvailabilityRequest(start_hour=start_hour, end_hour=end_hour, days_of_week=days),
            caller=doctor_caller,
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == detail


def test_deactivate_availability_without_template_is_not_found(db, doctor_caller) -> None:
    with pytest.raises(HTTPException) as exception_info:
        deactivate_availability(caller=doctor_caller, db=db)

    assert exception_info.value.status_code == 404


def test_set_pricing_upserts_price(db, doctor_caller, service) -> None:
    set_pricing(data=SetPriceRequest(service_id=service.id, price=Decimal('500')), caller=doctor_caller, db=db)
    response = set_pricing(data=SetPriceRequest(service_id=service.id, price=Decimal('750')), caller=doctor_caller, db=db)

    assert response.price == Decimal('750')
    assert response.provider_id == doctor_caller.user_id


def test_list_slots_for_doctor(db, doctor_ref, make_schedule) -> None:
    make_schedule(doctor_ref)

    slots = list_slots(provider_type=' Doctor ', provider_id=doctor_ref.id, days=1, db=db)

    assert len(slots) == 13
    assert slots[0].local_time == '2026-01-05 09:00 to 09:30'


def test_list_slots_rejects_unknown_provider_type(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_slots(provider_type='nurse', provider_id=1, days=1, db=db)

    assert exception_info.value.status_code == 400


def test_own_calendar_includes_pending_requests(db, doctor_caller, doctor_ref, patient, make_schedule, make_appointment) -> None:
    make_schedule(doctor_ref)
    make_appointment(doctor_ref, patient, datetime(2026, 1, 5, 9, 0, tzinfo=MANILA))

    response = get_own_calendar(days_ahead=1, caller=doctor_caller, db=db)

    assert response.timezone == 'Asia/Manila'
    assert response.events[0].title == 'Pending_accept'
    assert response.events[0].type == 'appointment'


def test_public_calendars_hide_private_statuses(db, doctor_ref, institute_ref, patient, make_schedule, make_appointment) -> None:
    make_schedule(doctor_ref)
    make_appointment(doctor_ref, patient, datetime(2026, 1, 5, 9, 0, tzinfo=MANILA))
    make_appointment(institute_ref, patient, datetime(2026, 1, 5, 10, 0, tzinfo=MANILA), status=AppointmentStatus.BOOKED)

    doctor_calendar = get_doctor_public_calendar(doctor_id=doctor_ref.id, days_ahead=1, db=db)
    institute_calendar = get_institute_public_calendar(institute_id=institute_ref.id, db=db)

    assert all(event.type == 'availability' for event in doctor_calendar.events)
    assert [event.title for event in institute_calendar.events] == ['Booked']
