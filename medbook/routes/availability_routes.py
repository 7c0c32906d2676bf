from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from medbook.auth.dependencies import get_current_caller
from medbook.core import config
from medbook.database import get_db
from medbook.scheduling import availability as availability_store
from medbook.scheduling.calendar import build_calendar
from medbook.scheduling.pricing import set_price
from medbook.scheduling.providers import Caller, ProviderRef
from medbook.scheduling.slots import available_slots
from medbook.scheduling.status import PUBLIC_CALENDAR_STATUSES
from medbook.scheduling.timeutils import clinic_now, clinic_timezone, format_local
from medbook.routes.common import require_provider, translate_errors

router = APIRouter(tags=['availability'])


class SetAvailabilityRequest(BaseModel):
    start_hour: str
    end_hour: str
    days_of_week: list[int]
    is_active: bool = True

    @field_validator('start_hour', 'end_hour')
    @classmethod
    def strip_hour(cls, value: str) -> str:
        return value.strip()


class AvailabilityResponse(BaseModel):
    id: int
    doctor_id: int | None = None
    institute_id: int | None = None
    start_hour: str
    end_hour: str
    days_of_week: list[int]
    is_active: bool

    class Config:
        from_attributes = True


class SetPriceRequest(BaseModel):
    service_id: int
    price: Decimal

    @field_validator('price')
    @classmethod
    def validate_price(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError('Price must be a non-negative number.')
        return value


class PricingResponse(BaseModel):
    id: int
    provider_id: int
    service_id: int
    price: Decimal

    class Config:
        from_attributes = True


class SlotResponse(BaseModel):
    start: datetime
    end: datetime
    local_time: str


class CalendarEventResponse(BaseModel):
    start: datetime
    end: datetime
    title: str
    type: str
    local_time: str
    appointment_id: int | None = None

    class Config:
        from_attributes = True


class CalendarResponse(BaseModel):
    events: list[CalendarEventResponse]
    timezone: str


def calendar_response(events) -> CalendarResponse:
    return CalendarResponse(
        events=[CalendarEventResponse.model_validate(event) for event in events],
        timezone=config.CLINIC_TIMEZONE,
    )


@router.post('/availability', response_model=AvailabilityResponse)
def set_availability(
    data: SetAvailabilityRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    provider = require_provider(caller)
    with translate_errors(db):
        return availability_store.set_availability(
            db,
            provider,
            start_hour=data.start_hour,
            end_hour=data.end_hour,
            days_of_week=data.days_of_week,
            is_active=data.is_active,
        )


@router.get('/availability', response_model=AvailabilityResponse | None)
def get_availability(caller: Caller = Depends(get_current_caller), db: Session = Depends(get_db)):
    provider = require_provider(caller)
    with translate_errors(db):
        return availability_store.get_schedule(db, provider)


@router.post('/availability/deactivate', response_model=AvailabilityResponse)
def deactivate_availability(caller: Caller = Depends(get_current_caller), db: Session = Depends(get_db)):
    provider = require_provider(caller)
    with translate_errors(db):
        return availability_store.deactivate_availability(db, provider)


@router.post('/pricing', response_model=PricingResponse, status_code=status.HTTP_200_OK)
def set_pricing(
    data: SetPriceRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    provider = require_provider(caller)
    with translate_errors(db):
        return set_price(db, provider, data.service_id, data.price)


@router.get('/slots', response_model=list[SlotResponse])
def list_slots(
    provider_type: str = Query(...),
    provider_id: int = Query(...),
    days: int = Query(default=config.DEFAULT_SLOT_DAYS_AHEAD, ge=1, le=config.MAX_CALENDAR_DAYS_AHEAD),
    db: Session = Depends(get_db),
):
    tz = clinic_timezone()
    with translate_errors(db):
        provider = ProviderRef(provider_type.strip().lower(), provider_id)
        return [
            SlotResponse(
                start=slot.start,
                end=slot.end,
                local_time=f'{format_local(slot.start, tz)} to {format_local(slot.end, tz, "%H:%M")}',
            )
            for slot in available_slots(db, provider, now=clinic_now(tz), days_ahead=days, tz=tz)
        ]


@router.get('/doctor-calendar', response_model=CalendarResponse)
def get_own_calendar(
    days_ahead: int = Query(default=config.CALENDAR_DAYS_AHEAD, ge=1, le=config.MAX_CALENDAR_DAYS_AHEAD),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    provider = require_provider(caller)
    with translate_errors(db):
        events = build_calendar(db, provider, now=clinic_now(), days_ahead=days_ahead)
        return calendar_response(events)


@router.get('/public-doctor-calendar', response_model=CalendarResponse)
def get_doctor_public_calendar(
    doctor_id: int = Query(...),
    days_ahead: int = Query(default=config.CALENDAR_DAYS_AHEAD, ge=1, le=config.MAX_CALENDAR_DAYS_AHEAD),
    db: Session = Depends(get_db),
):
    with translate_errors(db):
        events = build_calendar(
            db,
            ProviderRef.doctor(doctor_id),
            now=clinic_now(),
            days_ahead=days_ahead,
            appointment_statuses=PUBLIC_CALENDAR_STATUSES,
        )
        return calendar_response(events)


@router.get('/public-institute-calendar', response_model=CalendarResponse)
def get_institute_public_calendar(
    institute_id: int = Query(...),
    db: Session = Depends(get_db),
):
    with translate_errors(db):
        events = build_calendar(
            db,
            ProviderRef.institute(institute_id),
            now=clinic_now(),
            include_slots=False,
        )
        return calendar_response(events)
