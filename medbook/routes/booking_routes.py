from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.orm import Session

from medbook.auth.dependencies import get_current_caller
from medbook.database import get_db
from medbook.models.user import ADMIN_ROLE
from medbook.scheduling import transitions
from medbook.scheduling.booking import BookingRequest, book_appointment
from medbook.scheduling.providers import Caller, ProviderRef
from medbook.scheduling.status import AppointmentStatus
from medbook.scheduling.sweeps import run_sweeps
from medbook.scheduling.timeutils import clinic_now, format_local
from medbook.routes.common import translate_errors

router = APIRouter(tags=['booking'])

MAX_REFERENCE_LENGTH = 64
MAX_REVIEW_LENGTH = 1000


class CreateBookingRequest(BaseModel):
    doctor_id: int | None = None
    institute_id: int | None = None
    service_id: int
    start: datetime
    end: datetime | None = None
    payment_method: str | None = None

    @model_validator(mode='after')
    def validate_single_provider(self) -> 'CreateBookingRequest':
        if (self.doctor_id is None) == (self.institute_id is None):
            raise ValueError('Provide exactly one of doctor_id or institute_id.')
        return self

    def provider(self) -> ProviderRef:
        if self.doctor_id is not None:
            return ProviderRef.doctor(self.doctor_id)
        return ProviderRef.institute(self.institute_id)


class ReferenceRequest(BaseModel):
    reference_number: str | None = None

    @field_validator('reference_number')
    @classmethod
    def validate_reference(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if len(normalized) > MAX_REFERENCE_LENGTH:
            raise ValueError(f'Reference number must be {MAX_REFERENCE_LENGTH} characters or fewer.')
        return normalized or None


class RejectRequest(BaseModel):
    reason: str | None = None


class ReviewRequest(BaseModel):
    rating: int
    review: str | None = None

    @field_validator('review')
    @classmethod
    def validate_review(cls, value: str | None) -> str | None:
        if value is not None and len(value.strip()) > MAX_REVIEW_LENGTH:
            raise ValueError(f'Review must be {MAX_REVIEW_LENGTH} characters or fewer.')
        return value


class ComplaintRequest(BaseModel):
    complaint: str


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int | None = None
    institute_id: int | None = None
    service_id: int
    start: datetime
    end: datetime
    status: AppointmentStatus
    payment_method: str | None = None
    amount: Decimal
    deposit_amount: Decimal
    deposit_paid: bool
    balance_amount: Decimal
    balance_paid: bool
    patient_present: bool
    doctor_present: bool
    institute_present: bool
    both_present: bool
    rejection_reason: str | None = None
    rating: int | None = None
    review: str | None = None
    channel_id: str | None = None
    local_start: str
    local_end: str


class ReportResponse(BaseModel):
    id: int
    appointment_id: int
    filed_by: int
    filed_against: int
    reason: str
    status: str

    class Config:
        from_attributes = True


class ComplaintResponse(BaseModel):
    appointment: AppointmentResponse
    report: ReportResponse


def to_response(appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        patient_id=appointment.patient_id,
        doctor_id=appointment.doctor_id,
        institute_id=appointment.institute_id,
        service_id=appointment.service_id,
        start=appointment.start,
        end=appointment.end,
        status=appointment.status,
        payment_method=appointment.payment_method,
        amount=appointment.amount,
        deposit_amount=appointment.deposit_amount,
        deposit_paid=appointment.deposit_paid,
        balance_amount=appointment.balance_amount,
        balance_paid=appointment.balance_paid,
        patient_present=appointment.patient_present,
        doctor_present=appointment.doctor_present,
        institute_present=appointment.institute_present,
        both_present=appointment.both_present,
        rejection_reason=appointment.rejection_reason,
        rating=appointment.rating,
        review=appointment.review,
        channel_id=appointment.channel_id,
        local_start=format_local(appointment.start),
        local_end=format_local(appointment.end),
    )


@router.post('/book', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    with translate_errors(db):
        appointment = book_appointment(
            db,
            caller,
            BookingRequest(
                provider=data.provider(),
                service_id=data.service_id,
                start=data.start,
                end=data.end,
                payment_method=data.payment_method,
            ),
            now=clinic_now(),
        )
        return to_response(appointment)


@router.get('/user-appointments', response_model=list[AppointmentResponse])
def list_my_appointments(caller: Caller = Depends(get_current_caller), db: Session = Depends(get_db)):
    with translate_errors(db):
        return [to_response(appointment) for appointment in transitions.list_patient_appointments(db, caller)]


@router.post('/appointments/{appointment_id}/accept', response_model=AppointmentResponse)
def accept(appointment_id: int, caller: Caller = Depends(get_current_caller), db: Session = Depends(get_db)):
    with translate_errors(db):
        return to_response(transitions.accept_appointment(db, caller, appointment_id))


@router.post('/appointments/{appointment_id}/reject', response_model=AppointmentResponse)
def reject(
    appointment_id: int,
    data: RejectRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    with translate_errors(db):
        return to_response(transitions.reject_appointment(db, caller, appointment_id, data.reason))


@router.post('/appointments/{appointment_id}/pay-deposit', response_model=AppointmentResponse)
def pay_deposit(
    appointment_id: int,
    data: ReferenceRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    with translate_errors(db):
        return to_response(transitions.pay_deposit(db, caller, appointment_id, data.reference_number))


@router.post('/appointments/{appointment_id}/confirm-deposit', response_model=AppointmentResponse)
def confirm_deposit(appointment_id: int, caller: Caller = Depends(get_current_caller), db: Session = Depends(get_db)):
    with translate_errors(db):
        return to_response(transitions.confirm_deposit(db, caller, appointment_id))


@router.post('/appointments/{appointment_id}/attendance', response_model=AppointmentResponse)
def mark_attendance(appointment_id: int, caller: Caller = Depends(get_current_caller), db: Session = Depends(get_db)):
    with translate_errors(db):
        return to_response(transitions.mark_attendance(db, caller, appointment_id))


@router.post('/appointments/{appointment_id}/mark-complete', response_model=AppointmentResponse)
def mark_complete(appointment_id: int, caller: Caller = Depends(get_current_caller), db: Session = Depends(get_db)):
    with translate_errors(db):
        return to_response(transitions.mark_complete(db, caller, appointment_id))


@router.post('/appointments/{appointment_id}/complete', response_model=AppointmentResponse)
def complete(appointment_id: int, caller: Caller = Depends(get_current_caller), db: Session = Depends(get_db)):
    with translate_errors(db):
        return to_response(transitions.complete_appointment(db, caller, appointment_id))


@router.post('/appointments/{appointment_id}/pay-balance', response_model=AppointmentResponse)
def pay_balance(
    appointment_id: int,
    data: ReferenceRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    with translate_errors(db):
        return to_response(transitions.pay_balance(db, caller, appointment_id, data.reference_number))


@router.post('/appointments/{appointment_id}/confirm-full-payment', response_model=AppointmentResponse)
def confirm_full_payment(
    appointment_id: int,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    with translate_errors(db):
        return to_response(transitions.confirm_balance(db, caller, appointment_id))


@router.post('/appointments/{appointment_id}/review', response_model=AppointmentResponse)
def submit_review(
    appointment_id: int,
    data: ReviewRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    with translate_errors(db):
        return to_response(transitions.submit_review(db, caller, appointment_id, data.rating, data.review))


@router.post('/appointments/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel(appointment_id: int, caller: Caller = Depends(get_current_caller), db: Session = Depends(get_db)):
    with translate_errors(db):
        return to_response(transitions.cancel_appointment(db, caller, appointment_id))


@router.post(
    '/appointments/{appointment_id}/complaint',
    response_model=ComplaintResponse,
    status_code=status.HTTP_201_CREATED,
)
def file_complaint(
    appointment_id: int,
    data: ComplaintRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    with translate_errors(db):
        appointment, report = transitions.file_complaint(db, caller, appointment_id, data.complaint)
        return ComplaintResponse(appointment=to_response(appointment), report=ReportResponse.model_validate(report))


@router.post('/sweeps/run')
def run_sweeps_now(caller: Caller = Depends(get_current_caller), db: Session = Depends(get_db)):
    if caller.role != ADMIN_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only admins can run the appointment sweeps.',
        )

    with translate_errors(db):
        return run_sweeps(db, now=clinic_now())
