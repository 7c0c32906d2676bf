import os
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from medbook.database import Base  # noqa: E402
from medbook.models.appointment import Appointment  # noqa: E402
from medbook.models.pricing import Pricing  # noqa: E402
from medbook.models.report import Report  # noqa: E402,F401
from medbook.models.schedule import ProviderSchedule  # noqa: E402
from medbook.models.service import Service  # noqa: E402
from medbook.models.user import ADMIN_ROLE, DOCTOR_ROLE, INSTITUTE_ROLE, PATIENT_ROLE, User  # noqa: E402
from medbook.scheduling.pricing import compute_payment_split  # noqa: E402
from medbook.scheduling.providers import Caller, ProviderRef  # noqa: E402
from medbook.scheduling.status import AppointmentStatus  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make_user(role: str, email: str | None = None) -> User:
        user = User(email=email or f'{role}-{db.query(User).count() + 1}@example.com', role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def patient(make_user) -> User:
    return make_user(PATIENT_ROLE)


@pytest.fixture
def doctor(make_user) -> User:
    return make_user(DOCTOR_ROLE)


@pytest.fixture
def institute(make_user) -> User:
    return make_user(INSTITUTE_ROLE)


@pytest.fixture
def admin(make_user) -> User:
    return make_user(ADMIN_ROLE)


@pytest.fixture
def patient_caller(patient) -> Caller:
    return Caller(user_id=patient.id, role=PATIENT_ROLE)


@pytest.fixture
def doctor_caller(doctor) -> Caller:
    return Caller(user_id=doctor.id, role=DOCTOR_ROLE)


@pytest.fixture
def doctor_ref(doctor) -> ProviderRef:
    return ProviderRef.doctor(doctor.id)


@pytest.fixture
def institute_ref(institute) -> ProviderRef:
    return ProviderRef.institute(institute.id)


@pytest.fixture
def service(db) -> Service:
    service = Service(name='General consultation', duration_minutes=30)
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


@pytest.fixture
def make_schedule(db):
    def _make_schedule(
        provider: ProviderRef,
        start_hour: str = '09:00',
        end_hour: str = '17:00',
        days_of_week=(1, 2, 3, 4, 5),
        is_active: bool = True,
    ) -> ProviderSchedule:
        schedule = ProviderSchedule(
            start_hour=start_hour,
            end_hour=end_hour,
            days_of_week=list(days_of_week),
            is_active=is_active,
            **provider.key_columns(),
        )
        db.add(schedule)
        db.commit()
        db.refresh(schedule)
        return schedule

    return _make_schedule


@pytest.fixture
def make_price(db):
    def _make_price(provider: ProviderRef, service: Service, price='1000') -> Pricing:
        record = Pricing(provider_id=provider.id, service_id=service.id, price=Decimal(price))
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _make_price


@pytest.fixture
def doctor_ready(doctor_ref, service, make_schedule, make_price) -> ProviderRef:
    """A doctor working Monday to Friday 09:00-17:00 who charges 1000 per consultation."""
    make_schedule(doctor_ref)
    make_price(doctor_ref, service)
    return doctor_ref


@pytest.fixture
def make_appointment(db, service):
    def _make_appointment(
        provider: ProviderRef,
        patient: User,
        start,
        minutes: int = 30,
        status: AppointmentStatus = AppointmentStatus.PENDING_ACCEPT,
        price='1000',
        **overrides,
    ) -> Appointment:
        deposit, balance = compute_payment_split(price)
        values = {
            'patient_id': patient.id,
            'service_id': service.id,
            'virtual': provider.is_doctor,
            'start': start,
            'end': start + timedelta(minutes=minutes),
            'status': status,
            'amount': deposit + balance,
            'deposit_amount': deposit,
            'balance_amount': balance,
            **provider.key_columns(),
        }
        values.update(overrides)
        appointment = Appointment(**values)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make_appointment
