"""Provider and caller identities shared by doctors, institutes and patients."""

from dataclasses import dataclass

from medbook.models.appointment import Appointment
from medbook.models.schedule import ProviderSchedule
from medbook.models.user import DOCTOR_ROLE, INSTITUTE_ROLE, PATIENT_ROLE, PROVIDER_ROLES
from medbook.scheduling.errors import ValidationFailed


@dataclass(frozen=True)
class ProviderRef:
    kind: str
    id: int

    def __post_init__(self):
        if self.kind not in PROVIDER_ROLES:
            raise ValidationFailed(f'Invalid provider type: {self.kind!r}.')

    @property
    def is_doctor(self) -> bool:
        return self.kind == DOCTOR_ROLE

    @classmethod
    def doctor(cls, provider_id: int) -> 'ProviderRef':
        return cls(DOCTOR_ROLE, provider_id)

    @classmethod
    def institute(cls, provider_id: int) -> 'ProviderRef':
        return cls(INSTITUTE_ROLE, provider_id)

    @classmethod
    def of_appointment(cls, appointment: Appointment) -> 'ProviderRef':
        if appointment.doctor_id is not None:
            return cls.doctor(appointment.doctor_id)
        return cls.institute(appointment.institute_id)

    def schedule_filter(self):
        if self.is_doctor:
            return ProviderSchedule.doctor_id == self.id
        return ProviderSchedule.institute_id == self.id

    def appointment_filter(self):
        if self.is_doctor:
            return Appointment.doctor_id == self.id
        return Appointment.institute_id == self.id

    def key_columns(self) -> dict:
        if self.is_doctor:
            return {'doctor_id': self.id, 'institute_id': None}
        return {'doctor_id': None, 'institute_id': self.id}


@dataclass(frozen=True)
class Caller:
    """An already authenticated user acting on the scheduling core."""

    user_id: int
    role: str

    @property
    def is_patient(self) -> bool:
        return self.role == PATIENT_ROLE

    @property
    def provider(self) -> ProviderRef | None:
        if self.role in PROVIDER_ROLES:
            return ProviderRef(self.role, self.user_id)
        return None

    def is_patient_of(self, appointment: Appointment) -> bool:
        return self.is_patient and appointment.patient_id == self.user_id

    def is_provider_of(self, appointment: Appointment) -> bool:
        provider = self.provider
        return provider is not None and provider == ProviderRef.of_appointment(appointment)

    def is_participant_of(self, appointment: Appointment) -> bool:
        return self.is_patient_of(appointment) or self.is_provider_of(appointment)
