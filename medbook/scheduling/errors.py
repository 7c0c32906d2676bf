"""Scheduling error taxonomy.

Every error carries the HTTP status the route layer should answer with and a
human readable ``detail``. Nothing here is raised after a write.
"""

from fastapi import status


class SchedulingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Scheduling request failed.'

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationFailed(SchedulingError):
    default_detail = 'Request is invalid.'


class InvalidTimeFormat(ValidationFailed):
    default_detail = 'Times must use the 24-hour HH:mm format.'


class InvalidAvailability(ValidationFailed):
    default_detail = 'Availability schedule is invalid.'


class ProviderUnavailable(ValidationFailed):
    default_detail = 'Provider has no active schedule.'


class OutsideWorkingHours(ValidationFailed):
    default_detail = 'Booking is outside the provider operating hours.'


class BookingWindowViolation(ValidationFailed):
    default_detail = 'Booking is outside the allowed booking window.'


class DurationMismatch(ValidationFailed):
    default_detail = 'Booking length does not match the service duration.'


class SlotTaken(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Timeslot already taken by another booking.'


class DoubleBooked(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'You already have a booking that overlaps with this timeslot.'


class PricingMissing(SchedulingError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'Pricing not found for this service.'


class NotAuthorized(SchedulingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You are not part of this appointment.'


class NotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'


class InvalidTransition(SchedulingError):
    def __init__(self, action: str, current_status):
        self.action = action
        self.current_status = getattr(current_status, 'value', current_status)
        super().__init__(f'Cannot {action} an appointment that is {self.current_status}.')
