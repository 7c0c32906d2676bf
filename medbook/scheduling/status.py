"""Appointment status values and the named status sets every query uses."""

from enum import Enum


class AppointmentStatus(str, Enum):
    PENDING_ACCEPT = "pending_accept"
    AWAITING_DEPOSIT = "awaiting_deposit"
    BOOKED = "booked"  # deposit paid, not yet confirmed
    CONFIRMED = "confirmed"  # deposit confirmed by provider
    ONGOING = "ongoing"
    MARKED_COMPLETE = "marked_complete"
    COMPLETED = "completed"
    FULLY_PAID = "fully_paid"  # balance paid, not yet confirmed
    CONFIRM_FULLY_PAID = "confirm_fully_paid"

    REJECTED = "rejected"
    CANCELLED_UNPAID = "cancelled_unpaid"
    CANCELLED = "cancelled"  # deposit forfeited
    NO_SHOW_PATIENT = "no_show_patient"
    NO_SHOW_DOCTOR = "no_show_doctor"
    NO_SHOW_BOTH = "no_show_both"
    FREEZE = "freeze"


S = AppointmentStatus

CANCELLED_STATUSES = frozenset({S.REJECTED, S.CANCELLED_UNPAID, S.CANCELLED})

NO_SHOW_STATUSES = frozenset({S.NO_SHOW_PATIENT, S.NO_SHOW_DOCTOR, S.NO_SHOW_BOTH})

# Absorbing: nothing moves an appointment out of these.
TERMINAL_STATUSES = CANCELLED_STATUSES | NO_SHOW_STATUSES

# Settled appointments only accept the one-time review (and, for
# confirm_fully_paid, the patient closing it as completed).
SETTLED_STATUSES = frozenset({S.CONFIRM_FULLY_PAID, S.COMPLETED})

# Holds the provider's and the patient's time for booking conflict checks.
IN_FLIGHT_STATUSES = frozenset({
    S.PENDING_ACCEPT,
    S.AWAITING_DEPOSIT,
    S.BOOKED,
    S.CONFIRMED,
    S.ONGOING,
    S.MARKED_COMPLETE,
    S.FULLY_PAID,
})

# Blocks a slot in generated calendars: everything that was not called off.
OCCUPIES_CALENDAR_STATUSES = frozenset(AppointmentStatus) - CANCELLED_STATUSES

PUBLIC_CALENDAR_STATUSES = frozenset({S.BOOKED, S.CONFIRMED, S.CANCELLED, S.COMPLETED})

# Completed appointments stay open to disputes; confirm_fully_paid is settled.
COMPLAINABLE_STATUSES = frozenset(AppointmentStatus) - TERMINAL_STATUSES - {S.CONFIRM_FULLY_PAID, S.FREEZE}

REVIEWABLE_STATUSES = SETTLED_STATUSES

# Time-triggered sweep sources.
NO_SHOW_SOURCE_STATUSES = frozenset({S.BOOKED, S.CONFIRMED})
AUTO_START_SOURCE_STATUSES = frozenset({S.CONFIRMED})
AUTO_COMPLETE_SOURCE_STATUSES = frozenset({S.ONGOING})


def is_terminal(status: AppointmentStatus) -> bool:
    return AppointmentStatus(status) in TERMINAL_STATUSES
