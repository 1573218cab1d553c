"""
Shared Enumerations for MediSync Models.

All string enumerations for type-safe field constraints.
StrEnum values compare equal to their string equivalents,
so code like ``if role == "admin"`` keeps working.
"""

from __future__ import annotations

from enum import StrEnum


class UserRole(StrEnum):
    """Coarse authorization category of the signed-in user.

    ``UNKNOWN`` is used when the identity carries no email address and
    therefore no role can be derived.
    """

    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"
    UNKNOWN = "unknown"


class AppointmentStatus(StrEnum):
    """Booking workflow states.

    ``PENDING`` is the initial state of every booking.  ``CANCELLED`` and
    ``COMPLETED`` are terminal.  Values are capitalised because they are
    persisted verbatim in the appointment store.
    """

    PENDING = "Pending"
    APPROVED = "Approved"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"

    def allowed_transitions(self) -> frozenset["AppointmentStatus"]:
        """Statuses this status may move to."""
        return STATUS_TRANSITIONS[self]

    def can_transition_to(self, target: "AppointmentStatus") -> bool:
        return target in STATUS_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not STATUS_TRANSITIONS[self]


STATUS_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({
        AppointmentStatus.APPROVED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.APPROVED: frozenset({
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    }),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}


class AuthStatus(StrEnum):
    """Lifecycle of the process-wide authentication state."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class AuthEvent(StrEnum):
    """Session-change notifications pushed by the identity provider."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    MFA_CHALLENGE_VERIFIED = "MFA_CHALLENGE_VERIFIED"
