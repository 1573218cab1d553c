"""
Data Models Package.

Re-exports all Pydantic models:
    from medisync.models import Appointment, NewAppointment, Doctor
    from medisync.models import UserRole, AppointmentStatus, AuthStatus
    from medisync.models import AuthenticatedUser, SessionInfo, AuthResult
"""

from medisync.models.appointment import Appointment, DashboardSummary, NewAppointment
from medisync.models.auth_models import (
    AuthErrorCode,
    AuthResult,
    AuthSnapshot,
    ValidationResult,
)
from medisync.models.doctor import Doctor, NewDoctor
from medisync.models.enums import (
    STATUS_TRANSITIONS,
    AppointmentStatus,
    AuthEvent,
    AuthStatus,
    UserRole,
)
from medisync.models.service_models import ServiceResult
from medisync.models.user import AuthenticatedUser, SessionInfo

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "AuthErrorCode",
    "AuthEvent",
    "AuthResult",
    "AuthSnapshot",
    "AuthStatus",
    "AuthenticatedUser",
    "DashboardSummary",
    "Doctor",
    "NewAppointment",
    "NewDoctor",
    "STATUS_TRANSITIONS",
    "ServiceResult",
    "SessionInfo",
    "UserRole",
    "ValidationResult",
]
