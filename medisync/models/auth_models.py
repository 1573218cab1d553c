"""
Authentication Pipeline Models.

Pydantic models and enumerations for the request/response contracts
between ``AuthService`` and its callers.  Every auth operation returns a
structured, inspectable result rather than raw strings or exceptions.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from medisync.models.enums import AuthStatus, UserRole
from medisync.models.user import AuthenticatedUser, SessionInfo


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Categories a provider failure is classified into.

    Exactly one code is surfaced per failed operation.
    """

    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_EMAIL = "invalid_email"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    WEAK_PASSWORD = "weak_password"
    RATE_LIMITED = "rate_limited"
    NETWORK_ERROR = "network_error"
    VALIDATION_ERROR = "validation_error"
    UNKNOWN_ERROR = "unknown_error"


# ---------------------------------------------------------------------------
# Supabase error mapping
# ---------------------------------------------------------------------------
# Matched in order against the error's ``code`` attribute and its lowercased
# message; the first hit wins.

SUPABASE_ERROR_MAP: list[tuple[tuple[str, ...], AuthErrorCode, str]] = [
    (
        ("email_not_confirmed", "email not confirmed"),
        AuthErrorCode.EMAIL_NOT_CONFIRMED,
        "Please confirm your email address before signing in.",
    ),
    (
        ("invalid_credentials", "invalid login credentials", "invalid_grant"),
        AuthErrorCode.INVALID_CREDENTIALS,
        "Incorrect email or password.",
    ),
    (
        ("email_address_invalid", "unable to validate email address", "invalid format"),
        AuthErrorCode.INVALID_EMAIL,
        "Please enter a valid email address.",
    ),
    (
        ("user_already_exists", "email_exists", "already registered"),
        AuthErrorCode.EMAIL_ALREADY_EXISTS,
        "An account with this email already exists. Try signing in.",
    ),
    (
        ("weak_password", "password should be"),
        AuthErrorCode.WEAK_PASSWORD,
        "That password is too weak. Please choose a stronger one.",
    ),
    (
        ("over_request_rate_limit", "over_email_send_rate_limit", "rate limit"),
        AuthErrorCode.RATE_LIMITED,
        "Too many attempts. Please wait a moment and try again.",
    ),
]

NETWORK_ERROR_MESSAGE: str = "Cannot reach the sign-in service. Check your internet connection."


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationResult(BaseModel):
    """Result of a single client-side field validation check."""

    is_valid: bool
    error_message: Optional[str] = None


# ---------------------------------------------------------------------------
# Unified auth response
# ---------------------------------------------------------------------------

class AuthResult(BaseModel):
    """Unified response for every auth operation.

    Attributes
    ----------
    success:
        ``True`` when the operation completed without error.
    error_code:
        Structured error category (``None`` on success).
    error_message:
        Human-readable failure description (``None`` on success).
    info_message:
        Non-error notification for the user, e.g. "check your inbox".
    requires_confirmation:
        ``True`` after a sign-up that still needs email confirmation
        before a session exists.
    user:
        The authenticated user, when the operation produced one.
    role:
        Role derived for ``user``.
    redirect_url:
        Provider authorization URL for redirect-based flows.
    """

    success: bool
    error_code: Optional[AuthErrorCode] = None
    error_message: Optional[str] = None
    info_message: Optional[str] = None
    requires_confirmation: bool = False
    user: Optional[AuthenticatedUser] = None
    role: Optional[UserRole] = None
    redirect_url: Optional[str] = None


# ---------------------------------------------------------------------------
# Observable auth state
# ---------------------------------------------------------------------------

class AuthSnapshot(BaseModel):
    """Immutable view of the process-wide auth state handed to subscribers."""

    model_config = ConfigDict(frozen=True)

    status: AuthStatus = AuthStatus.UNINITIALIZED
    user: Optional[AuthenticatedUser] = None
    session: Optional[SessionInfo] = None
    role: UserRole = UserRole.UNKNOWN

    @property
    def loading(self) -> bool:
        return self.status in (AuthStatus.UNINITIALIZED, AuthStatus.LOADING)

    @property
    def is_authenticated(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATED
