"""
Authentication Service.

Single orchestrator for every authentication concern of the portal:
session bootstrap, login, sign-up, logout, OAuth redirect flows, password
reset and error classification.

It is the only writer of the shared ``AuthContext``.  Final session state
always comes from the provider's auth-state stream; the operations here
only start provider flows and report their immediate outcome.

All methods return typed ``AuthResult`` or ``ValidationResult`` models;
callers never inspect raw provider exceptions.
"""

from __future__ import annotations

import re
import threading
from typing import Any, Optional

import httpx

from medisync.auth import AuthContext
from medisync.config import AppConfig
from medisync.database import DatabaseManager
from medisync.logger import StructuredLogger
from medisync.models.auth_models import (
    NETWORK_ERROR_MESSAGE,
    SUPABASE_ERROR_MAP,
    AuthErrorCode,
    AuthResult,
    AuthSnapshot,
    ValidationResult,
)
from medisync.models.enums import AuthEvent, AuthStatus, UserRole
from medisync.models.user import AuthenticatedUser, SessionInfo
from medisync.services.base_service import BaseService
from medisync.services.role_resolver import RoleResolver


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_EMAIL_RE: re.Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

_SESSION_MISSING_KEYS: tuple[str, ...] = (
    "session_not_found",
    "auth session missing",
    "session missing",
)

_UNKNOWN_ERROR_MESSAGE: str = "An unexpected error occurred. Please try again later."

_NETWORK_EXCEPTIONS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    httpx.TransportError,
)


def _error_text(exc: BaseException) -> str:
    """Lowercased ``code`` attribute plus message, for key matching."""
    code = getattr(exc, "code", None) or ""
    return f"{code} {exc}".lower()


class AuthService(BaseService):
    """Authentication orchestrator.

    Parameters
    ----------
    db:
        Database manager exposing the Supabase client (``db.supabase``
        raises ``RuntimeError`` in offline mode).
    context:
        Shared auth state.  This service is its only writer.
    role_resolver:
        Strategy deriving a ``UserRole`` from the signed-in user.
    config:
        Application configuration (redirect URLs, password policy).
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        db: DatabaseManager,
        context: AuthContext,
        role_resolver: RoleResolver,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._db: DatabaseManager = db
        self._context: AuthContext = context
        self._role_resolver: RoleResolver = role_resolver
        self._config: AppConfig = config

        # Provider events may arrive on the client's own thread; they are
        # applied one at a time, in delivery order.
        self._event_lock: threading.RLock = threading.RLock()
        self._stopped: threading.Event = threading.Event()
        self._subscription: Optional[Any] = None

    @property
    def context(self) -> AuthContext:
        return self._context

    @property
    def is_running(self) -> bool:
        return self._subscription is not None and not self._stopped.is_set()

    # ==================================================================
    # Lifecycle
    # ==================================================================

    def start(self) -> AuthSnapshot:
        """Subscribe to the provider's auth stream and resolve the initial session.

        Moves the context to ``loading``, then to ``authenticated`` or
        ``unauthenticated`` once ``get_session()`` resolves.  Provider
        errors (including offline mode) resolve to ``unauthenticated``.
        Calling ``start()`` again, or after ``stop()``, is a no-op.
        """
        if self._stopped.is_set() or self._context.status != AuthStatus.UNINITIALIZED:
            return self._context.snapshot()

        self._context.publish(AuthSnapshot(status=AuthStatus.LOADING))

        try:
            auth = self._db.supabase.auth
            self._subscription = auth.on_auth_state_change(self._on_auth_state_change)
            provider_session = auth.get_session()
        except RuntimeError:
            self._logger.warning(
                "Identity provider not configured; starting signed out.",
                extra={"event": "AUTH_OFFLINE"},
            )
            self._apply_if_running(AuthEvent.INITIAL_SESSION, None)
        except Exception as exc:
            self._logger.warning(
                "Initial session fetch failed: %s", exc,
                extra={"event": "SESSION_FETCH_FAILED"},
            )
            self._apply_if_running(AuthEvent.INITIAL_SESSION, None)
        else:
            self._apply_if_running(AuthEvent.INITIAL_SESSION, provider_session)

        return self._context.snapshot()

    def stop(self) -> None:
        """Tear down: drop all further provider events and unsubscribe.

        Waits for an event that is being applied to finish.  Idempotent.
        """
        if self._stopped.is_set():
            return
        self._stopped.set()

        with self._event_lock:
            subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        try:
            subscription.unsubscribe()
        except Exception as exc:
            self._logger.warning("Failed to unsubscribe from auth events: %s", exc)

    # ==================================================================
    # Provider event handling
    # ==================================================================

    def _on_auth_state_change(self, event: str, provider_session: Any) -> None:
        """Callback registered with ``on_auth_state_change``."""
        self._apply_if_running(event, provider_session)

    def _apply_if_running(self, event: str, provider_session: Any) -> None:
        with self._event_lock:
            if self._stopped.is_set():
                self._logger.debug("Ignoring auth event %s after shutdown.", event)
                return
            self._apply_session(event, provider_session)

    def _apply_session(self, event: str, provider_session: Any) -> None:
        """Recompute user, session and role from one provider event.

        Applying the same session twice produces an equal snapshot, which
        ``AuthContext.publish`` treats as no change.
        """
        if event == AuthEvent.SIGNED_OUT or provider_session is None:
            snapshot = AuthSnapshot(status=AuthStatus.UNAUTHENTICATED)
        else:
            try:
                user = AuthenticatedUser.from_provider(provider_session.user)
                session = SessionInfo.from_provider(provider_session)
            except Exception as exc:
                self._logger.error(
                    "Discarding unreadable session from %s event: %s", event, exc,
                    extra={"event": "SESSION_INVALID"},
                )
                snapshot = AuthSnapshot(status=AuthStatus.UNAUTHENTICATED)
            else:
                if session.is_expired:
                    self._logger.warning(
                        "Discarding expired session for %s from %s event.", user.id, event,
                        extra={"event": "SESSION_EXPIRED", "user_id": user.id},
                    )
                    snapshot = AuthSnapshot(status=AuthStatus.UNAUTHENTICATED)
                else:
                    snapshot = AuthSnapshot(
                        status=AuthStatus.AUTHENTICATED,
                        user=user,
                        session=session,
                        role=self._role_resolver.resolve(user),
                    )

        if self._context.publish(snapshot):
            self._logger.info(
                "Auth state %s after %s (role: %s).",
                snapshot.status, event, snapshot.role,
                extra={
                    "event": "AUTH_STATE_CHANGED",
                    "auth_event": str(event),
                    "user_id": snapshot.user.id if snapshot.user else None,
                },
            )

    def _reset_to_unauthenticated(self) -> None:
        with self._event_lock:
            if self._stopped.is_set():
                return
            self._context.publish(AuthSnapshot(status=AuthStatus.UNAUTHENTICATED))

    # ==================================================================
    # Validation helpers
    # ==================================================================

    @staticmethod
    def normalize_email(email: str) -> str:
        """Normalise an email address: strip whitespace and lowercase."""
        return (email or "").strip().lower()

    @staticmethod
    def validate_email(email: str) -> ValidationResult:
        """Validate an email address against a simplified RFC 5322 regex."""
        if not email or not email.strip():
            return ValidationResult(
                is_valid=False,
                error_message="Email address is required.",
            )
        if not _EMAIL_RE.match(email.strip()):
            return ValidationResult(
                is_valid=False,
                error_message="Please enter a valid email address.",
            )
        return ValidationResult(is_valid=True)

    def validate_password(self, password: str) -> ValidationResult:
        """Enforce the minimum password length."""
        minimum = self._config.MIN_PASSWORD_LENGTH
        if not password or len(password) < minimum:
            return ValidationResult(
                is_valid=False,
                error_message=f"Password must be at least {minimum} characters.",
            )
        return ValidationResult(is_valid=True)

    # ==================================================================
    # Error classification
    # ==================================================================

    def _classify_error(self, exc: Exception, operation: str) -> AuthResult:
        """Map a provider or network exception to exactly one error code.

        Parameters
        ----------
        exc:
            The exception raised by the provider call.
        operation:
            Upper-case operation name used in the log event, e.g. ``LOGIN``.
        """
        if isinstance(exc, _NETWORK_EXCEPTIONS):
            self._logger.warning(
                "Network error during %s: %s", operation.lower(), exc,
                extra={"event": f"{operation}_NETWORK_ERROR"},
            )
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.NETWORK_ERROR,
                error_message=NETWORK_ERROR_MESSAGE,
            )

        error_text = _error_text(exc)
        for keys, error_code, human_message in SUPABASE_ERROR_MAP:
            if any(key in error_text for key in keys):
                self._logger.warning(
                    "%s failed (%s): %s", operation.capitalize(), error_code, exc,
                    extra={"event": f"{operation}_FAILED", "error_code": str(error_code)},
                )
                return AuthResult(
                    success=False,
                    error_code=error_code,
                    error_message=human_message,
                )

        self._logger.warning(
            "Unknown %s error: %s", operation.lower(), exc,
            extra={"event": f"{operation}_FAILED", "error_code": "unknown"},
        )
        return AuthResult(
            success=False,
            error_code=AuthErrorCode.UNKNOWN_ERROR,
            error_message=_UNKNOWN_ERROR_MESSAGE,
        )

    @staticmethod
    def _offline_result() -> AuthResult:
        return AuthResult(
            success=False,
            error_code=AuthErrorCode.NETWORK_ERROR,
            error_message=NETWORK_ERROR_MESSAGE,
        )

    # ==================================================================
    # Login
    # ==================================================================

    def login(self, email: str, password: str) -> AuthResult:
        """Authenticate with email and password.

        On failure the context is reset to ``unauthenticated``.  On success
        the returned result carries the user and derived role; the context
        itself is updated by the provider's ``SIGNED_IN`` event.
        """
        email = self.normalize_email(email)
        email_check = self.validate_email(email)
        if not email_check.is_valid:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.INVALID_EMAIL,
                error_message=email_check.error_message,
            )
        if not password:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.VALIDATION_ERROR,
                error_message="Password is required.",
            )

        try:
            response = self._db.supabase.auth.sign_in_with_password({
                "email": email,
                "password": password,
            })
            user = AuthenticatedUser.from_provider(response.user)
        except RuntimeError:
            self._reset_to_unauthenticated()
            return self._offline_result()
        except Exception as exc:
            self._reset_to_unauthenticated()
            return self._classify_error(exc, "LOGIN")

        role = self._role_resolver.resolve(user)
        self._logger.info(
            "User authenticated: %s (role: %s)", user.email, role,
            extra={"event": "LOGIN", "email": user.email, "user_id": user.id},
        )
        return AuthResult(success=True, user=user, role=role)

    # ==================================================================
    # Sign-up
    # ==================================================================

    def signup(self, email: str, password: str) -> AuthResult:
        """Create an account.

        When the provider returns no session the account still needs
        email confirmation: the result is a success with
        ``requires_confirmation=True`` and an informational message.
        A provider or network failure resets the context to
        ``unauthenticated``, as for ``login``.
        """
        email = self.normalize_email(email)
        email_check = self.validate_email(email)
        if not email_check.is_valid:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.INVALID_EMAIL,
                error_message=email_check.error_message,
            )
        pw_check = self.validate_password(password)
        if not pw_check.is_valid:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.VALIDATION_ERROR,
                error_message=pw_check.error_message,
            )

        try:
            response = self._db.supabase.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"email_redirect_to": self._config.SITE_URL},
            })
            user = (
                AuthenticatedUser.from_provider(response.user)
                if response.user is not None else None
            )
        except RuntimeError:
            self._reset_to_unauthenticated()
            return self._offline_result()
        except Exception as exc:
            self._reset_to_unauthenticated()
            return self._classify_error(exc, "SIGNUP")

        role = self._role_resolver.resolve(user) if user is not None else None

        if response.session is None:
            self._logger.info(
                "Sign-up pending email confirmation: %s", email,
                extra={"event": "SIGNUP", "email": email, "confirmed": False},
            )
            return AuthResult(
                success=True,
                requires_confirmation=True,
                info_message=(
                    "Check your email to confirm your account before signing in."
                ),
                user=user,
                role=role,
            )

        self._logger.info(
            "Sign-up complete with active session: %s", email,
            extra={"event": "SIGNUP", "email": email, "confirmed": True},
        )
        return AuthResult(
            success=True,
            info_message="Your account is ready.",
            user=user,
            role=role,
        )

    # ==================================================================
    # Logout
    # ==================================================================

    def logout(self) -> None:
        """Server-side sign-out, then clear local state.

        A missing server session is not an error.  Local state is cleared
        even when the provider call fails.
        """
        user = self._context.user
        user_email = user.email if user is not None else "unknown"

        try:
            self._db.supabase.auth.sign_out()
        except RuntimeError:
            self._logger.debug(
                "Offline; skipping server-side sign_out for %s.", user_email,
            )
        except Exception as exc:
            if any(key in _error_text(exc) for key in _SESSION_MISSING_KEYS):
                self._logger.debug("No server session to sign out for %s.", user_email)
            else:
                self._logger.warning(
                    "Server-side sign_out failed for %s: %s", user_email, exc,
                )

        self._reset_to_unauthenticated()
        self._logger.info(
            "User logged out: %s", user_email,
            extra={
                "event": "LOGOUT",
                "email": user_email,
                "user_id": user.id if user is not None else None,
            },
        )

    # ==================================================================
    # OAuth
    # ==================================================================

    def sign_in_with_oauth(self, provider: str) -> AuthResult:
        """Start a redirect-based OAuth sign-in.

        Returns the provider authorization URL in ``redirect_url``.
        Completion is observed later as a pushed ``SIGNED_IN`` event.  If
        the flow cannot be started the context is reset to
        ``unauthenticated``.
        """
        provider = (provider or "").strip().lower()
        if not provider:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.VALIDATION_ERROR,
                error_message="An OAuth provider is required.",
            )

        try:
            response = self._db.supabase.auth.sign_in_with_oauth({
                "provider": provider,
                "options": {"redirect_to": self._config.oauth_redirect_url},
            })
        except RuntimeError:
            self._reset_to_unauthenticated()
            return self._offline_result()
        except Exception as exc:
            self._reset_to_unauthenticated()
            return self._classify_error(exc, "OAUTH")

        self._logger.info(
            "OAuth sign-in started with %s.", provider,
            extra={"event": "OAUTH_STARTED", "provider": provider},
        )
        return AuthResult(
            success=True,
            redirect_url=response.url,
            info_message=f"Continue signing in with {provider}.",
        )

    def exchange_oauth_code(self, auth_code: str) -> AuthResult:
        """Complete a redirect flow by exchanging the returned code."""
        auth_code = (auth_code or "").strip()
        if not auth_code:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.VALIDATION_ERROR,
                error_message="Authorization code is missing.",
            )

        try:
            response = self._db.supabase.auth.exchange_code_for_session({
                "auth_code": auth_code,
            })
            user = AuthenticatedUser.from_provider(response.user)
        except RuntimeError:
            self._reset_to_unauthenticated()
            return self._offline_result()
        except Exception as exc:
            self._reset_to_unauthenticated()
            return self._classify_error(exc, "OAUTH")

        role = self._role_resolver.resolve(user)
        self._logger.info(
            "OAuth sign-in completed: %s (role: %s)", user.email, role,
            extra={"event": "LOGIN", "email": user.email, "user_id": user.id},
        )
        return AuthResult(success=True, user=user, role=role)

    # ==================================================================
    # Password reset
    # ==================================================================

    def send_password_reset(self, email: str) -> AuthResult:
        """Request a password-reset email.  Never changes auth state."""
        email = self.normalize_email(email)
        email_check = self.validate_email(email)
        if not email_check.is_valid:
            return AuthResult(
                success=False,
                error_code=AuthErrorCode.INVALID_EMAIL,
                error_message=email_check.error_message,
            )

        try:
            self._db.supabase.auth.reset_password_for_email(
                email,
                {"redirect_to": self._config.password_reset_redirect_url},
            )
        except RuntimeError:
            return self._offline_result()
        except Exception as exc:
            return self._classify_error(exc, "PASSWORD_RESET")

        self._logger.info(
            "Password reset requested for %s", email,
            extra={"event": "PASSWORD_RESET_REQUESTED", "email": email},
        )
        return AuthResult(
            success=True,
            info_message=(
                "If an account exists for this email, a password reset link "
                "is on its way."
            ),
        )

    # ==================================================================
    # Role preview
    # ==================================================================

    def assign_role(self, role: UserRole | str) -> None:
        """Override the signed-in user's role until the next session event.

        Does nothing once the service has been stopped.

        Raises:
            RuntimeError: If no user is authenticated.
            ValueError: If *role* is not a valid ``UserRole``.
        """
        role = UserRole(role)
        with self._event_lock:
            if self._stopped.is_set():
                self._logger.debug("Ignoring role override %s after shutdown.", role)
                return
            snapshot = self._context.snapshot()
            if not snapshot.is_authenticated:
                raise RuntimeError("Cannot assign a role without an authenticated user.")
            self._context.publish(snapshot.model_copy(update={"role": role}))

        self._logger.info(
            "Role overridden to %s for %s", role, snapshot.user.email if snapshot.user else None,
            extra={"event": "ROLE_OVERRIDE", "role": str(role)},
        )
