"""
Tests for AuthService – session bootstrap, provider events, error
classification and the email/password, OAuth and reset flows.
"""

import httpx
import pytest

from conftest import FakeAuthError, make_provider_session, make_provider_user
from medisync.models.auth_models import AuthErrorCode
from medisync.models.enums import AuthStatus, UserRole
from medisync.services.auth_service import AuthService
from medisync.services.role_resolver import EmailSubstringRoleResolver


@pytest.fixture
def auth_service(online_db, auth_context, config, logger):
    service = AuthService(
        db=online_db,
        context=auth_context,
        role_resolver=EmailSubstringRoleResolver(),
        config=config,
        logger=logger,
    )
    yield service
    service.stop()


@pytest.fixture
def fake_auth(fake_supabase):
    return fake_supabase.auth


def _record_snapshots(context):
    seen = []
    context.subscribe(seen.append)
    return seen


# ── Tests: start / provider events ───────────────────────────────────

def test_start_without_session_resolves_unauthenticated(auth_service, auth_context, fake_auth):
    assert auth_context.status == AuthStatus.UNINITIALIZED
    assert auth_context.loading is True

    snapshot = auth_service.start()

    assert snapshot.status == AuthStatus.UNAUTHENTICATED
    assert auth_context.loading is False
    assert auth_context.user is None
    assert auth_context.role == UserRole.UNKNOWN
    assert fake_auth.called("on_auth_state_change")
    assert fake_auth.called("get_session")


def test_start_with_existing_session_derives_role(auth_service, auth_context, fake_auth):
    user = make_provider_user(email="Doctor.Smith@Clinic.example", user_id="d-9")
    fake_auth.current_session = make_provider_session(user)

    auth_service.start()

    assert auth_context.is_authenticated
    assert auth_context.user.id == "d-9"
    assert auth_context.role == UserRole.DOCTOR
    assert auth_context.session.access_token == "access-1"


def test_start_passes_through_loading(auth_service, auth_context):
    seen = _record_snapshots(auth_context)
    auth_service.start()
    assert [snap.status for snap in seen] == [
        AuthStatus.LOADING,
        AuthStatus.UNAUTHENTICATED,
    ]


def test_start_session_fetch_error_resolves_unauthenticated(auth_service, auth_context, fake_auth):
    fake_auth.errors["get_session"] = ConnectionError("down")
    auth_service.start()
    assert auth_context.status == AuthStatus.UNAUTHENTICATED


def test_start_offline_resolves_unauthenticated(db, auth_context, config, logger):
    service = AuthService(
        db=db,
        context=auth_context,
        role_resolver=EmailSubstringRoleResolver(),
        config=config,
        logger=logger,
    )
    service.start()
    assert auth_context.status == AuthStatus.UNAUTHENTICATED
    assert auth_context.loading is False
    service.stop()


def test_start_twice_subscribes_once(auth_service, fake_auth):
    auth_service.start()
    auth_service.start()
    assert len(fake_auth.called("on_auth_state_change")) == 1


def test_pushed_events_recompute_user_and_role(auth_service, auth_context, fake_auth):
    auth_service.start()

    fake_auth.emit("SIGNED_IN", make_provider_session(make_provider_user(email="admin@x.org")))
    assert auth_context.role == UserRole.ADMIN

    fake_auth.emit("TOKEN_REFRESHED", make_provider_session(
        make_provider_user(email="pat@x.org", user_id="p-2"), token="access-2",
    ))
    assert auth_context.role == UserRole.PATIENT
    assert auth_context.user.id == "p-2"

    fake_auth.emit("SIGNED_OUT", None)
    assert auth_context.status == AuthStatus.UNAUTHENTICATED
    assert auth_context.user is None
    assert auth_context.session is None


def test_duplicate_event_does_not_renotify(auth_service, auth_context, fake_auth):
    auth_service.start()
    seen = _record_snapshots(auth_context)
    session = make_provider_session(make_provider_user())

    fake_auth.emit("SIGNED_IN", session)
    fake_auth.emit("SIGNED_IN", session)

    assert len(seen) == 1
    assert seen[0].is_authenticated


def test_user_without_email_is_unknown_role(auth_service, auth_context, fake_auth):
    auth_service.start()
    fake_auth.emit("SIGNED_IN", make_provider_session(make_provider_user(email=None)))
    assert auth_context.is_authenticated
    assert auth_context.role == UserRole.UNKNOWN


def test_events_after_stop_are_ignored(auth_service, auth_context, fake_auth):
    auth_service.start()
    callback = fake_auth.callbacks[0]

    auth_service.stop()
    callback("SIGNED_IN", make_provider_session(make_provider_user()))

    assert auth_context.status == AuthStatus.UNAUTHENTICATED
    assert fake_auth.subscriptions[0].unsubscribed == 1
    assert fake_auth.callbacks == []
    assert auth_service.is_running is False


def test_stop_is_idempotent(auth_service, fake_auth):
    auth_service.start()
    auth_service.stop()
    auth_service.stop()
    assert fake_auth.subscriptions[0].unsubscribed == 1


def test_failed_login_after_stop_leaves_state_alone(auth_service, auth_context, fake_auth):
    fake_auth.current_session = make_provider_session(make_provider_user())
    auth_service.start()
    auth_service.stop()
    seen = _record_snapshots(auth_context)
    fake_auth.errors["sign_in_with_password"] = FakeAuthError("Invalid login credentials")

    result = auth_service.login("jane@example.com", "wrong-password")

    assert result.error_code == AuthErrorCode.INVALID_CREDENTIALS
    assert seen == []
    assert auth_context.is_authenticated


def test_logout_after_stop_leaves_state_alone(auth_service, auth_context, fake_auth):
    fake_auth.current_session = make_provider_session(make_provider_user())
    auth_service.start()
    auth_service.stop()
    seen = _record_snapshots(auth_context)

    auth_service.logout()

    assert fake_auth.called("sign_out")
    assert seen == []


def test_assign_role_after_stop_is_ignored(auth_service, auth_context, fake_auth):
    fake_auth.current_session = make_provider_session(make_provider_user(email="pat@example.com"))
    auth_service.start()
    auth_service.stop()

    auth_service.assign_role(UserRole.ADMIN)

    assert auth_context.role == UserRole.PATIENT


def test_expired_session_is_treated_as_signed_out(auth_service, auth_context, fake_auth):
    stale = make_provider_session(make_provider_user())
    stale.expires_at = 1_000_000_000
    fake_auth.current_session = stale

    auth_service.start()

    assert auth_context.status == AuthStatus.UNAUTHENTICATED
    assert auth_context.session is None


# ── Tests: login ─────────────────────────────────────────────────────

def test_login_success_returns_user_and_role(auth_service, auth_context, fake_auth):
    auth_service.start()
    fake_auth.next_user = make_provider_user(email="admin@clinic.example", user_id="a-1")

    result = auth_service.login("  Admin@Clinic.example ", "secret123")

    assert result.success is True
    assert result.user.id == "a-1"
    assert result.role == UserRole.ADMIN
    assert fake_auth.called("sign_in_with_password")[0][0] == {
        "email": "admin@clinic.example",
        "password": "secret123",
    }
    assert auth_context.is_authenticated
    assert auth_context.role == UserRole.ADMIN


def test_login_failure_resets_state(auth_service, auth_context, fake_auth):
    fake_auth.current_session = make_provider_session(make_provider_user())
    auth_service.start()
    assert auth_context.is_authenticated

    fake_auth.errors["sign_in_with_password"] = FakeAuthError(
        "Invalid login credentials", code="invalid_credentials",
    )
    result = auth_service.login("jane@example.com", "wrong-password")

    assert result.success is False
    assert result.error_code == AuthErrorCode.INVALID_CREDENTIALS
    assert result.error_message == "Incorrect email or password."
    assert auth_context.status == AuthStatus.UNAUTHENTICATED


@pytest.mark.parametrize("error, expected", [
    (FakeAuthError("Email not confirmed", code="email_not_confirmed"),
     AuthErrorCode.EMAIL_NOT_CONFIRMED),
    (FakeAuthError("Invalid login credentials"), AuthErrorCode.INVALID_CREDENTIALS),
    (FakeAuthError("Unable to validate email address: invalid format",
                   code="email_address_invalid"), AuthErrorCode.INVALID_EMAIL),
    (FakeAuthError("Request rate limit reached", code="over_request_rate_limit"),
     AuthErrorCode.RATE_LIMITED),
    (ConnectionError("connection refused"), AuthErrorCode.NETWORK_ERROR),
    (TimeoutError("timed out"), AuthErrorCode.NETWORK_ERROR),
    (httpx.ConnectError("name resolution failed"), AuthErrorCode.NETWORK_ERROR),
    (FakeAuthError("Something odd happened"), AuthErrorCode.UNKNOWN_ERROR),
])
def test_login_error_classification(auth_service, fake_auth, error, expected):
    auth_service.start()
    fake_auth.errors["sign_in_with_password"] = error

    result = auth_service.login("jane@example.com", "secret123")

    assert result.success is False
    assert result.error_code == expected
    assert result.error_message


def test_login_offline_is_network_error(db, auth_context, config, logger):
    service = AuthService(
        db=db,
        context=auth_context,
        role_resolver=EmailSubstringRoleResolver(),
        config=config,
        logger=logger,
    )
    result = service.login("jane@example.com", "secret123")
    assert result.error_code == AuthErrorCode.NETWORK_ERROR
    assert auth_context.status == AuthStatus.UNAUTHENTICATED


def test_login_rejects_malformed_email_without_provider_call(auth_service, fake_auth):
    result = auth_service.login("not-an-email", "secret123")
    assert result.error_code == AuthErrorCode.INVALID_EMAIL
    assert fake_auth.called("sign_in_with_password") == []


# ── Tests: signup ────────────────────────────────────────────────────

def test_signup_without_session_requires_confirmation(auth_service, auth_context, fake_auth):
    auth_service.start()

    result = auth_service.signup("new.patient@example.com", "secret123")

    assert result.success is True
    assert result.requires_confirmation is True
    assert "confirm" in result.info_message.lower()
    assert result.role == UserRole.PATIENT
    assert auth_context.status == AuthStatus.UNAUTHENTICATED
    options = fake_auth.called("sign_up")[0][0]["options"]
    assert options["email_redirect_to"] == "http://localhost:3000"


def test_signup_with_session_is_active(auth_service, auth_context, fake_auth):
    auth_service.start()
    fake_auth.signup_returns_session = True

    result = auth_service.signup("new.patient@example.com", "secret123")

    assert result.success is True
    assert result.requires_confirmation is False
    assert auth_context.is_authenticated
    assert auth_context.user.email == "new.patient@example.com"


def test_signup_short_password_is_rejected_locally(auth_service, fake_auth):
    result = auth_service.signup("new.patient@example.com", "12345")
    assert result.success is False
    assert result.error_code == AuthErrorCode.VALIDATION_ERROR
    assert "6" in result.error_message
    assert fake_auth.called("sign_up") == []


def test_signup_existing_email(auth_service, fake_auth):
    fake_auth.errors["sign_up"] = FakeAuthError("User already registered", code="user_already_exists")
    result = auth_service.signup("jane@example.com", "secret123")
    assert result.error_code == AuthErrorCode.EMAIL_ALREADY_EXISTS


def test_signup_weak_password_from_provider(auth_service, fake_auth):
    fake_auth.errors["sign_up"] = FakeAuthError(
        "Password should be at least 8 characters.", code="weak_password",
    )
    result = auth_service.signup("jane@example.com", "secret1")
    assert result.error_code == AuthErrorCode.WEAK_PASSWORD


def test_signup_failure_resets_authenticated_state(auth_service, auth_context, fake_auth):
    fake_auth.current_session = make_provider_session(make_provider_user())
    auth_service.start()
    assert auth_context.is_authenticated
    fake_auth.errors["sign_up"] = ConnectionError("down")

    result = auth_service.signup("new.patient@example.com", "secret123")

    assert result.success is False
    assert result.error_code == AuthErrorCode.NETWORK_ERROR
    assert auth_context.status == AuthStatus.UNAUTHENTICATED
    assert auth_context.session is None


# ── Tests: logout ────────────────────────────────────────────────────

def test_logout_clears_state(auth_service, auth_context, fake_auth):
    fake_auth.current_session = make_provider_session(make_provider_user())
    auth_service.start()

    auth_service.logout()

    assert fake_auth.called("sign_out")
    assert auth_context.status == AuthStatus.UNAUTHENTICATED


def test_logout_with_missing_session_is_benign(auth_service, auth_context, fake_auth):
    fake_auth.current_session = make_provider_session(make_provider_user())
    auth_service.start()
    fake_auth.errors["sign_out"] = FakeAuthError("Auth session missing!")

    auth_service.logout()

    assert auth_context.status == AuthStatus.UNAUTHENTICATED


def test_logout_clears_state_on_provider_error(auth_service, auth_context, fake_auth):
    fake_auth.current_session = make_provider_session(make_provider_user())
    auth_service.start()
    fake_auth.errors["sign_out"] = ConnectionError("down")

    auth_service.logout()

    assert auth_context.user is None


# ── Tests: OAuth / password reset ────────────────────────────────────

def test_oauth_returns_redirect_url_and_leaves_state(auth_service, auth_context, fake_auth):
    auth_service.start()

    result = auth_service.sign_in_with_oauth("Google")

    assert result.success is True
    assert result.redirect_url == fake_auth.oauth_url
    assert result.user is None
    assert fake_auth.called("sign_in_with_oauth")[0][0] == {
        "provider": "google",
        "options": {"redirect_to": "http://localhost:3000/"},
    }
    assert auth_context.status == AuthStatus.UNAUTHENTICATED


def test_oauth_requires_provider(auth_service):
    result = auth_service.sign_in_with_oauth("  ")
    assert result.error_code == AuthErrorCode.VALIDATION_ERROR


def test_oauth_failure_resets_authenticated_state(auth_service, auth_context, fake_auth):
    fake_auth.current_session = make_provider_session(make_provider_user())
    auth_service.start()
    fake_auth.errors["sign_in_with_oauth"] = FakeAuthError(
        "Unsupported provider: provider is not enabled", code="validation_failed",
    )

    result = auth_service.sign_in_with_oauth("github")

    assert result.success is False
    assert result.redirect_url is None
    assert auth_context.status == AuthStatus.UNAUTHENTICATED



def test_exchange_oauth_code_signs_in(auth_service, auth_context, fake_auth):
    auth_service.start()
    fake_auth.next_user = make_provider_user(email="doctor@clinic.example", user_id="d-1")

    result = auth_service.exchange_oauth_code("code-123")

    assert result.success is True
    assert result.role == UserRole.DOCTOR
    assert fake_auth.called("exchange_code_for_session")[0][0] == {"auth_code": "code-123"}
    assert auth_context.role == UserRole.DOCTOR


def test_password_reset_uses_reset_redirect(auth_service, auth_context, fake_auth):
    auth_service.start()
    before = auth_context.snapshot()

    result = auth_service.send_password_reset("Jane@Example.com")

    assert result.success is True
    assert result.info_message
    email, options = fake_auth.called("reset_password_for_email")[0]
    assert email == "jane@example.com"
    assert options == {"redirect_to": "http://localhost:3000/reset-password"}
    assert auth_context.snapshot() == before


def test_password_reset_failure_is_a_message(auth_service, fake_auth):
    fake_auth.errors["reset_password_for_email"] = FakeAuthError(
        "For security purposes, you can only request this after 60 seconds.",
        code="over_email_send_rate_limit",
    )
    result = auth_service.send_password_reset("jane@example.com")
    assert result.success is False
    assert result.error_code == AuthErrorCode.RATE_LIMITED


# ── Tests: role preview ──────────────────────────────────────────────

def test_assign_role_is_discarded_by_next_event(auth_service, auth_context, fake_auth):
    session = make_provider_session(make_provider_user(email="pat@example.com"))
    fake_auth.current_session = session
    auth_service.start()
    assert auth_context.role == UserRole.PATIENT

    auth_service.assign_role("admin")
    assert auth_context.role == UserRole.ADMIN

    fake_auth.emit("TOKEN_REFRESHED", session)
    assert auth_context.role == UserRole.PATIENT


def test_assign_role_requires_authenticated_user(auth_service):
    auth_service.start()
    with pytest.raises(RuntimeError):
        auth_service.assign_role(UserRole.DOCTOR)
