"""
Shared fixtures: a throwaway SQLite-backed DatabaseManager, a scriptable
fake of the Supabase auth client, and per-test structured loggers.
"""

from __future__ import annotations

import itertools
from types import SimpleNamespace
from typing import Any, Callable, Optional

import pytest

from medisync.auth import AuthContext
from medisync.config import AppConfig
from medisync.database import DatabaseManager
from medisync.local_storage import LocalStorageService
from medisync.logger import StructuredLogger
from medisync.models.user import AuthenticatedUser
from medisync.schema import initialize_schema

_logger_ids = itertools.count()


# ── Provider fakes ───────────────────────────────────────────────────

class FakeAuthError(Exception):
    """Shaped like a gotrue ``AuthApiError``: a message plus a ``code``."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


def make_provider_user(
    email: Optional[str] = "jane@example.com",
    user_id: str = "user-1",
    full_name: Optional[str] = None,
) -> SimpleNamespace:
    metadata = {"full_name": full_name} if full_name else {}
    return SimpleNamespace(
        id=user_id,
        email=email,
        user_metadata=metadata,
        email_confirmed_at="2024-01-01T00:00:00Z",
    )


def make_provider_session(user: SimpleNamespace, token: str = "access-1") -> SimpleNamespace:
    return SimpleNamespace(
        user=user,
        access_token=token,
        refresh_token=f"refresh-{token}",
        expires_at=1_900_000_000,
        token_type="bearer",
    )


class FakeSubscription:
    def __init__(self, auth: "FakeAuth", callback: Callable[[str, Any], None]) -> None:
        self._auth = auth
        self._callback = callback
        self.unsubscribed = 0

    def unsubscribe(self) -> None:
        self.unsubscribed += 1
        if self._callback in self._auth.callbacks:
            self._auth.callbacks.remove(self._callback)


class FakeAuth:
    """In-memory stand-in for ``supabase.Client.auth``.

    Every call is recorded in ``calls``.  Put an exception in
    ``errors[method_name]`` to make that method raise.  Successful sign-ins
    push a ``SIGNED_IN`` event to subscribers before returning, as the real
    client does.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.callbacks: list[Callable[[str, Any], None]] = []
        self.subscriptions: list[FakeSubscription] = []
        self.errors: dict[str, Exception] = {}
        self.current_session: Optional[SimpleNamespace] = None
        self.next_user: SimpleNamespace = make_provider_user()
        self.signup_returns_session: bool = False
        self.oauth_url: str = "https://provider.example/authorize?state=abc"

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.errors:
            raise self.errors[name]

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]

    def emit(self, event: str, session: Optional[SimpleNamespace]) -> None:
        for callback in list(self.callbacks):
            callback(event, session)

    # -- gotrue surface ---------------------------------------------------

    def on_auth_state_change(self, callback: Callable[[str, Any], None]) -> FakeSubscription:
        self._record("on_auth_state_change")
        self.callbacks.append(callback)
        subscription = FakeSubscription(self, callback)
        self.subscriptions.append(subscription)
        return subscription

    def get_session(self) -> Optional[SimpleNamespace]:
        self._record("get_session")
        return self.current_session

    def sign_in_with_password(self, credentials: dict[str, str]) -> SimpleNamespace:
        self._record("sign_in_with_password", credentials)
        return self._sign_in(self.next_user)

    def exchange_code_for_session(self, params: dict[str, str]) -> SimpleNamespace:
        self._record("exchange_code_for_session", params)
        return self._sign_in(self.next_user)

    def sign_up(self, credentials: dict[str, Any]) -> SimpleNamespace:
        self._record("sign_up", credentials)
        user = make_provider_user(email=credentials["email"], user_id="new-user")
        if not self.signup_returns_session:
            return SimpleNamespace(user=user, session=None)
        return self._sign_in(user)

    def sign_out(self) -> None:
        self._record("sign_out")
        self.current_session = None
        self.emit("SIGNED_OUT", None)

    def sign_in_with_oauth(self, credentials: dict[str, Any]) -> SimpleNamespace:
        self._record("sign_in_with_oauth", credentials)
        return SimpleNamespace(provider=credentials["provider"], url=self.oauth_url)

    def reset_password_for_email(self, email: str, options: dict[str, str]) -> None:
        self._record("reset_password_for_email", email, options)

    def _sign_in(self, user: SimpleNamespace) -> SimpleNamespace:
        session = make_provider_session(user)
        self.current_session = session
        self.emit("SIGNED_IN", session)
        return SimpleNamespace(user=user, session=session)


class FakeSupabase:
    def __init__(self) -> None:
        self.auth = FakeAuth()


# ── Fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def logger(tmp_path) -> StructuredLogger:
    return StructuredLogger(
        name=f"medisync.test.{next(_logger_ids)}",
        log_file=str(tmp_path / "medisync-test.log"),
    )


@pytest.fixture
def config(tmp_path) -> AppConfig:
    return AppConfig(
        SUPABASE_URL="",
        SUPABASE_ANON_KEY="",
        LOCAL_DB_PATH=str(tmp_path / "portal.db"),
    )


@pytest.fixture
def db(tmp_path, logger):
    """Offline DatabaseManager on a fresh SQLite file with the schema applied."""
    manager = DatabaseManager(
        supabase_url="",
        supabase_key="",
        sqlite_path=tmp_path / "portal.db",
        logger=logger,
    )
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def online_db(tmp_path, logger, fake_supabase):
    """DatabaseManager whose Supabase client is the auth fake."""
    manager = DatabaseManager(
        supabase_url="",
        supabase_key="",
        sqlite_path=tmp_path / "portal-online.db",
        logger=logger,
        client=fake_supabase,
    )
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture
def storage(db, logger) -> LocalStorageService:
    return LocalStorageService(db=db, logger=logger)


@pytest.fixture
def auth_context(logger) -> AuthContext:
    return AuthContext(logger=logger)


@pytest.fixture
def patient() -> AuthenticatedUser:
    return AuthenticatedUser(id="patient-1", email="jane@example.com", display_name="Jane")


@pytest.fixture
def other_patient() -> AuthenticatedUser:
    return AuthenticatedUser(id="patient-2", email="sam@example.com")


@pytest.fixture
def doctor_user() -> AuthenticatedUser:
    return AuthenticatedUser(id="doctor-1", email="doctor.who@clinic.example")


@pytest.fixture
def admin_user() -> AuthenticatedUser:
    return AuthenticatedUser(id="admin-1", email="admin@clinic.example")
