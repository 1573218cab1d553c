"""
Authenticated User and Session Models.

Pydantic projections of the identity provider's ``User`` and ``Session``
objects.  Both are built once per provider event and never mutated; a new
event produces new instances.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class AuthenticatedUser(BaseModel):
    """The identity principal behind the active session.

    ``email`` is optional because some OAuth providers (and anonymous
    sessions) do not expose one; such users resolve to the ``unknown`` role.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str  # Supabase UUID
    email: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    email_confirmed: bool = False

    @classmethod
    def from_provider(cls, provider_user: Any) -> "AuthenticatedUser":
        """Build from a Supabase ``User`` object.

        Display metadata comes from ``user_metadata`` (``full_name`` or
        ``name``, and ``avatar_url`` / ``picture``), which is what email
        sign-up and the OAuth providers populate.
        """
        metadata: dict[str, Any] = getattr(provider_user, "user_metadata", None) or {}
        display_name = metadata.get("full_name") or metadata.get("name")
        avatar_url = metadata.get("avatar_url") or metadata.get("picture")
        return cls(
            id=str(provider_user.id),
            email=getattr(provider_user, "email", None) or None,
            display_name=display_name,
            avatar_url=avatar_url,
            email_confirmed=getattr(provider_user, "email_confirmed_at", None) is not None,
        )

    @property
    def patient_display_name(self) -> str:
        """Name recorded on bookings made by this user."""
        if self.display_name:
            return self.display_name
        if self.email:
            return self.email.split("@")[0]
        return "Guest Patient"


class SessionInfo(BaseModel):
    """Token set of one authenticated session.

    Attributes
    ----------
    access_token:
        Short-lived JWT access token.
    refresh_token:
        Long-lived token the provider uses to mint new access tokens.
    expires_at:
        UTC expiry of ``access_token``; ``None`` when the provider did not
        report one.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    expires_at: Optional[datetime] = None
    token_type: str = "bearer"

    @classmethod
    def from_provider(cls, provider_session: Any) -> "SessionInfo":
        """Build from a Supabase ``Session`` object."""
        raw_expiry: Optional[int] = getattr(provider_session, "expires_at", None)
        return cls(
            access_token=provider_session.access_token,
            refresh_token=provider_session.refresh_token,
            expires_at=(
                datetime.fromtimestamp(raw_expiry, tz=timezone.utc)
                if raw_expiry is not None
                else None
            ),
            token_type=getattr(provider_session, "token_type", None) or "bearer",
        )

    @property
    def is_expired(self) -> bool:
        """``True`` within 30 seconds of expiry.  Sessions without an expiry never expire."""
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) >= (self.expires_at - timedelta(seconds=30))
