"""
Role Resolution.

Callers depend on the ``RoleResolver`` protocol only, so the placeholder
email rule can be swapped for a claims or roles-table lookup without
touching them.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from medisync.models.enums import UserRole
from medisync.models.user import AuthenticatedUser


@runtime_checkable
class RoleResolver(Protocol):
    """Maps an authenticated user (or nobody) to a ``UserRole``."""

    def resolve(self, user: Optional[AuthenticatedUser]) -> UserRole: ...  # noqa: E704


def role_from_email(email: Optional[str]) -> UserRole:
    """Case-insensitive substring rule.

    ``"admin"`` anywhere in the address wins over ``"doctor"``; any other
    non-blank address is a patient; no address is ``unknown``.
    """
    if email is None or not email.strip():
        return UserRole.UNKNOWN
    lowered = email.lower()
    if "admin" in lowered:
        return UserRole.ADMIN
    if "doctor" in lowered:
        return UserRole.DOCTOR
    return UserRole.PATIENT


class EmailSubstringRoleResolver:
    """Derives the role from the user's email address."""

    def resolve(self, user: Optional[AuthenticatedUser]) -> UserRole:
        return role_from_email(user.email if user is not None else None)
