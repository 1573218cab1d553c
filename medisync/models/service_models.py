"""
Service Layer Data Transfer Objects.

Return envelope shared by every service method that can fail for a
caller-visible reason (not found, forbidden, invalid input, storage).
"""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

__all__ = ["ServiceResult"]


class ServiceResult(BaseModel, Generic[T]):
    """
    Standard service return envelope.

    ``status_code`` follows HTTP conventions (200, 400, 403, 404, 500) so
    a web layer can forward it unchanged.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    status_code: int = 200
