"""
Doctor Model.

Mirrors the ``doctors`` table shared by Supabase and the local SQLite cache.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class Doctor(BaseModel):
    """A directory entry patients can book with."""

    id: str
    name: str
    specialty: str
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NewDoctor(BaseModel):
    """Input for adding a doctor to the directory."""

    name: str
    specialty: str
    image_url: Optional[str] = None

    @field_validator("name", "specialty")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped
