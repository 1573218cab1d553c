"""
Appointment Models.

``Appointment`` is the persisted booking record; ``NewAppointment`` is the
booking input accepted by the repository.  Records are stored as camelCase
JSON (``patientName``, ``doctorId``, ``bookedAt``) in the local appointment
store, so both models use a camelCase alias generator while Python code
works with snake_case attributes.
"""

from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from medisync.models.enums import AppointmentStatus


class NewAppointment(BaseModel):
    """Booking input.  Identity, status and timestamp are assigned on create.

    ``time`` is checked against the configured slot list by the service
    layer; the model only guarantees it is non-blank.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    patient_name: str
    patient_user_id: Optional[str] = None
    doctor_id: str
    doctor_name: str
    specialty: str
    date: dt.date
    time: str
    reason: Optional[str] = None

    @field_validator("patient_name", "doctor_id", "doctor_name", "specialty", "time")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("reason")
    @classmethod
    def _empty_reason_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value if value and value.strip() else None


class Appointment(BaseModel):
    """A persisted booking record.

    ``status`` only changes through ``AppointmentRepository.update_status``;
    nothing derives it from ``date`` or ``time``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    patient_name: str
    patient_user_id: Optional[str] = None
    doctor_id: str
    doctor_name: str
    specialty: str
    date: dt.date
    time: str
    reason: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.PENDING
    booked_at: dt.datetime


class DashboardSummary(BaseModel):
    """Counts shown on the portal dashboard."""

    total: int = 0
    counts: dict[AppointmentStatus, int]
    todays_approved: list[Appointment]

    @property
    def pending_count(self) -> int:
        return self.counts.get(AppointmentStatus.PENDING, 0)
