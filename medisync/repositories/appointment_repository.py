"""
Appointment Repository.

Create / list / update-status over the ``AppointmentStore``.  The store is
the only source of truth: every mutation re-reads the full collection,
changes it in memory, and writes the full collection back.
"""

from __future__ import annotations

import secrets
import time
from datetime import datetime, timezone
from typing import Optional

from medisync.exceptions import InvalidStatusTransitionError, StorageWriteError
from medisync.logger import StructuredLogger
from medisync.models.appointment import Appointment, NewAppointment
from medisync.models.enums import AppointmentStatus
from medisync.repositories.appointment_store import AppointmentStore


class AppointmentRepository:
    """Data access layer for Appointment records.

    Status changes are validated against ``STATUS_TRANSITIONS``:
    ``Pending`` may become ``Approved`` or ``Cancelled``, ``Approved`` may
    become ``Cancelled`` or ``Completed``, and the last two are terminal.
    """

    _ID_PREFIX: str = "appt"

    def __init__(self, store: AppointmentStore, logger: StructuredLogger) -> None:
        self._store = store
        self._logger = logger

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self) -> list[Appointment]:
        """All appointments, in booking order."""
        return self._store.load()

    def get(self, appointment_id: str) -> Optional[Appointment]:
        return next(
            (appt for appt in self._store.load() if appt.id == appointment_id),
            None,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, new_appointment: NewAppointment) -> Appointment:
        """Append a new ``Pending`` appointment and persist the collection.

        Raises:
            StorageWriteError: The collection could not be saved.  Nothing
                was persisted.
        """
        appointments = self._store.load()
        existing_ids = {appt.id for appt in appointments}

        appointment = Appointment(
            id=self._generate_id(existing_ids),
            status=AppointmentStatus.PENDING,
            booked_at=datetime.now(timezone.utc),
            **new_appointment.model_dump(),
        )
        appointments.append(appointment)

        if not self._store.save(appointments):
            raise StorageWriteError(self._store.storage_key)

        self._logger.info(
            "Appointment %s booked with %s on %s at %s.",
            appointment.id,
            appointment.doctor_name,
            appointment.date.isoformat(),
            appointment.time,
            extra={"event": "APPOINTMENT_CREATED", "appointment_id": appointment.id},
        )
        return appointment

    def update_status(
        self,
        appointment_id: str,
        new_status: AppointmentStatus,
    ) -> Optional[Appointment]:
        """Change the status of one appointment.

        Returns the updated record, or ``None`` when no record has
        *appointment_id* (in which case nothing is written).

        Raises:
            InvalidStatusTransitionError: *new_status* is not reachable from
                the record's current status.  Nothing is written.
            StorageWriteError: The collection could not be saved.
        """
        new_status = AppointmentStatus(new_status)
        appointments = self._store.load()

        for index, appointment in enumerate(appointments):
            if appointment.id != appointment_id:
                continue

            if not appointment.status.can_transition_to(new_status):
                raise InvalidStatusTransitionError(
                    appointment_id, appointment.status, new_status,
                )

            updated = appointment.model_copy(update={"status": new_status})
            appointments[index] = updated

            if not self._store.save(appointments):
                raise StorageWriteError(self._store.storage_key)

            self._logger.info(
                "Appointment %s moved %s -> %s.",
                appointment_id,
                appointment.status,
                new_status,
                extra={"event": "APPOINTMENT_STATUS_CHANGED", "appointment_id": appointment_id},
            )
            return updated

        self._logger.warning(
            "Status update for unknown appointment %s ignored.", appointment_id,
        )
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _generate_id(self, existing_ids: set[str]) -> str:
        """Millisecond timestamp plus 32 random bits, unique within the store."""
        while True:
            candidate = (
                f"{self._ID_PREFIX}-{time.time_ns() // 1_000_000}-{secrets.token_hex(4)}"
            )
            if candidate not in existing_ids:
                return candidate
