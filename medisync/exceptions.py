"""Exceptions raised across the repository / service seam."""

from __future__ import annotations

from medisync.models.enums import AppointmentStatus


class MediSyncError(Exception):
    """Base class for portal-core errors."""


class InvalidStatusTransitionError(MediSyncError, ValueError):
    def __init__(
        self,
        appointment_id: str,
        current: AppointmentStatus,
        requested: AppointmentStatus,
    ) -> None:
        self.appointment_id = appointment_id
        self.current = current
        self.requested = requested
        if current.is_terminal:
            allowed = f"none, '{current}' is final"
        else:
            allowed = ", ".join(sorted(current.allowed_transitions()))
        super().__init__(
            f"Appointment {appointment_id} cannot move from '{current}' to "
            f"'{requested}'. Allowed: {allowed}."
        )


class StorageWriteError(MediSyncError, RuntimeError):
    """The local store rejected a write; the in-memory change was discarded."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Could not persist local storage key '{key}'.")
