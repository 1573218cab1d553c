"""
Appointment Store.

Persistence adapter for the appointment collection: one JSON array under
one fixed local-storage key.  Every read decodes the whole array and every
write replaces it.

There is no cross-process locking.  Two processes saving at the same time
race, and the last ``save()`` wins.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import TypeAdapter, ValidationError

from medisync.local_storage import LocalStorageService
from medisync.logger import StructuredLogger
from medisync.models.appointment import Appointment

_COLLECTION: TypeAdapter[list[Appointment]] = TypeAdapter(list[Appointment])


class AppointmentStore:
    """Load and save the full appointment collection.

    Parameters
    ----------
    storage:
        Key-value storage holding the encoded collection.
    storage_key:
        The single key the collection lives under.
    logger:
        Structured logger; load and save failures are only reported here
        and through ``save()``'s return value.
    """

    def __init__(
        self,
        storage: LocalStorageService,
        storage_key: str,
        logger: StructuredLogger,
    ) -> None:
        self._storage = storage
        self._key = storage_key
        self._logger = logger

    @property
    def storage_key(self) -> str:
        return self._key

    def load(self) -> list[Appointment]:
        """Return the stored collection in insertion order.

        Absent, unreadable or malformed content (invalid JSON, a non-array
        payload, or any record failing validation) yields an empty list.
        Never raises.
        """
        raw = self._storage.get(self._key)
        if raw is None:
            return []
        try:
            return _COLLECTION.validate_json(raw)
        except ValidationError as exc:
            self._logger.warning(
                "Discarding malformed appointment data under '%s': %d error(s).",
                self._key,
                exc.error_count(),
                extra={"event": "APPOINTMENT_STORE_CORRUPT"},
            )
            return []
        except Exception as exc:
            self._logger.warning(
                "Could not decode appointment data under '%s': %s", self._key, exc,
            )
            return []

    def save(self, appointments: Sequence[Appointment]) -> bool:
        """Overwrite the stored collection.  Returns ``True`` on success."""
        try:
            payload: str = _COLLECTION.dump_json(
                list(appointments), by_alias=True,
            ).decode("utf-8")
        except Exception as exc:
            self._logger.error(
                "Could not encode %d appointment(s): %s", len(appointments), exc,
            )
            return False

        if not self._storage.set(self._key, payload):
            self._logger.error(
                "Appointment store write failed for '%s'.", self._key,
                extra={"event": "APPOINTMENT_STORE_WRITE_FAILED"},
            )
            return False
        return True

    def clear(self) -> bool:
        """Drop the whole collection."""
        return self._storage.remove(self._key)
