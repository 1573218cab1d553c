"""
Doctor Repository.

Doctor directory access via Supabase (primary) and the local SQLite
``doctors`` mirror (offline fallback).  Every successful Supabase read
refreshes the mirror.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional, Union

from medisync.database import DatabaseManager
from medisync.logger import StructuredLogger
from medisync.models.doctor import Doctor, NewDoctor
from medisync.repositories.base_repository import BaseRepository

# Supabase answered and has no such row.
_NOT_FOUND = object()


class DoctorRepository(BaseRepository):
    """Data access layer for Doctor entities."""

    TABLE = "doctors"

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(db, logger)

    def get_all(self) -> list[Doctor]:
        """All doctors ordered by name."""
        def _supabase() -> list[Doctor]:
            response = (
                self.supabase.table(self.TABLE)
                .select("*")
                .order("name")
                .execute()
            )
            return [Doctor(**row) for row in response.data or []]

        def _sqlite() -> list[Doctor]:
            rows = self.sqlite.execute(
                f"SELECT * FROM {self.TABLE} ORDER BY name"
            ).fetchall()
            return [Doctor(**dict(row)) for row in rows]

        return self._execute_with_fallback(
            supabase_op=_supabase,
            sqlite_op=_sqlite,
            default_factory=list,
            operation_name="get_all (doctors)",
            on_supabase_success=self._cache_many_to_sqlite,
        )

    def get_by_id(self, doctor_id: str) -> Optional[Doctor]:
        """One doctor, or ``None``.

        An online answer without a row is final: the stale mirror row, if
        any, is evicted and the mirror is not consulted.
        """
        def _supabase() -> Union[Doctor, object]:
            response = (
                self.supabase.table(self.TABLE)
                .select("*")
                .eq("id", doctor_id)
                .maybe_single()
                .execute()
            )
            if response is None or not response.data:
                return _NOT_FOUND
            return Doctor(**response.data)

        def _sqlite() -> Optional[Doctor]:
            row = self.sqlite.execute(
                f"SELECT * FROM {self.TABLE} WHERE id = ?", (doctor_id,)
            ).fetchone()
            return Doctor(**dict(row)) if row else None

        def _sync_mirror(result: Union[Doctor, object]) -> None:
            if result is _NOT_FOUND:
                self._evict_from_sqlite(doctor_id)
            else:
                self._cache_to_sqlite(result)

        result = self._execute_with_fallback(
            supabase_op=_supabase,
            sqlite_op=_sqlite,
            default_factory=lambda: None,
            operation_name="get_by_id (doctors)",
            on_supabase_success=_sync_mirror,
        )
        return None if result is _NOT_FOUND else result

    def create(self, new_doctor: NewDoctor) -> Doctor:
        """Insert a doctor into Supabase and mirror it locally.

        When Supabase is unreachable the doctor is stored in the local
        mirror only, under a locally generated UUID.
        """
        payload = new_doctor.model_dump()
        doctor: Optional[Doctor] = None
        try:
            response = self.supabase.table(self.TABLE).insert(payload).execute()
            if response.data:
                doctor = Doctor(**response.data[0])
        except Exception as exc:
            self._logger.warning(
                "Supabase insert into %s failed; storing locally only: %s",
                self.TABLE,
                exc,
            )

        if doctor is None:
            doctor = Doctor(
                id=str(uuid.uuid4()),
                created_at=datetime.now(timezone.utc),
                **payload,
            )

        self._cache_to_sqlite(doctor)
        return doctor

    # ------------------------------------------------------------------
    # Mirror maintenance
    # ------------------------------------------------------------------

    def _cache_to_sqlite(self, doctor: Doctor) -> None:
        created_at = doctor.created_at or datetime.now(timezone.utc)
        with self._db.write_lock:
            self.sqlite.execute(
                f"""
                INSERT INTO {self.TABLE} (id, name, specialty, image_url, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    specialty = excluded.specialty,
                    image_url = excluded.image_url
                """,
                (
                    doctor.id,
                    doctor.name,
                    doctor.specialty,
                    doctor.image_url,
                    created_at.isoformat(),
                ),
            )
            self._commit()

    def _evict_from_sqlite(self, doctor_id: str) -> None:
        with self._db.write_lock:
            self.sqlite.execute(f"DELETE FROM {self.TABLE} WHERE id = ?", (doctor_id,))
            self._commit()

    def _cache_many_to_sqlite(self, doctors: list[Doctor]) -> None:
        for doctor in doctors:
            self._cache_to_sqlite(doctor)
