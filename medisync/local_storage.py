"""
Local Storage Service.

Browser-style key-value storage on top of the ``local_storage`` table in
the local SQLite database.  Values are opaque strings; callers own their
encoding.  The appointment store keeps its whole collection under one key
here.

This is infrastructure state rather than domain data, so it talks to
SQLite directly instead of going through a repository::

    CREATE TABLE IF NOT EXISTS local_storage (
        key   TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""

from __future__ import annotations

from typing import Optional

from medisync.database import DatabaseManager
from medisync.logger import StructuredLogger


class LocalStorageService:
    """Get / set / remove string values by key.

    No method raises: reads that fail return ``None`` and writes that fail
    return ``False``, with the failure logged.

    Parameters
    ----------
    db:
        Initialised ``DatabaseManager`` with active SQLite connection.
    logger:
        Structured logger instance.
    """

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    def get(self, key: str) -> Optional[str]:
        """Read a value by key.  Returns ``None`` if absent or unreadable."""
        try:
            row = self._db.sqlite.execute(
                "SELECT value FROM local_storage WHERE key = ?",
                (key,),
            ).fetchone()
            return row["value"] if row is not None else None
        except Exception as exc:
            self._logger.warning("Failed to read local_storage[%s]: %s", key, exc)
            return None

    def set(self, key: str, value: str) -> bool:
        """Upsert a value.  Returns ``True`` on success."""
        try:
            with self._db.write_lock:
                self._db.sqlite.execute(
                    """
                    INSERT INTO local_storage (key, value)
                    VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value      = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, value),
                )
                self._db.sqlite.commit()
            self._logger.debug("local_storage[%s] updated.", key)
            return True
        except Exception as exc:
            self._logger.error("Failed to write local_storage[%s]: %s", key, exc)
            return False

    def remove(self, key: str) -> bool:
        """Delete a key.  Removing a missing key is a successful no-op."""
        try:
            with self._db.write_lock:
                self._db.sqlite.execute(
                    "DELETE FROM local_storage WHERE key = ?",
                    (key,),
                )
                self._db.sqlite.commit()
            self._logger.info("local_storage[%s] removed.", key)
            return True
        except Exception as exc:
            self._logger.error("Failed to remove local_storage[%s]: %s", key, exc)
            return False
