"""
Database Abstraction Layer.

Owns the two backing stores of the portal core:

- **SQLite (local, required)**: the ``local_storage`` key-value table the
  appointment store lives in, the audit trail, and the offline mirror of
  the doctor directory.
- **Supabase (cloud, optional)**: the identity provider (``client.auth``)
  and the authoritative ``doctors`` table.  Without credentials the portal
  runs offline: auth calls fail as network errors and the directory is
  read from the mirror.

Connections only; no query logic lives here.

Usage::

    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.LOCAL_DB_PATH),
        logger=StructuredLogger(name="medisync.database"),
    )
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Optional

from supabase import Client as SupabaseClient, create_client

from medisync.logger import StructuredLogger

_SQLITE_BUSY_TIMEOUT_MS: int = 5_000


class DatabaseManager:
    """Holds the SQLite connection and, when configured, the Supabase client.

    Parameters
    ----------
    supabase_url, supabase_key:
        Supabase project URL and anon key.  Either one empty means offline
        mode, in which ``supabase`` raises ``RuntimeError``.
    sqlite_path:
        Local database file; parent directories are created.
    logger:
        Structured logger.
    client:
        Pre-built Supabase client.  When given, the URL and key are ignored.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        sqlite_path: Path,
        logger: StructuredLogger,
        client: Optional[SupabaseClient] = None,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()
        self._closed: bool = False
        self._supabase: Optional[SupabaseClient] = (
            client if client is not None else self._open_supabase(supabase_url, supabase_key)
        )
        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(Path(sqlite_path))

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def supabase(self) -> SupabaseClient:
        """The Supabase client.

        Raises
        ------
        RuntimeError
            In offline mode.
        """
        if self._supabase is None:
            raise RuntimeError("Supabase is not configured; the portal is offline.")
        return self._supabase

    @property
    def is_online(self) -> bool:
        return self._supabase is not None

    @property
    def sqlite(self) -> sqlite3.Connection:
        return self._sqlite_conn

    @property
    def write_lock(self) -> threading.RLock:
        """Hold for every SQLite write, statement and ``commit()`` together."""
        return self._write_lock

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close SQLite.  Idempotent."""
        with self._write_lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._sqlite_conn.close()
            except sqlite3.ProgrammingError as exc:
                self._logger.debug("SQLite already closed: %s", exc)
            else:
                self._logger.info("SQLite connection closed.")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _open_supabase(self, url: str, key: str) -> Optional[SupabaseClient]:
        if not (url and key):
            self._logger.warning("Supabase credentials not configured; running offline.")
            return None
        try:
            client = create_client(url, key)
        except Exception as exc:
            self._logger.error(
                "Supabase client could not be created (%s); running offline.", exc,
                exc_info=not isinstance(exc, (ValueError, TypeError)),
            )
            return None
        self._logger.info("Supabase client initialized for %s.", url)
        return client

    def _connect_sqlite(self, path: Path) -> sqlite3.Connection:
        """Open (or create) the local database in WAL mode.

        Raises
        ------
        PermissionError
            The file or its directory is not writable.
        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(path),
                check_same_thread=False,
                timeout=_SQLITE_BUSY_TIMEOUT_MS / 1000,
            )
        except PermissionError as exc:
            msg = f"Cannot open the local database at '{path}': permission denied."
            self._logger.error(msg)
            raise PermissionError(msg) from exc

        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        self._logger.info("SQLite database opened at %s", path)
        return conn
