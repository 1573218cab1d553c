"""
Base Repository.

Shared infrastructure for repositories backed by both Supabase and the
local SQLite mirror:
- DatabaseManager reference (Supabase + SQLite)
- Logger reference
- Supabase-first, SQLite-fallback read helper
"""

from __future__ import annotations

import sqlite3
from typing import Callable, Optional, TypeVar

from supabase import Client as SupabaseClient

from medisync.database import DatabaseManager
from medisync.logger import StructuredLogger

T = TypeVar("T")


class BaseRepository:
    """Base class for Supabase-backed repositories. Receives dependencies via __init__."""

    TABLE: str = ""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def supabase(self) -> SupabaseClient:
        """Returns the Supabase client; raises ``RuntimeError`` offline."""
        return self._db.supabase

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Returns the SQLite connection for local mirror operations."""
        return self._db.sqlite

    def _execute_with_fallback(
        self,
        supabase_op: Callable[[], Optional[T]],
        sqlite_op: Callable[[], Optional[T]],
        default_factory: Callable[[], T],
        *,
        operation_name: str,
        on_supabase_success: Optional[Callable[[T], None]] = None,
    ) -> T:
        """Run a read Supabase-first, then against SQLite, then default.

        Execution order:
        1. ``supabase_op()``; a non-``None`` result is passed to
           ``on_supabase_success`` (cache warming) and returned.
        2. ``sqlite_op()``; a non-``None`` result is returned.
        3. ``default_factory()``.

        Failures of ``on_supabase_success`` are logged and never mask the
        Supabase result.  Not intended for write paths.
        """
        try:
            result = supabase_op()
            if result is not None:
                if on_supabase_success is not None:
                    try:
                        on_supabase_success(result)
                    except Exception as cache_exc:
                        self._logger.warning(
                            "Post-Supabase callback failed for %s: %s",
                            operation_name,
                            cache_exc,
                        )
                return result
        except Exception as exc:
            self._logger.warning(
                "Supabase unavailable for %s: %s", operation_name, exc
            )

        try:
            result = sqlite_op()
            if result is not None:
                return result
        except sqlite3.Error as sqlite_exc:
            self._logger.error(
                "SQLite fallback also failed for %s: %s",
                operation_name,
                sqlite_exc,
            )

        return default_factory()

    def _commit(self) -> None:
        self.sqlite.commit()
