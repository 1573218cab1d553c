"""
Centralized SQLite Schema Initialization.

Defines the schema of the MediSync local database and provides a single
entry-point, :func:`initialize_schema`, that creates all required tables
idempotently.  A ``schema_version`` table tracks the applied version so
that later schema changes can be rolled forward without data loss.

The JSON stored in ``local_storage`` is *not* versioned here: the table
only holds opaque strings.  A change to the appointment record format
needs its own migration step.

Usage::

    from medisync.schema import initialize_schema

    initialize_schema(db.sqlite, StructuredLogger(name="medisync.schema"))
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

from medisync.logger import StructuredLogger

__all__ = ["CURRENT_SCHEMA_VERSION", "initialize_schema"]

CURRENT_SCHEMA_VERSION: int = 1

_TABLE_DEFINITIONS: list[str] = [
    # -- browser-style key-value storage --------------------------------------
    """
    CREATE TABLE IF NOT EXISTS local_storage (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # -- persistent structured audit trail ------------------------------------
    """
    CREATE TABLE IF NOT EXISTS audit_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        action TEXT NOT NULL,
        entity_type TEXT NOT NULL,
        entity_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        details TEXT DEFAULT '{}',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # -- doctors (local mirror of the Supabase doctors table) -----------------
    """
    CREATE TABLE IF NOT EXISTS doctors (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        specialty TEXT NOT NULL,
        image_url TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_doctors_name ON doctors(name)",
]

# Directory entries available before the first Supabase sync.
_SEED_DOCTORS: list[tuple[str, str, str]] = [
    ("doc1", "Dr. Alice Wonderland", "Cardiology"),
    ("doc2", "Dr. Bob The Builder", "Pediatrics"),
]


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------

def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the ``schema_version`` table if it does not yet exist."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            version INTEGER NOT NULL,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn.commit()


def _get_schema_version(conn: sqlite3.Connection) -> int:
    """Return the current schema version, or ``0`` for a fresh database."""
    row = conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    return row[0] if row is not None else 0


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    """Upsert the single-row version tracker.

    Does **not** commit; the caller commits atomically with the DDL.
    """
    conn.execute(
        """
        INSERT INTO schema_version (id, version) VALUES (1, ?)
        ON CONFLICT(id) DO UPDATE SET version = excluded.version,
                                      applied_at = CURRENT_TIMESTAMP
        """,
        (version,),
    )


def _create_all_tables(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    for ddl in _TABLE_DEFINITIONS:
        conn.execute(ddl)
    seeded_at: str = datetime.now(timezone.utc).isoformat()
    conn.executemany(
        """
        INSERT OR IGNORE INTO doctors (id, name, specialty, created_at)
        VALUES (?, ?, ?, ?)
        """,
        [(*doctor, seeded_at) for doctor in _SEED_DOCTORS],
    )
    logger.info(
        f"All {len(_TABLE_DEFINITIONS)} schema statements applied; "
        f"{len(_SEED_DOCTORS)} directory doctors seeded."
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def initialize_schema(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Ensure the local SQLite database matches the current schema version.

    Safe to call on every startup.  The upgrade (DDL + version bump) runs
    in a single transaction; on failure it is rolled back and re-raised so
    the next startup retries from the same version.
    """
    _ensure_version_table(conn)
    current: int = _get_schema_version(conn)

    if current >= CURRENT_SCHEMA_VERSION:
        logger.info(f"Schema is up to date (version {current}).")
        return

    logger.info(
        f"Upgrading schema from version {current} to {CURRENT_SCHEMA_VERSION}."
    )

    try:
        _create_all_tables(conn, logger)
        _set_schema_version(conn, CURRENT_SCHEMA_VERSION)
        conn.commit()
    except Exception:
        conn.rollback()
        logger.error(
            f"Schema initialisation failed; rolled back to version {current}."
        )
        raise

    logger.info(f"Schema initialised at version {CURRENT_SCHEMA_VERSION}.")
