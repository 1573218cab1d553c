"""
MediSync Portal Core Entry Point.

Bootstraps the dependency graph via constructor injection, initialises
the local SQLite schema, resolves the current session and reports the
portal state.  Every subsystem is wired here; no module-level globals.

Usage::

    python main.py
"""

from __future__ import annotations

import atexit
import sys
from pathlib import Path

from medisync.auth import AuthContext
from medisync.config import get_config
from medisync.database import DatabaseManager
from medisync.logger import StructuredLogger, get_logger
from medisync.models.auth_models import AuthSnapshot
from medisync.schema import initialize_schema
from medisync.services import create_services


def main() -> int:
    """Wire dependencies, resolve the session and log the portal state."""
    logger: StructuredLogger = get_logger("medisync.main")
    logger.info("Starting MediSync Portal...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Database Manager (Supabase optional, SQLite always)
    # ------------------------------------------------------------------
    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.LOCAL_DB_PATH),
        logger=StructuredLogger(name="medisync.database"),
    )
    # close() is idempotent; this covers exits that skip the finally below.
    atexit.register(db.close)

    # ------------------------------------------------------------------
    # 3. SQLite schema (idempotent)
    # ------------------------------------------------------------------
    initialize_schema(db.sqlite, StructuredLogger(name="medisync.schema"))

    # ------------------------------------------------------------------
    # 4. Auth context + service container
    # ------------------------------------------------------------------
    auth_context = AuthContext(logger=get_logger("medisync.auth.context"))
    services = create_services(db=db, config=config, auth_context=auth_context)

    def _report(snapshot: AuthSnapshot) -> None:
        logger.info(
            "Auth state: %s (role: %s)", snapshot.status, snapshot.role,
            extra={"event": "AUTH_STATE"},
        )

    unsubscribe = auth_context.subscribe(_report)
    auth_service = services["auth_service"]
    try:
        snapshot = auth_service.start()
        user = snapshot.user
        logger.info(
            "Session resolved: %s as %s.",
            user.email if user is not None else "signed out",
            snapshot.role,
        )

        summary = services["appointment_service"].dashboard_summary()
        logger.info(
            "%d appointment(s) on file, %d pending, %d approved for today.",
            summary.total,
            summary.pending_count,
            len(summary.todays_approved),
        )
        doctors = services["doctor_service"].list_doctors()
        logger.info("%d doctor(s) in the directory.", len(doctors))
    finally:
        unsubscribe()
        auth_service.stop()
        db.close()
        logger.info("MediSync Portal shut down.")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        sys.stderr.write(f"FATAL: {type(exc).__name__}: {exc}\n")
        sys.exit(1)
