"""
Structured Audit Trail.

Every appointment booking, status change and doctor addition is recorded
as a validated ``AuditEvent``: once as a JSON log line and, when a
database is supplied, as a row in the SQLite ``audit_log`` table.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field

from medisync.database import DatabaseManager
from medisync.logger import StructuredLogger

__all__ = ["AuditEvent", "fetch_audit_events", "log_audit_event"]

# Flat scalars only; nested structures do not belong in the audit trail.
DetailValue = Union[str, int, float, bool, None]


class AuditEvent(BaseModel):
    """One audit trail entry."""

    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
    )
    action: str
    entity_type: str
    entity_id: str
    user_id: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]] = None,
    db: Optional[DatabaseManager] = None,
) -> AuditEvent:
    """Validate, log and optionally persist an audit event.

    Args:
        logger: The logger instance to write to.
        action: What happened (``"BOOK"``, ``"STATUS_CHANGE"``,
            ``"ADD_DOCTOR"``).
        entity_type: ``"Appointment"`` or ``"Doctor"``.
        entity_id: Primary key of the affected entity.
        user_id: ID of the acting user.
        details: Optional flat context (e.g. old and new status).
        db: When given, the event is also written to ``audit_log``.
            Persistence failures are logged, never raised.

    Returns:
        The validated event.
    """
    event = AuditEvent(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        details=details or {},
    )
    logger.info(
        "AUDIT: %s", json.dumps(event.model_dump(), default=str),
        extra={"event": "AUDIT", "action": action, "entity_id": entity_id},
    )

    if db is not None:
        try:
            with db.write_lock:
                db.sqlite.execute(
                    """
                    INSERT INTO audit_log
                        (timestamp, action, entity_type, entity_id, user_id, details)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.timestamp,
                        event.action,
                        event.entity_type,
                        event.entity_id,
                        event.user_id,
                        json.dumps(event.details, default=str),
                    ),
                )
                db.sqlite.commit()
        except Exception as db_err:
            logger.warning("Failed to persist audit event to SQLite: %s", db_err)

    return event


def fetch_audit_events(
    db: DatabaseManager,
    entity_id: Optional[str] = None,
) -> list[AuditEvent]:
    """Return persisted events, oldest first, optionally for one entity."""
    query = (
        "SELECT timestamp, action, entity_type, entity_id, user_id, details "
        "FROM audit_log"
    )
    params: tuple[str, ...] = ()
    if entity_id is not None:
        query += " WHERE entity_id = ?"
        params = (entity_id,)
    query += " ORDER BY id"

    rows = db.sqlite.execute(query, params).fetchall()
    return [
        AuditEvent(
            timestamp=row["timestamp"],
            action=row["action"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            user_id=row["user_id"],
            details=json.loads(row["details"] or "{}"),
        )
        for row in rows
    ]
