"""Shared utilities.

Re-exported for convenience: ``from medisync.utils import log_audit_event``.
"""

from medisync.utils.audit import AuditEvent, fetch_audit_events, log_audit_event

__all__ = ["AuditEvent", "fetch_audit_events", "log_audit_event"]
