"""
Structured Audit Logging Utility.

Every state change (slot added or removed, session booked, cancelled,
completed, marked no-show, role switched, limit changed, account created)
is written as a structured JSON log line and, when a local connection is
available, persisted to the ``audit_log`` table.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field

from mentorbook.logger import StructuredLogger

__all__ = ["AuditEvent", "AuditTrail", "log_audit_event", "persist_audit_event"]

# Kept flat: nested structures belong in their own documents.
DetailValue = Union[str, int, float, bool, None]


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry."""

    timestamp: str
    action: str
    entity_type: str
    entity_id: str
    user_id: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def _build_event(
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]],
) -> AuditEvent:
    return AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        details=details or {},
    )


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]] = None,
) -> AuditEvent:
    """Log a structured JSON audit event and return it.

    Args:
        logger: The logger instance to write to.
        action: What happened (e.g. ``"BOOK"``, ``"CANCEL"``).
        entity_type: Type of entity affected (``"Session"``, ``"Slot"``, ``"User"``).
        entity_id: Primary key of the affected entity.
        user_id: ID of the user who performed the action.
        details: Optional additional context (e.g. old/new values).
    """
    event = _build_event(action, entity_type, entity_id, user_id, details)
    logger.info("AUDIT: %s", json.dumps(event.model_dump(), default=str))
    return event


def persist_audit_event(conn: sqlite3.Connection, event: AuditEvent) -> None:
    """Write a validated audit event to the ``audit_log`` table."""
    conn.execute(
        """
        INSERT INTO audit_log (timestamp, action, entity_type, entity_id, user_id, details)
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
    conn.commit()


class AuditTrail:
    """Injectable audit sink: structured log line plus optional SQLite row.

    Persistence failures are logged and never propagated, so a broken
    audit table cannot undo a booking that already committed.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        conn: Optional[sqlite3.Connection] = None,
        write_lock: Optional[threading.RLock] = None,
    ) -> None:
        self._logger = logger
        self._conn = conn
        self._write_lock = write_lock or threading.RLock()

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        user_id: str,
        details: Optional[dict[str, DetailValue]] = None,
    ) -> AuditEvent:
        event = log_audit_event(
            logger=self._logger,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            details=details,
        )
        if self._conn is not None:
            try:
                with self._write_lock:
                    persist_audit_event(self._conn, event)
            except sqlite3.Error as db_err:
                self._logger.warning(
                    "Failed to persist audit event to SQLite: %s", db_err
                )
        return event
