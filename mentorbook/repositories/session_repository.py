"""
Session Repository.

Handles access to the ``sessions`` collection.  Sessions are created once
by the booking protocol and never deleted; only ``status`` and
``updatedAt`` change afterwards.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from mentorbook.logger import StructuredLogger
from mentorbook.models.enums import SessionStatus
from mentorbook.models.session import Session
from mentorbook.repositories.base_repository import BaseRepository
from mentorbook.store.base import SESSIONS, DocumentStore, FieldFilter, FilterOp
from mentorbook.utils.time_utils import to_iso


class SessionRepository(BaseRepository[Session]):
    """Data access layer for Session records."""

    COLLECTION = SESSIONS
    MODEL = Session

    def __init__(self, store: DocumentStore, logger: StructuredLogger) -> None:
        super().__init__(store, logger)

    def create(self, session: Session) -> Session:
        return self._create(session)

    def list_for_student(self, student_id: str) -> list[Session]:
        return self._find(
            [FieldFilter(field="studentId", value=student_id)], order_by="startTime"
        )

    def list_for_mentor(self, mentor_id: str) -> list[Session]:
        return self._find(
            [FieldFilter(field="mentorId", value=mentor_id)], order_by="startTime"
        )

    def get_all(self) -> list[Session]:
        return self._find(order_by="startTime")

    def list_upcoming(
        self,
        now: datetime,
        student_id: Optional[str] = None,
        mentor_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Session]:
        """Scheduled sessions starting at or after *now*, soonest first."""
        filters = [
            FieldFilter(field="status", value=SessionStatus.SCHEDULED.value),
            FieldFilter(field="startTime", op=FilterOp.GTE, value=to_iso(now)),
        ]
        if student_id is not None:
            filters.append(FieldFilter(field="studentId", value=student_id))
        if mentor_id is not None:
            filters.append(FieldFilter(field="mentorId", value=mentor_id))
        return self._find(filters, order_by="startTime", limit=limit)

    def count_all(self) -> int:
        return len(self._store.query(self.COLLECTION))

    def update_status(
        self, session: Session, status: SessionStatus, updated_at: datetime
    ) -> Session:
        """Conditionally move *session* to *status*.

        Raises ``RevisionConflictError`` when the stored revision moved on.
        """
        return self._update(
            session.id,
            {"status": status.value, "updatedAt": to_iso(updated_at)},
            expected_revision=session.revision,
        )
