"""
Session Model.

A confirmed pairing between one student and one mentor.  Names, course and
times are snapshots taken at booking time and never change afterwards;
only ``status`` (and ``updated_at``) move.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from mentorbook.models.base import DocumentModel
from mentorbook.models.enums import SessionStatus
from mentorbook.utils.time_utils import Instant, ensure_utc


class Session(DocumentModel):
    """Represents a booked session in the ``sessions`` collection."""

    mentor_id: str
    mentor_name: str
    student_id: str
    student_name: str
    course: Optional[str] = None
    start_time: Instant
    end_time: Instant
    meeting_link: str
    status: SessionStatus = SessionStatus.SCHEDULED
    created_at: Instant
    slot_id: Optional[str] = None
    updated_at: Optional[Instant] = None

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.student_id, self.mentor_id)

    def is_past(self, now: datetime) -> bool:
        """``True`` once *now* has reached the session's end instant."""
        return ensure_utc(now) >= self.end_time
