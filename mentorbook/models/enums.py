"""
Shared Enumerations for mentorbook Models.

StrEnum values compare equal to their string equivalents, so documents
written as plain strings (``"student"``, ``"no-show"``) load unchanged.
"""

from __future__ import annotations
from enum import StrEnum


class UserRole(StrEnum):
    """Roles a user can be granted.  A user operates under one at a time."""

    STUDENT = "student"
    MENTOR = "mentor"
    ADMIN = "admin"


class SessionStatus(StrEnum):
    """Session lifecycle states.

    ``SCHEDULED`` is the only non-terminal state.  Sessions are never
    deleted; cancellation is a status, not a removal.
    """

    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.SCHEDULED
