"""
Service Layer Data Transfer Objects.

Pydantic models for validated output at service boundaries.
"""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

from mentorbook.exceptions import ErrorCode, MentorbookError

T = TypeVar("T")

__all__ = [
    "AdminStats",
    "MentorSummary",
    "ServiceResult",
]


class MentorSummary(BaseModel):
    """A mentor as shown on the student's "choose a mentor" list."""

    id: str
    name: str
    course: Optional[str] = None
    available_slots: int = 0


class AdminStats(BaseModel):
    """Headline numbers for the admin dashboard."""

    total_students: int
    total_mentors: int
    total_sessions: int
    upcoming_sessions: int


class ServiceResult(BaseModel, Generic[T]):
    """
    Standard service return envelope.

    All public service methods return this, providing a consistent
    contract for the calling layer.  ``error_code`` is set on every
    failure so callers branch on codes, never on message text.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    status_code: int = 200

    @classmethod
    def from_error(cls, exc: MentorbookError) -> "ServiceResult[T]":
        return cls(
            success=False,
            error=exc.message,
            error_code=exc.code,
            status_code=exc.status_code,
        )
