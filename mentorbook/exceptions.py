"""
Domain Exception Hierarchy.

Every failure a booking operation can produce is one of five categories:
validation, conflict, not-found, permission, unavailable.  Each concrete
error carries a stable :class:`ErrorCode` and an HTTP-like ``status_code``
so the service boundary can convert it into a ``ServiceResult`` without
inspecting messages.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional, Union

DetailValue = Union[str, int, float, bool, None]


class ErrorCode(StrEnum):
    """Exhaustive enumeration of failure codes surfaced to callers."""

    # Validation
    INVALID_INPUT = "invalid_input"
    INVALID_RANGE = "invalid_range"
    PAST_SLOT = "past_slot"

    # Conflict
    OVERLAP = "overlap"
    SLOT_BOOKED = "slot_booked"
    SLOT_UNAVAILABLE = "slot_unavailable"
    LIMIT_REACHED = "limit_reached"
    CANCELLATION_WINDOW_CLOSED = "cancellation_window_closed"
    NOT_ELIGIBLE = "not_eligible"
    SESSION_CLOSED = "session_closed"
    EMAIL_ALREADY_EXISTS = "email_already_exists"

    # Not found
    NOT_FOUND = "not_found"

    # Permission
    PERMISSION_DENIED = "permission_denied"
    NOT_AUTHENTICATED = "not_authenticated"
    INVALID_CREDENTIALS = "invalid_credentials"

    # Unavailable
    UNAVAILABLE = "unavailable"


class MentorbookError(Exception):
    """Base exception for all domain errors."""

    code: ErrorCode = ErrorCode.UNAVAILABLE
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, DetailValue]] = None,
        code: Optional[ErrorCode] = None,
    ) -> None:
        self.message: str = message
        self.details: dict[str, DetailValue] = details or {}
        if code is not None:
            self.code = code
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ---------------------------------------------------------------------------
# Validation (user corrects input)
# ---------------------------------------------------------------------------

class ValidationError(MentorbookError):
    """Bad input shape or range."""

    code = ErrorCode.INVALID_INPUT
    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, DetailValue]] = None,
        code: Optional[ErrorCode] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details, code)


class InvalidRangeError(ValidationError):
    code = ErrorCode.INVALID_RANGE

    def __init__(self, start: str, end: str) -> None:
        super().__init__(
            "End time must be after start time.",
            details={"start": start, "end": end},
        )


class PastSlotError(ValidationError):
    code = ErrorCode.PAST_SLOT

    def __init__(self, start: str) -> None:
        super().__init__("Cannot add slots in the past.", details={"start": start})


# ---------------------------------------------------------------------------
# Conflict (user must choose differently)
# ---------------------------------------------------------------------------

class ConflictError(MentorbookError):
    """The request collides with current state."""

    code = ErrorCode.SLOT_UNAVAILABLE
    status_code = 409


class OverlapError(ConflictError):
    code = ErrorCode.OVERLAP

    def __init__(self, existing_slot_id: str) -> None:
        super().__init__(
            "This slot overlaps an existing availability slot.",
            details={"existing_slot_id": existing_slot_id},
        )


class SlotBookedError(ConflictError):
    code = ErrorCode.SLOT_BOOKED

    def __init__(self, slot_id: str) -> None:
        super().__init__("Cannot delete a booked slot.", details={"slot_id": slot_id})


class SlotUnavailableError(ConflictError):
    code = ErrorCode.SLOT_UNAVAILABLE

    def __init__(self, slot_id: str) -> None:
        super().__init__(
            "This slot is no longer available. Please select another slot.",
            details={"slot_id": slot_id},
        )


class LimitReachedError(ConflictError):
    code = ErrorCode.LIMIT_REACHED

    def __init__(self, session_count: int, session_limit: int) -> None:
        super().__init__(
            f"You have reached your monthly session limit ({session_limit} sessions).",
            details={"session_count": session_count, "session_limit": session_limit},
        )


class CancellationWindowClosedError(ConflictError):
    code = ErrorCode.CANCELLATION_WINDOW_CLOSED

    def __init__(self, session_id: str, window_hours: int) -> None:
        super().__init__(
            f"Sessions can only be cancelled at least {window_hours} hours "
            "before the start time.",
            details={"session_id": session_id, "window_hours": window_hours},
        )


class NotEligibleError(ConflictError):
    code = ErrorCode.NOT_ELIGIBLE


class SessionClosedError(ConflictError):
    code = ErrorCode.SESSION_CLOSED

    def __init__(self, session_id: str, status: str) -> None:
        super().__init__(
            f"Session is already '{status}'. Only scheduled sessions can change status.",
            details={"session_id": session_id, "status": status},
        )


# ---------------------------------------------------------------------------
# Not found (refresh view)
# ---------------------------------------------------------------------------

class NotFoundError(MentorbookError):
    code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(
            f"{entity_type} not found.",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )


# ---------------------------------------------------------------------------
# Permission (block UI)
# ---------------------------------------------------------------------------

class PermissionDeniedError(MentorbookError):
    code = ErrorCode.PERMISSION_DENIED
    status_code = 403


# ---------------------------------------------------------------------------
# Unavailable (retry)
# ---------------------------------------------------------------------------

class UnavailableError(MentorbookError):
    code = ErrorCode.UNAVAILABLE
    status_code = 503
