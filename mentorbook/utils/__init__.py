"""Shared utility functions and models for mentorbook.

Convenience re-exports so consumers can import directly from
``mentorbook.utils`` while full module paths remain supported.
"""

from mentorbook.utils.audit import AuditEvent, AuditTrail, log_audit_event
from mentorbook.utils.meeting import build_meeting_link
from mentorbook.utils.string_helpers import JsonValue, to_camel_case, to_snake_case
from mentorbook.utils.time_utils import Instant, ensure_utc, local_date, to_iso, utc_now

__all__ = [
    "AuditEvent",
    "AuditTrail",
    "Instant",
    "JsonValue",
    "build_meeting_link",
    "ensure_utc",
    "local_date",
    "log_audit_event",
    "to_camel_case",
    "to_iso",
    "to_snake_case",
    "utc_now",
]
