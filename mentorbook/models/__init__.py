"""
Data Models Package.

Re-exports all pydantic models:
    from mentorbook.models import User, MentorProfile, AvailabilitySlot, Session
    from mentorbook.models import UserRole, SessionStatus
"""

from mentorbook.models.enums import SessionStatus, UserRole
from mentorbook.models.user import User
from mentorbook.models.mentor import AvailabilitySlot, MentorProfile
from mentorbook.models.session import Session
from mentorbook.models.auth_models import Identity, RequestContext, SignupRequest
from mentorbook.models.service_models import AdminStats, MentorSummary, ServiceResult

__all__ = [
    "AdminStats",
    "AvailabilitySlot",
    "Identity",
    "MentorProfile",
    "MentorSummary",
    "RequestContext",
    "ServiceResult",
    "Session",
    "SessionStatus",
    "SignupRequest",
    "User",
    "UserRole",
]
