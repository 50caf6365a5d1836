"""
Authentication and Request Context Models.

Typed contracts between ``AuthService``, the identity provider and every
other service: the opaque identity handle, the sign-up request, and the
per-request context that replaces ambient "current user" state.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

from mentorbook.exceptions import ErrorCode
from mentorbook.models.enums import UserRole


# ---------------------------------------------------------------------------
# Identity provider error-code mapping
# ---------------------------------------------------------------------------

SUPABASE_ERROR_MAP: dict[str, tuple[ErrorCode, str]] = {
    "invalid_credentials": (
        ErrorCode.INVALID_CREDENTIALS,
        "Incorrect email or password.",
    ),
    "invalid login credentials": (
        ErrorCode.INVALID_CREDENTIALS,
        "Incorrect email or password.",
    ),
    "invalid_grant": (
        ErrorCode.INVALID_CREDENTIALS,
        "Incorrect email or password.",
    ),
    "user_not_found": (
        ErrorCode.INVALID_CREDENTIALS,
        "Incorrect email or password.",
    ),
    "user_already_exists": (
        ErrorCode.EMAIL_ALREADY_EXISTS,
        "An account with this email already exists. Try signing in.",
    ),
    "already registered": (
        ErrorCode.EMAIL_ALREADY_EXISTS,
        "An account with this email already exists. Try signing in.",
    ),
    "email-already-in-use": (
        ErrorCode.EMAIL_ALREADY_EXISTS,
        "An account with this email already exists. Try signing in.",
    ),
}


class Identity(BaseModel):
    """Opaque authenticated-user handle issued by the identity provider."""

    id: str
    email: Optional[str] = None

    model_config = {"frozen": True}


class SignupRequest(BaseModel):
    """Validated sign-up form payload.

    Attributes
    ----------
    role:
        The role requested on the form.  Mentor and admin sign-ups are
        also granted the student role.
    course:
        Required for students.  For mentors this is the course they teach.
    verification_code:
        Checked for mentor and admin sign-ups, ignored for students.
    """

    name: str = Field(min_length=2, max_length=120)
    email: str = Field(min_length=3, max_length=254)
    password: SecretStr
    role: UserRole = UserRole.STUDENT
    course: Optional[str] = None
    verification_code: Optional[SecretStr] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value: str) -> str:
        normalised = value.strip().lower()
        local, _, domain = normalised.partition("@")
        if not local or "." not in domain:
            raise ValueError("Please enter a valid email address.")
        return normalised


class RequestContext(BaseModel):
    """Who is acting, and under which role.

    Passed explicitly to every service operation.  Derived from the durable
    ``roles`` set; switching roles yields a new context and never edits
    ``roles``.
    """

    user_id: str
    name: str = ""
    roles: tuple[UserRole, ...]
    active_role: UserRole

    model_config = {"frozen": True}

    def acting_as(self, role: UserRole) -> bool:
        return self.active_role == role

    def with_active_role(self, role: UserRole) -> "RequestContext":
        if role not in self.roles:
            raise ValueError(f"role '{role}' is not granted to user {self.user_id}")
        return self.model_copy(update={"active_role": role})
