"""
User Model.

One record per identity in the ``users`` collection.  The document id is
the identity provider's opaque user handle.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator, model_validator

from mentorbook.models.base import DocumentModel
from mentorbook.models.enums import UserRole
from mentorbook.utils.time_utils import Instant

DEFAULT_SESSION_LIMIT: int = 5


class User(DocumentModel):
    """Represents a user account.

    ``roles`` is the durable set of granted roles; ``active_role`` is the
    default role the user operates under after signing in.  Older documents
    that only carry a single ``role`` key are upgraded on load.
    """

    name: str
    email: str
    roles: list[UserRole] = Field(min_length=1)
    active_role: UserRole
    course: Optional[str] = None
    created_at: Optional[Instant] = None
    session_count: int = Field(default=0, ge=0)
    session_limit: int = Field(default=DEFAULT_SESSION_LIMIT, ge=1)

    @model_validator(mode="before")
    @classmethod
    def _upgrade_single_role(cls, data: object) -> object:
        if isinstance(data, dict) and "role" in data:
            data = dict(data)
            legacy_role = data.pop("role")
            if legacy_role is not None:
                data.setdefault("roles", [legacy_role])
                if data.get("activeRole") is None and data.get("active_role") is None:
                    data["activeRole"] = legacy_role
        if isinstance(data, dict):
            for key in ("sessionCount", "sessionLimit"):
                if key in data and data[key] is None:
                    data = {k: v for k, v in data.items() if k != key}
        return data

    @field_validator("roles")
    @classmethod
    def _dedupe_roles(cls, value: list[UserRole]) -> list[UserRole]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _active_role_is_granted(self) -> "User":
        if self.active_role not in self.roles:
            raise ValueError(
                f"active role '{self.active_role}' is not among granted roles "
                f"{[str(r) for r in self.roles]}"
            )
        return self

    def has_role(self, role: UserRole) -> bool:
        return role in self.roles

    @property
    def remaining_sessions(self) -> int:
        return max(self.session_limit - self.session_count, 0)
