"""
User Repository.

Handles all access to the ``users`` collection.  Users are never deleted;
the only mutations are the active-role default, the usage counter and the
admin limit override.
"""

from __future__ import annotations

from typing import Optional

from mentorbook.logger import StructuredLogger
from mentorbook.models.enums import UserRole
from mentorbook.models.user import User
from mentorbook.repositories.base_repository import BaseRepository
from mentorbook.store.base import USERS, DocumentStore, FieldFilter, FilterOp


class UserRepository(BaseRepository[User]):
    """Data access layer for User records."""

    COLLECTION = USERS
    MODEL = User

    def __init__(self, store: DocumentStore, logger: StructuredLogger) -> None:
        super().__init__(store, logger)

    def get_by_email(self, email: str) -> Optional[User]:
        """Fetch a user by email address (case-insensitive lookup)."""
        normalized_email = email.strip().lower()
        users = self._find([FieldFilter(field="email", value=normalized_email)], limit=1)
        return users[0] if users else None

    def get_all(self) -> list[User]:
        """Fetch all users ordered by display name."""
        return self._find(order_by="name")

    def list_by_role(self, role: UserRole) -> list[User]:
        """Users granted *role*, whatever their active role."""
        return self._find(
            [FieldFilter(field="roles", op=FilterOp.CONTAINS, value=role.value)],
            order_by="name",
        )

    def count_by_role(self, role: UserRole) -> int:
        return len(self.list_by_role(role))

    def create(self, user: User) -> User:
        """Insert a new user.  Raises ``DocumentExistsError`` on id clash."""
        created = self._create(user)
        self._logger.info("User record created: %s (%s)", user.id, user.email)
        return created

    def update_active_role(self, user_id: str, role: UserRole) -> User:
        return self._update(user_id, {"activeRole": role.value})

    def update_session_limit(self, user_id: str, limit: int) -> User:
        return self._update(user_id, {"sessionLimit": limit})

    def update_session_count(self, user: User, session_count: int) -> User:
        """Conditionally write the usage counter.

        Raises ``RevisionConflictError`` when *user* is no longer the
        latest revision, so callers re-read and re-check the limit.
        """
        return self._update(
            user.id, {"sessionCount": session_count}, expected_revision=user.revision
        )
