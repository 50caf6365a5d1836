"""
Admin Service.

User listing, session-limit overrides and dashboard statistics.  Every
operation requires the caller to be acting as an admin.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from mentorbook.exceptions import NotFoundError, ValidationError
from mentorbook.logger import StructuredLogger
from mentorbook.models.auth_models import RequestContext
from mentorbook.models.enums import UserRole
from mentorbook.models.service_models import AdminStats, ServiceResult
from mentorbook.models.user import User
from mentorbook.repositories.session_repository import SessionRepository
from mentorbook.repositories.user_repository import UserRepository
from mentorbook.services.base_service import BaseService, Clock
from mentorbook.utils.audit import AuditTrail
from mentorbook.utils.time_utils import utc_now


class AdminService(BaseService):
    """Service layer for admin user management and statistics."""

    def __init__(
        self,
        user_repo: UserRepository,
        session_repo: SessionRepository,
        audit: AuditTrail,
        logger: StructuredLogger,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(logger, clock)
        self._user_repo = user_repo
        self._session_repo = session_repo
        self._audit = audit

    def list_users(self, ctx: RequestContext) -> ServiceResult[list[User]]:
        def _list() -> list[User]:
            self._require_role(ctx, UserRole.ADMIN, "list users")
            return self._user_repo.get_all()

        return self._run("list_users", _list)

    def set_session_limit(
        self, ctx: RequestContext, user_id: str, limit: int
    ) -> ServiceResult[User]:
        """Override a user's session limit.

        The usage counter is left alone, so lowering the limit below the
        current count simply blocks further bookings.
        """
        def _set() -> User:
            self._require_role(ctx, UserRole.ADMIN, "change session limits")
            if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
                raise ValidationError(
                    "Session limit must be a positive whole number.",
                    field="session_limit",
                )
            user = self._user_repo.get_by_id(user_id)
            if user is None:
                raise NotFoundError("User", user_id)

            updated = self._user_repo.update_session_limit(user_id, limit)
            self._audit.record(
                action="UPDATE_SESSION_LIMIT",
                entity_type="User",
                entity_id=user_id,
                user_id=ctx.user_id,
                details={"old_limit": user.session_limit, "new_limit": limit},
            )
            return updated

        return self._run("set_session_limit", _set)

    def get_stats(
        self, ctx: RequestContext, now: Optional[datetime] = None
    ) -> ServiceResult[AdminStats]:
        def _stats() -> AdminStats:
            self._require_role(ctx, UserRole.ADMIN, "view statistics")
            current = self._now(now)
            return AdminStats(
                total_students=self._user_repo.count_by_role(UserRole.STUDENT),
                total_mentors=self._user_repo.count_by_role(UserRole.MENTOR),
                total_sessions=self._session_repo.count_all(),
                upcoming_sessions=len(self._session_repo.list_upcoming(current)),
            )

        return self._run("get_stats", _stats)
