"""
Session Lifecycle Service.

Moves a session out of ``scheduled`` into exactly one terminal state:

    scheduled -> cancelled   (student, mentor or admin; before the window closes)
    scheduled -> completed   (the session's mentor; once it has ended)
    scheduled -> no-show     (the session's mentor; once it has ended)

Each transition is a conditional write on the revision that was checked,
so two racing transitions cannot both succeed.  Also serves the
role-scoped session listings used by the dashboards.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from mentorbook.config import AppConfig
from mentorbook.exceptions import (
    CancellationWindowClosedError,
    NotEligibleError,
    NotFoundError,
    PermissionDeniedError,
    SessionClosedError,
    UnavailableError,
)
from mentorbook.logger import StructuredLogger
from mentorbook.models.auth_models import RequestContext
from mentorbook.models.enums import SessionStatus, UserRole
from mentorbook.models.service_models import ServiceResult
from mentorbook.models.session import Session
from mentorbook.repositories.session_repository import SessionRepository
from mentorbook.services.base_service import BaseService, Clock
from mentorbook.services.slot_registry import SlotRegistryService
from mentorbook.store.base import RevisionConflictError
from mentorbook.utils.audit import AuditTrail
from mentorbook.utils.time_utils import to_iso, utc_now

DEFAULT_UPCOMING_LIMIT: int = 5


class SessionLifecycleService(BaseService):
    """Service layer for session status transitions and listings."""

    def __init__(
        self,
        session_repo: SessionRepository,
        slot_registry: SlotRegistryService,
        config: AppConfig,
        audit: AuditTrail,
        logger: StructuredLogger,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(logger, clock)
        self._repo = session_repo
        self._slots = slot_registry
        self._config = config
        self._audit = audit

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def cancel(
        self, ctx: RequestContext, session_id: str, now: Optional[datetime] = None
    ) -> ServiceResult[Session]:
        """Cancel a scheduled session at least the configured window before it starts."""
        def _cancel() -> Session:
            current = self._now(now)
            window = timedelta(hours=self._config.CANCELLATION_WINDOW_HOURS)

            def _check(session: Session) -> None:
                if not (session.is_participant(ctx.user_id) or ctx.acting_as(UserRole.ADMIN)):
                    raise PermissionDeniedError(
                        "Only the session's student, its mentor or an admin can cancel it.",
                        details={"session_id": session.id, "user_id": ctx.user_id},
                    )
                if session.status != SessionStatus.SCHEDULED:
                    raise SessionClosedError(session.id, session.status.value)
                if current > session.start_time - window:
                    raise CancellationWindowClosedError(
                        session.id, self._config.CANCELLATION_WINDOW_HOURS
                    )

            cancelled = self._transition(session_id, SessionStatus.CANCELLED, current, _check)

            slot_released: Optional[bool] = None
            if self._config.RELEASE_SLOT_ON_CANCEL and cancelled.slot_id:
                try:
                    slot_released = self._slots.release_slot(
                        cancelled.mentor_id, cancelled.slot_id, cancelled.id
                    )
                except Exception as exc:
                    slot_released = False
                    self._logger.error(
                        "Session %s cancelled but slot %s was not released: %s",
                        cancelled.id,
                        cancelled.slot_id,
                        exc,
                        exc_info=True,
                    )

            self._audit.record(
                action="CANCEL",
                entity_type="Session",
                entity_id=cancelled.id,
                user_id=ctx.user_id,
                details={
                    "actor_role": ctx.active_role.value,
                    "start_time": to_iso(cancelled.start_time),
                    "slot_released": slot_released,
                },
            )
            return cancelled

        return self._run("cancel", _cancel)

    def mark_completed(
        self, ctx: RequestContext, session_id: str, now: Optional[datetime] = None
    ) -> ServiceResult[Session]:
        return self._run(
            "mark_completed",
            lambda: self._close_after_end(ctx, session_id, SessionStatus.COMPLETED, "COMPLETE", now),
        )

    def mark_no_show(
        self, ctx: RequestContext, session_id: str, now: Optional[datetime] = None
    ) -> ServiceResult[Session]:
        return self._run(
            "mark_no_show",
            lambda: self._close_after_end(ctx, session_id, SessionStatus.NO_SHOW, "NO_SHOW", now),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_sessions(self, ctx: RequestContext) -> ServiceResult[list[Session]]:
        """Sessions visible under the active role, ordered by start."""
        def _list() -> list[Session]:
            if ctx.acting_as(UserRole.ADMIN):
                return self._repo.get_all()
            if ctx.acting_as(UserRole.MENTOR):
                return self._repo.list_for_mentor(ctx.user_id)
            return self._repo.list_for_student(ctx.user_id)

        return self._run("list_sessions", _list)

    def list_upcoming(
        self,
        ctx: RequestContext,
        now: Optional[datetime] = None,
        limit: int = DEFAULT_UPCOMING_LIMIT,
    ) -> ServiceResult[list[Session]]:
        """Scheduled sessions starting at or after *now*, soonest first."""
        def _list() -> list[Session]:
            current = self._now(now)
            if ctx.acting_as(UserRole.ADMIN):
                return self._repo.list_upcoming(current, limit=limit)
            if ctx.acting_as(UserRole.MENTOR):
                return self._repo.list_upcoming(current, mentor_id=ctx.user_id, limit=limit)
            return self._repo.list_upcoming(current, student_id=ctx.user_id, limit=limit)

        return self._run("list_upcoming", _list)

    def get_session(self, ctx: RequestContext, session_id: str) -> ServiceResult[Session]:
        def _get() -> Session:
            session = self._load(session_id)
            if not (session.is_participant(ctx.user_id) or ctx.acting_as(UserRole.ADMIN)):
                raise PermissionDeniedError(
                    "You do not have access to this session.",
                    details={"session_id": session_id},
                )
            return session

        return self._run("get_session", _get)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _close_after_end(
        self,
        ctx: RequestContext,
        session_id: str,
        status: SessionStatus,
        action: str,
        now: Optional[datetime],
    ) -> Session:
        current = self._now(now)

        def _check(session: Session) -> None:
            if not ctx.acting_as(UserRole.MENTOR) or ctx.user_id != session.mentor_id:
                raise PermissionDeniedError(
                    "Only the session's mentor can record its outcome.",
                    details={"session_id": session.id, "user_id": ctx.user_id},
                )
            if session.status != SessionStatus.SCHEDULED:
                raise NotEligibleError(
                    f"Session is already '{session.status.value}'. Only scheduled "
                    "sessions can be marked.",
                    details={"session_id": session.id, "status": session.status.value},
                )
            if not session.is_past(current):
                raise NotEligibleError(
                    "A session can only be marked after it has ended.",
                    details={"session_id": session.id, "end_time": to_iso(session.end_time)},
                )

        closed = self._transition(session_id, status, current, _check)
        self._audit.record(
            action=action,
            entity_type="Session",
            entity_id=closed.id,
            user_id=ctx.user_id,
            details={"student_id": closed.student_id, "end_time": to_iso(closed.end_time)},
        )
        return closed

    def _transition(
        self,
        session_id: str,
        status: SessionStatus,
        now: datetime,
        check: Callable[[Session], None],
    ) -> Session:
        """Re-read, re-check, conditionally write; retry on lost races."""
        for _ in range(self._config.BOOKING_CAS_MAX_ATTEMPTS):
            session = self._load(session_id)
            check(session)
            try:
                return self._repo.update_status(session, status, now)
            except RevisionConflictError:
                continue
        raise UnavailableError(
            "This session is being updated elsewhere. Please try again.",
            details={"session_id": session_id},
        )

    def _load(self, session_id: str) -> Session:
        session = self._repo.get_by_id(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        return session
