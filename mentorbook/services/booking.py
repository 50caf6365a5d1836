"""
Booking Service.

Turns "student wants slot S of mentor M" into exactly one scheduled
session, or into no change at all.  The protocol runs three conditional
writes in a fixed order and compensates backwards when a later step
fails:

    1. reserve the slot          (mentor document, CAS on revision)
    2. consume one allowance     (user document, CAS on revision)
    3. create the session        (new document)

If step 2 fails the slot is released.  If step 3 fails the allowance is
refunded and the slot released.  A compensation failure is logged and
the original error still reaches the caller.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable, Optional

from mentorbook.config import AppConfig
from mentorbook.exceptions import LimitReachedError, NotFoundError, UnavailableError
from mentorbook.logger import StructuredLogger
from mentorbook.models.auth_models import RequestContext
from mentorbook.models.enums import SessionStatus, UserRole
from mentorbook.models.service_models import ServiceResult
from mentorbook.models.session import Session
from mentorbook.models.user import User
from mentorbook.repositories.session_repository import SessionRepository
from mentorbook.repositories.user_repository import UserRepository
from mentorbook.services.base_service import BaseService, Clock
from mentorbook.services.slot_registry import SlotRegistryService
from mentorbook.store.base import RevisionConflictError
from mentorbook.utils.audit import AuditTrail
from mentorbook.utils.meeting import build_meeting_link
from mentorbook.utils.time_utils import to_iso, utc_now


class BookingService(BaseService):
    """Service layer for the booking protocol."""

    def __init__(
        self,
        slot_registry: SlotRegistryService,
        user_repo: UserRepository,
        session_repo: SessionRepository,
        config: AppConfig,
        audit: AuditTrail,
        logger: StructuredLogger,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(logger, clock)
        self._slots = slot_registry
        self._user_repo = user_repo
        self._session_repo = session_repo
        self._config = config
        self._audit = audit

    def book_session(
        self,
        ctx: RequestContext,
        mentor_id: str,
        slot_id: str,
        now: Optional[datetime] = None,
    ) -> ServiceResult[Session]:
        """Book *slot_id* of *mentor_id* for the signed-in student.

        Failure codes: ``PERMISSION_DENIED`` (not acting as a student),
        ``LIMIT_REACHED``, ``SLOT_UNAVAILABLE``, ``NOT_FOUND`` (mentor),
        ``UNAVAILABLE`` (store down or too many conflicting writes).
        """
        return self._run("book_session", lambda: self._book(ctx, mentor_id, slot_id, self._now(now)))

    # ------------------------------------------------------------------
    # Protocol steps
    # ------------------------------------------------------------------

    def _book(
        self, ctx: RequestContext, mentor_id: str, slot_id: str, now: datetime
    ) -> Session:
        self._require_role(ctx, UserRole.STUDENT, "book sessions")

        # Fast rejection only; the authoritative check happens in step 2.
        student = self._load_student(ctx.user_id)
        if student.remaining_sessions == 0:
            raise LimitReachedError(student.session_count, student.session_limit)

        session_id = str(uuid.uuid4())

        # --- 1. Reserve ---
        mentor, slot = self._slots.reserve_slot(mentor_id, slot_id, session_id, now)

        # --- 2. Consume allowance ---
        try:
            student = self._consume_allowance(ctx.user_id)
        except Exception:
            self._compensate(
                "release slot after allowance failure",
                lambda: self._slots.release_slot(mentor_id, slot_id, session_id),
            )
            raise

        # --- 3. Create session ---
        session = Session(
            id=session_id,
            mentor_id=mentor.id,
            mentor_name=mentor.name,
            student_id=student.id,
            student_name=student.name,
            course=student.course or mentor.course,
            start_time=slot.start_time,
            end_time=slot.end_time,
            meeting_link=build_meeting_link(
                session_id,
                self._config.MEETING_BASE_URL,
                self._config.MEETING_ROOM_PREFIX,
            ),
            status=SessionStatus.SCHEDULED,
            created_at=now,
            slot_id=slot_id,
        )
        try:
            created = self._session_repo.create(session)
        except Exception:
            self._compensate(
                "refund allowance after session write failure",
                lambda: self._refund_allowance(ctx.user_id),
            )
            self._compensate(
                "release slot after session write failure",
                lambda: self._slots.release_slot(mentor_id, slot_id, session_id),
            )
            raise

        self._audit.record(
            action="BOOK",
            entity_type="Session",
            entity_id=created.id,
            user_id=ctx.user_id,
            details={
                "mentor_id": mentor_id,
                "slot_id": slot_id,
                "start_time": to_iso(created.start_time),
                "session_count": student.session_count,
            },
        )
        return created

    def _consume_allowance(self, user_id: str) -> User:
        """Increment ``sessionCount`` if it is still below ``sessionLimit``."""
        for _ in range(self._config.BOOKING_CAS_MAX_ATTEMPTS):
            student = self._load_student(user_id)
            if student.session_count >= student.session_limit:
                raise LimitReachedError(student.session_count, student.session_limit)
            try:
                return self._user_repo.update_session_count(student, student.session_count + 1)
            except RevisionConflictError:
                continue
        raise UnavailableError(
            "Your account is being updated elsewhere. Please try again.",
            details={"user_id": user_id},
        )

    def _refund_allowance(self, user_id: str) -> User:
        for _ in range(self._config.BOOKING_CAS_MAX_ATTEMPTS):
            student = self._load_student(user_id)
            try:
                return self._user_repo.update_session_count(
                    student, max(student.session_count - 1, 0)
                )
            except RevisionConflictError:
                continue
        raise UnavailableError(
            "Could not refund session allowance.", details={"user_id": user_id}
        )

    def _load_student(self, user_id: str) -> User:
        student = self._user_repo.get_by_id(user_id)
        if student is None:
            raise NotFoundError("User", user_id)
        return student

    def _compensate(self, label: str, action: Callable[[], object]) -> None:
        try:
            action()
        except Exception as exc:
            self._logger.error(
                "Booking compensation failed (%s): %s", label, exc, exc_info=True
            )
