"""
Slot Registry Service.

Manages the availability slots embedded in each mentor document.  Every
change re-reads the mentor, validates against the fresh slot list and
writes the whole list back conditionally on the revision it read; a lost
race is retried up to ``BOOKING_CAS_MAX_ATTEMPTS`` times.

``reserve_slot`` and ``release_slot`` are the primitives the booking
protocol and the session lifecycle build on.  They raise instead of
returning envelopes.
"""

from __future__ import annotations

import uuid
from collections import OrderedDict
from datetime import date, datetime, timezone, tzinfo
from typing import Optional

from mentorbook.config import AppConfig
from mentorbook.exceptions import (
    InvalidRangeError,
    NotFoundError,
    OverlapError,
    PastSlotError,
    PermissionDeniedError,
    SlotBookedError,
    SlotUnavailableError,
    UnavailableError,
)
from mentorbook.logger import StructuredLogger
from mentorbook.models.auth_models import RequestContext
from mentorbook.models.enums import UserRole
from mentorbook.models.mentor import AvailabilitySlot, MentorProfile
from mentorbook.models.service_models import MentorSummary, ServiceResult
from mentorbook.repositories.mentor_repository import MentorRepository
from mentorbook.services.base_service import BaseService, Clock
from mentorbook.store.base import RevisionConflictError
from mentorbook.utils.audit import AuditTrail
from mentorbook.utils.time_utils import ensure_utc, local_date, to_iso, utc_now


class SlotRegistryService(BaseService):
    """Service layer for mentor availability."""

    def __init__(
        self,
        mentor_repo: MentorRepository,
        config: AppConfig,
        audit: AuditTrail,
        logger: StructuredLogger,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(logger, clock)
        self._repo = mentor_repo
        self._config = config
        self._audit = audit

    # ------------------------------------------------------------------
    # Mentor-facing operations
    # ------------------------------------------------------------------

    def add_slot(
        self,
        ctx: RequestContext,
        mentor_id: str,
        start: datetime,
        end: datetime,
        now: Optional[datetime] = None,
    ) -> ServiceResult[AvailabilitySlot]:
        """Publish a new free slot ``[start, end)`` for *mentor_id*."""
        def _add() -> AvailabilitySlot:
            self._require_owner(ctx, mentor_id)
            start_utc, end_utc = ensure_utc(start), ensure_utc(end)
            if start_utc >= end_utc:
                raise InvalidRangeError(to_iso(start_utc), to_iso(end_utc))
            if start_utc < self._now(now):
                raise PastSlotError(to_iso(start_utc))

            new_slot = AvailabilitySlot(
                id=str(uuid.uuid4()), start_time=start_utc, end_time=end_utc
            )
            for _ in range(self._config.BOOKING_CAS_MAX_ATTEMPTS):
                profile = self._load(mentor_id)
                for existing in profile.availability_slots:
                    if existing.overlaps(start_utc, end_utc):
                        raise OverlapError(existing.id)
                try:
                    self._repo.save_slots(profile, [*profile.availability_slots, new_slot])
                except RevisionConflictError:
                    continue
                self._audit.record(
                    action="ADD_SLOT",
                    entity_type="Slot",
                    entity_id=new_slot.id,
                    user_id=ctx.user_id,
                    details={
                        "mentor_id": mentor_id,
                        "start_time": to_iso(start_utc),
                        "end_time": to_iso(end_utc),
                    },
                )
                return new_slot
            raise self._exhausted("add_slot", mentor_id)

        return self._run("add_slot", _add)

    def remove_slot(
        self, ctx: RequestContext, mentor_id: str, slot_id: str
    ) -> ServiceResult[None]:
        """Delete an unbooked slot."""
        def _remove() -> None:
            self._require_owner(ctx, mentor_id)
            for _ in range(self._config.BOOKING_CAS_MAX_ATTEMPTS):
                profile = self._load(mentor_id)
                slot = profile.find_slot(slot_id)
                if slot is None:
                    raise NotFoundError("Slot", slot_id)
                if slot.booked:
                    raise SlotBookedError(slot_id)
                remaining = [s for s in profile.availability_slots if s.id != slot_id]
                try:
                    self._repo.save_slots(profile, remaining)
                except RevisionConflictError:
                    continue
                self._audit.record(
                    action="REMOVE_SLOT",
                    entity_type="Slot",
                    entity_id=slot_id,
                    user_id=ctx.user_id,
                    details={"mentor_id": mentor_id, "start_time": to_iso(slot.start_time)},
                )
                return None
            raise self._exhausted("remove_slot", mentor_id)

        return self._run("remove_slot", _remove)

    def list_slots(self, mentor_id: str) -> ServiceResult[list[AvailabilitySlot]]:
        """Every slot of the mentor, booked or not, ascending by start."""
        return self._run("list_slots", lambda: self._load(mentor_id).sorted_slots())

    # ------------------------------------------------------------------
    # Student-facing queries
    # ------------------------------------------------------------------

    def list_available(
        self,
        mentor_id: str,
        after: Optional[datetime] = None,
        on_date: Optional[date] = None,
        tz: tzinfo = timezone.utc,
    ) -> ServiceResult[list[AvailabilitySlot]]:
        """Unbooked slots starting strictly after *after* (default: now).

        When *on_date* is given only slots whose start falls on that
        calendar date in *tz* are returned.
        """
        def _list() -> list[AvailabilitySlot]:
            cutoff = self._now(after)
            slots = [
                slot for slot in self._load(mentor_id).sorted_slots()
                if slot.is_bookable(cutoff)
            ]
            if on_date is not None:
                slots = [s for s in slots if local_date(s.start_time, tz) == on_date]
            return slots

        return self._run("list_available", _list)

    @staticmethod
    def group_by_date(
        slots: list[AvailabilitySlot], tz: tzinfo = timezone.utc
    ) -> "OrderedDict[date, list[AvailabilitySlot]]":
        """Group slots by local calendar date, dates and slots ascending."""
        grouped: OrderedDict[date, list[AvailabilitySlot]] = OrderedDict()
        for slot in sorted(slots, key=lambda s: s.start_time):
            grouped.setdefault(local_date(slot.start_time, tz), []).append(slot)
        return grouped

    def list_mentors(
        self, course: str, now: Optional[datetime] = None
    ) -> ServiceResult[list[MentorSummary]]:
        """Mentors teaching *course* with their count of bookable slots."""
        def _list() -> list[MentorSummary]:
            cutoff = self._now(now)
            return [
                MentorSummary(
                    id=profile.id,
                    name=profile.name,
                    course=profile.course,
                    available_slots=sum(
                        1 for s in profile.availability_slots if s.is_bookable(cutoff)
                    ),
                )
                for profile in self._repo.list_by_course(course)
            ]

        return self._run("list_mentors", _list)

    # ------------------------------------------------------------------
    # Reservation primitives (raise, never wrap)
    # ------------------------------------------------------------------

    def reserve_slot(
        self,
        mentor_id: str,
        slot_id: str,
        session_id: str,
        now: datetime,
    ) -> tuple[MentorProfile, AvailabilitySlot]:
        """Flip a free future slot to booked, recording *session_id*.

        At most one caller can win a given slot: the write is conditional
        on the revision the availability check was made against.

        Raises:
            NotFoundError: The mentor does not exist.
            SlotUnavailableError: Missing, already booked, or not in the future.
            UnavailableError: Every attempt lost a race.
        """
        cutoff = ensure_utc(now)
        for attempt in range(1, self._config.BOOKING_CAS_MAX_ATTEMPTS + 1):
            profile = self._load(mentor_id)
            slot = profile.find_slot(slot_id)
            if slot is None or not slot.is_bookable(cutoff):
                raise SlotUnavailableError(slot_id)
            reserved = slot.model_copy(update={"booked": True, "session_id": session_id})
            slots = [reserved if s.id == slot_id else s for s in profile.availability_slots]
            try:
                updated = self._repo.save_slots(profile, slots)
            except RevisionConflictError:
                self._logger.debug(
                    "Reserve of slot %s lost a race (attempt %d).", slot_id, attempt
                )
                continue
            return updated, reserved
        raise self._exhausted("reserve_slot", mentor_id)

    def release_slot(self, mentor_id: str, slot_id: str, session_id: str) -> bool:
        """Return a slot reserved by *session_id* to the free pool.

        Returns ``False`` (and changes nothing) when the mentor or slot is
        gone or the slot is held by a different session.  Releasing an
        already-free slot is a no-op that returns ``True``.
        """
        for _ in range(self._config.BOOKING_CAS_MAX_ATTEMPTS):
            profile = self._repo.get_by_id(mentor_id)
            slot = profile.find_slot(slot_id) if profile else None
            if profile is None or slot is None:
                self._logger.warning(
                    "Cannot release slot %s of mentor %s: not found.", slot_id, mentor_id
                )
                return False
            if not slot.booked:
                return True
            if slot.session_id not in (None, session_id):
                self._logger.warning(
                    "Slot %s is held by session %s, not %s; leaving it booked.",
                    slot_id,
                    slot.session_id,
                    session_id,
                )
                return False
            freed = slot.model_copy(update={"booked": False, "session_id": None})
            slots = [freed if s.id == slot_id else s for s in profile.availability_slots]
            try:
                self._repo.save_slots(profile, slots)
            except RevisionConflictError:
                continue
            return True
        raise self._exhausted("release_slot", mentor_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _load(self, mentor_id: str) -> MentorProfile:
        profile = self._repo.get_by_id(mentor_id)
        if profile is None:
            raise NotFoundError("Mentor", mentor_id)
        return profile

    @staticmethod
    def _require_owner(ctx: RequestContext, mentor_id: str) -> None:
        BaseService._require_role(ctx, UserRole.MENTOR, "manage availability")
        if ctx.user_id != mentor_id:
            raise PermissionDeniedError(
                "You can only manage your own availability.",
                details={"user_id": ctx.user_id, "mentor_id": mentor_id},
            )

    def _exhausted(self, operation: str, mentor_id: str) -> UnavailableError:
        self._logger.warning(
            "%s gave up on mentor %s after %d conflicting writes.",
            operation,
            mentor_id,
            self._config.BOOKING_CAS_MAX_ATTEMPTS,
        )
        return UnavailableError(
            "Availability is changing rapidly. Please try again.",
            details={"mentor_id": mentor_id},
        )
