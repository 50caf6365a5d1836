"""
Mentor Repository.

Handles access to the ``mentors`` collection.  Availability slots are
embedded in the mentor document, so every slot change rewrites the whole
list with a conditional write against the revision that was read.
"""

from __future__ import annotations

from mentorbook.logger import StructuredLogger
from mentorbook.models.mentor import AvailabilitySlot, MentorProfile
from mentorbook.repositories.base_repository import BaseRepository
from mentorbook.store.base import MENTORS, DocumentStore, FieldFilter


class MentorRepository(BaseRepository[MentorProfile]):
    """Data access layer for MentorProfile records."""

    COLLECTION = MENTORS
    MODEL = MentorProfile

    def __init__(self, store: DocumentStore, logger: StructuredLogger) -> None:
        super().__init__(store, logger)

    def get_all(self) -> list[MentorProfile]:
        return self._find(order_by="name")

    def list_by_course(self, course: str) -> list[MentorProfile]:
        return self._find([FieldFilter(field="course", value=course)], order_by="name")

    def create(self, profile: MentorProfile) -> MentorProfile:
        created = self._create(profile)
        self._logger.info("Mentor profile created: %s", profile.id)
        return created

    def save_slots(
        self, profile: MentorProfile, slots: list[AvailabilitySlot]
    ) -> MentorProfile:
        """Replace the slot list if *profile* is still the stored revision.

        Raises ``RevisionConflictError`` otherwise.
        """
        payload = [slot.model_dump(mode="json", by_alias=True) for slot in slots]
        return self._update(
            profile.id,
            {"availabilitySlots": payload},
            expected_revision=profile.revision,
        )
