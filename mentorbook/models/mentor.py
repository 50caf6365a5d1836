"""
Mentor Profile and Availability Slot Models.

A mentor profile owns its availability slots as an embedded, ordered list.
The whole list is rewritten on every change, guarded by the document
revision.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mentorbook.models.base import DocumentModel
from mentorbook.utils.string_helpers import to_camel_case
from mentorbook.utils.time_utils import Instant, ensure_utc


class AvailabilitySlot(BaseModel):
    """A bookable time interval ``[start_time, end_time)``."""

    model_config = ConfigDict(alias_generator=to_camel_case, populate_by_name=True)

    id: str
    start_time: Instant
    end_time: Instant
    booked: bool = False
    # Session holding the reservation; ``None`` while the slot is free.
    session_id: Optional[str] = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "AvailabilitySlot":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be strictly after start_time")
        return self

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open interval intersection: touching slots do not overlap."""
        return self.start_time < ensure_utc(end) and ensure_utc(start) < self.end_time

    def is_bookable(self, now: datetime) -> bool:
        return not self.booked and self.start_time > ensure_utc(now)


class MentorProfile(DocumentModel):
    """Represents a mentor's profile in the ``mentors`` collection."""

    name: str
    email: str
    course: Optional[str] = None
    availability_slots: list[AvailabilitySlot] = Field(default_factory=list)

    def find_slot(self, slot_id: str) -> Optional[AvailabilitySlot]:
        for slot in self.availability_slots:
            if slot.id == slot_id:
                return slot
        return None

    def sorted_slots(self) -> list[AvailabilitySlot]:
        return sorted(self.availability_slots, key=lambda s: s.start_time)
