from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from mentorbook.models import (
    AvailabilitySlot,
    MentorProfile,
    RequestContext,
    Session,
    SessionStatus,
    User,
    UserRole,
)
from mentorbook.store.base import Document
from mentorbook.utils import (
    build_meeting_link,
    ensure_utc,
    to_camel_case,
    to_iso,
    to_snake_case,
)

T0 = datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)


class TestUser:
    def test_legacy_single_role_document_is_upgraded(self):
        user = User.from_document(Document(
            id="u1",
            data={"name": "Asha", "email": "a@x.io", "role": "mentor", "sessionCount": None},
            revision=3,
        ))
        assert user.roles == [UserRole.MENTOR]
        assert user.active_role == UserRole.MENTOR
        assert user.session_count == 0
        assert user.session_limit == 5
        assert user.revision == 3

    def test_active_role_must_be_granted(self):
        with pytest.raises(ValidationError):
            User(id="u1", name="A", email="a@x.io", roles=[UserRole.STUDENT],
                 active_role=UserRole.ADMIN)

    def test_roles_are_deduplicated_and_non_empty(self):
        user = User(id="u1", name="A", email="a@x.io",
                    roles=[UserRole.MENTOR, UserRole.STUDENT, UserRole.MENTOR],
                    active_role=UserRole.MENTOR)
        assert user.roles == [UserRole.MENTOR, UserRole.STUDENT]
        with pytest.raises(ValidationError):
            User(id="u2", name="A", email="a@x.io", roles=[], active_role=UserRole.STUDENT)

    def test_document_data_uses_camel_case_and_excludes_store_fields(self):
        user = User(id="u1", name="A", email="a@x.io", roles=[UserRole.STUDENT],
                    active_role=UserRole.STUDENT, course="Coding", created_at=T0)
        data = user.to_document_data()
        assert data["activeRole"] == "student"
        assert data["sessionLimit"] == 5
        assert data["createdAt"] == "2025-01-10T10:00:00.000Z"
        assert "id" not in data and "revision" not in data

    def test_remaining_sessions_never_negative(self):
        user = User(id="u1", name="A", email="a@x.io", roles=[UserRole.STUDENT],
                    active_role=UserRole.STUDENT, session_count=7, session_limit=5)
        assert user.remaining_sessions == 0


class TestAvailabilitySlot:
    def test_end_must_follow_start(self):
        with pytest.raises(ValidationError):
            AvailabilitySlot(id="s", start_time=T0, end_time=T0)

    def test_half_open_overlap(self):
        slot = AvailabilitySlot(id="s", start_time=T0, end_time=T0 + timedelta(hours=1))
        assert slot.overlaps(T0 + timedelta(minutes=30), T0 + timedelta(hours=2))
        assert not slot.overlaps(T0 + timedelta(hours=1), T0 + timedelta(hours=2))
        assert not slot.overlaps(T0 - timedelta(hours=1), T0)

    def test_slot_starting_now_is_not_bookable(self):
        slot = AvailabilitySlot(id="s", start_time=T0, end_time=T0 + timedelta(hours=1))
        assert slot.is_bookable(T0 - timedelta(seconds=1))
        assert not slot.is_bookable(T0)

    def test_naive_datetimes_are_read_as_utc(self):
        slot = AvailabilitySlot(id="s", start_time=datetime(2025, 1, 10, 10),
                                end_time=datetime(2025, 1, 10, 11))
        assert slot.start_time == T0

    def test_mentor_profile_round_trips_slots_in_wire_format(self):
        profile = MentorProfile(
            id="m1", name="Maya", email="m@x.io", course="Coding",
            availability_slots=[AvailabilitySlot(
                id="s", start_time=T0, end_time=T0 + timedelta(hours=1),
                booked=True, session_id="sess-1",
            )],
        )
        stored = profile.to_document_data()["availabilitySlots"][0]
        assert stored == {
            "id": "s",
            "startTime": "2025-01-10T10:00:00.000Z",
            "endTime": "2025-01-10T11:00:00.000Z",
            "booked": True,
            "sessionId": "sess-1",
        }


class TestSession:
    def _session(self, **overrides):
        fields = dict(
            id="sess-1", mentor_id="m1", mentor_name="Maya", student_id="u1",
            student_name="Asha", course="Coding", start_time=T0,
            end_time=T0 + timedelta(hours=1), meeting_link="https://x/y",
            created_at=T0 - timedelta(days=1),
        )
        fields.update(overrides)
        return Session(**fields)

    def test_past_once_end_is_reached(self):
        session = self._session()
        assert not session.is_past(T0 + timedelta(minutes=59))
        assert session.is_past(T0 + timedelta(hours=1))

    def test_no_show_status_uses_hyphenated_value(self):
        session = self._session(status=SessionStatus.NO_SHOW)
        assert session.to_document_data()["status"] == "no-show"
        assert SessionStatus.NO_SHOW.is_terminal
        assert not SessionStatus.SCHEDULED.is_terminal

    def test_participants(self):
        session = self._session()
        assert session.is_participant("u1")
        assert session.is_participant("m1")
        assert not session.is_participant("someone-else")


def test_request_context_role_switch_returns_new_value():
    ctx = RequestContext(user_id="u1", roles=(UserRole.MENTOR, UserRole.STUDENT),
                         active_role=UserRole.MENTOR)
    switched = ctx.with_active_role(UserRole.STUDENT)
    assert switched.active_role == UserRole.STUDENT
    assert ctx.active_role == UserRole.MENTOR
    with pytest.raises(ValueError):
        ctx.with_active_role(UserRole.ADMIN)


def test_instant_wire_format_sorts_chronologically():
    earlier = to_iso(datetime(2025, 1, 9, 23, 59, 59, 999000, tzinfo=timezone.utc))
    later = to_iso(datetime(2025, 1, 10, 0, 0, tzinfo=timezone.utc))
    assert earlier == "2025-01-09T23:59:59.999Z"
    assert earlier < later


def test_instants_are_kept_to_the_millisecond():
    slot = AvailabilitySlot(
        id="s1",
        start_time=T0 + timedelta(microseconds=999999),
        end_time=T0 + timedelta(hours=1),
    )
    assert slot.start_time == T0 + timedelta(milliseconds=999)
    assert ensure_utc(datetime(2025, 1, 10, 10, 0, 0, 4567)) == T0 + timedelta(milliseconds=4)


def test_meeting_link_is_deterministic():
    assert build_meeting_link("abc", "https://meet.jit.si/", "mentorbook-session-") == (
        "https://meet.jit.si/mentorbook-session-abc"
    )
    with pytest.raises(ValueError):
        build_meeting_link("", "https://meet.jit.si", "p-")


@pytest.mark.parametrize("camel, snake", [
    ("startTime", "start_time"),
    ("availabilitySlots", "availability_slots"),
    ("sessionId", "session_id"),
])
def test_key_case_conversion(camel, snake):
    assert to_snake_case(camel) == snake
    assert to_camel_case(snake) == camel
