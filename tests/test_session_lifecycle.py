from datetime import timedelta

import pytest

from mentorbook.exceptions import ErrorCode
from mentorbook.models import SessionStatus, UserRole
from tests.conftest import NOW


@pytest.fixture
def lifecycle(services):
    return services["session_lifecycle"]


@pytest.fixture
def booked(services, mentor_ctx, student_ctx, slot):
    result = services["booking_service"].book_session(
        student_ctx, mentor_ctx.user_id, slot.id, now=NOW
    )
    assert result.success, result.error
    return result.data


class TestCancel:
    def test_cancel_exactly_at_window_boundary(self, lifecycle, student_ctx, booked):
        boundary = booked.start_time - timedelta(hours=5)
        result = lifecycle.cancel(student_ctx, booked.id, now=boundary)
        assert result.success, result.error
        assert result.data.status == SessionStatus.CANCELLED
        assert result.data.updated_at == boundary

    def test_cancel_just_inside_window_is_rejected(self, lifecycle, student_ctx, booked):
        late = booked.start_time - timedelta(hours=5) + timedelta(milliseconds=1)
        result = lifecycle.cancel(student_ctx, booked.id, now=late)
        assert result.error_code == ErrorCode.CANCELLATION_WINDOW_CLOSED
        assert lifecycle.get_session(student_ctx, booked.id).data.status == SessionStatus.SCHEDULED

    def test_second_cancel_reports_closed_session(self, lifecycle, student_ctx, booked):
        assert lifecycle.cancel(student_ctx, booked.id, now=NOW).success
        again = lifecycle.cancel(student_ctx, booked.id, now=NOW)
        assert again.error_code == ErrorCode.SESSION_CLOSED
        assert lifecycle.get_session(student_ctx, booked.id).data.status == SessionStatus.CANCELLED

    def test_cancel_frees_slot_but_keeps_usage(self, lifecycle, services, mentor_ctx,
                                                student_ctx, other_student_ctx, booked):
        assert lifecycle.cancel(mentor_ctx, booked.id, now=NOW).success

        slot = services["slot_registry"].list_slots(mentor_ctx.user_id).data[0]
        assert slot.booked is False
        student = services["booking_service"]._user_repo.get_by_id(student_ctx.user_id)
        assert student.session_count == 1

        rebook = services["booking_service"].book_session(
            other_student_ctx, mentor_ctx.user_id, slot.id, now=NOW
        )
        assert rebook.success

    def test_outsider_cannot_cancel(self, lifecycle, other_student_ctx, booked):
        result = lifecycle.cancel(other_student_ctx, booked.id, now=NOW)
        assert result.error_code == ErrorCode.PERMISSION_DENIED

    def test_admin_can_cancel(self, lifecycle, admin_ctx, booked):
        assert lifecycle.cancel(admin_ctx, booked.id, now=NOW).success

    def test_unknown_session(self, lifecycle, student_ctx):
        assert lifecycle.cancel(student_ctx, "missing", now=NOW).error_code == ErrorCode.NOT_FOUND

    def test_release_can_be_disabled(self, lifecycle, services, config, mentor_ctx,
                                     student_ctx, booked):
        config.RELEASE_SLOT_ON_CANCEL = False
        assert lifecycle.cancel(student_ctx, booked.id, now=NOW).success
        assert services["slot_registry"].list_slots(mentor_ctx.user_id).data[0].booked is True


class TestOutcome:
    def test_mark_completed_once_ended(self, lifecycle, mentor_ctx, booked):
        result = lifecycle.mark_completed(mentor_ctx, booked.id, now=booked.end_time)
        assert result.success
        assert result.data.status == SessionStatus.COMPLETED

    def test_mark_before_end_is_not_eligible(self, lifecycle, mentor_ctx, booked):
        almost = booked.end_time - timedelta(milliseconds=1)
        for mark in (lifecycle.mark_completed, lifecycle.mark_no_show):
            assert mark(mentor_ctx, booked.id, now=almost).error_code == ErrorCode.NOT_ELIGIBLE

    def test_mark_no_show(self, lifecycle, mentor_ctx, booked):
        result = lifecycle.mark_no_show(mentor_ctx, booked.id,
                                        now=booked.end_time + timedelta(days=1))
        assert result.data.status == SessionStatus.NO_SHOW

    def test_only_the_mentor_records_outcome(self, lifecycle, student_ctx, admin_ctx, booked):
        after = booked.end_time + timedelta(minutes=1)
        assert lifecycle.mark_completed(student_ctx, booked.id, now=after).error_code == (
            ErrorCode.PERMISSION_DENIED
        )
        assert lifecycle.mark_no_show(admin_ctx, booked.id, now=after).error_code == (
            ErrorCode.PERMISSION_DENIED
        )

    def test_terminal_states_do_not_move(self, lifecycle, mentor_ctx, student_ctx, booked):
        after = booked.end_time + timedelta(minutes=1)
        assert lifecycle.mark_completed(mentor_ctx, booked.id, now=after).success
        assert lifecycle.mark_no_show(mentor_ctx, booked.id, now=after).error_code == (
            ErrorCode.NOT_ELIGIBLE
        )
        assert lifecycle.cancel(student_ctx, booked.id, now=NOW).error_code == (
            ErrorCode.SESSION_CLOSED
        )
        stored = lifecycle.get_session(student_ctx, booked.id).data
        assert stored.status == SessionStatus.COMPLETED

    def test_cancelled_session_cannot_be_marked(self, lifecycle, mentor_ctx, student_ctx,
                                                booked):
        assert lifecycle.cancel(student_ctx, booked.id, now=NOW).success
        after = booked.end_time + timedelta(hours=1)
        for mark in (lifecycle.mark_completed, lifecycle.mark_no_show):
            result = mark(mentor_ctx, booked.id, now=after)
            assert result.error_code == ErrorCode.NOT_ELIGIBLE
            assert result.status_code == 409
        stored = lifecycle.get_session(student_ctx, booked.id).data
        assert stored.status == SessionStatus.CANCELLED


class TestQueries:
    def test_list_sessions_is_scoped_by_active_role(self, lifecycle, services, mentor_ctx,
                                                    student_ctx, other_student_ctx,
                                                    admin_ctx, booked):
        assert [s.id for s in lifecycle.list_sessions(student_ctx).data] == [booked.id]
        assert [s.id for s in lifecycle.list_sessions(mentor_ctx).data] == [booked.id]
        assert lifecycle.list_sessions(other_student_ctx).data == []
        assert [s.id for s in lifecycle.list_sessions(admin_ctx).data] == [booked.id]

        as_student = services["auth_service"].switch_role(mentor_ctx, UserRole.STUDENT).data
        assert lifecycle.list_sessions(as_student).data == []

    def test_list_upcoming_skips_past_and_closed(self, lifecycle, student_ctx, booked):
        assert [s.id for s in lifecycle.list_upcoming(student_ctx, now=NOW).data] == [booked.id]
        later = booked.start_time + timedelta(minutes=1)
        assert lifecycle.list_upcoming(student_ctx, now=later).data == []

        lifecycle.cancel(student_ctx, booked.id, now=NOW)
        assert lifecycle.list_upcoming(student_ctx, now=NOW).data == []

    def test_get_session_requires_participant_or_admin(self, lifecycle, other_student_ctx,
                                                       admin_ctx, booked):
        assert lifecycle.get_session(other_student_ctx, booked.id).error_code == (
            ErrorCode.PERMISSION_DENIED
        )
        assert lifecycle.get_session(admin_ctx, booked.id).data.id == booked.id
