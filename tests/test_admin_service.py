from datetime import timedelta

import pytest

from mentorbook.exceptions import ErrorCode
from tests.conftest import NOW


@pytest.fixture
def admin(services):
    return services["admin_service"]


def test_requires_admin_role(admin, student_ctx):
    assert admin.list_users(student_ctx).error_code == ErrorCode.PERMISSION_DENIED
    assert admin.get_stats(student_ctx, now=NOW).error_code == ErrorCode.PERMISSION_DENIED
    result = admin.set_session_limit(student_ctx, student_ctx.user_id, 50)
    assert result.error_code == ErrorCode.PERMISSION_DENIED
    assert result.status_code == 403


def test_list_users(admin, admin_ctx, student_ctx, mentor_ctx):
    names = [u.name for u in admin.list_users(admin_ctx).data]
    assert names == ["Ada Admin", "Asha Student", "Maya Mentor"]


def test_set_session_limit(admin, admin_ctx, student_ctx):
    result = admin.set_session_limit(admin_ctx, student_ctx.user_id, 8)
    assert result.success
    assert result.data.session_limit == 8
    assert result.data.session_count == 0


@pytest.mark.parametrize("limit", [0, -3])
def test_limit_must_be_positive(admin, admin_ctx, student_ctx, limit):
    result = admin.set_session_limit(admin_ctx, student_ctx.user_id, limit)
    assert result.error_code == ErrorCode.INVALID_INPUT


def test_limit_for_unknown_user(admin, admin_ctx):
    assert admin.set_session_limit(admin_ctx, "ghost", 3).error_code == ErrorCode.NOT_FOUND


def test_stats(admin, services, admin_ctx, mentor_ctx, student_ctx, other_student_ctx, slot):
    booking = services["booking_service"]
    first = booking.book_session(student_ctx, mentor_ctx.user_id, slot.id, now=NOW).data
    later_slot = services["slot_registry"].add_slot(
        mentor_ctx, mentor_ctx.user_id, NOW + timedelta(days=3),
        NOW + timedelta(days=3, hours=1), now=NOW,
    ).data
    booking.book_session(other_student_ctx, mentor_ctx.user_id, later_slot.id, now=NOW)
    services["session_lifecycle"].cancel(student_ctx, first.id, now=NOW)

    stats = admin.get_stats(admin_ctx, now=NOW).data
    # Mentors and admins are also granted the student role.
    assert stats.total_students == 4
    assert stats.total_mentors == 1
    assert stats.total_sessions == 2
    assert stats.upcoming_sessions == 1
