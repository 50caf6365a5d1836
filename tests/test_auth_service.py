import pytest
from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError

from mentorbook.exceptions import ErrorCode, PermissionDeniedError
from mentorbook.models import SignupRequest, UserRole
from tests.conftest import COURSE


@pytest.fixture
def auth(services):
    return services["auth_service"]


@pytest.fixture
def users(services):
    return services["admin_service"]._user_repo


def _request(**overrides):
    fields = dict(name="Asha Student", email="Asha@Example.com ", password="secret123",
                  course=COURSE)
    fields.update(overrides)
    return SignupRequest(**fields)


class TestSignUp:
    def test_student_defaults(self, auth, users, session_manager):
        result = auth.sign_up(_request())
        assert result.success, result.error
        ctx = result.data
        assert ctx.active_role == UserRole.STUDENT
        assert session_manager.get_context() == ctx

        user = users.get_by_id(ctx.user_id)
        assert user.email == "asha@example.com"
        assert user.roles == [UserRole.STUDENT]
        assert (user.session_count, user.session_limit) == (0, 5)
        assert user.course == COURSE
        assert user.created_at is not None

    def test_mentor_also_gets_student_role_and_a_profile(self, auth, users, services):
        ctx = auth.sign_up(_request(email="maya@example.com", role=UserRole.MENTOR,
                                    verification_code="123")).data
        assert ctx.roles == (UserRole.MENTOR, UserRole.STUDENT)
        assert ctx.active_role == UserRole.MENTOR
        assert services["slot_registry"].list_slots(ctx.user_id).data == []

    def test_admin_without_course(self, auth, users):
        ctx = auth.sign_up(_request(email="ada@example.com", role=UserRole.ADMIN,
                                    course=None, verification_code="admin")).data
        assert set(ctx.roles) == {UserRole.ADMIN, UserRole.STUDENT}
        assert users.get_by_id(ctx.user_id).course is None

    @pytest.mark.parametrize("code", [None, "wrong"])
    def test_privileged_sign_up_needs_the_code(self, auth, identity, code):
        result = auth.sign_up(_request(role=UserRole.MENTOR, verification_code=code))
        assert result.error_code == ErrorCode.PERMISSION_DENIED
        assert identity.current_identity() is None

    def test_disabled_code_blocks_sign_up(self, auth, config):
        config.MENTOR_SIGNUP_CODE = SecretStr("")
        result = auth.sign_up(_request(role=UserRole.MENTOR, verification_code=""))
        assert result.error_code == ErrorCode.PERMISSION_DENIED

    def test_student_needs_a_known_course(self, auth):
        assert auth.sign_up(_request(course=None)).error_code == ErrorCode.INVALID_INPUT
        assert auth.sign_up(_request(course="Basket Weaving")).error_code == ErrorCode.INVALID_INPUT

    def test_short_password(self, auth):
        result = auth.sign_up(_request(password="123"))
        assert result.error_code == ErrorCode.INVALID_INPUT
        assert result.status_code == 400

    def test_duplicate_email(self, auth):
        assert auth.sign_up(_request()).success
        again = auth.sign_up(_request())
        assert again.error_code == ErrorCode.EMAIL_ALREADY_EXISTS

    def test_malformed_email_fails_form_validation(self):
        with pytest.raises(PydanticValidationError):
            _request(email="not-an-email")


class TestSignInOut:
    def test_sign_in_restores_stored_active_role(self, auth, session_manager, mentor_ctx):
        auth.switch_role(mentor_ctx, UserRole.STUDENT)
        auth.sign_out()

        ctx = auth.sign_in("MAYA@example.com", "secret123").data
        assert ctx.active_role == UserRole.STUDENT
        assert ctx.roles == (UserRole.MENTOR, UserRole.STUDENT)
        assert session_manager.get_context() == ctx

    def test_wrong_password(self, auth, student_ctx):
        result = auth.sign_in("asha@example.com", "nope")
        assert result.error_code == ErrorCode.INVALID_CREDENTIALS
        assert result.status_code == 403

    def test_sign_out_clears_context(self, auth, identity, session_manager, student_ctx):
        assert auth.sign_out().success
        assert identity.sign_out_calls == 1
        assert not session_manager.is_authenticated
        with pytest.raises(PermissionDeniedError) as excinfo:
            session_manager.get_context()
        assert excinfo.value.code == ErrorCode.NOT_AUTHENTICATED

    def test_restore_from_live_provider_session(self, auth, session_manager, student_ctx):
        session_manager.clear()
        restored = auth.restore().data
        assert restored.user_id == student_ctx.user_id

    def test_identity_changes_drive_the_context(self, auth, identity, session_manager,
                                                student_ctx):
        stop = auth.listen()
        assert identity.listener_count == 1

        identity.sign_out()
        assert not session_manager.is_authenticated

        identity.sign_in("asha@example.com", "secret123")
        assert session_manager.get_context().user_id == student_ctx.user_id

        stop()
        assert identity.listener_count == 0


class TestSwitchRole:
    def test_switch_keeps_granted_roles(self, auth, users, mentor_ctx, session_manager):
        ctx = auth.switch_role(mentor_ctx, UserRole.STUDENT).data
        assert ctx.active_role == UserRole.STUDENT
        assert session_manager.get_context() == ctx

        user = users.get_by_id(mentor_ctx.user_id)
        assert user.active_role == UserRole.STUDENT
        assert user.roles == [UserRole.MENTOR, UserRole.STUDENT]

    def test_cannot_switch_to_ungranted_role(self, auth, student_ctx):
        result = auth.switch_role(student_ctx, UserRole.ADMIN)
        assert result.error_code == ErrorCode.PERMISSION_DENIED

    def test_student_role_needs_a_course(self, auth, admin_ctx):
        result = auth.switch_role(admin_ctx, UserRole.STUDENT)
        assert result.error_code == ErrorCode.INVALID_INPUT
