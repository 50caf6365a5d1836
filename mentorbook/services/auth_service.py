"""
Account Service.

Sign-up, sign-in, sign-out and role switching.  Every outcome is a
``ServiceResult``; callers branch on ``error_code``, never on raw
exceptions.

The signed-in identity is held as a :class:`RequestContext` in the
injected ``SessionManager``.  The context is rebuilt from the ``users``
document whenever the identity provider reports a change, and the active
role it carries is persisted only as the default for the next sign-in.
"""

from __future__ import annotations

import secrets
from typing import Optional

from pydantic import SecretStr

from mentorbook.auth import SessionManager
from mentorbook.config import AppConfig
from mentorbook.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from mentorbook.logger import StructuredLogger
from mentorbook.models.auth_models import Identity, RequestContext, SignupRequest
from mentorbook.models.enums import UserRole
from mentorbook.models.mentor import MentorProfile
from mentorbook.models.service_models import ServiceResult
from mentorbook.models.user import User
from mentorbook.repositories.mentor_repository import MentorRepository
from mentorbook.repositories.user_repository import UserRepository
from mentorbook.services.base_service import BaseService, Clock
from mentorbook.services.identity_provider import IdentityProvider, Unsubscribe
from mentorbook.utils.audit import AuditTrail
from mentorbook.utils.time_utils import utc_now

MIN_PASSWORD_LENGTH: int = 6


def context_for(user: User, active_role: Optional[UserRole] = None) -> RequestContext:
    """Build the request context for *user*, defaulting to its stored active role."""
    return RequestContext(
        user_id=user.id,
        name=user.name,
        roles=tuple(user.roles),
        active_role=active_role or user.active_role,
    )


class AuthService(BaseService):
    """Service layer for accounts and the signed-in context."""

    def __init__(
        self,
        identity: IdentityProvider,
        user_repo: UserRepository,
        mentor_repo: MentorRepository,
        session: SessionManager,
        config: AppConfig,
        audit: AuditTrail,
        logger: StructuredLogger,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(logger, clock)
        self._identity = identity
        self._user_repo = user_repo
        self._mentor_repo = mentor_repo
        self._session = session
        self._config = config
        self._audit = audit
        self._unsubscribe: Optional[Unsubscribe] = None

    # ==================================================================
    # Registration
    # ==================================================================

    def sign_up(self, request: SignupRequest) -> ServiceResult[RequestContext]:
        """Create the credential, the ``users`` record and, for mentors,
        the ``mentors`` record; then sign the new user in.

        Mentor and admin sign-ups must present the matching verification
        code and are also granted the student role.
        """
        def _sign_up() -> RequestContext:
            self._validate_signup(request)
            identity = self._identity.sign_up(
                request.email, request.password.get_secret_value(), request.name
            )

            roles = [request.role]
            if request.role != UserRole.STUDENT:
                roles.append(UserRole.STUDENT)

            user = self._user_repo.create(User(
                id=identity.id,
                name=request.name,
                email=request.email,
                roles=roles,
                active_role=request.role,
                course=request.course,
                created_at=self._now(),
                session_count=0,
                session_limit=self._config.DEFAULT_SESSION_LIMIT,
            ))
            if request.role == UserRole.MENTOR:
                self._mentor_repo.create(MentorProfile(
                    id=identity.id,
                    name=request.name,
                    email=request.email,
                    course=request.course,
                ))

            ctx = context_for(user)
            self._session.set_context(ctx)
            self._audit.record(
                action="SIGN_UP",
                entity_type="User",
                entity_id=user.id,
                user_id=user.id,
                details={"role": request.role.value, "course": request.course},
            )
            self._logger.info(
                "User registered: %s (%s).", user.name, user.email,
                extra={"event": "REGISTER", "user_id": user.id},
            )
            return ctx

        return self._run("sign_up", _sign_up)

    def _validate_signup(self, request: SignupRequest) -> None:
        if len(request.password.get_secret_value()) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
                field="password",
            )

        if request.role in (UserRole.STUDENT, UserRole.MENTOR):
            if not request.course:
                raise ValidationError("Please choose a course.", field="course")
            if self._config.COURSES and request.course not in self._config.COURSES:
                raise ValidationError(
                    f"Unknown course '{request.course}'.", field="course"
                )

        expected: Optional[SecretStr] = {
            UserRole.MENTOR: self._config.MENTOR_SIGNUP_CODE,
            UserRole.ADMIN: self._config.ADMIN_SIGNUP_CODE,
        }.get(request.role)
        if expected is not None:
            supplied = request.verification_code.get_secret_value() if request.verification_code else ""
            secret = expected.get_secret_value()
            if not secret or not secrets.compare_digest(supplied, secret):
                raise PermissionDeniedError(
                    "Invalid verification code.",
                    details={"role": request.role.value},
                )

    # ==================================================================
    # Sign in / out
    # ==================================================================

    def sign_in(self, email: str, password: str) -> ServiceResult[RequestContext]:
        def _sign_in() -> RequestContext:
            identity = self._identity.sign_in(email.strip().lower(), password)
            user = self._user_repo.get_by_id(identity.id)
            if user is None:
                raise NotFoundError("User", identity.id)
            ctx = context_for(user)
            self._session.set_context(ctx)
            self._logger.info(
                "User authenticated: %s (role: %s)", user.name, ctx.active_role,
                extra={"event": "LOGIN", "user_id": user.id},
            )
            return ctx

        return self._run("sign_in", _sign_in)

    def sign_out(self) -> ServiceResult[None]:
        """Revoke the provider session and drop the local context.

        Local sign-out always happens, even when the provider call fails.
        """
        def _sign_out() -> None:
            previous = self._session.current
            try:
                self._identity.sign_out()
            except Exception as exc:
                self._logger.warning("Server-side sign_out failed: %s", exc)
            self._session.clear()
            self._logger.info(
                "User signed out.",
                extra={"event": "LOGOUT", "user_id": previous.user_id if previous else "unknown"},
            )

        return self._run("sign_out", _sign_out)

    def restore(self) -> ServiceResult[Optional[RequestContext]]:
        """Rebuild the context from the provider's live session, if any."""
        return self._run(
            "restore", lambda: self._apply_identity(self._identity.current_identity())
        )

    def handle_identity_change(
        self, identity: Optional[Identity]
    ) -> ServiceResult[Optional[RequestContext]]:
        """Provider callback: rebuild the context, or tear it down on sign-out."""
        return self._run("handle_identity_change", lambda: self._apply_identity(identity))

    def listen(self) -> Unsubscribe:
        """Subscribe to provider identity changes.  Idempotent."""
        if self._unsubscribe is None:
            self._unsubscribe = self._identity.subscribe(self.handle_identity_change)
        return self.stop_listening

    def stop_listening(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _apply_identity(self, identity: Optional[Identity]) -> Optional[RequestContext]:
        if identity is None:
            self._session.clear()
            return None
        user = self._user_repo.get_by_id(identity.id)
        if user is None:
            self._logger.warning(
                "Identity %s has no user record; staying signed out.", identity.id
            )
            self._session.clear()
            return None
        current = self._session.current
        active = (
            current.active_role
            if current is not None and current.user_id == user.id and current.active_role in user.roles
            else None
        )
        ctx = context_for(user, active)
        self._session.set_context(ctx)
        return ctx

    # ==================================================================
    # Role switching
    # ==================================================================

    def switch_role(
        self, ctx: RequestContext, role: UserRole
    ) -> ServiceResult[RequestContext]:
        """Operate under another granted role.  ``roles`` is never modified."""
        def _switch() -> RequestContext:
            user = self._user_repo.get_by_id(ctx.user_id)
            if user is None:
                raise NotFoundError("User", ctx.user_id)
            if not user.has_role(role):
                raise PermissionDeniedError(
                    f"Role '{role.value}' is not granted to this account.",
                    details={"user_id": user.id, "role": role.value},
                )
            if role == UserRole.STUDENT and not user.course:
                raise ValidationError(
                    "A course is required to act as a student.",
                    field="course",
                )

            self._user_repo.update_active_role(user.id, role)
            new_ctx = context_for(user).with_active_role(role)
            self._session.set_context(new_ctx)
            self._audit.record(
                action="SWITCH_ROLE",
                entity_type="User",
                entity_id=user.id,
                user_id=user.id,
                details={"from_role": ctx.active_role.value, "to_role": role.value},
            )
            return new_ctx

        return self._run("switch_role", _switch)
