"""
Identity Provider.

Wraps the external authentication service behind a small interface so the
account service never touches a vendor SDK directly.  The production
implementation delegates to ``supabase.auth`` (GoTrue); tests inject an
in-memory fake.

Errors are classified the same way for every call: network failures
become :class:`UnavailableError`, known GoTrue messages are matched
against ``SUPABASE_ERROR_MAP``, and anything unrecognised is reported as
unavailable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from supabase import Client as SupabaseClient

from mentorbook.exceptions import (
    ConflictError,
    ErrorCode,
    MentorbookError,
    PermissionDeniedError,
    UnavailableError,
)
from mentorbook.logger import StructuredLogger
from mentorbook.models.auth_models import SUPABASE_ERROR_MAP, Identity

IdentityListener = Callable[[Optional[Identity]], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(ABC):
    """Opaque authentication backend."""

    @abstractmethod
    def sign_up(self, email: str, password: str, display_name: str) -> Identity:
        """Create a credential and return the new identity."""

    @abstractmethod
    def sign_in(self, email: str, password: str) -> Identity:
        """Verify credentials and return the identity."""

    @abstractmethod
    def sign_out(self) -> None:
        """End the provider session."""

    @abstractmethod
    def current_identity(self) -> Optional[Identity]:
        """The identity of the live provider session, if any."""

    @abstractmethod
    def subscribe(self, listener: IdentityListener) -> Unsubscribe:
        """Call *listener* on every sign-in / sign-out; returns an unsubscribe handle."""


class SupabaseIdentityProvider(IdentityProvider):
    """Identity provider backed by ``supabase.auth``."""

    def __init__(self, client: SupabaseClient, logger: StructuredLogger) -> None:
        self._client = client
        self._logger = logger

    def sign_up(self, email: str, password: str, display_name: str) -> Identity:
        try:
            response = self._client.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": {"full_name": display_name}},
            })
        except Exception as exc:
            raise self._classify(exc, "sign_up") from exc
        if response.user is None:
            raise UnavailableError("Registration could not be completed. Please try again later.")
        return Identity(id=response.user.id, email=response.user.email or email)

    def sign_in(self, email: str, password: str) -> Identity:
        try:
            response = self._client.auth.sign_in_with_password({
                "email": email,
                "password": password,
            })
        except Exception as exc:
            raise self._classify(exc, "sign_in") from exc
        if response.user is None:
            raise PermissionDeniedError(
                "Incorrect email or password.", code=ErrorCode.INVALID_CREDENTIALS
            )
        return Identity(id=response.user.id, email=response.user.email or email)

    def sign_out(self) -> None:
        try:
            self._client.auth.sign_out()
        except Exception as exc:
            raise self._classify(exc, "sign_out") from exc

    def current_identity(self) -> Optional[Identity]:
        try:
            session = self._client.auth.get_session()
        except Exception as exc:
            raise self._classify(exc, "current_identity") from exc
        if session is None or session.user is None:
            return None
        return Identity(id=session.user.id, email=session.user.email)

    def subscribe(self, listener: IdentityListener) -> Unsubscribe:
        def _on_change(event: object, session: object) -> None:
            user = getattr(session, "user", None) if session is not None else None
            listener(Identity(id=user.id, email=user.email) if user is not None else None)

        subscription = self._client.auth.on_auth_state_change(_on_change)
        return subscription.unsubscribe

    def _classify(self, exc: Exception, operation: str) -> MentorbookError:
        """Map a GoTrue or network exception to a domain error."""
        if isinstance(exc, (ConnectionError, TimeoutError)):
            self._logger.warning(
                "Network error during %s: %s", operation, exc,
                extra={"event": "AUTH_NETWORK_ERROR"},
            )
            return UnavailableError(
                "Cannot reach the authentication server. Check your connection."
            )

        error_str = str(exc).lower()
        for code_key, (error_code, human_message) in SUPABASE_ERROR_MAP.items():
            if code_key in error_str:
                self._logger.warning(
                    "Auth error during %s (%s): %s", operation, code_key, exc,
                    extra={"event": "AUTH_FAILED", "error_code": code_key},
                )
                if error_code == ErrorCode.EMAIL_ALREADY_EXISTS:
                    return ConflictError(human_message, code=error_code)
                return PermissionDeniedError(human_message, code=error_code)

        self._logger.warning(
            "Unknown auth error during %s: %s", operation, exc,
            extra={"event": "AUTH_FAILED", "error_code": "unknown"},
        )
        return UnavailableError("Authentication is temporarily unavailable. Please try again later.")
