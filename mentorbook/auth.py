"""
Request Context Holder.

Provides an injectable ``SessionManager`` that holds the current
:class:`~mentorbook.models.auth_models.RequestContext` for a signed-in
client.  Services never read it implicitly: callers fetch the context
once and pass it explicitly to each operation.

Usage::

    from mentorbook.auth import SessionManager
    from mentorbook.models import RequestContext, UserRole

    session = SessionManager()
    session.set_context(RequestContext(
        user_id="abc-123",
        name="Asha",
        roles=(UserRole.STUDENT,),
        active_role=UserRole.STUDENT,
    ))
    ctx = session.get_context()
"""

from __future__ import annotations

import threading
from typing import Optional

from mentorbook.exceptions import ErrorCode, PermissionDeniedError
from mentorbook.models.auth_models import RequestContext


class SessionManager:
    """Injectable holder for the current request context.

    The context is a frozen value; identity changes and role switches
    replace it wholesale under the lock, so readers never observe a
    half-updated identity.
    """

    def __init__(self) -> None:
        self._lock: threading.RLock = threading.RLock()
        self._context: Optional[RequestContext] = None

    def set_context(self, context: RequestContext) -> None:
        """Install *context* as the signed-in identity."""
        with self._lock:
            self._context = context

    def get_context(self) -> RequestContext:
        """Return the current context.

        Raises:
            PermissionDeniedError: If nobody is signed in.
        """
        with self._lock:
            if self._context is None:
                raise PermissionDeniedError(
                    "Please sign in to continue.",
                    code=ErrorCode.NOT_AUTHENTICATED,
                )
            return self._context

    @property
    def current(self) -> Optional[RequestContext]:
        """The current context, or ``None`` when signed out."""
        with self._lock:
            return self._context

    def clear(self) -> None:
        """Drop the context, ending the session."""
        with self._lock:
            self._context = None

    @property
    def is_authenticated(self) -> bool:
        """``True`` when a user is currently signed in."""
        with self._lock:
            return self._context is not None
