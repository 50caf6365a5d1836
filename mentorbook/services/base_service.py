"""
Base Service Class.

Standardizes the logger pattern, the injectable clock and the conversion
of raised errors into ``ServiceResult`` envelopes for all services.
Services extend this and add their own repository dependencies via __init__.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, TypeVar

from mentorbook.exceptions import ErrorCode, MentorbookError, PermissionDeniedError
from mentorbook.logger import StructuredLogger
from mentorbook.models.auth_models import RequestContext
from mentorbook.models.enums import UserRole
from mentorbook.models.service_models import ServiceResult
from mentorbook.store.base import StoreError
from mentorbook.utils.time_utils import ensure_utc, utc_now

T = TypeVar("T")

Clock = Callable[[], datetime]


class BaseService:
    """Base class for all service classes. Provides a logger and a clock."""

    def __init__(self, logger: StructuredLogger, clock: Clock = utc_now) -> None:
        self._logger: StructuredLogger = logger
        self._clock: Clock = clock

    def _now(self, now: Optional[datetime] = None) -> datetime:
        return ensure_utc(now) if now is not None else ensure_utc(self._clock())

    @staticmethod
    def _require_role(ctx: RequestContext, role: UserRole, action: str) -> None:
        if not ctx.acting_as(role):
            raise PermissionDeniedError(
                f"Only {role.value}s can {action}.",
                details={"user_id": ctx.user_id, "active_role": ctx.active_role.value},
            )

    def _run(self, operation_name: str, fn: Callable[[], T]) -> ServiceResult[T]:
        """Execute *fn* and wrap its outcome.

        Domain errors keep their code and status.  Store failures become
        ``UNAVAILABLE`` (503).  Anything else is logged with its traceback
        and returned as ``UNAVAILABLE`` (500).
        """
        try:
            return ServiceResult(success=True, data=fn())
        except MentorbookError as exc:
            self._logger.warning(
                "%s rejected: %s",
                operation_name,
                exc,
                extra={"error_code": exc.code.value},
            )
            return ServiceResult.from_error(exc)
        except StoreError as exc:
            self._logger.error("Store failure during %s: %s", operation_name, exc)
            return ServiceResult(
                success=False,
                error="The service is temporarily unavailable. Please try again.",
                error_code=ErrorCode.UNAVAILABLE,
                status_code=503,
            )
        except Exception as exc:
            self._logger.error(
                "Unexpected error during %s: %s", operation_name, exc, exc_info=True
            )
            return ServiceResult(
                success=False,
                error="An unexpected error occurred. Please try again later.",
                error_code=ErrorCode.UNAVAILABLE,
                status_code=500,
            )
