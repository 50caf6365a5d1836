"""
Business Logic Services Package.

Services depend on the Repository layer for data access and receive the
caller's ``RequestContext`` explicitly on every operation.

The ``create_services()`` factory wires every repository and service
together, returning a typed dict that the calling layer can consume
without knowing the internal dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from mentorbook.auth import SessionManager
from mentorbook.config import AppConfig
from mentorbook.database import DatabaseManager
from mentorbook.logger import get_logger
from mentorbook.repositories.mentor_repository import MentorRepository
from mentorbook.repositories.session_repository import SessionRepository
from mentorbook.repositories.user_repository import UserRepository
from mentorbook.services.admin_service import AdminService
from mentorbook.services.auth_service import AuthService
from mentorbook.services.base_service import Clock
from mentorbook.services.booking import BookingService
from mentorbook.services.identity_provider import IdentityProvider, SupabaseIdentityProvider
from mentorbook.services.session_lifecycle import SessionLifecycleService
from mentorbook.services.slot_registry import SlotRegistryService
from mentorbook.utils.audit import AuditTrail
from mentorbook.utils.time_utils import utc_now


class ServiceContainer(TypedDict):
    """Typed container for all application services."""

    auth_service: AuthService
    slot_registry: SlotRegistryService
    booking_service: BookingService
    session_lifecycle: SessionLifecycleService
    admin_service: AdminService


def create_services(
    db: DatabaseManager,
    config: AppConfig,
    session: SessionManager,
    identity: Optional[IdentityProvider] = None,
    clock: Clock = utc_now,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    This is the single composition root for the service layer.

    Args:
        db: Initialised DatabaseManager; its document store backs every repository.
        config: Application configuration.
        session: Holder for the signed-in request context.
        identity: Identity provider.  Defaults to Supabase auth when online.
        clock: Source of "now" for every service.

    Raises:
        RuntimeError: No identity provider was given and Supabase is not configured.
    """
    logger = get_logger("mentorbook.services")
    audit = AuditTrail(
        logger=get_logger("mentorbook.audit"),
        conn=db.sqlite,
        write_lock=db.write_lock,
    )

    if identity is None:
        identity = SupabaseIdentityProvider(db.supabase, logger)

    # ------------------------------------------------------------------
    # 1. Repositories (data-access layer)
    # ------------------------------------------------------------------
    store = db.document_store
    user_repo = UserRepository(store=store, logger=logger)
    mentor_repo = MentorRepository(store=store, logger=logger)
    session_repo = SessionRepository(store=store, logger=logger)

    # ------------------------------------------------------------------
    # 2. Leaf services
    # ------------------------------------------------------------------
    slot_registry = SlotRegistryService(
        mentor_repo=mentor_repo,
        config=config,
        audit=audit,
        logger=logger,
        clock=clock,
    )
    auth_service = AuthService(
        identity=identity,
        user_repo=user_repo,
        mentor_repo=mentor_repo,
        session=session,
        config=config,
        audit=audit,
        logger=logger,
        clock=clock,
    )
    admin_service = AdminService(
        user_repo=user_repo,
        session_repo=session_repo,
        audit=audit,
        logger=logger,
        clock=clock,
    )

    # ------------------------------------------------------------------
    # 3. Orchestration services (depend on the slot registry)
    # ------------------------------------------------------------------
    booking_service = BookingService(
        slot_registry=slot_registry,
        user_repo=user_repo,
        session_repo=session_repo,
        config=config,
        audit=audit,
        logger=logger,
        clock=clock,
    )
    session_lifecycle = SessionLifecycleService(
        session_repo=session_repo,
        slot_registry=slot_registry,
        config=config,
        audit=audit,
        logger=logger,
        clock=clock,
    )

    return ServiceContainer(
        auth_service=auth_service,
        slot_registry=slot_registry,
        booking_service=booking_service,
        session_lifecycle=session_lifecycle,
        admin_service=admin_service,
    )
