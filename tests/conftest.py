"""
Shared fixtures.

Every test runs against a real SQLite document store in a temporary
directory; only the identity provider is faked.
"""

import logging
import os
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import SecretStr

# File logging off before any logger is built.
os.environ["LOG_FILE"] = ""
os.environ["SUPABASE_URL"] = ""

from mentorbook.auth import SessionManager
from mentorbook.config import AppConfig, reset_config
from mentorbook.database import DatabaseManager
from mentorbook.logger import StructuredLogger
from mentorbook.models import RequestContext, SignupRequest, UserRole
from mentorbook.services import create_services
from tests.fakes import FakeClock, FakeIdentityProvider

NOW = datetime(2025, 1, 10, 8, 0, tzinfo=timezone.utc)
COURSE = "Coding"


@pytest.fixture(autouse=True)
def _fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        SUPABASE_URL="",
        SUPABASE_ANON_KEY=SecretStr(""),
        LOG_FILE="",
        MENTOR_SIGNUP_CODE=SecretStr("123"),
        ADMIN_SIGNUP_CODE=SecretStr("admin"),
    )


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger(name="mentorbook.tests", level=logging.DEBUG, log_file="")


@pytest.fixture
def db(tmp_path, logger):
    manager = DatabaseManager(
        supabase_url="",
        supabase_key="",
        sqlite_path=tmp_path / "mentorbook_test.db",
        logger=logger,
    )
    yield manager
    manager.close()


@pytest.fixture
def store(db):
    return db.document_store


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def session_manager() -> SessionManager:
    return SessionManager()


@pytest.fixture
def services(db, config, session_manager, identity, clock):
    return create_services(db, config, session_manager, identity=identity, clock=clock)


def _sign_up(services, **fields) -> RequestContext:
    result = services["auth_service"].sign_up(SignupRequest(**fields))
    assert result.success, result.error
    return result.data


@pytest.fixture
def sign_up(services):
    """Factory: ``sign_up(name=..., email=..., ...)`` returning the new context."""
    def _factory(**fields) -> RequestContext:
        fields.setdefault("password", "secret123")
        return _sign_up(services, **fields)

    return _factory


@pytest.fixture
def student_ctx(sign_up) -> RequestContext:
    return sign_up(name="Asha Student", email="asha@example.com", course=COURSE)


@pytest.fixture
def other_student_ctx(sign_up) -> RequestContext:
    return sign_up(name="Ben Student", email="ben@example.com", course=COURSE)


@pytest.fixture
def mentor_ctx(sign_up) -> RequestContext:
    return sign_up(
        name="Maya Mentor",
        email="maya@example.com",
        role=UserRole.MENTOR,
        course=COURSE,
        verification_code="123",
    )


@pytest.fixture
def admin_ctx(sign_up) -> RequestContext:
    return sign_up(
        name="Ada Admin",
        email="ada@example.com",
        role=UserRole.ADMIN,
        verification_code="admin",
    )


@pytest.fixture
def slot(services, mentor_ctx):
    """A free one-hour slot starting a day after NOW."""
    start = NOW + timedelta(days=1, hours=2)
    result = services["slot_registry"].add_slot(
        mentor_ctx, mentor_ctx.user_id, start, start + timedelta(hours=1), now=NOW
    )
    assert result.success, result.error
    return result.data
