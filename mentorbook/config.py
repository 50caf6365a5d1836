"""
Application Configuration.

Pydantic Settings model for the mentorbook service layer.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field, SecretStr, model_validator


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")

    # --- Local document store (used when Supabase is not configured) ---
    SQLITE_PATH: str = "mentorbook_local.db"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "mentorbook.log"  # empty string disables the file handler
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    # --- Booking rules ---
    DEFAULT_SESSION_LIMIT: int = Field(default=5, ge=1)
    CANCELLATION_WINDOW_HOURS: int = Field(default=5, ge=0)
    RELEASE_SLOT_ON_CANCEL: bool = True
    BOOKING_CAS_MAX_ATTEMPTS: int = Field(default=5, ge=1)

    # --- Meeting links ---
    MEETING_BASE_URL: str = "https://meet.jit.si"
    MEETING_ROOM_PREFIX: str = "mentorbook-session-"

    # --- Sign-up verification ---
    MENTOR_SIGNUP_CODE: SecretStr = SecretStr("")
    ADMIN_SIGNUP_CODE: SecretStr = SecretStr("")

    COURSES: list[str] = Field(default_factory=lambda: [
        "Coding",
        "Data Analytics",
        "Product Management",
    ])

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Pydantic silently falls back to defaults when ``.env`` is missing,
        so operators get told which store and which sign-up flows are live.
        """
        _log = logging.getLogger("mentorbook.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL:
            _log.warning(
                "SUPABASE_URL is empty; using the local SQLite document "
                "store at '%s'.",
                self.SQLITE_PATH,
            )

        if not self.MENTOR_SIGNUP_CODE.get_secret_value():
            _log.warning(
                "MENTOR_SIGNUP_CODE is empty; mentor sign-ups are disabled."
            )

        return self

    @property
    def supabase_enabled(self) -> bool:
        """``True`` when both Supabase URL and key are configured."""
        return bool(self.SUPABASE_URL and self.SUPABASE_ANON_KEY.get_secret_value())


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    On first call, creates an ``AppConfig`` instance (reading from ``.env``).
    Subsequent calls return the same instance.  Uses a check-lock-check
    pattern to avoid the lock overhead on the fast path while remaining
    thread-safe during first initialisation.

    Prefer direct constructor injection of ``AppConfig``; this factory
    exists for modules such as the logger that are created before the
    composition root runs.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance


def reset_config() -> None:
    """Drop the cached singleton so the next ``get_config()`` re-reads the environment."""
    global _config_instance
    with _config_lock:
        _config_instance = None
