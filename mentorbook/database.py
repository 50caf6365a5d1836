"""
Database Abstraction Layer.

Owns the raw connections for mentorbook:

- **Supabase (cloud PostgreSQL)**: the authoritative store when
  ``SUPABASE_URL`` and ``SUPABASE_ANON_KEY`` are configured.  Its
  ``auth`` client also backs the identity provider.

- **SQLite (local)**: always opened.  It holds the audit log and, when
  Supabase is not configured, the documents themselves.

This module contains no query logic; data access goes through the
document store (:attr:`DatabaseManager.document_store`) and the
repositories built on top of it.

Usage (dependency injection at app startup)::

    from mentorbook.database import DatabaseManager
    from mentorbook.logger import StructuredLogger

    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.SQLITE_PATH),
        logger=StructuredLogger(name="database"),
    )
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Optional

from supabase import create_client, Client as SupabaseClient

from mentorbook.logger import StructuredLogger
from mentorbook.schema import initialize_schema
from mentorbook.store.base import DocumentStore
from mentorbook.store.sqlite_store import SQLiteDocumentStore
from mentorbook.store.supabase_store import SupabaseDocumentStore


class DatabaseManager:
    """Manages the local SQLite connection and the optional Supabase client.

    Fully configured at construction time.  When ``supabase_url`` or
    ``supabase_key`` is empty the Supabase client is **not** created and
    documents are kept in the local SQLite store.

    Parameters
    ----------
    supabase_url:
        The Supabase project URL.  May be empty for local mode.
    supabase_key:
        The Supabase anonymous key.  May be empty for local mode.
    sqlite_path:
        Filesystem path for the local SQLite database file, or
        ``":memory:"``.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        sqlite_path: Path,
        logger: StructuredLogger,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()
        self._closed: bool = False

        # --- Supabase (optional) ---
        self._supabase: Optional[SupabaseClient] = None
        if supabase_url and supabase_key:
            try:
                self._supabase = create_client(supabase_url, supabase_key)
                self._logger.info("Supabase client initialized.")
            except (ValueError, TypeError) as exc:
                self._logger.warning(
                    "Supabase credential format error: %s. Using the local store.",
                    exc,
                )
            except Exception as exc:
                self._logger.error(
                    "Unexpected Supabase initialization failure: %s. "
                    "Using the local store.",
                    exc,
                    exc_info=True,
                )
        else:
            self._logger.warning(
                "Supabase credentials not configured; using the local store."
            )

        # --- SQLite (always required) ---
        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(sqlite_path)
        with self._write_lock:
            initialize_schema(self._sqlite_conn, self._logger)

        self._document_store: DocumentStore
        if self._supabase is not None:
            self._document_store = SupabaseDocumentStore(self._supabase, self._logger)
        else:
            self._document_store = SQLiteDocumentStore(
                self._sqlite_conn, self._write_lock, self._logger
            )

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def supabase(self) -> SupabaseClient:
        """Return the initialised Supabase client.

        Raises
        ------
        RuntimeError
            If the Supabase client was not initialised (local mode).
        """
        if self._supabase is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "The application is running against the local store."
            )
        return self._supabase

    @property
    def is_online(self) -> bool:
        """``True`` when the Supabase client is available."""
        return self._supabase is not None

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Return the initialised SQLite connection."""
        return self._sqlite_conn

    @property
    def write_lock(self) -> threading.RLock:
        """Return the lock serialising every statement on the SQLite connection::

            with db.write_lock:
                db.sqlite.execute("INSERT ...")
                db.sqlite.commit()
        """
        return self._write_lock

    @property
    def document_store(self) -> DocumentStore:
        """Supabase store when online, local SQLite store otherwise."""
        return self._document_store

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the local SQLite connection.

        Safe to call multiple times; subsequent calls are no-ops.
        """
        with self._write_lock:
            if self._closed:
                return
            try:
                self._sqlite_conn.close()
                self._logger.info("SQLite connection closed.")
            except sqlite3.ProgrammingError:
                pass
            self._closed = True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _connect_sqlite(self, path: Path) -> sqlite3.Connection:
        """Open (or create) the SQLite database.

        Raises
        ------
        PermissionError
            If the OS denies access to the database file or its directory.
        """
        try:
            conn = sqlite3.connect(str(path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            if str(path) != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL;")
            self._logger.info("SQLite database opened at %s", path)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the local database at '{path}'. "
                "The file or its directory may be read-only or locked by "
                "another process.  Please check file permissions and try again."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc
