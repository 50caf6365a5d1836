"""
Centralized SQLite Schema Initialization.

Defines the canonical schema for the mentorbook local database and provides
a single entry-point -- :func:`initialize_schema` -- that creates all
required tables idempotently.  A lightweight ``schema_version`` table tracks
applied migrations so that later schema changes can be rolled forward
without data loss.

Migration Strategy
~~~~~~~~~~~~~~~~~~
- **Fresh databases** (version 0): all tables are created in one shot from
  :data:`_TABLE_DEFINITIONS`.
- **Existing databases** (version N > 0): only incremental migrations
  registered in :data:`_MIGRATIONS` are executed.
- The entire upgrade (migrations + version bump) is wrapped in a single
  SQLite transaction.  On failure the database rolls back to version N
  and the next startup retries.

Usage::

    import sqlite3
    from mentorbook.logger import StructuredLogger
    from mentorbook.schema import initialize_schema

    conn = sqlite3.connect("mentorbook_local.db")
    initialize_schema(conn, StructuredLogger(name="schema"))
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable

from mentorbook.logger import StructuredLogger

__all__ = ["CURRENT_SCHEMA_VERSION", "initialize_schema"]

CURRENT_SCHEMA_VERSION: int = 2

_TABLE_DEFINITIONS: list[str] = [
    # -- single-row version tracker -------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        version INTEGER NOT NULL,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # -- generic document store (users, mentors, sessions) --------------------
    """
    CREATE TABLE IF NOT EXISTS documents (
        collection TEXT NOT NULL,
        id TEXT NOT NULL,
        data TEXT NOT NULL DEFAULT '{}',
        revision INTEGER NOT NULL DEFAULT 1 CHECK (revision >= 1),
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (collection, id)
    )
    """,
    # -- persistent structured audit trail ------------------------------------
    """
    CREATE TABLE IF NOT EXISTS audit_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        action TEXT NOT NULL,
        entity_type TEXT NOT NULL,
        entity_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        details TEXT DEFAULT '{}',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_audit_log_entity ON audit_log (entity_type, entity_id)",
]


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the ``schema_version`` table if it does not yet exist."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            version INTEGER NOT NULL,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn.commit()


def _get_schema_version(conn: sqlite3.Connection) -> int:
    """Return the current schema version, or ``0`` if unset."""
    row = conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    return row[0] if row is not None else 0


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    """Upsert the single-row version tracker to *version*.

    Does **not** commit; the caller owns the transaction so that version
    updates are atomic with schema changes.
    """
    conn.execute(
        """
        INSERT INTO schema_version (id, version) VALUES (1, ?)
        ON CONFLICT(id) DO UPDATE SET version = excluded.version,
                                      applied_at = CURRENT_TIMESTAMP
        """,
        (version,),
    )


def _create_all_tables(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    for ddl in _TABLE_DEFINITIONS:
        conn.execute(ddl)
    logger.info(f"Created {len(_TABLE_DEFINITIONS)} schema objects.")


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(row[1] == column for row in rows)


def _migrate_v1_to_v2(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Add ``documents.updated_at`` and the audit entity index."""
    if not _column_exists(conn, "documents", "updated_at"):
        # SQLite rejects non-constant defaults in ALTER TABLE ADD COLUMN.
        conn.execute("ALTER TABLE documents ADD COLUMN updated_at TIMESTAMP")
        logger.info("Added documents.updated_at column.")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_log_entity ON audit_log (entity_type, entity_id)"
    )


_MIGRATIONS: dict[int, Callable[[sqlite3.Connection, StructuredLogger], None]] = {
    2: _migrate_v1_to_v2,
}


def _run_incremental_migrations(
    conn: sqlite3.Connection,
    logger: StructuredLogger,
    from_version: int,
    to_version: int,
) -> None:
    for version in range(from_version + 1, to_version + 1):
        migration = _MIGRATIONS.get(version)
        if migration is not None:
            logger.info(f"Applying migration to version {version}.")
            migration(conn, logger)


def initialize_schema(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Ensure the local SQLite database matches the current schema version.

    Workflow:
        1. Guarantee the ``schema_version`` table exists (separate commit).
        2. Read the stored version number (``0`` for a fresh database).
        3. If it equals or exceeds :data:`CURRENT_SCHEMA_VERSION`, return.
        4. Otherwise create everything (fresh) or run the pending
           migrations, bump the version and commit, all in one
           transaction.  On failure everything is rolled back.

    Called on every startup; fully idempotent.
    """
    _ensure_version_table(conn)
    current: int = _get_schema_version(conn)

    if current >= CURRENT_SCHEMA_VERSION:
        logger.info(f"Schema is up to date (version {current}).")
        return

    logger.info(
        f"Upgrading schema from version {current} "
        f"to {CURRENT_SCHEMA_VERSION} …"
    )

    try:
        if current == 0:
            _create_all_tables(conn, logger)
        else:
            _run_incremental_migrations(conn, logger, current, CURRENT_SCHEMA_VERSION)

        _set_schema_version(conn, CURRENT_SCHEMA_VERSION)
        conn.commit()
    except Exception:
        conn.rollback()
        logger.error(
            f"Schema migration failed; rolled back to version {current}."
        )
        raise

    logger.info(f"Schema initialised at version {CURRENT_SCHEMA_VERSION}.")
