"""
Document Store Package.

    from mentorbook.store import DocumentStore, SQLiteDocumentStore, SupabaseDocumentStore
"""

from mentorbook.store.base import (
    COLLECTIONS,
    MENTORS,
    SESSIONS,
    USERS,
    Document,
    DocumentExistsError,
    DocumentNotFoundError,
    DocumentStore,
    FieldFilter,
    FilterOp,
    RevisionConflictError,
    StoreError,
    StoreUnavailableError,
)
from mentorbook.store.sqlite_store import SQLiteDocumentStore
from mentorbook.store.supabase_store import SupabaseDocumentStore

__all__ = [
    "COLLECTIONS",
    "Document",
    "DocumentExistsError",
    "DocumentNotFoundError",
    "DocumentStore",
    "FieldFilter",
    "FilterOp",
    "MENTORS",
    "RevisionConflictError",
    "SESSIONS",
    "SQLiteDocumentStore",
    "StoreError",
    "StoreUnavailableError",
    "SupabaseDocumentStore",
    "USERS",
]
