"""
Document Store Contract.

The booking services persist three collections (``users``, ``mentors``,
``sessions``) through this interface.  Each stored document carries an
integer ``revision`` maintained by the store: it starts at 1 and is bumped
on every write.  Conditional writes pass ``expected_revision`` and fail
with :class:`RevisionConflictError` when another writer got there first,
which is the compare-and-swap primitive the booking protocol relies on.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any, Optional, Sequence

from pydantic import BaseModel, Field

from mentorbook.utils.string_helpers import JsonValue

USERS: str = "users"
MENTORS: str = "mentors"
SESSIONS: str = "sessions"

COLLECTIONS: frozenset[str] = frozenset({USERS, MENTORS, SESSIONS})


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class StoreError(Exception):
    """Base class for document store failures."""

    def __init__(self, message: str, collection: str = "", document_id: str = "") -> None:
        self.collection = collection
        self.document_id = document_id
        super().__init__(message)


class DocumentNotFoundError(StoreError):
    pass


class DocumentExistsError(StoreError):
    pass


class RevisionConflictError(StoreError):
    """A conditional write lost the race."""

    def __init__(
        self,
        collection: str,
        document_id: str,
        expected_revision: int,
    ) -> None:
        self.expected_revision = expected_revision
        super().__init__(
            f"{collection}/{document_id} no longer at revision {expected_revision}",
            collection,
            document_id,
        )


class StoreUnavailableError(StoreError):
    """Timeout, network failure or backend error; the caller may retry."""


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------

class Document(BaseModel):
    """A stored document: id, JSON body and store-managed revision."""

    id: str
    data: dict[str, Any] = Field(default_factory=dict)
    revision: int = Field(default=1, ge=1)


class FilterOp(StrEnum):
    EQ = "eq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    CONTAINS = "contains"  # array field contains the value


class FieldFilter(BaseModel):
    """One predicate on a top-level document field."""

    field: str
    op: FilterOp = FilterOp.EQ
    value: Any = None

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------

class DocumentStore(ABC):
    """Abstract document store.  Implementations must be thread-safe."""

    @abstractmethod
    def get(self, collection: str, document_id: str) -> Optional[Document]:
        """Return the document, or ``None`` when it does not exist."""

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Document]:
        """Return documents matching every filter (logical AND)."""

    @abstractmethod
    def create(
        self, collection: str, document_id: str, data: dict[str, JsonValue]
    ) -> Document:
        """Insert a new document at revision 1.

        Raises :class:`DocumentExistsError` when the id is taken.
        """

    @abstractmethod
    def set(
        self, collection: str, document_id: str, data: dict[str, JsonValue]
    ) -> Document:
        """Create or fully replace a document unconditionally."""

    @abstractmethod
    def update(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, JsonValue],
        expected_revision: Optional[int] = None,
    ) -> Document:
        """Merge *fields* into the document body.

        When *expected_revision* is given the write only happens if the
        stored revision still matches; otherwise :class:`RevisionConflictError`
        is raised.  Raises :class:`DocumentNotFoundError` when absent.
        """

    def close(self) -> None:
        """Release backend resources.  Default is a no-op."""
