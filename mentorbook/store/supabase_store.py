"""
Supabase Document Store.

Cloud backend.  Each collection is a PostgREST table with three columns::

    id        text primary key
    data      jsonb not null
    revision  integer not null default 1

Document fields are addressed with JSON operators (``data->>startTime``).
A conditional write is a single ``PATCH ... WHERE id = ? AND revision = ?``;
an empty result means another writer bumped the revision first.

Any exception raised by the client (network failure, timeout, PostgREST
error) surfaces as :class:`StoreUnavailableError`, except a unique
violation on insert which becomes :class:`DocumentExistsError`.
"""

from __future__ import annotations

import json
from typing import Callable, Optional, Sequence, TypeVar

from supabase import Client as SupabaseClient

from mentorbook.logger import StructuredLogger
from mentorbook.store.base import (
    COLLECTIONS,
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
from mentorbook.utils.string_helpers import JsonValue

T = TypeVar("T")

_COLUMNS: str = "id, data, revision"
_UNIQUE_VIOLATION: str = "23505"
# Unconditional set/update retry their own CAS when they lose a race.
_MAX_WRITE_ATTEMPTS: int = 10


def _filter_text(value: JsonValue) -> str:
    """Render *value* the way ``data->>field`` renders it as text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SupabaseDocumentStore(DocumentStore):
    """Document store over Supabase PostgREST tables."""

    def __init__(self, client: SupabaseClient, logger: StructuredLogger) -> None:
        self._client = client
        self._logger = logger

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, collection: str, document_id: str) -> Optional[Document]:
        def _op() -> Optional[Document]:
            response = (
                self._table(collection)
                .select(_COLUMNS)
                .eq("id", document_id)
                .limit(1)
                .execute()
            )
            rows = response.data or []
            return self._to_document(rows[0]) if rows else None

        return self._call(_op, "get", collection, document_id)

    def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Document]:
        def _op() -> list[Document]:
            request = self._table(collection).select(_COLUMNS)
            for flt in filters:
                if flt.op == FilterOp.CONTAINS:
                    request = request.filter(
                        f"data->{flt.field}", "cs", json.dumps([flt.value])
                    )
                elif flt.value is None and flt.op == FilterOp.EQ:
                    request = request.is_(f"data->>{flt.field}", "null")
                else:
                    column = f"data->>{flt.field}"
                    request = getattr(request, flt.op.value)(column, _filter_text(flt.value))
            if order_by:
                request = request.order(f"data->>{order_by}", desc=descending)
            if limit is not None:
                request = request.limit(limit)
            response = request.execute()
            return [self._to_document(row) for row in response.data or []]

        return self._call(_op, "query", collection, "")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self, collection: str, document_id: str, data: dict[str, JsonValue]
    ) -> Document:
        def _op() -> Document:
            try:
                response = (
                    self._table(collection)
                    .insert({"id": document_id, "data": data, "revision": 1})
                    .execute()
                )
            except Exception as exc:
                if getattr(exc, "code", None) == _UNIQUE_VIOLATION or "duplicate key" in str(exc):
                    raise DocumentExistsError(
                        f"{collection}/{document_id} already exists",
                        collection,
                        document_id,
                    ) from exc
                raise
            rows = response.data or []
            return self._to_document(rows[0]) if rows else Document(id=document_id, data=data)

        return self._call(_op, "create", collection, document_id)

    def set(
        self, collection: str, document_id: str, data: dict[str, JsonValue]
    ) -> Document:
        for _ in range(_MAX_WRITE_ATTEMPTS):
            current = self.get(collection, document_id)
            try:
                if current is None:
                    return self.create(collection, document_id, data)
                return self._swap(collection, document_id, data, current.revision)
            except (DocumentExistsError, RevisionConflictError):
                continue
        raise StoreUnavailableError(
            f"set on {collection}/{document_id} kept losing to concurrent writers",
            collection,
            document_id,
        )

    def update(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, JsonValue],
        expected_revision: Optional[int] = None,
    ) -> Document:
        for _ in range(_MAX_WRITE_ATTEMPTS):
            current = self.get(collection, document_id)
            if current is None:
                raise DocumentNotFoundError(
                    f"{collection}/{document_id} does not exist",
                    collection,
                    document_id,
                )
            if expected_revision is not None and current.revision != expected_revision:
                raise RevisionConflictError(collection, document_id, expected_revision)
            try:
                return self._swap(
                    collection, document_id, {**current.data, **fields}, current.revision
                )
            except RevisionConflictError:
                if expected_revision is not None:
                    raise
        raise StoreUnavailableError(
            f"update on {collection}/{document_id} kept losing to concurrent writers",
            collection,
            document_id,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _swap(
        self,
        collection: str,
        document_id: str,
        data: dict[str, JsonValue],
        revision: int,
    ) -> Document:
        """Replace the body only if the stored revision is still *revision*."""
        def _op() -> Document:
            response = (
                self._table(collection)
                .update({"data": data, "revision": revision + 1})
                .eq("id", document_id)
                .eq("revision", revision)
                .execute()
            )
            rows = response.data or []
            if not rows:
                raise RevisionConflictError(collection, document_id, revision)
            return self._to_document(rows[0])

        return self._call(_op, "update", collection, document_id)

    def _table(self, collection: str):
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection!r}")
        return self._client.table(collection)

    @staticmethod
    def _to_document(row: dict[str, JsonValue]) -> Document:
        data = row.get("data") or {}
        if isinstance(data, str):
            data = json.loads(data)
        return Document(id=str(row["id"]), data=data, revision=int(row.get("revision") or 1))

    def _call(
        self,
        op: Callable[[], T],
        operation: str,
        collection: str,
        document_id: str,
    ) -> T:
        try:
            return op()
        except (StoreError, ValueError):
            raise
        except Exception as exc:
            self._logger.error(
                "Supabase %s failed for %s/%s: %s",
                operation,
                collection,
                document_id,
                exc,
            )
            raise StoreUnavailableError(
                f"Remote store {operation} failed: {exc}", collection, document_id
            ) from exc
