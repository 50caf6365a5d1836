"""
SQLite Document Store.

Local backend used when Supabase is not configured and in tests.  Every
collection lives in the single ``documents`` table (see
``mentorbook.schema``); document bodies are JSON text queried with the
JSON1 functions.  All statements run on one shared connection under the
``DatabaseManager`` write lock, and conditional writes are a single
``UPDATE ... WHERE revision = ?`` so only one racing writer can win.
"""

from __future__ import annotations

import json
import re
import sqlite3
import threading
from typing import Optional, Sequence

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

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_COMPARISONS: dict[FilterOp, str] = {
    FilterOp.EQ: "=",
    FilterOp.GT: ">",
    FilterOp.GTE: ">=",
    FilterOp.LT: "<",
    FilterOp.LTE: "<=",
}


def _json_path(field: str) -> str:
    if not _FIELD_RE.match(field):
        raise ValueError(f"Unsupported document field name: {field!r}")
    return f"$.{field}"


def _check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection!r}")


class SQLiteDocumentStore(DocumentStore):
    """Document store over the local ``documents`` table."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        write_lock: threading.RLock,
        logger: StructuredLogger,
    ) -> None:
        self._conn = conn
        self._lock = write_lock
        self._logger = logger

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, collection: str, document_id: str) -> Optional[Document]:
        _check_collection(collection)
        with self._lock:
            try:
                row = self._fetch_row(collection, document_id)
            except sqlite3.Error as exc:
                raise self._unavailable("get", collection, document_id, exc) from exc
        return self._to_document(row) if row else None

    def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Document]:
        _check_collection(collection)
        sql: list[str] = ["SELECT id, data, revision FROM documents WHERE collection = ?"]
        params: list[JsonValue] = [collection]

        for flt in filters:
            path = _json_path(flt.field)
            if flt.op == FilterOp.CONTAINS:
                sql.append(
                    "AND EXISTS (SELECT 1 FROM json_each(documents.data, ?) "
                    "WHERE json_each.value = ?)"
                )
                params.extend([path, flt.value])
            elif flt.value is None and flt.op == FilterOp.EQ:
                sql.append("AND json_extract(data, ?) IS NULL")
                params.append(path)
            else:
                sql.append(f"AND json_extract(data, ?) {_COMPARISONS[flt.op]} ?")
                params.extend([path, flt.value])

        if order_by:
            direction = "DESC" if descending else "ASC"
            sql.append(f"ORDER BY json_extract(data, ?) {direction}, id {direction}")
            params.append(_json_path(order_by))
        if limit is not None:
            sql.append("LIMIT ?")
            params.append(int(limit))

        with self._lock:
            try:
                rows = self._conn.execute(" ".join(sql), params).fetchall()
            except sqlite3.Error as exc:
                raise self._unavailable("query", collection, "", exc) from exc
        return [self._to_document(row) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self, collection: str, document_id: str, data: dict[str, JsonValue]
    ) -> Document:
        _check_collection(collection)
        with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT INTO documents (collection, id, data, revision)
                    VALUES (?, ?, ?, 1)
                    """,
                    (collection, document_id, json.dumps(data)),
                )
                self._conn.commit()
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                raise DocumentExistsError(
                    f"{collection}/{document_id} already exists",
                    collection,
                    document_id,
                ) from exc
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise self._unavailable("create", collection, document_id, exc) from exc
        return Document(id=document_id, data=data, revision=1)

    def set(
        self, collection: str, document_id: str, data: dict[str, JsonValue]
    ) -> Document:
        _check_collection(collection)
        with self._lock:
            try:
                self._conn.execute(
                    """
                    INSERT INTO documents (collection, id, data, revision)
                    VALUES (?, ?, ?, 1)
                    ON CONFLICT(collection, id) DO UPDATE
                    SET data = excluded.data,
                        revision = documents.revision + 1,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (collection, document_id, json.dumps(data)),
                )
                self._conn.commit()
                row = self._fetch_row(collection, document_id)
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise self._unavailable("set", collection, document_id, exc) from exc
        return self._to_document(row)

    def update(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, JsonValue],
        expected_revision: Optional[int] = None,
    ) -> Document:
        _check_collection(collection)
        with self._lock:
            try:
                row = self._fetch_row(collection, document_id)
                if row is None:
                    raise DocumentNotFoundError(
                        f"{collection}/{document_id} does not exist",
                        collection,
                        document_id,
                    )
                current = self._to_document(row)
                if expected_revision is not None and current.revision != expected_revision:
                    raise RevisionConflictError(collection, document_id, expected_revision)

                merged: dict[str, JsonValue] = {**current.data, **fields}
                cursor = self._conn.execute(
                    """
                    UPDATE documents
                    SET data = ?, revision = revision + 1, updated_at = CURRENT_TIMESTAMP
                    WHERE collection = ? AND id = ? AND revision = ?
                    """,
                    (json.dumps(merged), collection, document_id, current.revision),
                )
                if cursor.rowcount != 1:
                    self._conn.rollback()
                    raise RevisionConflictError(collection, document_id, current.revision)
                self._conn.commit()
            except StoreError:
                raise
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise self._unavailable("update", collection, document_id, exc) from exc
        return Document(id=document_id, data=merged, revision=current.revision + 1)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _fetch_row(self, collection: str, document_id: str) -> Optional[sqlite3.Row]:
        return self._conn.execute(
            "SELECT id, data, revision FROM documents WHERE collection = ? AND id = ?",
            (collection, document_id),
        ).fetchone()

    @staticmethod
    def _to_document(row: sqlite3.Row) -> Document:
        return Document(id=row[0], data=json.loads(row[1]), revision=row[2])

    def _unavailable(
        self,
        operation: str,
        collection: str,
        document_id: str,
        exc: sqlite3.Error,
    ) -> StoreUnavailableError:
        self._logger.error(
            "SQLite %s failed for %s/%s: %s", operation, collection, document_id, exc
        )
        return StoreUnavailableError(
            f"Local store {operation} failed: {exc}", collection, document_id
        )
