"""
Base Repository.

Provides shared infrastructure for all repositories:
- DocumentStore reference
- Logger reference
- Typed conversion between stored documents and pydantic records
"""

from __future__ import annotations

from typing import Generic, Optional, Sequence, TypeVar

from pydantic import ValidationError as PydanticValidationError

from mentorbook.logger import StructuredLogger
from mentorbook.models.base import DocumentModel
from mentorbook.store.base import Document, DocumentStore, FieldFilter
from mentorbook.utils.string_helpers import JsonValue

M = TypeVar("M", bound=DocumentModel)


class BaseRepository(Generic[M]):
    """Base class for all repositories. Receives dependencies via __init__."""

    COLLECTION: str = ""
    MODEL: type[M]

    def __init__(self, store: DocumentStore, logger: StructuredLogger) -> None:
        self._store = store
        self._logger = logger

    def get_by_id(self, document_id: str) -> Optional[M]:
        """Fetch one record, or ``None`` when absent."""
        document = self._store.get(self.COLLECTION, document_id)
        return self._to_model(document) if document else None

    def _find(
        self,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[M]:
        documents = self._store.query(
            self.COLLECTION,
            filters=filters,
            order_by=order_by,
            descending=descending,
            limit=limit,
        )
        return self._to_models(documents)

    def _create(self, record: M) -> M:
        document = self._store.create(self.COLLECTION, record.id, record.to_document_data())
        return self._to_model(document)

    def _update(
        self,
        document_id: str,
        fields: dict[str, JsonValue],
        expected_revision: Optional[int] = None,
    ) -> M:
        document = self._store.update(
            self.COLLECTION, document_id, fields, expected_revision=expected_revision
        )
        return self._to_model(document)

    def _to_model(self, document: Document) -> M:
        try:
            return self.MODEL.from_document(document)
        except PydanticValidationError:
            self._logger.error(
                "Malformed %s document %s", self.COLLECTION, document.id, exc_info=True
            )
            raise

    def _to_models(self, documents: list[Document]) -> list[M]:
        """Validate every document, skipping (and logging) malformed ones."""
        records: list[M] = []
        for document in documents:
            try:
                records.append(self.MODEL.from_document(document))
            except PydanticValidationError as exc:
                self._logger.warning(
                    "Skipping malformed %s document %s: %s",
                    self.COLLECTION,
                    document.id,
                    exc,
                )
        return records
