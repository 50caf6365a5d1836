"""
Document Model Base.

Shared pydantic configuration for every record persisted in the document
store: snake_case attributes, camelCase document keys, and the store-managed
``id`` / ``revision`` pair kept out of the document body.
"""

from __future__ import annotations

from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

from mentorbook.store.base import Document
from mentorbook.utils.string_helpers import JsonValue, to_camel_case

M = TypeVar("M", bound="DocumentModel")

_STORE_MANAGED: frozenset[str] = frozenset({"id", "revision"})


class DocumentModel(BaseModel):
    """Base class for ``users``, ``mentors`` and ``sessions`` records."""

    model_config = ConfigDict(
        alias_generator=to_camel_case,
        populate_by_name=True,
        from_attributes=True,
    )

    id: str
    revision: int = Field(default=0, ge=0)

    def to_document_data(self) -> dict[str, JsonValue]:
        """Document body in wire shape (camelCase keys, ISO instants)."""
        return self.model_dump(mode="json", by_alias=True, exclude=set(_STORE_MANAGED))

    @classmethod
    def from_document(cls: type[M], document: Document) -> M:
        """Validate a stored document into a typed record."""
        return cls.model_validate(
            {**document.data, "id": document.id, "revision": document.revision}
        )
