import logging

import pytest

from mentorbook.schema import CURRENT_SCHEMA_VERSION, initialize_schema
from mentorbook.store import (
    MENTORS,
    SESSIONS,
    USERS,
    DocumentExistsError,
    DocumentNotFoundError,
    FieldFilter,
    FilterOp,
    RevisionConflictError,
)


def test_create_then_get(store):
    created = store.create(USERS, "u1", {"name": "Asha", "roles": ["student"]})
    assert created.revision == 1
    fetched = store.get(USERS, "u1")
    assert fetched.data == {"name": "Asha", "roles": ["student"]}
    assert fetched.revision == 1
    assert store.get(USERS, "missing") is None


def test_collections_are_isolated(store):
    store.create(USERS, "same-id", {"kind": "user"})
    store.create(MENTORS, "same-id", {"kind": "mentor"})
    assert store.get(USERS, "same-id").data["kind"] == "user"
    assert store.get(MENTORS, "same-id").data["kind"] == "mentor"


def test_create_rejects_duplicate_id(store):
    store.create(USERS, "u1", {})
    with pytest.raises(DocumentExistsError):
        store.create(USERS, "u1", {})


def test_unknown_collection_is_rejected(store):
    with pytest.raises(ValueError):
        store.get("payments", "x")


def test_update_merges_fields_and_bumps_revision(store):
    store.create(USERS, "u1", {"name": "Asha", "sessionCount": 0})
    updated = store.update(USERS, "u1", {"sessionCount": 1}, expected_revision=1)
    assert updated.revision == 2
    assert store.get(USERS, "u1").data == {"name": "Asha", "sessionCount": 1}


def test_update_with_stale_revision_conflicts(store):
    store.create(USERS, "u1", {"sessionCount": 0})
    store.update(USERS, "u1", {"sessionCount": 1}, expected_revision=1)
    with pytest.raises(RevisionConflictError):
        store.update(USERS, "u1", {"sessionCount": 2}, expected_revision=1)
    assert store.get(USERS, "u1").data["sessionCount"] == 1


def test_update_missing_document(store):
    with pytest.raises(DocumentNotFoundError):
        store.update(USERS, "ghost", {"a": 1})


def test_set_creates_then_replaces(store):
    assert store.set(USERS, "u1", {"a": 1}).revision == 1
    replaced = store.set(USERS, "u1", {"b": 2})
    assert replaced.revision == 2
    assert replaced.data == {"b": 2}


def test_query_filters_order_and_limit(store):
    store.create(SESSIONS, "s1", {"studentId": "u1", "status": "scheduled",
                                  "startTime": "2025-01-11T10:00:00.000Z"})
    store.create(SESSIONS, "s2", {"studentId": "u1", "status": "cancelled",
                                  "startTime": "2025-01-10T10:00:00.000Z"})
    store.create(SESSIONS, "s3", {"studentId": "u2", "status": "scheduled",
                                  "startTime": "2025-01-12T10:00:00.000Z"})

    mine = store.query(SESSIONS, [FieldFilter(field="studentId", value="u1")],
                       order_by="startTime")
    assert [d.id for d in mine] == ["s2", "s1"]

    upcoming = store.query(
        SESSIONS,
        [
            FieldFilter(field="status", value="scheduled"),
            FieldFilter(field="startTime", op=FilterOp.GTE, value="2025-01-11T10:00:00.000Z"),
        ],
        order_by="startTime",
        descending=True,
        limit=1,
    )
    assert [d.id for d in upcoming] == ["s3"]


def test_query_contains_on_array_field(store):
    store.create(USERS, "u1", {"name": "A", "roles": ["student"]})
    store.create(USERS, "u2", {"name": "B", "roles": ["mentor", "student"]})
    mentors = store.query(USERS, [FieldFilter(field="roles", op=FilterOp.CONTAINS, value="mentor")])
    assert [d.id for d in mentors] == ["u2"]


def test_query_rejects_unsafe_field_names(store):
    with pytest.raises(ValueError):
        store.query(USERS, [FieldFilter(field="name') OR 1=1 --", value="x")])


def test_schema_initialisation_is_idempotent(db, logger):
    initialize_schema(db.sqlite, logger)
    row = db.sqlite.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    assert row[0] == CURRENT_SCHEMA_VERSION
