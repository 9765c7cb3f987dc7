"""
Unit tests for the SQLite memory backend.
"""

import sqlite3

import numpy as np
import pytest

from memstore.errors import ConflictError, InternalError, NotFoundError, UnavailableError
from memstore.memory.schemas import Embedding, Message, MessageMetadata, Summary
from memstore.persist.sqlite_store import SQLiteBackend


def test_backend_requires_start(tmp_path):
    """Operations before start() are unavailable, not crashes."""
    b = SQLiteBackend(tmp_path / "m.db")
    with pytest.raises(UnavailableError):
        b.get_messages("s1")


def test_start_creates_parent_dirs(tmp_path):
    db_path = tmp_path / "nested" / "dir" / "m.db"
    with SQLiteBackend(db_path) as b:
        assert db_path.exists()
        assert b.get_session("s1") is None


def test_in_memory_database():
    with SQLiteBackend(":memory:") as b:
        b.append_messages("s1", [Message(role="human", content="hi")])
        assert len(b.get_messages("s1")) == 1


def test_start_and_close_are_idempotent(tmp_path):
    b = SQLiteBackend(tmp_path / "m.db")
    b.start()
    b.start()
    b.close()
    b.close()


def test_append_assigns_sequences(backend, make_messages):
    first = backend.append_messages("s1", make_messages("a", "b"))
    second = backend.append_messages("s1", make_messages("c"))

    assert [m.sequence for m in first] == [1, 2]
    assert [m.sequence for m in second] == [3]
    assert all(m.session_id == "s1" for m in first + second)

    stored = backend.get_messages("s1")
    assert [m.content for m in stored] == ["a", "b", "c"]


def test_sequences_are_per_session(backend, make_messages):
    backend.append_messages("s1", make_messages("a", "b"))
    other = backend.append_messages("s2", make_messages("x"))
    assert other[0].sequence == 1


def test_get_messages_last_n_is_chronological(backend, make_messages):
    backend.append_messages("s1", make_messages("m1", "m2", "m3", "m4"))

    last_two = backend.get_messages("s1", last_n=2)
    assert [m.content for m in last_two] == ["m3", "m4"]

    after = backend.get_messages("s1", after_sequence=2)
    assert [m.content for m in after] == ["m3", "m4"]


def test_duplicate_uuid_rolls_back_batch(backend):
    m1 = Message(role="human", content="one")
    backend.append_messages("s1", [m1])

    with pytest.raises(ConflictError):
        backend.append_messages("s1", [Message(role="ai", content="two"), m1])

    assert [m.content for m in backend.get_messages("s1")] == ["one"]


def test_metadata_roundtrip(backend):
    msg = Message(role="human", content="hi", metadata={"channel": "web", "tags": ["a", "b"]})
    backend.append_messages("s1", [msg])

    stored = backend.get_message("s1", msg.uuid)
    assert stored.metadata == {"channel": "web", "tags": ["a", "b"]}


def test_delete_session_soft_deletes(backend, make_messages):
    committed = backend.append_messages("s1", make_messages("a", "b", "c"))

    assert backend.delete_session("s1") is True
    assert backend.delete_session("s1") is False
    assert backend.get_session("s1") is None
    assert backend.get_messages("s1") == []

    # Still resolvable when asked for explicitly
    ghost = backend.get_message("s1", committed[0].uuid, include_deleted=True)
    assert ghost is not None and ghost.deleted
    assert backend.get_message("s1", committed[0].uuid) is None


def test_recreated_session_gets_new_generation(backend, make_messages):
    backend.append_messages("s1", make_messages("a", "b", "c"))
    assert backend.get_session("s1").generation == 1

    backend.delete_session("s1")
    fresh = backend.append_messages("s1", make_messages("new"))

    assert backend.get_session("s1").generation == 2
    # Sequence numbers are never reused across generations
    assert fresh[0].sequence == 4
    assert [m.content for m in backend.get_messages("s1")] == ["new"]


def test_summary_newest_wins(backend, make_messages):
    msgs = backend.append_messages("s1", make_messages("a", "b", "c"))

    backend.put_summary("s1", Summary(content="later", summary_point_uuid=msgs[1].uuid, created_at=200.0))
    backend.put_summary("s1", Summary(content="earlier", summary_point_uuid=msgs[0].uuid, created_at=100.0))

    assert backend.get_summary("s1").content == "later"


def test_summary_same_timestamp_uses_insertion_order(backend, make_messages):
    msgs = backend.append_messages("s1", make_messages("a", "b"))

    backend.put_summary("s1", Summary(content="first", summary_point_uuid=msgs[0].uuid, created_at=50.0))
    backend.put_summary("s1", Summary(content="second", summary_point_uuid=msgs[1].uuid, created_at=50.0))

    assert backend.get_summary("s1").content == "second"


def test_put_summary_requires_known_boundary(backend, make_messages):
    backend.append_messages("s1", make_messages("a"))

    with pytest.raises(NotFoundError):
        backend.put_summary("s1", Summary(content="x", summary_point_uuid="nope"))

    with pytest.raises(NotFoundError):
        backend.put_summary("missing", Summary(content="x", summary_point_uuid="nope"))


def test_summary_hidden_after_delete(backend, make_messages):
    msgs = backend.append_messages("s1", make_messages("a"))
    backend.put_summary("s1", Summary(content="sum", summary_point_uuid=msgs[0].uuid))

    backend.delete_session("s1")
    assert backend.get_summary("s1") is None


def test_apply_metadata_set_overwrite_delete(backend):
    msg = Message(role="human", content="hi", metadata={"keep": 1, "drop": 2})
    backend.append_messages("s1", [msg])

    backend.apply_metadata("s1", [
        MessageMetadata(message_uuid=msg.uuid, key="keep", value=10),
        MessageMetadata(message_uuid=msg.uuid, key="drop", value=None),
        MessageMetadata(message_uuid=msg.uuid, key="new", value="v"),
    ])

    assert backend.get_message("s1", msg.uuid).metadata == {"keep": 10, "new": "v"}


def test_apply_metadata_unknown_message_is_atomic(backend):
    msg = Message(role="human", content="hi")
    backend.append_messages("s1", [msg])

    with pytest.raises(ConflictError):
        backend.apply_metadata("s1", [
            MessageMetadata(message_uuid=msg.uuid, key="k", value="v"),
            MessageMetadata(message_uuid="ghost", key="k", value="v"),
        ])

    assert backend.get_message("s1", msg.uuid).metadata == {}


def test_apply_metadata_missing_session(backend):
    with pytest.raises(NotFoundError):
        backend.apply_metadata("nobody", [MessageMetadata(message_uuid="x", key="k", value=1)])


def test_vectors_roundtrip_and_overwrite(backend, make_messages):
    msgs = backend.append_messages("s1", make_messages("a", "b"))

    backend.put_vectors("s1", [
        Embedding(message_uuid=msgs[0].uuid, model="m1", vector=[0.1, 0.2, 0.3]),
        Embedding(message_uuid=msgs[1].uuid, model="m1", vector=[1.0, 0.0, 0.0]),
        Embedding(message_uuid=msgs[0].uuid, model="m2", vector=[9.0]),
    ])
    backend.put_vectors("s1", [Embedding(message_uuid=msgs[1].uuid, model="m1", vector=[0.0, 1.0, 0.0])])

    m1 = backend.get_vectors("s1", model="m1")
    assert [e.message_uuid for e in m1] == [msgs[0].uuid, msgs[1].uuid]
    np.testing.assert_allclose(m1[0].vector, [0.1, 0.2, 0.3], rtol=1e-6)
    np.testing.assert_allclose(m1[1].vector, [0.0, 1.0, 0.0])

    assert len(backend.get_vectors("s1")) == 3


def test_vectors_for_unknown_message_conflict(backend, make_messages):
    backend.append_messages("s1", make_messages("a"))
    with pytest.raises(ConflictError):
        backend.put_vectors("s1", [Embedding(message_uuid="ghost", model="m", vector=[1.0])])


def test_translate_errors_maps_sqlite_failures(backend):
    with pytest.raises(UnavailableError):
        with backend._translate_errors("op"):
            raise sqlite3.OperationalError("database is locked")

    with pytest.raises(InternalError):
        with backend._translate_errors("op"):
            raise sqlite3.DatabaseError("file is not a database")
