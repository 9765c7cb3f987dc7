"""
SQLite-backed memory backend.

Tables:
- sessions: one row per session generation (soft-deleted rows are kept)
- messages: append-only, metadata as a JSON object column
- summaries: append-only, newest row wins for reads
- embeddings: (message_uuid, model) -> float32 vector bytes

Single shared connection in WAL mode. Every read and write takes the
connection lock, so a reader never sees a batch that is still in flight.
"""

import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

import numpy as np

from memstore.errors import (
    ConflictError,
    InternalError,
    InvalidArgumentError,
    MemoryStoreError,
    NotFoundError,
    UnavailableError,
)
from memstore.memory.schemas import (
    Embedding,
    Message,
    MessageMetadata,
    Session,
    Summary,
)
from .backend import MemoryBackend

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS sessions (
        pk INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT NOT NULL,
        generation INTEGER NOT NULL,
        created_at REAL NOT NULL,
        deleted_at REAL
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_live
    ON sessions(session_id) WHERE deleted_at IS NULL
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        uuid TEXT PRIMARY KEY,
        session_pk INTEGER NOT NULL REFERENCES sessions(pk),
        session_id TEXT NOT NULL,
        sequence INTEGER NOT NULL,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        token_count INTEGER NOT NULL DEFAULT 0,
        created_at REAL NOT NULL,
        deleted_at REAL,
        metadata TEXT NOT NULL DEFAULT '{}',
        UNIQUE(session_id, sequence)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_messages_session
    ON messages(session_pk, sequence)
    """,
    """
    CREATE TABLE IF NOT EXISTS summaries (
        rowid_ INTEGER PRIMARY KEY AUTOINCREMENT,
        uuid TEXT NOT NULL UNIQUE,
        session_pk INTEGER NOT NULL REFERENCES sessions(pk),
        session_id TEXT NOT NULL,
        content TEXT NOT NULL,
        token_count INTEGER NOT NULL DEFAULT 0,
        created_at REAL NOT NULL,
        summary_point_uuid TEXT NOT NULL,
        deleted_at REAL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS embeddings (
        message_uuid TEXT NOT NULL REFERENCES messages(uuid),
        model TEXT NOT NULL,
        vector BLOB NOT NULL,
        dim INTEGER NOT NULL,
        ts REAL NOT NULL,
        PRIMARY KEY (message_uuid, model)
    )
    """,
]

_MESSAGE_COLUMNS = "uuid, session_id, sequence, role, content, token_count, created_at, deleted_at, metadata"


def _encode_metadata(metadata: dict, session_id: str) -> str:
    try:
        return json.dumps(metadata, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"metadata is not JSON-serializable: {e}", session_id=session_id) from e


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        uuid=row["uuid"],
        session_id=row["session_id"],
        sequence=row["sequence"],
        role=row["role"],
        content=row["content"],
        token_count=row["token_count"],
        created_at=row["created_at"],
        deleted=row["deleted_at"] is not None,
        metadata=json.loads(row["metadata"] or "{}"),
    )


def _row_to_summary(row: sqlite3.Row) -> Summary:
    return Summary(
        uuid=row["uuid"],
        session_id=row["session_id"],
        content=row["content"],
        token_count=row["token_count"],
        created_at=row["created_at"],
        summary_point_uuid=row["summary_point_uuid"],
    )


class SQLiteBackend(MemoryBackend):
    """
    File-backed SQLite implementation of MemoryBackend.

    Thread-safe: one connection shared across threads, serialized by an
    RLock, with explicit IMMEDIATE transactions for writes.
    """

    def __init__(self, db_path: Union[str, Path] = "data/memstore.db", timeout: float = 10.0):
        """
        Args:
            db_path: SQLite file path, or ":memory:"
            timeout: Seconds to wait on a locked database before failing
        """
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self.timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    # ----------------- lifecycle -----------------
    def start(self) -> None:
        with self._lock, self._translate_errors("start"):
            if self._conn is not None:
                return
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self._conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,  # Allow multi-threaded access
                timeout=self.timeout,
                isolation_level=None,     # Explicit BEGIN/COMMIT below
            )
            self._conn.row_factory = sqlite3.Row

            # Enable WAL mode for better concurrency
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute("PRAGMA foreign_keys=ON")

            for statement in SCHEMA:
                self._conn.execute(statement)
            logger.info("SQLite backend ready at %s", self.db_path)

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.close()
            finally:
                self._conn = None
            logger.info("SQLite backend closed")

    # ----------------- helpers -----------------
    @contextmanager
    def _translate_errors(self, op: str) -> Iterator[None]:
        """Map sqlite3 errors onto the store error taxonomy."""
        try:
            yield
        except MemoryStoreError:
            raise
        except sqlite3.OperationalError as e:
            text = str(e).lower()
            if "locked" in text or "busy" in text:
                raise UnavailableError(f"{op}: database busy, retry later") from e
            raise InternalError(f"{op}: {e}") from e
        except sqlite3.Error as e:
            raise InternalError(f"{op}: {e}") from e

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise UnavailableError("backend not started")
        return self._conn

    @contextmanager
    def _read(self, op: str) -> Iterator[sqlite3.Connection]:
        with self._lock, self._translate_errors(op):
            yield self._connection()

    @contextmanager
    def _transaction(self, op: str) -> Iterator[sqlite3.Connection]:
        """IMMEDIATE transaction: commit on success, roll back on any error."""
        with self._lock, self._translate_errors(op):
            conn = self._connection()
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    @staticmethod
    def _live_session_row(conn: sqlite3.Connection, session_id: str) -> Optional[sqlite3.Row]:
        cursor = conn.execute(
            "SELECT pk, session_id, generation, created_at FROM sessions "
            "WHERE session_id = ? AND deleted_at IS NULL",
            (session_id,),
        )
        return cursor.fetchone()

    def _ensure_session(self, conn: sqlite3.Connection, session_id: str) -> int:
        row = self._live_session_row(conn, session_id)
        if row is not None:
            return row["pk"]

        generation = conn.execute(
            "SELECT COALESCE(MAX(generation), 0) + 1 FROM sessions WHERE session_id = ?",
            (session_id,),
        ).fetchone()[0]
        cursor = conn.execute(
            "INSERT INTO sessions (session_id, generation, created_at) VALUES (?, ?, ?)",
            (session_id, generation, time.time()),
        )
        logger.debug("Created session %s generation %d", session_id, generation)
        return cursor.lastrowid

    @staticmethod
    def _live_message_uuids(conn: sqlite3.Connection, session_pk: int, uuids: Sequence[str]) -> set:
        if not uuids:
            return set()
        placeholders = ",".join("?" for _ in uuids)
        cursor = conn.execute(
            f"SELECT uuid FROM messages WHERE session_pk = ? AND deleted_at IS NULL "
            f"AND uuid IN ({placeholders})",
            (session_pk, *uuids),
        )
        return {row["uuid"] for row in cursor.fetchall()}

    # ----------------- sessions -----------------
    def get_session(self, session_id: str) -> Optional[Session]:
        with self._read("get_session") as conn:
            row = self._live_session_row(conn, session_id)
        if row is None:
            return None
        return Session(
            session_id=row["session_id"],
            generation=row["generation"],
            created_at=row["created_at"],
        )

    def delete_session(self, session_id: str) -> bool:
        now = time.time()
        with self._transaction("delete_session") as conn:
            row = self._live_session_row(conn, session_id)
            if row is None:
                return False
            pk = row["pk"]
            conn.execute("UPDATE messages SET deleted_at = ? WHERE session_pk = ? AND deleted_at IS NULL", (now, pk))
            conn.execute("UPDATE summaries SET deleted_at = ? WHERE session_pk = ? AND deleted_at IS NULL", (now, pk))
            conn.execute("UPDATE sessions SET deleted_at = ? WHERE pk = ?", (now, pk))
        logger.info("Soft-deleted session %s generation %d", session_id, row["generation"])
        return True

    # ----------------- messages -----------------
    def append_messages(self, session_id: str, messages: Sequence[Message]) -> List[Message]:
        committed: List[Message] = []
        with self._transaction("append_messages") as conn:
            pk = self._ensure_session(conn, session_id)
            next_seq = conn.execute(
                "SELECT COALESCE(MAX(sequence), 0) + 1 FROM messages WHERE session_id = ?",
                (session_id,),
            ).fetchone()[0]

            for offset, message in enumerate(messages):
                stored = message.model_copy(
                    update={"session_id": session_id, "sequence": next_seq + offset, "deleted": False}
                )
                try:
                    conn.execute(
                        f"INSERT INTO messages ({_MESSAGE_COLUMNS}, session_pk) "
                        f"VALUES (?, ?, ?, ?, ?, ?, ?, NULL, ?, ?)",
                        (
                            stored.uuid,
                            session_id,
                            stored.sequence,
                            stored.role,
                            stored.content,
                            stored.token_count,
                            stored.created_at,
                            _encode_metadata(stored.metadata, session_id),
                            pk,
                        ),
                    )
                except sqlite3.IntegrityError as e:
                    raise ConflictError(
                        f"message {stored.uuid} already exists", session_id=session_id
                    ) from e
                committed.append(stored)
        return committed

    def get_messages(
        self,
        session_id: str,
        last_n: Optional[int] = None,
        after_sequence: Optional[int] = None,
    ) -> List[Message]:
        query = (
            f"SELECT {_MESSAGE_COLUMNS} FROM messages "
            "WHERE session_id = ? AND deleted_at IS NULL"
        )
        params: list = [session_id]
        if after_sequence is not None:
            query += " AND sequence > ?"
            params.append(after_sequence)

        if last_n is not None:
            # Newest N, flipped back to chronological order below
            query += " ORDER BY sequence DESC LIMIT ?"
            params.append(last_n)
        else:
            query += " ORDER BY sequence ASC"

        with self._read("get_messages") as conn:
            rows = conn.execute(query, params).fetchall()

        messages = [_row_to_message(row) for row in rows]
        if last_n is not None:
            messages.reverse()
        return messages

    def get_message(
        self,
        session_id: str,
        message_uuid: str,
        include_deleted: bool = False,
    ) -> Optional[Message]:
        query = f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE session_id = ? AND uuid = ?"
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        with self._read("get_message") as conn:
            row = conn.execute(query, (session_id, message_uuid)).fetchone()
        return _row_to_message(row) if row is not None else None

    # ----------------- summaries -----------------
    def put_summary(self, session_id: str, summary: Summary) -> Summary:
        stored = summary.model_copy(update={"session_id": session_id})
        with self._transaction("put_summary") as conn:
            row = self._live_session_row(conn, session_id)
            if row is None:
                raise NotFoundError(f"session {session_id} not found", session_id=session_id)
            pk = row["pk"]
            if not self._live_message_uuids(conn, pk, [stored.summary_point_uuid]):
                raise NotFoundError(
                    f"summary point {stored.summary_point_uuid} is not a message of this session",
                    session_id=session_id,
                )
            try:
                conn.execute(
                    "INSERT INTO summaries (uuid, session_pk, session_id, content, token_count, "
                    "created_at, summary_point_uuid) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        stored.uuid,
                        pk,
                        session_id,
                        stored.content,
                        stored.token_count,
                        stored.created_at,
                        stored.summary_point_uuid,
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"summary {stored.uuid} already exists", session_id=session_id) from e
        return stored

    def get_summary(self, session_id: str) -> Optional[Summary]:
        with self._read("get_summary") as conn:
            row = conn.execute(
                "SELECT uuid, session_id, content, token_count, created_at, summary_point_uuid "
                "FROM summaries WHERE session_id = ? AND deleted_at IS NULL "
                "ORDER BY created_at DESC, rowid_ DESC LIMIT 1",
                (session_id,),
            ).fetchone()
        return _row_to_summary(row) if row is not None else None

    # ----------------- metadata -----------------
    def apply_metadata(self, session_id: str, metadata_set: Sequence[MessageMetadata]) -> None:
        if not metadata_set:
            return
        with self._transaction("apply_metadata") as conn:
            row = self._live_session_row(conn, session_id)
            if row is None:
                raise NotFoundError(f"session {session_id} not found", session_id=session_id)

            wanted = list(dict.fromkeys(entry.message_uuid for entry in metadata_set))
            found = self._live_message_uuids(conn, row["pk"], wanted)
            missing = [u for u in wanted if u not in found]
            if missing:
                raise ConflictError(f"metadata targets unknown messages: {missing}", session_id=session_id)

            current = {}
            for message_uuid in wanted:
                raw = conn.execute("SELECT metadata FROM messages WHERE uuid = ?", (message_uuid,)).fetchone()[0]
                current[message_uuid] = json.loads(raw or "{}")

            for entry in metadata_set:
                meta = current[entry.message_uuid]
                if entry.value is None:
                    meta.pop(entry.key, None)
                else:
                    meta[entry.key] = entry.value

            for message_uuid, meta in current.items():
                conn.execute(
                    "UPDATE messages SET metadata = ? WHERE uuid = ?",
                    (_encode_metadata(meta, session_id), message_uuid),
                )

    # ----------------- embeddings -----------------
    def put_vectors(self, session_id: str, embeddings: Sequence[Embedding]) -> None:
        if not embeddings:
            return
        now = time.time()
        with self._transaction("put_vectors") as conn:
            row = self._live_session_row(conn, session_id)
            if row is None:
                raise NotFoundError(f"session {session_id} not found", session_id=session_id)

            wanted = list(dict.fromkeys(e.message_uuid for e in embeddings))
            found = self._live_message_uuids(conn, row["pk"], wanted)
            missing = [u for u in wanted if u not in found]
            if missing:
                raise ConflictError(f"embeddings target unknown messages: {missing}", session_id=session_id)

            for embedding in embeddings:
                vector = np.asarray(embedding.vector, dtype=np.float32)
                conn.execute(
                    "INSERT OR REPLACE INTO embeddings (message_uuid, model, vector, dim, ts) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (embedding.message_uuid, embedding.model, vector.tobytes(), int(vector.shape[0]), now),
                )

    def get_vectors(self, session_id: str, model: Optional[str] = None) -> List[Embedding]:
        query = (
            "SELECT e.message_uuid, e.model, e.vector FROM embeddings e "
            "JOIN messages m ON m.uuid = e.message_uuid "
            "WHERE m.session_id = ? AND m.deleted_at IS NULL"
        )
        params: list = [session_id]
        if model is not None:
            query += " AND e.model = ?"
            params.append(model)
        query += " ORDER BY m.sequence ASC, e.model ASC"

        with self._read("get_vectors") as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            Embedding(
                message_uuid=row["message_uuid"],
                model=row["model"],
                vector=np.frombuffer(row["vector"], dtype=np.float32).tolist(),
            )
            for row in rows
        ]

    # ----------------- context manager -----------------
    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
