"""
Memory store facade.

Implements the repository contract on top of a pluggable backend:
- writes are serialized per session and notify extractors after commit
- metadata mutations pass the privilege guard first
- reads go through the retrieval policy and the search engine
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional

from memstore.errors import InvalidArgumentError, require_session_id
from memstore.extractors.base import BaseExtractor
from memstore.extractors.registry import ExtractorRegistry
from memstore.persist.backend import MemoryBackend
from .guard import MetadataGuard
from .retrieval import MemoryRetrievalPolicy
from .schemas import (
    Embedding,
    Memory,
    Message,
    MessageEvent,
    MessageMetadata,
    SearchPayload,
    SearchResult,
    Session,
    Summary,
)
from .scoring import BaseScorer
from .search import SearchEngine
from .tokens import estimate_tokens

logger = logging.getLogger(__name__)

LOCK_STRIPES = 64


class MemoryStore:
    """
    Conversation memory with summaries, metadata, embeddings and extractors.

    Usage:
        >>> store = MemoryStore(SQLiteBackend("data/memstore.db"))
        >>> store.on_start()
        >>> store.put_memory("s1", [Message(role="human", content="hi")])
        >>> store.get_memory("s1", last_n=10)
        >>> store.close()
    """

    def __init__(
        self,
        backend: MemoryBackend,
        guard: Optional[MetadataGuard] = None,
        scorer: Optional[BaseScorer] = None,
        registry: Optional[ExtractorRegistry] = None,
        lock_stripes: int = LOCK_STRIPES,
    ):
        """
        Args:
            backend: Persistence backend (chosen once, never swapped)
            guard: Metadata privilege guard (default: reserved 'system' namespace)
            scorer: Search distance scorer (default: token overlap)
            registry: Extractor registry (default: 300s dispatch deadline)
            lock_stripes: Number of locks session ids are hashed onto
        """
        self.backend = backend
        self.guard = guard or MetadataGuard()
        self.policy = MemoryRetrievalPolicy(backend)
        self.search_engine = SearchEngine(backend, scorer)
        self.registry = registry or ExtractorRegistry()
        self.registry.bind(self)

        if lock_stripes < 1:
            raise InvalidArgumentError(f"lock_stripes must be positive, got {lock_stripes}")
        self.lock_stripes = lock_stripes
        self._session_locks = tuple(threading.Lock() for _ in range(lock_stripes))

    # ----------------- lifecycle -----------------
    def on_start(self) -> None:
        """Acquire backend resources."""
        self.backend.start()
        logger.info("Memory store started with %s", type(self.backend).__name__)

    def close(self) -> None:
        """Stop extractor dispatch and release backend resources."""
        try:
            self.registry.close()
        finally:
            self.backend.close()
        logger.info("Memory store closed")

    def _lock_for(self, session_id: str) -> threading.Lock:
        return self._session_locks[hash(session_id) % self.lock_stripes]

    @contextmanager
    def _session_lock(self, session_id: str) -> Iterator[None]:
        with self._lock_for(session_id):
            yield

    # ----------------- extractors -----------------
    def attach(self, extractor: BaseExtractor) -> None:
        self.registry.attach(extractor)

    def detach(self, extractor: BaseExtractor) -> bool:
        return self.registry.detach(extractor)

    def notify_extractors(self, event: MessageEvent, suppress: bool = False) -> int:
        return self.registry.notify(event, suppress=suppress)

    # ----------------- reads -----------------
    def get_session(self, session_id: str) -> Optional[Session]:
        return self.backend.get_session(require_session_id(session_id))

    def get_memory(self, session_id: str, last_n: int = 0) -> Memory:
        """
        Return the newest summary with the selected messages.

        last_n > 0 returns the newest last_n messages; 0 returns the
        messages after the summary point (or all when there is no summary).
        """
        session_id = require_session_id(session_id)
        # Summary and messages come from one generation
        with self._session_lock(session_id):
            return self.policy.retrieve(session_id, last_n)

    def get_summary(self, session_id: str) -> Optional[Summary]:
        """Most recently created summary, or None."""
        return self.backend.get_summary(require_session_id(session_id))

    def get_message_vectors(self, session_id: str, model: Optional[str] = None) -> List[Embedding]:
        return self.backend.get_vectors(require_session_id(session_id), model=model)

    def search_memory(self, session_id: str, payload: SearchPayload, limit: int = 10) -> List[SearchResult]:
        return self.search_engine.search(session_id, payload, limit)

    # ----------------- writes -----------------
    def put_memory(
        self,
        session_id: str,
        messages: Iterable[Message],
        suppress_notify: bool = False,
    ) -> List[Message]:
        """
        Append a batch of messages, creating the session when absent.

        Args:
            session_id: Session identifier
            messages: Messages to append, in order
            suppress_notify: Skip extractor notification (extractor callbacks)

        Returns:
            Committed messages with sequence numbers assigned
        """
        session_id = require_session_id(session_id)
        batch = list(messages or [])
        for message in batch:
            if not isinstance(message, Message):
                raise InvalidArgumentError(f"expected Message, got {type(message).__name__}", session_id=session_id)
            self.guard.check_keys(message.metadata.keys(), is_privileged=False)

        batch = [
            m if m.token_count else m.model_copy(update={"token_count": estimate_tokens(m.content)})
            for m in batch
        ]

        with self._session_lock(session_id):
            committed = self.backend.append_messages(session_id, batch)
            # Queued under the session lock so extractors see batches in commit order
            if committed:
                queued = self.notify_extractors(
                    MessageEvent(session_id=session_id, messages=committed),
                    suppress=suppress_notify,
                )
                logger.debug("Session %s: %d messages, queued for %d extractors", session_id, len(committed), queued)
        return committed

    def put_summary(self, session_id: str, summary: Summary) -> Summary:
        """Append a summary; earlier summaries are kept."""
        session_id = require_session_id(session_id)
        if not summary.token_count:
            summary = summary.model_copy(update={"token_count": estimate_tokens(summary.content)})
        with self._session_lock(session_id):
            return self.backend.put_summary(session_id, summary)

    def put_message_metadata(
        self,
        session_id: str,
        metadata_set: Iterable[MessageMetadata],
        is_privileged: bool = False,
    ) -> None:
        """
        Create, overwrite or delete (value None) message metadata keys.

        The whole batch is checked against the reserved namespace first and
        applied atomically.
        """
        session_id = require_session_id(session_id)
        entries = list(metadata_set or [])
        self.guard.check(entries, is_privileged)
        with self._session_lock(session_id):
            self.backend.apply_metadata(session_id, entries)

    def put_message_vectors(self, session_id: str, embeddings: Iterable[Embedding]) -> None:
        """Write one vector per message/model, overwriting earlier vectors."""
        session_id = require_session_id(session_id)
        with self._session_lock(session_id):
            self.backend.put_vectors(session_id, list(embeddings or []))

    def delete_session(self, session_id: str) -> bool:
        """
        Soft-delete a session with its messages and summaries.

        Idempotent. The next put_memory on the same id starts a new generation.
        """
        session_id = require_session_id(session_id)
        with self._session_lock(session_id):
            return self.backend.delete_session(session_id)

    # ----------------- context manager -----------------
    def __enter__(self):
        """Context manager entry."""
        self.on_start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
