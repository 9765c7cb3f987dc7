"""
Backend contract for memory persistence.

A backend is chosen once when the MemoryStore is constructed. It owns
physical storage only: session generations, batch appends, soft delete and
raw reads. Retrieval policy, privilege checks, search ordering and
extractor notification live above it.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from memstore.memory.schemas import (
    Embedding,
    Message,
    MessageMetadata,
    Session,
    Summary,
)


class MemoryBackend(ABC):
    """
    Abstract persistence backend.

    Implementations must guarantee:
    - `append_messages` commits the whole batch or nothing, and readers never
      observe a partial batch
    - sequence numbers are strictly increasing per session id and never
      reused, including across deleted generations
    - soft-deleted rows are excluded from every read except boundary
      resolution (`get_message(..., include_deleted=True)`)
    """

    @abstractmethod
    def start(self) -> None:
        """Acquire resources (connections, schema)."""

    @abstractmethod
    def close(self) -> None:
        """Release all resources. Safe after a partial `start`."""

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[Session]:
        """Return the live generation of a session, or None."""

    @abstractmethod
    def append_messages(self, session_id: str, messages: Sequence[Message]) -> List[Message]:
        """
        Append a batch atomically, creating the session when absent.

        Returns the committed messages with `session_id` and `sequence` set.
        """

    @abstractmethod
    def get_messages(
        self,
        session_id: str,
        last_n: Optional[int] = None,
        after_sequence: Optional[int] = None,
    ) -> List[Message]:
        """
        Return non-deleted messages in chronological order.

        `last_n` keeps only the newest N; `after_sequence` keeps only
        messages with a strictly greater sequence.
        """

    @abstractmethod
    def get_message(
        self,
        session_id: str,
        message_uuid: str,
        include_deleted: bool = False,
    ) -> Optional[Message]:
        """Look up one message of a session by uuid."""

    @abstractmethod
    def put_summary(self, session_id: str, summary: Summary) -> Summary:
        """Append a summary to the live session generation."""

    @abstractmethod
    def get_summary(self, session_id: str) -> Optional[Summary]:
        """Return the most recently created non-deleted summary, or None."""

    @abstractmethod
    def apply_metadata(self, session_id: str, metadata_set: Sequence[MessageMetadata]) -> None:
        """Create, overwrite or delete metadata keys; all entries or none."""

    @abstractmethod
    def put_vectors(self, session_id: str, embeddings: Sequence[Embedding]) -> None:
        """Write embeddings, overwriting any prior vector for the same message/model."""

    @abstractmethod
    def get_vectors(self, session_id: str, model: Optional[str] = None) -> List[Embedding]:
        """Return embeddings of non-deleted messages, optionally for one model."""

    @abstractmethod
    def delete_session(self, session_id: str) -> bool:
        """
        Soft-delete the live generation with its messages and summaries.

        Returns True if anything was deleted; never raises for an absent or
        already deleted session.
        """
