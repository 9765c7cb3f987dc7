"""
Memory retrieval policy.

Decides which slice of a session's history a caller gets back:

- last_n > 0:  newest summary + newest last_n messages (summary boundary ignored)
- last_n == 0: newest summary + messages after its boundary, or every
               message when the session has no summary yet

Absent and empty sessions both yield an empty Memory, never an error.
"""

import logging
from typing import TYPE_CHECKING

from memstore.errors import InvalidArgumentError, require_session_id
from .schemas import Memory

if TYPE_CHECKING:
    from memstore.persist.backend import MemoryBackend

logger = logging.getLogger(__name__)


class MemoryRetrievalPolicy:
    """GetMemory decision tree over backend reads."""

    def __init__(self, backend: "MemoryBackend"):
        self.backend = backend

    def retrieve(self, session_id: str, last_n: int = 0) -> Memory:
        """
        Select the summary and messages to return for a session.

        Args:
            session_id: Session identifier
            last_n: Number of recent messages; 0 means "since last summary"

        Returns:
            Memory with messages in chronological order
        """
        session_id = require_session_id(session_id)
        if last_n is None or last_n < 0:
            raise InvalidArgumentError(f"last_n must be >= 0, got {last_n}", session_id=session_id)

        summary = self.backend.get_summary(session_id)

        if last_n > 0:
            messages = self.backend.get_messages(session_id, last_n=last_n)
            return Memory(summary=summary, messages=messages)

        if summary is None:
            return Memory(summary=None, messages=self.backend.get_messages(session_id))

        boundary = self.backend.get_message(
            session_id, summary.summary_point_uuid, include_deleted=True
        )
        if boundary is None:
            # Only reachable if the backend lost the boundary row
            logger.warning(
                "Summary %s of session %s points at missing message %s, returning all messages",
                summary.uuid, session_id, summary.summary_point_uuid,
            )
            return Memory(summary=summary, messages=self.backend.get_messages(session_id))

        messages = self.backend.get_messages(session_id, after_sequence=boundary.sequence)
        return Memory(summary=summary, messages=messages)
