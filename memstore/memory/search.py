"""
Memory search.

Pipeline: exact-match metadata filter -> distance scoring -> ascending sort
(ties: most recent message first) -> truncate to limit.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import numpy as np

from memstore.errors import InternalError, InvalidArgumentError, require_session_id
from .schemas import Message, SearchPayload, SearchResult
from .scoring import BaseScorer, LexicalScorer

if TYPE_CHECKING:
    from memstore.persist.backend import MemoryBackend

logger = logging.getLogger(__name__)


def exact_equal(a: Any, b: Any) -> bool:
    """Equality that also requires matching types, so True, 1 and 1.0 differ."""
    if type(a) is not type(b):
        return False
    if isinstance(a, dict):
        return a.keys() == b.keys() and all(exact_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)):
        return len(a) == len(b) and all(exact_equal(x, y) for x, y in zip(a, b))
    return a == b


def matches_filter(metadata: Dict[str, Any], meta_filter: Optional[Dict[str, Any]]) -> bool:
    """True if every filter key is present in `metadata` with an exactly equal value."""
    if not meta_filter:
        return True
    for key, value in meta_filter.items():
        if key not in metadata or not exact_equal(metadata[key], value):
            return False
    return True


class SearchEngine:
    """
    Executes search queries against one session's messages.

    The scorer is pluggable; without one, token-overlap distance is used.
    """

    def __init__(self, backend: "MemoryBackend", scorer: Optional[BaseScorer] = None):
        self.backend = backend
        self.scorer = scorer or LexicalScorer()

    def search(self, session_id: str, payload: SearchPayload, limit: int = 10) -> List[SearchResult]:
        """
        Search a session's non-deleted messages.

        Args:
            session_id: Session identifier
            payload: Query text and optional metadata filter
            limit: Maximum number of results, must be positive

        Returns:
            SearchResults sorted by ascending distance

        A payload with empty text but a metadata filter is a pure filter
        query: every match gets distance 0.0 and comes back newest first.
        """
        session_id = require_session_id(session_id)
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise InvalidArgumentError(f"limit must be a positive integer, got {limit!r}", session_id=session_id)
        if payload is None:
            raise InvalidArgumentError("search payload is required", session_id=session_id)

        text = (payload.text or "").strip()
        if not text and not payload.meta:
            raise InvalidArgumentError("search needs query text or a metadata filter", session_id=session_id)

        candidates = [
            m for m in self.backend.get_messages(session_id)
            if matches_filter(m.metadata, payload.meta)
        ]
        if not candidates:
            return []

        if text:
            distances = self._score(session_id, text, candidates)
        else:
            distances = [0.0] * len(candidates)

        ranked = sorted(zip(candidates, distances), key=lambda pair: (pair[1], -pair[0].sequence))

        results = [
            SearchResult(message=message, meta=message.metadata or None, dist=dist)
            for message, dist in ranked[:limit]
        ]
        logger.debug(
            "Search in %s: %d candidates, %d results", session_id, len(candidates), len(results)
        )
        return results

    def _score(self, session_id: str, text: str, candidates: List[Message]) -> List[float]:
        vectors = None
        if self.scorer.model is not None:
            vectors = {
                e.message_uuid: np.asarray(e.vector, dtype=np.float32)
                for e in self.backend.get_vectors(session_id, model=self.scorer.model)
            }

        distances = self.scorer.score(text, candidates, vectors)
        if len(distances) != len(candidates):
            raise InternalError(
                f"scorer returned {len(distances)} distances for {len(candidates)} candidates",
                session_id=session_id,
            )
        return [float(d) for d in distances]
