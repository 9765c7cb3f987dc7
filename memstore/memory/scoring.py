"""
Distance scorers for memory search.

Scorers return one distance per candidate message, lower meaning more
similar. The search engine owns filtering, ordering and truncation.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import numpy as np

from .schemas import Message

STOP_WORDS = {'the', 'a', 'an', 'is', 'are', 'was', 'were', 'in', 'on', 'at', 'to', 'for', 'of', 'and', 'or', 'but'}

# Cosine distance range is [0, 2]; messages without a vector sort last
MAX_VECTOR_DISTANCE = 2.0


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens without punctuation, stop words or very short words."""
    text = re.sub(r'[^\w\s]', ' ', text.lower())
    return [t for t in text.split() if len(t) > 2 and t not in STOP_WORDS]


class BaseScorer(ABC):
    """Abstract distance scorer."""

    # Embedding model whose vectors the scorer needs, or None for text-only scorers
    model: Optional[str] = None

    @abstractmethod
    def score(
        self,
        query_text: str,
        candidates: List[Message],
        vectors: Optional[Dict[str, np.ndarray]] = None,
    ) -> List[float]:
        """Return one distance per candidate, in candidate order."""


class LexicalScorer(BaseScorer):
    """
    Token-overlap distance: 1 - Jaccard(query tokens, message tokens).

    Messages sharing no tokens with the query get distance 1.0.
    """

    def score(self, query_text, candidates, vectors=None):
        query_tokens = set(tokenize(query_text))
        distances = []
        for message in candidates:
            tokens = set(tokenize(message.content))
            union = query_tokens | tokens
            if not query_tokens or not union:
                distances.append(1.0)
                continue
            distances.append(1.0 - len(query_tokens & tokens) / len(union))
        return distances


class VectorScorer(BaseScorer):
    """
    Cosine distance between the query embedding and stored message vectors.

    Args:
        encoder: Object with ``encode(list[str]) -> np.ndarray``
        model: Embedding model identifier the message vectors were written under
    """

    def __init__(self, encoder: Any, model: str):
        self.encoder = encoder
        self.model = model

    def score(self, query_text, candidates, vectors=None):
        vectors = vectors or {}
        if not candidates:
            return []

        query = np.asarray(self.encoder.encode([query_text]), dtype=np.float32)[0]
        q_norm = float(np.linalg.norm(query))

        distances = []
        for message in candidates:
            vec = vectors.get(message.uuid)
            if vec is None or q_norm == 0.0:
                distances.append(MAX_VECTOR_DISTANCE)
                continue
            v_norm = float(np.linalg.norm(vec))
            if v_norm == 0.0 or vec.shape != query.shape:
                distances.append(MAX_VECTOR_DISTANCE)
                continue
            similarity = float(np.dot(query, vec) / (q_norm * v_norm))
            distances.append(1.0 - similarity)
        return distances
