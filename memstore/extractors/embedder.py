"""Embedding extractor: writes a vector for every committed message."""

import logging
from typing import Any

import numpy as np

from memstore.memory.schemas import Embedding, MessageEvent
from .base import BaseExtractor

logger = logging.getLogger(__name__)


class EmbeddingExtractor(BaseExtractor):
    """
    Embeds message contents and stores them through the store.

    Args:
        encoder: Object with ``encode(list[str]) -> np.ndarray``
            (e.g. SentenceTransformerEncoder)
        model: Identifier the vectors are stored under; search scorers read
            vectors of the same model
        max_chars: Content is truncated to this many characters before encoding
    """

    name = "embedder"

    def __init__(self, encoder: Any, model: str, max_chars: int = 4000):
        self.encoder = encoder
        self.model = model
        self.max_chars = max_chars

    def extract(self, store, event: MessageEvent) -> None:
        messages = [m for m in event.messages if m.content.strip()]
        if not messages:
            return

        vectors = np.asarray(
            self.encoder.encode([m.content[: self.max_chars] for m in messages]),
            dtype=np.float32,
        )
        embeddings = [
            Embedding(message_uuid=m.uuid, model=self.model, vector=vec.tolist())
            for m, vec in zip(messages, vectors)
        ]
        store.put_message_vectors(event.session_id, embeddings)
        logger.debug("Stored %d embeddings for session %s", len(embeddings), event.session_id)
