"""
Sentence embedding encoder with lazy model loading.

Anything exposing ``encode(texts) -> np.ndarray`` works wherever an encoder
is expected; this wrapper only defers the SentenceTransformer import and
model download until the first call.
"""

import logging
import threading
from typing import Any, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "all-MiniLM-L6-v2"


class SentenceTransformerEncoder:
    """
    Lazily loaded SentenceTransformer.

    Usage:
        >>> encoder = SentenceTransformerEncoder("all-MiniLM-L6-v2")
        >>> vectors = encoder.encode(["hello", "world"])
    """

    def __init__(self, model_name: str = DEFAULT_MODEL, normalize: bool = True):
        self.model_name = model_name
        self.normalize = normalize
        self._model: Optional[Any] = None
        self._lock = threading.Lock()

    def _model_ensure(self) -> Any:
        with self._lock:
            if self._model is None:
                from sentence_transformers import SentenceTransformer

                logger.info("Loading embedding model %s", self.model_name)
                self._model = SentenceTransformer(self.model_name)
            return self._model

    def encode(self, texts: List[str], batch_size: int = 32) -> np.ndarray:
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)
        model = self._model_ensure()
        vectors = model.encode(
            texts,
            batch_size=batch_size,
            show_progress_bar=False,
            normalize_embeddings=self.normalize,
        )
        return np.asarray(vectors, dtype=np.float32)
