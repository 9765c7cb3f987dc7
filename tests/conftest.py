"""Test configuration and fixtures."""

import threading
from typing import Callable, Dict, List

import numpy as np
import pytest

from memstore.extractors.base import BaseExtractor
from memstore.extractors.registry import ExtractorRegistry
from memstore.memory.schemas import Message, MessageEvent
from memstore.memory.store import MemoryStore
from memstore.persist.sqlite_store import SQLiteBackend


class RecordingExtractor(BaseExtractor):
    """Records every event it receives."""

    def __init__(self, name: str = "recorder"):
        self.name = name
        self.events: List[MessageEvent] = []
        self._lock = threading.Lock()

    def extract(self, store, event):
        with self._lock:
            self.events.append(event)


class FailingExtractor(BaseExtractor):
    """Raises on every event."""

    name = "failing"

    def __init__(self):
        self.calls = 0

    def extract(self, store, event):
        self.calls += 1
        raise RuntimeError("extractor exploded")


class FakeEncoder:
    """
    Deterministic bag-of-keywords encoder.

    Each dimension counts one vocabulary word, so texts sharing words get
    similar vectors and texts without any vocabulary word get a zero vector.
    """

    VOCAB = ["cat", "dog", "car", "train", "fish"]

    def __init__(self):
        self.calls: List[List[str]] = []

    def encode(self, texts, batch_size: int = 32):
        self.calls.append(list(texts))
        rows = []
        for text in texts:
            words = text.lower().split()
            rows.append([float(sum(w.startswith(v) for w in words)) for v in self.VOCAB])
        return np.asarray(rows, dtype=np.float32)


@pytest.fixture
def backend(tmp_path):
    """Started SQLite backend in a temp directory."""
    b = SQLiteBackend(tmp_path / "memstore.db")
    b.start()
    yield b
    b.close()


@pytest.fixture
def store(tmp_path):
    """Started MemoryStore without dispatch deadlines."""
    s = MemoryStore(SQLiteBackend(tmp_path / "memstore.db"), registry=ExtractorRegistry(deadline=None))
    s.on_start()
    yield s
    s.close()


@pytest.fixture
def make_messages() -> Callable[..., List[Message]]:
    """Build unsaved messages from contents."""

    def _make(*contents: str, role: str = "human", metadata: Dict = None) -> List[Message]:
        return [Message(role=role, content=c, metadata=dict(metadata or {})) for c in contents]

    return _make


@pytest.fixture
def recorder():
    return RecordingExtractor()


@pytest.fixture
def failing_extractor():
    return FailingExtractor()


@pytest.fixture
def fake_encoder():
    return FakeEncoder()
