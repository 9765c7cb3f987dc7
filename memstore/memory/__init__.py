"""
Conversation memory: retrieval policy, privilege guard, search.

The MemoryStore facade lives in memstore.memory.store.

Provides:
- Data models (Message, Summary, Memory, SearchPayload, SearchResult, ...)
- MemoryRetrievalPolicy (last-N / since-summary / everything)
- MetadataGuard (reserved 'system' namespace)
- SearchEngine with pluggable distance scorers
"""

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
from .guard import MetadataGuard, RESERVED_NAMESPACE
from .retrieval import MemoryRetrievalPolicy
from .scoring import BaseScorer, LexicalScorer, VectorScorer
from .search import SearchEngine

__all__ = [
    "Embedding",
    "Memory",
    "Message",
    "MessageEvent",
    "MessageMetadata",
    "SearchPayload",
    "SearchResult",
    "Session",
    "Summary",
    "MetadataGuard",
    "RESERVED_NAMESPACE",
    "MemoryRetrievalPolicy",
    "BaseScorer",
    "LexicalScorer",
    "VectorScorer",
    "SearchEngine",
]
