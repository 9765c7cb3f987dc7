"""
Wiring: build a MemoryStore and its extractors from Settings.
"""

import logging
from typing import Any, Optional

from memstore.config.settings import Settings
from memstore.extractors import (
    EmbeddingExtractor,
    ExtractorRegistry,
    IntentExtractor,
    SummaryExtractor,
)
from memstore.generation import BaseGenerator, MockGenerator, OllamaGenerator
from memstore.memory.encoder import SentenceTransformerEncoder
from memstore.memory.guard import MetadataGuard
from memstore.memory.scoring import BaseScorer, LexicalScorer, VectorScorer
from memstore.memory.store import MemoryStore
from memstore.persist import SQLiteBackend

logger = logging.getLogger(__name__)

KNOWN_EXTRACTORS = ("embedder", "summarizer", "intent")


def create_generator(settings: Settings) -> BaseGenerator:
    """Generator for LLM-driven extractors."""
    llm = settings.llm
    if llm.provider == "ollama":
        return OllamaGenerator(model=llm.model, base_url=llm.base_url, timeout=llm.timeout, check=False)
    return MockGenerator()


def create_memory_store(
    settings: Optional[Settings] = None,
    encoder: Optional[Any] = None,
    generator: Optional[BaseGenerator] = None,
) -> MemoryStore:
    """
    Build a MemoryStore with the configured backend, scorer and extractors.

    The store is returned unstarted; call `on_start()` before use.

    Args:
        settings: Settings (defaults if omitted)
        encoder: Sentence encoder override (default: lazy SentenceTransformer)
        generator: Generator override (default: from settings.llm)

    Raises:
        ValueError: If an unknown extractor name is enabled
    """
    settings = settings or Settings()
    unknown = [name for name in settings.extractors.enabled if name not in KNOWN_EXTRACTORS]
    if unknown:
        raise ValueError(f"unknown extractors {unknown}, expected any of {list(KNOWN_EXTRACTORS)}")

    model_name = settings.extractors.embedding_model
    needs_encoder = settings.search.scorer == "vector" or "embedder" in settings.extractors.enabled
    if encoder is None and needs_encoder:
        encoder = SentenceTransformerEncoder(model_name)

    scorer: BaseScorer
    if settings.search.scorer == "vector":
        scorer = VectorScorer(encoder, model_name)
    else:
        scorer = LexicalScorer()

    store = MemoryStore(
        backend=SQLiteBackend(settings.store.db_path, timeout=settings.store.busy_timeout),
        guard=MetadataGuard(settings.store.reserved_namespace),
        scorer=scorer,
        registry=ExtractorRegistry(deadline=settings.extractors.dispatch_deadline),
    )

    enabled = settings.extractors.enabled
    if enabled and generator is None and ("summarizer" in enabled or "intent" in enabled):
        generator = create_generator(settings)

    for name in enabled:
        if name == "embedder":
            store.attach(EmbeddingExtractor(encoder, model_name))
        elif name == "summarizer":
            store.attach(SummaryExtractor(
                generator,
                message_window=settings.extractors.message_window,
                target_chars=settings.extractors.summary_target_chars,
            ))
        elif name == "intent":
            store.attach(IntentExtractor(generator))

    logger.info(
        "Memory store wired: backend=sqlite scorer=%s extractors=%s",
        settings.search.scorer, enabled or "none",
    )
    return store
