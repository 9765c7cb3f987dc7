"""
Unit tests for building a store from settings.
"""

import pytest

from memstore.config.settings import Settings
from memstore.generation.generator import MockGenerator
from memstore.generation.ollama_generator import OllamaGenerator
from memstore.integrate import create_generator, create_memory_store
from memstore.memory.schemas import Message, SearchPayload
from memstore.memory.scoring import LexicalScorer, VectorScorer


def _settings(tmp_path, **sections) -> Settings:
    raw = {"store": {"db_path": str(tmp_path / "memstore.db")}}
    raw.update(sections)
    return Settings.model_validate(raw)


def test_default_store_has_no_extractors(tmp_path):
    store = create_memory_store(_settings(tmp_path))
    assert store.registry.extractors == ()
    assert isinstance(store.search_engine.scorer, LexicalScorer)


def test_enabled_extractors_attached_in_order(tmp_path, fake_encoder):
    settings = _settings(tmp_path, extractors={"enabled": ["intent", "embedder", "summarizer"]})
    store = create_memory_store(settings, encoder=fake_encoder, generator=MockGenerator())

    assert [e.name for e in store.registry.extractors] == ["intent", "embedder", "summarizer"]


def test_unknown_extractor_rejected(tmp_path):
    with pytest.raises(ValueError):
        create_memory_store(_settings(tmp_path, extractors={"enabled": ["sentiment"]}))


def test_vector_scorer_wiring(tmp_path, fake_encoder):
    settings = _settings(
        tmp_path,
        search={"scorer": "vector"},
        extractors={"enabled": ["embedder"], "embedding_model": "fake"},
    )
    store = create_memory_store(settings, encoder=fake_encoder)
    assert isinstance(store.search_engine.scorer, VectorScorer)

    with store:
        store.put_memory("s1", [Message(role="human", content="dog"), Message(role="human", content="cat")])
        assert store.registry.drain(timeout=5)
        results = store.search_memory("s1", SearchPayload(text="cat"))

    assert results[0].message.content == "cat"


def test_reserved_namespace_from_settings(tmp_path):
    store = create_memory_store(_settings(tmp_path, store={
        "db_path": str(tmp_path / "m.db"),
        "reserved_namespace": "internal",
    }))
    assert store.guard.is_reserved("internal.x")
    assert not store.guard.is_reserved("system.x")


def test_create_generator():
    assert isinstance(create_generator(Settings()), MockGenerator)

    settings = Settings.model_validate({"llm": {"provider": "ollama", "model": "phi", "base_url": "http://llm:11434/"}})
    generator = create_generator(settings)
    assert isinstance(generator, OllamaGenerator)
    assert generator.model == "phi"
    assert generator.base_url == "http://llm:11434"
