"""
Extractors: post-processing observers for committed messages.

Provides:
- BaseExtractor contract
- ExtractorRegistry (attach/detach, fault-isolated fan-out)
- EmbeddingExtractor, SummaryExtractor, IntentExtractor
"""

from .base import BaseExtractor
from .registry import ExtractorRegistry
from .embedder import EmbeddingExtractor
from .summarizer import SummaryExtractor
from .intent import IntentExtractor, INTENT_KEY

__all__ = [
    "BaseExtractor",
    "ExtractorRegistry",
    "EmbeddingExtractor",
    "SummaryExtractor",
    "IntentExtractor",
    "INTENT_KEY",
]
