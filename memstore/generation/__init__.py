"""
Text generation backends.

Provides:
- BaseGenerator contract with GenerationConfig / GeneratedResponse
- MockGenerator for tests and offline runs
- OllamaGenerator for a local Ollama server
"""

from .generator import BaseGenerator, GenerationConfig, GeneratedResponse, MockGenerator
from .ollama_generator import OllamaGenerator

__all__ = [
    "BaseGenerator",
    "GenerationConfig",
    "GeneratedResponse",
    "MockGenerator",
    "OllamaGenerator",
]
