"""Text generation backends used by LLM-driven extractors."""
from __future__ import annotations
from typing import Dict, List, Optional
from dataclasses import dataclass
from abc import ABC, abstractmethod
import time


@dataclass
class GenerationConfig:
    """Configuration for text generation."""
    model_name: str = "mock"
    max_new_tokens: int = 256
    temperature: float = 0.1
    top_p: float = 0.9


@dataclass
class GeneratedResponse:
    """Container for generated response with metadata."""
    text: str
    model_used: str
    prompt_length: int
    response_length: int
    processing_time: float = 0.0


class BaseGenerator(ABC):
    """Abstract base class for text generators."""

    @abstractmethod
    def generate(self, prompt: str, config: Optional[GenerationConfig] = None) -> GeneratedResponse:
        """Generate text based on the given prompt."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the generator is available and ready to use."""
        pass


class MockGenerator(BaseGenerator):
    """
    Deterministic generator for tests and offline runs.

    Returns the response of the first keyword found in the prompt, or the
    default response. Every prompt is recorded in `prompts`.
    """

    def __init__(self, mock_responses: Optional[Dict[str, str]] = None, default: str = "unknown"):
        self.mock_responses = dict(mock_responses or {})
        self.default = default
        self.prompts: List[str] = []

    def generate(self, prompt: str, config: Optional[GenerationConfig] = None) -> GeneratedResponse:
        start_time = time.time()
        self.prompts.append(prompt)
        prompt_lower = prompt.lower()

        response_text = self.default
        for keyword, response in self.mock_responses.items():
            if keyword.lower() in prompt_lower:
                response_text = response
                break

        return GeneratedResponse(
            text=response_text,
            model_used="mock_generator",
            prompt_length=len(prompt),
            response_length=len(response_text),
            processing_time=time.time() - start_time,
        )

    def is_available(self) -> bool:
        """Mock generator is always available."""
        return True
