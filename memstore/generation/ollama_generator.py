"""
Ollama generator adapter for local LLM inference.

Implements BaseGenerator over the Ollama REST API.
"""

import requests
import time
from typing import Optional

from memstore.generation.generator import (
    BaseGenerator,
    GeneratedResponse,
    GenerationConfig,
)


class OllamaGenerator(BaseGenerator):
    """
    Generator that uses Ollama for local LLM inference.

    Ollama must be running locally (default: http://localhost:11434).
    """

    def __init__(
        self,
        model: str = "llama3",
        base_url: str = "http://localhost:11434",
        timeout: int = 60,
        check: bool = True,
    ):
        """
        Initialize Ollama generator.

        Args:
            model: Ollama model name (e.g., "llama3", "mistral", "phi")
            base_url: Ollama API base URL
            timeout: Request timeout in seconds
            check: Verify the server is reachable now

        Raises:
            RuntimeError: If `check` is set and the Ollama server is not reachable
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        if check and not self._check_availability():
            raise RuntimeError(
                f"Ollama not reachable at {self.base_url}. "
                f"Please start Ollama with 'ollama serve' or check the URL."
            )

    def _check_availability(self) -> bool:
        """Check if Ollama server is running."""
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False

    def is_available(self) -> bool:
        return self._check_availability()

    def generate(self, prompt: str, config: Optional[GenerationConfig] = None) -> GeneratedResponse:
        """
        Generate text using Ollama (non-streaming).

        Raises:
            RuntimeError: If the request fails or returns a non-200 status
        """
        start_time = time.time()
        temperature = config.temperature if config else 0.1
        max_tokens = config.max_new_tokens if config else 256

        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }

        try:
            response = requests.post(
                f"{self.base_url}/api/generate",
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise RuntimeError(f"Ollama request failed: {e}") from e

        if response.status_code != 200:
            raise RuntimeError(
                f"Ollama API returned status {response.status_code}: {response.text}"
            )

        response_text = response.json().get("response", "").strip()
        return GeneratedResponse(
            text=response_text,
            model_used=self.model,
            prompt_length=len(prompt),
            response_length=len(response_text),
            processing_time=time.time() - start_time,
        )

    def __repr__(self) -> str:
        return f"OllamaGenerator(model={self.model!r}, base_url={self.base_url!r})"
