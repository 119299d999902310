"""
Language-model interface used by the dossier pipeline.

Two capabilities only: JSON-mode completion for evidence extraction and
verdict synthesis, and embeddings for chunk and query vectors. Implementations
are synchronous; pipeline code calls them through ``asyncio.to_thread``.
"""

from abc import ABC, abstractmethod
from typing import Any


class LLMProvider(ABC):
    # Model id; logged with every call and used in provider cache keys.
    model: str

    @abstractmethod
    def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Return the completion text. kwargs: temperature, max_tokens, response_format."""

    @abstractmethod
    def embed(self, texts: list[str]) -> list[list[float]]:
        """One vector per text, in input order."""
