"""Batched embedding generation on top of the LLM provider."""

from __future__ import annotations

import asyncio
import math
import logging

from dossier.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class EmbeddingGenerator:
    """Embeds texts in sequential provider-sized batches.

    The provider client is synchronous; calls run in a worker thread so the
    event loop stays free for other jobs.
    """

    def __init__(self, provider: LLMProvider, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.provider = provider
        self.batch_size = batch_size

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, in input order."""
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            batch_vectors = await asyncio.to_thread(self.provider.embed, batch)
            if len(batch_vectors) != len(batch):
                raise ValueError(
                    f"Embedding provider returned {len(batch_vectors)} vectors for {len(batch)} inputs"
                )
            vectors.extend(batch_vectors)
        logger.debug(
            "Embedded %d texts in %d batch(es)", len(texts), math.ceil(len(texts) / self.batch_size)
        )
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        vectors = await asyncio.to_thread(self.provider.embed, [text])
        return vectors[0]
