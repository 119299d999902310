"""
OpenAI-backed provider: chat completions for extraction/synthesis and the
embeddings endpoint for chunk vectors.

The SDK's own retries are disabled; transient failures (rate limits,
timeouts, dropped connections, 5xx) are retried here with exponential
back-off so every attempt is logged against the pipeline's model role.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    InternalServerError,
    OpenAI,
    RateLimitError,
)

from dossier.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

INITIAL_BACKOFF = 1.0  # seconds
BACKOFF_MULTIPLIER = 2.0
DEFAULT_TEMPERATURE = 0.2
PROMPT_PREVIEW_CHARS = 100

_TRANSIENT_ERRORS = (RateLimitError, APITimeoutError, APIConnectionError, InternalServerError)

T = TypeVar("T")


def _preview(prompt: str) -> str:
    if len(prompt) <= PROMPT_PREVIEW_CHARS:
        return prompt
    return prompt[:PROMPT_PREVIEW_CHARS] + "..."


class OpenAIProvider(LLMProvider):
    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 60.0,
        max_retries: int = 3,
        dimensions: int | None = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.dimensions = dimensions  # embeddings only; None keeps the model's native width
        self._client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> str:
        messages = [{"role": "user", "content": prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})

        request: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": kwargs.get("temperature", DEFAULT_TEMPERATURE),
        }
        for optional in ("max_tokens", "response_format"):
            if optional in kwargs:
                request[optional] = kwargs[optional]

        response, elapsed = self._timed(lambda: self._client.chat.completions.create(**request))
        usage = response.usage
        logger.info(
            "LLM completion: model=%s prompt_preview=%r tokens_in=%d tokens_out=%d latency=%.2fs",
            self.model,
            _preview(prompt),
            usage.prompt_tokens if usage else 0,
            usage.completion_tokens if usage else 0,
            elapsed,
        )
        logger.debug("LLM prompt (full): %s", prompt)
        return response.choices[0].message.content or ""

    def embed(self, texts: list[str]) -> list[list[float]]:
        """One request for the whole batch. The API may reorder items; ``index`` restores input order."""
        if not texts:
            return []
        request: dict[str, Any] = {"model": self.model, "input": texts}
        if self.dimensions:
            request["dimensions"] = self.dimensions

        response, elapsed = self._timed(lambda: self._client.embeddings.create(**request))
        logger.info(
            "LLM embedding: model=%s inputs=%d tokens=%d latency=%.2fs",
            self.model,
            len(texts),
            response.usage.total_tokens if response.usage else 0,
            elapsed,
        )
        return [list(item.embedding) for item in sorted(response.data, key=lambda d: d.index)]

    # ── Retry ───────────────────────────────────────────────────────

    def _timed(self, call: Callable[[], T]) -> tuple[T, float]:
        """Run ``call`` with retries; return the result and total latency including back-off."""
        start = time.monotonic()
        backoff = INITIAL_BACKOFF
        attempt = 1
        while True:
            try:
                return call(), time.monotonic() - start
            except _TRANSIENT_ERRORS as exc:
                if attempt >= self.max_retries:
                    logger.error(
                        "OpenAI %s on %s: giving up after %d attempts",
                        type(exc).__name__,
                        self.model,
                        attempt,
                    )
                    raise
                logger.warning(
                    "OpenAI %s on %s: attempt %d/%d, retrying in %.1fs",
                    type(exc).__name__,
                    self.model,
                    attempt,
                    self.max_retries,
                    backoff,
                )
                time.sleep(backoff)
                backoff *= BACKOFF_MULTIPLIER
                attempt += 1
            except APIError as exc:
                logger.error("OpenAI API error on %s: %s", self.model, exc)
                raise
