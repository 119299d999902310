"""
Role-based provider selection.

Extraction, synthesis and embedding each get their own provider instance so
they can run on different models. Instances are cached per provider and role
and shared across a process's job loops.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from dossier.llm.provider import LLMProvider

if TYPE_CHECKING:
    from dossier.config import Settings

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai",)


class ModelRole(str, Enum):
    EXTRACTION = "extraction"  # one structured call per paper
    SYNTHESIS = "synthesis"  # one verdict call per claim
    EMBEDDING = "embedding"  # chunk and query vectors


# Settings attribute holding the model id for each role
_ROLE_MODEL_SETTING = {
    ModelRole.EXTRACTION: "llm_model_extraction",
    ModelRole.SYNTHESIS: "llm_model_synthesis",
    ModelRole.EMBEDDING: "embedding_model",
}

_provider_cache: dict[tuple[str, ModelRole], LLMProvider] = {}


def _build_openai(settings: Settings, role: ModelRole) -> LLMProvider:
    if not settings.llm_api_key:
        raise ValueError("LLM_API_KEY is required for the OpenAI provider")

    from dossier.llm.openai_provider import OpenAIProvider

    return OpenAIProvider(
        api_key=settings.llm_api_key,
        model=getattr(settings, _ROLE_MODEL_SETTING[role]),
        timeout=settings.llm_timeout,
        max_retries=settings.llm_max_retries,
        dimensions=settings.embedding_dimensions if role is ModelRole.EMBEDDING else None,
    )


def get_llm_provider(
    role: ModelRole = ModelRole.EXTRACTION,
    settings: Settings | None = None,
) -> LLMProvider:
    """Cached provider for ``role``. Raises ValueError for an unknown provider or missing key."""
    if settings is None:
        from dossier.config import get_settings

        settings = get_settings()

    provider_name = settings.llm_provider.lower()
    key = (provider_name, role)
    if key in _provider_cache:
        return _provider_cache[key]

    if provider_name not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unknown LLM provider {provider_name!r}; supported: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    provider = _build_openai(settings, role)

    _provider_cache[key] = provider
    logger.info("LLM provider ready: %s role=%s model=%s", provider_name, role.value, provider.model)
    return provider


def clear_provider_cache() -> None:
    _provider_cache.clear()
