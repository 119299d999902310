"""LLM provider abstraction. The model reasons over evidence; it never orchestrates."""

from dossier.llm.openai_provider import OpenAIProvider
from dossier.llm.provider import LLMProvider
from dossier.llm.router import ModelRole, get_llm_provider

__all__ = ["LLMProvider", "ModelRole", "OpenAIProvider", "get_llm_provider"]
