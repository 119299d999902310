"""Tests for batched embedding generation."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from dossier.services.embeddings import EmbeddingGenerator


def _provider(dim: int = 3) -> MagicMock:
    provider = MagicMock()
    provider.embed.side_effect = lambda texts: [[float(len(t))] * dim for t in texts]
    return provider


class TestEmbedTexts:
    async def test_batches_in_order(self) -> None:
        provider = _provider()
        gen = EmbeddingGenerator(provider, batch_size=2)

        vectors = await gen.embed_texts(["a", "bb", "ccc", "dddd", "eeeee"])

        assert [v[0] for v in vectors] == [1.0, 2.0, 3.0, 4.0, 5.0]
        batches = [call.args[0] for call in provider.embed.call_args_list]
        assert batches == [["a", "bb"], ["ccc", "dddd"], ["eeeee"]]

    async def test_empty_input_skips_provider(self) -> None:
        provider = _provider()
        gen = EmbeddingGenerator(provider)

        assert await gen.embed_texts([]) == []
        provider.embed.assert_not_called()

    async def test_count_mismatch_raises(self) -> None:
        provider = MagicMock()
        provider.embed.return_value = [[0.1, 0.2]]
        gen = EmbeddingGenerator(provider, batch_size=10)

        with pytest.raises(ValueError, match="1 vectors for 2 inputs"):
            await gen.embed_texts(["one", "two"])

    async def test_provider_error_propagates(self) -> None:
        provider = MagicMock()
        provider.embed.side_effect = RuntimeError("quota")
        gen = EmbeddingGenerator(provider)

        with pytest.raises(RuntimeError, match="quota"):
            await gen.embed_texts(["x"])


class TestEmbedQuery:
    async def test_returns_single_vector(self) -> None:
        provider = _provider(dim=2)
        gen = EmbeddingGenerator(provider)

        assert await gen.embed_query("four") == [4.0, 4.0]
        provider.embed.assert_called_once_with(["four"])


def test_rejects_zero_batch_size() -> None:
    with pytest.raises(ValueError):
        EmbeddingGenerator(MagicMock(), batch_size=0)
