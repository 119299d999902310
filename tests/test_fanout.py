"""Tests for the settle-all search fan-out."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from dossier.pipeline.errors import SourceUnavailableError
from dossier.schemas.sources import ArxivRecord, PubMedRecord
from dossier.sources import arxiv, pubmed, semantic_scholar
from dossier.sources.fanout import SourceSearch, build_source_searches, search_all_sources


def _source(name: str, result=None, error: Exception | None = None, delay: float = 0.0, timeout: float = 1.0):
    async def search(query: str):
        if delay:
            await asyncio.sleep(delay)
        if error is not None:
            raise error
        return list(result or [])

    return SourceSearch(name=name, search=search, timeout=timeout)


class TestSearchAllSources:
    async def test_merges_in_source_order(self):
        sources = [
            _source("pubmed", [PubMedRecord(pmid="1", title="a")]),
            _source("arxiv", [ArxivRecord(arxiv_id="2401.1", title="b")]),
        ]
        result = await search_all_sources("claim", sources)
        assert [r.source for r in result.records] == ["pubmed", "arxiv"]
        assert result.counts == {"pubmed": 1, "arxiv": 1}
        assert result.failures == []

    async def test_failing_source_contributes_nothing(self, caplog):
        sources = [
            _source("pubmed", error=RuntimeError("502 from eutils")),
            _source("arxiv", [ArxivRecord(arxiv_id="2401.1", title="b")]),
        ]
        with caplog.at_level("WARNING"):
            result = await search_all_sources("claim", sources)
        assert len(result.records) == 1
        assert result.counts["pubmed"] == 0
        assert isinstance(result.failures[0], SourceUnavailableError)
        assert result.failures[0].source == "pubmed"
        assert "502 from eutils" in caplog.text

    async def test_timeout_is_a_failure_not_an_error(self):
        sources = [
            _source("semantic_scholar", [PubMedRecord(pmid="1")], delay=1.0, timeout=0.01),
            _source("pubmed", [PubMedRecord(pmid="2")]),
        ]
        result = await search_all_sources("claim", sources)
        assert [r.pmid for r in result.records] == ["2"]
        assert "timed out" in result.failures[0].reason

    async def test_all_sources_fail_returns_empty(self):
        sources = [_source(name, error=ValueError("bad")) for name in ("pubmed", "arxiv", "semantic_scholar")]
        result = await search_all_sources("claim", sources)
        assert result.records == []
        assert len(result.failures) == 3

    async def test_runs_sources_concurrently(self):
        sources = [_source(f"s{i}", [], delay=0.2) for i in range(3)]
        loop = asyncio.get_running_loop()
        start = loop.time()
        await search_all_sources("claim", sources)
        assert loop.time() - start < 0.5


class TestBuildSourceSearches:
    def test_binds_settings(self):
        settings = SimpleNamespace(
            search_max_results=12,
            ncbi_api_key="ncbi",
            semantic_scholar_api_key=None,
            search_timeout_pubmed=11.0,
            search_timeout_arxiv=12.0,
            search_timeout_semantic_scholar=13.0,
        )
        sources = build_source_searches(MagicMock(), settings)
        assert [s.name for s in sources] == [
            pubmed.SOURCE_NAME,
            arxiv.SOURCE_NAME,
            semantic_scholar.SOURCE_NAME,
        ]
        assert [s.timeout for s in sources] == [11.0, 12.0, 13.0]
        assert sources[0].search.keywords == {"max_results": 12, "api_key": "ncbi"}


@pytest.mark.parametrize("source_name", ["pubmed", "arxiv"])
def test_source_unavailable_error_message(source_name):
    error = SourceUnavailableError(source_name, "timed out after 30s")
    assert source_name in str(error)
    assert error.reason == "timed out after 30s"
