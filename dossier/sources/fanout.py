"""Concurrent settle-all search across the literature sources.

Every source runs as its own task under its own timeout. A source that raises
or times out contributes zero records and never fails the search as a whole.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING

import httpx

from dossier.pipeline.errors import SourceUnavailableError
from dossier.sources import arxiv, pubmed, semantic_scholar

if TYPE_CHECKING:
    from dossier.config import Settings

logger = logging.getLogger(__name__)

SearchFn = Callable[[str], Awaitable[list]]


@dataclass(frozen=True)
class SourceSearch:
    """One searchable source: name, bound search coroutine function, timeout in seconds."""

    name: str
    search: SearchFn
    timeout: float


@dataclass
class FanoutResult:
    records: list = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    failures: list[SourceUnavailableError] = field(default_factory=list)


def build_source_searches(
    client: httpx.AsyncClient,
    settings: Settings,
) -> list[SourceSearch]:
    """Bind the three adapters to a shared HTTP client and configured limits."""
    max_results = settings.search_max_results
    return [
        SourceSearch(
            name=pubmed.SOURCE_NAME,
            search=partial(
                pubmed.search, client, max_results=max_results, api_key=settings.ncbi_api_key
            ),
            timeout=settings.search_timeout_pubmed,
        ),
        SourceSearch(
            name=arxiv.SOURCE_NAME,
            search=partial(arxiv.search, client, max_results=max_results),
            timeout=settings.search_timeout_arxiv,
        ),
        SourceSearch(
            name=semantic_scholar.SOURCE_NAME,
            search=partial(
                semantic_scholar.search,
                client,
                max_results=max_results,
                api_key=settings.semantic_scholar_api_key,
            ),
            timeout=settings.search_timeout_semantic_scholar,
        ),
    ]


async def _run_one(source: SourceSearch, query: str) -> list:
    return await asyncio.wait_for(source.search(query), timeout=source.timeout)


async def search_all_sources(query: str, sources: Sequence[SourceSearch]) -> FanoutResult:
    """Run every source concurrently and merge whatever succeeded.

    Records are returned in source order, then in each source's own order.
    """
    outcomes = await asyncio.gather(
        *(_run_one(source, query) for source in sources),
        return_exceptions=True,
    )

    result = FanoutResult()
    for source, outcome in zip(sources, outcomes):
        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, asyncio.TimeoutError):
                reason = f"timed out after {source.timeout:.0f}s"
            else:
                reason = f"{type(outcome).__name__}: {outcome}"
            error = SourceUnavailableError(source.name, reason)
            logger.warning("Source unavailable, continuing without it: %s", error)
            result.failures.append(error)
            result.counts[source.name] = 0
            continue
        result.records.extend(outcome)
        result.counts[source.name] = len(outcome)

    logger.info(
        "Search fan-out: query=%r total=%d per_source=%s failed=%d",
        query,
        len(result.records),
        result.counts,
        len(result.failures),
    )
    return result
