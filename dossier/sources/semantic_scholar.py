"""Semantic Scholar search adapter (Academic Graph API).

Free tier allows roughly 100 requests per 5 minutes without a key. A single
HTTP 429 is retried once after a back-off; a second 429 raises.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from dossier.schemas.paper import UnifiedPaper
from dossier.schemas.sources import SemanticScholarRecord
from dossier.sources.pubmed import normalize_pmcid

logger = logging.getLogger(__name__)

SOURCE_NAME = "semantic_scholar"

S2_SEARCH_URL = "https://api.semanticscholar.org/graph/v1/paper/search"
MAX_LIMIT = 100
RATE_LIMIT_BACKOFF = 5.0  # seconds

PAPER_FIELDS = ",".join(
    [
        "paperId",
        "externalIds",
        "title",
        "abstract",
        "tldr",
        "authors",
        "year",
        "citationCount",
        "journal",
        "publicationTypes",
    ]
)


def _headers(api_key: str | None) -> dict[str, str]:
    headers = {"Accept": "application/json"}
    if api_key:
        headers["x-api-key"] = api_key
    return headers


async def search(
    client: httpx.AsyncClient,
    query: str,
    max_results: int = 20,
    api_key: str | None = None,
    backoff: float = RATE_LIMIT_BACKOFF,
) -> list[SemanticScholarRecord]:
    """Search for empirical papers. Appends " study" to nudge away from news items."""
    params = {
        "query": f"{query} study",
        "limit": str(min(max_results, MAX_LIMIT)),
        "offset": "0",
        "fields": PAPER_FIELDS,
    }
    headers = _headers(api_key)

    response = await client.get(S2_SEARCH_URL, params=params, headers=headers)
    if response.status_code == 429:
        logger.warning("Semantic Scholar rate limited, retrying once in %.1fs", backoff)
        await asyncio.sleep(backoff)
        response = await client.get(S2_SEARCH_URL, params=params, headers=headers)
    response.raise_for_status()

    data = response.json()
    records = [parse_paper(item) for item in data.get("data") or [] if item.get("paperId")]
    logger.info("Semantic Scholar search: query=%r results=%d", query, len(records))
    return records


def parse_paper(item: dict[str, Any]) -> SemanticScholarRecord:
    """Map one graph API paper object to a record."""
    external = item.get("externalIds") or {}
    tldr = item.get("tldr") or {}
    journal = item.get("journal") or {}
    return SemanticScholarRecord(
        paper_id=item["paperId"],
        doi=external.get("DOI"),
        pmid=str(external["PubMed"]) if external.get("PubMed") else None,
        arxiv_id=external.get("ArXiv"),
        pmcid=normalize_pmcid(external.get("PubMedCentral")),
        title=item.get("title") or "",
        abstract=item.get("abstract"),
        tldr=tldr.get("text"),
        authors=[a["name"] for a in item.get("authors") or [] if a.get("name")],
        year=item.get("year"),
        citation_count=item.get("citationCount") or 0,
        journal=journal.get("name") or None,
        publication_types=list(item.get("publicationTypes") or []),
    )


def to_unified(record: SemanticScholarRecord) -> UnifiedPaper:
    return UnifiedPaper(
        title=record.title,
        abstract=record.abstract or record.tldr,
        doi=record.doi,
        pmid=record.pmid,
        pmcid=record.pmcid,
        arxiv_id=record.arxiv_id,
        semantic_scholar_id=record.paper_id,
        authors=list(record.authors),
        journal=record.journal,
        published_year=record.year,
        citation_count=record.citation_count,
        sources=[SOURCE_NAME],
    )
