"""Literature source adapters: PubMed, arXiv and Semantic Scholar.

Each adapter returns its own tagged record type; ``to_unified`` dispatches a
record to the conversion function of the adapter that produced it.
"""

from __future__ import annotations

from collections.abc import Callable

from dossier.schemas.paper import UnifiedPaper
from dossier.schemas.sources import ArxivRecord, PubMedRecord, SemanticScholarRecord
from dossier.sources import arxiv, pubmed, semantic_scholar

_CONVERTERS: dict[str, Callable] = {
    pubmed.SOURCE_NAME: pubmed.to_unified,
    arxiv.SOURCE_NAME: arxiv.to_unified,
    semantic_scholar.SOURCE_NAME: semantic_scholar.to_unified,
}


def to_unified(record: PubMedRecord | ArxivRecord | SemanticScholarRecord) -> UnifiedPaper:
    """Convert a source record to the canonical paper schema."""
    try:
        converter = _CONVERTERS[record.source]
    except KeyError:
        raise ValueError(f"Unknown paper source: {record.source!r}") from None
    return converter(record)


__all__ = ["arxiv", "pubmed", "semantic_scholar", "to_unified"]
