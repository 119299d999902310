"""Cross-source paper deduplication.

The same work often comes back from several sources under different
identifier schemes. Records are merged through an alias index keyed by every
identifier seen so far, probed in the order DOI, PMID, arXiv ID, Semantic
Scholar ID, PMCID, then normalized title. On a match the canonical paper only
gains information: empty fields are filled, populated fields keep their
first-seen value, and the new record's identifiers become aliases of the
canonical entry. A record that links two canonical entries (one by DOI,
another by PMID, say) merges them, so no two outputs ever share an identifier.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from dossier.schemas.paper import MERGEABLE_FIELDS, UnifiedPaper
from dossier.schemas.sources import ArxivRecord, PubMedRecord, SemanticScholarRecord
from dossier.sources import to_unified

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")

# (index prefix, UnifiedPaper attribute), in probe order
_IDENTIFIER_KEYS = (
    ("doi", "doi"),
    ("pmid", "pmid"),
    ("arxiv", "arxiv_id"),
    ("s2", "semantic_scholar_id"),
    ("pmcid", "pmcid"),
)


def normalize_title(title: str | None) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    if not title:
        return ""
    stripped = _PUNCTUATION_RE.sub("", title.lower())
    return _WHITESPACE_RE.sub(" ", stripped).strip()


def _is_empty(value: object) -> bool:
    return value is None or value == "" or value == []


def identity_keys(paper: UnifiedPaper) -> list[str]:
    """Alias-index keys for a paper, in probe order."""
    keys: list[str] = []
    for prefix, attr in _IDENTIFIER_KEYS:
        value = getattr(paper, attr)
        if value:
            keys.append(f"{prefix}:{str(value).strip().lower()}")
    title = normalize_title(paper.title)
    if title:
        keys.append(f"title:{title}")
    return keys


def _merge_into(target: UnifiedPaper, incoming: UnifiedPaper) -> None:
    for name in MERGEABLE_FIELDS:
        if _is_empty(getattr(target, name)) and not _is_empty(getattr(incoming, name)):
            value = getattr(incoming, name)
            setattr(target, name, list(value) if isinstance(value, list) else value)
    for source in incoming.sources:
        if source not in target.sources:
            target.sources.append(source)


def deduplicate_papers(
    records: Iterable[UnifiedPaper | PubMedRecord | ArxivRecord | SemanticScholarRecord],
) -> list[UnifiedPaper]:
    """Merge records from any mix of sources into unique canonical papers.

    Source records are converted with their adapter's conversion function
    first. A record whose keys hit several canonical entries joins them all:
    later entries fold into the earliest one, which keeps its populated
    fields. Output preserves first-seen order; input objects are not mutated.
    """
    canonical: list[UnifiedPaper | None] = []
    index: dict[str, int] = {}

    for record in records:
        paper = record if isinstance(record, UnifiedPaper) else to_unified(record)
        keys = identity_keys(paper)

        hits = sorted({index[key] for key in keys if key in index})
        if not hits:
            position = len(canonical)
            canonical.append(paper.model_copy(deep=True))
        else:
            position = hits[0]
            absorbed = set(hits[1:])
            for other in hits[1:]:
                _merge_into(canonical[position], canonical[other])
                canonical[other] = None
            if absorbed:
                for key, owner in index.items():
                    if owner in absorbed:
                        index[key] = position
            _merge_into(canonical[position], paper)

        for key in identity_keys(canonical[position]) + keys:
            index[key] = position

    return [paper for paper in canonical if paper is not None]
