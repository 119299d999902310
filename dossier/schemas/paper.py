"""Canonical paper schema shared by dedup, storage and extraction."""

from __future__ import annotations

import re
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

_DOI_PREFIX_RE = re.compile(r"^(?:https?://(?:dx\.)?doi\.org/|doi:)", re.IGNORECASE)

# Fields merged field-by-field during dedup (first non-empty value wins).
MERGEABLE_FIELDS = (
    "title",
    "abstract",
    "doi",
    "pmid",
    "pmcid",
    "arxiv_id",
    "semantic_scholar_id",
    "authors",
    "journal",
    "published_year",
    "full_text_url",
    "citation_count",
)


class UnifiedPaper(BaseModel):
    """Source-independent paper. Identifiers are optional; title is required."""

    title: str
    abstract: Optional[str] = None
    doi: Optional[str] = None
    pmid: Optional[str] = None
    pmcid: Optional[str] = None
    arxiv_id: Optional[str] = None
    semantic_scholar_id: Optional[str] = None
    authors: list[str] = Field(default_factory=list)
    journal: Optional[str] = None
    published_year: Optional[int] = None
    full_text_url: Optional[str] = None
    citation_count: Optional[int] = None
    sources: list[str] = Field(default_factory=list)

    @field_validator("doi", mode="before")
    @classmethod
    def _normalize_doi(cls, value: Any) -> Any:
        """DOIs are case-insensitive; keep the bare lowercase form."""
        if not isinstance(value, str):
            return value
        value = _DOI_PREFIX_RE.sub("", value.strip()).lower()
        return value or None


class StoredPaper(BaseModel):
    """A paper after persistence, paired with its database id."""

    paper_id: int
    paper: UnifiedPaper
