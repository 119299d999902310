"""Source-specific paper records returned by the search adapters.

Each adapter returns its own tagged record type. Records are ephemeral: they
live for one pipeline run and are converted to ``UnifiedPaper`` by the
conversion function in the adapter module that produced them.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class PubMedRecord(BaseModel):
    """Parsed PubMed efetch article."""

    source: Literal["pubmed"] = "pubmed"
    pmid: str
    pmcid: Optional[str] = None
    doi: Optional[str] = None
    title: str = ""
    abstract: Optional[str] = None
    authors: list[str] = Field(default_factory=list)
    journal: Optional[str] = None
    published_year: Optional[int] = None
    full_text_url: Optional[str] = None


class ArxivRecord(BaseModel):
    """Parsed arXiv Atom entry."""

    source: Literal["arxiv"] = "arxiv"
    arxiv_id: str
    title: str = ""
    abstract: str = ""
    authors: list[str] = Field(default_factory=list)
    published_date: str = ""
    published_year: Optional[int] = None
    pdf_url: str = ""
    categories: list[str] = Field(default_factory=list)
    doi: Optional[str] = None


class SemanticScholarRecord(BaseModel):
    """Semantic Scholar graph API paper."""

    source: Literal["semantic_scholar"] = "semantic_scholar"
    paper_id: str
    doi: Optional[str] = None
    pmid: Optional[str] = None
    arxiv_id: Optional[str] = None
    pmcid: Optional[str] = None
    title: str = ""
    abstract: Optional[str] = None
    tldr: Optional[str] = None
    authors: list[str] = Field(default_factory=list)
    year: Optional[int] = None
    citation_count: int = 0
    journal: Optional[str] = None
    publication_types: list[str] = Field(default_factory=list)


SourceRecord = Annotated[
    Union[PubMedRecord, ArxivRecord, SemanticScholarRecord],
    Field(discriminator="source"),
]
