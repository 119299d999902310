"""Research API request/response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ResearchRequest(BaseModel):
    """Body for POST /api/claims/{claim_id}/research (optional)."""

    requester_id: str = Field("system", min_length=1, max_length=255)


class ResearchJobResponse(BaseModel):
    job_id: int
    claim_id: int
    status: str
    progress: int
    created: bool


class ResearchStatusResponse(BaseModel):
    job_id: int | None
    status: str
    progress: int
    step_label: str | None
    attempt: int | None = None
    error: str | None
    created_at: datetime | None
    started_at: datetime | None
    finished_at: datetime | None
    message: str | None = None


class EvidenceItem(BaseModel):
    paper_id: int
    title: str
    authors: list[str]
    journal: str | None
    published_year: int | None
    doi: str | None
    pmid: str | None
    arxiv_id: str | None
    full_text_url: str | None
    stance: str | None
    ai_summary: str | None
    abstract_snippet: str | None
    study_type: str | None
    sample_size: int | None
    confidence_score: float | None
    created_at: datetime | None


class EvidenceListResponse(BaseModel):
    claim_id: int
    count: int
    evidence: list[EvidenceItem]


class VerdictResponse(BaseModel):
    """Either ``available=False`` with a status message, or the verdict fields."""

    available: bool
    status: str | None = None
    message: str | None = None
    verdict: str | None = None
    ai_verdict: str | None = None
    confidence: float | None = None
    short_summary: str | None = None
    detailed_summary: str | None = None
    last_updated: datetime | None = None
