"""Read side of the research pipeline: job status, evidence list, verdict view."""

from __future__ import annotations

import re
from typing import Any

from sqlalchemy.orm import Session, joinedload

from dossier.models.claim_paper import ClaimPaper
from dossier.models.claim_result import ClaimResult
from dossier.models.dossier_job import DossierJob
from dossier.pipeline.progress import step_label
from dossier.services.job_queue import get_latest_job

EVIDENCE_SORTS = ("relevance", "recency", "studyType")
STANCE_FILTERS = ("SUPPORTS", "REFUTES", "NEUTRAL")

# Confidence at or above which an unsigned verdict is shown as "Mixed".
MIXED_CONFIDENCE_THRESHOLD = 0.4

_FIRST_SENTENCE_RE = re.compile(r"^(.+?[.!?])(?:\s|$)", re.DOTALL)


def job_status_view(job: DossierJob) -> dict[str, Any]:
    return {
        "job_id": job.id,
        "status": job.status,
        "progress": job.progress,
        "step_label": step_label(job.progress),
        "attempt": job.attempt,
        "error": job.error,
        "created_at": job.created_at,
        "started_at": job.started_at,
        "finished_at": job.finished_at,
    }


def get_research_status(db: Session, claim_id: int) -> dict[str, Any]:
    """Status of the claim's most recent dossier job."""
    job = get_latest_job(db, claim_id)
    if job is None:
        return {
            "job_id": None,
            "status": "NONE",
            "progress": 0,
            "step_label": None,
            "attempt": None,
            "error": None,
            "created_at": None,
            "started_at": None,
            "finished_at": None,
            "message": "No research has been started",
        }
    return job_status_view(job)


def _evidence_item(cp: ClaimPaper) -> dict[str, Any]:
    paper = cp.paper
    return {
        "paper_id": cp.paper_id,
        "title": paper.title,
        "authors": paper.authors or [],
        "journal": paper.journal,
        "published_year": paper.published_year,
        "doi": paper.doi,
        "pmid": paper.pmid,
        "arxiv_id": paper.arxiv_id,
        "full_text_url": paper.full_text_url,
        "stance": cp.stance,
        "ai_summary": cp.ai_summary,
        "abstract_snippet": cp.abstract_snippet,
        "study_type": cp.study_type,
        "sample_size": cp.sample_size,
        "confidence_score": cp.confidence_score,
        "created_at": cp.created_at,
    }


def list_evidence(
    db: Session,
    claim_id: int,
    sort: str = "relevance",
    stance: str | None = None,
) -> list[dict[str, Any]]:
    """Extracted evidence for a claim. Rows without an AI summary are skipped."""
    if sort not in EVIDENCE_SORTS:
        raise ValueError(f"Unknown evidence sort: {sort}")
    query = (
        db.query(ClaimPaper)
        .options(joinedload(ClaimPaper.paper))
        .filter(ClaimPaper.claim_id == claim_id, ClaimPaper.ai_summary.isnot(None))
    )
    if stance is not None:
        if stance not in STANCE_FILTERS:
            raise ValueError(f"Unknown stance filter: {stance}")
        query = query.filter(ClaimPaper.stance == stance)

    if sort == "recency":
        query = query.order_by(ClaimPaper.created_at.desc())
    elif sort == "studyType":
        query = query.order_by(ClaimPaper.study_type.asc())
    else:
        query = query.order_by(ClaimPaper.confidence_score.desc().nulls_last())
    return [_evidence_item(cp) for cp in query.all()]


def verdict_label(ai_verdict: str | None, confidence: float | None) -> str:
    """Display label for a stored verdict sign."""
    if ai_verdict == "YES":
        return "Supported"
    if ai_verdict == "NO":
        return "Contradicted"
    if confidence is not None and confidence >= MIXED_CONFIDENCE_THRESHOLD:
        return "Mixed"
    return "Insufficient"


def first_sentence(text: str | None) -> str | None:
    if not text:
        return None
    text = text.strip()
    match = _FIRST_SENTENCE_RE.match(text)
    return match.group(1) if match else text


def get_verdict_view(db: Session, claim_id: int) -> dict[str, Any]:
    result = db.query(ClaimResult).filter(ClaimResult.claim_id == claim_id).first()
    if result is None or result.ai_confidence is None:
        return {
            "available": False,
            "status": result.status if result is not None else "PENDING",
            "message": "No verdict available yet",
        }
    return {
        "available": True,
        "verdict": verdict_label(result.ai_verdict, result.ai_confidence),
        "ai_verdict": result.ai_verdict,
        "confidence": result.ai_confidence,
        "short_summary": result.short_summary or first_sentence(result.consensus_summary),
        "detailed_summary": result.consensus_summary,
        "last_updated": result.last_dossier_at or result.updated_at,
    }
