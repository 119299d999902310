"""Claim research routes: job intake, progress polling, evidence and verdict reads."""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from dossier.api.deps import get_db, require_internal_token
from dossier.pipeline.errors import ClaimNotFoundError
from dossier.schemas.research import (
    EvidenceListResponse,
    ResearchJobResponse,
    ResearchRequest,
    ResearchStatusResponse,
    VerdictResponse,
)
from dossier.services.claim_loader import get_claim
from dossier.services.job_queue import enqueue
from dossier.services.research_status import (
    get_research_status,
    get_verdict_view,
    list_evidence,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_claim(db: Session, claim_id: int) -> None:
    try:
        get_claim(db, claim_id)
    except ClaimNotFoundError:
        raise HTTPException(status_code=404, detail="Claim not found") from None


@router.post("/{claim_id}/research", response_model=ResearchJobResponse, status_code=201)
def api_start_research(
    claim_id: int,
    response: Response,
    data: ResearchRequest | None = None,
    db: Session = Depends(get_db),
    _token: None = Depends(require_internal_token),
) -> ResearchJobResponse:
    """Queue a dossier job. An already active job is returned with 200."""
    requester_id = data.requester_id if data is not None else "system"
    try:
        job, created = enqueue(db, claim_id, requester_id)
    except ClaimNotFoundError:
        raise HTTPException(status_code=404, detail="Claim not found") from None
    if not created:
        response.status_code = 200
    return ResearchJobResponse(
        job_id=job.id,
        claim_id=job.claim_id,
        status=job.status,
        progress=job.progress,
        created=created,
    )


@router.get("/{claim_id}/research/status", response_model=ResearchStatusResponse)
def api_research_status(
    claim_id: int,
    db: Session = Depends(get_db),
) -> ResearchStatusResponse:
    """Latest dossier job for the claim, with a human-readable step label."""
    return ResearchStatusResponse(**get_research_status(db, claim_id))


@router.get("/{claim_id}/evidence", response_model=EvidenceListResponse)
def api_list_evidence(
    claim_id: int,
    sort: Literal["relevance", "recency", "studyType"] = Query("relevance"),
    stance: Literal["SUPPORTS", "REFUTES", "NEUTRAL"] | None = Query(None),
    db: Session = Depends(get_db),
) -> EvidenceListResponse:
    """Evidence cards for the claim, filtered by stance and sorted."""
    _require_claim(db, claim_id)
    items = list_evidence(db, claim_id, sort=sort, stance=stance)
    return EvidenceListResponse(claim_id=claim_id, count=len(items), evidence=items)


@router.get("/{claim_id}/verdict", response_model=VerdictResponse)
def api_get_verdict(
    claim_id: int,
    db: Session = Depends(get_db),
) -> VerdictResponse:
    _require_claim(db, claim_id)
    return VerdictResponse(**get_verdict_view(db, claim_id))
