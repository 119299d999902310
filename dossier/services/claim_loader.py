"""Claim lookup for the pipeline."""

from __future__ import annotations

from sqlalchemy.orm import Session

from dossier.models.claim import Claim
from dossier.pipeline.errors import ClaimNotFoundError


def get_claim(db: Session, claim_id: int) -> Claim:
    """Return the claim or raise ``ClaimNotFoundError``."""
    claim = db.query(Claim).filter(Claim.id == claim_id).first()
    if claim is None:
        raise ClaimNotFoundError(claim_id)
    return claim
