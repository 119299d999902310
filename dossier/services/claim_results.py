"""Persistence of the claim's result record (verdict sign, confidence, summaries)."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from dossier.models.claim_result import ClaimResult
from dossier.schemas.verdict import SynthesisVerdict

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "ACTIVE"


def verdict_values(verdict: SynthesisVerdict) -> dict:
    """Column values written when a verdict lands."""
    return {
        "status": ACTIVE_STATUS,
        "ai_verdict": verdict.sign,
        "ai_confidence": verdict.confidence,
        "outcome": verdict.verdict,
        "effect_direction": verdict.effect_direction,
        "strength_of_evidence": verdict.strength_of_evidence,
        "short_summary": verdict.short_summary,
        "consensus_summary": verdict.detailed_summary,
        "key_factors": list(verdict.key_factors),
        "caveats": list(verdict.caveats),
        "what_would_change_verdict": verdict.what_would_change_verdict,
        "recommended_action": verdict.recommended_action,
    }


def update_claim_result(
    db: Session,
    claim_id: int,
    verdict: SynthesisVerdict | None,
    dossier_at: datetime | None = None,
) -> None:
    """Upsert the result row. Without a verdict only ``last_dossier_at`` moves."""
    values: dict = {"last_dossier_at": dossier_at or datetime.now(UTC)}
    if verdict is not None:
        values.update(verdict_values(verdict))

    stmt = insert(ClaimResult).values(claim_id=claim_id, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[ClaimResult.claim_id],
        set_={**values, "updated_at": func.now()},
    )
    try:
        db.execute(stmt)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(
        "Claim result updated: claim_id=%s sign=%s",
        claim_id,
        values.get("ai_verdict"),
    )
