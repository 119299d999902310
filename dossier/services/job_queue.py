"""Database-backed dossier job queue.

QUEUED rows in ``dossier_jobs`` are the queue. Workers pick them with
``FOR UPDATE SKIP LOCKED`` so concurrent workers never take the same row.
A failed run is retried as a new QUEUED row with ``attempt + 1`` and an
exponentially growing ``run_after``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import or_
from sqlalchemy.orm import Session

from dossier.models.dossier_job import DossierJob
from dossier.pipeline.job_state import ACTIVE_STATUSES, JobStatus
from dossier.services.claim_loader import get_claim

logger = logging.getLogger(__name__)

# A QUEUED row claimed longer ago than this is treated as abandoned.
CLAIM_TIMEOUT = timedelta(minutes=10)


def _now() -> datetime:
    return datetime.now(UTC)


def get_active_job(db: Session, claim_id: int) -> DossierJob | None:
    """Return the claim's QUEUED or RUNNING job, newest first."""
    return (
        db.query(DossierJob)
        .filter(
            DossierJob.claim_id == claim_id,
            DossierJob.status.in_(ACTIVE_STATUSES),
        )
        .order_by(DossierJob.created_at.desc(), DossierJob.id.desc())
        .first()
    )


def get_latest_job(db: Session, claim_id: int) -> DossierJob | None:
    return (
        db.query(DossierJob)
        .filter(DossierJob.claim_id == claim_id)
        .order_by(DossierJob.created_at.desc(), DossierJob.id.desc())
        .first()
    )


def enqueue(db: Session, claim_id: int, requester_id: str = "system") -> tuple[DossierJob, bool]:
    """Queue a dossier job for a claim.

    Returns ``(job, created)``. When the claim already has an active job that
    job is returned with ``created=False``. Raises ClaimNotFoundError when the
    claim does not exist.
    """
    get_claim(db, claim_id)

    existing = get_active_job(db, claim_id)
    if existing is not None:
        logger.info(
            "Dossier job already active for claim %s: job_id=%s status=%s",
            claim_id,
            existing.id,
            existing.status,
        )
        return existing, False

    job = DossierJob(
        claim_id=claim_id,
        requester_id=requester_id,
        status=JobStatus.QUEUED.value,
        progress=0,
        attempt=1,
        run_after=_now(),
    )
    db.add(job)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(job)
    logger.info("Dossier job queued: job_id=%s claim_id=%s requester=%s", job.id, claim_id, requester_id)
    return job, True


def claim_next_job(db: Session, now: datetime | None = None) -> DossierJob | None:
    """Reserve the next runnable QUEUED job, or return None when idle.

    The row stays QUEUED; the orchestrator moves it to RUNNING.
    """
    now = now or _now()
    job = (
        db.query(DossierJob)
        .filter(
            DossierJob.status == JobStatus.QUEUED.value,
            DossierJob.run_after <= now,
            or_(
                DossierJob.claimed_at.is_(None),
                DossierJob.claimed_at < now - CLAIM_TIMEOUT,
            ),
        )
        .order_by(DossierJob.run_after, DossierJob.id)
        .with_for_update(skip_locked=True)
        .limit(1)
        .first()
    )
    if job is None:
        db.rollback()
        return None
    job.claimed_at = now
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return job


def retry_delay(attempt: int, base_delay: float) -> float:
    """Seconds to wait before running ``attempt + 1``: base, 2x base, 4x base..."""
    return base_delay * (2 ** max(attempt - 1, 0))


def schedule_retry(
    db: Session,
    failed_job: DossierJob,
    max_attempts: int,
    base_delay: float,
) -> DossierJob | None:
    """Queue the next attempt for a failed job. None once attempts are exhausted."""
    if failed_job.attempt >= max_attempts:
        logger.warning(
            "Dossier job out of attempts: job_id=%s claim_id=%s attempt=%s",
            failed_job.id,
            failed_job.claim_id,
            failed_job.attempt,
        )
        return None

    delay = retry_delay(failed_job.attempt, base_delay)
    job = DossierJob(
        claim_id=failed_job.claim_id,
        requester_id=failed_job.requester_id,
        status=JobStatus.QUEUED.value,
        progress=0,
        attempt=failed_job.attempt + 1,
        run_after=_now() + timedelta(seconds=delay),
    )
    db.add(job)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(job)
    logger.info(
        "Dossier job retry scheduled: job_id=%s claim_id=%s attempt=%s delay=%.1fs",
        job.id,
        job.claim_id,
        job.attempt,
        delay,
    )
    return job
