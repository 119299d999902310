"""Dossier job state machine.

QUEUED -> RUNNING -> SUCCEEDED | FAILED. Transitions are conditional updates
keyed on the expected current status, so a job that has already moved on is
left untouched and the update reports zero rows.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from dossier.models.dossier_job import DossierJob

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.RUNNING}),
    JobStatus.RUNNING: frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED}),
    JobStatus.SUCCEEDED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

ACTIVE_STATUSES = (JobStatus.QUEUED.value, JobStatus.RUNNING.value)


class InvalidTransitionError(ValueError):
    """Raised for a transition the state machine does not allow."""


def check_transition(from_status: JobStatus, to_status: JobStatus) -> None:
    if to_status not in ALLOWED_TRANSITIONS[from_status]:
        raise InvalidTransitionError(
            f"Invalid job transition {from_status.value} -> {to_status.value}"
        )


def transition_job_status(
    db: Session,
    claim_id: int,
    from_status: JobStatus,
    to_status: JobStatus,
    *,
    job_id: int | None = None,
    **fields: Any,
) -> int:
    """Move matching jobs from ``from_status`` to ``to_status`` and commit.

    Scoped to ``job_id`` when given, else to every job of the claim in
    ``from_status``. Extra ``fields`` (started_at, progress, error, ...) are
    written in the same update. Returns the number of rows changed.
    """
    check_transition(from_status, to_status)
    query = db.query(DossierJob).filter(
        DossierJob.claim_id == claim_id,
        DossierJob.status == from_status.value,
    )
    if job_id is not None:
        query = query.filter(DossierJob.id == job_id)
    try:
        count = query.update(
            {"status": to_status.value, **fields},
            synchronize_session=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    if not count:
        logger.warning(
            "Job transition %s -> %s matched no rows: claim_id=%s job_id=%s",
            from_status.value,
            to_status.value,
            claim_id,
            job_id,
        )
    return count


def update_job_progress(db: Session, job_id: int, progress: int) -> None:
    """Persist progress for a RUNNING job. Never lowers the stored value."""
    try:
        db.query(DossierJob).filter(
            DossierJob.id == job_id,
            DossierJob.status == JobStatus.RUNNING.value,
            DossierJob.progress < progress,
        ).update({"progress": progress}, synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
