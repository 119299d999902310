"""Tests for the dossier job state machine."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from dossier.pipeline.job_state import (
    InvalidTransitionError,
    JobStatus,
    check_transition,
    transition_job_status,
    update_job_progress,
)


def _db_with_update_count(count: int) -> tuple[MagicMock, MagicMock]:
    db = MagicMock()
    query = db.query.return_value.filter.return_value
    query.filter.return_value = query
    query.update.return_value = count
    return db, query


class TestCheckTransition:
    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (JobStatus.QUEUED, JobStatus.RUNNING),
            (JobStatus.RUNNING, JobStatus.SUCCEEDED),
            (JobStatus.RUNNING, JobStatus.FAILED),
        ],
    )
    def test_allowed(self, from_status: JobStatus, to_status: JobStatus) -> None:
        check_transition(from_status, to_status)

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (JobStatus.QUEUED, JobStatus.SUCCEEDED),
            (JobStatus.QUEUED, JobStatus.FAILED),
            (JobStatus.SUCCEEDED, JobStatus.RUNNING),
            (JobStatus.FAILED, JobStatus.QUEUED),
            (JobStatus.RUNNING, JobStatus.QUEUED),
        ],
    )
    def test_rejected(self, from_status: JobStatus, to_status: JobStatus) -> None:
        with pytest.raises(InvalidTransitionError):
            check_transition(from_status, to_status)

    def test_is_value_error(self) -> None:
        assert issubclass(InvalidTransitionError, ValueError)


class TestTransitionJobStatus:
    def test_updates_and_commits(self) -> None:
        db, query = _db_with_update_count(1)

        count = transition_job_status(
            db, 4, JobStatus.QUEUED, JobStatus.RUNNING, job_id=9, progress=5
        )

        assert count == 1
        values = query.update.call_args.args[0]
        assert values == {"status": "RUNNING", "progress": 5}
        db.commit.assert_called_once()

    def test_zero_rows_is_reported_not_raised(self) -> None:
        db, _ = _db_with_update_count(0)
        assert transition_job_status(db, 4, JobStatus.RUNNING, JobStatus.FAILED) == 0

    def test_invalid_transition_never_touches_db(self) -> None:
        db = MagicMock()
        with pytest.raises(InvalidTransitionError):
            transition_job_status(db, 4, JobStatus.SUCCEEDED, JobStatus.RUNNING)
        db.query.assert_not_called()

    def test_rolls_back_on_error(self) -> None:
        db, query = _db_with_update_count(1)
        db.commit.side_effect = RuntimeError("lost connection")

        with pytest.raises(RuntimeError):
            transition_job_status(db, 4, JobStatus.QUEUED, JobStatus.RUNNING)
        db.rollback.assert_called_once()


class TestUpdateJobProgress:
    def test_writes_progress(self) -> None:
        db = MagicMock()
        update_job_progress(db, 9, 40)
        update = db.query.return_value.filter.return_value.update
        update.assert_called_once_with({"progress": 40}, synchronize_session=False)
        db.commit.assert_called_once()

    def test_rolls_back_on_error(self) -> None:
        db = MagicMock()
        db.query.return_value.filter.return_value.update.side_effect = RuntimeError("x")
        with pytest.raises(RuntimeError):
            update_job_progress(db, 9, 40)
        db.rollback.assert_called_once()
