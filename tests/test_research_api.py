"""Tests for the claim research routes and the read-side views behind them."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from dossier.models.claim_result import ClaimResult
from dossier.models.dossier_job import DossierJob
from dossier.pipeline.errors import ClaimNotFoundError
from dossier.services.research_status import (
    first_sentence,
    get_research_status,
    get_verdict_view,
    list_evidence,
    verdict_label,
)
from tests.test_constants import TEST_INTERNAL_JOB_TOKEN

AUTH = {"X-Internal-Token": TEST_INTERNAL_JOB_TOKEN}


def _job(**overrides) -> DossierJob:
    values = {
        "id": 21,
        "claim_id": 3,
        "requester_id": "system",
        "status": "QUEUED",
        "progress": 0,
        "attempt": 1,
        "error": None,
        "created_at": datetime(2026, 3, 1, 12, 0, 0),
        "started_at": None,
        "finished_at": None,
    }
    values.update(overrides)
    return DossierJob(**values)


class TestStartResearch:
    def test_creates_job(self, client) -> None:
        with patch("dossier.api.research.enqueue", return_value=(_job(), True)) as enq:
            resp = client.post("/api/claims/3/research", headers=AUTH)

        assert resp.status_code == 201
        body = resp.json()
        assert body["job_id"] == 21
        assert body["status"] == "QUEUED"
        assert body["created"] is True
        assert enq.call_args.args[1:] == (3, "system")

    def test_existing_job_returns_200(self, client) -> None:
        job = _job(status="RUNNING", progress=40)
        with patch("dossier.api.research.enqueue", return_value=(job, False)):
            resp = client.post("/api/claims/3/research", headers=AUTH)

        assert resp.status_code == 200
        assert resp.json()["progress"] == 40
        assert resp.json()["created"] is False

    def test_requester_from_body(self, client) -> None:
        with patch("dossier.api.research.enqueue", return_value=(_job(), True)) as enq:
            client.post("/api/claims/3/research", headers=AUTH, json={"requester_id": "alice"})
        assert enq.call_args.args[2] == "alice"

    def test_unknown_claim_404(self, client) -> None:
        with patch("dossier.api.research.enqueue", side_effect=ClaimNotFoundError(3)):
            resp = client.post("/api/claims/3/research", headers=AUTH)
        assert resp.status_code == 404

    def test_wrong_token_403(self, client) -> None:
        with patch("dossier.api.research.enqueue") as enq:
            resp = client.post("/api/claims/3/research", headers={"X-Internal-Token": "nope"})
        assert resp.status_code == 403
        enq.assert_not_called()

    def test_missing_token_422(self, client) -> None:
        resp = client.post("/api/claims/3/research")
        assert resp.status_code == 422

    def test_non_integer_claim_id_422(self, client) -> None:
        resp = client.post("/api/claims/abc/research", headers=AUTH)
        assert resp.status_code == 422


class TestResearchStatus:
    def test_no_job(self, client) -> None:
        with patch("dossier.services.research_status.get_latest_job", return_value=None):
            resp = client.get("/api/claims/3/research/status")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "NONE"
        assert body["progress"] == 0
        assert body["message"] == "No research has been started"

    def test_running_job_label(self, client) -> None:
        job = _job(status="RUNNING", progress=70, started_at=datetime(2026, 3, 1, 12, 1))
        with patch("dossier.services.research_status.get_latest_job", return_value=job):
            resp = client.get("/api/claims/3/research/status")

        body = resp.json()
        assert body["status"] == "RUNNING"
        assert body["step_label"] == "Extracting evidence"

    def test_failed_job_carries_error(self, mock_db) -> None:
        job = _job(status="FAILED", progress=10, error="Claim not found: 3")
        with patch("dossier.services.research_status.get_latest_job", return_value=job):
            view = get_research_status(mock_db, 3)
        assert view["error"] == "Claim not found: 3"
        assert view["step_label"] == "Loading claim"


class TestEvidence:
    def test_unknown_claim_404(self, client) -> None:
        with patch("dossier.api.research.get_claim", side_effect=ClaimNotFoundError(3)):
            resp = client.get("/api/claims/3/evidence")
        assert resp.status_code == 404

    def test_bad_sort_422(self, client) -> None:
        with patch("dossier.api.research.get_claim"):
            resp = client.get("/api/claims/3/evidence?sort=random")
        assert resp.status_code == 422

    def test_bad_stance_422(self, client) -> None:
        with patch("dossier.api.research.get_claim"):
            resp = client.get("/api/claims/3/evidence?stance=MAYBE")
        assert resp.status_code == 422

    def test_lists_items(self, client) -> None:
        item = {
            "paper_id": 7,
            "title": "Trial",
            "authors": ["A. Author"],
            "journal": None,
            "published_year": 2021,
            "doi": "10.1/x",
            "pmid": None,
            "arxiv_id": None,
            "full_text_url": None,
            "stance": "SUPPORTS",
            "ai_summary": "Positive effect.",
            "abstract_snippet": "We found...",
            "study_type": "RCT",
            "sample_size": 120,
            "confidence_score": 0.8,
            "created_at": None,
        }
        with (
            patch("dossier.api.research.get_claim"),
            patch("dossier.api.research.list_evidence", return_value=[item]) as listing,
        ):
            resp = client.get("/api/claims/3/evidence?sort=recency&stance=SUPPORTS")

        assert resp.status_code == 200
        assert resp.json()["count"] == 1
        assert resp.json()["evidence"][0]["stance"] == "SUPPORTS"
        assert listing.call_args.kwargs == {"sort": "recency", "stance": "SUPPORTS"}

    def test_service_rejects_unknown_sort(self, mock_db) -> None:
        with pytest.raises(ValueError):
            list_evidence(mock_db, 3, sort="random")

    def test_service_rejects_unknown_stance(self, mock_db) -> None:
        with pytest.raises(ValueError):
            list_evidence(mock_db, 3, stance="MAYBE")


class TestVerdict:
    def test_unknown_claim_404(self, client) -> None:
        with patch("dossier.api.research.get_claim", side_effect=ClaimNotFoundError(3)):
            resp = client.get("/api/claims/3/verdict")
        assert resp.status_code == 404

    def test_not_available(self, client, mock_db) -> None:
        mock_db.query.return_value.filter.return_value.first.return_value = None
        with patch("dossier.api.research.get_claim"):
            resp = client.get("/api/claims/3/verdict")

        body = resp.json()
        assert resp.status_code == 200
        assert body["available"] is False
        assert body["status"] == "PENDING"
        assert body["message"] == "No verdict available yet"

    def test_available(self, mock_db) -> None:
        mock_db.query.return_value.filter.return_value.first.return_value = ClaimResult(
            claim_id=3,
            status="COMPLETE",
            ai_verdict="YES",
            ai_confidence=0.82,
            short_summary=None,
            consensus_summary="Most trials agree. A few disagree.",
            last_dossier_at=datetime(2026, 3, 1),
        )

        view = get_verdict_view(mock_db, 3)

        assert view["available"] is True
        assert view["verdict"] == "Supported"
        assert view["short_summary"] == "Most trials agree."
        assert view["detailed_summary"] == "Most trials agree. A few disagree."

    @pytest.mark.parametrize(
        "ai_verdict,confidence,label",
        [
            ("YES", 0.9, "Supported"),
            ("NO", 0.7, "Contradicted"),
            (None, 0.5, "Mixed"),
            (None, 0.4, "Mixed"),
            (None, 0.2, "Insufficient"),
            (None, None, "Insufficient"),
        ],
    )
    def test_labels(self, ai_verdict, confidence, label) -> None:
        assert verdict_label(ai_verdict, confidence) == label

    def test_first_sentence(self) -> None:
        assert first_sentence("One. Two.") == "One."
        assert first_sentence("No terminator") == "No terminator"
        assert first_sentence(None) is None


class TestHealth:
    def test_unhealthy_when_db_down(self, client) -> None:
        with patch("dossier.main.engine") as engine:
            engine.connect.side_effect = RuntimeError("refused")
            resp = client.get("/health")
        assert resp.status_code == 503
        assert resp.json()["database"] == "disconnected"

    def test_healthy(self, client) -> None:
        with patch("dossier.main.engine", MagicMock()):
            resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


def test_database_error_maps_to_503(client) -> None:
    from sqlalchemy.exc import OperationalError

    with patch(
        "dossier.api.research.enqueue",
        side_effect=OperationalError("SELECT 1", {}, Exception("connection refused")),
    ):
        resp = client.post("/api/claims/3/research", headers=AUTH)
    assert resp.status_code == 503
    assert resp.json()["detail"] == "Database unavailable"
