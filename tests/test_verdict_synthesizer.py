"""Tests for verdict synthesis and claim result persistence."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from dossier.pipeline.errors import SynthesisError
from dossier.schemas.evidence import EvidenceCard, ExtractedEvidence
from dossier.schemas.verdict import SynthesisVerdict
from dossier.services.claim_results import update_claim_result, verdict_values
from dossier.services.verdict_synthesizer import build_synthesis_prompt, synthesize_verdict

_VERDICT_JSON = {
    "verdict": "CONTRADICTED",
    "confidence": 0.72,
    "effectDirection": "NEUTRAL",
    "shortSummary": "Evidence does not support the claim.",
    "detailedSummary": "Two cohorts found no effect.",
    "strengthOfEvidence": "MODERATE",
    "keyFactors": ["consistent null results"],
    "caveats": ["small samples"],
    "whatWouldChangeVerdict": "A large RCT.",
    "recommendedAction": "Skip it.",
}


def _card(paper_id: int, **evidence) -> EvidenceCard:
    return EvidenceCard(
        paper_id=paper_id,
        paper_title=f"Paper {paper_id}",
        published_year=2020 + paper_id,
        evidence=ExtractedEvidence(stance="NEUTRAL", summary="s", **evidence),
    )


class TestBuildSynthesisPrompt:
    def test_enumerates_cards(self):
        prompt = build_synthesis_prompt(
            "Cold showers boost immunity",
            [_card(1, sample_size=50, key_findings=["k1", "k2"]), _card(2)],
        )
        assert 'Claim: "Cold showers boost immunity"' in prompt
        assert "Evidence from 2 papers:" in prompt
        assert "Paper 1: Paper 1 (2021)" in prompt
        assert "- Sample size: 50" in prompt
        assert "- Key findings: k1; k2" in prompt
        assert "Paper 2: Paper 2 (2022)" in prompt
        assert "- Sample size: not reported" in prompt


class TestSynthesizeVerdict:
    def test_returns_verdict(self):
        llm = MagicMock()
        llm.complete.return_value = json.dumps(_VERDICT_JSON)
        verdict = synthesize_verdict(llm, "Claim", [_card(1)])
        assert verdict.verdict == "CONTRADICTED"
        assert verdict.sign == "NO"
        assert llm.complete.call_args.kwargs["temperature"] == 0.3

    def test_zero_cards_raises_without_calling_model(self):
        llm = MagicMock()
        with pytest.raises(SynthesisError):
            synthesize_verdict(llm, "Claim", [])
        llm.complete.assert_not_called()

    def test_model_failure_raises_synthesis_error(self):
        llm = MagicMock()
        llm.complete.side_effect = TimeoutError("slow")
        with pytest.raises(SynthesisError, match="slow"):
            synthesize_verdict(llm, "Claim", [_card(1)])

    def test_invalid_output_raises_synthesis_error(self):
        llm = MagicMock()
        llm.complete.return_value = json.dumps({"verdict": "PROBABLY"})
        with pytest.raises(SynthesisError):
            synthesize_verdict(llm, "Claim", [_card(1)])


class TestClaimResult:
    @pytest.mark.parametrize(
        ("outcome", "sign"),
        [("SUPPORTED", "YES"), ("CONTRADICTED", "NO"), ("MIXED", None), ("INSUFFICIENT", None)],
    )
    def test_verdict_values_sign(self, outcome, sign):
        values = verdict_values(SynthesisVerdict(verdict=outcome, confidence=0.5))
        assert values["ai_verdict"] == sign
        assert values["outcome"] == outcome
        assert values["status"] == "ACTIVE"

    def test_update_with_verdict_writes_fields(self):
        db = MagicMock()
        verdict = SynthesisVerdict.model_validate(_VERDICT_JSON)
        update_claim_result(db, 5, verdict)
        params = db.execute.call_args.args[0].compile(dialect=postgresql.dialect()).params
        assert params["claim_id"] == 5
        assert params["ai_verdict"] == "NO"
        assert params["consensus_summary"] == "Two cohorts found no effect."
        db.commit.assert_called_once()

    def test_update_without_verdict_only_stamps_dossier_time(self):
        db = MagicMock()
        update_claim_result(db, 5, None)
        params = db.execute.call_args.args[0].compile(dialect=postgresql.dialect()).params
        assert params["last_dossier_at"] is not None
        assert "ai_verdict" not in params
