"""Aggregate verdict synthesis over all evidence cards for a claim."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import ValidationError

from dossier.llm.json_output import call_llm_json
from dossier.llm.provider import LLMProvider
from dossier.pipeline.errors import SynthesisError
from dossier.prompts.loader import load_prompt, render_prompt
from dossier.schemas.evidence import EvidenceCard
from dossier.schemas.verdict import SynthesisVerdict

logger = logging.getLogger(__name__)

SYNTHESIS_TEMPERATURE = 0.3


def _format_card(position: int, card: EvidenceCard) -> str:
    evidence = card.evidence
    year = f" ({card.published_year})" if card.published_year else ""
    sample_size = evidence.sample_size if evidence.sample_size is not None else "not reported"
    lines = [
        f"Paper {position}: {card.paper_title}{year}",
        f"- Study type: {evidence.study_type}",
        f"- Sample size: {sample_size}",
        f"- Stance: {evidence.stance}",
        f"- Summary: {evidence.summary}",
    ]
    if evidence.key_findings:
        lines.append(f"- Key findings: {'; '.join(evidence.key_findings)}")
    return "\n".join(lines)


def build_synthesis_prompt(claim_title: str, cards: Sequence[EvidenceCard]) -> str:
    return render_prompt(
        "verdict_synthesis_v1",
        CLAIM_TITLE=claim_title,
        PAPER_COUNT=str(len(cards)),
        EVIDENCE="\n\n".join(_format_card(i, card) for i, card in enumerate(cards, start=1)),
    )


def synthesize_verdict(
    llm: LLMProvider,
    claim_title: str,
    cards: Sequence[EvidenceCard],
) -> SynthesisVerdict:
    """One synthesis call over every card. Raises ``SynthesisError`` on failure.

    Callers must not invoke this with zero cards.
    """
    if not cards:
        raise SynthesisError("No evidence cards to synthesize")
    prompt = build_synthesis_prompt(claim_title, cards)
    try:
        data, raw = call_llm_json(
            llm,
            prompt,
            system_prompt=load_prompt("verdict_synthesis_system_v1"),
            temperature=SYNTHESIS_TEMPERATURE,
        )
    except Exception as exc:
        raise SynthesisError(f"Model call failed: {exc}") from exc
    if data is None:
        raise SynthesisError(f"Unparsable model output: {raw[:200]!r}")
    try:
        verdict = SynthesisVerdict.model_validate(data)
    except ValidationError as exc:
        raise SynthesisError(f"Model output failed validation: {exc}") from exc
    logger.info(
        "Verdict synthesized: outcome=%s confidence=%.2f cards=%d",
        verdict.verdict,
        verdict.confidence,
        len(cards),
    )
    return verdict
