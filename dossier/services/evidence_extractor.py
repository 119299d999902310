"""Per-paper structured evidence extraction.

One JSON-mode model call per candidate paper. A failed call, unparsable
output or a schema mismatch raises ``ExtractionError`` for that paper only;
the caller logs it and moves on to the next paper.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from dossier.llm.json_output import call_llm_json
from dossier.llm.provider import LLMProvider
from dossier.models.claim_paper import ClaimPaper
from dossier.pipeline.errors import ExtractionError
from dossier.prompts.loader import load_prompt, render_prompt
from dossier.schemas.evidence import ExtractedEvidence
from dossier.schemas.paper import StoredPaper, UnifiedPaper
from dossier.services.vector_index import SimilarChunk

logger = logging.getLogger(__name__)

EXTRACTION_VERSION = "v1"
MAX_EVIDENCE_PAPERS = 15
ABSTRACT_SNIPPET_CHARS = 500
EXTRACTION_TEMPERATURE = 0.2


def select_candidates(
    stored: Sequence[StoredPaper],
    relevant: Mapping[int, Sequence[SimilarChunk]],
    max_papers: int = MAX_EVIDENCE_PAPERS,
) -> list[tuple[StoredPaper, list[str]]]:
    """Pick papers for extraction with their relevant excerpts.

    Papers with retrieved chunks come first, in similarity order; the rest are
    filled from papers that at least have an abstract, in stored order.
    """
    by_id = {sp.paper_id: sp for sp in stored}
    candidates: list[tuple[StoredPaper, list[str]]] = []
    seen: set[int] = set()

    for paper_id, chunks in relevant.items():
        if len(candidates) >= max_papers:
            break
        sp = by_id.get(paper_id)
        if sp is None or paper_id in seen:
            continue
        candidates.append((sp, [chunk.content for chunk in chunks]))
        seen.add(paper_id)

    for sp in stored:
        if len(candidates) >= max_papers:
            break
        if sp.paper_id in seen or not (sp.paper.abstract or "").strip():
            continue
        candidates.append((sp, []))
        seen.add(sp.paper_id)

    return candidates


def build_extraction_prompt(
    claim_title: str,
    claim_description: str | None,
    paper_title: str,
    paper_abstract: str | None,
    relevant_chunks: Sequence[str] = (),
) -> str:
    claim_lines = [f'Claim: "{claim_title}"']
    if claim_description:
        claim_lines.append(f'Description: "{claim_description}"')

    paper_lines = [f'Paper title: "{paper_title}"']
    if paper_abstract:
        paper_lines.append(f'Paper abstract: "{paper_abstract}"')
    if relevant_chunks:
        paper_lines.append("")
        paper_lines.append("Relevant excerpts from the paper:")
        paper_lines.append("\n---\n".join(relevant_chunks))

    return render_prompt(
        "evidence_extraction_v1",
        CLAIM="\n".join(claim_lines),
        PAPER="\n".join(paper_lines),
    )


def extract_evidence(
    llm: LLMProvider,
    claim_title: str,
    claim_description: str | None,
    paper: UnifiedPaper,
    relevant_chunks: Sequence[str] = (),
) -> ExtractedEvidence:
    """Run one extraction call. Raises ``ExtractionError`` on any failure."""
    prompt = build_extraction_prompt(
        claim_title, claim_description, paper.title, paper.abstract, relevant_chunks
    )
    try:
        data, raw = call_llm_json(
            llm,
            prompt,
            system_prompt=load_prompt("evidence_extraction_system_v1"),
            temperature=EXTRACTION_TEMPERATURE,
        )
    except Exception as exc:
        raise ExtractionError(f"Model call failed for {paper.title!r}: {exc}") from exc
    if data is None:
        raise ExtractionError(f"Unparsable model output for {paper.title!r}: {raw[:200]!r}")
    try:
        return ExtractedEvidence.model_validate(data)
    except ValidationError as exc:
        raise ExtractionError(f"Model output failed validation for {paper.title!r}: {exc}") from exc


def save_extracted_evidence(
    db: Session,
    claim_id: int,
    paper_id: int,
    paper: UnifiedPaper,
    evidence: ExtractedEvidence,
) -> None:
    """Upsert the evidence onto the claim/paper row (keyed by claim_id, paper_id)."""
    snippet = (paper.abstract or "")[:ABSTRACT_SNIPPET_CHARS] or None
    values = {
        "stance": evidence.stored_stance,
        "ai_summary": evidence.summary,
        "abstract_snippet": snippet,
        "study_type": evidence.study_type,
        "sample_size": evidence.sample_size,
        "confidence_score": evidence.confidence,
        "relevance_score": evidence.relevance_score,
        "extraction_version": EXTRACTION_VERSION,
        "extraction": evidence.model_dump(by_alias=True),
    }
    stmt = insert(ClaimPaper).values(claim_id=claim_id, paper_id=paper_id, **values)
    stmt = stmt.on_conflict_do_update(
        constraint="uq_claim_papers_claim_paper",
        set_={**values, "updated_at": func.now()},
    )
    try:
        db.execute(stmt)
        db.commit()
    except Exception:
        db.rollback()
        raise
