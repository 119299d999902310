"""Dossier job orchestrator.

Drives one claim through search, dedup, storage, indexing, retrieval,
extraction and synthesis, recording job state and progress as it goes.

Failure policy:
    - a source that errors or times out is skipped (fan-out never raises)
    - an embedding/retrieval failure drops to abstract-only extraction
    - a paper whose extraction fails is excluded
    - a failed synthesis leaves the job SUCCEEDED without a verdict
    - anything else (missing claim, database errors) marks the job FAILED
      with the error message verbatim and re-raises for the queue to retry
    - a job that is no longer QUEUED when the run starts is not touched
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dossier.llm.provider import LLMProvider
from dossier.pipeline.errors import (
    ExtractionError,
    JobNotOwnedError,
    PersistenceError,
    SynthesisError,
)
from dossier.pipeline.job_state import JobStatus, transition_job_status
from dossier.pipeline.progress import (
    Checkpoint,
    ProgressReporter,
    ProgressSink,
    extraction_progress,
)
from dossier.schemas.evidence import EvidenceCard
from dossier.schemas.paper import StoredPaper
from dossier.schemas.verdict import SynthesisVerdict
from dossier.services.chunker import chunk_text
from dossier.services.claim_loader import get_claim
from dossier.services.claim_results import update_claim_result
from dossier.services.dedup import deduplicate_papers
from dossier.services.embeddings import EmbeddingGenerator
from dossier.services.evidence_extractor import (
    extract_evidence,
    save_extracted_evidence,
    select_candidates,
)
from dossier.services.paper_store import paper_ids_with_chunks, store_papers
from dossier.services.vector_index import (
    ChunkWithEmbedding,
    SimilarChunk,
    search_chunks_grouped_by_paper,
    store_chunks_with_embeddings,
)
from dossier.services.verdict_synthesizer import synthesize_verdict
from dossier.sources.fanout import SourceSearch, search_all_sources

if TYPE_CHECKING:
    from dossier.config import Settings

logger = logging.getLogger(__name__)

# Abstracts shorter than this are not worth chunking or embedding.
MIN_ABSTRACT_CHARS = 50


class DossierPayload(BaseModel):
    """Job intake payload. ``job_id`` scopes state transitions to one job row."""

    claim_id: int
    requester_id: str = "system"
    job_id: int | None = None


@dataclass
class PipelineDeps:
    """Everything the pipeline talks to, built once at process bootstrap."""

    session_factory: Callable[[], Session]
    extraction_llm: LLMProvider
    synthesis_llm: LLMProvider
    embedder: EmbeddingGenerator
    sources: Sequence[SourceSearch]
    settings: Settings


@dataclass
class DossierOutcome:
    claim_id: int
    records_found: int = 0
    papers_stored: int = 0
    chunks_indexed: int = 0
    evidence_count: int = 0
    verdict: SynthesisVerdict | None = None
    failed_sources: list[str] = field(default_factory=list)


def _now() -> datetime:
    return datetime.now(UTC)


async def _index_abstracts(
    db: Session,
    embedder: EmbeddingGenerator,
    stored: Sequence[StoredPaper],
) -> int:
    """Chunk and embed abstracts for papers not yet indexed. Returns chunks stored."""
    already_indexed = await asyncio.to_thread(
        paper_ids_with_chunks, db, [sp.paper_id for sp in stored]
    )
    pending: list[tuple[int, int, str, int]] = []  # paper_id, index, content, tokens
    for sp in stored:
        abstract = (sp.paper.abstract or "").strip()
        if sp.paper_id in already_indexed or len(abstract) < MIN_ABSTRACT_CHARS:
            continue
        for chunk in chunk_text(abstract):
            pending.append((sp.paper_id, chunk.chunk_index, chunk.content, chunk.estimated_tokens))

    if not pending:
        return 0

    vectors = await embedder.embed_texts([content for _, _, content, _ in pending])
    rows = [
        ChunkWithEmbedding(
            paper_id=paper_id,
            chunk_index=index,
            content=content,
            token_count=tokens,
            embedding=vector,
        )
        for (paper_id, index, content, tokens), vector in zip(pending, vectors)
    ]
    await asyncio.to_thread(store_chunks_with_embeddings, db, rows)
    return len(rows)


async def _retrieve_passages(
    db: Session,
    deps: PipelineDeps,
    query: str,
    paper_ids: Sequence[int],
) -> dict[int, list[SimilarChunk]]:
    query_embedding = await deps.embedder.embed_query(query)
    return await asyncio.to_thread(
        search_chunks_grouped_by_paper,
        db,
        query_embedding,
        limit=deps.settings.max_evidence_papers,
        min_similarity=deps.settings.min_chunk_similarity,
        paper_ids=list(paper_ids),
        chunks_per_paper=deps.settings.chunks_per_paper,
    )


async def _run_pipeline(
    db: Session,
    payload: DossierPayload,
    deps: PipelineDeps,
    reporter: ProgressReporter,
) -> DossierOutcome:
    claim_id = payload.claim_id
    outcome = DossierOutcome(claim_id=claim_id)
    await reporter.report(Checkpoint.RUNNING)

    claim = await asyncio.to_thread(get_claim, db, claim_id)
    claim_title = claim.title
    claim_description = claim.description
    await reporter.report(Checkpoint.CLAIM_LOADED)

    # ── Search ──────────────────────────────────────────────────────
    await reporter.report(Checkpoint.SEARCHING)
    fanout = await search_all_sources(claim_title, deps.sources)
    outcome.records_found = len(fanout.records)
    outcome.failed_sources = [failure.source for failure in fanout.failures]
    await reporter.report(Checkpoint.SEARCHED)

    papers = deduplicate_papers(fanout.records)
    await reporter.report(Checkpoint.DEDUPLICATED)
    logger.info(
        "Claim %s: %d records -> %d unique papers", claim_id, len(fanout.records), len(papers)
    )

    if not papers:
        logger.info("Claim %s: no papers found, finishing without a verdict", claim_id)
        await reporter.report(Checkpoint.SAVING)
        await asyncio.to_thread(update_claim_result, db, claim_id, None)
        return outcome

    # ── Store ───────────────────────────────────────────────────────
    stored = await asyncio.to_thread(store_papers, db, claim_id, papers)
    outcome.papers_stored = len(stored)
    await reporter.report(Checkpoint.PAPERS_STORED)

    # ── Index + retrieve ────────────────────────────────────────────
    relevant: dict[int, list[SimilarChunk]] = {}
    try:
        outcome.chunks_indexed = await _index_abstracts(db, deps.embedder, stored)
        query = f"{claim_title}\n\n{claim_description}" if claim_description else claim_title
        relevant = await _retrieve_passages(db, deps, query, [sp.paper_id for sp in stored])
    except SQLAlchemyError:
        raise
    except Exception:
        logger.exception(
            "Claim %s: embedding/retrieval failed, extracting from abstracts only", claim_id
        )
    await reporter.report(Checkpoint.EMBEDDINGS_INDEXED)
    await reporter.report(Checkpoint.PASSAGES_FOUND)

    # ── Extract ─────────────────────────────────────────────────────
    candidates = select_candidates(stored, relevant, deps.settings.max_evidence_papers)
    cards: list[EvidenceCard] = []
    for done, (sp, excerpts) in enumerate(candidates, start=1):
        try:
            evidence = await asyncio.to_thread(
                extract_evidence,
                deps.extraction_llm,
                claim_title,
                claim_description,
                sp.paper,
                excerpts,
            )
        except ExtractionError as exc:
            logger.warning(
                "Claim %s: extraction failed for paper %s, excluding it: %s",
                claim_id,
                sp.paper_id,
                exc,
            )
        else:
            await asyncio.to_thread(
                save_extracted_evidence, db, claim_id, sp.paper_id, sp.paper, evidence
            )
            cards.append(
                EvidenceCard(
                    paper_id=sp.paper_id,
                    paper_title=sp.paper.title,
                    published_year=sp.paper.published_year,
                    evidence=evidence,
                )
            )
        await reporter.report(extraction_progress(done, len(candidates)))
    outcome.evidence_count = len(cards)
    await reporter.report(Checkpoint.EXTRACTION_DONE)

    # ── Synthesize ──────────────────────────────────────────────────
    await reporter.report(Checkpoint.SYNTHESIZING)
    if cards:
        try:
            outcome.verdict = await asyncio.to_thread(
                synthesize_verdict, deps.synthesis_llm, claim_title, cards
            )
        except SynthesisError as exc:
            logger.warning("Claim %s: synthesis failed, no verdict: %s", claim_id, exc)
    else:
        logger.info("Claim %s: no evidence extracted, skipping synthesis", claim_id)

    await reporter.report(Checkpoint.SAVING)
    await asyncio.to_thread(update_claim_result, db, claim_id, outcome.verdict)
    return outcome


async def _start_job(db: Session, payload: DossierPayload) -> None:
    """QUEUED -> RUNNING, or ``JobNotOwnedError`` when no row moved."""
    started = await asyncio.to_thread(
        transition_job_status,
        db,
        payload.claim_id,
        JobStatus.QUEUED,
        JobStatus.RUNNING,
        job_id=payload.job_id,
        started_at=_now(),
    )
    if not started:
        raise JobNotOwnedError(payload.claim_id, payload.job_id)


async def _mark_failed(deps: PipelineDeps, payload: DossierPayload, message: str) -> None:
    """Record FAILED on a fresh session; the run's session may be unusable."""
    db = deps.session_factory()
    try:
        await asyncio.to_thread(
            transition_job_status,
            db,
            payload.claim_id,
            JobStatus.RUNNING,
            JobStatus.FAILED,
            job_id=payload.job_id,
            finished_at=_now(),
            error=message,
        )
    except Exception:
        logger.exception("Could not record FAILED status for claim %s", payload.claim_id)
    finally:
        db.close()


async def process_dossier_job(
    payload: DossierPayload,
    deps: PipelineDeps,
    progress: ProgressSink | None = None,
) -> DossierOutcome:
    """Run the full pipeline for one claim.

    Returns the outcome on success (with or without a verdict). On any fatal
    error the job is marked FAILED with ``str(error)`` and the error is
    re-raised unchanged. A job that cannot be moved to RUNNING raises
    ``JobNotOwnedError`` before any search or model call and is left as is.
    """
    reporter = ProgressReporter(progress)
    db = deps.session_factory()
    logger.info(
        "Dossier job starting: claim_id=%s job_id=%s requester=%s",
        payload.claim_id,
        payload.job_id,
        payload.requester_id,
    )
    try:
        await _start_job(db, payload)
        try:
            outcome = await _run_pipeline(db, payload, deps, reporter)
            updated = await asyncio.to_thread(
                transition_job_status,
                db,
                payload.claim_id,
                JobStatus.RUNNING,
                JobStatus.SUCCEEDED,
                job_id=payload.job_id,
                finished_at=_now(),
                progress=int(Checkpoint.COMPLETE),
            )
            if not updated:
                raise PersistenceError(
                    f"Job for claim {payload.claim_id} was no longer RUNNING at completion"
                )
            await reporter.report(Checkpoint.COMPLETE)
        except Exception as exc:
            logger.exception("Dossier job failed: claim_id=%s", payload.claim_id)
            try:
                db.rollback()
            except SQLAlchemyError:
                logger.warning("Rollback failed for claim %s", payload.claim_id)
            await _mark_failed(deps, payload, str(exc))
            raise
    finally:
        db.close()

    logger.info(
        "Dossier job succeeded: claim_id=%s papers=%d evidence=%d verdict=%s",
        payload.claim_id,
        outcome.papers_stored,
        outcome.evidence_count,
        outcome.verdict.verdict if outcome.verdict else None,
    )
    return outcome
