"""Persist deduplicated papers and link them to a claim.

Papers are shared across claims. A paper that already exists under any of its
identifiers is reused; later runs only fill fields that are still null and
never overwrite populated ones. When several stored rows match, the oldest is
reused and identifiers owned by the others are left alone. A gap-fill that
loses a race on a unique identifier keeps the stored row; any other database
error propagates to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import or_
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dossier.models.claim_paper import ClaimPaper
from dossier.models.document_chunk import DocumentChunk
from dossier.models.paper import IDENTIFIER_FIELDS, Paper
from dossier.schemas.paper import StoredPaper, UnifiedPaper

logger = logging.getLogger(__name__)

# UnifiedPaper attribute -> Paper column; names match one-to-one
_PAPER_FIELDS = (
    "title",
    "abstract",
    "doi",
    "pmid",
    "pmcid",
    "arxiv_id",
    "semantic_scholar_id",
    "authors",
    "journal",
    "published_year",
    "full_text_url",
    "citation_count",
)


def find_matching_papers(db: Session, paper: UnifiedPaper) -> list[Paper]:
    """Stored papers sharing any identifier with ``paper``, oldest first."""
    conditions = [
        getattr(Paper, name) == getattr(paper, name)
        for name in IDENTIFIER_FIELDS
        if getattr(paper, name)
    ]
    if not conditions:
        return []
    return db.query(Paper).filter(or_(*conditions)).order_by(Paper.id).all()


def _fill_missing_fields(
    existing: Paper,
    paper: UnifiedPaper,
    taken: set[tuple[str, object]] | None = None,
) -> list[str]:
    """Copy values into null/empty columns only. Returns the filled column names.

    ``taken`` holds (column, value) identifier pairs owned by other rows;
    those are never copied since every identifier column is unique.
    """
    taken = taken or set()
    filled: list[str] = []
    for name in _PAPER_FIELDS:
        current = getattr(existing, name)
        incoming = getattr(paper, name)
        if name in IDENTIFIER_FIELDS and (name, incoming) in taken:
            continue
        if (current is None or current == "" or current == []) and incoming not in (None, "", []):
            setattr(existing, name, list(incoming) if isinstance(incoming, list) else incoming)
            filled.append(name)
    sources = list(existing.sources or [])
    for source in paper.sources:
        if source not in sources:
            sources.append(source)
    if sources != (existing.sources or []):
        existing.sources = sources
    return filled


def _new_paper(paper: UnifiedPaper) -> Paper:
    values = {name: getattr(paper, name) for name in _PAPER_FIELDS}
    values["authors"] = list(paper.authors)
    values["sources"] = list(paper.sources)
    return Paper(**values)


def _reuse_existing(db: Session, matches: list[Paper], paper: UnifiedPaper) -> Paper:
    """Gap-fill the oldest matching row; identifiers other rows own are skipped."""
    existing, others = matches[0], matches[1:]
    if others:
        logger.info(
            "Paper %r matches %d stored rows; keeping id=%s",
            paper.title[:80],
            len(matches),
            existing.id,
        )
    taken = {
        (name, getattr(row, name))
        for row in others
        for name in IDENTIFIER_FIELDS
        if getattr(row, name)
    }
    try:
        with db.begin_nested():
            filled = _fill_missing_fields(existing, paper, taken)
            db.flush()
    except IntegrityError:
        # Another job claimed one of the identifiers first; keep the row as stored.
        logger.warning("Paper %s: gap-fill conflicted with a concurrent write", existing.id)
        db.refresh(existing)
        return existing
    if filled:
        logger.debug("Paper %s: filled %s", existing.id, filled)
    return existing


def upsert_paper(db: Session, paper: UnifiedPaper) -> Paper:
    """Return the stored row for ``paper``, inserting or gap-filling as needed."""
    matches = find_matching_papers(db, paper)
    if matches:
        return _reuse_existing(db, matches, paper)

    row = _new_paper(paper)
    try:
        with db.begin_nested():
            db.add(row)
            db.flush()
    except IntegrityError:
        # A concurrent job inserted the same paper between lookup and insert.
        matches = find_matching_papers(db, paper)
        if not matches:
            raise
        return _reuse_existing(db, matches, paper)
    return row


def _stored_view(row: Paper, paper: UnifiedPaper) -> StoredPaper:
    """The paper as now stored: incoming data plus anything the row already had."""
    values = {name: getattr(row, name) for name in _PAPER_FIELDS}
    values["authors"] = list(row.authors or paper.authors)
    values["sources"] = list(row.sources or paper.sources)
    return StoredPaper(paper_id=row.id, paper=UnifiedPaper.model_validate(values))


def link_claim_paper(db: Session, claim_id: int, paper_id: int) -> None:
    """Create the claim/paper join row if it does not exist yet."""
    stmt = (
        insert(ClaimPaper)
        .values(claim_id=claim_id, paper_id=paper_id)
        .on_conflict_do_nothing(constraint="uq_claim_papers_claim_paper")
    )
    db.execute(stmt)


def store_papers(
    db: Session,
    claim_id: int,
    papers: Sequence[UnifiedPaper],
) -> list[StoredPaper]:
    """Upsert every paper, link each to the claim, commit once.

    Returns the stored papers in input order, each carrying its database id.
    """
    stored: list[StoredPaper] = []
    try:
        for paper in papers:
            row = upsert_paper(db, paper)
            link_claim_paper(db, claim_id, row.id)
            stored.append(_stored_view(row, paper))
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Stored %d papers for claim %s", len(stored), claim_id)
    return stored


def paper_ids_with_chunks(db: Session, paper_ids: Sequence[int]) -> set[int]:
    """Papers that already have embedded chunks (chunks are write-once)."""
    if not paper_ids:
        return set()
    rows = (
        db.query(DocumentChunk.paper_id)
        .filter(DocumentChunk.paper_id.in_(list(paper_ids)))
        .distinct()
        .all()
    )
    return {row[0] for row in rows}
