"""pgvector-backed chunk storage and cosine-similarity search.

similarity = 1 - cosine_distance, so 1.0 means identical direction. Results
are ordered by distance ascending (most similar first).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from dossier.models.document_chunk import DocumentChunk

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
DEFAULT_MIN_SIMILARITY = 0.7
DEFAULT_CHUNKS_PER_PAPER = 3


@dataclass(frozen=True)
class ChunkWithEmbedding:
    paper_id: int
    content: str
    chunk_index: int
    token_count: int
    embedding: list[float]


@dataclass(frozen=True)
class SimilarChunk:
    id: int
    paper_id: int
    content: str
    chunk_index: int
    similarity: float


def store_chunks_with_embeddings(db: Session, rows: Sequence[ChunkWithEmbedding]) -> list[int]:
    """Insert chunks and their vectors in one transaction. Returns new chunk ids."""
    if not rows:
        return []
    chunks = [
        DocumentChunk(
            paper_id=row.paper_id,
            content=row.content,
            chunk_index=row.chunk_index,
            token_count=row.token_count,
            embedding=row.embedding,
        )
        for row in rows
    ]
    try:
        db.add_all(chunks)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Stored %d document chunks", len(chunks))
    return [chunk.id for chunk in chunks]


def search_similar_chunks(
    db: Session,
    query_embedding: Sequence[float],
    limit: int = DEFAULT_LIMIT,
    min_similarity: float = DEFAULT_MIN_SIMILARITY,
    paper_ids: Sequence[int] | None = None,
) -> list[SimilarChunk]:
    """Chunks most similar to ``query_embedding`` with similarity >= ``min_similarity``."""
    distance = DocumentChunk.embedding.cosine_distance(list(query_embedding))
    stmt = (
        select(
            DocumentChunk.id,
            DocumentChunk.paper_id,
            DocumentChunk.content,
            DocumentChunk.chunk_index,
            distance.label("distance"),
        )
        .where(distance <= 1 - min_similarity)
        .order_by(distance)
        .limit(limit)
    )
    if paper_ids:
        stmt = stmt.where(DocumentChunk.paper_id.in_(list(paper_ids)))

    return [
        SimilarChunk(
            id=row.id,
            paper_id=row.paper_id,
            content=row.content,
            chunk_index=row.chunk_index,
            similarity=1 - float(row.distance),
        )
        for row in db.execute(stmt)
    ]


def group_chunks_by_paper(
    chunks: Sequence[SimilarChunk],
    chunks_per_paper: int = DEFAULT_CHUNKS_PER_PAPER,
) -> dict[int, list[SimilarChunk]]:
    """Group similarity-ordered chunks by paper, keeping the best N per paper.

    Dict insertion order follows each paper's best chunk.
    """
    grouped: dict[int, list[SimilarChunk]] = {}
    for chunk in chunks:
        bucket = grouped.setdefault(chunk.paper_id, [])
        if len(bucket) < chunks_per_paper:
            bucket.append(chunk)
    return grouped


def search_chunks_grouped_by_paper(
    db: Session,
    query_embedding: Sequence[float],
    limit: int = DEFAULT_LIMIT,
    min_similarity: float = DEFAULT_MIN_SIMILARITY,
    paper_ids: Sequence[int] | None = None,
    chunks_per_paper: int = DEFAULT_CHUNKS_PER_PAPER,
) -> dict[int, list[SimilarChunk]]:
    """Similarity search returning up to ``chunks_per_paper`` chunks for each matching paper."""
    chunks = search_similar_chunks(
        db,
        query_embedding,
        limit=limit * chunks_per_paper,
        min_similarity=min_similarity,
        paper_ids=paper_ids,
    )
    return group_chunks_by_paper(chunks, chunks_per_paper)
