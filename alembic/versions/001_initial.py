"""Initial dossier schema: claims, papers, evidence, chunks, jobs.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Requires the pgvector extension. The embedding width must match
EMBEDDING_DIMENSIONS in dossier.models.document_chunk.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

EMBEDDING_DIMENSIONS = 1536


def _timestamps(*names: str) -> list[sa.Column]:
    return [
        sa.Column(name, sa.DateTime(), nullable=False, server_default=sa.text("now()"))
        for name in names
    ]


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "claims",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "claim_results",
        sa.Column("claim_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="PENDING"),
        sa.Column("ai_verdict", sa.String(length=8), nullable=True),
        sa.Column("ai_confidence", sa.Float(), nullable=True),
        sa.Column("outcome", sa.String(length=32), nullable=True),
        sa.Column("effect_direction", sa.String(length=32), nullable=True),
        sa.Column("strength_of_evidence", sa.String(length=32), nullable=True),
        sa.Column("short_summary", sa.Text(), nullable=True),
        sa.Column("consensus_summary", sa.Text(), nullable=True),
        sa.Column("key_factors", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("caveats", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("what_would_change_verdict", sa.Text(), nullable=True),
        sa.Column("recommended_action", sa.Text(), nullable=True),
        sa.Column("last_dossier_at", sa.DateTime(), nullable=True),
        *_timestamps("updated_at"),
        sa.ForeignKeyConstraint(["claim_id"], ["claims.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("claim_id"),
    )

    op.create_table(
        "papers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("abstract", sa.Text(), nullable=True),
        sa.Column("doi", sa.String(length=255), nullable=True),
        sa.Column("pmid", sa.String(length=32), nullable=True),
        sa.Column("pmcid", sa.String(length=32), nullable=True),
        sa.Column("arxiv_id", sa.String(length=64), nullable=True),
        sa.Column("semantic_scholar_id", sa.String(length=64), nullable=True),
        sa.Column("authors", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("journal", sa.String(length=500), nullable=True),
        sa.Column("published_year", sa.Integer(), nullable=True),
        sa.Column("full_text_url", sa.String(length=2048), nullable=True),
        sa.Column("citation_count", sa.Integer(), nullable=True),
        sa.Column("sources", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("doi"),
        sa.UniqueConstraint("pmid"),
        sa.UniqueConstraint("pmcid"),
        sa.UniqueConstraint("arxiv_id"),
        sa.UniqueConstraint("semantic_scholar_id"),
    )

    op.create_table(
        "claim_papers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("claim_id", sa.Integer(), nullable=False),
        sa.Column("paper_id", sa.Integer(), nullable=False),
        sa.Column("stance", sa.String(length=16), nullable=True),
        sa.Column("ai_summary", sa.Text(), nullable=True),
        sa.Column("abstract_snippet", sa.Text(), nullable=True),
        sa.Column("study_type", sa.String(length=64), nullable=True),
        sa.Column("sample_size", sa.Integer(), nullable=True),
        sa.Column("confidence_score", sa.Float(), nullable=True),
        sa.Column("relevance_score", sa.Float(), nullable=True),
        sa.Column("extraction_version", sa.String(length=16), nullable=True),
        sa.Column("extraction", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.ForeignKeyConstraint(["claim_id"], ["claims.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["paper_id"], ["papers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("claim_id", "paper_id", name="uq_claim_papers_claim_paper"),
    )
    op.create_index("ix_claim_papers_claim_id", "claim_papers", ["claim_id"])
    op.create_index("ix_claim_papers_paper_id", "claim_papers", ["paper_id"])

    op.create_table(
        "document_chunks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("paper_id", sa.Integer(), nullable=False),
        sa.Column("chunk_index", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("token_count", sa.Integer(), nullable=False),
        sa.Column("embedding", Vector(EMBEDDING_DIMENSIONS), nullable=False),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(["paper_id"], ["papers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_document_chunks_paper_id", "document_chunks", ["paper_id"])
    op.execute(
        "CREATE INDEX ix_document_chunks_embedding_hnsw "
        "ON document_chunks USING hnsw (embedding vector_cosine_ops)"
    )

    op.create_table(
        "dossier_jobs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("claim_id", sa.Integer(), nullable=False),
        sa.Column("requester_id", sa.String(length=255), nullable=False, server_default="system"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="QUEUED"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps("run_after", "created_at"),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["claim_id"], ["claims.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dossier_jobs_claim_id", "dossier_jobs", ["claim_id"])
    op.create_index("ix_dossier_jobs_status_run_after", "dossier_jobs", ["status", "run_after"])


def downgrade() -> None:
    op.drop_index("ix_dossier_jobs_status_run_after", table_name="dossier_jobs")
    op.drop_index("ix_dossier_jobs_claim_id", table_name="dossier_jobs")
    op.drop_table("dossier_jobs")
    op.execute("DROP INDEX IF EXISTS ix_document_chunks_embedding_hnsw")
    op.drop_index("ix_document_chunks_paper_id", table_name="document_chunks")
    op.drop_table("document_chunks")
    op.drop_index("ix_claim_papers_paper_id", table_name="claim_papers")
    op.drop_index("ix_claim_papers_claim_id", table_name="claim_papers")
    op.drop_table("claim_papers")
    op.drop_table("papers")
    op.drop_table("claim_results")
    op.drop_table("claims")
