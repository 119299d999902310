"""Paper model — canonical, deduplicated research paper."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dossier.db.session import Base

# Identifier columns; a paper matches an existing row when any of these agree.
IDENTIFIER_FIELDS = ("doi", "pmid", "pmcid", "arxiv_id", "semantic_scholar_id")


class Paper(Base):
    """Paper shared across claims. Populated fields are never overwritten."""

    __tablename__ = "papers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    abstract: Mapped[str | None] = mapped_column(Text, nullable=True)
    doi: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    pmid: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)
    pmcid: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)
    arxiv_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    semantic_scholar_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True
    )
    authors: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    journal: Mapped[str | None] = mapped_column(String(500), nullable=True)
    published_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    full_text_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    citation_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sources: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    chunks: Mapped[list["DocumentChunk"]] = relationship(
        "DocumentChunk", back_populates="paper", cascade="all, delete-orphan"
    )
    claim_papers: Mapped[list["ClaimPaper"]] = relationship(
        "ClaimPaper", back_populates="paper", cascade="all, delete-orphan"
    )
