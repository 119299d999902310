"""ClaimPaper model — claim/paper link carrying the extracted evidence."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dossier.db.session import Base


class ClaimPaper(Base):
    """Evidence card for one paper under one claim."""

    __tablename__ = "claim_papers"

    __table_args__ = (
        UniqueConstraint("claim_id", "paper_id", name="uq_claim_papers_claim_paper"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    claim_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False, index=True
    )
    paper_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("papers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    stance: Mapped[str | None] = mapped_column(String(16), nullable=True)  # SUPPORTS | REFUTES | NEUTRAL
    ai_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    abstract_snippet: Mapped[str | None] = mapped_column(Text, nullable=True)
    study_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sample_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    relevance_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    extraction_version: Mapped[str | None] = mapped_column(String(16), nullable=True)
    extraction: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    claim: Mapped["Claim"] = relationship("Claim", back_populates="claim_papers")
    paper: Mapped["Paper"] = relationship("Paper", back_populates="claim_papers")
