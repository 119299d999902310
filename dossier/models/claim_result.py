"""ClaimResult model — AI verdict fields for a claim."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dossier.db.session import Base


class ClaimResult(Base):
    """One row per claim. Written only by verdict persistence."""

    __tablename__ = "claim_results"

    claim_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("claims.id", ondelete="CASCADE"), primary_key=True
    )
    status: Mapped[str] = mapped_column(String(32), default="PENDING", nullable=False)
    ai_verdict: Mapped[str | None] = mapped_column(String(8), nullable=True)  # YES | NO | None
    ai_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    outcome: Mapped[str | None] = mapped_column(String(32), nullable=True)
    effect_direction: Mapped[str | None] = mapped_column(String(32), nullable=True)
    strength_of_evidence: Mapped[str | None] = mapped_column(String(32), nullable=True)
    short_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    consensus_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    key_factors: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    caveats: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    what_would_change_verdict: Mapped[str | None] = mapped_column(Text, nullable=True)
    recommended_action: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_dossier_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    claim: Mapped["Claim"] = relationship("Claim", back_populates="result")
