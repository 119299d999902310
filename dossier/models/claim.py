"""Claim model."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dossier.db.session import Base


class Claim(Base):
    """Factual claim under research. Owned by the claims service; read-only here."""

    __tablename__ = "claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
    )

    result: Mapped["ClaimResult | None"] = relationship(
        "ClaimResult", back_populates="claim", uselist=False
    )
    claim_papers: Mapped[list["ClaimPaper"]] = relationship(
        "ClaimPaper", back_populates="claim", cascade="all, delete-orphan"
    )
    dossier_jobs: Mapped[list["DossierJob"]] = relationship(
        "DossierJob", back_populates="claim", cascade="all, delete-orphan"
    )
