"""SQLAlchemy models."""

from dossier.models.claim import Claim
from dossier.models.claim_paper import ClaimPaper
from dossier.models.claim_result import ClaimResult
from dossier.models.document_chunk import DocumentChunk
from dossier.models.dossier_job import DossierJob
from dossier.models.paper import Paper

__all__ = [
    "Claim",
    "ClaimPaper",
    "ClaimResult",
    "DocumentChunk",
    "DossierJob",
    "Paper",
]
