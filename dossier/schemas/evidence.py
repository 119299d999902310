"""Structured evidence extracted from one paper for one claim."""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

EvidenceStance = Literal["SUPPORTS", "CONTRADICTS", "NEUTRAL", "INSUFFICIENT"]

# Stored stance taxonomy on claim_papers.
StoredStance = Literal["SUPPORTS", "REFUTES", "NEUTRAL"]

STUDY_TYPES = (
    "Meta-analysis",
    "Systematic review",
    "RCT",
    "Cohort",
    "Case-control",
    "Cross-sectional",
    "Animal study",
    "In vitro",
    "Expert opinion",
    "Other",
)

_STANCE_TO_STORED: dict[str, str] = {
    "SUPPORTS": "SUPPORTS",
    "CONTRADICTS": "REFUTES",
    "NEUTRAL": "NEUTRAL",
    "INSUFFICIENT": "NEUTRAL",
}


def _clamp_unit(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(1.0, number))


class ExtractedEvidence(BaseModel):
    """Model output for one paper. Accepts the camelCase keys the prompt requests."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    stance: EvidenceStance
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    summary: str = ""
    study_type: str = "Other"
    sample_size: Optional[int] = None
    population: str = ""
    duration: str = ""
    effect_size: str = ""
    key_findings: list[str] = Field(default_factory=list)
    limitations: list[str] = Field(default_factory=list)
    relevance_score: float = Field(0.0, ge=0.0, le=1.0)

    @field_validator("stance", mode="before")
    @classmethod
    def _upper_stance(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("confidence", "relevance_score", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return _clamp_unit(value)

    @field_validator("study_type", mode="before")
    @classmethod
    def _known_study_type(cls, value: Any) -> str:
        if isinstance(value, str):
            for known in STUDY_TYPES:
                if value.strip().lower() == known.lower():
                    return known
        logger.debug("Unknown study type %r, using 'Other'", value)
        return "Other"

    @field_validator("sample_size", mode="before")
    @classmethod
    def _positive_int_or_none(cls, value: Any) -> int | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            number = int(float(value))
        except (TypeError, ValueError):
            return None
        return number if number > 0 else None

    @field_validator("population", "duration", "effect_size", "summary", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("key_findings", "limitations", mode="before")
    @classmethod
    def _string_list(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return [str(v) for v in value if v is not None and str(v).strip()]

    @property
    def stored_stance(self) -> str:
        """Stance in the persisted SUPPORTS/REFUTES/NEUTRAL taxonomy."""
        return _STANCE_TO_STORED[self.stance]


class EvidenceCard(BaseModel):
    """Extracted evidence paired with the paper it came from; input to synthesis."""

    paper_id: int
    paper_title: str
    published_year: Optional[int] = None
    evidence: ExtractedEvidence
