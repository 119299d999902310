"""Synthesized verdict across all evidence for a claim."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

VerdictOutcome = Literal["SUPPORTED", "MIXED", "INSUFFICIENT", "CONTRADICTED"]
EffectDirection = Literal["POSITIVE", "NEGATIVE", "NEUTRAL", "VARIABLE"]
StrengthOfEvidence = Literal["STRONG", "MODERATE", "WEAK", "VERY_WEAK"]

_OUTCOME_TO_SIGN: dict[str, str | None] = {
    "SUPPORTED": "YES",
    "CONTRADICTED": "NO",
    "MIXED": None,
    "INSUFFICIENT": None,
}


class SynthesisVerdict(BaseModel):
    """Model output for verdict synthesis (camelCase keys accepted)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    verdict: VerdictOutcome
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    effect_direction: EffectDirection = "VARIABLE"
    short_summary: str = ""
    detailed_summary: str = ""
    strength_of_evidence: StrengthOfEvidence = "VERY_WEAK"
    key_factors: list[str] = Field(default_factory=list)
    caveats: list[str] = Field(default_factory=list)
    what_would_change_verdict: str = ""
    recommended_action: str = ""

    @field_validator("verdict", "effect_direction", "strength_of_evidence", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper().replace(" ", "_")
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, min(1.0, number))

    @field_validator("key_factors", "caveats", mode="before")
    @classmethod
    def _string_list(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return [str(v) for v in value if v is not None and str(v).strip()]

    @property
    def sign(self) -> str | None:
        """Result sign: SUPPORTED -> YES, CONTRADICTED -> NO, otherwise None."""
        return _OUTCOME_TO_SIGN[self.verdict]
