"""Analysis-side models: profiles, matches and results."""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .base import DietType, FrozenModel, MatchKind, ProductCategory, RiskLevel


class ProfileSnapshot(BaseModel):
    """Read-only view of a user's allergy/diet profile.

    Parsing is permissive: a missing or unknown diet type becomes NONE and
    missing allergens become an empty list.
    """

    diet_type: DietType = Field(default=DietType.NONE)
    allergens: list[str] = Field(default_factory=list)

    @field_validator("diet_type", mode="before")
    @classmethod
    def _coerce_diet_type(cls, value: Any) -> Any:
        if isinstance(value, DietType):
            return value
        if not value:
            return DietType.NONE
        try:
            return DietType(str(value).strip().upper())
        except ValueError:
            return DietType.NONE

    @field_validator("allergens", mode="before")
    @classmethod
    def _coerce_allergens(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple, set)):
            return []
        return [str(v) for v in value if v is not None]

    @classmethod
    def from_raw(cls, raw: Optional[Any]) -> "ProfileSnapshot":
        """Build a snapshot from a model, a mapping, or nothing."""
        if isinstance(raw, cls):
            return raw
        if raw is None:
            return cls()
        if isinstance(raw, dict):
            return cls(
                diet_type=raw.get("diet_type", raw.get("dietType")),
                allergens=raw.get("allergens"),
            )
        return cls(
            diet_type=getattr(raw, "diet_type", None),
            allergens=getattr(raw, "allergens", None),
        )

    class Config:
        frozen = True


class MatchRecord(FrozenModel):
    """One confirmed conflict between the label and the profile."""

    kind: MatchKind
    term: str = Field(..., description="Canonical key of the allergen or diet concept")
    hit: str = Field(..., description="Text that matched on the label")
    reason: str


class TextQuality(FrozenModel):
    """Character counts used to judge legibility."""

    hangul: int = 0
    alpha: int = 0
    digit: int = 0
    score: int = 0


class AnalysisResult(FrozenModel):
    """Terminal artifact of the analysis engine."""

    category: ProductCategory
    ingredients: list[str] = Field(default_factory=list)
    matches: list[MatchRecord] = Field(default_factory=list)
    risk_level: RiskLevel
    quality: TextQuality = Field(default_factory=TextQuality)
    evidence_lines: list[str] = Field(default_factory=list)
    message: str = ""

    @property
    def quality_score(self) -> int:
        """Legibility score of the analyzed text."""
        return self.quality.score

    @property
    def allergy_matches(self) -> list[MatchRecord]:
        """Matches against the profile's allergens."""
        return [m for m in self.matches if m.kind == MatchKind.ALLERGY]

    @property
    def diet_matches(self) -> list[MatchRecord]:
        """Matches against the profile's diet rules."""
        return [m for m in self.matches if m.kind == MatchKind.DIET]
