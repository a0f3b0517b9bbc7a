"""Structured LLM outputs consumed by the pipeline stages."""

from pydantic import BaseModel, Field, field_validator


def clamp_score(value: float) -> float:
    """Clamp a 0-100 score."""
    return max(0.0, min(100.0, float(value)))


def null_to_empty(value: object) -> object:
    """None becomes an empty string; anything else passes through."""
    return "" if value is None else value


class Competitor(BaseModel):
    """An existing product competing for the same audience."""

    name: str = ""
    url: str = ""
    weakness: str = ""

    @field_validator("name", "url", "weakness", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> object:
        return null_to_empty(value)


class OpportunityAssessment(BaseModel):
    """Scoring result for a single topic group."""

    title: str = Field(description="Short product title")
    slug: str = Field(default="", description="URL slug suggestion")
    description: str = Field(default="", description="What the product does and for whom")
    target_keyword: str = Field(default="", description="Primary search keyword")
    secondary_keywords: list[str] = Field(default_factory=list)
    category: str = Field(default="other", description="Product category")
    score_breakdown: dict[str, float] = Field(
        default_factory=dict,
        description="Dimension name to 0-100 score",
    )
    window_days_remaining: int | None = Field(
        default=None,
        description="Days until the opportunity window closes",
    )
    competitors: list[Competitor] = Field(default_factory=list)
    recommended_template: str | None = None
    recommended_features: list[str] = Field(default_factory=list)
    estimated_effort: str | None = None
    reasoning: str = ""

    @field_validator("title", "slug", "description", "target_keyword", "reasoning", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> object:
        return null_to_empty(value)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: object) -> object:
        return value or "other"

    @field_validator("competitors", mode="before")
    @classmethod
    def _coerce_competitors(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict)]
        return value

    @field_validator("score_breakdown", mode="before")
    @classmethod
    def _coerce_breakdown(cls, value: object) -> object:
        if not isinstance(value, dict):
            return {}
        cleaned: dict[str, float] = {}
        for key, raw in value.items():
            try:
                cleaned[str(key)] = clamp_score(float(raw))
            except (TypeError, ValueError):
                continue
        return cleaned

    @field_validator("secondary_keywords", "recommended_features", mode="before")
    @classmethod
    def _coerce_string_list(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class DerivativeIdea(BaseModel):
    """A single derivative product idea as proposed by the model.

    Enum-ish fields are kept as free text here and normalized by the deriver.
    """

    derivative_type: str = ""
    title: str
    description: str = ""
    target_keywords: list[str] = Field(default_factory=list)
    product_form: str | None = None
    estimated_search_volume: str | None = None
    competition_level: str | None = None
    monetization_strategy: list[str] = Field(default_factory=list)
    build_effort: str | None = None
    reasoning: str = ""
    score: float = 0.0

    @field_validator("derivative_type", "title", "description", "reasoning", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> object:
        return null_to_empty(value)

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value: object) -> object:
        try:
            return clamp_score(float(value))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0.0

    @field_validator("target_keywords", "monetization_strategy", mode="before")
    @classmethod
    def _coerce_string_list(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list):
            return [str(item).strip() for item in value if str(item).strip()]
        return value


class DerivationResponse(BaseModel):
    """Derivative ideas for one opportunity."""

    derivatives: list[DerivativeIdea] = Field(default_factory=list)


class CompetitiveAnalysis(BaseModel):
    """Model estimate of the competitive landscape for a keyword."""

    difficulty: str = "unknown"
    content_gap_found: bool = False
    analysis: str = ""
    recommendations: list[str] = Field(default_factory=list)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _normalize_difficulty(cls, value: object) -> str:
        normalized = str(value or "").strip().lower().replace(" ", "_").replace("-", "_")
        if normalized in {"easy", "moderate", "hard", "very_hard"}:
            return normalized
        return "unknown"

    @field_validator("analysis", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> object:
        return null_to_empty(value)

    @field_validator("content_gap_found", mode="before")
    @classmethod
    def _coerce_gap(cls, value: object) -> object:
        return False if value is None else value

    @field_validator("recommendations", mode="before")
    @classmethod
    def _coerce_recommendations(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value
