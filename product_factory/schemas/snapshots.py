"""Tagged snapshot records stored in DerivedProduct JSON columns.

Each record carries a ``kind`` discriminator so readers can parse any blob
through ``parse_snapshot`` and branch on the concrete type.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError


class DerivationSnapshot(BaseModel):
    """Raw scoring inputs the model gave when the derivative was proposed."""

    kind: Literal["derivation"] = "derivation"
    search_demand: str | None = None
    competition: str | None = None
    build_effort: str | None = None
    monetization: list[str] = Field(default_factory=list)
    raw_score: float = 0.0


class CompetitiveSnapshot(BaseModel):
    """Outcome of the SERP competition gate."""

    kind: Literal["competitive"] = "competitive"
    keyword: str
    difficulty: str
    big_site_count: int = 0
    small_site_count: int = 0
    content_gap: bool = False
    data_source: str = "ai_estimate"
    analysis: str | None = None
    recommendations: list[str] = Field(default_factory=list)


class KeywordValidationSnapshot(BaseModel):
    """Outcome of the autocomplete demand gate."""

    kind: Literal["keyword_validation"] = "keyword_validation"
    keywords: list[str] = Field(default_factory=list)
    total_suggestions: int = 0
    exact_matches: int = 0
    search_volume_estimate: str = "unknown"
    keyword_difficulty: str = "unknown"
    suggestions_sample: list[str] = Field(default_factory=list)


Snapshot = Annotated[
    DerivationSnapshot | CompetitiveSnapshot | KeywordValidationSnapshot,
    Field(discriminator="kind"),
]

snapshot_adapter: TypeAdapter[Snapshot] = TypeAdapter(Snapshot)


def dump_snapshot(snapshot: BaseModel) -> dict[str, Any]:
    """Serialize a snapshot for a JSONB column."""
    return snapshot.model_dump(mode="json")


def parse_snapshot(payload: dict[str, Any] | None) -> Snapshot | None:
    """Parse a stored snapshot blob; None for empty or unrecognized payloads."""
    if not payload:
        return None
    try:
        return snapshot_adapter.validate_python(payload)
    except ValidationError:
        return None
