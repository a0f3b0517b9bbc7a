"""Validation gate result models (one immutable row per derivative and gate)."""

from __future__ import annotations

from typing import Literal, get_args

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, validates

from product_factory.models.base import Base, TimestampMixin, UUIDMixin, ensure_in, in_clause

Difficulty = Literal["easy", "moderate", "hard", "very_hard"]
CompetitiveDataSource = Literal["google_cse", "serpapi", "ai_estimate"]
VolumeEstimate = Literal["high", "medium", "low", "none", "unknown"]
KeywordDifficulty = Literal["easy", "moderate", "hard", "unknown"]

DIFFICULTIES: tuple[str, ...] = get_args(Difficulty)
COMPETITIVE_DATA_SOURCES: tuple[str, ...] = get_args(CompetitiveDataSource)
VOLUME_ESTIMATES: tuple[str, ...] = get_args(VolumeEstimate)
KEYWORD_DIFFICULTIES: tuple[str, ...] = get_args(KeywordDifficulty)


class CompetitiveCheck(Base, UUIDMixin, TimestampMixin):
    """SERP competition assessment for a derivative's primary keyword."""

    __tablename__ = "competitive_checks"
    __table_args__ = (
        CheckConstraint(
            f"difficulty_assessment IS NULL OR difficulty_assessment IN ({in_clause(DIFFICULTIES)})",
            name="ck_competitive_checks_difficulty",
        ),
        CheckConstraint(
            f"data_source IN ({in_clause(COMPETITIVE_DATA_SOURCES)})",
            name="ck_competitive_checks_data_source",
        ),
    )

    derived_product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("derived_products.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    keyword: Mapped[str] = mapped_column(Text, nullable=False)
    serp_results: Mapped[list[dict]] = mapped_column(JSONB, default=list, nullable=False)
    big_site_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    small_site_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    content_gap_found: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    difficulty_assessment: Mapped[str | None] = mapped_column(String(20), nullable=True)
    ai_analysis: Mapped[str | None] = mapped_column(Text, nullable=True)
    recommendations: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    data_source: Mapped[str] = mapped_column(String(20), default="ai_estimate", nullable=False)

    @validates("difficulty_assessment")
    def _validate_difficulty(self, key: str, value: str | None) -> str | None:
        return ensure_in(key, value, DIFFICULTIES, nullable=True)

    @validates("data_source")
    def _validate_data_source(self, key: str, value: str) -> str:
        return ensure_in(key, value, COMPETITIVE_DATA_SOURCES)


class KeywordValidation(Base, UUIDMixin, TimestampMixin):
    """Autocomplete-based demand estimate for a derivative's keywords."""

    __tablename__ = "keyword_validations"
    __table_args__ = (
        CheckConstraint(
            f"search_volume_estimate IN ({in_clause(VOLUME_ESTIMATES)})",
            name="ck_keyword_validations_volume",
        ),
        CheckConstraint(
            f"keyword_difficulty IN ({in_clause(KEYWORD_DIFFICULTIES)})",
            name="ck_keyword_validations_difficulty",
        ),
    )

    derived_product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("derived_products.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    keywords: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    keyword_counts: Mapped[dict[str, int]] = mapped_column(JSONB, default=dict, nullable=False)
    total_suggestions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    exact_matches: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    suggestions_sample: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    search_volume_estimate: Mapped[str] = mapped_column(String(20), default="unknown", nullable=False)
    keyword_difficulty: Mapped[str] = mapped_column(String(20), default="unknown", nullable=False)
    data_source: Mapped[str] = mapped_column(String(50), default="google_autocomplete", nullable=False)

    @validates("search_volume_estimate")
    def _validate_volume(self, key: str, value: str) -> str:
        return ensure_in(key, value, VOLUME_ESTIMATES)

    @validates("keyword_difficulty")
    def _validate_difficulty(self, key: str, value: str) -> str:
        return ensure_in(key, value, KEYWORD_DIFFICULTIES)
