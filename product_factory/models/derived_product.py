"""Derivative product model."""

from __future__ import annotations

from typing import Literal, get_args

from sqlalchemy import CheckConstraint, Float, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, validates

from product_factory.models.base import Base, TimestampMixin, UUIDMixin, ensure_in, in_clause

DerivativeType = Literal[
    "tutorial",
    "comparison",
    "directory",
    "tool",
    "prompt_guide",
    "template_gallery",
    "cheatsheet",
    "aggregator",
    "calculator",
    "landing_page",
]
BuildEffort = Literal["2h", "4h", "1d", "2d", "3d"]
CompetitionLevel = Literal["low", "medium", "high", "unknown"]
SearchVolume = Literal["high", "medium", "low", "unknown"]
ProductForm = Literal["website", "mini_program", "both"]
DerivedProductStatus = Literal[
    "derived", "validated", "planned", "generating", "deployed", "monitoring", "archived", "rejected"
]

DERIVATIVE_TYPES: tuple[str, ...] = get_args(DerivativeType)
BUILD_EFFORTS: tuple[str, ...] = get_args(BuildEffort)
COMPETITION_LEVELS: tuple[str, ...] = get_args(CompetitionLevel)
SEARCH_VOLUMES: tuple[str, ...] = get_args(SearchVolume)
PRODUCT_FORMS: tuple[str, ...] = get_args(ProductForm)
DERIVED_PRODUCT_STATUSES: tuple[str, ...] = get_args(DerivedProductStatus)


class DerivedProduct(Base, UUIDMixin, TimestampMixin):
    """A specific, actionable product concept spawned from an opportunity."""

    __tablename__ = "derived_products"
    __table_args__ = (
        CheckConstraint(f"derivative_type IN ({in_clause(DERIVATIVE_TYPES)})", name="ck_derived_type"),
        CheckConstraint(f"build_effort IN ({in_clause(BUILD_EFFORTS)})", name="ck_derived_build_effort"),
        CheckConstraint(
            f"competition_level IN ({in_clause(COMPETITION_LEVELS)})",
            name="ck_derived_competition_level",
        ),
        CheckConstraint(
            f"estimated_search_volume IN ({in_clause(SEARCH_VOLUMES)})",
            name="ck_derived_search_volume",
        ),
        CheckConstraint(f"product_form IN ({in_clause(PRODUCT_FORMS)})", name="ck_derived_product_form"),
        CheckConstraint(f"status IN ({in_clause(DERIVED_PRODUCT_STATUSES)})", name="ck_derived_status"),
    )

    opportunity_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("opportunities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    signal_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    parent_topic: Mapped[str] = mapped_column(Text, nullable=False)

    derivative_type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    target_keywords: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)

    # Normalized enums
    product_form: Mapped[str] = mapped_column(String(20), default="website", nullable=False)
    estimated_search_volume: Mapped[str] = mapped_column(String(20), default="unknown", nullable=False)
    competition_level: Mapped[str] = mapped_column(String(20), default="unknown", nullable=False)
    build_effort: Mapped[str] = mapped_column(String(5), default="1d", nullable=False)

    monetization_strategy: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    ai_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False, index=True)

    # Tagged snapshots, see product_factory.schemas.snapshots
    score_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    competitive_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    seo_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="derived", nullable=False, index=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @validates("derivative_type")
    def _validate_derivative_type(self, key: str, value: str) -> str:
        return ensure_in(key, value, DERIVATIVE_TYPES)

    @validates("build_effort")
    def _validate_build_effort(self, key: str, value: str) -> str:
        return ensure_in(key, value, BUILD_EFFORTS)

    @validates("competition_level")
    def _validate_competition_level(self, key: str, value: str) -> str:
        return ensure_in(key, value, COMPETITION_LEVELS)

    @validates("estimated_search_volume")
    def _validate_search_volume(self, key: str, value: str) -> str:
        return ensure_in(key, value, SEARCH_VOLUMES)

    @validates("product_form")
    def _validate_product_form(self, key: str, value: str) -> str:
        return ensure_in(key, value, PRODUCT_FORMS)

    @validates("status")
    def _validate_status(self, key: str, value: str) -> str:
        return ensure_in(key, value, DERIVED_PRODUCT_STATUSES)

    @property
    def primary_keyword(self) -> str:
        keywords = self.target_keywords or []
        return keywords[0] if keywords else self.title

    def __repr__(self) -> str:
        return f"<DerivedProduct {self.slug} ({self.derivative_type}) [{self.status}]>"
