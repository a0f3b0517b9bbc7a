"""Scored opportunity model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Literal, get_args

from sqlalchemy import CheckConstraint, DateTime, Float, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from product_factory.models.base import Base, TimestampMixin, UUIDMixin, ensure_in, in_clause

if TYPE_CHECKING:
    from product_factory.models.derived_product import DerivedProduct


OpportunityStatus = Literal[
    "evaluated", "approved", "in_progress", "deployed", "monitoring", "archived", "rejected"
]
WindowStatus = Literal["upcoming", "open", "closing", "closed"]
DecidedBy = Literal["auto", "human"]

OPPORTUNITY_STATUSES: tuple[str, ...] = get_args(OpportunityStatus)
WINDOW_STATUSES: tuple[str, ...] = get_args(WindowStatus)
DECIDED_BY_VALUES: tuple[str, ...] = get_args(DecidedBy)


class Opportunity(Base, UUIDMixin, TimestampMixin):
    """An evaluated, scored candidate product idea."""

    __tablename__ = "opportunities"
    __table_args__ = (
        CheckConstraint(f"status IN ({in_clause(OPPORTUNITY_STATUSES)})", name="ck_opportunities_status"),
        CheckConstraint(
            f"window_status IN ({in_clause(WINDOW_STATUSES)})",
            name="ck_opportunities_window_status",
        ),
        CheckConstraint(f"decided_by IN ({in_clause(DECIDED_BY_VALUES)})", name="ck_opportunities_decided_by"),
    )

    signal_ids: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="other")
    target_keyword: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    secondary_keywords: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)

    # Scoring
    score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False, index=True)
    score_breakdown: Mapped[dict[str, float]] = mapped_column(JSONB, default=dict, nullable=False)

    # Window
    window_opens_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    window_closes_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    window_status: Mapped[str] = mapped_column(String(20), default="open", nullable=False)

    # Recommendations
    competitors: Mapped[list[dict]] = mapped_column(JSONB, default=list, nullable=False)
    recommended_template: Mapped[str | None] = mapped_column(String(50), nullable=True)
    recommended_features: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    estimated_effort: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Decision
    status: Mapped[str] = mapped_column(String(20), default="evaluated", nullable=False, index=True)
    decision_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_by: Mapped[str] = mapped_column(String(10), default="human", nullable=False)

    # Owned derivatives; the derivative side only keeps the id.
    derived_products: Mapped[list[DerivedProduct]] = relationship(
        "DerivedProduct",
        lazy="raise",
        order_by="DerivedProduct.score.desc()",
    )

    @validates("status")
    def _validate_status(self, key: str, value: str) -> str:
        return ensure_in(key, value, OPPORTUNITY_STATUSES)

    @validates("window_status")
    def _validate_window_status(self, key: str, value: str) -> str:
        return ensure_in(key, value, WINDOW_STATUSES)

    @validates("decided_by")
    def _validate_decided_by(self, key: str, value: str) -> str:
        return ensure_in(key, value, DECIDED_BY_VALUES)

    def __repr__(self) -> str:
        return f"<Opportunity {self.slug} score={self.score:.1f} [{self.status}]>"
