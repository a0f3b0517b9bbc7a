"""Raw interest signal model."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, get_args

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, validates

from product_factory.models.base import Base, TimestampMixin, UUIDMixin, ensure_in, in_clause

SignalStatus = Literal["raw", "analyzed", "dismissed", "evaluated"]
SIGNAL_STATUSES: tuple[str, ...] = get_args(SignalStatus)


class Signal(Base, UUIDMixin, TimestampMixin):
    """An externally observed indicator of interest in a topic.

    Rows are written by collectors and only ever status-transitioned here.
    """

    __tablename__ = "signals"
    __table_args__ = (
        UniqueConstraint("source", "source_id", name="uq_signals_source_source_id"),
        CheckConstraint(f"status IN ({in_clause(SIGNAL_STATUSES)})", name="ck_signals_status"),
    )

    source: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    source_id: Mapped[str] = mapped_column(String(255), nullable=False)
    source_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    # Traction
    stars: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comments_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    first_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    source_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Status
    status: Mapped[str] = mapped_column(String(20), default="raw", nullable=False, index=True)
    status_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    merged_into_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    @validates("status")
    def _validate_status(self, key: str, value: str) -> str:
        return ensure_in(key, value, SIGNAL_STATUSES)

    def __repr__(self) -> str:
        return f"<Signal {self.source}:{self.title[:40]!r} [{self.status}]>"
