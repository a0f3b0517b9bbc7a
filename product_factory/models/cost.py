"""Daily LLM cost ledger and provider credential pool."""

from __future__ import annotations

from datetime import date as date_type
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Date, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from product_factory.models.base import Base, EncryptedString, TimestampMixin, UUIDMixin


class CostRecord(Base, UUIDMixin, TimestampMixin):
    """Accumulated usage for one (day, stage, model)."""

    __tablename__ = "cost_records"
    __table_args__ = (
        UniqueConstraint("day", "stage", "model", name="uq_cost_records_day_stage_model"),
    )

    day: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    stage: Mapped[str] = mapped_column(String(50), nullable=False)
    model: Mapped[str] = mapped_column(String(120), nullable=False)
    api_calls: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tokens_input: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    tokens_output: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    cost_usd: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)


class ProviderKey(Base, UUIDMixin, TimestampMixin):
    """Credential entry in the LLM provider pool, with health counters."""

    __tablename__ = "provider_keys"

    provider: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    key_value: Mapped[str] = mapped_column(EncryptedString(1024), nullable=False)
    base_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    allowed_models: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Health
    error_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_requests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ProviderKey {self.provider} errors={self.error_count}>"
