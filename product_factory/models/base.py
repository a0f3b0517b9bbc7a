"""Base model and mixins for SQLAlchemy models."""

import uuid
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import String, TypeDecorator


def generate_id() -> str:
    """Generate a string primary key."""
    return str(uuid.uuid4())


def ensure_in(field: str, value: str | None, allowed: Iterable[str], *, nullable: bool = False) -> str | None:
    """Validate an enum-typed column value against its closed set."""
    if value is None and nullable:
        return None
    allowed_values = tuple(allowed)
    if value not in allowed_values:
        raise ValueError(f"Invalid {field}: {value!r} (expected one of {', '.join(allowed_values)})")
    return value


def in_clause(values: Iterable[str]) -> str:
    """Render a SQL IN list for CHECK constraints."""
    return ", ".join(f"'{value}'" for value in values)


class EncryptedString(TypeDecorator):
    """String column transparently encrypted with Fernet."""

    impl = String
    cache_ok = False

    def __init__(self, length: int = 1024) -> None:
        super().__init__(length=length)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        normalized = str(value).strip()
        if not normalized:
            return None

        from product_factory.core.field_encryption import encrypt_provider_key

        return encrypt_provider_key(normalized)

    def process_result_value(self, value, dialect):
        if value is None:
            return None

        from product_factory.core.field_encryption import decrypt_provider_key

        return decrypt_provider_key(str(value))


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class UUIDMixin:
    """Mixin that adds a UUID string primary key."""

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_id,
    )


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
