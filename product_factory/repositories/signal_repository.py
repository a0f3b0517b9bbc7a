"""Repository for Signal reads, merges and status transitions."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from product_factory.core.db_kernel import ConflictError, db_read, db_write
from product_factory.core.text import content_hash
from product_factory.models.signal import Signal
from product_factory.services.topic_clustering import MERGED_DUPLICATE_REASON, TopicGroup

logger = logging.getLogger(__name__)


class SignalRepository:
    """Signal access via short-lived sessions."""

    async def list_by_status(self, status: str, *, limit: int) -> list[Signal]:
        """Newest signals in a status."""

        async def _load(session: AsyncSession) -> list[Signal]:
            result = await session.execute(
                select(Signal)
                .where(Signal.status == status)
                .order_by(Signal.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

        return await db_read(_load, operation_name="signals_list_by_status")

    async def apply_merge(self, group: TopicGroup) -> None:
        """Fold duplicates into the primary and dismiss them, in one transaction."""
        primary_id = str(group.primary.id)
        merged_ids = group.merged_ids
        description = group.merged_description

        async def _apply(session: AsyncSession) -> None:
            await session.execute(
                update(Signal).where(Signal.id == primary_id).values(description=description)
            )
            await session.execute(
                update(Signal)
                .where(Signal.id.in_(merged_ids))
                .values(
                    status="dismissed",
                    status_reason=MERGED_DUPLICATE_REASON,
                    merged_into_id=primary_id,
                )
            )

        await db_write(_apply, operation_name="signals_apply_merge")
        group.primary.description = description
        logger.info(
            "Merged duplicate signals",
            extra={"primary_id": primary_id, "merged_ids": merged_ids},
        )

    async def mark_evaluated(self, signal_ids: Sequence[str]) -> None:
        ids = [str(signal_id) for signal_id in signal_ids]
        if not ids:
            return

        async def _apply(session: AsyncSession) -> None:
            await session.execute(update(Signal).where(Signal.id.in_(ids)).values(status="evaluated"))

        await db_write(_apply, operation_name="signals_mark_evaluated")

    async def ingest(
        self,
        *,
        source: str,
        source_id: str,
        title: str,
        source_url: str = "",
        description: str | None = None,
        stars: int = 0,
        comments_count: int = 0,
        raw_data: dict[str, Any] | None = None,
        source_created_at: datetime | None = None,
        status: str = "raw",
    ) -> Signal | None:
        """Collector-facing insert; returns None for already-known signals."""
        digest = content_hash(title, source)

        async def _insert(session: AsyncSession) -> Signal | None:
            existing = await session.scalar(select(Signal.id).where(Signal.content_hash == digest).limit(1))
            if existing is not None:
                return None
            signal = Signal(
                source=source,
                source_id=source_id,
                source_url=source_url,
                title=title,
                description=description,
                stars=stars,
                comments_count=comments_count,
                raw_data=raw_data,
                source_created_at=source_created_at,
                content_hash=digest,
                status=status,
            )
            session.add(signal)
            await session.flush()
            return signal

        try:
            signal = await db_write(_insert, operation_name="signals_ingest")
        except ConflictError:
            signal = None

        if signal is None:
            logger.debug("Signal already known", extra={"source": source, "source_id": source_id})
        return signal
