"""Repository for the daily cost ledger."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from product_factory.core.db_kernel import db_read, db_write
from product_factory.models.cost import CostRecord
from product_factory.schemas.pipeline import CostSummary

logger = logging.getLogger(__name__)


class CostRepository:
    """Accumulates usage per (day, stage, model) via short-lived sessions."""

    async def add_usage(
        self,
        *,
        day: date,
        stage: str,
        model: str,
        tokens_in: int,
        tokens_out: int,
        cost_usd: float,
    ) -> None:
        """Atomically add one call's usage to the ledger row."""

        async def _upsert(session: AsyncSession) -> None:
            stmt = insert(CostRecord).values(
                day=day,
                stage=stage,
                model=model,
                api_calls=1,
                tokens_input=tokens_in,
                tokens_output=tokens_out,
                cost_usd=cost_usd,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[CostRecord.day, CostRecord.stage, CostRecord.model],
                set_={
                    "api_calls": CostRecord.api_calls + 1,
                    "tokens_input": CostRecord.tokens_input + stmt.excluded.tokens_input,
                    "tokens_output": CostRecord.tokens_output + stmt.excluded.tokens_output,
                    "cost_usd": CostRecord.cost_usd + stmt.excluded.cost_usd,
                    "updated_at": func.now(),
                },
            )
            await session.execute(stmt)

        await db_write(_upsert, operation_name="cost_add_usage")

    async def spent_on(self, day: date) -> float:
        async def _sum(session: AsyncSession) -> float:
            total = await session.scalar(
                select(func.coalesce(func.sum(CostRecord.cost_usd), 0.0)).where(CostRecord.day == day)
            )
            return float(total or 0.0)

        return await db_read(_sum, operation_name="cost_spent_on")

    async def summary(self, day: date) -> CostSummary:
        async def _rows(session: AsyncSession) -> list[CostRecord]:
            result = await session.execute(select(CostRecord).where(CostRecord.day == day))
            return list(result.scalars().all())

        rows = await db_read(_rows, operation_name="cost_summary")
        return summarize_cost_rows(rows)


def summarize_cost_rows(rows: list[CostRecord]) -> CostSummary:
    """Fold ledger rows into totals per stage and per model."""
    summary = CostSummary()
    for row in rows:
        cost = float(row.cost_usd or 0.0)
        summary.total += cost
        summary.api_calls += int(row.api_calls or 0)
        summary.by_stage[row.stage] = summary.by_stage.get(row.stage, 0.0) + cost
        summary.by_model[row.model] = summary.by_model.get(row.model, 0.0) + cost
    return summary
