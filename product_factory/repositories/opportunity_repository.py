"""Repository for Opportunity reads and inserts."""

from __future__ import annotations

import logging

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from product_factory.core.db_kernel import ConflictError, db_read, db_write
from product_factory.models.derived_product import DerivedProduct
from product_factory.models.opportunity import Opportunity

logger = logging.getLogger(__name__)


class OpportunityRepository:
    """Opportunity access via short-lived sessions."""

    async def list_recent_topics(self, *, limit: int) -> list[str]:
        """``title + " " + target_keyword`` for the most recently created opportunities."""

        async def _load(session: AsyncSession) -> list[str]:
            result = await session.execute(
                select(Opportunity.title, Opportunity.target_keyword)
                .order_by(Opportunity.created_at.desc())
                .limit(limit)
            )
            return [f"{title} {keyword or ''}".strip() for title, keyword in result.all()]

        return await db_read(_load, operation_name="opportunities_recent_topics")

    async def slug_exists(self, slug: str) -> bool:
        async def _check(session: AsyncSession) -> bool:
            return bool(await session.scalar(select(exists().where(Opportunity.slug == slug))))

        return await db_read(_check, operation_name="opportunities_slug_exists")

    async def add(self, opportunity: Opportunity) -> bool:
        """Insert; False when the slug was taken in the meantime."""

        async def _insert(session: AsyncSession) -> None:
            session.add(opportunity)
            await session.flush()

        try:
            await db_write(_insert, operation_name="opportunities_add")
        except ConflictError:
            return False
        return True

    async def list_for_derivation(self, *, min_score: float, limit: int) -> list[Opportunity]:
        """Evaluated opportunities above the score floor that have no derivatives yet."""

        async def _load(session: AsyncSession) -> list[Opportunity]:
            has_derivative = exists().where(DerivedProduct.opportunity_id == Opportunity.id)
            result = await session.execute(
                select(Opportunity)
                .where(
                    Opportunity.status == "evaluated",
                    Opportunity.score >= min_score,
                    ~has_derivative,
                )
                .order_by(Opportunity.score.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

        return await db_read(_load, operation_name="opportunities_for_derivation")

    async def list(
        self,
        *,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Opportunity], int]:
        """Page of opportunities sorted by score, with the filtered total."""

        async def _load(session: AsyncSession) -> tuple[list[Opportunity], int]:
            query = select(Opportunity)
            count_query = select(func.count()).select_from(Opportunity)
            if status:
                query = query.where(Opportunity.status == status)
                count_query = count_query.where(Opportunity.status == status)

            total = await session.scalar(count_query) or 0
            result = await session.execute(
                query.order_by(Opportunity.score.desc()).offset(offset).limit(limit)
            )
            return list(result.scalars().all()), int(total)

        return await db_read(_load, operation_name="opportunities_list")
