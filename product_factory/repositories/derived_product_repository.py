"""Repository for DerivedProduct reads and inserts."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from product_factory.core.db_kernel import ConflictError, db_read, db_write
from product_factory.models.derived_product import DerivedProduct

logger = logging.getLogger(__name__)


class DerivedProductRepository:
    """Derivative access via short-lived sessions."""

    async def slug_exists(self, slug: str) -> bool:
        async def _check(session: AsyncSession) -> bool:
            return bool(await session.scalar(select(exists().where(DerivedProduct.slug == slug))))

        return await db_read(_check, operation_name="derived_products_slug_exists")

    async def list_recent_keyword_sets(self, *, since: datetime) -> list[list[str]]:
        """Keywords of every non-rejected derivative created since ``since``."""

        async def _load(session: AsyncSession) -> list[list[str]]:
            result = await session.execute(
                select(DerivedProduct.target_keywords).where(
                    DerivedProduct.created_at >= since,
                    DerivedProduct.status != "rejected",
                )
            )
            return [list(keywords or []) for keywords in result.scalars().all()]

        return await db_read(_load, operation_name="derived_products_recent_keywords")

    async def add(self, product: DerivedProduct) -> bool:
        """Insert and commit; False when the slug was taken in the meantime."""

        async def _insert(session: AsyncSession) -> None:
            session.add(product)
            await session.flush()

        try:
            await db_write(_insert, operation_name="derived_products_add")
        except ConflictError:
            return False
        return True

    async def get(self, product_id: str) -> DerivedProduct | None:
        async def _load(session: AsyncSession) -> DerivedProduct | None:
            return await session.get(DerivedProduct, product_id)

        return await db_read(_load, operation_name="derived_products_get")

    async def list(
        self,
        *,
        status: str | None = None,
        opportunity_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[DerivedProduct], int]:
        """Page of derivatives sorted by score, with the filtered total."""

        async def _load(session: AsyncSession) -> tuple[list[DerivedProduct], int]:
            filters = []
            if status:
                filters.append(DerivedProduct.status == status)
            if opportunity_id:
                filters.append(DerivedProduct.opportunity_id == opportunity_id)

            total = await session.scalar(select(func.count()).select_from(DerivedProduct).where(*filters)) or 0
            result = await session.execute(
                select(DerivedProduct)
                .where(*filters)
                .order_by(DerivedProduct.score.desc())
                .offset(offset)
                .limit(limit)
            )
            return list(result.scalars().all()), int(total)

        return await db_read(_load, operation_name="derived_products_list")
