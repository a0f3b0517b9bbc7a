"""Repository for validation gate queues and results."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from product_factory.core.db_kernel import ConflictError, db_read, db_write
from product_factory.models.derived_product import DerivedProduct
from product_factory.models.validation import CompetitiveCheck, KeywordValidation

logger = logging.getLogger(__name__)


class ValidationRepository:
    """Gate work queues plus atomic result writes (check row + derivative update)."""

    async def list_pending_competitive(self, *, limit: int) -> list[DerivedProduct]:
        async def _load(session: AsyncSession) -> list[DerivedProduct]:
            checked = exists().where(CompetitiveCheck.derived_product_id == DerivedProduct.id)
            result = await session.execute(
                select(DerivedProduct)
                .where(DerivedProduct.status == "derived", ~checked)
                .order_by(DerivedProduct.score.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

        return await db_read(_load, operation_name="validation_pending_competitive")

    async def list_pending_keyword_validation(self, *, limit: int) -> list[DerivedProduct]:
        async def _load(session: AsyncSession) -> list[DerivedProduct]:
            checked = exists().where(CompetitiveCheck.derived_product_id == DerivedProduct.id)
            validated = exists().where(KeywordValidation.derived_product_id == DerivedProduct.id)
            result = await session.execute(
                select(DerivedProduct)
                .where(DerivedProduct.status == "derived", checked, ~validated)
                .order_by(DerivedProduct.score.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

        return await db_read(_load, operation_name="validation_pending_keywords")

    async def record_competitive_check(self, check: CompetitiveCheck, updates: dict[str, Any]) -> bool:
        """Insert the check and update its derivative; False if already checked."""
        return await self._record(check, check.derived_product_id, updates, "validation_record_competitive")

    async def record_keyword_validation(self, validation: KeywordValidation, updates: dict[str, Any]) -> bool:
        """Insert the validation and update its derivative; False if already validated."""
        return await self._record(
            validation, validation.derived_product_id, updates, "validation_record_keywords"
        )

    async def _record(
        self,
        row: CompetitiveCheck | KeywordValidation,
        product_id: str,
        updates: dict[str, Any],
        operation_name: str,
    ) -> bool:
        async def _write(session: AsyncSession) -> None:
            session.add(row)
            await session.flush()
            if updates:
                await session.execute(
                    update(DerivedProduct).where(DerivedProduct.id == product_id).values(**updates)
                )

        try:
            await db_write(_write, operation_name=operation_name)
        except ConflictError:
            return False
        return True

    async def get_for_product(
        self,
        product_id: str,
    ) -> tuple[CompetitiveCheck | None, KeywordValidation | None]:
        async def _load(session: AsyncSession) -> tuple[CompetitiveCheck | None, KeywordValidation | None]:
            check = await session.scalar(
                select(CompetitiveCheck).where(CompetitiveCheck.derived_product_id == product_id)
            )
            validation = await session.scalar(
                select(KeywordValidation).where(KeywordValidation.derived_product_id == product_id)
            )
            return check, validation

        return await db_read(_load, operation_name="validation_get_for_product")
