"""Repository for the LLM provider credential pool."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from product_factory.core.db_kernel import db_read, db_write
from product_factory.models.cost import ProviderKey
from product_factory.services.ai_router.types import ProviderCandidate

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 500


class ProviderKeyRepository:
    """Reads candidates and updates key health via short-lived sessions."""

    async def list_candidates(self) -> list[ProviderCandidate]:
        """Active keys ordered by ascending error count (healthiest first)."""

        async def _load(session: AsyncSession) -> list[ProviderKey]:
            result = await session.execute(
                select(ProviderKey)
                .where(ProviderKey.is_active.is_(True))
                .order_by(ProviderKey.error_count.asc(), ProviderKey.created_at.asc())
            )
            return list(result.scalars().all())

        keys = await db_read(_load, operation_name="provider_keys_list")
        return [
            ProviderCandidate(
                key_id=key.id,
                provider=key.provider,
                api_key=key.key_value,
                base_url=key.base_url,
                allowed_models=list(key.allowed_models or []),
                error_count=key.error_count,
            )
            for key in keys
        ]

    async def record_success(self, key_id: str) -> None:
        async def _apply(session: AsyncSession) -> None:
            await session.execute(
                update(ProviderKey)
                .where(ProviderKey.id == key_id)
                .values(
                    total_requests=ProviderKey.total_requests + 1,
                    last_used_at=datetime.now(timezone.utc),
                )
            )

        await db_write(_apply, operation_name="provider_key_success")

    async def record_failure(self, key_id: str, message: str) -> None:
        async def _apply(session: AsyncSession) -> None:
            await session.execute(
                update(ProviderKey)
                .where(ProviderKey.id == key_id)
                .values(
                    error_count=ProviderKey.error_count + 1,
                    total_requests=ProviderKey.total_requests + 1,
                    last_error_at=datetime.now(timezone.utc),
                    last_error_message=(message or "")[:MAX_ERROR_MESSAGE_LENGTH],
                )
            )

        await db_write(_apply, operation_name="provider_key_failure")

    async def add_key(
        self,
        *,
        provider: str,
        key_value: str,
        allowed_models: list[str],
        base_url: str | None = None,
        note: str | None = None,
    ) -> str:
        """Store a new credential (encrypted at rest) and return its id."""

        async def _insert(session: AsyncSession) -> str:
            key = ProviderKey(
                provider=provider.strip().lower(),
                key_value=key_value,
                base_url=base_url,
                allowed_models=allowed_models,
                is_active=True,
                error_count=0,
                total_requests=0,
                note=note,
            )
            session.add(key)
            await session.flush()
            return key.id

        key_id = await db_write(_insert, operation_name="provider_key_add")
        logger.info("Provider key added", extra={"provider": provider, "key_id": key_id})
        return key_id
