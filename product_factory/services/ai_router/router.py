"""Multi-provider AI invocation with fallback, quota cooldown and cost tracking."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Sequence
from typing import Any, TypeVar

from pydantic import BaseModel

from product_factory.config import Settings, settings
from product_factory.core.db_kernel import DbKernelError
from product_factory.core.exceptions import StructuredOutputError
from product_factory.services.ai_router.breaker import ExhaustionBreaker, is_quota_error
from product_factory.services.ai_router.json_output import parse_structured
from product_factory.services.ai_router.providers import PydanticAIGenerator
from product_factory.services.ai_router.types import (
    AITier,
    CostRecorder,
    GenerationResult,
    KeyPool,
    ProviderCandidate,
    TextGenerator,
)

logger = logging.getLogger(__name__)

OutputT = TypeVar("OutputT", bound=BaseModel)

MAX_ERROR_MESSAGE_LENGTH = 500


def order_candidates(
    candidates: Sequence[ProviderCandidate],
    rng: Any,
    start_pool_size: int = 3,
) -> list[ProviderCandidate]:
    """Pick a random start among the healthiest few, then the rest in health order.

    ``candidates`` must already be sorted by ascending error count.
    """
    ordered = list(candidates)
    if not ordered:
        return []
    head = ordered[: max(1, start_pool_size)]
    start = rng.choice(head)
    return [start, *(candidate for candidate in ordered if candidate is not start)]


def describe_error(exc: BaseException, timeout_seconds: float) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return f"Timeout after {timeout_seconds:g}s"
    message = str(exc) or type(exc).__name__
    return message[:MAX_ERROR_MESSAGE_LENGTH]


class AIRouter:
    """Sends prompts through the provider key pool until one succeeds.

    Never raises to callers: every failure path ends in ``None``.
    """

    def __init__(
        self,
        key_pool: KeyPool,
        cost_recorder: CostRecorder,
        *,
        generator: TextGenerator | None = None,
        breaker: ExhaustionBreaker | None = None,
        rng: Any = None,
        config: Settings | None = None,
    ) -> None:
        self.config = config or settings
        self.key_pool = key_pool
        self.cost_recorder = cost_recorder
        self.generator = generator or PydanticAIGenerator()
        self.breaker = breaker or ExhaustionBreaker(self.config.llm_quota_cooldown_seconds)
        self.rng = rng or random.Random()

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        stage: str = "unknown",
        tier: AITier = "fast",
        temperature: float = 0.3,
        timeout: float | None = None,
    ) -> str | None:
        """Return generated text from the first candidate that succeeds."""
        result = await self._generate(
            prompt,
            system=system,
            stage=stage,
            tier=tier,
            temperature=temperature,
            timeout=timeout or self.config.llm_timeout_seconds,
        )
        return result.text if result else None

    async def generate_json(
        self,
        prompt: str,
        output_type: type[OutputT],
        *,
        system: str | None = None,
        stage: str = "unknown",
        tier: AITier = "fast",
        temperature: float = 0.3,
        timeout: float | None = None,
    ) -> OutputT | None:
        """Generate and parse a JSON object into ``output_type``."""
        text = await self.generate(
            prompt,
            system=system,
            stage=stage,
            tier=tier,
            temperature=temperature,
            timeout=timeout,
        )
        if text is None:
            return None

        try:
            return parse_structured(text, output_type)
        except StructuredOutputError as exc:
            logger.error(
                "Failed to parse structured model output",
                extra={
                    "stage": stage,
                    "output_type": output_type.__name__,
                    "error": exc.message,
                    "raw_text": text[:MAX_ERROR_MESSAGE_LENGTH],
                },
            )
            return None

    async def _generate(
        self,
        prompt: str,
        *,
        system: str | None,
        stage: str,
        tier: AITier,
        temperature: float,
        timeout: float,
    ) -> GenerationResult | None:
        try:
            candidates = await self.key_pool.list_candidates()
        except DbKernelError as exc:
            logger.error("Failed to load provider keys", extra={"stage": stage, "error": str(exc)})
            return None

        if not candidates:
            logger.error("No AI provider keys available", extra={"stage": stage})
            return None

        attempts = 0
        for candidate in order_candidates(candidates, self.rng, self.config.llm_start_candidates):
            if self.breaker.is_open(candidate.provider, candidate.model):
                logger.debug(
                    "Skipping exhausted provider",
                    extra={"stage": stage, "provider": candidate.provider, "model": candidate.model},
                )
                continue

            attempts += 1
            try:
                result = await asyncio.wait_for(
                    self.generator.generate(candidate, prompt, system=system, temperature=temperature),
                    timeout=timeout,
                )
            except Exception as exc:
                await self._handle_failure(candidate, stage, describe_error(exc, timeout))
                continue

            await self._handle_success(candidate, stage, result)
            logger.info(
                "AI generation succeeded",
                extra={
                    "stage": stage,
                    "tier": tier,
                    "provider": candidate.provider,
                    "model": candidate.model,
                    "attempts": attempts,
                    "tokens_in": result.tokens_in,
                    "tokens_out": result.tokens_out,
                },
            )
            return result

        logger.error(
            "All AI providers failed",
            extra={"stage": stage, "tier": tier, "candidates": len(candidates), "attempts": attempts},
        )
        return None

    async def _handle_failure(self, candidate: ProviderCandidate, stage: str, message: str) -> None:
        quota_hit = is_quota_error(message)
        logger.warning(
            "AI provider attempt failed",
            extra={
                "stage": stage,
                "provider": candidate.provider,
                "model": candidate.model,
                "error": message,
                "quota_exhausted": quota_hit,
            },
        )
        if quota_hit:
            self.breaker.trip(candidate.provider, candidate.model)

        try:
            await self.key_pool.record_failure(candidate.key_id, message)
        except DbKernelError as exc:
            logger.warning(
                "Failed to record provider failure",
                extra={"key_id": candidate.key_id, "error": str(exc)},
            )
        await self._record_cost(stage, candidate.model, 0, 0)

    async def _handle_success(
        self,
        candidate: ProviderCandidate,
        stage: str,
        result: GenerationResult,
    ) -> None:
        try:
            await self.key_pool.record_success(candidate.key_id)
        except DbKernelError as exc:
            logger.warning(
                "Failed to record provider usage",
                extra={"key_id": candidate.key_id, "error": str(exc)},
            )
        await self._record_cost(stage, candidate.model, result.tokens_in, result.tokens_out)

    async def _record_cost(self, stage: str, model: str, tokens_in: int, tokens_out: int) -> None:
        try:
            await self.cost_recorder.record_cost(stage, model, tokens_in, tokens_out)
        except DbKernelError as exc:
            logger.warning(
                "Failed to record AI cost",
                extra={"stage": stage, "model": model, "error": str(exc)},
            )


_router: AIRouter | None = None


def get_ai_router() -> AIRouter:
    """Return the process-wide router (breaker state lives here)."""
    global _router
    if _router is None:
        from product_factory.repositories.provider_key_repository import ProviderKeyRepository
        from product_factory.services.budget import get_budget_governor

        _router = AIRouter(ProviderKeyRepository(), get_budget_governor())
    return _router


def reset_ai_router() -> None:
    global _router
    _router = None
