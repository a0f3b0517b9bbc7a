"""Stage registry and entry points shared by the API and the CLI."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

from product_factory.config import Settings, settings
from product_factory.core.exceptions import UnknownStageError
from product_factory.schemas.pipeline import StageSummary, StatusResponse
from product_factory.services.ai_router.router import get_ai_router
from product_factory.services.budget import BudgetGovernor, get_budget_governor

logger = logging.getLogger(__name__)


class StageRunner(Protocol):
    async def run(self) -> StageSummary: ...


def _build_scorer(config: Settings) -> StageRunner:
    from product_factory.repositories.opportunity_repository import OpportunityRepository
    from product_factory.repositories.signal_repository import SignalRepository
    from product_factory.services.scorer import OpportunityScorer

    return OpportunityScorer(
        SignalRepository(),
        OpportunityRepository(),
        get_ai_router(),
        get_budget_governor(),
        config=config,
    )


def _build_deriver(config: Settings) -> StageRunner:
    from product_factory.repositories.derived_product_repository import DerivedProductRepository
    from product_factory.repositories.opportunity_repository import OpportunityRepository
    from product_factory.services.deriver import DerivativeGenerator

    return DerivativeGenerator(
        OpportunityRepository(),
        DerivedProductRepository(),
        get_ai_router(),
        get_budget_governor(),
        config=config,
    )


def _build_competitive(config: Settings) -> StageRunner:
    from product_factory.repositories.validation_repository import ValidationRepository
    from product_factory.services.competitive_check import CompetitiveChecker

    return CompetitiveChecker(
        ValidationRepository(),
        get_ai_router(),
        get_budget_governor(),
        config=config,
    )


def _build_keyword_validation(config: Settings) -> StageRunner:
    from product_factory.repositories.validation_repository import ValidationRepository
    from product_factory.services.keyword_validation import KeywordValidator

    return KeywordValidator(ValidationRepository(), get_budget_governor(), config=config)


# Registration order is pipeline order.
STAGES: dict[str, Callable[[Settings], StageRunner]] = {
    "scorer": _build_scorer,
    "deriver": _build_deriver,
    "competitive": _build_competitive,
    "keyword_validation": _build_keyword_validation,
}


def stage_names() -> list[str]:
    return list(STAGES)


async def run_stage(
    name: str,
    *,
    config: Settings | None = None,
    stages: dict[str, Callable[[Settings], Any]] | None = None,
) -> StageSummary:
    """Run one stage to completion.

    Unknown names raise UnknownStageError. Anything raised by the stage itself
    is logged and reported as an empty summary.
    """
    registry = stages if stages is not None else STAGES
    builder = registry.get(name)
    if builder is None:
        raise UnknownStageError(name)

    logger.info("Stage run starting", extra={"stage": name})
    try:
        runner = builder(config or settings)
        summary = await runner.run()
    except Exception:
        logger.exception("Stage run failed", extra={"stage": name})
        return StageSummary()

    logger.info("Stage run finished", extra={"stage": name, **summary.model_dump()})
    return summary


async def run_all(
    *,
    config: Settings | None = None,
    stages: dict[str, Callable[[Settings], Any]] | None = None,
) -> dict[str, StageSummary]:
    """Run every stage in order; later stages still run after an early stop."""
    registry = stages if stages is not None else STAGES
    results: dict[str, StageSummary] = {}
    for name in registry:
        results[name] = await run_stage(name, config=config, stages=registry)
    return results


async def get_status(budget: BudgetGovernor | None = None) -> StatusResponse:
    """Today's spend against the daily limit."""
    governor = budget or get_budget_governor()
    status = await governor.is_exceeded()
    summary = await governor.today_summary()
    return StatusResponse(
        spent_today=status.spent_today,
        limit=status.limit,
        exceeded=status.exceeded,
        api_calls=summary.api_calls,
        by_stage=summary.by_stage,
        by_model=summary.by_model,
    )
