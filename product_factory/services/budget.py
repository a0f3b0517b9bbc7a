"""Daily LLM spend accounting and budget enforcement."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Protocol

from product_factory.config import Settings, settings
from product_factory.schemas.pipeline import BudgetStatus, CostSummary

logger = logging.getLogger(__name__)


class CostLedger(Protocol):
    async def add_usage(
        self,
        *,
        day: date,
        stage: str,
        model: str,
        tokens_in: int,
        tokens_out: int,
        cost_usd: float,
    ) -> None: ...

    async def spent_on(self, day: date) -> float: ...

    async def summary(self, day: date) -> CostSummary: ...


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def estimate_cost(model: str, tokens_in: int, tokens_out: int, config: Settings | None = None) -> float:
    """USD cost of one call at the model's rate tier."""
    input_rate, output_rate = (config or settings).get_model_rates(model)
    return (max(tokens_in, 0) / 1000) * input_rate + (max(tokens_out, 0) / 1000) * output_rate


class BudgetGovernor:
    """Tracks today's spend and answers whether the daily limit is reached."""

    def __init__(
        self,
        ledger: CostLedger,
        *,
        config: Settings | None = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.ledger = ledger
        self.config = config or settings
        self._today = today

    @property
    def limit(self) -> float:
        return self.config.daily_budget_limit

    async def is_exceeded(self) -> BudgetStatus:
        """Exceeded once today's spend reaches the limit."""
        spent = await self.ledger.spent_on(self._today())
        return BudgetStatus(exceeded=spent >= self.limit, spent_today=spent, limit=self.limit)

    async def record_cost(self, stage: str, model: str, tokens_in: int, tokens_out: int) -> float:
        """Add one attempt to today's ledger and return its cost."""
        cost = estimate_cost(model, tokens_in, tokens_out, self.config)
        await self.ledger.add_usage(
            day=self._today(),
            stage=stage,
            model=model,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost_usd=cost,
        )
        return cost

    async def today_summary(self) -> CostSummary:
        return await self.ledger.summary(self._today())


_governor: BudgetGovernor | None = None


def get_budget_governor() -> BudgetGovernor:
    """Return the process-wide governor."""
    global _governor
    if _governor is None:
        from product_factory.repositories.cost_repository import CostRepository

        _governor = BudgetGovernor(CostRepository())
    return _governor
