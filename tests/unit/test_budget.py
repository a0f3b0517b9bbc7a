"""Unit tests for budget accounting."""

from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest

from product_factory.config import Settings
from product_factory.repositories.cost_repository import summarize_cost_rows
from product_factory.schemas.pipeline import CostSummary
from product_factory.services.budget import BudgetGovernor, estimate_cost
from product_factory.services.pipeline import get_status

TODAY = date(2026, 3, 14)


class _FakeLedger:
    def __init__(self, spent: float = 0.0) -> None:
        self.spent = spent
        self.usage: list[dict] = []

    async def add_usage(self, **kwargs) -> None:
        self.usage.append(kwargs)
        self.spent += kwargs["cost_usd"]

    async def spent_on(self, day: date) -> float:
        assert day == TODAY
        return self.spent

    async def summary(self, day: date) -> CostSummary:
        return CostSummary(
            total=self.spent,
            by_stage={"scorer": self.spent},
            by_model={"gemini-2.0-flash": self.spent},
            api_calls=len(self.usage),
        )


def _governor(spent: float = 0.0, limit: float = 5.0) -> tuple[BudgetGovernor, _FakeLedger]:
    ledger = _FakeLedger(spent)
    governor = BudgetGovernor(ledger, config=Settings(daily_budget_limit=limit), today=lambda: TODAY)
    return governor, ledger


def test_estimate_cost_uses_rate_tiers() -> None:
    config = Settings()

    assert estimate_cost("gemini-2.0-flash", 1000, 1000, config) == pytest.approx(0.0015)
    assert estimate_cost("claude-3-5-haiku", 2000, 0, config) == pytest.approx(0.0005)
    assert estimate_cost("gpt-4o", 1000, 1000, config) == pytest.approx(0.018)
    assert estimate_cost("gpt-4o", 0, 0, config) == 0.0


@pytest.mark.asyncio
@pytest.mark.parametrize(("spent", "exceeded"), [(5.01, True), (5.0, True), (4.99, False)])
async def test_budget_is_exceeded_at_or_over_limit(spent: float, exceeded: bool) -> None:
    governor, _ = _governor(spent)

    status = await governor.is_exceeded()

    assert status.exceeded is exceeded
    assert status.spent_today == spent
    assert status.limit == 5.0


@pytest.mark.asyncio
async def test_record_cost_writes_todays_row() -> None:
    governor, ledger = _governor()

    cost = await governor.record_cost("deriver", "gemini-2.0-flash", 1000, 1000)

    assert cost == pytest.approx(0.0015)
    assert ledger.usage == [
        {
            "day": TODAY,
            "stage": "deriver",
            "model": "gemini-2.0-flash",
            "tokens_in": 1000,
            "tokens_out": 1000,
            "cost_usd": pytest.approx(0.0015),
        }
    ]


@pytest.mark.asyncio
async def test_failed_attempt_is_counted_at_zero_cost() -> None:
    governor, ledger = _governor()

    assert await governor.record_cost("scorer", "gpt-4o", 0, 0) == 0.0
    assert len(ledger.usage) == 1


@pytest.mark.asyncio
async def test_get_status_combines_check_and_summary() -> None:
    governor, _ = _governor(spent=1.25)

    status = await get_status(governor)

    assert status.model_dump() == {
        "spent_today": 1.25,
        "limit": 5.0,
        "exceeded": False,
        "api_calls": 0,
        "by_stage": {"scorer": 1.25},
        "by_model": {"gemini-2.0-flash": 1.25},
    }


def test_summarize_cost_rows_groups_by_stage_and_model() -> None:
    rows = [
        SimpleNamespace(stage="scorer", model="gemini-2.0-flash", cost_usd=0.5, api_calls=3),
        SimpleNamespace(stage="scorer", model="gpt-4o", cost_usd=1.0, api_calls=1),
        SimpleNamespace(stage="competitive", model="gemini-2.0-flash", cost_usd=0.25, api_calls=2),
    ]

    summary = summarize_cost_rows(rows)

    assert summary.total == pytest.approx(1.75)
    assert summary.api_calls == 6
    assert summary.by_stage == {"scorer": pytest.approx(1.5), "competitive": pytest.approx(0.25)}
    assert summary.by_model == {"gemini-2.0-flash": pytest.approx(0.75), "gpt-4o": pytest.approx(1.0)}
