"""Unit tests for the stage registry and runner."""

from __future__ import annotations

from typing import Any

import pytest

from product_factory.config import Settings
from product_factory.core.exceptions import UnknownStageError
from product_factory.schemas.pipeline import StageSummary
from product_factory.services.pipeline import STAGES, run_all, run_stage, stage_names


class _Runner:
    def __init__(self, summary: StageSummary | Exception) -> None:
        self.summary = summary

    async def run(self) -> StageSummary:
        if isinstance(self.summary, Exception):
            raise self.summary
        return self.summary


def test_stage_names_follow_pipeline_order() -> None:
    assert stage_names() == ["scorer", "deriver", "competitive", "keyword_validation"]
    assert list(STAGES) == stage_names()


@pytest.mark.asyncio
async def test_run_stage_rejects_unknown_names() -> None:
    with pytest.raises(UnknownStageError):
        await run_stage("publisher")


@pytest.mark.asyncio
async def test_run_stage_passes_config_to_builder(fast_settings: Settings) -> None:
    seen: list[Any] = []

    def _builder(config: Settings) -> _Runner:
        seen.append(config)
        return _Runner(StageSummary(processed=3, created=2, rejected=1))

    summary = await run_stage("scorer", config=fast_settings, stages={"scorer": _builder})

    assert summary.created == 2
    assert seen == [fast_settings]


@pytest.mark.asyncio
async def test_run_stage_contains_stage_failures() -> None:
    summary = await run_stage("scorer", stages={"scorer": lambda _config: _Runner(RuntimeError("db down"))})

    assert summary == StageSummary()


@pytest.mark.asyncio
async def test_run_all_runs_every_stage_in_order() -> None:
    order: list[str] = []

    def _builder(name: str, summary: StageSummary | Exception) -> Any:
        def _build(_config: Settings) -> _Runner:
            order.append(name)
            return _Runner(summary)

        return _build

    results = await run_all(
        stages={
            "scorer": _builder("scorer", StageSummary(stopped_early=True)),
            "deriver": _builder("deriver", RuntimeError("boom")),
            "competitive": _builder("competitive", StageSummary(processed=1, created=1)),
        }
    )

    assert order == ["scorer", "deriver", "competitive"]
    assert results["scorer"].stopped_early is True
    assert results["deriver"] == StageSummary()
    assert results["competitive"].created == 1
