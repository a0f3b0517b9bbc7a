"""Unit tests for the read and trigger API."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from product_factory.api.v1.dependencies import (
    get_derived_product_repository,
    get_opportunity_repository,
    get_validation_repository,
)
from product_factory.config import settings
from product_factory.core.exceptions import UnknownStageError
from product_factory.main import create_app
from product_factory.schemas.pipeline import BudgetStatus, CostSummary, StageSummary
from product_factory.services.budget import get_budget_governor

API = settings.api_v1_prefix
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _opportunity(**overrides: Any) -> SimpleNamespace:
    values: dict[str, Any] = {
        "id": "opp-1",
        "title": "Seedance 2.0",
        "slug": "seedance-2-0",
        "description": "ByteDance video model",
        "category": "ai_tool",
        "target_keyword": "seedance",
        "secondary_keywords": ["seedance video"],
        "signal_ids": ["sig-1"],
        "score": 72.5,
        "score_breakdown": {"novelty": 80.0},
        "window_opens_at": NOW,
        "window_closes_at": None,
        "window_status": "open",
        "competitors": [],
        "recommended_template": None,
        "recommended_features": [],
        "estimated_effort": "1d",
        "status": "evaluated",
        "decision_reason": None,
        "decided_by": "human",
        "created_at": NOW,
        "updated_at": NOW,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _product(**overrides: Any) -> SimpleNamespace:
    values: dict[str, Any] = {
        "id": "dp-1",
        "opportunity_id": "opp-1",
        "signal_id": "sig-1",
        "parent_topic": "Seedance 2.0",
        "derivative_type": "prompt_guide",
        "title": "Seedance Prompt Library",
        "slug": "seedance-prompt-library",
        "description": "Curated prompts",
        "target_keywords": ["seedance prompts"],
        "product_form": "website",
        "estimated_search_volume": "medium",
        "competition_level": "low",
        "build_effort": "4h",
        "monetization_strategy": ["adsense"],
        "ai_reasoning": "Nobody curates these yet",
        "score": 75.0,
        "score_snapshot": {"kind": "derivation", "raw_score": 75.0},
        "competitive_data": None,
        "seo_data": None,
        "status": "derived",
        "rejection_reason": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _check() -> SimpleNamespace:
    return SimpleNamespace(
        id="cc-1",
        keyword="seedance prompts",
        serp_results=[],
        big_site_count=2,
        small_site_count=8,
        content_gap_found=True,
        difficulty_assessment="easy",
        ai_analysis="Mostly forum threads",
        recommendations=["Ship a searchable gallery"],
        data_source="serpapi",
        created_at=NOW,
    )


class _FakeOpportunities:
    def __init__(self, items: list[SimpleNamespace]) -> None:
        self.items = items
        self.requests: list[dict[str, Any]] = []

    async def list(self, *, status: str | None = None, limit: int = 50, offset: int = 0) -> tuple[list[Any], int]:
        self.requests.append({"status": status, "limit": limit, "offset": offset})
        return self.items, len(self.items)


class _FakeProducts:
    def __init__(self, items: list[SimpleNamespace]) -> None:
        self.items = {item.id: item for item in items}
        self.requests: list[dict[str, Any]] = []

    async def list(
        self,
        *,
        status: str | None = None,
        opportunity_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Any], int]:
        self.requests.append({"status": status, "opportunity_id": opportunity_id, "limit": limit, "offset": offset})
        return list(self.items.values()), len(self.items)

    async def get(self, product_id: str) -> SimpleNamespace | None:
        return self.items.get(product_id)


class _FakeValidations:
    async def get_for_product(self, product_id: str) -> tuple[Any, Any]:
        return _check(), None


class _FakeGovernor:
    async def is_exceeded(self) -> BudgetStatus:
        return BudgetStatus(exceeded=False, spent_today=1.25, limit=5.0)

    async def today_summary(self) -> CostSummary:
        return CostSummary(total=1.25, by_stage={"scorer": 1.25}, by_model={"gemini-2.0-flash": 1.25}, api_calls=7)


@pytest.fixture
def app(monkeypatch: pytest.MonkeyPatch) -> Iterator[FastAPI]:
    monkeypatch.setattr(settings, "environment", "production")
    application = create_app()
    application.dependency_overrides[get_opportunity_repository] = lambda: _FakeOpportunities([_opportunity()])
    application.dependency_overrides[get_derived_product_repository] = lambda: _FakeProducts([_product()])
    application.dependency_overrides[get_validation_repository] = _FakeValidations
    application.dependency_overrides[get_budget_governor] = _FakeGovernor
    yield application
    application.dependency_overrides.clear()


def test_health_reports_version(app: FastAPI) -> None:
    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": settings.app_version}


def test_status_reports_today_spend(app: FastAPI) -> None:
    with TestClient(app) as client:
        response = client.get(f"{API}/status")

    assert response.status_code == 200
    assert response.json() == {
        "spent_today": 1.25,
        "limit": 5.0,
        "exceeded": False,
        "api_calls": 7,
        "by_stage": {"scorer": 1.25},
        "by_model": {"gemini-2.0-flash": 1.25},
    }


def test_trigger_stage_returns_summary(app: FastAPI, monkeypatch: pytest.MonkeyPatch) -> None:
    async def _fake_run_stage(name: str) -> StageSummary:
        return StageSummary(processed=2, created=1, rejected=1)

    monkeypatch.setattr("product_factory.api.v1.pipeline.run_stage", _fake_run_stage)

    with TestClient(app) as client:
        response = client.post(f"{API}/stages/scorer/run")

    assert response.status_code == 200
    payload = response.json()
    assert payload["stage"] == "scorer"
    assert payload["summary"]["created"] == 1


def test_trigger_unknown_stage_is_not_found(app: FastAPI, monkeypatch: pytest.MonkeyPatch) -> None:
    async def _fake_run_stage(name: str) -> StageSummary:
        raise UnknownStageError(name)

    monkeypatch.setattr("product_factory.api.v1.pipeline.run_stage", _fake_run_stage)

    with TestClient(app) as client:
        response = client.post(f"{API}/stages/publisher/run")

    assert response.status_code == 404
    assert response.json()["detail"] == "Unknown pipeline stage: publisher"


def test_list_opportunities_paginates(app: FastAPI) -> None:
    repository = _FakeOpportunities([_opportunity()])
    app.dependency_overrides[get_opportunity_repository] = lambda: repository

    with TestClient(app) as client:
        response = client.get(f"{API}/opportunities", params={"page": 3, "page_size": 10, "status": "evaluated"})

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["items"][0]["slug"] == "seedance-2-0"
    assert repository.requests == [{"status": "evaluated", "limit": 10, "offset": 20}]


def test_list_opportunities_rejects_oversized_pages(app: FastAPI) -> None:
    with TestClient(app) as client:
        response = client.get(f"{API}/opportunities", params={"page_size": 500})

    assert response.status_code == 422


def test_list_derivatives_filters_by_opportunity(app: FastAPI) -> None:
    repository = _FakeProducts([_product()])
    app.dependency_overrides[get_derived_product_repository] = lambda: repository

    with TestClient(app) as client:
        response = client.get(f"{API}/derivatives", params={"opportunity_id": "opp-1"})

    assert response.status_code == 200
    assert response.json()["items"][0]["build_effort"] == "4h"
    assert repository.requests[0]["opportunity_id"] == "opp-1"


def test_get_derivative_includes_gate_results(app: FastAPI) -> None:
    with TestClient(app) as client:
        response = client.get(f"{API}/derivatives/dp-1")

    assert response.status_code == 200
    payload = response.json()
    assert payload["competitive_check"]["content_gap_found"] is True
    assert payload["keyword_validation"] is None


def test_get_missing_derivative_is_not_found(app: FastAPI) -> None:
    with TestClient(app) as client:
        response = client.get(f"{API}/derivatives/missing")

    assert response.status_code == 404
    assert response.json()["detail"] == "Derived product not found"
