"""Unit tests for the derivative generator."""

from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace
from typing import Any

import pytest

from product_factory.config import Settings
from product_factory.schemas.assessments import DerivationResponse, DerivativeIdea
from product_factory.schemas.snapshots import DerivationSnapshot, parse_snapshot
from product_factory.services.deriver import (
    DerivativeGenerator,
    build_derivation_prompt,
    keyword_overlap,
    normalize_build_effort,
    normalize_competition_level,
    normalize_derivative_type,
    normalize_product_form,
    normalize_search_volume,
    overlaps_existing,
)
from tests.unit.fakes import FakeBudget, FakeRouter


def _opportunity(**overrides: Any) -> SimpleNamespace:
    values: dict[str, Any] = {
        "id": "opp-1",
        "title": "Seedance 2.0",
        "description": "ByteDance video model",
        "category": "ai_tool",
        "target_keyword": "seedance",
        "secondary_keywords": ["seedance video"],
        "score": 72.5,
        "window_status": "open",
        "competitors": [],
        "signal_ids": ["sig-1", "sig-2"],
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _idea(title: str, keywords: list[str], **overrides: Any) -> DerivativeIdea:
    payload: dict[str, Any] = {
        "derivative_type": "prompt_guide",
        "title": title,
        "description": "Curated prompts",
        "target_keywords": keywords,
        "product_form": "website",
        "estimated_search_volume": "Medium",
        "competition_level": "Hard",
        "monetization_strategy": ["adsense", "affiliate:runway"],
        "build_effort": "half day",
        "reasoning": "Nobody curates these yet",
        "score": 75,
    }
    payload.update(overrides)
    return DerivativeIdea.model_validate(payload)


class _FakeOpportunitySource:
    def __init__(self, opportunities: list[SimpleNamespace]) -> None:
        self.opportunities = opportunities
        self.requests: list[dict[str, Any]] = []

    async def list_for_derivation(self, *, min_score: float, limit: int) -> list[SimpleNamespace]:
        self.requests.append({"min_score": min_score, "limit": limit})
        return self.opportunities[:limit]


class _FakeProductStore:
    def __init__(self, *, taken_slugs: set[str] | None = None, recent: list[list[str]] | None = None) -> None:
        self.taken_slugs = taken_slugs or set()
        self.recent = recent or []
        self.added: list[Any] = []

    async def slug_exists(self, slug: str) -> bool:
        return slug in self.taken_slugs

    async def list_recent_keyword_sets(self, *, since: datetime) -> list[list[str]]:
        return [list(keywords) for keywords in self.recent]

    async def add(self, product: Any) -> bool:
        self.added.append(product)
        self.taken_slugs.add(product.slug)
        self.recent.append(list(product.target_keywords))
        return True


def test_normalize_build_effort() -> None:
    assert normalize_build_effort("half day") == "4h"
    assert normalize_build_effort("2 hours") == "2h"
    assert normalize_build_effort("1 week") == "3d"
    assert normalize_build_effort("2D") == "2d"
    assert normalize_build_effort(None) == "1d"
    assert normalize_build_effort("someday") == "1d"


def test_normalize_competition_level() -> None:
    assert normalize_competition_level("Hard") == "high"
    assert normalize_competition_level("easy") == "low"
    assert normalize_competition_level("Moderate") == "medium"
    assert normalize_competition_level(None) == "unknown"
    assert normalize_competition_level("n/a") == "unknown"


def test_normalize_search_volume_and_product_form() -> None:
    assert normalize_search_volume("Very High") == "high"
    assert normalize_search_volume("medium-ish") == "medium"
    assert normalize_search_volume("") == "unknown"
    assert normalize_product_form("WeChat mini program") == "mini_program"
    assert normalize_product_form("both platforms") == "both"
    assert normalize_product_form(None) == "website"


def test_normalize_derivative_type() -> None:
    assert normalize_derivative_type("Prompt Guide") == "prompt_guide"
    assert normalize_derivative_type("template-gallery") == "template_gallery"
    assert normalize_derivative_type("blog") is None
    assert normalize_derivative_type(None) is None


def test_keyword_overlap_uses_substring_containment() -> None:
    assert keyword_overlap(["seedance tutorial", "seedance guide"], ["seedance tutorial for beginners"]) == 1
    assert keyword_overlap(["kling pricing"], ["seedance tutorial"]) == 0


def test_overlaps_existing_requires_half_of_new_keywords() -> None:
    new = ["seedance tutorial", "seedance guide"]

    assert overlaps_existing(new, [["seedance tutorial"]], 0.5) is True
    assert overlaps_existing(new, [["kling pricing"], ["runway alternatives"]], 0.5) is False
    assert overlaps_existing(["a1", "b2", "c3"], [["a1"]], 0.5) is False
    assert overlaps_existing(["a1", "b2", "c3"], [["a1", "b2"]], 0.5) is True


def test_build_derivation_prompt_mentions_opportunity_and_count() -> None:
    prompt = build_derivation_prompt(_opportunity(), 5)

    assert "generate 5 DERIVATIVE PRODUCT ideas" in prompt
    assert "Seedance 2.0" in prompt
    assert "seedance video" in prompt


@pytest.mark.asyncio
async def test_consider_idea_creates_normalized_product(fast_settings: Settings) -> None:
    products = _FakeProductStore()
    generator = DerivativeGenerator(_FakeOpportunitySource([]), products, FakeRouter(), FakeBudget(), fast_settings)

    outcome = await generator.consider_idea(_opportunity(), _idea("Seedance Prompt Library", ["seedance prompts"]))

    assert outcome == "created"
    product = products.added[0]
    assert product.slug == "seedance-prompt-library"
    assert product.opportunity_id == "opp-1"
    assert product.signal_id == "sig-1"
    assert product.parent_topic == "Seedance 2.0"
    assert product.derivative_type == "prompt_guide"
    assert product.build_effort == "4h"
    assert product.competition_level == "high"
    assert product.estimated_search_volume == "medium"
    assert product.status == "derived"

    snapshot = parse_snapshot(product.score_snapshot)
    assert isinstance(snapshot, DerivationSnapshot)
    assert snapshot.competition == "Hard"
    assert snapshot.raw_score == 75.0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("idea", "store"),
    [
        (_idea("Seedance Prompt Library", ["seedance prompts"], score=30), _FakeProductStore()),
        (_idea("Seedance Prompt Library", ["seedance prompts"], derivative_type="blog"), _FakeProductStore()),
        (_idea("Seedance Prompt Library", []), _FakeProductStore()),
        (
            _idea("Seedance Prompt Library", ["seedance prompts"]),
            _FakeProductStore(taken_slugs={"seedance-prompt-library"}),
        ),
        (
            _idea("Seedance Tutorial Hub", ["seedance tutorial", "seedance guide"]),
            _FakeProductStore(recent=[["seedance tutorial for beginners"]]),
        ),
    ],
    ids=["low-score", "unknown-type", "no-keywords", "slug-taken", "keyword-overlap"],
)
async def test_consider_idea_rejections(fast_settings: Settings, idea: DerivativeIdea, store: _FakeProductStore) -> None:
    generator = DerivativeGenerator(_FakeOpportunitySource([]), store, FakeRouter(), FakeBudget(), fast_settings)

    outcome = await generator.consider_idea(_opportunity(), idea)

    assert outcome == "rejected"
    assert store.added == []


@pytest.mark.asyncio
async def test_deriver_run_counts_created_rejected_and_skipped(fast_settings: Settings) -> None:
    source = _FakeOpportunitySource([_opportunity(), _opportunity(id="opp-2", title="Kling 3")])
    products = _FakeProductStore()
    router = FakeRouter(
        [
            DerivationResponse(
                derivatives=[
                    _idea("Seedance Prompt Library", ["seedance prompts"]),
                    _idea("Seedance Prompt Library Mirror", ["seedance prompts"]),
                    _idea("Seedance Weak Idea", ["seedance weak"], score=10),
                ]
            ),
            None,
        ]
    )

    summary = await DerivativeGenerator(source, products, router, FakeBudget(), fast_settings).run()

    assert summary.model_dump() == {
        "processed": 2,
        "created": 1,
        "rejected": 2,
        "skipped": 1,
        "stopped_early": False,
    }
    assert source.requests == [{"min_score": 55.0, "limit": 10}]
    assert [product.slug for product in products.added] == ["seedance-prompt-library"]
    assert router.calls[0]["stage"] == "deriver"


@pytest.mark.asyncio
async def test_deriver_caps_ideas_per_opportunity(fast_settings: Settings) -> None:
    fast_settings.deriver_max_derivatives_per_topic = 2
    products = _FakeProductStore()
    router = FakeRouter(
        [
            DerivationResponse(
                derivatives=[
                    _idea("Seedance Prompt Library", ["seedance prompts"]),
                    _idea("Seedance Model Comparison", ["seedance vs kling"], derivative_type="comparison"),
                    _idea("Seedance Cheatsheet", ["seedance shortcuts"], derivative_type="cheatsheet"),
                ]
            )
        ]
    )

    summary = await DerivativeGenerator(
        _FakeOpportunitySource([_opportunity()]),
        products,
        router,
        FakeBudget(),
        fast_settings,
    ).run()

    assert summary.created == 2
    assert len(products.added) == 2


@pytest.mark.asyncio
async def test_deriver_skips_run_when_budget_exceeded(fast_settings: Settings) -> None:
    router = FakeRouter([DerivationResponse(derivatives=[])])
    source = _FakeOpportunitySource([_opportunity()])

    summary = await DerivativeGenerator(
        source,
        _FakeProductStore(),
        router,
        FakeBudget(spent=5.0, limit=5.0),
        fast_settings,
    ).run()

    assert summary.stopped_early is True
    assert router.calls == []
    assert source.requests == []
