"""Competitive check gate: SERP snapshot plus model analysis per derivative."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from product_factory.config import Settings, settings
from product_factory.integrations.search import SerpLookup, SerpSearch
from product_factory.models.derived_product import DerivedProduct
from product_factory.models.validation import CompetitiveCheck
from product_factory.schemas.assessments import CompetitiveAnalysis
from product_factory.schemas.pipeline import ItemOutcome, StageSummary
from product_factory.schemas.snapshots import CompetitiveSnapshot, dump_snapshot

logger = logging.getLogger(__name__)

STAGE_NAME = "competitive"

_DIFFICULTY_TO_COMPETITION = {
    "easy": "low",
    "moderate": "medium",
    "hard": "high",
    "very_hard": "high",
}


def should_reject(difficulty: str, big_site_count: int, content_gap: bool, big_site_threshold: int = 7) -> bool:
    """Reject on very hard keywords, or on authority-dominated SERPs without a gap."""
    return difficulty == "very_hard" or (big_site_count >= big_site_threshold and not content_gap)


def competition_level_for(difficulty: str, previous: str) -> str:
    """Map a difficulty to a competition level; unknown keeps the previous level."""
    return _DIFFICULTY_TO_COMPETITION.get(difficulty, previous)


def build_competitive_prompt(keyword: str, derivative_type: str, lookup: SerpLookup) -> str:
    serp_section = ""
    if lookup.results:
        lines = "\n".join(
            f"{position}. {result.title} ({result.domain}{', authority site' if result.is_big_site else ''})"
            for position, result in enumerate(lookup.results, start=1)
        )
        serp_section = f"\nCurrent top results:\n{lines}\n"

    return f"""You are an SEO expert. Estimate the competitive landscape for this search query.

Keyword: "{keyword}"
Product type: {derivative_type}
{serp_section}
Consider:
1. What kinds of sites rank for this keyword (authority sites, small blogs, tools, forums)?
2. Is there a content gap: something users want that existing results do not provide well?
3. Could a focused, well-built {derivative_type} page reach page 1 within 1-3 months?

Respond with JSON:
{{
  "difficulty": "easy|moderate|hard|very_hard",
  "content_gap_found": true/false,
  "analysis": "Brief analysis of the competitive landscape",
  "recommendations": ["actionable recommendation", "recommendation"]
}}

Rules:
- "easy": few quality results, mostly forums or old blogs
- "moderate": some quality content but room for a better, more focused page
- "hard": several strong competitors with well-optimized content
- "very_hard": dominated by authority sites (Wikipedia, official docs, major publications)"""


class CompetitiveStore(Protocol):
    async def list_pending_competitive(self, *, limit: int) -> list[DerivedProduct]: ...

    async def record_competitive_check(self, check: CompetitiveCheck, updates: dict[str, Any]) -> bool: ...


class CompetitiveChecker:
    """Runs the SERP competition gate over derived products."""

    def __init__(
        self,
        store: CompetitiveStore,
        router: Any,
        budget: Any,
        search: Any = None,
        config: Settings | None = None,
    ) -> None:
        self.store = store
        self.router = router
        self.budget = budget
        self.config = config or settings
        self.search = search or SerpSearch(self.config.competitive_serp_depth)

    async def run(self) -> StageSummary:
        summary = StageSummary()

        status = await self.budget.is_exceeded()
        if status.exceeded:
            logger.warning(
                "Budget exceeded, skipping competitive check",
                extra={"spent_today": status.spent_today, "limit": status.limit},
            )
            summary.stopped_early = True
            return summary

        products = await self.store.list_pending_competitive(limit=self.config.competitive_max_checks_per_run)
        if not products:
            logger.info("No derivatives awaiting competitive check")
            return summary

        for index, product in enumerate(products):
            if index and self.config.stage_item_delay_seconds:
                await asyncio.sleep(self.config.stage_item_delay_seconds)

            status = await self.budget.is_exceeded()
            if status.exceeded:
                logger.warning("Budget exceeded mid-run, stopping competitive check")
                summary.stopped_early = True
                break

            summary.processed += 1
            try:
                outcome = await self.check(product)
            except Exception:
                logger.exception("Competitive check failed", extra={"derived_product_id": product.id})
                summary.record("skipped")
                continue
            summary.record(outcome)

        logger.info("Competitive check complete", extra=summary.model_dump())
        return summary

    async def check(self, product: DerivedProduct) -> ItemOutcome:
        """Check one derivative; 'created' means it passed the gate."""
        keyword = product.primary_keyword
        lookup = await self.search.lookup(keyword)
        analysis: CompetitiveAnalysis | None = await self.router.generate_json(
            build_competitive_prompt(keyword, product.derivative_type, lookup),
            CompetitiveAnalysis,
            stage=STAGE_NAME,
            tier="fast",
            temperature=0.3,
        )

        if not lookup.results and analysis is None:
            logger.warning(
                "No competitive data available, recording unknown difficulty",
                extra={"derived_product_id": product.id},
            )

        difficulty = analysis.difficulty if analysis else "unknown"
        content_gap = analysis.content_gap_found if analysis else False
        big = lookup.big_site_count
        small = lookup.small_site_count
        rejected = should_reject(difficulty, big, content_gap, self.config.competitive_big_site_threshold)

        check = CompetitiveCheck(
            derived_product_id=product.id,
            keyword=keyword,
            serp_results=[result.to_dict() for result in lookup.results],
            big_site_count=big,
            small_site_count=small,
            content_gap_found=content_gap,
            difficulty_assessment=None if difficulty == "unknown" else difficulty,
            ai_analysis=analysis.analysis if analysis else None,
            recommendations=analysis.recommendations if analysis else [],
            data_source=lookup.source or "ai_estimate",
        )
        snapshot = CompetitiveSnapshot(
            keyword=keyword,
            difficulty=difficulty,
            big_site_count=big,
            small_site_count=small,
            content_gap=content_gap,
            data_source=check.data_source,
            analysis=check.ai_analysis,
            recommendations=check.recommendations,
        )

        if rejected:
            updates: dict[str, Any] = {
                "status": "rejected",
                "rejection_reason": f"Competition too high: {difficulty}, {big} big sites in top 10",
                "competitive_data": dump_snapshot(snapshot),
            }
        else:
            updates = {
                "competition_level": competition_level_for(difficulty, product.competition_level),
                "competitive_data": dump_snapshot(snapshot),
            }

        if not await self.store.record_competitive_check(check, updates):
            logger.info("Competitive check already recorded", extra={"derived_product_id": product.id})
            return "skipped"

        logger.info(
            "Competitive check recorded",
            extra={
                "derived_product_id": product.id,
                "keyword": keyword,
                "difficulty": difficulty,
                "big_sites": big,
                "content_gap": content_gap,
                "rejected": rejected,
            },
        )
        return "rejected" if rejected else "created"
