"""Derivative generator: expands top opportunities into concrete product ideas."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Protocol

from product_factory.config import Settings, settings
from product_factory.core.text import slugify
from product_factory.models.derived_product import (
    BUILD_EFFORTS,
    COMPETITION_LEVELS,
    DERIVATIVE_TYPES,
    PRODUCT_FORMS,
    SEARCH_VOLUMES,
    DerivedProduct,
)
from product_factory.models.opportunity import Opportunity
from product_factory.schemas.assessments import DerivationResponse, DerivativeIdea
from product_factory.schemas.pipeline import StageSummary
from product_factory.schemas.snapshots import DerivationSnapshot, dump_snapshot

logger = logging.getLogger(__name__)

STAGE_NAME = "deriver"

DERIVER_SYSTEM_PROMPT = """You are a product strategist for an indie developer who builds lightweight websites and mini-programs monetized through ads and affiliate links.

Take a trending topic and identify SPECIFIC, ACTIONABLE derivative product ideas that:
1. Can be built in under a day from a template (static site, comparison table, tutorial page)
2. Target long-tail keywords real users are searching for right now
3. Can be monetized via AdSense, affiliate links or referral programs
4. Fill a gap that existing search results do not cover well"""


# ------------------------------------------------------------------
# Normalizers
# ------------------------------------------------------------------


def normalize_build_effort(value: str | None) -> str:
    if not value:
        return "1d"
    v = value.lower().strip()
    if v in BUILD_EFFORTS:
        return v
    if "hour" in v or "2h" in v:
        return "2h"
    if "4h" in v or v in ("half day", "half-day"):
        return "4h"
    if v in ("1 day", "1day", "< 1d", "<1d"):
        return "1d"
    if v in ("2 days", "2days"):
        return "2d"
    if v in ("3 days", "3days") or "week" in v or "5d" in v or "4d" in v:
        return "3d"
    return "1d"


def normalize_competition_level(value: str | None) -> str:
    if not value:
        return "unknown"
    v = value.lower().strip()
    if v in COMPETITION_LEVELS:
        return v
    if "low" in v or v == "easy":
        return "low"
    if "med" in v or v == "moderate":
        return "medium"
    if "high" in v or v in ("hard", "difficult"):
        return "high"
    return "unknown"


def normalize_search_volume(value: str | None) -> str:
    if not value:
        return "unknown"
    v = value.lower().strip()
    if v in SEARCH_VOLUMES:
        return v
    if "high" in v:
        return "high"
    if "med" in v:
        return "medium"
    if "low" in v:
        return "low"
    return "unknown"


def normalize_product_form(value: str | None) -> str:
    if not value:
        return "website"
    v = value.lower().strip()
    if v in PRODUCT_FORMS:
        return v
    if "both" in v:
        return "both"
    if "mini" in v or "wechat" in v:
        return "mini_program"
    return "website"


def normalize_derivative_type(value: str | None) -> str | None:
    """Map model spelling to a known derivative type; None when unknown."""
    v = (value or "").lower().strip().replace("-", "_").replace(" ", "_")
    return v if v in DERIVATIVE_TYPES else None


# ------------------------------------------------------------------
# Duplicate suppression
# ------------------------------------------------------------------


def keyword_overlap(new_keywords: Sequence[str], existing_keywords: Sequence[str]) -> int:
    """Count new keywords that are substrings of an existing keyword or contain one."""
    existing = [keyword.lower() for keyword in existing_keywords if keyword]
    count = 0
    for keyword in (k.lower() for k in new_keywords):
        if any(keyword in other or other in keyword for other in existing):
            count += 1
    return count


def overlaps_existing(
    new_keywords: Sequence[str],
    recent_keyword_sets: Sequence[Sequence[str]],
    ratio: float = 0.5,
) -> bool:
    """True when any recent derivative covers at least ``ratio`` of the new keywords."""
    required = math.ceil(len(new_keywords) * ratio)
    return any(keyword_overlap(new_keywords, existing) >= required for existing in recent_keyword_sets)


def build_derivation_prompt(opportunity: Opportunity, max_ideas: int) -> str:
    return f"""Given this trending topic, generate {max_ideas} DERIVATIVE PRODUCT ideas.

Opportunity:
- Title: {opportunity.title}
- Description: {opportunity.description}
- Category: {opportunity.category}
- Target Keyword: {opportunity.target_keyword}
- Secondary Keywords: {", ".join(opportunity.secondary_keywords or [])}
- Score: {opportunity.score:.1f}
- Window: {opportunity.window_status}
- Competitors: {json.dumps(opportunity.competitors or [], ensure_ascii=False)}

Derivative types: {", ".join(DERIVATIVE_TYPES)}.

For EACH derivative specify 2-4 target keywords people actually search for, concrete
monetization (ad networks, affiliate programs), why it beats what currently ranks,
and a realistic build effort. Score each derivative 0-100 on search demand, ease of
building, monetization potential and competition gap.

Respond with JSON:
{{
  "derivatives": [
    {{
      "derivative_type": "{"|".join(DERIVATIVE_TYPES)}",
      "title": "SEO-optimized page title",
      "description": "What this product does and why users need it",
      "target_keywords": ["keyword 1", "keyword 2"],
      "product_form": "website|mini_program|both",
      "estimated_search_volume": "high|medium|low",
      "competition_level": "low|medium|high",
      "monetization_strategy": ["adsense", "affiliate:program_name"],
      "build_effort": "2h|4h|1d|2d|3d",
      "reasoning": "Why this derivative is worth building",
      "score": 0-100
    }}
  ]
}}"""


IdeaOutcome = Literal["created", "rejected"]


@dataclass(slots=True)
class DeriveResult:
    """Per-opportunity counts."""

    created: int = 0
    rejected: int = 0
    generated: bool = True


class OpportunitySource(Protocol):
    async def list_for_derivation(self, *, min_score: float, limit: int) -> list[Opportunity]: ...


class DerivedProductStore(Protocol):
    async def slug_exists(self, slug: str) -> bool: ...

    async def list_recent_keyword_sets(self, *, since: datetime) -> list[list[str]]: ...

    async def add(self, product: DerivedProduct) -> bool: ...


class DerivativeGenerator:
    """Spawns derivative products from evaluated opportunities."""

    def __init__(
        self,
        opportunities: OpportunitySource,
        products: DerivedProductStore,
        router: Any,
        budget: Any,
        config: Settings | None = None,
    ) -> None:
        self.opportunities = opportunities
        self.products = products
        self.router = router
        self.budget = budget
        self.config = config or settings

    async def run(self) -> StageSummary:
        summary = StageSummary()

        status = await self.budget.is_exceeded()
        if status.exceeded:
            logger.warning(
                "Budget exceeded, skipping deriver run",
                extra={"spent_today": status.spent_today, "limit": status.limit},
            )
            summary.stopped_early = True
            return summary

        opportunities = await self.opportunities.list_for_derivation(
            min_score=self.config.deriver_min_opportunity_score,
            limit=self.config.deriver_max_per_run,
        )
        if not opportunities:
            logger.info("No opportunities to derive from")
            return summary

        for index, opportunity in enumerate(opportunities):
            if index and self.config.stage_item_delay_seconds:
                await asyncio.sleep(self.config.stage_item_delay_seconds)

            status = await self.budget.is_exceeded()
            if status.exceeded:
                logger.warning("Budget exceeded mid-run, stopping deriver", extra={"processed": summary.processed})
                summary.stopped_early = True
                break

            summary.processed += 1
            try:
                result = await self.derive(opportunity)
            except Exception:
                logger.exception("Derivation failed", extra={"opportunity_id": opportunity.id})
                summary.skipped += 1
                continue

            summary.created += result.created
            summary.rejected += result.rejected
            if not result.generated:
                summary.skipped += 1

        logger.info("Deriver run complete", extra=summary.model_dump())
        return summary

    async def derive(self, opportunity: Opportunity) -> DeriveResult:
        """Generate ideas for one opportunity and persist the acceptable ones."""
        max_ideas = self.config.deriver_max_derivatives_per_topic
        response = await self.router.generate_json(
            build_derivation_prompt(opportunity, max_ideas),
            DerivationResponse,
            system=DERIVER_SYSTEM_PROMPT,
            stage=STAGE_NAME,
            tier="quality",
            temperature=0.6,
        )
        if response is None or not response.derivatives:
            logger.info("No derivatives generated", extra={"opportunity_id": opportunity.id})
            return DeriveResult(generated=False)

        result = DeriveResult()
        for idea in response.derivatives[:max_ideas]:
            outcome = await self.consider_idea(opportunity, idea)
            if outcome == "created":
                result.created += 1
            else:
                result.rejected += 1

        logger.info(
            "Derivatives processed",
            extra={"opportunity_id": opportunity.id, "created": result.created, "rejected": result.rejected},
        )
        return result

    async def consider_idea(self, opportunity: Opportunity, idea: DerivativeIdea) -> IdeaOutcome:
        """Run one idea through the acceptance rules; persists it when accepted."""
        if idea.score < self.config.deriver_min_derivative_score:
            logger.debug("Idea below score floor", extra={"title": idea.title, "score": idea.score})
            return "rejected"

        derivative_type = normalize_derivative_type(idea.derivative_type)
        if derivative_type is None:
            logger.info("Unknown derivative type", extra={"title": idea.title, "type": idea.derivative_type})
            return "rejected"

        keywords = idea.target_keywords
        if not keywords:
            logger.info("Idea without keywords", extra={"title": idea.title})
            return "rejected"

        slug = slugify(idea.title)
        if not slug or await self.products.slug_exists(slug):
            logger.info("Duplicate derivative slug", extra={"slug": slug})
            return "rejected"

        since = datetime.now(timezone.utc) - timedelta(days=self.config.deriver_overlap_window_days)
        recent = await self.products.list_recent_keyword_sets(since=since)
        if overlaps_existing(keywords, recent, self.config.deriver_overlap_ratio):
            logger.info("Derivative keywords overlap recent work", extra={"slug": slug, "keywords": keywords})
            return "rejected"

        product = self.build_product(opportunity, idea, derivative_type, slug)
        if not await self.products.add(product):
            logger.info("Derivative slug taken concurrently", extra={"slug": slug})
            return "rejected"

        logger.info(
            "Derivative created",
            extra={"slug": slug, "type": derivative_type, "score": idea.score, "keywords": keywords},
        )
        return "created"

    def build_product(
        self,
        opportunity: Opportunity,
        idea: DerivativeIdea,
        derivative_type: str,
        slug: str,
    ) -> DerivedProduct:
        snapshot = DerivationSnapshot(
            search_demand=idea.estimated_search_volume,
            competition=idea.competition_level,
            build_effort=idea.build_effort,
            monetization=idea.monetization_strategy,
            raw_score=idea.score,
        )
        signal_ids = opportunity.signal_ids or []
        return DerivedProduct(
            opportunity_id=opportunity.id,
            signal_id=signal_ids[0] if signal_ids else None,
            parent_topic=opportunity.title,
            derivative_type=derivative_type,
            title=idea.title,
            slug=slug,
            description=idea.description,
            target_keywords=list(idea.target_keywords),
            product_form=normalize_product_form(idea.product_form),
            estimated_search_volume=normalize_search_volume(idea.estimated_search_volume),
            competition_level=normalize_competition_level(idea.competition_level),
            build_effort=normalize_build_effort(idea.build_effort),
            monetization_strategy=list(idea.monetization_strategy),
            ai_reasoning=idea.reasoning or None,
            score=idea.score,
            score_snapshot=dump_snapshot(snapshot),
            status="derived",
        )
