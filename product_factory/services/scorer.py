"""Opportunity scorer: turns clustered signals into scored opportunities."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Protocol

from product_factory.config import Settings, settings
from product_factory.core.text import slugify
from product_factory.models.opportunity import Opportunity
from product_factory.schemas.assessments import OpportunityAssessment
from product_factory.schemas.pipeline import ItemOutcome, StageSummary
from product_factory.services.topic_clustering import TopicGroup, group_by_topic, similarity, topic_words

logger = logging.getLogger(__name__)

STAGE_NAME = "scorer"

SCORER_SYSTEM_PROMPT = """You are a senior product manager and SEO expert who finds fast-to-monetize product opportunities in emerging tech signals.

Score each dimension from 0 to 100:
1. novelty: how new is this, how few competitors exist
2. demand: community heat, are people looking for solutions
3. feasibility: can it be built quickly from a template (tutorial, tool, comparison site)
4. seo_potential: search volume, keyword competition, long-tail potential
5. time_sensitivity: how urgent the window is before big players move in
6. business_viability: would anyone pay for or click ads on this at all
7. monetization: CPC estimate, traffic ceiling, dwell time

Principles:
- "New" matters more than "good"
- Mature products with many tutorials score low
- Be specific about the target keyword and competitors"""

Decision = Literal["reject_viability", "reject_duplicate", "keep"]


@dataclass(slots=True)
class ScoreDecision:
    """Pure policy outcome for one assessment (slug gate excluded)."""

    decision: Decision
    score: float
    status: str = "evaluated"
    reason: str | None = None
    duplicate_of: str | None = None


def weighted_score(breakdown: Mapping[str, float], weights: Mapping[str, float]) -> float:
    """Weighted sum over the configured dimensions; values clamped to [0, 100]."""
    total = 0.0
    for dimension, weight in weights.items():
        try:
            value = float(breakdown.get(dimension, 0.0) or 0.0)
        except (TypeError, ValueError):
            value = 0.0
        total += weight * max(0.0, min(100.0, value))
    return round(total, 2)


def classify_window(days_remaining: int) -> str:
    if days_remaining <= 3:
        return "closing"
    if days_remaining > 30:
        return "upcoming"
    return "open"


def find_similar_topic(
    title: str,
    target_keyword: str,
    existing_topics: Sequence[str],
    threshold: float,
) -> str | None:
    """Return the first existing topic text at or above the similarity threshold."""
    candidate = topic_words(f"{title} {target_keyword}")
    for existing in existing_topics:
        if similarity(candidate, topic_words(existing)) >= threshold:
            return existing
    return None


def evaluate_assessment(
    assessment: OpportunityAssessment,
    existing_topics: Sequence[str],
    config: Settings | None = None,
) -> ScoreDecision:
    """Apply the viability gate, the semantic dedup gate and the score threshold."""
    cfg = config or settings
    score = weighted_score(assessment.score_breakdown, cfg.score_weights)

    viability = assessment.score_breakdown.get("business_viability", 0.0)
    if viability < cfg.scorer_min_business_viability:
        return ScoreDecision(
            decision="reject_viability",
            score=score,
            status="rejected",
            reason=f"Business viability too low: {viability:.0f}",
        )

    duplicate = find_similar_topic(
        assessment.title,
        assessment.target_keyword,
        existing_topics,
        cfg.scorer_dedup_similarity,
    )
    if duplicate is not None:
        return ScoreDecision(
            decision="reject_duplicate",
            score=score,
            status="rejected",
            reason="Duplicate coverage of an existing opportunity",
            duplicate_of=duplicate,
        )

    if score >= cfg.scorer_min_score_to_keep:
        return ScoreDecision(decision="keep", score=score, status="evaluated")
    return ScoreDecision(
        decision="keep",
        score=score,
        status="rejected",
        reason=f"Score too low: {score:.1f}",
    )


def build_scoring_prompt(group: TopicGroup, dimensions: Sequence[str]) -> str:
    """User prompt for one topic group (primary signal plus merged context)."""
    signal = group.primary
    raw_data = signal.raw_data or {}
    pre_assessment = raw_data.get("ai_assessment", {}) if isinstance(raw_data, dict) else {}
    breakdown_shape = ", ".join(f'"{name}": 0-100' for name in dimensions)

    return f"""Evaluate this emerging tech signal as a product opportunity.

Signal:
- Title: {signal.title}
- Description: {group.merged_description or "N/A"}
- Source: {signal.source}
- Traction: {signal.stars or 0} stars/votes, {signal.comments_count or 0} comments
- First seen: {signal.first_seen_at}
- Source created: {signal.source_created_at or "Unknown"}
- Pre-assessment: {json.dumps(pre_assessment, ensure_ascii=False, default=str)}
- URL: {signal.source_url}
- Related signals merged into this topic: {len(group.merged_ids)}

Respond with JSON:
{{
  "title": "SEO-friendly opportunity title",
  "slug": "url-safe-slug",
  "description": "2-3 sentence description",
  "target_keyword": "primary SEO keyword",
  "secondary_keywords": ["keyword", "keyword"],
  "category": "ai_tool|dev_tool|saas|framework|tutorial|utility",
  "score_breakdown": {{{breakdown_shape}}},
  "window_days_remaining": number,
  "competitors": [{{"name": "...", "url": "...", "weakness": "..."}}],
  "recommended_template": "tutorial-site|tool-site|comparison-site|cheatsheet-site|playground-site|resource-site",
  "recommended_features": ["feature", "feature"],
  "estimated_effort": "2h|4h|1d|2d|3d|1w",
  "reasoning": "Reasoning behind the scores"
}}"""


class SignalStore(Protocol):
    async def list_by_status(self, status: str, *, limit: int) -> list[Any]: ...

    async def apply_merge(self, group: TopicGroup) -> None: ...

    async def mark_evaluated(self, signal_ids: Sequence[str]) -> None: ...


class OpportunityStore(Protocol):
    async def list_recent_topics(self, *, limit: int) -> list[str]: ...

    async def slug_exists(self, slug: str) -> bool: ...

    async def add(self, opportunity: Opportunity) -> bool: ...


class OpportunityScorer:
    """Clusters analyzed signals and scores the group primaries."""

    def __init__(
        self,
        signals: SignalStore,
        opportunities: OpportunityStore,
        router: Any,
        budget: Any,
        config: Settings | None = None,
    ) -> None:
        self.signals = signals
        self.opportunities = opportunities
        self.router = router
        self.budget = budget
        self.config = config or settings

    async def run(self) -> StageSummary:
        summary = StageSummary()

        status = await self.budget.is_exceeded()
        if status.exceeded:
            logger.warning(
                "Budget exceeded, skipping scorer run",
                extra={"spent_today": status.spent_today, "limit": status.limit},
            )
            summary.stopped_early = True
            return summary

        signals = await self.signals.list_by_status("analyzed", limit=self.config.scorer_signal_fetch_limit)
        if not signals:
            logger.info("No analyzed signals to score")
            return summary

        groups = group_by_topic(signals, self.config.cluster_similarity_threshold)
        for group in groups:
            if group.merged_ids:
                await self.signals.apply_merge(group)

        batch = groups[: self.config.scorer_max_per_run]
        logger.info(
            "Scoring topic groups",
            extra={"signals": len(signals), "groups": len(groups), "batch": len(batch)},
        )

        for index, group in enumerate(batch):
            if index and self.config.stage_item_delay_seconds:
                await asyncio.sleep(self.config.stage_item_delay_seconds)

            status = await self.budget.is_exceeded()
            if status.exceeded:
                logger.warning("Budget exceeded mid-run, stopping scorer", extra={"processed": summary.processed})
                summary.stopped_early = True
                break

            summary.processed += 1
            try:
                outcome = await self.score_group(group)
            except Exception:
                logger.exception("Scoring failed", extra={"signal_id": str(group.primary.id)})
                summary.record("skipped")
                continue
            summary.record(outcome)

        logger.info("Scorer run complete", extra=summary.model_dump())
        return summary

    async def score_group(self, group: TopicGroup) -> ItemOutcome:
        primary = group.primary
        assessment = await self.router.generate_json(
            build_scoring_prompt(group, list(self.config.score_weights)),
            OpportunityAssessment,
            system=SCORER_SYSTEM_PROMPT,
            stage=STAGE_NAME,
            tier="quality",
            temperature=0.4,
        )
        if assessment is None:
            logger.warning("No assessment produced", extra={"signal_id": str(primary.id)})
            return "skipped"

        existing_topics = await self.opportunities.list_recent_topics(limit=self.config.scorer_dedup_lookback)
        decision = evaluate_assessment(assessment, existing_topics, self.config)

        if decision.decision != "keep":
            await self.signals.mark_evaluated(group.signal_ids)
            logger.info(
                "Assessment rejected before persistence",
                extra={
                    "signal_id": str(primary.id),
                    "decision": decision.decision,
                    "score": decision.score,
                    "duplicate_of": decision.duplicate_of,
                },
            )
            return "rejected"

        slug = slugify(assessment.slug or assessment.title) or f"opportunity-{str(primary.id)[:8]}"
        if await self.opportunities.slug_exists(slug):
            await self.signals.mark_evaluated(group.signal_ids)
            logger.info("Opportunity already exists", extra={"slug": slug})
            return "skipped"

        opportunity = self.build_opportunity(group, assessment, decision, slug)
        created = await self.opportunities.add(opportunity)
        await self.signals.mark_evaluated(group.signal_ids)
        if not created:
            logger.info("Opportunity slug taken concurrently", extra={"slug": slug})
            return "skipped"

        logger.info(
            "Opportunity stored",
            extra={"slug": slug, "score": decision.score, "status": decision.status},
        )
        return "created" if decision.status == "evaluated" else "rejected"

    def build_opportunity(
        self,
        group: TopicGroup,
        assessment: OpportunityAssessment,
        decision: ScoreDecision,
        slug: str,
    ) -> Opportunity:
        primary = group.primary
        now = datetime.now(timezone.utc)
        days = assessment.window_days_remaining
        if not days:
            days = self.config.scorer_default_window_days

        return Opportunity(
            signal_ids=group.signal_ids,
            title=assessment.title,
            slug=slug,
            description=assessment.description,
            category=assessment.category or "other",
            target_keyword=assessment.target_keyword,
            secondary_keywords=assessment.secondary_keywords,
            score=decision.score,
            score_breakdown=assessment.score_breakdown,
            window_opens_at=primary.first_seen_at,
            window_closes_at=now + timedelta(days=days),
            window_status=classify_window(days),
            competitors=[competitor.model_dump() for competitor in assessment.competitors],
            recommended_template=assessment.recommended_template,
            recommended_features=assessment.recommended_features,
            estimated_effort=assessment.estimated_effort,
            status=decision.status,
            decision_reason=decision.reason,
            decided_by="auto" if decision.status == "rejected" else "human",
        )
