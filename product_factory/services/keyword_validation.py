"""Keyword validation gate: autocomplete suggestions as a search-demand proxy."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from product_factory.config import Settings, settings
from product_factory.core.exceptions import ExternalAPIError
from product_factory.integrations.autocomplete import GoogleAutocompleteClient
from product_factory.models.derived_product import DerivedProduct
from product_factory.models.validation import KeywordValidation
from product_factory.schemas.pipeline import ItemOutcome, StageSummary
from product_factory.schemas.snapshots import KeywordValidationSnapshot, dump_snapshot

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class KeywordSuggestions:
    keyword: str
    suggestions: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.suggestions)

    @property
    def exact_matches(self) -> int:
        """Suggestions that contain the keyword or are contained by it."""
        keyword = self.keyword.lower()
        return sum(
            1
            for suggestion in self.suggestions
            if keyword in suggestion.lower() or suggestion.lower() in keyword
        )


@dataclass(slots=True)
class DemandEstimate:
    volume: str
    total_suggestions: int
    exact_matches: int


def estimate_search_volume(results: Sequence[KeywordSuggestions]) -> DemandEstimate:
    total = sum(result.count for result in results)
    exact = sum(result.exact_matches for result in results)
    if total >= 15:
        volume = "high"
    elif total >= 8:
        volume = "medium"
    elif total >= 3:
        volume = "low"
    else:
        volume = "none"
    return DemandEstimate(volume=volume, total_suggestions=total, exact_matches=exact)


def estimate_difficulty(total_suggestions: int, competition_level: str) -> str:
    """Prefer the competitive check's verdict; otherwise read suggestion diversity."""
    if competition_level == "high":
        return "hard"
    if competition_level == "low":
        return "easy"
    if total_suggestions >= 20:
        return "moderate"
    if total_suggestions >= 5:
        return "easy"
    return "unknown"


def should_reject_demand(volume: str, difficulty: str) -> bool:
    return volume == "none" or (volume == "low" and difficulty == "hard")


class KeywordValidationStore(Protocol):
    async def list_pending_keyword_validation(self, *, limit: int) -> list[DerivedProduct]: ...

    async def record_keyword_validation(self, validation: KeywordValidation, updates: dict[str, Any]) -> bool: ...


class KeywordValidator:
    """Runs the autocomplete demand gate over competitively-checked derivatives."""

    def __init__(
        self,
        store: KeywordValidationStore,
        budget: Any,
        autocomplete_factory: Callable[[], Any] = GoogleAutocompleteClient,
        config: Settings | None = None,
    ) -> None:
        self.store = store
        self.budget = budget
        self.autocomplete_factory = autocomplete_factory
        self.config = config or settings

    async def run(self) -> StageSummary:
        summary = StageSummary()

        status = await self.budget.is_exceeded()
        if status.exceeded:
            logger.warning(
                "Budget exceeded, skipping keyword validation",
                extra={"spent_today": status.spent_today, "limit": status.limit},
            )
            summary.stopped_early = True
            return summary

        products = await self.store.list_pending_keyword_validation(limit=self.config.keyword_validator_max_per_run)
        if not products:
            logger.info("No derivatives awaiting keyword validation")
            return summary

        for index, product in enumerate(products):
            if index and self.config.stage_item_delay_seconds:
                await asyncio.sleep(self.config.stage_item_delay_seconds)

            status = await self.budget.is_exceeded()
            if status.exceeded:
                logger.warning("Budget exceeded mid-run, stopping keyword validation")
                summary.stopped_early = True
                break

            summary.processed += 1
            try:
                outcome = await self.validate(product)
            except Exception:
                logger.exception("Keyword validation failed", extra={"derived_product_id": product.id})
                summary.record("skipped")
                continue
            summary.record(outcome)

        logger.info("Keyword validation complete", extra=summary.model_dump())
        return summary

    async def fetch_suggestions(self, keywords: Sequence[str]) -> list[KeywordSuggestions]:
        """Query autocomplete per keyword; a failed lookup counts as no suggestions."""
        results: list[KeywordSuggestions] = []
        async with self.autocomplete_factory() as client:
            for index, keyword in enumerate(keywords):
                if index and self.config.autocomplete_request_delay_seconds:
                    await asyncio.sleep(self.config.autocomplete_request_delay_seconds)
                try:
                    suggestions = await client.suggest(keyword)
                except ExternalAPIError as e:
                    logger.warning("Autocomplete lookup failed", extra={"keyword": keyword, "error": str(e)})
                    suggestions = []
                results.append(KeywordSuggestions(keyword=keyword, suggestions=suggestions))
        return results

    async def validate(self, product: DerivedProduct) -> ItemOutcome:
        """Validate one derivative; 'created' means it was promoted to validated."""
        keywords = [keyword for keyword in (product.target_keywords or []) if keyword.strip()]
        if not keywords:
            logger.info("Derivative has no keywords to validate", extra={"derived_product_id": product.id})
            return "skipped"

        results = await self.fetch_suggestions(keywords[: self.config.keyword_validator_max_keywords])
        demand = estimate_search_volume(results)
        difficulty = estimate_difficulty(demand.total_suggestions, product.competition_level)
        rejected = should_reject_demand(demand.volume, difficulty)

        sample = [suggestion for result in results for suggestion in result.suggestions]
        sample = sample[: self.config.keyword_validator_suggestion_sample]

        validation = KeywordValidation(
            derived_product_id=product.id,
            keywords=[result.keyword for result in results],
            keyword_counts={result.keyword: result.count for result in results},
            total_suggestions=demand.total_suggestions,
            exact_matches=demand.exact_matches,
            suggestions_sample=sample,
            search_volume_estimate=demand.volume,
            keyword_difficulty=difficulty,
            data_source="google_autocomplete",
        )
        snapshot = KeywordValidationSnapshot(
            keywords=validation.keywords,
            total_suggestions=demand.total_suggestions,
            exact_matches=demand.exact_matches,
            search_volume_estimate=demand.volume,
            keyword_difficulty=difficulty,
            suggestions_sample=[] if rejected else sample,
        )

        if rejected:
            updates: dict[str, Any] = {
                "status": "rejected",
                "rejection_reason": (
                    f"Low search demand: {demand.volume} volume, {demand.total_suggestions} total suggestions"
                ),
                "seo_data": dump_snapshot(snapshot),
            }
        else:
            updates = {
                "status": "validated",
                "estimated_search_volume": demand.volume,
                "seo_data": dump_snapshot(snapshot),
            }

        if not await self.store.record_keyword_validation(validation, updates):
            logger.info("Keyword validation already recorded", extra={"derived_product_id": product.id})
            return "skipped"

        logger.info(
            "Keyword validation recorded",
            extra={
                "derived_product_id": product.id,
                "volume": demand.volume,
                "difficulty": difficulty,
                "total_suggestions": demand.total_suggestions,
                "rejected": rejected,
            },
        )
        return "rejected" if rejected else "created"
