"""Opportunity and derivative read schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class OpportunityResponse(BaseModel):
    """Schema for opportunity response."""

    id: str
    title: str
    slug: str
    description: str
    category: str
    target_keyword: str
    secondary_keywords: list[str]
    signal_ids: list[str]

    score: float
    score_breakdown: dict[str, float]

    window_opens_at: datetime | None
    window_closes_at: datetime | None
    window_status: str

    competitors: list[dict[str, Any]]
    recommended_template: str | None
    recommended_features: list[str]
    estimated_effort: str | None

    status: str
    decision_reason: str | None
    decided_by: str

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OpportunityListResponse(BaseModel):
    """Schema for opportunity list."""

    items: list[OpportunityResponse]
    total: int


class CompetitiveCheckResponse(BaseModel):
    """Schema for a competitive check row."""

    id: str
    keyword: str
    serp_results: list[dict[str, Any]]
    big_site_count: int
    small_site_count: int
    content_gap_found: bool
    difficulty_assessment: str | None
    ai_analysis: str | None
    recommendations: list[str]
    data_source: str
    created_at: datetime

    model_config = {"from_attributes": True}


class KeywordValidationResponse(BaseModel):
    """Schema for a keyword validation row."""

    id: str
    keywords: list[str]
    keyword_counts: dict[str, int]
    total_suggestions: int
    exact_matches: int
    suggestions_sample: list[str]
    search_volume_estimate: str
    keyword_difficulty: str
    data_source: str
    created_at: datetime

    model_config = {"from_attributes": True}


class DerivedProductResponse(BaseModel):
    """Schema for derivative response."""

    id: str
    opportunity_id: str
    signal_id: str | None
    parent_topic: str
    derivative_type: str
    title: str
    slug: str
    description: str
    target_keywords: list[str]

    product_form: str
    estimated_search_volume: str
    competition_level: str
    build_effort: str
    monetization_strategy: list[str]
    ai_reasoning: str | None
    score: float

    score_snapshot: dict[str, Any] | None
    competitive_data: dict[str, Any] | None
    seo_data: dict[str, Any] | None

    status: str
    rejection_reason: str | None

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DerivedProductListResponse(BaseModel):
    """Schema for derivative list."""

    items: list[DerivedProductResponse]
    total: int


class DerivedProductDetailResponse(DerivedProductResponse):
    """Derivative with its validation gate results."""

    competitive_check: CompetitiveCheckResponse | None = None
    keyword_validation: KeywordValidationResponse | None = None
