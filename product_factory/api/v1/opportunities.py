"""Opportunity read endpoints."""

from fastapi import APIRouter, Query

from product_factory.api.v1.dependencies import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, Opportunities
from product_factory.schemas.opportunity import OpportunityListResponse, OpportunityResponse

router = APIRouter()


@router.get("", response_model=OpportunityListResponse)
async def list_opportunities(
    repository: Opportunities,
    page: int = Query(DEFAULT_PAGE, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    status_filter: str | None = Query(None, alias="status"),
) -> OpportunityListResponse:
    """List opportunities, highest score first."""
    opportunities, total = await repository.list(
        status=status_filter,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return OpportunityListResponse(
        items=[OpportunityResponse.model_validate(opportunity) for opportunity in opportunities],
        total=total,
    )
