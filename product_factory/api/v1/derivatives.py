"""Derived product read endpoints."""

from fastapi import APIRouter, HTTPException, Query, status

from product_factory.api.v1.dependencies import (
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    DerivedProducts,
    Validations,
)
from product_factory.schemas.opportunity import (
    CompetitiveCheckResponse,
    DerivedProductDetailResponse,
    DerivedProductListResponse,
    DerivedProductResponse,
    KeywordValidationResponse,
)

router = APIRouter()


@router.get("", response_model=DerivedProductListResponse)
async def list_derivatives(
    repository: DerivedProducts,
    page: int = Query(DEFAULT_PAGE, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    status_filter: str | None = Query(None, alias="status"),
    opportunity_id: str | None = Query(None),
) -> DerivedProductListResponse:
    """List derivatives, highest score first."""
    products, total = await repository.list(
        status=status_filter,
        opportunity_id=opportunity_id,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return DerivedProductListResponse(
        items=[DerivedProductResponse.model_validate(product) for product in products],
        total=total,
    )


@router.get("/{derived_product_id}", response_model=DerivedProductDetailResponse)
async def get_derivative(
    derived_product_id: str,
    repository: DerivedProducts,
    validations: Validations,
) -> DerivedProductDetailResponse:
    """Get a derivative with its gate results."""
    product = await repository.get(derived_product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Derived product not found",
        )

    check, validation = await validations.get_for_product(derived_product_id)
    detail = DerivedProductDetailResponse.model_validate(product)
    detail.competitive_check = CompetitiveCheckResponse.model_validate(check) if check else None
    detail.keyword_validation = KeywordValidationResponse.model_validate(validation) if validation else None
    return detail
