"""Pipeline stage and budget endpoints."""

import logging

from fastapi import APIRouter, HTTPException, status

from product_factory.api.v1.dependencies import Budget
from product_factory.core.exceptions import UnknownStageError
from product_factory.schemas.pipeline import StageRunResponse, StatusResponse
from product_factory.services.pipeline import get_status, run_stage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status", response_model=StatusResponse)
async def budget_status(budget: Budget) -> StatusResponse:
    """Today's AI spend against the daily limit."""
    return await get_status(budget)


@router.post("/stages/{stage}/run", response_model=StageRunResponse)
async def trigger_stage(stage: str) -> StageRunResponse:
    """Run one stage synchronously and return its counters."""
    try:
        summary = await run_stage(stage)
    except UnknownStageError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e

    return StageRunResponse(stage=stage, summary=summary)
