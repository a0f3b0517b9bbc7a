"""API v1 router aggregator."""

from fastapi import APIRouter

from product_factory.api.v1 import derivatives, opportunities, pipeline

api_router = APIRouter()

api_router.include_router(pipeline.router, tags=["Pipeline"])
api_router.include_router(opportunities.router, prefix="/opportunities", tags=["Opportunities"])
api_router.include_router(derivatives.router, prefix="/derivatives", tags=["Derivatives"])
