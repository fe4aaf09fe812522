"""API v1 router - includes all v1 endpoints."""

from fastapi import APIRouter

from rankinsight.api.v1.endpoints import comparison

api_router = APIRouter()

api_router.include_router(comparison.router, prefix="/users", tags=["Comparison"])
api_router.include_router(comparison.admin_router, prefix="/admin", tags=["Comparison Admin"])
