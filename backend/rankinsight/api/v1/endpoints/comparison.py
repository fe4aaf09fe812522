"""Comparison endpoints: where the caller stands against other students."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from rankinsight.comparison.service import UserComparisonService
from rankinsight.core.app_exceptions import ComparisonNotFoundError
from rankinsight.core.dependencies import ADMIN_ROLE, get_comparison_service, get_current_user_id, require_roles
from rankinsight.schemas.comparison import (
    CacheMetrics,
    ComparisonSummary,
    PercentileComparison,
    PercentileSummary,
    UserComparison,
)

KEY_INSIGHTS = 3
IMPROVEMENT_CATEGORIES = ("below_average", "needs_improvement")

router = APIRouter()
admin_router = APIRouter(dependencies=[Depends(require_roles(ADMIN_ROLE))])

ServiceDep = Annotated[UserComparisonService, Depends(get_comparison_service)]
UserIdDep = Annotated[str, Depends(get_current_user_id)]


async def _load(service: UserComparisonService, user_id: str) -> UserComparison:
    comparison = await service.get_user_comparison(user_id)
    if comparison is None:
        raise ComparisonNotFoundError(user_id)
    return comparison


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/comparison", response_model=UserComparison)
async def get_comparison(service: ServiceDep, user_id: UserIdDep):
    """Full comparison: rankings, metric comparisons, insights, similar users and goals."""
    return await _load(service, user_id)


@router.get("/comparison/summary", response_model=ComparisonSummary)
async def get_comparison_summary(service: ServiceDep, user_id: UserIdDep):
    comparison = await _load(service, user_id)
    return ComparisonSummary(
        user=comparison.user,
        rankings=comparison.ranking_positions,
        key_insights=comparison.insights[:KEY_INSIGHTS],
        calculated_at=comparison.calculated_at,
    )


@router.get("/percentile-comparison", response_model=PercentileComparison)
async def get_percentile_comparison(service: ServiceDep, user_id: UserIdDep):
    """Per-metric percentiles, goals and a short tally."""
    comparison = await _load(service, user_id)
    metrics = comparison.metric_comparisons
    return PercentileComparison(
        user=comparison.user,
        metrics=metrics,
        goals=comparison.goals,
        summary=PercentileSummary(
            overall_percentile=comparison.ranking_positions.global_percentile,
            excellent_metrics=sum(1 for m in metrics if m.category == "excellent"),
            improvement_areas=sum(1 for m in metrics if m.category in IMPROVEMENT_CATEGORIES),
        ),
        calculated_at=comparison.calculated_at,
    )


@router.delete("/comparison-cache", status_code=status.HTTP_204_NO_CONTENT)
async def invalidate_own_comparison(service: ServiceDep, user_id: UserIdDep):
    service.invalidate_user_comparison(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin_router.delete("/comparison-cache", status_code=status.HTTP_204_NO_CONTENT)
async def invalidate_all_comparisons(service: ServiceDep):
    """Drop every cached comparison (after population-wide recalculations)."""
    service.invalidate_all_comparisons()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin_router.get("/comparison-cache/metrics", response_model=CacheMetrics)
async def get_cache_metrics(service: ServiceDep):
    return service.cache.metrics()
