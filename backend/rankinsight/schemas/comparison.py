"""Pydantic schemas for user comparisons."""

from datetime import datetime
from typing import Literal

from pydantic import Field

from rankinsight.schemas.population import CamelModel

MetricCategory = Literal["excellent", "above_average", "average", "below_average", "needs_improvement"]
InsightType = Literal["achievement", "improvement", "encouragement", "goal"]
Performance = Literal["better", "similar", "worse"]

# ============================================================================
# Comparison building blocks
# ============================================================================


class UserRankingPosition(CamelModel):
    """Position and percentile of a user in each applicable scope."""

    global_position: int = Field(ge=1)
    total_users: int = Field(ge=1)
    global_percentile: float = Field(ge=0, le=100)
    university_position: int | None = None
    total_university_users: int | None = None
    university_percentile: float | None = None
    course_position: int | None = None
    total_course_users: int | None = None
    course_percentile: float | None = None


class MetricComparison(CamelModel):
    """Where a user's value for one metric sits in the population."""

    metric: str
    label: str
    user_value: float
    average: float
    median: float
    percentile: float
    rank: int
    total_users: int
    better_than_percent: float
    category: MetricCategory


class ComparativeInsight(CamelModel):
    """Display-ready narrative unit (Portuguese)."""

    type: InsightType
    title: str
    description: str
    metric: str | None = None
    value: float | None = None
    comparison: str | None = None
    icon: str


class SimilarUser(CamelModel):
    """A peer with a similar metric profile."""

    id: str
    name: str
    university: str | None = None
    similarity: float = Field(ge=0, le=1)
    performance: Performance


class Goal(CamelModel):
    """Target value for a metric below the goal percentile."""

    metric: str
    current: float
    target: float
    percentile_target: float
    time_estimate: str | None = None


class ComparisonUser(CamelModel):
    """Identity of the compared user."""

    id: str
    name: str
    university: str | None = None
    course: str | None = None


class UserComparison(CamelModel):
    """Fully assembled comparison; cached as a whole, never patched."""

    user: ComparisonUser
    ranking_positions: UserRankingPosition
    metric_comparisons: list[MetricComparison]
    insights: list[ComparativeInsight]
    similar_users: list[SimilarUser]
    goals: list[Goal]
    calculated_at: datetime


# ============================================================================
# Response views
# ============================================================================


class ComparisonSummary(CamelModel):
    """Short view: rankings and the leading insights."""

    user: ComparisonUser
    rankings: UserRankingPosition
    key_insights: list[ComparativeInsight]
    calculated_at: datetime


class PercentileSummary(CamelModel):
    overall_percentile: float
    excellent_metrics: int
    improvement_areas: int


class PercentileComparison(CamelModel):
    """Per-metric view with goals."""

    user: ComparisonUser
    metrics: list[MetricComparison]
    goals: list[Goal]
    summary: PercentileSummary
    calculated_at: datetime


class CacheMetrics(CamelModel):
    """Comparison cache counters."""

    backend: str
    hits: int
    misses: int
    evictions: int
    entries: int
    hit_rate: float
