"""Goal projection: the value a user needs to reach a target percentile."""

from collections.abc import Mapping, Sequence
from math import ceil

from rankinsight.comparison.statistics import PercentileIndex
from rankinsight.schemas.comparison import Goal, MetricComparison

GOAL_PERCENTILE_TARGET = 75.0

# Typical weekly gain per metric for an active student. Advisory only.
WEEKLY_IMPROVEMENT_RATE: dict[str, float] = {
    "averageScore": 2.5,
    "accuracy": 2.0,
    "totalSimulations": 5.0,
    "correctAnswers": 150.0,
    "streakDays": 7.0,
    "experience": 300.0,
}

WEEKS_PER_MONTH = 4


def estimate_time_to_goal(metric: str, current: float, target: float) -> str:
    """Coarse Portuguese time estimate to close the gap."""
    rate = WEEKLY_IMPROVEMENT_RATE.get(metric)
    if not rate:
        return "Algumas semanas"
    weeks = max(1, ceil((target - current) / rate))
    if weeks == 1:
        return "1 semana"
    if weeks <= 2 * WEEKS_PER_MONTH:
        return f"{weeks} semanas"
    months = ceil(weeks / WEEKS_PER_MONTH)
    return f"{months} meses"


def project_goals(
    comparisons: Sequence[MetricComparison],
    indexes: Mapping[str, PercentileIndex],
    percentile_target: float = GOAL_PERCENTILE_TARGET,
) -> list[Goal]:
    """
    Propose a target for every metric below ``percentile_target``.

    Goals are ordered weakest first; metrics whose population value at the
    target percentile does not exceed the user's current value are skipped.
    """
    candidates = [
        (position, comparison)
        for position, comparison in enumerate(comparisons)
        if comparison.percentile < percentile_target and comparison.metric in indexes
    ]
    candidates.sort(key=lambda item: (item[1].percentile, item[0]))

    goals: list[Goal] = []
    for _, comparison in candidates:
        target = indexes[comparison.metric].value_at_percentile(percentile_target)
        if target <= comparison.user_value:
            continue
        goals.append(
            Goal(
                metric=comparison.metric,
                current=comparison.user_value,
                target=round(target, 2),
                percentile_target=percentile_target,
                time_estimate=estimate_time_to_goal(comparison.metric, comparison.user_value, target),
            )
        )
    return goals
