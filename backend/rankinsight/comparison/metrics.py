"""Per-metric comparisons against the global population."""

import asyncio
from collections.abc import Iterable, Sequence

from rankinsight.comparison.statistics import PercentileIndex, categorize, rank_and_percentile
from rankinsight.core.exceptions import EmptyPopulationError
from rankinsight.population.gateway import PopulationGateway
from rankinsight.population.metrics import TRACKED_METRICS, Metric
from rankinsight.schemas.comparison import MetricComparison
from rankinsight.schemas.population import Scope, UserProfile

# metric key -> raw population values
MetricDistributions = dict[str, list[float]]


async def load_distributions(
    gateway: PopulationGateway,
    metric_keys: Iterable[str],
    scope: Scope | None = None,
) -> MetricDistributions:
    """Fetch several metric distributions concurrently."""
    scope = scope or Scope.everyone()
    keys = list(metric_keys)
    results = await asyncio.gather(*(gateway.collect_values(key, scope) for key in keys))
    return dict(zip(keys, results))


def compare_metric(metric: Metric, profile: UserProfile, values: Sequence[float]) -> MetricComparison:
    if not values:
        raise EmptyPopulationError(metric.key)
    user_value = metric.extract(profile)
    stats = rank_and_percentile(values, user_value)
    percentile = round(stats.percentile, 1)
    return MetricComparison(
        metric=metric.key,
        label=metric.label,
        user_value=round(user_value, 2),
        average=round(stats.average, 2),
        median=round(stats.median, 2),
        percentile=percentile,
        rank=stats.rank,
        total_users=stats.total,
        better_than_percent=percentile,
        category=categorize(stats.percentile),
    )


def build_comparisons(
    profile: UserProfile,
    distributions: MetricDistributions,
    metrics: Sequence[Metric] = TRACKED_METRICS,
) -> list[MetricComparison]:
    """Comparisons in declared metric order."""
    return [compare_metric(metric, profile, distributions.get(metric.key, [])) for metric in metrics]


async def compare_metrics(
    gateway: PopulationGateway,
    profile: UserProfile,
    metrics: Sequence[Metric] = TRACKED_METRICS,
) -> list[MetricComparison]:
    distributions = await load_distributions(gateway, (m.key for m in metrics))
    return build_comparisons(profile, distributions, metrics)


def index_distributions(distributions: MetricDistributions) -> dict[str, PercentileIndex]:
    """Sorted indexes for every non-empty distribution."""
    return {key: PercentileIndex(values) for key, values in distributions.items() if values}
