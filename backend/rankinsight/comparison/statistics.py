"""Descriptive statistics for a user's value within a population.

Rank is 1-based on values sorted descending; ties share the best rank
(1 + number of strictly greater values).

percentile = 100 * (N - rank) / (N - 1) for N > 1, else 100.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Sequence
from dataclasses import dataclass
from math import ceil

import numpy as np

from rankinsight.core.exceptions import EmptyPopulationError

# Category tiers (lower bounds, inclusive)
EXCELLENT_PERCENTILE = 90.0
ABOVE_AVERAGE_PERCENTILE = 70.0
AVERAGE_PERCENTILE = 40.0
BELOW_AVERAGE_PERCENTILE = 20.0


@dataclass(frozen=True)
class RankStats:
    rank: int
    percentile: float
    average: float
    median: float
    total: int


def percentile_for_rank(rank: int, total: int) -> float:
    if total <= 1:
        return 100.0
    return 100.0 * (total - rank) / (total - 1)


def categorize(percentile: float) -> str:
    """Map a percentile onto its qualitative tier."""
    if percentile >= EXCELLENT_PERCENTILE:
        return "excellent"
    if percentile >= ABOVE_AVERAGE_PERCENTILE:
        return "above_average"
    if percentile >= AVERAGE_PERCENTILE:
        return "average"
    if percentile >= BELOW_AVERAGE_PERCENTILE:
        return "below_average"
    return "needs_improvement"


class PercentileIndex:
    """Sorted view over one distribution for repeated rank lookups."""

    def __init__(self, values: Sequence[float]):
        if len(values) == 0:
            raise EmptyPopulationError()
        self._sorted = np.sort(np.asarray(values, dtype=float))

    @property
    def total(self) -> int:
        return int(self._sorted.size)

    @property
    def minimum(self) -> float:
        return float(self._sorted[0])

    @property
    def maximum(self) -> float:
        return float(self._sorted[-1])

    def rank_of(self, value: float) -> int:
        greater = self.total - bisect_right(self._sorted, value)
        return greater + 1

    def percentile_of(self, value: float) -> float:
        return percentile_for_rank(self.rank_of(value), self.total)

    def value_at_percentile(self, percentile: float) -> float:
        """Smallest population value whose percentile is at least ``percentile``."""
        if self.total == 1:
            return float(self._sorted[0])
        index = min(self.total - 1, max(0, ceil(percentile / 100.0 * (self.total - 1) - 1e-9)))
        return float(self._sorted[index])

    def average(self) -> float:
        return float(np.mean(self._sorted))

    def median(self) -> float:
        return float(np.median(self._sorted))


def rank_and_percentile(values: Sequence[float], target: float) -> RankStats:
    """
    Rank ``target`` within ``values``.

    The target is logically inserted when it is not already one of the values,
    so the returned rank always lies in [1, total].

    Raises:
        EmptyPopulationError: ``values`` is empty.
    """
    if len(values) == 0:
        raise EmptyPopulationError()

    population = list(values)
    if target not in population:
        population.append(target)

    index = PercentileIndex(population)
    rank = index.rank_of(target)
    return RankStats(
        rank=rank,
        percentile=percentile_for_rank(rank, index.total),
        average=index.average(),
        median=index.median(),
        total=index.total,
    )
