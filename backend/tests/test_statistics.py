"""Tests for rank/percentile statistics."""

import pytest

from rankinsight.comparison.statistics import (
    PercentileIndex,
    categorize,
    percentile_for_rank,
    rank_and_percentile,
)
from rankinsight.core.exceptions import EmptyPopulationError


def test_rank_and_percentile_middle_of_population():
    """[100, 90, 80, 70, 60] with target 80 -> rank 3, percentile 50."""
    stats = rank_and_percentile([100, 90, 80, 70, 60], 80)
    assert stats.rank == 3
    assert stats.percentile == 50.0
    assert stats.total == 5
    assert stats.average == 80.0
    assert stats.median == 80.0


def test_single_member_population_is_top():
    stats = rank_and_percentile([75], 75)
    assert stats.rank == 1
    assert stats.percentile == 100.0


def test_empty_population_is_an_error():
    with pytest.raises(EmptyPopulationError):
        rank_and_percentile([], 10)


def test_ties_share_best_rank():
    stats = rank_and_percentile([90, 80, 80, 80, 50], 80)
    assert stats.rank == 2
    assert stats.percentile == 75.0


def test_best_and_worst():
    values = [10, 20, 30, 40]
    assert rank_and_percentile(values, 40).percentile == 100.0
    worst = rank_and_percentile(values, 10)
    assert worst.rank == 4
    assert worst.percentile == 0.0


def test_target_missing_from_population_is_inserted():
    stats = rank_and_percentile([100, 50], 75)
    assert stats.total == 3
    assert stats.rank == 2
    assert stats.percentile == 50.0
    assert stats.median == 75.0


def test_median_even_population():
    stats = rank_and_percentile([1, 2, 3, 4], 4)
    assert stats.median == 2.5


def test_percentile_for_rank():
    assert percentile_for_rank(1, 1) == 100.0
    assert percentile_for_rank(1, 11) == 100.0
    assert percentile_for_rank(11, 11) == 0.0
    assert percentile_for_rank(6, 11) == 50.0


@pytest.mark.parametrize(
    ("percentile", "category"),
    [
        (100.0, "excellent"),
        (90.0, "excellent"),
        (89.9, "above_average"),
        (70.0, "above_average"),
        (69.9, "average"),
        (40.0, "average"),
        (39.9, "below_average"),
        (20.0, "below_average"),
        (19.9, "needs_improvement"),
        (0.0, "needs_improvement"),
    ],
)
def test_categorize_tiers(percentile, category):
    assert categorize(percentile) == category


class TestPercentileIndex:
    def test_lookups_match_rank_and_percentile(self):
        values = [55, 70, 70, 90, 12, 33]
        index = PercentileIndex(values)
        for v in values:
            stats = rank_and_percentile(values, v)
            assert index.rank_of(v) == stats.rank
            assert index.percentile_of(v) == pytest.approx(stats.percentile)

    def test_bounds(self):
        index = PercentileIndex([3, 9, 1])
        assert index.minimum == 1.0
        assert index.maximum == 9.0
        assert index.total == 3

    def test_value_at_percentile_is_smallest_value_reaching_it(self):
        index = PercentileIndex([40, 45, 50, 55, 60, 65, 70, 78, 85, 92])
        target = index.value_at_percentile(75)
        assert target == 78.0
        assert index.percentile_of(target) >= 75
        assert index.percentile_of(70) < 75

    def test_value_at_percentile_extremes(self):
        index = PercentileIndex([5, 1, 3])
        assert index.value_at_percentile(0) == 1.0
        assert index.value_at_percentile(100) == 5.0
        assert PercentileIndex([7]).value_at_percentile(75) == 7.0

    def test_empty_index_is_an_error(self):
        with pytest.raises(EmptyPopulationError):
            PercentileIndex([])
