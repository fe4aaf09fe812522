"""Similar-user search over the tracked metric profile.

Each metric is min/max normalized with the population's observed bounds;
similarity is 1 - mean absolute normalized difference. Ordering is by
similarity descending, then user id, so results are reproducible.
"""

import heapq
from collections.abc import Iterable, Mapping, Sequence

from rankinsight.comparison.statistics import PercentileIndex
from rankinsight.population.metrics import COMPOSITE, TRACKED_METRICS, Metric
from rankinsight.schemas.comparison import SimilarUser
from rankinsight.schemas.population import UserProfile

PERFORMANCE_MARGIN = 5.0  # composite percentile points
MIN_SIMILARITY = 0.6
DEFAULT_LIMIT = 5


def _normalize(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    if high <= low:
        return 0.0
    return min(1.0, max(0.0, (value - low) / (high - low)))


class _Ranked:
    """Heap item: the worst kept candidate sits at the top of a min-heap."""

    __slots__ = ("similarity", "user_id", "entry")

    def __init__(self, similarity: float, user_id: str, entry: SimilarUser):
        self.similarity = similarity
        self.user_id = user_id
        self.entry = entry

    def __lt__(self, other: "_Ranked") -> bool:
        # "less" means "ranks lower": lower similarity, or same similarity and larger id
        if self.similarity != other.similarity:
            return self.similarity < other.similarity
        return self.user_id > other.user_id


class SimilarUserFinder:
    """Streaming top-k similar users for one target."""

    def __init__(
        self,
        target: UserProfile,
        bounds: Mapping[str, tuple[float, float]],
        composite_index: PercentileIndex,
        k: int = DEFAULT_LIMIT,
        metrics: Sequence[Metric] = TRACKED_METRICS,
        min_similarity: float = MIN_SIMILARITY,
    ):
        self.target = target
        self.k = k
        self.min_similarity = min_similarity
        self._composite_index = composite_index
        self._metrics = [m for m in metrics if m.key in bounds]
        self._bounds = bounds
        self._own = [_normalize(m.extract(target), bounds[m.key]) for m in self._metrics]
        self._own_percentile = composite_index.percentile_of(COMPOSITE.extract(target))
        self._heap: list[_Ranked] = []

    def similarity(self, candidate: UserProfile) -> float:
        if not self._metrics:
            return 0.0
        distance = sum(
            abs(own - _normalize(metric.extract(candidate), self._bounds[metric.key]))
            for own, metric in zip(self._own, self._metrics)
        ) / len(self._metrics)
        return 1.0 - distance

    def performance(self, candidate: UserProfile) -> str:
        diff = self._composite_index.percentile_of(COMPOSITE.extract(candidate)) - self._own_percentile
        if diff > PERFORMANCE_MARGIN:
            return "better"
        if diff < -PERFORMANCE_MARGIN:
            return "worse"
        return "similar"

    def consider(self, candidate: UserProfile) -> None:
        if self.k <= 0 or candidate.id == self.target.id:
            return
        score = self.similarity(candidate)
        if score < self.min_similarity:
            return
        ranked = _Ranked(
            score,
            candidate.id,
            SimilarUser(
                id=candidate.id,
                name=candidate.name,
                university=candidate.university,
                similarity=round(score, 4),
                performance=self.performance(candidate),
            ),
        )
        if len(self._heap) < self.k:
            heapq.heappush(self._heap, ranked)
        elif self._heap[0] < ranked:
            heapq.heapreplace(self._heap, ranked)

    def results(self) -> list[SimilarUser]:
        ordered = sorted(self._heap, key=lambda r: (-r.similarity, r.user_id))
        return [r.entry for r in ordered]


def find_similar_users(
    target: UserProfile,
    candidates: Iterable[UserProfile],
    bounds: Mapping[str, tuple[float, float]],
    composite_index: PercentileIndex,
    k: int = DEFAULT_LIMIT,
) -> list[SimilarUser]:
    """Top-``k`` candidates most similar to ``target``; the target itself is never returned."""
    finder = SimilarUserFinder(target, bounds, composite_index, k=k)
    for candidate in candidates:
        finder.consider(candidate)
    return finder.results()


def bounds_from_indexes(indexes: Mapping[str, PercentileIndex]) -> dict[str, tuple[float, float]]:
    return {key: (index.minimum, index.maximum) for key, index in indexes.items()}
