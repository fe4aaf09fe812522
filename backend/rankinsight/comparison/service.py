"""User comparison service: ranking, metric comparisons, insights, peers and goals."""

from __future__ import annotations

import asyncio
import time

from rankinsight.cache.comparison_cache import ComparisonCache
from rankinsight.comparison.goals import project_goals
from rankinsight.comparison.insights import generate_insights
from rankinsight.comparison.metrics import build_comparisons, index_distributions, load_distributions
from rankinsight.comparison.positions import resolve_positions
from rankinsight.comparison.similar import SimilarUserFinder, bounds_from_indexes
from rankinsight.core.config import settings
from rankinsight.core.exceptions import CacheUnavailableError, EmptyPopulationError
from rankinsight.core.logging import get_logger
from rankinsight.population.gateway import PopulationGateway
from rankinsight.population.metrics import COMPOSITE_SCORE, TRACKED_METRICS
from rankinsight.schemas.comparison import ComparisonUser, UserComparison
from rankinsight.schemas.population import Scope

logger = get_logger(__name__)


class UserComparisonService:
    """
    Compare a user against the platform population.

    Assembled comparisons are cached per user. Collaborators that change a
    user's statistics must call ``invalidate_user_comparison``; population-wide
    recalculations must call ``invalidate_all_comparisons``.
    """

    def __init__(
        self,
        gateway: PopulationGateway,
        cache: ComparisonCache,
        similar_users_limit: int | None = None,
    ):
        self.gateway = gateway
        self.cache = cache
        self.similar_users_limit = (
            settings.SIMILAR_USERS_LIMIT if similar_users_limit is None else similar_users_limit
        )
        self._inflight: dict[str, asyncio.Task[UserComparison | None]] = {}
        # In-flight computations invalidated before finishing; their results are not cached
        self._superseded: set[asyncio.Task] = set()

    async def get_user_comparison(self, user_id: str) -> UserComparison | None:
        """
        Full comparison for ``user_id``.

        Returns:
            The comparison, or None when the user does not exist or has not
            completed any simulation.

        Raises:
            GatewayUnavailableError, EmptyPopulationError: the global population
            could not be read.
        """
        cached = self._cache_get(user_id)
        if cached is not None:
            return cached

        # Concurrent misses for the same user share one computation
        task = self._inflight.get(user_id)
        if task is None:
            task = asyncio.create_task(self._compute_and_store(user_id))
            self._inflight[user_id] = task
            task.add_done_callback(lambda done: self._forget(user_id, done))
        return await asyncio.shield(task)

    def invalidate_user_comparison(self, user_id: str) -> None:
        task = self._inflight.pop(user_id, None)
        if task is not None:
            self._superseded.add(task)
        try:
            self.cache.invalidate_user_comparison(user_id)
        except CacheUnavailableError as e:
            logger.warning(
                "comparison_cache_unavailable",
                extra={"event": "comparison_cache_unavailable", "op": "invalidate", "user_id": user_id, "error": str(e)},
            )
            return
        logger.info("comparison_invalidated", extra={"event": "comparison_invalidated", "user_id": user_id})

    def invalidate_all_comparisons(self) -> int:
        self._superseded.update(self._inflight.values())
        self._inflight.clear()
        try:
            removed = self.cache.invalidate_all_comparisons()
        except CacheUnavailableError as e:
            logger.warning(
                "comparison_cache_unavailable",
                extra={"event": "comparison_cache_unavailable", "op": "invalidate_all", "error": str(e)},
            )
            return 0
        logger.info("comparisons_invalidated", extra={"event": "comparisons_invalidated", "removed": removed})
        return removed

    def _forget(self, user_id: str, task: asyncio.Task) -> None:
        self._superseded.discard(task)
        if self._inflight.get(user_id) is task:
            del self._inflight[user_id]

    def _cache_get(self, user_id: str) -> UserComparison | None:
        try:
            return self.cache.get(user_id)
        except CacheUnavailableError as e:
            logger.warning(
                "comparison_cache_unavailable",
                extra={"event": "comparison_cache_unavailable", "op": "get", "user_id": user_id, "error": str(e)},
            )
            return None

    def _cache_set(self, user_id: str, comparison: UserComparison) -> UserComparison:
        try:
            return self.cache.set(user_id, comparison)
        except CacheUnavailableError as e:
            logger.warning(
                "comparison_cache_unavailable",
                extra={"event": "comparison_cache_unavailable", "op": "set", "user_id": user_id, "error": str(e)},
            )
            return comparison

    async def _compute_and_store(self, user_id: str) -> UserComparison | None:
        comparison = await self.compute_user_comparison(user_id)
        if comparison is None:
            return None
        if asyncio.current_task() in self._superseded:
            logger.info(
                "comparison_superseded",
                extra={"event": "comparison_superseded", "user_id": user_id},
            )
            return comparison
        return self._cache_set(user_id, comparison)

    async def compute_user_comparison(self, user_id: str) -> UserComparison | None:
        """Build a comparison from the gateway, bypassing the cache."""
        started = time.perf_counter()
        profile = await self.gateway.fetch_user(user_id)
        if profile is None:
            logger.info("comparison_user_not_found", extra={"event": "comparison_user_not_found", "user_id": user_id})
            return None
        if not profile.is_ranked:
            logger.info("comparison_user_not_ranked", extra={"event": "comparison_user_not_ranked", "user_id": user_id})
            return None

        metric_keys = [m.key for m in TRACKED_METRICS] + [COMPOSITE_SCORE]
        positions, distributions = await asyncio.gather(
            resolve_positions(self.gateway, profile),
            load_distributions(self.gateway, metric_keys),
        )
        indexes = index_distributions(distributions)
        if COMPOSITE_SCORE not in indexes:
            raise EmptyPopulationError(COMPOSITE_SCORE, "global")

        comparisons = build_comparisons(profile, distributions)
        goals = project_goals(comparisons, indexes)
        insights = generate_insights(positions, comparisons, goals)

        finder = SimilarUserFinder(
            profile,
            bounds_from_indexes({m.key: indexes[m.key] for m in TRACKED_METRICS if m.key in indexes}),
            indexes[COMPOSITE_SCORE],
            k=self.similar_users_limit,
        )
        async for candidate in self.gateway.iter_profiles(Scope.everyone()):
            finder.consider(candidate)

        comparison = UserComparison(
            user=ComparisonUser(
                id=profile.id,
                name=profile.name,
                university=profile.university,
                course=profile.course,
            ),
            ranking_positions=positions,
            metric_comparisons=comparisons,
            insights=insights,
            similar_users=finder.results(),
            goals=goals,
            calculated_at=self.cache.clock(),
        )
        logger.info(
            "comparison_computed",
            extra={
                "event": "comparison_computed",
                "user_id": user_id,
                "population": positions.total_users,
                "global_position": positions.global_position,
                "latency_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return comparison
